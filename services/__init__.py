"""Service modules built on the shared exception resolver."""

__all__ = ["notes"]
