"""Entry point for running the notes service locally."""

from .app import app

if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "services.notes.app:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
    )
