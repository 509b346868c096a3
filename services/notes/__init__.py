"""In-memory notes service demonstrating rule-driven error responses."""
