"""Command-line interface for recallgate."""
