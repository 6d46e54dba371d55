"""Command-line interface for recordfile."""
