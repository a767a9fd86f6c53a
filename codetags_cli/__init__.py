"""Command-line interface for codetags."""
