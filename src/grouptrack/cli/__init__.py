"""Command-line interface for grouptrack."""
