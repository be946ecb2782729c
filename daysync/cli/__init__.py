"""Command-line interface for daysync."""
