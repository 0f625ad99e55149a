"""Command-line interface for quotesync."""
