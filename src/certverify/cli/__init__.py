"""Command-line interface for certverify."""
