"""Command-line interface for commitment-timer."""
