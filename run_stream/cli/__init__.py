"""Command-line interface for run-stream."""
