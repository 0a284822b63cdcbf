"""Execution stream reconciliation for long-running agent runs."""

__version__ = '0.1.0'
