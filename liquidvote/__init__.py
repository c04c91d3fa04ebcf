"""Voting and delegation status reconciliation for liquid-democracy proposals."""

__version__ = "0.1.0"
