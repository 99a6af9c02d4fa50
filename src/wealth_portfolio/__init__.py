"""Wealth Portfolio: ARS/USD equity portfolio ledger and metrics."""

__version__ = "0.1.0"
