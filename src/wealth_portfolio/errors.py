"""Exception hierarchy for ledger, sources, and store failures.

Every message is meant to be shown to the user as-is (e.g. as a notification).
"""

from __future__ import annotations


class PortfolioError(Exception):
    """Base class for all Wealth Portfolio errors."""


class ValidationError(PortfolioError, ValueError):
    """Operation input rejected before any mutation (non-positive amounts, empty ticker)."""


class InsufficientHoldingsError(PortfolioError):
    """A sell asked for more units than the holding has."""

    def __init__(self, ticker: str, requested: float, available: float) -> None:
        self.ticker = ticker
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested:g} units of {ticker}: only {available:g} held"
        )


class DataIntegrityError(PortfolioError):
    """The operation list is inconsistent (e.g. a sell with no matching buys)."""


class OperationNotFoundError(PortfolioError, KeyError):
    """No operation with the given id exists in the ledger."""

    def __init__(self, operation_id: str) -> None:
        self.operation_id = operation_id
        super().__init__(operation_id)

    def __str__(self) -> str:
        return f"Operation {self.operation_id!r} not found"


class SourceUnavailableError(PortfolioError):
    """A price or rate source could not supply a value."""


class StoreError(PortfolioError):
    """The transaction store refused to persist a change."""
