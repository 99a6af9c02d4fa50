"""Pytest configuration: ensure src is on path when running tests from repo root, shared fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from wealth_portfolio.models.core import RatePair  # noqa: E402
from wealth_portfolio.services.ledger import PortfolioLedger  # noqa: E402


@pytest.fixture
def ledger() -> PortfolioLedger:
    return PortfolioLedger(user_id="tester")


@pytest.fixture
def ggal_ledger(ledger: PortfolioLedger) -> PortfolioLedger:
    """100 GGAL at 3500 ARS/unit, rate 1100."""
    ledger.record_buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100, operation_id="b1")
    return ledger


class FakeRateSource:
    """Rate source with canned answers; ``None`` makes the lookup fail."""

    def __init__(self, current=None, historical=None):
        self.current = current
        self.historical = historical or {}
        self.calls = []

    def current_rates(self) -> RatePair:
        from wealth_portfolio.errors import SourceUnavailableError

        self.calls.append(("current", None))
        if self.current is None:
            raise SourceUnavailableError("offline")
        return self.current

    def historical_rates(self, day: date) -> RatePair:
        from wealth_portfolio.errors import SourceUnavailableError

        self.calls.append(("historical", day))
        if day not in self.historical:
            raise SourceUnavailableError("no record")
        return self.historical[day]


@pytest.fixture
def rate_source() -> FakeRateSource:
    return FakeRateSource(
        current=RatePair(parallel=1230.0, official=1200.0),
        historical={date(2024, 5, 2): RatePair(parallel=1050.0, official=880.0)},
    )
