"""Tests for the session core API (write-through, rollback, market refresh)."""

from datetime import date

import pytest

from wealth_portfolio.app import PortfolioSession, list_users, load_portfolio
from wealth_portfolio.errors import DataIntegrityError, InsufficientHoldingsError, StoreError
from wealth_portfolio.models.core import Quote, RatePair, Regime
from wealth_portfolio.services.pricing import DemoPriceSource
from wealth_portfolio.services.storage import InMemoryTransactionStore, JsonTransactionStore

TODAY = date(2026, 10, 19)


class RefusingStore(InMemoryTransactionStore):
    def __init__(self):
        super().__init__()
        self.refuse = False

    def append(self, user_id, operation):
        if self.refuse:
            return False
        return super().append(user_id, operation)

    def remove(self, user_id, operation_id):
        if self.refuse:
            return False
        return super().remove(user_id, operation_id)


@pytest.fixture
def session(rate_source):
    return PortfolioSession(
        user_id="ana",
        store=RefusingStore(),
        price_source=DemoPriceSource({"GGAL.BA": {"price": 4000.0, "change": 1.0}}),
        rate_source=rate_source,
    )


def test_demo_session_loads_demo_portfolio() -> None:
    """The demo session needs no files or network."""
    demo = PortfolioSession.demo()
    assert set(demo.ledger.holdings()) == {"GGAL.BA", "YPF.BA", "AAPL.BA"}
    demo.refresh_market(today=TODAY)
    assert demo.reference_rate == 1100.0
    s = demo.summary()
    assert s.total_invested_local == pytest.approx(650000)
    assert s.total_value_local == pytest.approx(100 * 1800 + 50 * 4500 + 25 * 15000)
    assert [row.symbol for row in demo.market()][:2] == ["GGAL", "YPF"]


def test_buy_and_sell_are_persisted(session) -> None:
    session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    sell = session.sell("GGAL.BA", date(2024, 9, 1), 30, 4500, 1350)
    stored = session.store.list("ana")
    assert [op.id for op in stored] == [op.id for op in session.ledger.operations]
    assert stored[-1] == sell


def test_store_failure_rolls_back_ledger(session) -> None:
    """A refused append leaves the ledger as it was."""
    session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.store.refuse = True
    with pytest.raises(StoreError):
        session.sell("GGAL.BA", date(2024, 9, 1), 30, 4500, 1350)
    assert len(session.ledger.operations) == 1
    assert session.ledger.holding("GGAL.BA").quantity == pytest.approx(100)


def test_rejected_sell_touches_nothing(session) -> None:
    with pytest.raises(InsufficientHoldingsError):
        session.sell("GGAL.BA", date(2024, 9, 1), 1, 4500, 1350)
    assert session.store.list("ana") == []


def test_delete(session) -> None:
    buy = session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.buy("YPF.BA", "YPF", date(2024, 5, 3), 1, 30000, 1100)
    assert session.delete(buy.id) == buy
    assert "GGAL.BA" not in session.ledger.holdings()
    assert [op.ticker for op in session.store.list("ana")] == ["YPF.BA"]


def test_delete_refused_by_ledger_keeps_store(session) -> None:
    buy = session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.sell("GGAL.BA", date(2024, 9, 1), 30, 4500, 1350)
    with pytest.raises(DataIntegrityError):
        session.delete(buy.id)
    assert len(session.store.list("ana")) == 2


def test_delete_refused_by_store(session) -> None:
    buy = session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.store.refuse = True
    with pytest.raises(StoreError):
        session.delete(buy.id)
    assert session.ledger.holding("GGAL.BA") is not None


def test_refresh_market_keeps_rate_when_source_down(session, rate_source) -> None:
    session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.refresh_market(symbols=[], today=TODAY)
    assert session.reference_rate == 1200.0
    assert session.quotes["GGAL"] == Quote(price=4000.0, change_percent=1.0)

    rate_source.current = None
    session.refresh_market(symbols=[], today=TODAY)
    assert session.reference_rate == 1200.0

    row = session.rows()[0]
    assert row.profit_local == pytest.approx(50000)
    assert row.profit_reference == pytest.approx(50000 / 1200)


def test_recommend_rate(session) -> None:
    assert session.recommend_rate(date(2024, 5, 2), today=TODAY) == (Regime.PARALLEL, 1050.0)
    assert session.recommend_rate(date(2023, 5, 2), today=TODAY) == (Regime.PARALLEL, None)


def test_history_and_calendar(session) -> None:
    session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 100, 3500, 1100)
    session.buy("YPF.BA", "YPF", date(2024, 6, 3), 1, 30000, 1100)
    assert [op.ticker for op in session.history()] == ["YPF.BA", "GGAL.BA"]
    assert list(session.calendar(2024)) == [date(2024, 5, 2), date(2024, 6, 3)]


def test_load_portfolio_reads_json_store(tmp_path) -> None:
    """A live session opens the user's JSON file."""
    store = JsonTransactionStore(tmp_path)
    store.add_user("ana")
    session = PortfolioSession(
        user_id="ana", store=store, price_source=DemoPriceSource({}), rate_source=None
    )
    session.buy("GGAL.BA", "Grupo Galicia", date(2024, 5, 2), 10, 3500, 1100)

    reopened = load_portfolio("ana", str(tmp_path))
    assert reopened.ledger.holding("GGAL.BA").quantity == pytest.approx(10)
    assert list_users(str(tmp_path)) == ["ana"]


def test_session_with_corrupted_store_fails() -> None:
    store = InMemoryTransactionStore(
        [{"id": "s", "userId": "ana", "ticker": "X", "date": "2024-01-01", "quantity": 1,
          "priceARS": 10, "exchangeRate": 1, "type": "sell"}]
    )
    with pytest.raises(DataIntegrityError):
        PortfolioSession(user_id="ana", store=store, price_source=DemoPriceSource({}), rate_source=None)
