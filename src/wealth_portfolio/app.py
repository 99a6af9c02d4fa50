"""Application core API: a per-user portfolio session.

``PortfolioSession`` bundles everything one logged-in user works with (the
ledger, the transaction store, price/rate sources, and the last market
snapshot) so the CLI, scripts, or a future UI share the same entry points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from wealth_portfolio.config.constants import DEMO_USER, LOCAL_MARKET_SUFFIX, MARKET_SYMBOLS
from wealth_portfolio.errors import StoreError
from wealth_portfolio.models.core import (
    BuyOperation,
    Operation,
    PortfolioSummary,
    Quote,
    Regime,
    SellOperation,
)
from wealth_portfolio.services import metrics
from wealth_portfolio.services.exchange_rates import (
    BluelyticsRateSource,
    DemoRateSource,
    GatedRateLookup,
    RateSource,
    current_reference_rate,
    resolve_regime,
    selected_rate,
)
from wealth_portfolio.services.ledger import PortfolioLedger
from wealth_portfolio.services.pricing import (
    DemoPriceSource,
    PriceSource,
    YahooPriceSource,
    market_watch_tickers,
    refresh_quotes_cached,
)
from wealth_portfolio.services.storage import (
    InMemoryTransactionStore,
    JsonTransactionStore,
    TransactionStore,
)

logger = logging.getLogger(__name__)


def _noop_save(cache: Dict[str, Any]) -> None:
    pass


@dataclass
class PortfolioSession:
    """Session-scoped state for one user. Callers serialize mutations."""

    user_id: str
    store: TransactionStore
    price_source: PriceSource
    rate_source: RateSource
    ledger: PortfolioLedger = field(init=False)
    quotes: Dict[str, Quote] = field(default_factory=dict)
    reference_rate: Optional[float] = None
    price_cache: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.ledger = PortfolioLedger(self.store.list(self.user_id), user_id=self.user_id)
        self._rate_lookup = GatedRateLookup(self.rate_source)
        load_cache = getattr(self.store, "load_price_cache", None)
        if load_cache is not None:
            self.price_cache = load_cache()

    @classmethod
    def open(cls, user_id: str, data_dir: Optional[str] = None) -> "PortfolioSession":
        """Open a session backed by JSON files and the live Yahoo/Bluelytics sources."""
        return cls(
            user_id=user_id,
            store=JsonTransactionStore(data_dir),
            price_source=YahooPriceSource(),
            rate_source=BluelyticsRateSource(),
        )

    @classmethod
    def demo(cls) -> "PortfolioSession":
        """Offline session over the demo portfolio and simulated prices."""
        return cls(
            user_id=DEMO_USER,
            store=InMemoryTransactionStore.demo(),
            price_source=DemoPriceSource(),
            rate_source=DemoRateSource(),
        )

    # --- write path ---

    def buy(
        self,
        ticker: str,
        ticker_name: str,
        on: date,
        quantity: float,
        price_per_unit_local: float,
        exchange_rate: float,
    ) -> BuyOperation:
        """Record a buy in the ledger and persist it; rolled back if the store refuses."""
        op = self.ledger.record_buy(ticker, ticker_name, on, quantity, price_per_unit_local, exchange_rate)
        self._persist(op)
        return op

    def sell(
        self,
        ticker: str,
        on: date,
        quantity: float,
        price_per_unit_local: float,
        exchange_rate: float,
    ) -> SellOperation:
        """Record a sell in the ledger and persist it; rolled back if the store refuses."""
        op = self.ledger.record_sell(ticker, on, quantity, price_per_unit_local, exchange_rate)
        self._persist(op)
        return op

    def _persist(self, op: Operation) -> None:
        if not self.store.append(self.user_id, op):
            self.ledger.delete_operation(op.id)
            raise StoreError(f"Could not save {op.kind.value} of {op.ticker}; nothing was recorded")

    def delete(self, operation_id: str) -> Operation:
        """Remove an operation from the store and the ledger."""
        op = self.ledger.find_operation(operation_id)
        remaining = [o for o in self.ledger.operations if o.id != operation_id]
        # validate before touching the store so a refused delete changes nothing
        PortfolioLedger(remaining)
        if not self.store.remove(self.user_id, operation_id):
            raise StoreError(f"Could not delete operation {operation_id}")
        self.ledger.delete_operation(operation_id)
        return op

    # --- read path ---

    def refresh_market(self, symbols: Optional[List[str]] = None, today: Optional[date] = None) -> None:
        """Refresh quotes for holdings and market symbols, and today's reference rate.

        Best effort: tickers that fail keep no quote and the previous rate is
        kept if no new one is available.
        """
        tickers = market_watch_tickers(self.ledger.holdings().keys(), symbols if symbols is not None else MARKET_SYMBOLS)
        save_cache = getattr(self.store, "save_price_cache", _noop_save)
        self.quotes.update(refresh_quotes_cached(tickers, self.price_source, self.price_cache, save_cache))
        rate = current_reference_rate(self.rate_source, today)
        if rate is not None:
            self.reference_rate = rate
        else:
            logger.warning("Keeping previous reference rate %s", self.reference_rate)

    def recommend_rate(self, on: Optional[date], today: Optional[date] = None) -> Tuple[Regime, Optional[float]]:
        """Regime and suggested rate for an operation date (None: ask the user)."""
        regime = resolve_regime(on)
        pair = self._rate_lookup.lookup(on, today)
        if pair is None:
            return regime, None
        return regime, selected_rate(pair, regime)

    def rows(self, include_closed: bool = False) -> List[metrics.HoldingRow]:
        return metrics.holding_rows(self.ledger.holdings(), self.quotes, self.reference_rate, include_closed)

    def summary(self) -> PortfolioSummary:
        return metrics.compute_portfolio_summary(self.ledger.holdings(), self.quotes, self.reference_rate)

    def history(self) -> List[Operation]:
        return metrics.operation_history(self.ledger.operations)

    def calendar(self, year: int) -> Dict[date, metrics.CalendarDay]:
        return metrics.calendar_heatmap(self.ledger.operations, year)

    def market(self, symbols: Optional[List[str]] = None) -> List[metrics.MarketTickerRow]:
        return metrics.market_ticker(symbols or MARKET_SYMBOLS, self.quotes, LOCAL_MARKET_SUFFIX)


def load_portfolio(user_id: str, data_dir: Optional[str] = None) -> PortfolioSession:
    """Open a live session for ``user_id``. Raises DataIntegrityError on corrupted data."""
    return PortfolioSession.open(user_id, data_dir)


def list_users(data_dir: Optional[str] = None) -> List[str]:
    """Return the registered user ids."""
    return JsonTransactionStore(data_dir).load_users()


def main() -> None:
    """Console entry point."""
    from wealth_portfolio.cli import main as cli_main  # Deferred so the core API does not need click

    cli_main()
