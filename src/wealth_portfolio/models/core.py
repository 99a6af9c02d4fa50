"""Typed structures for operations, holdings, rates, and quotes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from wealth_portfolio.config.constants import LOCAL_CURRENCY, LOCAL_MARKET_SUFFIX
from wealth_portfolio.errors import DataIntegrityError, ValidationError


class OperationKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Regime(str, Enum):
    """Exchange-rate quoting convention in effect for a date."""

    PARALLEL = "blue"
    OFFICIAL = "oficial"


def new_operation_id() -> str:
    return str(uuid.uuid4())


def parse_date(value: Union[str, date, datetime]) -> date:
    """Coerce an ISO ``YYYY-MM-DD`` string (or datetime) to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


def strip_market_suffix(ticker: str) -> str:
    """Return the ticker without the local market suffix (``GGAL.BA`` -> ``GGAL``)."""
    if ticker.endswith(LOCAL_MARKET_SUFFIX):
        return ticker[: -len(LOCAL_MARKET_SUFFIX)]
    return ticker


@dataclass(frozen=True)
class Operation:
    """Shared shape of a recorded buy or sell. Immutable once recorded."""

    id: str
    ticker: str
    ticker_name: str
    date: date
    quantity: float
    price_local: float
    exchange_rate: float
    price_reference: float

    kind: ClassVar[OperationKind]

    @property
    def price_per_unit_local(self) -> float:
        return self.price_local / self.quantity

    def to_dict(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Serialize using the transaction store's field names."""
        record: Dict[str, Any] = {
            "id": self.id,
            "userId": user_id,
            "ticker": self.ticker,
            "tickerName": self.ticker_name,
            "date": self.date.isoformat(),
            "quantity": self.quantity,
            "priceARS": self.price_local,
            "exchangeRate": self.exchange_rate,
            "priceUSD": self.price_reference,
            "type": self.kind.value,
        }
        return record


@dataclass(frozen=True)
class BuyOperation(Operation):
    kind: ClassVar[OperationKind] = OperationKind.BUY


@dataclass(frozen=True)
class SellOperation(Operation):
    """A sell, with profit fixed against the average cost at the moment of sale."""

    realized_profit_local: float
    realized_profit_reference: float

    kind: ClassVar[OperationKind] = OperationKind.SELL

    def to_dict(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        record = super().to_dict(user_id)
        record["profitARS"] = self.realized_profit_local
        record["profitUSD"] = self.realized_profit_reference
        return record


def operation_from_dict(record: Dict[str, Any]) -> Operation:
    """Build a Buy/Sell operation from a stored record.

    Records without ``type`` are buys. ``priceUSD`` is recomputed when missing;
    sells must carry their frozen ``profitARS``/``profitUSD``. Amounts must be positive.
    Raises DataIntegrityError for records that cannot be interpreted.
    """
    try:
        kind = OperationKind(str(record.get("type") or OperationKind.BUY.value).lower())
        price_local = float(record["priceARS"])
        exchange_rate = float(record["exchangeRate"])
        price_reference = record.get("priceUSD")
        common = dict(
            id=str(record.get("id") or new_operation_id()),
            ticker=str(record["ticker"]),
            ticker_name=str(record.get("tickerName") or record["ticker"]),
            date=parse_date(record["date"]),
            quantity=float(record["quantity"]),
            price_local=price_local,
            exchange_rate=exchange_rate,
            price_reference=(
                float(price_reference) if price_reference is not None else price_local / exchange_rate
            ),
        )
        if kind is OperationKind.SELL:
            realized = dict(
                realized_profit_local=float(record["profitARS"]),
                realized_profit_reference=float(record["profitUSD"]),
            )
    except (KeyError, TypeError, ValueError, ZeroDivisionError) as exc:
        raise DataIntegrityError(f"Malformed operation record {record.get('id')!r}: {exc}") from exc

    for name in ("quantity", "price_local", "exchange_rate"):
        if not common[name] > 0:
            raise DataIntegrityError(
                f"Operation record {common['id']!r} has non-positive {name.replace('_', ' ')}: {common[name]!r}"
            )

    if kind is OperationKind.SELL:
        return SellOperation(**common, **realized)
    return BuyOperation(**common)


@dataclass(frozen=True)
class Holding:
    """Per-ticker position derived from the operation list."""

    ticker: str
    ticker_name: str
    quantity: float
    total_cost_local: float
    total_cost_reference: float
    operations: Tuple[BuyOperation, ...] = ()
    sales: Tuple[SellOperation, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.quantity > 0

    @property
    def avg_cost_per_unit_local(self) -> Optional[float]:
        if self.quantity <= 0:
            return None
        return self.total_cost_local / self.quantity

    @property
    def avg_cost_per_unit_reference(self) -> Optional[float]:
        if self.quantity <= 0:
            return None
        return self.total_cost_reference / self.quantity

    @property
    def avg_exchange_rate(self) -> Optional[float]:
        if self.total_cost_reference <= 0:
            return None
        return self.total_cost_local / self.total_cost_reference

    @property
    def realized_profit_local(self) -> float:
        return sum(s.realized_profit_local for s in self.sales)

    @property
    def realized_profit_reference(self) -> float:
        return sum(s.realized_profit_reference for s in self.sales)


@dataclass(frozen=True)
class RatePair:
    """Local-per-reference rates for both regimes; None where unavailable."""

    parallel: Optional[float] = None
    official: Optional[float] = None

    def get(self, regime: Regime) -> Optional[float]:
        return self.parallel if regime is Regime.PARALLEL else self.official

    @property
    def is_empty(self) -> bool:
        return self.parallel is None and self.official is None


@dataclass(frozen=True)
class Quote:
    price: float
    change_percent: float = 0.0
    previous_close: Optional[float] = None
    currency: str = LOCAL_CURRENCY


@dataclass(frozen=True)
class UnrealizedPnL:
    local: float
    reference: Optional[float]
    percent: float
    current_value_local: float
    priced: bool = True


@dataclass
class PortfolioSummary:
    """Aggregate totals for the whole portfolio."""

    total_value_local: float = 0.0
    total_invested_local: float = 0.0
    realized_profit_local: float = 0.0
    realized_profit_reference: float = 0.0
    reference_rate: Optional[float] = None
    holdings_count: int = 0
    unpriced_tickers: list = field(default_factory=list)

    @property
    def profit_local(self) -> float:
        return self.total_value_local - self.total_invested_local

    @property
    def profit_percent(self) -> float:
        if self.total_invested_local <= 0:
            return 0.0
        return self.profit_local / self.total_invested_local * 100.0

    @property
    def total_value_reference(self) -> Optional[float]:
        if not self.reference_rate:
            return None
        return self.total_value_local / self.reference_rate

    @property
    def profit_reference(self) -> Optional[float]:
        if not self.reference_rate:
            return None
        return self.profit_local / self.reference_rate
