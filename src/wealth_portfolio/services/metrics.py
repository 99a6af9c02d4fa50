"""Portfolio and per-holding metrics computation (pure functions).

Produces the data behind the summary cards, holdings table, allocation and
performance charts, operation history, and the activity calendar.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from wealth_portfolio.errors import ValidationError
from wealth_portfolio.models.core import (
    Holding,
    Operation,
    PortfolioSummary,
    Quote,
    UnrealizedPnL,
    strip_market_suffix,
)

# Calendar intensity thresholds, as a fraction of the busiest day's total
INTENSITY_LOW = 0.33
INTENSITY_MEDIUM = 0.66


def lookup_quote(quotes: Mapping[str, Quote], ticker: str) -> Optional[Quote]:
    """Find the quote for a ticker, trying the exact symbol then the one without the market suffix."""
    quote = quotes.get(ticker)
    if quote is None:
        quote = quotes.get(strip_market_suffix(ticker))
    return quote


def unrealized_pnl(
    holding: Holding,
    current_price: Optional[float],
    reference_rate: Optional[float],
) -> UnrealizedPnL:
    """
    Profit on the units currently held, valued at ``current_price``.

    Without a price the average cost stands in for it, which yields zero
    profit and ``priced=False``. ``reference`` is None when no rate is known.
    """
    if reference_rate is not None and reference_rate <= 0:
        raise ValidationError(f"reference rate must be a positive number (got {reference_rate!r})")

    priced = current_price is not None and current_price > 0
    if priced:
        current_value = holding.quantity * float(current_price)
        profit_local = current_value - holding.total_cost_local
    else:
        # quantity * avg cost == total cost
        current_value = holding.total_cost_local
        profit_local = 0.0
    profit_reference = profit_local / reference_rate if reference_rate else None
    percent = profit_local / holding.total_cost_local * 100.0 if holding.total_cost_local > 0 else 0.0
    return UnrealizedPnL(
        local=profit_local,
        reference=profit_reference,
        percent=percent,
        current_value_local=current_value,
        priced=priced,
    )


@dataclass(frozen=True)
class HoldingRow:
    """One line of the holdings table."""

    ticker: str
    display_ticker: str
    ticker_name: str
    quantity: float
    invested_local: float
    current_value_local: float
    profit_local: float
    profit_reference: Optional[float]
    profit_percent: float
    priced: bool


def holding_rows(
    holdings: Mapping[str, Holding],
    quotes: Mapping[str, Quote],
    reference_rate: Optional[float],
    include_closed: bool = False,
) -> List[HoldingRow]:
    """Build table rows for every holding (closed positions only on request)."""
    rows: List[HoldingRow] = []
    for ticker, holding in holdings.items():
        if not holding.is_open and not include_closed:
            continue
        quote = lookup_quote(quotes, ticker)
        pnl = unrealized_pnl(holding, quote.price if quote else None, reference_rate)
        rows.append(
            HoldingRow(
                ticker=ticker,
                display_ticker=strip_market_suffix(ticker),
                ticker_name=holding.ticker_name,
                quantity=holding.quantity,
                invested_local=holding.total_cost_local,
                current_value_local=pnl.current_value_local,
                profit_local=pnl.local,
                profit_reference=pnl.reference,
                profit_percent=pnl.percent,
                priced=pnl.priced,
            )
        )
    return rows


def compute_portfolio_summary(
    holdings: Mapping[str, Holding],
    quotes: Mapping[str, Quote],
    reference_rate: Optional[float],
) -> PortfolioSummary:
    """
    Aggregate value, invested amount, and profit across all holdings.

    Holdings without a quote are valued at cost and listed in
    ``unpriced_tickers``. Realized profit includes closed positions.
    """
    summary = PortfolioSummary(reference_rate=reference_rate)
    for row in holding_rows(holdings, quotes, reference_rate):
        summary.total_value_local += row.current_value_local
        summary.total_invested_local += row.invested_local
        summary.holdings_count += 1
        if not row.priced:
            summary.unpriced_tickers.append(row.ticker)
    for holding in holdings.values():
        summary.realized_profit_local += holding.realized_profit_local
        summary.realized_profit_reference += holding.realized_profit_reference
    return summary


def allocation_breakdown(rows: Sequence[HoldingRow]) -> List[Tuple[str, float, float]]:
    """Return ``(label, current value, share %)`` per holding for the allocation chart."""
    total = sum(r.current_value_local for r in rows)
    return [
        (r.display_ticker, r.current_value_local, (r.current_value_local / total * 100.0) if total > 0 else 0.0)
        for r in rows
    ]


def performance_breakdown(rows: Sequence[HoldingRow]) -> List[Tuple[str, float]]:
    """Return ``(label, profit %)`` per holding for the performance chart."""
    return [(r.display_ticker, r.profit_percent) for r in rows]


def operation_history(operations: Iterable[Operation]) -> List[Operation]:
    """Operations newest first; same-day operations keep their recorded order."""
    return sorted(operations, key=lambda op: op.date, reverse=True)


@dataclass(frozen=True)
class CalendarDay:
    day: date
    total_local: float
    operations: Tuple[Operation, ...]
    intensity: str


def _intensity(ratio: float) -> str:
    if ratio < INTENSITY_LOW:
        return "low"
    if ratio < INTENSITY_MEDIUM:
        return "medium"
    return "high"


def calendar_heatmap(operations: Iterable[Operation], year: int) -> Dict[date, CalendarDay]:
    """
    Group a year's operations by day for the activity calendar.

    Intensity compares each day's total local amount with the busiest day of
    the year: ``low`` below 33%, ``medium`` below 66%, otherwise ``high``.
    """
    by_day: Dict[date, List[Operation]] = defaultdict(list)
    for op in operations:
        if op.date.year == year:
            by_day[op.date].append(op)
    if not by_day:
        return {}

    totals = {day: sum(op.price_local for op in ops) for day, ops in by_day.items()}
    busiest = max(totals.values())
    return {
        day: CalendarDay(
            day=day,
            total_local=totals[day],
            operations=tuple(by_day[day]),
            intensity=_intensity(totals[day] / busiest if busiest > 0 else 0.0),
        )
        for day in sorted(by_day)
    }


@dataclass(frozen=True)
class MarketTickerRow:
    symbol: str
    price: Optional[float]
    change_percent: Optional[float]


def market_ticker(symbols: Iterable[str], quotes: Mapping[str, Quote], suffix: str) -> List[MarketTickerRow]:
    """Rows for the market strip; local-market quotes are preferred over foreign ones."""
    rows: List[MarketTickerRow] = []
    for symbol in symbols:
        quote = quotes.get(symbol + suffix) or quotes.get(symbol)
        rows.append(
            MarketTickerRow(
                symbol=symbol,
                price=quote.price if quote else None,
                change_percent=quote.change_percent if quote else None,
            )
        )
    return rows
