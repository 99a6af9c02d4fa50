"""Operation ledger and weighted-average holdings computation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from wealth_portfolio.config.constants import QUANTITY_EPSILON
from wealth_portfolio.errors import (
    DataIntegrityError,
    InsufficientHoldingsError,
    OperationNotFoundError,
    ValidationError,
)
from wealth_portfolio.models.core import (
    BuyOperation,
    Holding,
    Operation,
    SellOperation,
    UnrealizedPnL,
    new_operation_id,
    parse_date,
)
from wealth_portfolio.services.metrics import unrealized_pnl as _unrealized_pnl

logger = logging.getLogger(__name__)


@dataclass
class _Position:
    ticker: str
    ticker_name: str
    quantity: float = 0.0
    total_cost_local: float = 0.0
    total_cost_reference: float = 0.0
    buys: List[BuyOperation] = field(default_factory=list)
    sells: List[SellOperation] = field(default_factory=list)

    def freeze(self) -> Holding:
        return Holding(
            ticker=self.ticker,
            ticker_name=self.ticker_name,
            quantity=self.quantity,
            total_cost_local=self.total_cost_local,
            total_cost_reference=self.total_cost_reference,
            operations=tuple(self.buys),
            sales=tuple(self.sells),
        )


def _chronological(operations: Iterable[Operation]) -> List[Operation]:
    # sorted() is stable, so same-day operations keep insertion order
    return sorted(operations, key=lambda op: op.date)


def compute_holdings(operations: Iterable[Operation]) -> Dict[str, Holding]:
    """
    Rebuild every holding from scratch using the weighted-average cost method.

    All buys are applied first (chronologically), then all sells
    (chronologically). Each sell removes ``quantity * total_cost / quantity``
    from the cost basis in both currencies, so the average cost per unit is
    unchanged by sells.

    Raises:
        DataIntegrityError: a sell references a ticker with no buys, or sells
            more units than the buys provide (including any sell after the
            position is already closed).
    """
    ops = list(operations)
    positions: Dict[str, _Position] = {}

    for op in _chronological(o for o in ops if isinstance(o, BuyOperation)):
        pos = positions.get(op.ticker)
        if pos is None:
            pos = positions[op.ticker] = _Position(op.ticker, op.ticker_name)
        pos.quantity += op.quantity
        pos.total_cost_local += op.price_local
        pos.total_cost_reference += op.price_reference
        pos.buys.append(op)

    for op in _chronological(o for o in ops if isinstance(o, SellOperation)):
        pos = positions.get(op.ticker)
        if pos is None:
            raise DataIntegrityError(
                f"Sell {op.id} references {op.ticker}, which has no recorded buys"
            )
        if pos.quantity <= 0 or op.quantity > pos.quantity + QUANTITY_EPSILON:
            raise DataIntegrityError(
                f"Sell {op.id} of {op.quantity:g} {op.ticker} exceeds the "
                f"{pos.quantity:g} units bought"
            )
        unit_cost_local = pos.total_cost_local / pos.quantity
        unit_cost_reference = pos.total_cost_reference / pos.quantity
        pos.total_cost_local -= unit_cost_local * op.quantity
        pos.total_cost_reference -= unit_cost_reference * op.quantity
        pos.quantity -= op.quantity
        if abs(pos.quantity) < QUANTITY_EPSILON:
            pos.quantity = 0.0
            pos.total_cost_local = 0.0
            pos.total_cost_reference = 0.0
        pos.sells.append(op)

    logger.debug("Recomputed %d holdings from %d operations", len(positions), len(ops))
    return {ticker: pos.freeze() for ticker, pos in positions.items()}


def _require_positive(**values: float) -> None:
    for name, value in values.items():
        try:
            ok = float(value) > 0
        except (TypeError, ValueError):
            ok = False
        if not ok:
            raise ValidationError(f"{name.replace('_', ' ')} must be a positive number (got {value!r})")


class PortfolioLedger:
    """Owns the operation list of one user and the holdings derived from it.

    Every mutation builds the candidate operation list, recomputes holdings
    from it, and only then commits both. A failed mutation leaves the ledger
    exactly as it was.
    """

    def __init__(self, operations: Iterable[Operation] = (), user_id: Optional[str] = None) -> None:
        self.user_id = user_id
        self._operations: List[Operation] = list(operations)
        self._holdings: Dict[str, Holding] = compute_holdings(self._operations)

    @property
    def operations(self) -> Tuple[Operation, ...]:
        return tuple(self._operations)

    def holdings(self) -> Mapping[str, Holding]:
        return MappingProxyType(self._holdings)

    def holding(self, ticker: str) -> Optional[Holding]:
        return self._holdings.get(ticker)

    def find_operation(self, operation_id: str) -> Operation:
        for op in self._operations:
            if op.id == operation_id:
                return op
        raise OperationNotFoundError(operation_id)

    def _commit(self, candidate: List[Operation]) -> None:
        holdings = compute_holdings(candidate)
        self._operations = candidate
        self._holdings = holdings

    def record_buy(
        self,
        ticker: str,
        ticker_name: str,
        date: date,
        quantity: float,
        price_per_unit_local: float,
        exchange_rate: float,
        operation_id: Optional[str] = None,
    ) -> BuyOperation:
        """Append a buy of ``quantity`` units at ``price_per_unit_local`` each."""
        if not ticker or not ticker.strip():
            raise ValidationError("Ticker is required")
        _require_positive(
            quantity=quantity,
            price_per_unit=price_per_unit_local,
            exchange_rate=exchange_rate,
        )
        price_local = float(quantity) * float(price_per_unit_local)
        op = BuyOperation(
            id=operation_id or new_operation_id(),
            ticker=ticker.strip(),
            ticker_name=(ticker_name or ticker).strip(),
            date=parse_date(date),
            quantity=float(quantity),
            price_local=price_local,
            exchange_rate=float(exchange_rate),
            price_reference=price_local / float(exchange_rate),
        )
        self._commit(self._operations + [op])
        logger.info("Recorded buy %s: %g %s for %.2f", op.id, op.quantity, op.ticker, op.price_local)
        return op

    def record_sell(
        self,
        ticker: str,
        date: date,
        quantity: float,
        price_per_unit_local: float,
        exchange_rate: float,
        operation_id: Optional[str] = None,
    ) -> SellOperation:
        """
        Append a sell, fixing its realized profit against the current average cost.

        Raises:
            ValidationError: non-positive quantity, price, or rate.
            InsufficientHoldingsError: more units than currently held.
        """
        _require_positive(
            quantity=quantity,
            price_per_unit=price_per_unit_local,
            exchange_rate=exchange_rate,
        )
        quantity = float(quantity)
        current = self._holdings.get(ticker)
        available = current.quantity if current else 0.0
        if current is None or available <= 0 or quantity > available + QUANTITY_EPSILON:
            raise InsufficientHoldingsError(ticker, quantity, available)

        price_local = quantity * float(price_per_unit_local)
        price_reference = price_local / float(exchange_rate)
        cost_removed_local = current.total_cost_local / current.quantity * quantity
        cost_removed_reference = current.total_cost_reference / current.quantity * quantity
        op = SellOperation(
            id=operation_id or new_operation_id(),
            ticker=ticker,
            ticker_name=current.ticker_name,
            date=parse_date(date),
            quantity=quantity,
            price_local=price_local,
            exchange_rate=float(exchange_rate),
            price_reference=price_reference,
            realized_profit_local=price_local - cost_removed_local,
            realized_profit_reference=price_reference - cost_removed_reference,
        )
        self._commit(self._operations + [op])
        logger.info(
            "Recorded sell %s: %g %s, realized %.2f", op.id, op.quantity, op.ticker, op.realized_profit_local
        )
        return op

    def delete_operation(self, operation_id: str) -> None:
        """
        Remove an operation by id and recompute.

        Raises:
            OperationNotFoundError: no operation has this id.
            DataIntegrityError: removing it would leave a sell uncovered by buys.
        """
        target = self.find_operation(operation_id)
        self._commit([op for op in self._operations if op is not target])
        logger.info("Deleted operation %s (%s %s)", operation_id, target.kind.value, target.ticker)

    def unrealized_pnl(
        self,
        ticker: str,
        current_price_per_unit_local: Optional[float],
        reference_rate: Optional[float],
    ) -> UnrealizedPnL:
        """Unrealized profit of a holding; a missing price falls back to the average cost."""
        holding = self._holdings.get(ticker)
        if holding is None:
            raise KeyError(ticker)
        return _unrealized_pnl(holding, current_price_per_unit_local, reference_rate)
