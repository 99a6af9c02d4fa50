"""Exchange-rate regime resolution and rate lookup (Bluelytics API)."""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Dict, Hashable, Optional, Protocol, Tuple

import requests

from wealth_portfolio.config.constants import (
    BLUELYTICS_HISTORICAL_URL,
    BLUELYTICS_LATEST_URL,
    DEMO_RATES,
    HTTP_TIMEOUT_SECONDS,
    REGIME_CUTOVER_DATE,
)
from wealth_portfolio.errors import SourceUnavailableError
from wealth_portfolio.models.core import RatePair, Regime

logger = logging.getLogger(__name__)


class RateSource(Protocol):
    def current_rates(self) -> RatePair: ...

    def historical_rates(self, day: date) -> RatePair: ...


def resolve_regime(day: Optional[date], cutover: date = REGIME_CUTOVER_DATE) -> Regime:
    """
    Return the regime recommended for an operation dated ``day``.

    Dates before the cutover use the parallel (blue) rate; the cutover day and
    later use the official rate. No date means parallel.
    """
    if day is None:
        return Regime.PARALLEL
    return Regime.PARALLEL if day < cutover else Regime.OFFICIAL


def selected_rate(pair: RatePair, regime: Regime) -> Optional[float]:
    """Pick the rate for ``regime``; None means the user must enter it manually."""
    return pair.get(regime)


def rate_for_date(day: Optional[date], source: RateSource, today: Optional[date] = None) -> RatePair:
    """
    Fetch both regimes' rates for ``day``: live for today, historical otherwise.

    Source failures are logged and returned as an empty pair, never raised.
    """
    today = today or date.today()
    try:
        if day is None or day >= today:
            return source.current_rates()
        return source.historical_rates(day)
    except SourceUnavailableError as exc:
        logger.warning("No exchange rate available for %s: %s", day or today, exc)
        return RatePair()
    except Exception:  # noqa: BLE001 - a broken source must not stop manual rate entry
        logger.warning("Rate source raised for %s", day or today, exc_info=True)
        return RatePair()


def recommend_rate(
    day: Optional[date], source: RateSource, today: Optional[date] = None
) -> Tuple[Regime, Optional[float]]:
    """Regime for ``day`` and its rate, or None when the user must type it in."""
    regime = resolve_regime(day)
    return regime, selected_rate(rate_for_date(day, source, today), regime)


def current_reference_rate(source: RateSource, today: Optional[date] = None) -> Optional[float]:
    """Today's rate for today's regime, falling back to the other regime's value."""
    today = today or date.today()
    pair = rate_for_date(today, source, today)
    preferred = resolve_regime(today)
    rate = pair.get(preferred)
    if rate is None:
        other = Regime.OFFICIAL if preferred is Regime.PARALLEL else Regime.PARALLEL
        rate = pair.get(other)
    return rate


def _value_sell(payload: Dict[str, Any], key: str) -> Optional[float]:
    entry = payload.get(key)
    if not isinstance(entry, dict):
        return None
    value = entry.get("value_sell")
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


class BluelyticsRateSource:
    """Rate source backed by api.bluelytics.com.ar (blue and oficial sell rates)."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT_SECONDS) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> RatePair:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SourceUnavailableError(f"Bluelytics request failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise SourceUnavailableError("Bluelytics returned an unexpected payload")
        pair = RatePair(parallel=_value_sell(payload, "blue"), official=_value_sell(payload, "oficial"))
        if pair.is_empty:
            raise SourceUnavailableError("Bluelytics returned no rates")
        return pair

    def current_rates(self) -> RatePair:
        return self._get(BLUELYTICS_LATEST_URL)

    def historical_rates(self, day: date) -> RatePair:
        return self._get(BLUELYTICS_HISTORICAL_URL, params={"day": day.isoformat()})


class DemoRateSource:
    """Fixed rates for demo mode; history is the same as today."""

    def __init__(self, rates: Optional[Dict[str, float]] = None) -> None:
        rates = rates or DEMO_RATES
        self._pair = RatePair(parallel=rates.get("blue"), official=rates.get("oficial"))

    def current_rates(self) -> RatePair:
        return self._pair

    def historical_rates(self, day: date) -> RatePair:
        return self._pair


class LatestRequestGate:
    """
    Last-request-wins bookkeeping for lookups keyed by e.g. date.

    ``begin(key)`` hands out a ticket; ``is_current(key, ticket)`` tells
    whether a result arriving for that ticket should still be used.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: Dict[Hashable, int] = {}
        self._counter = 0

    def begin(self, key: Hashable) -> int:
        with self._lock:
            self._counter += 1
            self._latest[key] = self._counter
            return self._counter

    def is_current(self, key: Hashable, ticket: int) -> bool:
        with self._lock:
            return self._latest.get(key) == ticket


class GatedRateLookup:
    """Rate lookups per date where a superseded request's result is discarded."""

    def __init__(self, source: RateSource, gate: Optional[LatestRequestGate] = None) -> None:
        self._source = source
        self._gate = gate or LatestRequestGate()

    @property
    def gate(self) -> LatestRequestGate:
        return self._gate

    def lookup(self, day: Optional[date], today: Optional[date] = None) -> Optional[RatePair]:
        """Return the pair for ``day``, or None if a newer lookup for ``day`` started meanwhile."""
        ticket = self._gate.begin(day)
        pair = rate_for_date(day, self._source, today)
        if not self._gate.is_current(day, ticket):
            logger.debug("Discarding superseded rate lookup for %s", day)
            return None
        return pair
