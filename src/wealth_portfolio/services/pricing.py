"""Quote fetching and cache management (Yahoo Finance chart API)."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

import requests

from wealth_portfolio.config.constants import (
    CACHE_DURATION_MINUTES,
    DEMO_PRICES,
    HTTP_TIMEOUT_SECONDS,
    LOCAL_CURRENCY,
    LOCAL_MARKET_SUFFIX,
    PRICE_FETCH_WORKERS,
    YAHOO_CHART_URL,
)
from wealth_portfolio.errors import SourceUnavailableError
from wealth_portfolio.models.core import Quote, strip_market_suffix

logger = logging.getLogger(__name__)

_CACHE_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


class PriceSource(Protocol):
    def quote(self, ticker: str) -> Optional[Quote]: ...


def parse_chart_payload(data: Dict[str, Any]) -> Quote:
    """
    Extract a quote from a Yahoo v8 chart response.

    Price is ``regularMarketPrice`` (``previousClose`` when the market has not
    traded); change % is relative to the previous close.
    """
    try:
        meta = data["chart"]["result"][0]["meta"]
    except (KeyError, IndexError, TypeError) as exc:
        raise SourceUnavailableError("chart response has no result") from exc

    price = meta.get("regularMarketPrice") or meta.get("previousClose")
    if not price:
        raise SourceUnavailableError("chart response has no price")
    previous_close = meta.get("previousClose") or meta.get("chartPreviousClose")
    change = ((price - previous_close) / previous_close * 100.0) if previous_close else 0.0
    return Quote(
        price=float(price),
        change_percent=float(change),
        previous_close=float(previous_close) if previous_close else None,
        currency=meta.get("currency") or LOCAL_CURRENCY,
    )


class YahooPriceSource:
    """Price source over the public Yahoo Finance chart endpoint (no API key)."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT_SECONDS) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def fetch(self, ticker: str) -> Quote:
        """Fetch a quote, raising SourceUnavailableError on any failure."""
        try:
            response = self._session.get(
                YAHOO_CHART_URL.format(symbol=ticker),
                params={"interval": "1d", "range": "1d"},
                headers={"User-Agent": "Mozilla/5.0"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SourceUnavailableError(f"quote request for {ticker} failed: {exc}") from exc
        return parse_chart_payload(data)

    def quote(self, ticker: str) -> Optional[Quote]:
        """Current quote for ``ticker``, or None when unavailable."""
        try:
            return self.fetch(ticker)
        except SourceUnavailableError as exc:
            logger.warning("Error fetching price for %s: %s", ticker, exc)
            return None


class DemoPriceSource:
    """Serves the simulated demo price table."""

    def __init__(self, prices: Optional[Dict[str, Dict[str, float]]] = None) -> None:
        self._prices = prices if prices is not None else DEMO_PRICES

    def quote(self, ticker: str) -> Optional[Quote]:
        entry = self._prices.get(ticker)
        if entry is None:
            return None
        return Quote(price=float(entry["price"]), change_percent=float(entry.get("change", 0.0)))


def market_watch_tickers(holding_tickers: Iterable[str], symbols: Iterable[str]) -> List[str]:
    """Holdings plus every market symbol, both bare and with the local suffix."""
    tickers = list(dict.fromkeys(holding_tickers))
    for symbol in symbols:
        for candidate in (symbol, symbol + LOCAL_MARKET_SUFFIX):
            if candidate not in tickers:
                tickers.append(candidate)
    return tickers


def _safe_quote(source: PriceSource, ticker: str) -> Optional[Quote]:
    try:
        return source.quote(ticker)
    except Exception:  # noqa: BLE001 - one ticker must not sink the others
        logger.warning("Price source raised for %s", ticker, exc_info=True)
        return None


def refresh_quotes(
    tickers: Iterable[str],
    source: PriceSource,
    max_workers: int = PRICE_FETCH_WORKERS,
) -> Dict[str, Quote]:
    """
    Fetch quotes for all tickers concurrently, best effort.

    Each lookup is independent: failures are logged and simply missing from
    the result. Quotes for ``XXX.BA`` are also registered under ``XXX``
    unless a direct quote for ``XXX`` was obtained.
    """
    unique = list(dict.fromkeys(tickers))
    if not unique:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(unique)))) as pool:
        results = list(pool.map(lambda t: _safe_quote(source, t), unique))

    quotes: Dict[str, Quote] = {t: q for t, q in zip(unique, results) if q is not None}
    for ticker, quote in list(quotes.items()):
        short = strip_market_suffix(ticker)
        if short != ticker and short not in quotes:
            quotes[short] = quote
    logger.info("Refreshed %d/%d quotes", sum(1 for q in results if q is not None), len(unique))
    return quotes


def _quote_to_entry(quote: Quote) -> Dict[str, Any]:
    return {
        "price": quote.price,
        "pct_change_24h": quote.change_percent,
        "previous_close": quote.previous_close,
        "currency": quote.currency,
        "timestamp": datetime.now().strftime(_CACHE_TS_FORMAT),
    }


def _entry_to_quote(entry: Dict[str, Any]) -> Quote:
    return Quote(
        price=float(entry["price"]),
        change_percent=float(entry.get("pct_change_24h") or 0.0),
        previous_close=entry.get("previous_close"),
        currency=entry.get("currency") or LOCAL_CURRENCY,
    )


def cached_quote(
    ticker: str, cache: Dict[str, Any], max_age_minutes: float = CACHE_DURATION_MINUTES
) -> Optional[Quote]:
    """Quote from the cache if present and fresher than ``max_age_minutes``."""
    entry = cache.get(ticker)
    if not entry:
        return None
    try:
        cache_time = datetime.strptime(entry["timestamp"], _CACHE_TS_FORMAT)
        quote = _entry_to_quote(entry)
    except (KeyError, TypeError, ValueError):
        return None
    age_min = (datetime.now() - cache_time).total_seconds() / 60
    return quote if age_min < max_age_minutes else None


def get_current_quote(
    ticker: str,
    source: PriceSource,
    cache: Dict[str, Any],
    save_cache: Callable[[Dict[str, Any]], None],
    max_age_minutes: float = CACHE_DURATION_MINUTES,
) -> Optional[Quote]:
    """
    Get the quote from cache (if fresh) or the source. Updates cache and calls save_cache when fetching.
    """
    quote = cached_quote(ticker, cache, max_age_minutes)
    if quote is not None:
        return quote
    quote = source.quote(ticker)
    if quote is not None:
        cache[ticker] = _quote_to_entry(quote)
        save_cache(cache)
    return quote


def refresh_quotes_cached(
    tickers: Iterable[str],
    source: PriceSource,
    cache: Dict[str, Any],
    save_cache: Callable[[Dict[str, Any]], None],
    max_age_minutes: float = CACHE_DURATION_MINUTES,
) -> Dict[str, Quote]:
    """Like refresh_quotes, but only hits the source for tickers without a fresh cache entry."""
    quotes: Dict[str, Quote] = {}
    stale: List[str] = []
    for ticker in dict.fromkeys(tickers):
        quote = cached_quote(ticker, cache, max_age_minutes)
        if quote is None:
            stale.append(ticker)
        else:
            quotes[ticker] = quote

    fetched = refresh_quotes(stale, source)
    for ticker in stale:
        if ticker in fetched:
            cache[ticker] = _quote_to_entry(fetched[ticker])
    if any(t in fetched for t in stale):
        save_cache(cache)

    quotes.update(fetched)
    for ticker, quote in list(quotes.items()):
        short = strip_market_suffix(ticker)
        if short != ticker and short not in quotes:
            quotes[short] = quote
    return quotes
