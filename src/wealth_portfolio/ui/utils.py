"""Shared display utilities: currency/percent formatting and profit classes."""

from __future__ import annotations

from typing import Optional

from wealth_portfolio.config.constants import LOCAL_CURRENCY, REFERENCE_CURRENCY
from wealth_portfolio.models.core import strip_market_suffix

CURRENCY_SYMBOLS = {LOCAL_CURRENCY: "$", REFERENCE_CURRENCY: "US$"}

PROFIT_CLASS = "profit"
LOSS_CLASS = "loss"
NEUTRAL_CLASS = "neutral"


def profit_class(value: Optional[float]) -> str:
    """
    Return the style class for a numeric value (P&L, ROI, amount, etc.).

    Returns:
        "profit" if value > 0, "loss" if value < 0, "neutral" if value is
        None, non-numeric, or zero within float noise.
    """
    if value is None:
        return NEUTRAL_CLASS
    try:
        v = float(value)
    except (TypeError, ValueError):
        return NEUTRAL_CLASS
    if abs(v) < 1e-9:
        return NEUTRAL_CLASS
    return PROFIT_CLASS if v > 0 else LOSS_CLASS


def format_currency(value: Optional[float], currency: str = LOCAL_CURRENCY) -> str:
    """Format an amount es-AR style: ``$ 1.234,56`` (ARS) or ``US$ 1.234,56`` (USD)."""
    if value is None:
        return "--"
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    grouped = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 and round(abs(value), 2) > 0 else ""
    return f"{sign}{symbol} {grouped}"


def format_percent(value: Optional[float], signed: bool = True) -> str:
    """Format a percentage with two decimals, ``+`` prefixed for gains."""
    if value is None:
        return "--"
    prefix = "+" if signed and value >= 0 else ""
    return f"{prefix}{value:.2f}%"


def display_ticker(ticker: str) -> str:
    """Ticker as shown to users: without the local market suffix."""
    return strip_market_suffix(ticker)
