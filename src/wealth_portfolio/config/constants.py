"""Global configuration constants for Wealth Portfolio.

These values are intentionally free of any UI concerns so they can be reused
by services, the CLI, and scripts.
"""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

# Base directory for data files (defaults to project root)
BASE_DIR = Path(os.environ.get("WEALTH_PORTFOLIO_DATA_DIR") or Path(__file__).resolve().parents[3])

# --- File paths ---
USERS_FILE_NAME = "users.json"
PRICE_CACHE_FILE_NAME = "price_cache.json"
USER_DATA_FILE_TEMPLATE = "portfolio_data_{user}.json"

# API endpoints
YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
BLUELYTICS_LATEST_URL = "https://api.bluelytics.com.ar/v2/latest"
BLUELYTICS_HISTORICAL_URL = "https://api.bluelytics.com.ar/v2/historical"

HTTP_TIMEOUT_SECONDS = 10
PRICE_FETCH_WORKERS = 8

# Price cache freshness (minutes)
CACHE_DURATION_MINUTES = 5.0

# --- Currencies and markets ---
LOCAL_CURRENCY = "ARS"
REFERENCE_CURRENCY = "USD"
LOCAL_MARKET_SUFFIX = ".BA"

# Symbols shown in the market strip (queried with and without the local suffix)
MARKET_SYMBOLS = ["GGAL", "YPF", "AAPL", "GOOGL", "MSFT", "MELI"]

# Operations dated on/after this day use the official rate; earlier ones the blue rate.
# 2025-04-14 is the day the currency controls were lifted and both rates converged.
REGIME_CUTOVER_DATE = date(2025, 4, 14)

# Quantities closer than this are considered equal (float noise from partial sells)
QUANTITY_EPSILON = 1e-9

LOG_LEVEL = os.environ.get("WEALTH_PORTFOLIO_LOG_LEVEL", "WARNING")

DEFAULT_USER = "Default"

# --- Demo mode (no network, no files) ---
DEMO_USER = "demo"

DEMO_TRANSACTIONS = [
    {
        "id": "1",
        "userId": DEMO_USER,
        "ticker": "GGAL.BA",
        "tickerName": "Grupo Galicia",
        "date": "2024-01-15",
        "quantity": 100,
        "priceARS": 150000,
        "exchangeRate": 850,
        "priceUSD": 176.47,
        "type": "buy",
    },
    {
        "id": "2",
        "userId": DEMO_USER,
        "ticker": "YPF.BA",
        "tickerName": "YPF S.A.",
        "date": "2024-02-20",
        "quantity": 50,
        "priceARS": 200000,
        "exchangeRate": 900,
        "priceUSD": 222.22,
        "type": "buy",
    },
    {
        "id": "3",
        "userId": DEMO_USER,
        "ticker": "AAPL.BA",
        "tickerName": "Apple",
        "date": "2024-03-10",
        "quantity": 25,
        "priceARS": 300000,
        "exchangeRate": 950,
        "priceUSD": 315.79,
        "type": "buy",
    },
]

# Simulated current prices (ARS per unit) and daily change %
DEMO_PRICES = {
    "GGAL.BA": {"price": 1800.0, "change": 2.5},
    "YPF.BA": {"price": 4500.0, "change": -1.2},
    "AAPL.BA": {"price": 15000.0, "change": 0.8},
    "GOOGL.BA": {"price": 12000.0, "change": 1.5},
    "MSFT.BA": {"price": 14000.0, "change": 0.3},
    "MELI.BA": {"price": 50000.0, "change": 3.2},
}

DEMO_RATES = {"blue": 1150.0, "oficial": 1100.0}
