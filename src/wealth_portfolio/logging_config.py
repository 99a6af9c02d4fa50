"""Centralized logging configuration."""

from __future__ import annotations

import logging
from typing import Optional

from wealth_portfolio.config.constants import LOG_LEVEL


def setup_logging(level: Optional[str] = None) -> None:
    """Configure logging for the application.

    Sets the root logger level (default from WEALTH_PORTFOLIO_LOG_LEVEL) and
    suppresses noisy third-party loggers to WARNING.
    """
    level_name = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, level_name, logging.WARNING),
        force=True,
    )

    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)
