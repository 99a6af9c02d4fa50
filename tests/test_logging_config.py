"""Tests for logging setup."""

import logging

from wealth_portfolio.logging_config import setup_logging


def test_setup_logging_sets_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_setup_logging_unknown_level_falls_back_to_warning() -> None:
    setup_logging("chatty")
    assert logging.getLogger().level == logging.WARNING
