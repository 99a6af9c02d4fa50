"""Tests for exchange-rate regime resolution and rate lookup."""

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from wealth_portfolio.config.constants import REGIME_CUTOVER_DATE
from wealth_portfolio.errors import SourceUnavailableError
from wealth_portfolio.models.core import RatePair, Regime
from wealth_portfolio.services.exchange_rates import (
    BluelyticsRateSource,
    DemoRateSource,
    GatedRateLookup,
    LatestRequestGate,
    current_reference_rate,
    rate_for_date,
    recommend_rate,
    resolve_regime,
    selected_rate,
)

TODAY = date(2026, 10, 19)


def test_resolve_regime_before_cutover_is_parallel() -> None:
    assert resolve_regime(REGIME_CUTOVER_DATE - timedelta(days=1)) is Regime.PARALLEL
    assert resolve_regime(date(2020, 1, 1)) is Regime.PARALLEL


def test_resolve_regime_on_and_after_cutover_is_official() -> None:
    assert resolve_regime(REGIME_CUTOVER_DATE) is Regime.OFFICIAL
    assert resolve_regime(REGIME_CUTOVER_DATE + timedelta(days=400)) is Regime.OFFICIAL


def test_resolve_regime_without_date_defaults_to_parallel() -> None:
    assert resolve_regime(None) is Regime.PARALLEL


def test_resolve_regime_custom_cutover() -> None:
    assert resolve_regime(date(2024, 1, 1), cutover=date(2023, 1, 1)) is Regime.OFFICIAL


def test_selected_rate() -> None:
    pair = RatePair(parallel=1200.0, official=None)
    assert selected_rate(pair, Regime.PARALLEL) == 1200.0
    assert selected_rate(pair, Regime.OFFICIAL) is None


def test_rate_for_today_uses_live_rates(rate_source) -> None:
    pair = rate_for_date(TODAY, rate_source, today=TODAY)
    assert pair == RatePair(parallel=1230.0, official=1200.0)
    assert rate_source.calls == [("current", None)]


def test_rate_for_past_date_uses_history(rate_source) -> None:
    pair = rate_for_date(date(2024, 5, 2), rate_source, today=TODAY)
    assert pair.parallel == 1050.0
    assert rate_source.calls == [("historical", date(2024, 5, 2))]


def test_rate_for_date_source_failure_resolves_to_empty(rate_source) -> None:
    """Missing history does not raise: both fields are None."""
    pair = rate_for_date(date(2023, 1, 1), rate_source, today=TODAY)
    assert pair.is_empty


def test_rate_for_date_unexpected_source_error_resolves_to_empty(rate_source) -> None:
    rate_source.historical_rates = MagicMock(side_effect=RuntimeError("bug"))
    assert rate_for_date(date(2024, 5, 2), rate_source, today=TODAY).is_empty


def test_recommend_rate(rate_source) -> None:
    assert recommend_rate(date(2024, 5, 2), rate_source, today=TODAY) == (Regime.PARALLEL, 1050.0)
    assert recommend_rate(TODAY, rate_source, today=TODAY) == (Regime.OFFICIAL, 1200.0)
    assert recommend_rate(date(2023, 1, 1), rate_source, today=TODAY) == (Regime.PARALLEL, None)


def test_current_reference_rate_falls_back_to_other_regime(rate_source) -> None:
    rate_source.current = RatePair(parallel=1230.0, official=None)
    assert current_reference_rate(rate_source, today=TODAY) == 1230.0
    rate_source.current = None
    assert current_reference_rate(rate_source, today=TODAY) is None


def test_demo_rate_source() -> None:
    source = DemoRateSource({"blue": 1150.0, "oficial": 1100.0})
    assert source.historical_rates(date(2024, 1, 1)) == RatePair(1150.0, 1100.0)


def _response(payload, status=200):
    response = MagicMock()
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return response


def test_bluelytics_latest_parses_sell_values() -> None:
    session = MagicMock()
    session.get.return_value = _response(
        {"oficial": {"value_avg": 1190, "value_sell": 1210.0}, "blue": {"value_sell": 1240}}
    )
    pair = BluelyticsRateSource(session=session).current_rates()
    assert pair == RatePair(parallel=1240.0, official=1210.0)


def test_bluelytics_historical_passes_day() -> None:
    session = MagicMock()
    session.get.return_value = _response({"blue": {"value_sell": 1025}, "oficial": {"value_sell": 870}})
    BluelyticsRateSource(session=session).historical_rates(date(2024, 5, 2))
    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"day": "2024-05-02"}


@pytest.mark.parametrize(
    "side_effect, payload, status",
    [
        (requests.ConnectionError("down"), None, 200),
        (None, {"blue": {"value_sell": 1}}, 404),
        (None, {"unexpected": True}, 200),
        (None, ["not", "a", "dict"], 200),
    ],
)
def test_bluelytics_failures_raise_source_unavailable(side_effect, payload, status) -> None:
    session = MagicMock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = _response(payload, status)
    with pytest.raises(SourceUnavailableError):
        BluelyticsRateSource(session=session).current_rates()


def test_gate_last_request_wins() -> None:
    gate = LatestRequestGate()
    first = gate.begin("2024-05-02")
    second = gate.begin("2024-05-02")
    other = gate.begin("2024-05-03")
    assert not gate.is_current("2024-05-02", first)
    assert gate.is_current("2024-05-02", second)
    assert gate.is_current("2024-05-03", other)


def test_gated_lookup_discards_superseded_result(rate_source) -> None:
    """A lookup overtaken by a newer one for the same date returns None."""
    lookup = GatedRateLookup(rate_source)
    day = date(2024, 5, 2)

    original = rate_source.historical_rates

    def slow_historical(d):
        # a newer request for the same day starts while this one is in flight
        lookup.gate.begin(d)
        return original(d)

    rate_source.historical_rates = slow_historical
    assert lookup.lookup(day, today=TODAY) is None

    rate_source.historical_rates = original
    assert lookup.lookup(day, today=TODAY) == RatePair(parallel=1050.0, official=880.0)
