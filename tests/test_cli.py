"""Tests for the wealth-portfolio command line."""

from click.testing import CliRunner

from wealth_portfolio.cli import main
from wealth_portfolio.services.storage import JsonTransactionStore


def _run(*args, input=None):
    return CliRunner().invoke(main, list(args), input=input)


def test_demo_summary() -> None:
    result = _run("--demo", "summary")
    assert result.exit_code == 0, result.output
    assert "Invested:       $ 650.000,00" in result.output
    assert "USD rate:       $ 1.100,00" in result.output


def test_demo_holdings() -> None:
    result = _run("--demo", "holdings")
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[0].startswith("GGAL")


def test_buy_sell_history_round_trip(tmp_path) -> None:
    """Operations recorded through the CLI land in the user's JSON file."""
    base = ["--data-dir", str(tmp_path), "--user", "ana", "--offline"]
    result = _run(*base, "buy", "GGAL.BA", "100", "3500", "--name", "Grupo Galicia", "--date", "2024-05-02", "--rate", "1100")
    assert result.exit_code == 0, result.output
    assert "Bought 100 GGAL for $ 350.000,00" in result.output

    result = _run(*base, "sell", "GGAL.BA", "30", "4500", "--date", "2024-09-01", "--rate", "1350")
    assert result.exit_code == 0, result.output
    assert "realized $ 30.000,00" in result.output

    ops = JsonTransactionStore(tmp_path).list("ana")
    assert [op.kind.value for op in ops] == ["buy", "sell"]

    result = _run(*base, "history")
    assert result.output.splitlines()[0].startswith("2024-09-01  sell")


def test_oversell_reports_error(tmp_path) -> None:
    base = ["--data-dir", str(tmp_path), "--offline"]
    _run(*base, "buy", "YPF.BA", "1", "30000", "--date", "2024-05-02", "--rate", "1100")
    result = _run(*base, "sell", "YPF.BA", "5", "30000", "--date", "2024-06-02", "--rate", "1100")
    assert result.exit_code == 1
    assert "Cannot sell 5 units of YPF.BA: only 1 held" in result.output


def test_invalid_amount_reports_error(tmp_path) -> None:
    result = _run("--data-dir", str(tmp_path), "buy", "YPF.BA", "0", "30000", "--rate", "1100")
    assert result.exit_code == 1
    assert "quantity must be a positive number" in result.output


def test_bad_date_is_usage_error() -> None:
    result = _run("--demo", "rate", "--date", "yesterday")
    assert result.exit_code == 2


def test_demo_rate_before_cutover() -> None:
    result = _run("--demo", "rate", "--date", "2024-05-02")
    assert result.exit_code == 0, result.output
    assert "2024-05-02: blue $ 1.150,00" in result.output


def test_delete_requires_confirmation(tmp_path) -> None:
    base = ["--data-dir", str(tmp_path), "--offline"]
    _run(*base, "buy", "YPF.BA", "1", "30000", "--date", "2024-05-02", "--rate", "1100")
    (op,) = JsonTransactionStore(tmp_path).list("Default")

    result = _run(*base, "delete", op.id, input="n\n")
    assert result.exit_code == 1
    assert len(JsonTransactionStore(tmp_path).list("Default")) == 1

    result = _run(*base, "delete", op.id, "--yes")
    assert result.exit_code == 0, result.output
    assert JsonTransactionStore(tmp_path).list("Default") == []


def test_demo_calendar() -> None:
    result = _run("--demo", "calendar", "--year", "2024")
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[0].startswith("2024-01-15  medium")


def test_offline_buy_needs_explicit_rate(tmp_path) -> None:
    result = _run("--data-dir", str(tmp_path), "--offline", "buy", "YPF.BA", "1", "30000", "--date", "2024-05-02")
    assert result.exit_code == 1
    assert "--rate is required in offline mode." in result.output
    assert JsonTransactionStore(tmp_path).list("Default") == []
