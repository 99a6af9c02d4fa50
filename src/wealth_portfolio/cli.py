"""wealth-portfolio command line: record operations and print portfolio views."""

from __future__ import annotations

from datetime import date
from typing import Optional

import click

from wealth_portfolio.app import PortfolioSession
from wealth_portfolio.config.constants import DEFAULT_USER, LOCAL_CURRENCY, REFERENCE_CURRENCY
from wealth_portfolio.errors import PortfolioError
from wealth_portfolio.logging_config import setup_logging
from wealth_portfolio.models.core import SellOperation, parse_date
from wealth_portfolio.ui.utils import display_ticker, format_currency, format_percent


def _parse_date_option(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> date:
    if value is None:
        return date.today()
    try:
        return parse_date(value)
    except PortfolioError as exc:
        raise click.BadParameter(str(exc)) from exc


def _session(ctx: click.Context) -> PortfolioSession:
    return ctx.obj["session"]


def _resolve_rate(ctx: click.Context, on: date, rate: Optional[float]) -> float:
    if rate is not None:
        return rate
    if ctx.obj["offline"]:
        raise click.ClickException("--rate is required in offline mode.")
    session = _session(ctx)
    regime, suggested = session.recommend_rate(on)
    if suggested is None:
        raise click.ClickException(
            f"No {regime.value} rate available for {on.isoformat()}; pass --rate explicitly."
        )
    click.echo(f"Using {regime.value} rate {format_currency(suggested)} for {on.isoformat()}")
    return suggested


@click.group()
@click.option("--user", "user_id", default=None, help="User whose portfolio to open.")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None, help="Directory holding data files.")
@click.option("--demo", is_flag=True, help="Use the offline demo portfolio.")
@click.option("--offline", is_flag=True, help="Skip price and rate lookups.")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, or ERROR.")
@click.pass_context
def main(
    ctx: click.Context,
    user_id: Optional[str],
    data_dir: Optional[str],
    demo: bool,
    offline: bool,
    log_level: Optional[str],
) -> None:
    """Wealth Portfolio: track an ARS/USD equity portfolio."""
    setup_logging(log_level)
    try:
        if demo:
            session = PortfolioSession.demo()
        else:
            session = PortfolioSession.open(user_id or DEFAULT_USER, data_dir)
    except PortfolioError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = {"session": session, "offline": offline}


@main.command()
@click.argument("ticker")
@click.argument("quantity", type=float)
@click.argument("price", type=float)
@click.option("--name", "ticker_name", default=None, help="Display name of the instrument.")
@click.option("--date", "on", callback=_parse_date_option, default=None, help="Operation date (YYYY-MM-DD).")
@click.option("--rate", type=float, default=None, help="ARS per USD; looked up when omitted.")
@click.pass_context
def buy(ctx, ticker, quantity, price, ticker_name, on, rate) -> None:
    """Record a buy of QUANTITY units of TICKER at PRICE ARS each."""
    session = _session(ctx)
    try:
        op = session.buy(ticker, ticker_name or ticker, on, quantity, price, _resolve_rate(ctx, on, rate))
    except PortfolioError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"Bought {op.quantity:g} {display_ticker(op.ticker)} for {format_currency(op.price_local)} "
        f"({format_currency(op.price_reference, REFERENCE_CURRENCY)}) [{op.id}]"
    )


@main.command()
@click.argument("ticker")
@click.argument("quantity", type=float)
@click.argument("price", type=float)
@click.option("--date", "on", callback=_parse_date_option, default=None, help="Operation date (YYYY-MM-DD).")
@click.option("--rate", type=float, default=None, help="ARS per USD; looked up when omitted.")
@click.pass_context
def sell(ctx, ticker, quantity, price, on, rate) -> None:
    """Record a sell of QUANTITY units of TICKER at PRICE ARS each."""
    session = _session(ctx)
    try:
        op = session.sell(ticker, on, quantity, price, _resolve_rate(ctx, on, rate))
    except PortfolioError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"Sold {op.quantity:g} {display_ticker(op.ticker)} for {format_currency(op.price_local)}, "
        f"realized {format_currency(op.realized_profit_local)} "
        f"({format_currency(op.realized_profit_reference, REFERENCE_CURRENCY)}) [{op.id}]"
    )


@main.command()
@click.argument("operation_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def delete(ctx, operation_id, yes) -> None:
    """Delete the operation OPERATION_ID."""
    session = _session(ctx)
    if not yes:
        click.confirm(f"Delete operation {operation_id}?", abort=True)
    try:
        op = session.delete(operation_id)
    except PortfolioError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted {op.kind.value} of {op.quantity:g} {display_ticker(op.ticker)}")


def _refresh(ctx: click.Context) -> None:
    if not ctx.obj["offline"]:
        _session(ctx).refresh_market()


@main.command()
@click.option("--all", "include_closed", is_flag=True, help="Include closed positions.")
@click.pass_context
def holdings(ctx, include_closed) -> None:
    """Show current holdings with unrealized profit."""
    _refresh(ctx)
    rows = _session(ctx).rows(include_closed=include_closed)
    if not rows:
        click.echo("No holdings yet.")
        return
    for row in rows:
        note = "" if row.priced else " (no quote)"
        click.echo(
            f"{row.display_ticker:<8} {row.quantity:>10.2f}  invested {format_currency(row.invested_local)}  "
            f"value {format_currency(row.current_value_local)}{note}  "
            f"P&L {format_currency(row.profit_local)} / "
            f"{format_currency(row.profit_reference, REFERENCE_CURRENCY)} {format_percent(row.profit_percent)}"
        )


@main.command()
@click.pass_context
def history(ctx) -> None:
    """List operations, newest first."""
    ops = _session(ctx).history()
    if not ops:
        click.echo("No operations recorded.")
        return
    for op in ops:
        line = (
            f"{op.date.isoformat()}  {op.kind.value:<4} {display_ticker(op.ticker):<8} {op.quantity:>10.2f}  "
            f"{format_currency(op.price_local)}  @ {format_currency(op.exchange_rate)}  "
            f"{format_currency(op.price_reference, REFERENCE_CURRENCY)}"
        )
        if isinstance(op, SellOperation):
            line += f"  realized {format_currency(op.realized_profit_local)}"
        click.echo(f"{line}  [{op.id}]")


@main.command()
@click.pass_context
def summary(ctx) -> None:
    """Show portfolio totals in both currencies."""
    _refresh(ctx)
    s = _session(ctx).summary()
    click.echo(f"Total value:    {format_currency(s.total_value_local, LOCAL_CURRENCY)}")
    click.echo(f"                {format_currency(s.total_value_reference, REFERENCE_CURRENCY)}")
    click.echo(f"Invested:       {format_currency(s.total_invested_local, LOCAL_CURRENCY)}")
    click.echo(
        f"Unrealized P&L: {format_currency(s.profit_local)} "
        f"({format_currency(s.profit_reference, REFERENCE_CURRENCY)}) {format_percent(s.profit_percent)}"
    )
    click.echo(
        f"Realized P&L:   {format_currency(s.realized_profit_local)} "
        f"({format_currency(s.realized_profit_reference, REFERENCE_CURRENCY)})"
    )
    click.echo(f"USD rate:       {format_currency(s.reference_rate)}")
    if s.unpriced_tickers:
        click.echo("Without quote:  " + ", ".join(display_ticker(t) for t in s.unpriced_tickers))


@main.command()
@click.option("--date", "on", callback=_parse_date_option, default=None, help="Date to resolve (YYYY-MM-DD).")
@click.pass_context
def rate(ctx, on) -> None:
    """Show the recommended exchange-rate regime and value for a date."""
    regime, value = _session(ctx).recommend_rate(on)
    if value is None:
        click.echo(f"{on.isoformat()}: {regime.value} (no rate available, enter it manually)")
    else:
        click.echo(f"{on.isoformat()}: {regime.value} {format_currency(value)}")


@main.command()
@click.option("--year", type=int, default=None, help="Calendar year (default: current).")
@click.pass_context
def calendar(ctx, year) -> None:
    """Show days with operations and their activity level."""
    year = year or date.today().year
    days = _session(ctx).calendar(year)
    if not days:
        click.echo(f"No operations in {year}.")
        return
    for day, entry in days.items():
        tickers = ", ".join(display_ticker(op.ticker) for op in entry.operations)
        click.echo(f"{day.isoformat()}  {entry.intensity:<6} {format_currency(entry.total_local)}  {tickers}")


if __name__ == "__main__":
    main()
