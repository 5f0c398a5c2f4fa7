"""
ProfitPilot CLI — command-line interface.

Usage:
    profitpilot report --year 2025 --month 4
    profitpilot update-forecasts -c profitpilot.yaml --year 2025 --month 4
    pp import-budget budget.xlsx --year 2025 --month 4
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from profitpilot import __version__

app = typer.Typer(
    name="profitpilot",
    help="📒 ProfitPilot — P&L tracking and forecasting",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_TODAY = date.today()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]ProfitPilot[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """📒 ProfitPilot — Budget, actuals and forecasts for every P&L line."""


def _load_pilot(config: str, cutoff_day: int | None = None, verbose: bool = False):  # noqa: ANN202
    from profitpilot.config import ProfitPilotConfig
    from profitpilot.pilot import ProfitPilot

    config_path = config if Path(config).exists() else None
    cfg = ProfitPilotConfig.load(config_path)
    if cutoff_day is not None:
        cfg.tracker.cutoff_day = cutoff_day

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    pilot = ProfitPilot(config=cfg)
    pilot._setup()
    return pilot


def _find_item(tracker, ref: str):  # noqa: ANN001, ANN202
    """Find an item by id or case-insensitive name."""
    matches = [
        i for i in tracker.items
        if i.id == ref or i.name.strip().lower() == ref.strip().lower()
    ]
    if not matches:
        console.print(f"[red]✗[/red] No item named [bold]{ref}[/bold]")
        raise typer.Exit(1)
    if len(matches) > 1:
        console.print(f"[red]✗[/red] Several items are named [bold]{ref}[/bold]; use the item id")
        raise typer.Exit(1)
    return matches[0]


ConfigOption = typer.Option("profitpilot.yaml", "--config", "-c", help="Path to config file")
YearOption = typer.Option(_TODAY.year, "--year", "-y", help="Budget year")
MonthOption = typer.Option(_TODAY.month, "--month", "-m", min=1, max=12, help="Budget month (1-12)")
VerboseOption = typer.Option(False, "--verbose", help="Enable debug logging")


@app.command()
def report(
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    cutoff_day: int = typer.Option(None, "--cutoff-day", help="Elapsed day for past or future months"),
    output: str = typer.Option(None, "--output", "-o", help="Save report to file (.md, .json)"),
    verbose: bool = VerboseOption,
) -> None:
    """Show the P&L tracker for a month."""
    pilot = _load_pilot(config, cutoff_day, verbose)

    async def _run():  # noqa: ANN202
        try:
            return await pilot.report(year, month)
        finally:
            await pilot.close()

    with console.status("[bold green]Loading P&L...[/bold green]"):
        rollup = asyncio.run(_run())

    _display_rollup(rollup, pilot.config.currency_symbol)
    if output:
        _save_report(rollup, output, pilot.config.currency_symbol)


@app.command("update-forecasts")
def update_forecasts(
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    cutoff_day: int = typer.Option(None, "--cutoff-day", help="Elapsed day for past or future months"),
    verbose: bool = VerboseOption,
) -> None:
    """Recompute every forecast for a month and store the ones that changed."""
    pilot = _load_pilot(config, cutoff_day, verbose)

    async def _run():  # noqa: ANN202
        try:
            tracker = await pilot.open_tracker(year, month)
            return await tracker.update_all_forecasts()
        finally:
            await pilot.close()

    with console.status("[bold green]Updating forecasts...[/bold green]"):
        summary = asyncio.run(_run())

    table = Table(title=f"Forecast Update — {calendar.month_name[month]} {year}")
    table.add_column("Result", style="bold")
    table.add_column("Items", justify="right")
    table.add_row("Updated", str(summary.updated))
    table.add_row("Unchanged", str(summary.unchanged))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(len(summary.failed)))
    console.print(table)

    for name, error in summary.failed.items():
        console.print(f"  [red]✗[/red] {name}: {error}")
    if summary.failed:
        raise typer.Exit(1)


@app.command("set-forecast")
def set_forecast(
    item: str = typer.Argument(..., help="Item name or id"),
    method: str = typer.Option("fixed", "--method", help="fixed, discrete, fixed_plus or mtd_projection"),
    value: list[str] = typer.Option(
        [], "--value", help="Discrete value as key=amount (repeatable), e.g. week1=100"
    ),
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    verbose: bool = VerboseOption,
) -> None:
    """Configure the forecast method of an item."""
    from profitpilot.models.budget import ForecastMethod, ForecastSettings
    from profitpilot.stores.base import StoreError

    try:
        forecast_method = ForecastMethod(method.lower())
    except ValueError:
        console.print(f"[red]✗[/red] Unknown method [bold]{method}[/bold]")
        raise typer.Exit(1)

    discrete: dict[str, str] = {}
    for entry in value:
        key, sep, amount = entry.partition("=")
        if not sep:
            console.print(f"[red]✗[/red] Expected key=amount, got [bold]{entry}[/bold]")
            raise typer.Exit(1)
        discrete[key.strip()] = amount.strip()

    settings = ForecastSettings(method=forecast_method, discrete_values=discrete)
    pilot = _load_pilot(config, verbose=verbose)

    async def _run():  # noqa: ANN202
        try:
            tracker = await pilot.open_tracker(year, month)
            target = _find_item(tracker, item)
            return target.name, await tracker.save_forecast_settings(target.id, settings)
        finally:
            await pilot.close()

    try:
        name, forecast = asyncio.run(_run())
    except StoreError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(
        f"[green]✓[/green] {name}: {forecast_method.value} forecast "
        f"[bold]{pilot.config.currency_symbol}{forecast:,.2f}[/bold]"
    )


@app.command()
def track(
    item: str = typer.Argument(..., help="Item name or id"),
    tracking_type: str = typer.Option(..., "--type", "-t", help="Discrete or Pro-Rated"),
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    verbose: bool = VerboseOption,
) -> None:
    """Change how an item's actuals are tracked."""
    from profitpilot.models.budget import TrackingType
    from profitpilot.stores.base import StoreError

    choices = {t.value.lower(): t for t in TrackingType}
    chosen = choices.get(tracking_type.strip().lower())
    if chosen is None:
        console.print(f"[red]✗[/red] Tracking type must be one of: {', '.join(t.value for t in TrackingType)}")
        raise typer.Exit(1)

    pilot = _load_pilot(config, verbose=verbose)

    async def _run():  # noqa: ANN202
        try:
            tracker = await pilot.open_tracker(year, month)
            target = _find_item(tracker, item)
            return await tracker.set_tracking_type(target.id, chosen)
        finally:
            await pilot.close()

    try:
        updated = asyncio.run(_run())
    except (ValueError, StoreError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {updated.name} is now tracked as [bold]{chosen.value}[/bold]")


@app.command("import-budget")
def import_budget(
    file: str = typer.Argument(..., help="CSV or Excel budget file"),
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    verbose: bool = VerboseOption,
) -> None:
    """Replace a month's budget with the contents of a spreadsheet."""
    if not Path(file).exists():
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(1)

    pilot = _load_pilot(config, verbose=verbose)

    async def _run():  # noqa: ANN202
        try:
            return await pilot.import_budget(file, year, month)
        finally:
            await pilot.close()

    try:
        with console.status("[bold green]Importing budget...[/bold green]"):
            count = asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(
        f"[green]✓[/green] Imported [bold]{count}[/bold] budget items for "
        f"{calendar.month_name[month]} {year}"
    )


@app.command()
def snapshot(
    show: bool = typer.Option(False, "--show", help="Show the latest snapshot instead of taking one"),
    config: str = ConfigOption,
    year: int = YearOption,
    month: int = MonthOption,
    verbose: bool = VerboseOption,
) -> None:
    """Capture (or show) a point-in-time snapshot of the P&L."""
    pilot = _load_pilot(config, verbose=verbose)
    symbol = pilot.config.currency_symbol

    async def _run():  # noqa: ANN202
        try:
            tracker = await pilot.open_tracker(year, month)
            if show:
                return await tracker.latest_snapshot()
            return await tracker.capture_snapshot()
        finally:
            await pilot.close()

    result = asyncio.run(_run())
    if not show:
        if result:
            console.print("[green]✓[/green] Snapshot stored")
        else:
            console.print("[yellow]![/yellow] Snapshot stored with failures (see log)")
            raise typer.Exit(1)
        return

    if not result:
        console.print("[dim]No snapshot for this month.[/dim]")
        return
    table = Table(title=f"Latest Snapshot — {calendar.month_name[month]} {year}")
    table.add_column("Category", style="dim")
    table.add_column("Item", style="bold")
    table.add_column("Budget", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Forecast", justify="right")
    for snap in result:
        table.add_row(
            snap.category,
            snap.name,
            f"{symbol}{snap.budget_amount:,.2f}",
            f"{symbol}{snap.actual_amount:,.2f}" if snap.actual_amount is not None else "—",
            f"{symbol}{snap.forecast_amount:,.2f}" if snap.forecast_amount is not None else "—",
        )
    console.print(table)


@app.command()
def stores(config: str = ConfigOption) -> None:
    """Show the configured store backend and check connectivity."""
    from profitpilot.stores.registry import available_backends

    pilot = _load_pilot(config)

    async def _run():  # noqa: ANN202
        try:
            return await pilot.health_check()
        finally:
            await pilot.close()

    results = asyncio.run(_run())

    table = Table(title="Stores")
    table.add_column("Store", style="bold")
    table.add_column("Backend")
    table.add_column("Status")
    for label, health in zip(("Budget items", "Forecast settings", "Snapshots"), results):
        status = "[green]✓ healthy[/green]" if health["healthy"] else f"[red]✗ {health['error'] or 'unreachable'}[/red]"
        table.add_row(label, health["store"], status)
    console.print(table)
    console.print(f"[dim]Built-in backends: {', '.join(available_backends())}[/dim]")


def _money(amount: float, symbol: str) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def _variance(amount: float, favourable: bool | None, symbol: str) -> str:
    text = _money(amount, symbol)
    if favourable is None:
        return text
    color = "green" if favourable else "red"
    return f"[{color}]{text}[/{color}]"


def _display_rollup(rollup, symbol: str) -> None:  # noqa: ANN001
    """Display the P&L in the terminal."""
    console.print()
    console.print(Panel.fit(
        f"[bold blue]📒 P&L Tracker[/bold blue] — {calendar.month_name[rollup.month]} {rollup.year}",
        subtitle=f"day {rollup.day_of_month} of {rollup.days_in_month}",
    ))

    table = Table(show_lines=False)
    table.add_column("Item", style="bold")
    table.add_column("Budget", justify="right")
    table.add_column("Pro-Rated", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("MTD Var", justify="right")
    table.add_column("Forecast", justify="right")
    table.add_column("Fcst Var", justify="right")

    for line in rollup.lines:
        if line.item.is_header:
            table.add_row(f"[underline]{line.item.name}[/underline]", "", "", "", "", "", "")
            continue
        name = f"[bold]{line.item.name}[/bold]" if line.item.is_summary else line.item.name
        table.add_row(
            name,
            _money(line.budget, symbol),
            _money(line.pro_rated, symbol),
            _money(line.actual, symbol),
            _variance(line.mtd_variance, line.mtd_favourable, symbol),
            _money(line.forecast, symbol),
            _variance(line.forecast_variance, line.forecast_favourable, symbol),
        )
    console.print(table)
    console.print()

    summary = Table(title="Summary", show_lines=True)
    summary.add_column("Line", style="bold")
    summary.add_column("Budget", justify="right")
    summary.add_column("Actual", justify="right")
    summary.add_column("Forecast", justify="right")
    summary.add_column("% of Turnover", justify="right")
    summary.add_column("Fcst Var", justify="right")
    for s in rollup.summaries:
        summary.add_row(
            s.label,
            _money(s.budget, symbol),
            _money(s.actual, symbol),
            _money(s.forecast, symbol),
            f"{s.forecast_pct:.1f}%",
            _variance(s.forecast_variance, s.forecast_favourable, symbol),
        )
    console.print(summary)

    if rollup.forecast_denominator_clamped:
        console.print(
            "[yellow]![/yellow] No turnover forecast could be resolved; "
            f"forecast percentages use a denominator of {rollup.forecast_denominator:g}."
        )
    console.print()


def _save_report(rollup, output: str, symbol: str) -> None:  # noqa: ANN001
    """Save report to file."""
    from profitpilot.exporters.markdown import render_markdown

    path = Path(output)
    if path.suffix == ".json":
        content = rollup.to_json()
    else:
        content = render_markdown(rollup, currency_symbol=symbol)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    console.print(f"[green]✓[/green] Report saved to [bold]{path}[/bold]")


if __name__ == "__main__":
    app()
