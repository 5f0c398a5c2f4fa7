"""
Summary rollup — derived P&L totals at every horizon.

``compute_rollup(items, period)`` is the single place where turnover, cost
of sales, gross profit, admin expenses and operating profit are derived.
It is a pure function of the items (with any forecast settings already
attached) and the period.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from profitpilot.engine.actuals import resolve_actual, resolve_actual_with_source
from profitpilot.engine.classifier import (
    admin_items,
    cost_of_sales_items,
    find_summary_row,
    line_class_of,
    revenue_items,
)
from profitpilot.engine.forecast import ForecastResult, compute_forecast, linear_projection
from profitpilot.engine.proration import (
    admin_pro_rated,
    cost_of_sales_pro_rated,
    gross_profit_pro_rated,
    pro_rated_budget,
    summary_pro_rated_budget,
    turnover_pro_rated,
)
from profitpilot.models.budget import BudgetLineItem, LineClass, Period
from profitpilot.models.report import (
    HorizonFigures,
    LineResult,
    RollupResult,
    SummaryFigures,
    percentage,
)

logger = logging.getLogger("profitpilot.engine.rollup")

MIN_FORECAST_DENOMINATOR = 1.0


@dataclass
class _Horizons:
    budget: float = 0.0
    pro_rated: float = 0.0
    actual: float = 0.0
    forecast: float = 0.0

    def __sub__(self, other: _Horizons) -> _Horizons:
        return _Horizons(
            budget=self.budget - other.budget,
            pro_rated=self.pro_rated - other.pro_rated,
            actual=self.actual - other.actual,
            forecast=self.forecast - other.forecast,
        )


@dataclass
class _Turnover:
    """Turnover at each horizon, plus the percentage denominators."""

    horizons: _Horizons
    forecast_denominator: float
    clamped: bool


def _sum_forecasts(items: Sequence[BudgetLineItem], period: Period) -> float:
    return sum(compute_forecast(i, period).value for i in items)


def _resolvable(result: ForecastResult | None) -> bool:
    return result is not None and not result.is_budget_fallback and result.value != 0


def _turnover(items: Sequence[BudgetLineItem], period: Period) -> _Turnover:
    revenue = revenue_items(items)
    row = find_summary_row(items, LineClass.TURNOVER)

    budget = sum(i.budget_amount for i in revenue) if revenue else (row.budget_amount if row else 0.0)
    row_actual = resolve_actual(row) if row is not None else 0.0
    actual = row_actual if row_actual != 0 else sum(resolve_actual(i) for i in revenue)

    # Forecast chain: turnover row, then revenue lines, then budget, then the clamp
    row_forecast = compute_forecast(row, period) if row is not None else None
    if _resolvable(row_forecast):
        forecast = row_forecast.value
    else:
        forecast = _sum_forecasts(revenue, period)
        if forecast == 0:
            forecast = budget
        if forecast == 0 and row_forecast is not None:
            forecast = row_forecast.value

    clamped = forecast == 0
    if clamped:
        logger.warning(
            "No turnover forecast for %d-%02d; using a denominator of %.0f",
            period.year, period.month, MIN_FORECAST_DENOMINATOR,
        )

    return _Turnover(
        horizons=_Horizons(
            budget=budget,
            pro_rated=turnover_pro_rated(items, period),
            actual=actual,
            forecast=forecast,
        ),
        forecast_denominator=MIN_FORECAST_DENOMINATOR if clamped else forecast,
        clamped=clamped,
    )


def _cost_of_sales(items: Sequence[BudgetLineItem], period: Period) -> _Horizons:
    costs = cost_of_sales_items(items)
    row = find_summary_row(items, LineClass.COST_OF_SALES)

    budget = sum(i.budget_amount for i in costs) if costs else (row.budget_amount if row else 0.0)
    row_actual = resolve_actual(row) if row is not None else 0.0
    actual = row_actual if row_actual != 0 else sum(resolve_actual(i) for i in costs)

    row_forecast = compute_forecast(row, period) if row is not None else None
    if _resolvable(row_forecast) or (row_forecast is not None and not costs):
        forecast = row_forecast.value
    else:
        forecast = _sum_forecasts(costs, period)

    return _Horizons(
        budget=budget,
        pro_rated=cost_of_sales_pro_rated(items, period),
        actual=actual,
        forecast=forecast,
    )


def _gross_profit(
    items: Sequence[BudgetLineItem],
    period: Period,
    turnover: _Horizons,
    cost_of_sales: _Horizons,
) -> _Horizons:
    """Turnover less cost of sales, with a stored Gross Profit row's own figures where it has them."""
    derived = turnover - cost_of_sales
    row = find_summary_row(items, LineClass.GROSS_PROFIT)
    if row is None:
        return derived

    row_actual = resolve_actual(row)
    row_forecast = compute_forecast(row, period)
    return _Horizons(
        budget=row.budget_amount if row.budget_amount != 0 else derived.budget,
        pro_rated=gross_profit_pro_rated(items, period),
        actual=row_actual if row_actual != 0 else derived.actual,
        forecast=row_forecast.value if _resolvable(row_forecast) else derived.forecast,
    )


def _admin_expenses(items: Sequence[BudgetLineItem], period: Period) -> _Horizons:
    overheads = admin_items(items)
    budget = sum(i.budget_amount for i in overheads)
    actual = sum(resolve_actual(i) for i in overheads)

    # Only explicit settings switch the total to per-item forecasts
    if any(i.forecast_settings is not None for i in overheads):
        forecast = _sum_forecasts(overheads, period)
    elif actual > 0 and period.day_of_month > 0:
        forecast = linear_projection(actual, period)
    else:
        forecast = budget

    return _Horizons(
        budget=budget,
        pro_rated=admin_pro_rated(items, period),
        actual=actual,
        forecast=forecast,
    )


def _with_percentages(figures: HorizonFigures, turnover: _Turnover) -> None:
    figures.budget_pct = percentage(figures.budget, turnover.horizons.budget)
    figures.pro_rated_pct = percentage(figures.pro_rated, turnover.horizons.pro_rated)
    figures.actual_pct = percentage(figures.actual, turnover.horizons.actual)
    figures.forecast_pct = percentage(figures.forecast, turnover.forecast_denominator)


def _summary(label: str, line_class: LineClass, h: _Horizons, turnover: _Turnover) -> SummaryFigures:
    figures = SummaryFigures(
        label=label,
        line_class=line_class,
        budget=h.budget,
        pro_rated=h.pro_rated,
        actual=h.actual,
        forecast=h.forecast,
    )
    _with_percentages(figures, turnover)
    return figures


def compute_rollup(items: Sequence[BudgetLineItem], period: Period) -> RollupResult:
    """Compute every per-line and summary figure for a period.

    Args:
        items: The month's line items, classified and with forecast
            settings attached where they exist.
        period: Reporting period.

    Returns:
        RollupResult with one LineResult per stored row (headers included,
        all zero) and the five derived summary rows.
    """
    turnover = _turnover(items, period)
    cost_of_sales = _cost_of_sales(items, period)
    gross_profit = _gross_profit(items, period, turnover.horizons, cost_of_sales)
    admin = _admin_expenses(items, period)
    operating_profit = gross_profit - admin

    summaries = {
        LineClass.TURNOVER: _summary("Turnover", LineClass.TURNOVER, turnover.horizons, turnover),
        LineClass.COST_OF_SALES: _summary("Cost of Sales", LineClass.COST_OF_SALES, cost_of_sales, turnover),
        LineClass.GROSS_PROFIT: _summary("Gross Profit", LineClass.GROSS_PROFIT, gross_profit, turnover),
        LineClass.ADMIN_EXPENSE: _summary("Admin Expenses", LineClass.ADMIN_EXPENSE, admin, turnover),
        LineClass.OPERATING_PROFIT: _summary(
            "Operating Profit", LineClass.OPERATING_PROFIT, operating_profit, turnover
        ),
    }

    # Stored total rows display their derived figures
    totals: dict[int, SummaryFigures] = {}
    for cls, figures in summaries.items():
        row = find_summary_row(items, cls)
        if row is not None:
            totals[id(row)] = figures

    lines: list[LineResult] = []
    for item in items:
        line_class = line_class_of(item)
        if item.is_header:
            lines.append(LineResult(item=item, line_class=LineClass.HEADER, forecast_basis="header"))
            continue

        actual, source = resolve_actual_with_source(item)
        forecast = compute_forecast(item, period)
        total = totals.get(id(item))
        if total is not None:
            line = LineResult(
                item=item,
                line_class=line_class,
                budget=total.budget,
                pro_rated=summary_pro_rated_budget(item, items, period),
                actual=total.actual,
                forecast=total.forecast,
                actual_source=source.value,
                forecast_basis="rollup",
            )
        else:
            line = LineResult(
                item=item,
                line_class=line_class,
                budget=item.budget_amount,
                pro_rated=pro_rated_budget(item, period),
                actual=actual,
                forecast=forecast.value,
                actual_source=source.value,
                forecast_basis=forecast.basis.value,
            )
        _with_percentages(line, turnover)
        lines.append(line)

    logger.debug(
        "Rollup %d-%02d day %d/%d: turnover forecast %.2f, operating profit forecast %.2f",
        period.year, period.month, period.day_of_month, period.days_in_month,
        turnover.horizons.forecast, operating_profit.forecast,
    )

    return RollupResult(
        year=period.year,
        month=period.month,
        day_of_month=period.day_of_month,
        days_in_month=period.days_in_month,
        lines=lines,
        turnover=summaries[LineClass.TURNOVER],
        cost_of_sales=summaries[LineClass.COST_OF_SALES],
        gross_profit=summaries[LineClass.GROSS_PROFIT],
        admin_expenses=summaries[LineClass.ADMIN_EXPENSE],
        operating_profit=summaries[LineClass.OPERATING_PROFIT],
        forecast_denominator=turnover.forecast_denominator,
        forecast_denominator_clamped=turnover.clamped,
    )
