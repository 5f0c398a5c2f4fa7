"""
Forecast engine — full-month projection per line item.

The engine is pure: it neither reads nor writes persistence. Forecast
settings must already be attached to the item (see
:mod:`profitpilot.forecast_settings`) and persisting results is an explicit
command on :class:`profitpilot.tracker.PLTracker`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from profitpilot.engine.actuals import resolve_actual
from profitpilot.engine.classifier import EXTERNAL_ACTUAL_CLASSES, line_class_of
from profitpilot.models.budget import BudgetLineItem, ForecastMethod, ForecastSettings, Period

logger = logging.getLogger("profitpilot.engine.forecast")


class ForecastBasis(str, Enum):
    """Which rule produced a forecast."""

    HEADER = "header"
    RUN_RATE_OVERRIDE = "run_rate_override"  # MTD projection forced for trading rows
    PERSISTED = "persisted"
    FIXED = "fixed"
    DISCRETE = "discrete"
    FIXED_PLUS = "fixed_plus"
    MTD_PROJECTION = "mtd_projection"
    RUN_RATE = "run_rate"
    BUDGET = "budget"


@dataclass(frozen=True)
class ForecastResult:
    """A computed forecast and how it was derived."""

    value: float
    basis: ForecastBasis

    @property
    def is_budget_fallback(self) -> bool:
        return self.basis == ForecastBasis.BUDGET


def linear_projection(actual: float, period: Period) -> float:
    """Scale a month-to-date actual to the full month."""
    return actual / period.day_of_month * period.days_in_month


def _apply_settings(
    item: BudgetLineItem,
    settings: ForecastSettings,
    actual: float,
    period: Period,
) -> ForecastResult:
    if settings.method == ForecastMethod.FIXED:
        return ForecastResult(item.budget_amount, ForecastBasis.FIXED)
    if settings.method == ForecastMethod.DISCRETE:
        return ForecastResult(settings.discrete_total, ForecastBasis.DISCRETE)
    if settings.method == ForecastMethod.FIXED_PLUS:
        return ForecastResult(item.budget_amount + settings.discrete_total, ForecastBasis.FIXED_PLUS)
    # mtd_projection
    if actual > 0 and period.day_of_month > 0:
        return ForecastResult(linear_projection(actual, period), ForecastBasis.MTD_PROJECTION)
    return ForecastResult(item.budget_amount, ForecastBasis.BUDGET)


def settings_forecast(item: BudgetLineItem, settings: ForecastSettings, period: Period) -> float:
    """Forecast a configured method yields, ignoring overrides and stored values."""
    return _apply_settings(item, settings, resolve_actual(item), period).value


def compute_forecast(item: BudgetLineItem, period: Period) -> ForecastResult:
    """Project a full-month forecast for one item.

    Rules, first match wins:

    1. Trading rows (turnover, revenue, cost of sales, gross profit, wages)
       with a non-zero actual project their run-rate, whatever the settings.
    2. A non-zero stored ``forecast_amount`` is returned unchanged.
    3. Attached forecast settings are applied.
    4. A positive actual projects its run-rate.
    5. The budget amount.
    """
    if item.is_header:
        return ForecastResult(0.0, ForecastBasis.HEADER)

    actual = resolve_actual(item)

    if (
        line_class_of(item) in EXTERNAL_ACTUAL_CLASSES
        and actual != 0
        and period.day_of_month > 0
    ):
        return ForecastResult(linear_projection(actual, period), ForecastBasis.RUN_RATE_OVERRIDE)

    if item.forecast_amount is not None and item.forecast_amount != 0:
        return ForecastResult(float(item.forecast_amount), ForecastBasis.PERSISTED)

    if item.forecast_settings is not None:
        return _apply_settings(item, item.forecast_settings, actual, period)

    if actual > 0 and period.day_of_month > 0:
        return ForecastResult(linear_projection(actual, period), ForecastBasis.RUN_RATE)

    return ForecastResult(item.budget_amount, ForecastBasis.BUDGET)


def needs_write_back(item: BudgetLineItem, result: ForecastResult) -> bool:
    """Whether persisting ``result`` would change the stored forecast."""
    if item.id is None or result.basis == ForecastBasis.HEADER:
        return False
    stored = item.forecast_amount
    if stored is None:
        return True
    return not math.isclose(stored, result.value, rel_tol=1e-9, abs_tol=1e-6)


class ForecastEngine:
    """Thin object facade over :func:`compute_forecast` for injection and logging.

    Usage::

        engine = ForecastEngine()
        result = engine.forecast(item, Period.for_month(2025, 4))
        print(result.value, result.basis)
    """

    def forecast(self, item: BudgetLineItem, period: Period) -> ForecastResult:
        result = compute_forecast(item, period)
        logger.debug(
            "Forecast for %r: %.2f via %s", item.name, result.value, result.basis.value
        )
        return result

    def forecast_all(self, items: list[BudgetLineItem], period: Period) -> list[ForecastResult]:
        return [self.forecast(item, period) for item in items]
