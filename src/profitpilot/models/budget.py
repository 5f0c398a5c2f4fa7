"""
Budget data models — P&L line items, forecast settings, reporting periods.
"""

from __future__ import annotations

import calendar
import math
import numbers
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class LineClass(str, Enum):
    """Semantic class of a P&L row."""

    HEADER = "header"
    TURNOVER = "turnover"
    REVENUE = "revenue"
    COST_OF_SALES = "cost_of_sales"
    GROSS_PROFIT = "gross_profit"
    WAGES = "wages"
    ADMIN_EXPENSE = "admin_expense"
    OPERATING_PROFIT = "operating_profit"


class TrackingType(str, Enum):
    """How month-to-date actuals are collected for an item."""

    DISCRETE = "Discrete"  # Manually or daily entered
    PRO_RATED = "Pro-Rated"  # Follows the budget curve


class ForecastMethod(str, Enum):
    """Configured forecast strategy for an item."""

    FIXED = "fixed"
    DISCRETE = "discrete"
    FIXED_PLUS = "fixed_plus"
    MTD_PROJECTION = "mtd_projection"


def coerce_amount(value: Any) -> float | None:
    """Coerce a loosely-typed amount to a float.

    Accepts numbers, numeric strings (currency symbols and thousands
    separators are stripped) and ``{"value": ...}`` wrappers. Returns
    ``None`` for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, dict):
        return coerce_amount(value.get("value"))
    if isinstance(value, numbers.Real):
        result = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").lstrip("£$€")
        if not cleaned:
            return None
        try:
            result = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


class DayValue(BaseModel):
    """One entry of an item's daily ledger."""

    day: int = Field(ge=1, le=31)
    value: float | None = None


class ForecastSettings(BaseModel):
    """Forecast method configuration for one item and month."""

    method: ForecastMethod = ForecastMethod.FIXED
    discrete_values: dict[str, Any] = Field(default_factory=dict)

    @property
    def discrete_total(self) -> float:
        """Sum of every value in ``discrete_values`` that coerces to a number."""
        total = 0.0
        for raw in self.discrete_values.values():
            amount = coerce_amount(raw)
            if amount is not None:
                total += amount
        return total


class BudgetLineItem(BaseModel):
    """One row of the monthly P&L."""

    id: str | None = None
    category: str = ""
    name: str
    budget_amount: float = 0.0
    actual_amount: float | None = None
    forecast_amount: float | None = None
    tracking_type: TrackingType = TrackingType.DISCRETE
    manually_entered_actual: float | None = None
    daily_values: list[DayValue] = Field(default_factory=list)
    forecast_settings: ForecastSettings | None = None
    budget_percentage: float | None = None

    is_header: bool = False
    is_gross_profit: bool = False
    is_operating_profit: bool = False
    is_highlighted: bool = False

    # Set once at ingestion by the classifier
    line_class: LineClass | None = None
    is_summary: bool = False

    year: int | None = None
    month: int | None = None

    @field_validator("budget_amount", mode="before")
    @classmethod
    def _budget_defaults_to_zero(cls, value: Any) -> float:
        amount = coerce_amount(value)
        return amount if amount is not None else 0.0

    @property
    def daily_total(self) -> float:
        return sum(d.value or 0.0 for d in self.daily_values)


@dataclass(frozen=True)
class Period:
    """Reporting month and the last fully-elapsed day inside it."""

    year: int
    month: int
    day_of_month: int
    days_in_month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")
        if self.days_in_month <= 0:
            raise ValueError("days_in_month must be positive")
        if not 0 <= self.day_of_month <= self.days_in_month:
            raise ValueError(
                f"day_of_month {self.day_of_month} outside 0..{self.days_in_month}"
            )

    @classmethod
    def for_month(
        cls,
        year: int,
        month: int,
        today: date | None = None,
        cutoff_day: int | None = None,
    ) -> Period:
        """Build the period for a month as seen from ``today``.

        The current month counts up to yesterday (floored at 1). Other
        months use ``cutoff_day`` when given; otherwise past months are
        fully elapsed and future months have only day 1.
        """
        ref = today or date.today()
        days = calendar.monthrange(year, month)[1]

        if (year, month) == (ref.year, ref.month):
            day = max(ref.day - 1, 1)
        elif cutoff_day is not None:
            day = min(max(cutoff_day, 1), days)
        elif (year, month) < (ref.year, ref.month):
            day = days
        else:
            day = 1

        return cls(year=year, month=month, day_of_month=day, days_in_month=days)

    @property
    def elapsed_fraction(self) -> float:
        return self.day_of_month / self.days_in_month
