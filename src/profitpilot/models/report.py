"""
P&L report models — per-line results, summary rows, snapshots.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from profitpilot.models.budget import BudgetLineItem, LineClass

_PROFIT_CLASSES = frozenset({
    LineClass.TURNOVER,
    LineClass.REVENUE,
    LineClass.GROSS_PROFIT,
    LineClass.OPERATING_PROFIT,
})
# A positive variance on these rows means overspend
_COST_CLASSES = frozenset({
    LineClass.COST_OF_SALES,
    LineClass.WAGES,
    LineClass.ADMIN_EXPENSE,
})


def is_favourable(line_class: LineClass, variance: float) -> bool | None:
    """Whether a variance is good news for a row of ``line_class``.

    Overspend (positive variance) on cost rows is unfavourable; a positive
    variance on revenue and profit rows is favourable. Returns ``None`` for
    zero variance and for headers.
    """
    if variance == 0:
        return None
    if line_class in _COST_CLASSES:
        return variance < 0
    if line_class in _PROFIT_CLASSES:
        return variance > 0
    return None


def percentage(amount: float, denominator: float) -> float:
    """``amount`` as a percentage of ``denominator`` (0.0 when it is zero)."""
    if not denominator:
        return 0.0
    return amount / denominator * 100


class HorizonFigures(BaseModel):
    """A metric at the four horizons plus variances and turnover percentages."""

    budget: float = 0.0
    pro_rated: float = 0.0
    actual: float = 0.0
    forecast: float = 0.0

    budget_pct: float = 0.0
    pro_rated_pct: float = 0.0
    actual_pct: float = 0.0
    forecast_pct: float = 0.0

    @property
    def mtd_variance(self) -> float:
        """Month-to-date variance: actual against pro-rated budget."""
        return self.actual - self.pro_rated

    @property
    def forecast_variance(self) -> float:
        """Full-period variance: forecast against budget."""
        return self.forecast - self.budget


class LineResult(HorizonFigures):
    """Computed figures for one stored P&L row."""

    item: BudgetLineItem
    line_class: LineClass
    actual_source: str = "none"
    forecast_basis: str = "budget"

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def mtd_favourable(self) -> bool | None:
        return is_favourable(self.line_class, self.mtd_variance)

    @property
    def forecast_favourable(self) -> bool | None:
        return is_favourable(self.line_class, self.forecast_variance)


class SummaryFigures(HorizonFigures):
    """A derived total row (turnover, admin expenses, operating profit...)."""

    label: str
    line_class: LineClass

    @property
    def mtd_favourable(self) -> bool | None:
        return is_favourable(self.line_class, self.mtd_variance)

    @property
    def forecast_favourable(self) -> bool | None:
        return is_favourable(self.line_class, self.forecast_variance)


class RollupResult(BaseModel):
    """Everything a P&L tracker view renders for one period."""

    year: int
    month: int
    day_of_month: int
    days_in_month: int

    lines: list[LineResult] = Field(default_factory=list)
    turnover: SummaryFigures
    cost_of_sales: SummaryFigures
    gross_profit: SummaryFigures
    admin_expenses: SummaryFigures
    operating_profit: SummaryFigures

    forecast_denominator: float = 1.0
    forecast_denominator_clamped: bool = False
    generated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def summaries(self) -> list[SummaryFigures]:
        return [
            self.turnover,
            self.cost_of_sales,
            self.gross_profit,
            self.admin_expenses,
            self.operating_profit,
        ]

    def line(self, name: str) -> LineResult | None:
        """Find a line by case-insensitive name."""
        target = name.strip().lower()
        for line in self.lines:
            if line.item.name.strip().lower() == target:
                return line
        return None

    def to_json(self, **kwargs: Any) -> str:
        return self.model_dump_json(indent=2, **kwargs)


class Snapshot(BaseModel):
    """Point-in-time copy of one P&L row."""

    category: str = ""
    name: str
    budget_amount: float = 0.0
    actual_amount: float | None = None
    forecast_amount: float | None = None
    budget_variance: float | None = None
    forecast_variance: float | None = None
    captured_at: datetime | None = None
