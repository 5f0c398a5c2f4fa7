"""
Pro-ration — the share of a monthly budget earned by the elapsed days.
"""

from __future__ import annotations

from collections.abc import Sequence

from profitpilot.engine.classifier import (
    admin_items,
    cost_of_sales_items,
    find_summary_row,
    is_summary_row,
    line_class_of,
    revenue_items,
)
from profitpilot.models.budget import BudgetLineItem, LineClass, Period


def pro_rated_budget(item: BudgetLineItem, period: Period) -> float:
    """``budget_amount * day_of_month / days_in_month``; headers contribute 0."""
    if item.is_header:
        return 0.0
    return item.budget_amount * period.day_of_month / period.days_in_month


def _sum_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    return sum(pro_rated_budget(i, period) for i in items)


def turnover_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    revenue = revenue_items(items)
    if revenue:
        return _sum_pro_rated(revenue, period)
    row = find_summary_row(items, LineClass.TURNOVER)
    return pro_rated_budget(row, period) if row else 0.0


def cost_of_sales_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    costs = cost_of_sales_items(items)
    if costs:
        return _sum_pro_rated(costs, period)
    row = find_summary_row(items, LineClass.COST_OF_SALES)
    return pro_rated_budget(row, period) if row else 0.0


def admin_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    return _sum_pro_rated(admin_items(items), period)


def gross_profit_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    """Gross profit row's own pro-ration, else turnover less cost of sales."""
    row = find_summary_row(items, LineClass.GROSS_PROFIT)
    if row is not None and row.budget_amount != 0:
        return pro_rated_budget(row, period)
    return turnover_pro_rated(items, period) - cost_of_sales_pro_rated(items, period)


def operating_profit_pro_rated(items: Sequence[BudgetLineItem], period: Period) -> float:
    return gross_profit_pro_rated(items, period) - admin_pro_rated(items, period)


def summary_pro_rated_budget(
    item: BudgetLineItem,
    items: Sequence[BudgetLineItem],
    period: Period,
) -> float:
    """Pro-rated budget for any row, aggregating over constituents for totals.

    Total rows (Turnover, Cost of Sales, Gross Profit, Total admin,
    Operating profit) are derived from their constituent lines, so a stale
    or zero budget on the stored total row never leaks into the figure.
    """
    if item.is_header:
        return 0.0
    if not is_summary_row(item):
        return pro_rated_budget(item, period)

    line_class = line_class_of(item)
    if line_class == LineClass.TURNOVER:
        return turnover_pro_rated(items, period)
    if line_class == LineClass.COST_OF_SALES:
        return cost_of_sales_pro_rated(items, period)
    if line_class == LineClass.GROSS_PROFIT:
        return gross_profit_pro_rated(items, period)
    if line_class == LineClass.ADMIN_EXPENSE:
        return admin_pro_rated(items, period)
    if line_class == LineClass.OPERATING_PROFIT:
        return operating_profit_pro_rated(items, period)
    return pro_rated_budget(item, period)
