"""
Actual amount resolution — month-to-date actual from competing sources.
"""

from __future__ import annotations

import logging
from enum import Enum

from profitpilot.engine.classifier import EXTERNAL_ACTUAL_CLASSES, line_class_of
from profitpilot.models.budget import BudgetLineItem

logger = logging.getLogger("profitpilot.engine.actuals")


class ActualSource(str, Enum):
    """Where a resolved actual came from."""

    MANUAL = "manual"
    DAILY = "daily"
    EXTERNAL = "external"
    NONE = "none"


def resolve_actual_with_source(item: BudgetLineItem) -> tuple[float, ActualSource]:
    """Resolve the MTD actual of an item and report its source.

    Priority:
    1. ``manually_entered_actual``.
    2. Sum of the daily ledger (``None`` days count as 0).
    3. ``actual_amount`` when non-zero, for revenue, cost-of-sales,
       gross-profit and wage rows only.
    4. Zero.
    """
    if item.is_header:
        return 0.0, ActualSource.NONE

    if item.manually_entered_actual is not None:
        return float(item.manually_entered_actual), ActualSource.MANUAL

    if item.daily_values:
        return item.daily_total, ActualSource.DAILY

    if (
        line_class_of(item) in EXTERNAL_ACTUAL_CLASSES
        and item.actual_amount is not None
        and item.actual_amount != 0
    ):
        return float(item.actual_amount), ActualSource.EXTERNAL

    return 0.0, ActualSource.NONE


def resolve_actual(item: BudgetLineItem) -> float:
    """Month-to-date actual of an item (see :func:`resolve_actual_with_source`)."""
    amount, source = resolve_actual_with_source(item)
    logger.debug("Actual for %r: %.2f (%s)", item.name, amount, source.value)
    return amount
