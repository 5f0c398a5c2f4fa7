"""
Line item classifier — tags P&L rows with their semantic class.

Classification runs once when items are loaded and is carried on the
record (``line_class`` / ``is_summary``). The rest of the engine reads the
carried tag; untagged items are classified on the fly.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from profitpilot.models.budget import BudgetLineItem, LineClass, TrackingType

logger = logging.getLogger("profitpilot.engine.classifier")

# Classes whose actuals arrive pre-aggregated from upstream systems
# (till, supplier invoices, payroll) and which forecast from run-rate.
EXTERNAL_ACTUAL_CLASSES = frozenset({
    LineClass.TURNOVER,
    LineClass.REVENUE,
    LineClass.COST_OF_SALES,
    LineClass.GROSS_PROFIT,
    LineClass.WAGES,
})

ADMIN_CLASSES = frozenset({LineClass.WAGES, LineClass.ADMIN_EXPENSE})

_COS_WORD = re.compile(r"\bcos\b")
_SUB_LINE_QUALIFIERS = ("food", "beverage", "bev", "drink", "wet", "dry")
_REVENUE_CATEGORIES = ("revenue", "turnover", "sales", "income")


def _qualified(name: str) -> bool:
    """True when a name refers to a food/beverage sub-line rather than a total."""
    return any(q in name for q in _SUB_LINE_QUALIFIERS)


def classify(item: BudgetLineItem) -> tuple[LineClass, bool]:
    """Classify one item.

    Returns ``(line_class, is_summary)`` where ``is_summary`` marks the
    total row of its class (e.g. "Turnover", "Cost of Sales",
    "Total admin expenses"). Tests run in a fixed order; the first match wins.
    """
    name = item.name.strip().lower()
    category = (item.category or "").strip().lower()

    if item.is_header:
        return LineClass.HEADER, False

    if item.is_operating_profit or "operating profit" in name:
        return LineClass.OPERATING_PROFIT, True

    if item.is_gross_profit or "gross profit" in name or "profit/(loss)" in name:
        return LineClass.GROSS_PROFIT, not _qualified(name)

    if "total admin" in name:
        return LineClass.ADMIN_EXPENSE, True

    if name == "turnover" or "total revenue" in name or "total turnover" in name:
        return LineClass.TURNOVER, True

    if (
        "cost of sales" in name
        or _COS_WORD.search(name)
        or "cost of sales" in category
        or category == "cos"
    ):
        is_total = ("cost of sales" in name or _COS_WORD.search(name)) and not _qualified(name)
        return LineClass.COST_OF_SALES, bool(is_total)

    if (
        "revenue" in name
        or "turnover" in name
        or "sales" in name
        or category in _REVENUE_CATEGORIES
    ):
        return LineClass.REVENUE, False

    if "wage" in name or "salar" in name or "payroll" in name:
        return LineClass.WAGES, False

    return LineClass.ADMIN_EXPENSE, False


def line_class_of(item: BudgetLineItem) -> LineClass:
    """Carried class of an item, classifying untagged items on the fly."""
    if item.line_class is not None:
        return item.line_class
    return classify(item)[0]


def is_summary_row(item: BudgetLineItem) -> bool:
    if item.line_class is not None:
        return item.is_summary
    return classify(item)[1]


def default_tracking_type(line_class: LineClass, is_summary: bool) -> TrackingType:
    """Admin expenses follow the budget curve; everything else is entered."""
    if line_class == LineClass.ADMIN_EXPENSE and not is_summary:
        return TrackingType.PRO_RATED
    return TrackingType.DISCRETE


def is_trackable(item: BudgetLineItem) -> bool:
    """Whether the tracking type of an item may be changed by a user."""
    if item.is_header or is_summary_row(item):
        return False
    return line_class_of(item) not in (LineClass.HEADER, LineClass.OPERATING_PROFIT)


def tag_items(
    items: Iterable[BudgetLineItem],
    apply_default_tracking: bool = False,
) -> list[BudgetLineItem]:
    """Return copies of ``items`` carrying their classification.

    With ``apply_default_tracking`` items that have no stored tracking type
    (``tracking_type`` not explicitly set) get the default policy.
    """
    tagged: list[BudgetLineItem] = []
    for item in items:
        line_class, summary = classify(item)
        update: dict = {"line_class": line_class, "is_summary": summary}
        if apply_default_tracking and "tracking_type" not in item.model_fields_set:
            update["tracking_type"] = default_tracking_type(line_class, summary)
        tagged.append(item.model_copy(update=update))
        logger.debug("Classified %r as %s%s", item.name, line_class.value, " (total)" if summary else "")
    return tagged


def _members(items: Iterable[BudgetLineItem], classes: frozenset[LineClass]) -> list[BudgetLineItem]:
    return [
        i for i in items
        if not i.is_header and not is_summary_row(i) and line_class_of(i) in classes
    ]


def revenue_items(items: Iterable[BudgetLineItem]) -> list[BudgetLineItem]:
    """Revenue lines that make up turnover."""
    return _members(items, frozenset({LineClass.REVENUE}))


def cost_of_sales_items(items: Iterable[BudgetLineItem]) -> list[BudgetLineItem]:
    """Cost-of-sales lines, excluding the Cost of Sales total row."""
    return _members(items, frozenset({LineClass.COST_OF_SALES}))


def admin_items(items: Iterable[BudgetLineItem]) -> list[BudgetLineItem]:
    """Every overhead line (wages included) that makes up admin expenses."""
    return _members(items, ADMIN_CLASSES)


def find_summary_row(items: Iterable[BudgetLineItem], line_class: LineClass) -> BudgetLineItem | None:
    """First stored total row of a class, preferring highlighted rows."""
    candidates = [
        i for i in items
        if not i.is_header and is_summary_row(i) and line_class_of(i) == line_class
    ]
    if not candidates:
        return None
    highlighted = [i for i in candidates if i.is_highlighted]
    return (highlighted or candidates)[0]
