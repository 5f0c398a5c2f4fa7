"""
Budget File Importer — read a monthly P&L budget from CSV or Excel.

The sheet is read without a header row. Layout rules:

- A row whose first cell is text and whose other cells hold no numbers
  starts a new category.
- A row with a text name and at least one numeric (or currency-formatted)
  cell is an item; its budget is the first numeric cell.
- A row whose first cell is a number is an item with that budget, named by
  the second cell (``Item <n>`` when that is not text).
- Rows before the first category are ignored.

When a header row names at least three months (``March``, ``Apr``...) and
a target month is given, the budget is read from that month's column
instead of the first numeric cell.
"""

from __future__ import annotations

import calendar
import logging
import math
import re
from pathlib import Path
from typing import Any

import pandas as pd

from profitpilot.models.budget import BudgetLineItem, coerce_amount
from profitpilot.stores.base import BudgetItemStore

logger = logging.getLogger("profitpilot.importers.budget_file")

_MONTH_PATTERN = re.compile(
    r"^(" + "|".join(m.lower() for m in calendar.month_abbr[1:]) + r")", re.IGNORECASE
)
_EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def _clean(cell: Any) -> Any:
    if cell is None:
        return None
    if isinstance(cell, float) and math.isnan(cell):
        return None
    if isinstance(cell, str):
        cell = cell.strip()
        return cell or None
    return cell


def _number(cell: Any) -> float | None:
    """Numeric value of a cell, accepting currency-formatted text."""
    return coerce_amount(cell)


def _is_text(cell: Any) -> bool:
    return isinstance(cell, str) and _number(cell) is None


def read_rows(path: str | Path, sheet_name: str | int = 0) -> list[list[Any]]:
    """Read a budget sheet into a list of cleaned rows."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Budget file not found: {path}")

    if path.suffix.lower() in _EXCEL_SUFFIXES:
        df = pd.read_excel(path, sheet_name=sheet_name, header=None, engine="openpyxl")
    else:
        df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, skip_blank_lines=False)

    return [[_clean(cell) for cell in row] for row in df.itertuples(index=False, name=None)]


def detect_month_columns(rows: list[list[Any]]) -> tuple[int | None, dict[int, int]]:
    """Find the header row naming the months.

    Returns:
        ``(row_index, {month_number: column_index})``, or ``(None, {})``
        when no row names at least three months.
    """
    for idx, row in enumerate(rows):
        columns: dict[int, int] = {}
        for col, cell in enumerate(row[1:], start=1):
            if not isinstance(cell, str):
                continue
            match = _MONTH_PATTERN.match(cell)
            if match:
                month = [m.lower() for m in calendar.month_abbr].index(match.group(1).lower())
                columns.setdefault(month, col)
        if len(columns) >= 3:
            return idx, columns
    return None, {}


def parse_budget_rows(rows: list[list[Any]], month: int | None = None) -> list[BudgetLineItem]:
    """Turn sheet rows into budget line items.

    Raises:
        ValueError: If no items are found.
    """
    header_idx, month_columns = detect_month_columns(rows) if month else (None, {})
    column = month_columns.get(month) if month else None
    if column is not None:
        logger.info("Reading budgets for month %d from column %d", month, column)

    items: list[BudgetLineItem] = []
    category = ""
    for idx, row in enumerate(rows):
        if idx == header_idx or not row:
            continue
        first = row[0]
        if first is None:
            continue

        rest = row[1:]
        if _is_text(first):
            if not any(_number(cell) is not None for cell in rest):
                category = first
                continue
            if not category:
                continue

            name_lower = first.lower()
            if column is not None:
                if "year" in name_lower and "end" in name_lower:
                    continue
                budget = _number(row[column]) if column < len(row) else None
            else:
                budget = next((n for n in map(_number, rest) if n is not None), None)
            if budget is None:
                continue
            items.append(BudgetLineItem(category=category, name=first, budget_amount=budget))

        elif _number(first) is not None and len(row) > 1 and category:
            budget = _number(first)
            name = row[1] if _is_text(row[1]) else f"Item {budget:g}"
            items.append(BudgetLineItem(category=category, name=name, budget_amount=budget))

    if not items:
        raise ValueError(
            "No valid budget items found in the spreadsheet. Please check the format."
        )
    return items


def load_budget_file(
    path: str | Path, month: int | None = None, sheet_name: str | int = 0
) -> list[BudgetLineItem]:
    """Parse a CSV or Excel budget file."""
    items = parse_budget_rows(read_rows(path, sheet_name=sheet_name), month=month)
    logger.info("Parsed %d budget items from %s", len(items), Path(path).name)
    return items


async def import_budget(
    store: BudgetItemStore,
    path: str | Path,
    year: int,
    month: int,
    sheet_name: str | int = 0,
) -> int:
    """Replace a month's budget with the contents of a file.

    Returns:
        Number of items written.
    """
    items = load_budget_file(path, month=month, sheet_name=sheet_name)
    for item in items:
        item.year, item.month = year, month
    return await store.replace_month(year, month, items)
