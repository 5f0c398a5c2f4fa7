"""Importers package — budget spreadsheets into budget line items."""
from profitpilot.importers.budget_file import import_budget, load_budget_file, parse_budget_rows

__all__ = ["import_budget", "load_budget_file", "parse_budget_rows"]
