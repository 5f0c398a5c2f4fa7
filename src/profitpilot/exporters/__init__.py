"""Exporters package — convert P&L rollups to output formats."""
from profitpilot.exporters.markdown import render_markdown

__all__ = ["render_markdown"]
