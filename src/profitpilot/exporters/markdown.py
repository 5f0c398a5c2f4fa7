"""
Markdown report exporter.

Renders a RollupResult as a Markdown P&L tracker report, suitable for
GitHub, Notion, or any Markdown viewer.
"""

from __future__ import annotations

import calendar

from profitpilot.models.report import RollupResult


def _money(amount: float, symbol: str) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def _marker(favourable: bool | None) -> str:
    if favourable is None:
        return ""
    return " 🟢" if favourable else " 🔴"


def render_markdown(rollup: RollupResult, currency_symbol: str = "£") -> str:
    """Render a RollupResult as Markdown."""
    lines: list[str] = []
    month_name = calendar.month_name[rollup.month]

    # Header
    lines.append(f"# 📒 P&L Tracker — {month_name} {rollup.year}")
    lines.append("")
    lines.append(f"*Generated: {rollup.generated_at.strftime('%Y-%m-%d %H:%M UTC')}*")
    lines.append(f"*Day {rollup.day_of_month} of {rollup.days_in_month}*")
    lines.append("")

    if rollup.forecast_denominator_clamped:
        lines.append(
            "> ⚠️ No turnover forecast could be resolved; forecast percentages "
            f"use a denominator of {rollup.forecast_denominator:g}."
        )
        lines.append("")

    # Summary
    lines.append("## 📊 Summary")
    lines.append("")
    lines.append("| Line | Budget | Pro-Rated | Actual | MTD Var | Forecast | Fcst % | Fcst Var |")
    lines.append("|------|-------:|----------:|-------:|--------:|---------:|-------:|---------:|")
    for s in rollup.summaries:
        lines.append(
            f"| **{s.label}** "
            f"| {_money(s.budget, currency_symbol)} "
            f"| {_money(s.pro_rated, currency_symbol)} "
            f"| {_money(s.actual, currency_symbol)} "
            f"| {_money(s.mtd_variance, currency_symbol)}{_marker(s.mtd_favourable)} "
            f"| {_money(s.forecast, currency_symbol)} "
            f"| {s.forecast_pct:.1f}% "
            f"| {_money(s.forecast_variance, currency_symbol)}{_marker(s.forecast_favourable)} |"
        )
    lines.append("")

    # Line items, grouped by category in stored order
    lines.append("## 🧾 Line Items")
    lines.append("")
    category = None
    for line in rollup.lines:
        if line.item.is_header:
            lines.append(f"### {line.item.name}")
            lines.append("")
            category = None
            continue
        if line.item.category != category:
            category = line.item.category
            if category:
                lines.append(f"**{category}**")
                lines.append("")
            lines.append("| Item | Budget | Pro-Rated | Actual | Forecast | Basis |")
            lines.append("|------|-------:|----------:|-------:|---------:|-------|")
        name = f"**{line.item.name}**" if line.item.is_summary else line.item.name
        lines.append(
            f"| {name} "
            f"| {_money(line.budget, currency_symbol)} "
            f"| {_money(line.pro_rated, currency_symbol)} "
            f"| {_money(line.actual, currency_symbol)}{_marker(line.mtd_favourable)} "
            f"| {_money(line.forecast, currency_symbol)}{_marker(line.forecast_favourable)} "
            f"| {line.forecast_basis} |"
        )
    lines.append("")

    # Footer
    lines.append("---")
    lines.append("*Report generated by ProfitPilot*")
    lines.append("")

    return "\n".join(lines)
