"""
Example: Track a restaurant's June P&L.

Run (local SQLite database, created next to this script):
    python examples/restaurant/run_tracker.py

Or via CLI:
    profitpilot import-budget examples/restaurant/budget.csv --year 2025 --month 6
    profitpilot report --year 2025 --month 6 --cutoff-day 15
"""

import asyncio
from datetime import date
from pathlib import Path

from profitpilot import ProfitPilot
from profitpilot.exporters.markdown import render_markdown
from profitpilot.models.budget import ForecastSettings

# Get the directory where this script lives
SCRIPT_DIR = Path(__file__).parent.resolve()
BUDGET_PATH = SCRIPT_DIR / "budget.csv"
DB_PATH = SCRIPT_DIR / "joes_diner.db"


async def main() -> None:
    pilot = ProfitPilot.from_config(
        None,
        store={"type": "sql", "credentials": {"connection_string": f"sqlite:///{DB_PATH}"}},
        cache={"path": str(SCRIPT_DIR / "forecast_cache.json")},
        tracker={"cutoff_day": 15},
    )

    try:
        count = await pilot.import_budget(BUDGET_PATH, 2025, 6)
        print(f"Imported {count} budget lines for June 2025")

        tracker = await pilot.open_tracker(2025, 6, today=date(2025, 7, 1))
        ids = {item.name: item.id for item in tracker.items}

        # Takings and invoices to day 15
        tracker.set_daily_values(ids["Food Revenue"], {d: 2_000 for d in range(1, 16)})
        tracker.set_daily_values(ids["Wet Revenue"], {d: 1_350 for d in range(1, 16)})
        tracker.set_manual_actual(ids["Food Cost of Sales"], 9_200)
        tracker.set_manual_actual(ids["Wet Cost of Sales"], 6_000)
        tracker.set_manual_actual(ids["Wages"], 7_000)

        # Rent defaults to Pro-Rated; the first invoice is in, so track it discretely
        await tracker.set_tracking_type(ids["Rent"], "Discrete")
        tracker.set_manual_actual(ids["Rent"], 4_000)

        # Marketing has a known campaign spend on top of its budget
        await tracker.save_forecast_settings(
            ids["Marketing"],
            ForecastSettings(method="fixed_plus", discrete_values={"summer_campaign": 450}),
        )

        result = await tracker.save_forecasts()
        print(f"Saved {result.saved} edited lines")

        rollup = tracker.rollup()
        for s in rollup.summaries:
            print(f"  {s.label:18} forecast £{s.forecast:>12,.2f}  ({s.forecast_pct:5.1f}% of turnover)")

        if await tracker.capture_snapshot():
            print("Snapshot stored")

        Path("profitpilot_reports").mkdir(exist_ok=True)
        Path("profitpilot_reports/joes_diner_june.md").write_text(render_markdown(rollup))
        print("\nReport saved to profitpilot_reports/joes_diner_june.md")
    finally:
        await pilot.close()


if __name__ == "__main__":
    asyncio.run(main())
