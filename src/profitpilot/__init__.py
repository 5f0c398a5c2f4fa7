"""
ProfitPilot — P&L tracking and forecasting for restaurants.

Budget, pro-rated budget, month-to-date actuals and full-month forecasts
for every line of the P&L.
"""

__version__ = "0.1.0"
__all__ = ["ProfitPilot"]

from profitpilot.pilot import ProfitPilot  # noqa: E402
