"""
ProfitPilot P&L engine — pure computation modules.

Classification, pro-ration, actual resolution, forecasting and summary
rollup. Nothing in this package performs I/O.
"""

from profitpilot.engine.actuals import ActualSource, resolve_actual, resolve_actual_with_source
from profitpilot.engine.classifier import (
    classify,
    default_tracking_type,
    is_trackable,
    line_class_of,
    tag_items,
)
from profitpilot.engine.forecast import (
    ForecastBasis,
    ForecastEngine,
    ForecastResult,
    compute_forecast,
    linear_projection,
    needs_write_back,
)
from profitpilot.engine.proration import pro_rated_budget, summary_pro_rated_budget
from profitpilot.engine.rollup import compute_rollup

__all__ = [
    "ActualSource",
    "ForecastBasis",
    "ForecastEngine",
    "ForecastResult",
    "classify",
    "compute_forecast",
    "compute_rollup",
    "default_tracking_type",
    "is_trackable",
    "line_class_of",
    "linear_projection",
    "needs_write_back",
    "pro_rated_budget",
    "resolve_actual",
    "resolve_actual_with_source",
    "summary_pro_rated_budget",
    "tag_items",
]
