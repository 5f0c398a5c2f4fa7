"""Stores package — persistence backends for budgets, settings and snapshots."""
from profitpilot.stores.base import (
    BudgetItemStore,
    ForecastSettingsStore,
    SnapshotService,
    StoreBundle,
    StoreError,
)
from profitpilot.stores.registry import build_stores, create_store_bundle

__all__ = [
    "BudgetItemStore",
    "ForecastSettingsStore",
    "SnapshotService",
    "StoreBundle",
    "StoreError",
    "build_stores",
    "create_store_bundle",
]
