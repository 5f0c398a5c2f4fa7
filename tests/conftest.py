"""Shared fixtures: in-memory stores and a sample restaurant P&L."""

from __future__ import annotations

import pytest

from profitpilot.models.budget import (
    BudgetLineItem,
    DayValue,
    ForecastSettings,
    Period,
    TrackingType,
)
from profitpilot.models.report import Snapshot
from profitpilot.stores.base import (
    BudgetItemStore,
    ForecastSettingsStore,
    SnapshotService,
    StoreBundle,
    StoreError,
)


class MemoryBudgetItemStore(BudgetItemStore):
    """Budget items held in a dict, with optional per-item write failures."""

    name = "memory"

    def __init__(self, items: list[BudgetLineItem] | None = None) -> None:
        self.items: dict[str, BudgetLineItem] = {i.id: i for i in items or []}
        self.forecast_writes: list[tuple[str, float | None]] = []
        self.tracking_writes: list[tuple[str, TrackingType]] = []
        self.daily_writes: list[tuple[str, list[DayValue]]] = []
        self.fail_ids: set[str] = set()

    async def fetch(self, year: int, month: int) -> list[BudgetLineItem]:
        return [i.model_copy() for i in self.items.values()]

    async def update_forecast(self, item_id: str, forecast_amount: float | None) -> None:
        if item_id in self.fail_ids:
            raise StoreError(f"write rejected for {item_id}")
        self.forecast_writes.append((item_id, forecast_amount))
        self.items[item_id] = self.items[item_id].model_copy(update={"forecast_amount": forecast_amount})

    async def update_tracking_type(self, item_id: str, tracking_type: TrackingType) -> None:
        if item_id in self.fail_ids:
            raise StoreError(f"write rejected for {item_id}")
        self.tracking_writes.append((item_id, tracking_type))

    async def save_daily_values(
        self, item_id: str, year: int, month: int, daily_values: list[DayValue]
    ) -> None:
        if item_id in self.fail_ids:
            raise StoreError(f"write rejected for {item_id}")
        self.daily_writes.append((item_id, list(daily_values)))

    async def replace_month(self, year: int, month: int, items: list[BudgetLineItem]) -> int:
        self.items = {str(n): i.model_copy(update={"id": str(n)}) for n, i in enumerate(items, 1)}
        return len(items)


class MemorySettingsStore(ForecastSettingsStore):
    name = "memory"

    def __init__(self) -> None:
        self.settings: dict[tuple[str, int, int], ForecastSettings] = {}
        self.fail = False

    async def get(self, item_name: str, year: int, month: int) -> ForecastSettings | None:
        if self.fail:
            raise StoreError("settings store offline")
        return self.settings.get((item_name, year, month))

    async def upsert(self, item_name: str, year: int, month: int, settings: ForecastSettings) -> None:
        if self.fail:
            raise StoreError("settings store offline")
        self.settings[(item_name, year, month)] = settings


class MemorySnapshotService(SnapshotService):
    name = "memory"

    def __init__(self) -> None:
        self.rows: list[Snapshot] = []
        self.reject: set[str] = set()

    async def store(self, year, month, category, name, budget_amount, actual_amount, forecast_amount) -> bool:
        if name in self.reject:
            return False
        self.rows.append(
            Snapshot(
                category=category,
                name=name,
                budget_amount=budget_amount,
                actual_amount=actual_amount,
                forecast_amount=forecast_amount,
            )
        )
        return True

    async def get_latest(self, year: int, month: int) -> list[Snapshot]:
        return list(self.rows)


def sample_items() -> list[BudgetLineItem]:
    """June P&L: turnover £90k budget, £50k to day 15; admin £20k budget, £11k to date."""
    return [
        BudgetLineItem(id="h1", name="Revenue", category="Revenue", is_header=True),
        BudgetLineItem(id="r1", name="Food Revenue", category="Revenue", budget_amount=60_000, actual_amount=30_000),
        BudgetLineItem(id="r2", name="Wet Revenue", category="Revenue", budget_amount=30_000, actual_amount=20_000),
        BudgetLineItem(id="t1", name="Turnover", category="Revenue", budget_amount=90_000),
        BudgetLineItem(id="c1", name="Food Cost of Sales", category="Cost of Sales", budget_amount=18_000, actual_amount=9_000),
        BudgetLineItem(id="c2", name="Wet Cost of Sales", category="Cost of Sales", budget_amount=9_000, actual_amount=6_000),
        BudgetLineItem(id="w1", name="Wages", category="Admin", budget_amount=12_000, actual_amount=7_000),
        BudgetLineItem(id="a1", name="Rent", category="Admin", budget_amount=8_000, manually_entered_actual=4_000, tracking_type="Discrete"),
    ]


@pytest.fixture
def period() -> Period:
    return Period(year=2025, month=6, day_of_month=15, days_in_month=30)


@pytest.fixture
def items() -> list[BudgetLineItem]:
    return sample_items()


@pytest.fixture
def stores(items) -> StoreBundle:
    return StoreBundle(
        items=MemoryBudgetItemStore(items),
        settings=MemorySettingsStore(),
        snapshots=MemorySnapshotService(),
        backend="memory",
    )


def memory_stores(credentials=None, **options) -> StoreBundle:
    """Store factory loadable by dotted path (``conftest.memory_stores``)."""
    items = MemoryBudgetItemStore(sample_items() if options.get("seed") else [])
    items.fail_ids.update(options.get("fail_ids", []))
    settings = MemorySettingsStore()
    settings.fail = bool(options.get("fail_settings"))
    return StoreBundle(
        items=items,
        settings=settings,
        snapshots=MemorySnapshotService(),
        backend="memory",
    )
