"""
Base stores — abstract persistence interfaces for the P&L tracker.

Stores are the bridge between ProfitPilot and the hosted relational
database that holds budgets, forecast settings and snapshots. The engine
never talks to a store directly; :class:`profitpilot.tracker.PLTracker`
does, through these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from profitpilot.models.budget import BudgetLineItem, DayValue, ForecastSettings, TrackingType
    from profitpilot.models.report import Snapshot


class StoreError(RuntimeError):
    """A persistence call failed (network, HTTP status, database driver)."""


class _HealthCheckMixin:
    name: str = "base"

    async def validate_credentials(self) -> bool:
        """Validate that credentials are correct and the store is reachable."""
        return True

    async def health_check(self) -> dict[str, Any]:
        """Check store health and connectivity."""
        try:
            valid = await self.validate_credentials()
            return {"store": self.name, "healthy": valid, "error": None}
        except Exception as e:
            return {"store": self.name, "healthy": False, "error": str(e)}


class BudgetItemStore(_HealthCheckMixin, ABC):
    """Monthly budget line items and their tracking data.

    To add a backend, subclass and implement every abstract method::

        class MyStore(BudgetItemStore):
            name = "my_store"

            async def fetch(self, year, month):
                ...
    """

    @abstractmethod
    async def fetch(self, year: int, month: int) -> list[BudgetLineItem]:
        """Return the month's items with tracking types and daily ledgers merged in."""
        ...

    @abstractmethod
    async def update_forecast(self, item_id: str, forecast_amount: float | None) -> None:
        """Persist the forecast amount of one item."""
        ...

    @abstractmethod
    async def update_tracking_type(self, item_id: str, tracking_type: TrackingType) -> None:
        """Persist the tracking type of one item."""
        ...

    @abstractmethod
    async def save_daily_values(
        self, item_id: str, year: int, month: int, daily_values: list[DayValue]
    ) -> None:
        """Upsert the daily ledger of one item."""
        ...

    @abstractmethod
    async def replace_month(self, year: int, month: int, items: list[BudgetLineItem]) -> int:
        """Delete the month's items and insert ``items``. Returns the count inserted."""
        ...


class ForecastSettingsStore(_HealthCheckMixin, ABC):
    """Per-item forecast method configuration, keyed by item name and month."""

    @abstractmethod
    async def get(self, item_name: str, year: int, month: int) -> ForecastSettings | None:
        ...

    @abstractmethod
    async def upsert(
        self, item_name: str, year: int, month: int, settings: ForecastSettings
    ) -> None:
        ...


class SnapshotService(_HealthCheckMixin, ABC):
    """Point-in-time copies of the P&L."""

    @abstractmethod
    async def store(
        self,
        year: int,
        month: int,
        category: str,
        name: str,
        budget_amount: float,
        actual_amount: float | None,
        forecast_amount: float | None,
    ) -> bool:
        """Store one row. Returns ``False`` when the store rejected it."""
        ...

    @abstractmethod
    async def get_latest(self, year: int, month: int) -> list[Snapshot]:
        ...


@dataclass
class StoreBundle:
    """The three stores a tracker needs, usually sharing one backend."""

    items: BudgetItemStore
    settings: ForecastSettingsStore
    snapshots: SnapshotService
    backend: str = "base"

    async def close(self) -> None:
        for store in (self.items, self.settings, self.snapshots):
            close = getattr(store, "close", None)
            if close is not None:
                await close()
