"""
ProfitPilot — Main orchestrator.

The ProfitPilot class is the top-level entry point that wires config,
persistence stores and the local settings cache into P&L trackers for
individual months.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from profitpilot.cache import SettingsCache
from profitpilot.config import ProfitPilotConfig
from profitpilot.importers.budget_file import import_budget
from profitpilot.models.budget import Period
from profitpilot.models.report import RollupResult
from profitpilot.stores.base import StoreBundle
from profitpilot.stores.registry import build_stores
from profitpilot.tracker import PLTracker

logger = logging.getLogger("profitpilot")


@dataclass
class ProfitPilot:
    """Top-level orchestrator for ProfitPilot.

    Usage::

        from profitpilot import ProfitPilot

        pilot = ProfitPilot.from_config("profitpilot.yaml")
        tracker = await pilot.open_tracker(2025, 4)
        print(tracker.rollup().operating_profit.forecast)
        await pilot.close()

    ProfitPilot coordinates:
    - **Stores**: budget items, forecast settings and snapshots.
    - **Cache**: local copy of forecast settings for store outages.
    - **Trackers**: one editable P&L per month.
    """

    config: ProfitPilotConfig
    stores: StoreBundle | None = None
    cache: SettingsCache | None = field(default=None, repr=False)

    @classmethod
    def from_config(cls, config_path: str | None = None, **overrides: Any) -> ProfitPilot:
        """Create a ProfitPilot instance from a config file or keyword arguments."""
        config = ProfitPilotConfig.load(config_path, **overrides)
        instance = cls(config=config)
        instance._setup()
        return instance

    def _setup(self) -> None:
        """Initialize stores and the settings cache."""
        if self.stores is None:
            self.stores = build_stores(self.config)
        if self.cache is None and self.config.cache.enabled:
            self.cache = SettingsCache(self.config.cache.path)
        logger.info(
            "ProfitPilot initialized with %s store (cache %s)",
            self.stores.backend,
            "on" if self.cache else "off",
        )

    def period(self, year: int, month: int, today: date | None = None) -> Period:
        """Reporting period for a month, honouring the configured cutoff day."""
        return Period.for_month(year, month, today=today, cutoff_day=self.config.tracker.cutoff_day)

    def tracker(self, year: int, month: int, today: date | None = None) -> PLTracker:
        """Create an unloaded tracker for a month."""
        if self.stores is None:
            self._setup()
        assert self.stores is not None
        return PLTracker(
            self.stores,
            self.period(year, month, today=today),
            cache=self.cache,
            default_pro_rated=self.config.tracker.default_pro_rated,
        )

    async def open_tracker(self, year: int, month: int, today: date | None = None) -> PLTracker:
        """Create a tracker for a month and load its items."""
        tracker = self.tracker(year, month, today=today)
        await tracker.load()
        return tracker

    async def report(self, year: int, month: int, today: date | None = None) -> RollupResult:
        """Load a month and compute its P&L rollup."""
        tracker = await self.open_tracker(year, month, today=today)
        return tracker.rollup()

    def report_sync(self, year: int, month: int, today: date | None = None) -> RollupResult:
        """Synchronous wrapper around :meth:`report`."""

        async def _run() -> RollupResult:
            try:
                return await self.report(year, month, today=today)
            finally:
                await self.close()

        return asyncio.run(_run())

    async def import_budget(self, path: str | Path, year: int, month: int) -> int:
        """Replace a month's budget items with the contents of a CSV or Excel file."""
        if self.stores is None:
            self._setup()
        assert self.stores is not None
        count = await import_budget(self.stores.items, path, year, month)
        logger.info("Imported %d budget items for %d-%02d", count, year, month)
        return count

    async def health_check(self) -> list[dict[str, Any]]:
        """Check connectivity of every store."""
        if self.stores is None:
            self._setup()
        assert self.stores is not None
        return [
            await store.health_check()
            for store in (self.stores.items, self.stores.settings, self.stores.snapshots)
        ]

    async def close(self) -> None:
        if self.stores is not None:
            await self.stores.close()
