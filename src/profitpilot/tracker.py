"""
P&L Tracker — one month of budget line items being viewed and edited.

The tracker owns the in-memory items for a period. Every figure it shows
comes from :func:`profitpilot.engine.compute_rollup`; nothing is written to
the store unless one of the explicit save commands is called:

- ``save_forecasts()`` — interactive save of edited items.
- ``update_all_forecasts()`` — bulk recompute-and-persist for the month.
- ``save_forecast_settings()`` / ``set_tracking_type()`` — settings edits.
- ``capture_snapshot()`` — point-in-time copy of the P&L.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from profitpilot.cache import SettingsCache
from profitpilot.engine.classifier import is_summary_row, is_trackable, tag_items
from profitpilot.engine.forecast import compute_forecast, needs_write_back, settings_forecast
from profitpilot.engine.rollup import compute_rollup
from profitpilot.forecast_settings import ForecastSettingsResolver
from profitpilot.models.budget import (
    BudgetLineItem,
    DayValue,
    ForecastSettings,
    Period,
    TrackingType,
)
from profitpilot.models.report import RollupResult, Snapshot
from profitpilot.stores.base import StoreBundle

logger = logging.getLogger("profitpilot.tracker")


def _stores_forecast(item: BudgetLineItem) -> bool:
    """Total rows are derived by the rollup and never get a stored forecast."""
    return item.id is not None and not item.is_header and not is_summary_row(item)


@dataclass
class SaveResult:
    """Outcome of an interactive save."""

    saved: int = 0
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class UpdateSummary:
    """Outcome of a bulk forecast update."""

    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.updated + self.unchanged + self.skipped + len(self.failed)


class PLTracker:
    """Editable P&L for one period.

    Usage::

        tracker = PLTracker(stores, Period.for_month(2025, 4), cache=cache)
        await tracker.load()
        tracker.set_manual_actual(rent_id, 4000)
        rollup = tracker.rollup()
        result = await tracker.save_forecasts()
    """

    def __init__(
        self,
        stores: StoreBundle,
        period: Period,
        cache: SettingsCache | None = None,
        default_pro_rated: bool = True,
    ) -> None:
        self.stores = stores
        self.period = period
        self.default_pro_rated = default_pro_rated
        self.settings = ForecastSettingsResolver(stores.settings, cache)
        self._items: list[BudgetLineItem] = []
        self._dirty: set[str] = set()
        self._dirty_daily: set[str] = set()
        self._overrides: set[str] = set()

    @property
    def items(self) -> list[BudgetLineItem]:
        return list(self._items)

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self._dirty)

    async def load(self) -> list[BudgetLineItem]:
        """Fetch, classify and attach forecast settings for the period's items."""
        year, month = self.period.year, self.period.month
        fetched = await self.stores.items.fetch(year, month)
        tagged = tag_items(fetched, apply_default_tracking=self.default_pro_rated)
        self._items = await self.settings.resolve_all(tagged, year, month)
        self._dirty.clear()
        self._dirty_daily.clear()
        self._overrides.clear()

        duplicates = self.duplicate_names()
        if duplicates:
            logger.warning(
                "Items share a name in %d-%02d; forecast settings are keyed by name: %s",
                year, month, ", ".join(duplicates),
            )
        logger.info("Loaded %d budget items for %d-%02d", len(self._items), year, month)
        return self.items

    def duplicate_names(self) -> list[str]:
        counts = Counter(i.name for i in self._items if not i.is_header)
        return sorted(name for name, n in counts.items() if n > 1)

    def rollup(self) -> RollupResult:
        return compute_rollup(self._items, self.period)

    # ------------------------------------------------------------------
    # Edits (in memory until saved)
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> BudgetLineItem:
        return self._items[self._index(item_id)]

    def _index(self, item_id: str) -> int:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx
        raise KeyError(f"Unknown budget item: {item_id}")

    def _replace(self, item_id: str, **update: object) -> BudgetLineItem:
        idx = self._index(item_id)
        item = self._items[idx].model_copy(update=update)
        self._items[idx] = item
        return item

    def _require_discrete(self, item_id: str) -> None:
        item = self.get(item_id)
        if item.tracking_type == TrackingType.PRO_RATED:
            raise ValueError(f"{item.name!r} is Pro-Rated; switch it to Discrete to enter actuals")

    def set_manual_actual(self, item_id: str, value: float | None) -> BudgetLineItem:
        """Set (or with ``None`` clear) the manually entered actual.

        Raises:
            ValueError: If a value is entered on a Pro-Rated item.
        """
        if value is not None:
            self._require_discrete(item_id)
        item = self._replace(item_id, manually_entered_actual=value)
        self._dirty.add(item_id)
        return item

    def set_daily_values(
        self, item_id: str, values: Mapping[int, float | None] | Iterable[DayValue]
    ) -> BudgetLineItem:
        """Merge entries into an item's daily ledger.

        Raises:
            ValueError: For Pro-Rated items, or if a day falls outside the
                period's month.
        """
        self._require_discrete(item_id)
        entries = (
            [DayValue(day=d, value=v) for d, v in values.items()]
            if isinstance(values, Mapping)
            else list(values)
        )
        for entry in entries:
            if entry.day > self.period.days_in_month:
                raise ValueError(
                    f"Day {entry.day} outside {self.period.year}-{self.period.month:02d}"
                )

        ledger = {d.day: d for d in self.get(item_id).daily_values}
        ledger.update({d.day: d for d in entries})
        item = self._replace(item_id, daily_values=[ledger[day] for day in sorted(ledger)])
        self._dirty.add(item_id)
        self._dirty_daily.add(item_id)
        return item

    def set_forecast_amount(self, item_id: str, value: float | None) -> BudgetLineItem:
        """Override the stored forecast (``None`` clears the override)."""
        item = self._replace(item_id, forecast_amount=value)
        self._dirty.add(item_id)
        self._overrides.add(item_id)
        return item

    async def set_tracking_type(self, item_id: str, tracking_type: TrackingType | str) -> BudgetLineItem:
        """Change and persist an item's tracking type.

        Raises:
            ValueError: For headers and total rows.
            StoreError: If the store write fails.
        """
        tracking_type = TrackingType(tracking_type)
        item = self.get(item_id)
        if not is_trackable(item):
            raise ValueError(f"Tracking type cannot be set on {item.name!r}")
        try:
            await self.stores.items.update_tracking_type(item_id, tracking_type)
        except Exception as e:
            logger.error("Failed to save tracking type for %r: %s", item.name, e)
            raise
        return self._replace(item_id, tracking_type=tracking_type)

    # ------------------------------------------------------------------
    # Explicit persistence
    # ------------------------------------------------------------------

    async def save_forecasts(self) -> SaveResult:
        """Persist edited items: daily ledgers, overrides and recomputed forecasts.

        Items that fail stay dirty so the save can be retried.
        """
        result = SaveResult()
        year, month = self.period.year, self.period.month
        for item_id in sorted(self._dirty):
            item = self.get(item_id)
            try:
                if item_id in self._dirty_daily:
                    await self.stores.items.save_daily_values(item_id, year, month, item.daily_values)
                    self._dirty_daily.discard(item_id)

                if item_id in self._overrides:
                    await self.stores.items.update_forecast(item_id, item.forecast_amount)
                    self._overrides.discard(item_id)
                elif _stores_forecast(item):
                    forecast = compute_forecast(item, self.period)
                    if needs_write_back(item, forecast):
                        await self.stores.items.update_forecast(item_id, forecast.value)
                        self._replace(item_id, forecast_amount=forecast.value)
            except Exception as e:
                logger.error("Failed to save %r: %s", item.name, e)
                result.failed[item.name] = str(e)
                continue
            self._dirty.discard(item_id)
            result.saved += 1

        logger.info("Saved %d items (%d failed)", result.saved, len(result.failed))
        return result

    async def update_all_forecasts(self) -> UpdateSummary:
        """Recompute every forecast and persist the ones that changed.

        Writes run one item at a time; a failed write is logged and the
        remaining items are still processed.
        """
        summary = UpdateSummary()
        for item in list(self._items):
            if not _stores_forecast(item):
                summary.skipped += 1
                continue
            forecast = compute_forecast(item, self.period)
            if not needs_write_back(item, forecast):
                summary.unchanged += 1
                continue
            try:
                await self.stores.items.update_forecast(item.id, forecast.value)
            except Exception as e:
                logger.warning("Failed to update forecast for %r: %s", item.name, e)
                summary.failed[item.name] = str(e)
                continue
            self._replace(item.id, forecast_amount=forecast.value)
            summary.updated += 1

        logger.info(
            "Forecast update %d-%02d: %d updated, %d unchanged, %d skipped, %d failed",
            self.period.year, self.period.month,
            summary.updated, summary.unchanged, summary.skipped, len(summary.failed),
        )
        return summary

    async def save_forecast_settings(self, item_id: str, settings: ForecastSettings) -> float:
        """Save an item's forecast method and store the forecast it yields.

        Returns:
            The forecast amount written for the item.
        """
        item = self.get(item_id)
        year, month = self.period.year, self.period.month
        value = settings_forecast(item, settings, self.period)
        try:
            await self.settings.save(item.name, year, month, settings)
            await self.stores.items.update_forecast(item_id, value)
        except Exception as e:
            logger.error("Failed to save forecast settings for %r: %s", item.name, e)
            raise
        self._replace(item_id, forecast_settings=settings, forecast_amount=value)
        self._overrides.discard(item_id)
        return value

    async def capture_snapshot(self) -> bool:
        """Store the current P&L as a snapshot. Returns ``False`` if any row failed."""
        rollup = self.rollup()
        stored = 0
        failures = 0
        for line in rollup.lines:
            if line.item.is_header:
                continue
            try:
                ok = await self.stores.snapshots.store(
                    rollup.year,
                    rollup.month,
                    line.item.category,
                    line.item.name,
                    line.budget,
                    line.actual,
                    line.forecast,
                )
            except Exception as e:
                logger.warning("Snapshot of %r failed: %s", line.item.name, e)
                ok = False
            if ok:
                stored += 1
            else:
                failures += 1
        logger.info("Captured snapshot of %d rows (%d failed)", stored, failures)
        return failures == 0

    async def latest_snapshot(self) -> list[Snapshot]:
        return await self.stores.snapshots.get_latest(self.period.year, self.period.month)
