"""
Forecast settings resolution.

Settings for an item are taken from the item itself, else from the
settings store, else from the local cache. A successful store read is
mirrored into the cache; a failed one falls through to the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from profitpilot.cache import SettingsCache
from profitpilot.models.budget import BudgetLineItem, ForecastSettings
from profitpilot.stores.base import ForecastSettingsStore

logger = logging.getLogger("profitpilot.forecast_settings")


class ForecastSettingsResolver:
    """Looks up and saves per-item forecast settings for one month."""

    def __init__(self, store: ForecastSettingsStore, cache: SettingsCache | None = None) -> None:
        self.store = store
        self.cache = cache

    async def resolve(self, item: BudgetLineItem, year: int, month: int) -> ForecastSettings | None:
        if item.forecast_settings is not None:
            return item.forecast_settings

        try:
            settings = await self.store.get(item.name, year, month)
        except Exception as e:
            logger.warning(
                "Could not load forecast settings for %r from store, trying cache: %s", item.name, e
            )
        else:
            if settings is not None:
                if self.cache is not None:
                    self.cache.set(item.name, year, month, settings)
                return settings

        if self.cache is not None:
            cached = self.cache.get(item.name, year, month)
            if cached is not None:
                logger.debug("Using cached forecast settings for %r", item.name)
            return cached
        return None

    async def resolve_all(
        self, items: Sequence[BudgetLineItem], year: int, month: int
    ) -> list[BudgetLineItem]:
        """Return copies of ``items`` with their forecast settings attached.

        Headers are skipped. Lookups run one item at a time.
        """
        resolved: list[BudgetLineItem] = []
        found = 0
        for item in items:
            if item.is_header:
                resolved.append(item)
                continue
            settings = await self.resolve(item, year, month)
            if settings is not None:
                found += 1
                item = item.model_copy(update={"forecast_settings": settings})
            resolved.append(item)
        logger.info("Resolved forecast settings for %d of %d items", found, len(items))
        return resolved

    async def save(self, item_name: str, year: int, month: int, settings: ForecastSettings) -> None:
        """Write settings to the store, then the cache.

        Raises:
            StoreError: If the store write fails (the cache is not updated).
        """
        await self.store.upsert(item_name, year, month, settings)
        if self.cache is not None:
            self.cache.set(item_name, year, month, settings)
        logger.info("Saved %s forecast settings for %r (%d-%02d)", settings.method.value, item_name, year, month)
