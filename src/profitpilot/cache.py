"""
Local forecast-settings cache.

A JSON file mapping ``forecast_{item_name}_{year}_{month}`` to a JSON
string of ``{"method": ..., "discrete_values": {...}}``. Settings read from
the store are mirrored here so later reads survive a store outage.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from profitpilot.models.budget import ForecastSettings

logger = logging.getLogger("profitpilot.cache")


def cache_key(item_name: str, year: int, month: int) -> str:
    return f"forecast_{item_name}_{year}_{month}"


class SettingsCache:
    """Forecast settings persisted to a local JSON file.

    Usage::

        cache = SettingsCache("~/.profitpilot/forecast_cache.json")
        cache.set("Rent", 2025, 3, ForecastSettings(method="fixed"))
        settings = cache.get("Rent", 2025, 3)
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable settings cache %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings cache %s: not a JSON object", self.path)
            return {}
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)

    def get(self, item_name: str, year: int, month: int) -> ForecastSettings | None:
        """Return cached settings, or ``None`` when missing or malformed."""
        key = cache_key(item_name, year, month)
        raw = self._load().get(key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw) if isinstance(raw, str) else raw
            return ForecastSettings.model_validate(payload)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Malformed cached forecast settings under %s: %s", key, e)
            return None

    def set(self, item_name: str, year: int, month: int, settings: ForecastSettings) -> None:
        data = self._load()
        data[cache_key(item_name, year, month)] = settings.model_dump_json()
        self._save(data)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
