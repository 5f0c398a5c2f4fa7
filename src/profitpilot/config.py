"""
ProfitPilot configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Configuration for the persistence backend."""

    type: str = Field(default="sql", description="Store type: supabase, sql, or a dotted factory path")
    credentials: dict[str, Any] = Field(
        default_factory=lambda: {"connection_string": "sqlite:///profitpilot.db"}
    )
    options: dict[str, Any] = Field(default_factory=dict)


class TrackerConfig(BaseModel):
    """P&L tracker behaviour."""

    cutoff_day: int | None = Field(
        default=None, ge=1, le=31, description="Elapsed day used for non-current months"
    )
    default_pro_rated: bool = Field(
        default=True, description="Default non-summary admin expenses to Pro-Rated tracking"
    )


class CacheConfig(BaseModel):
    """Local forecast-settings cache."""

    enabled: bool = True
    path: str = Field(default="~/.profitpilot/forecast_cache.json")


class ProfitPilotConfig(BaseModel):
    """Root configuration for ProfitPilot."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    # Output settings
    output_dir: str = Field(default="./profitpilot_reports")
    currency: str = Field(default="GBP")
    currency_symbol: str = Field(default="£")
    log_level: str = Field(default="WARNING")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> ProfitPilotConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_url = os.environ.get("PROFITPILOT_SUPABASE_URL")
        env_key = os.environ.get("PROFITPILOT_SUPABASE_KEY")
        env_db = os.environ.get("PROFITPILOT_DATABASE_URL")
        env_cache = os.environ.get("PROFITPILOT_CACHE_PATH")
        env_level = os.environ.get("PROFITPILOT_LOG_LEVEL")

        if env_url and env_key:
            store = data.get("store", {})
            store["type"] = "supabase"
            store["credentials"] = {"url": env_url, "api_key": env_key}
            data["store"] = store
        elif env_db:
            store = data.get("store", {})
            store["type"] = "sql"
            store["credentials"] = {"connection_string": env_db}
            data["store"] = store

        if env_cache:
            cache = data.get("cache", {})
            cache["path"] = env_cache
            data["cache"] = cache

        if env_level:
            data["log_level"] = env_level.upper()

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)
