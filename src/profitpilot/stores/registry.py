"""
Store Registry — builds the persistence backend from config.

Supports the built-in backends and plugin-style loading of custom ones.
"""

from __future__ import annotations

import importlib
import logging

from profitpilot.config import ProfitPilotConfig, StoreConfig
from profitpilot.stores.base import StoreBundle

logger = logging.getLogger("profitpilot.stores.registry")

# Built-in store type mapping
_BUILTIN_STORES: dict[str, str] = {
    "supabase": "profitpilot.stores.supabase_store.create_stores",
    "sql": "profitpilot.stores.sql_store.create_stores",
}


def available_backends() -> list[str]:
    """Names of the built-in store backends."""
    return sorted(_BUILTIN_STORES)


def create_store_bundle(config: StoreConfig) -> StoreBundle:
    """Instantiate the stores for a store config.

    ``config.type`` is a built-in name or a fully qualified path to a
    factory accepting ``(credentials, **options)`` and returning a
    :class:`StoreBundle`.

    Raises:
        ValueError: If the backend cannot be loaded.
    """
    factory_path = _BUILTIN_STORES.get(config.type)
    if not factory_path:
        # Try loading as a fully qualified factory path (plugin support)
        factory_path = config.type

    try:
        module_path, attr = factory_path.rsplit(".", 1)
        module = importlib.import_module(module_path)
        factory = getattr(module, attr)
    except (ValueError, ImportError, AttributeError) as e:
        logger.error("Cannot load store '%s': %s", config.type, e)
        raise ValueError(f"Unknown store type: {config.type!r}") from e

    bundle = factory(credentials=config.credentials, **config.options)
    logger.info("Using %s store backend", bundle.backend)
    return bundle


def build_stores(config: ProfitPilotConfig) -> StoreBundle:
    """Build the store bundle for a root config."""
    return create_store_bundle(config.store)
