"""
Supabase Store — budgets, forecast settings and snapshots in a hosted
Postgres database, over the Supabase REST (PostgREST) API.

Tables:
- ``budget_items`` (id, year, month, category, name, budget_amount,
  actual_amount, forecast_amount)
- ``budget_item_tracking`` (budget_item_id, tracking_type)
- ``budget_item_daily_values`` (budget_item_id, year, month, day, value)
- ``cost_item_forecast_settings`` (item_name, year, month, method, discrete_values)

RPC functions: ``store_pl_snapshot`` and ``get_latest_pl_snapshots``.

Requires the project URL and an API key (anon or service role).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from profitpilot.models.budget import (
    BudgetLineItem,
    DayValue,
    ForecastSettings,
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

logger = logging.getLogger("profitpilot.stores.supabase")


def _in_filter(values: list[str]) -> str:
    return "in.(" + ",".join(values) + ")"


class SupabaseClient:
    """Minimal async PostgREST client shared by the Supabase stores.

    Usage::

        client = SupabaseClient(url="https://xyz.supabase.co", api_key="...")
        rows = await client.select("budget_items", {"year": "eq.2025"})
        await client.close()
    """

    def __init__(self, url: str, api_key: str, timeout: float = 30.0) -> None:
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        client = await self._get_client()
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await client.request(method, path, params=params, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"Supabase {method} {path} failed: {e}") from e
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def select(self, table: str, filters: dict[str, str], select: str = "*") -> list[dict[str, Any]]:
        params = {"select": select, **filters}
        return await self._request("GET", f"/{table}", params=params) or []

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        await self._request("POST", f"/{table}", body=rows, prefer="return=minimal")

    async def upsert(self, table: str, rows: list[dict[str, Any]], on_conflict: str) -> None:
        await self._request(
            "POST",
            f"/{table}",
            params={"on_conflict": on_conflict},
            body=rows,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def update(self, table: str, filters: dict[str, str], values: dict[str, Any]) -> None:
        await self._request("PATCH", f"/{table}", params=filters, body=values, prefer="return=minimal")

    async def delete(self, table: str, filters: dict[str, str]) -> None:
        await self._request("DELETE", f"/{table}", params=filters)

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        return await self._request("POST", f"/rpc/{function}", body=params)

    async def ping(self) -> bool:
        client = await self._get_client()
        try:
            response = await client.get("/budget_items", params={"select": "id", "limit": "1"})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Supabase credential validation failed: %s", e)
            return False


class _SupabaseStoreMixin:
    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    async def validate_credentials(self) -> bool:
        if not self.client.url or not self.client.api_key:
            return False
        return await self.client.ping()

    async def close(self) -> None:
        await self.client.close()


class SupabaseBudgetItemStore(_SupabaseStoreMixin, BudgetItemStore):
    """Budget items from the ``budget_items`` table and its tracking tables."""

    name = "supabase"

    async def fetch(self, year: int, month: int) -> list[BudgetLineItem]:
        filters = {"year": f"eq.{year}", "month": f"eq.{month}"}
        rows = await self.client.select("budget_items", {**filters, "order": "created_at.asc"})
        if not rows:
            logger.info("No budget items for %d-%02d", year, month)
            return []

        ids = [str(r["id"]) for r in rows if r.get("id") is not None]
        tracking: dict[str, str] = {}
        if ids:
            tracking_rows = await self.client.select(
                "budget_item_tracking", {"budget_item_id": _in_filter(ids)}
            )
            tracking = {str(t["budget_item_id"]): t["tracking_type"] for t in tracking_rows}

        daily_rows = await self.client.select(
            "budget_item_daily_values", {**filters, "order": "day.asc"}
        )
        daily: dict[str, list[DayValue]] = {}
        for d in daily_rows:
            daily.setdefault(str(d["budget_item_id"]), []).append(
                DayValue(day=d["day"], value=d.get("value"))
            )

        items = [self._row_to_item(r, tracking, daily) for r in rows]
        logger.info("Fetched %d budget items for %d-%02d from Supabase", len(items), year, month)
        return items

    @staticmethod
    def _row_to_item(
        row: dict[str, Any],
        tracking: dict[str, str],
        daily: dict[str, list[DayValue]],
    ) -> BudgetLineItem:
        item_id = str(row["id"]) if row.get("id") is not None else None
        data: dict[str, Any] = {
            "id": item_id,
            "category": row.get("category") or "",
            "name": row.get("name") or "",
            "budget_amount": row.get("budget_amount"),
            "actual_amount": row.get("actual_amount"),
            "forecast_amount": row.get("forecast_amount"),
            "daily_values": daily.get(item_id or "", []),
            "year": row.get("year"),
            "month": row.get("month"),
        }
        if item_id in tracking:
            data["tracking_type"] = tracking[item_id]
        return BudgetLineItem(**data)

    async def update_forecast(self, item_id: str, forecast_amount: float | None) -> None:
        await self.client.update(
            "budget_items", {"id": f"eq.{item_id}"}, {"forecast_amount": forecast_amount}
        )

    async def update_tracking_type(self, item_id: str, tracking_type: TrackingType) -> None:
        await self.client.upsert(
            "budget_item_tracking",
            [{"budget_item_id": item_id, "tracking_type": TrackingType(tracking_type).value}],
            on_conflict="budget_item_id",
        )

    async def save_daily_values(
        self, item_id: str, year: int, month: int, daily_values: list[DayValue]
    ) -> None:
        if not daily_values:
            return
        rows = [
            {"budget_item_id": item_id, "year": year, "month": month, "day": d.day, "value": d.value}
            for d in daily_values
        ]
        await self.client.upsert(
            "budget_item_daily_values", rows, on_conflict="budget_item_id,year,month,day"
        )

    async def replace_month(self, year: int, month: int, items: list[BudgetLineItem]) -> int:
        await self.client.delete("budget_items", {"year": f"eq.{year}", "month": f"eq.{month}"})
        logger.info("Deleted existing budget items for %d-%02d", year, month)
        if not items:
            return 0
        await self.client.insert(
            "budget_items",
            [
                {
                    "year": year,
                    "month": month,
                    "category": i.category,
                    "name": i.name,
                    "budget_amount": i.budget_amount,
                    "actual_amount": i.actual_amount or None,
                    "forecast_amount": i.forecast_amount or None,
                }
                for i in items
            ],
        )
        logger.info("Inserted %d budget items for %d-%02d", len(items), year, month)
        return len(items)


class SupabaseForecastSettingsStore(_SupabaseStoreMixin, ForecastSettingsStore):
    """Forecast settings from ``cost_item_forecast_settings``."""

    name = "supabase"
    table = "cost_item_forecast_settings"

    async def get(self, item_name: str, year: int, month: int) -> ForecastSettings | None:
        rows = await self.client.select(
            self.table,
            {
                "item_name": f"eq.{item_name}",
                "year": f"eq.{year}",
                "month": f"eq.{month}",
                "limit": "1",
            },
            select="method,discrete_values",
        )
        if not rows:
            return None

        row = rows[0]
        values = row.get("discrete_values") or {}
        try:
            if isinstance(values, str):
                values = json.loads(values)
            return ForecastSettings(method=row.get("method") or "fixed", discrete_values=values or {})
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring malformed forecast settings for %r: %s", item_name, e)
            return None

    async def upsert(
        self, item_name: str, year: int, month: int, settings: ForecastSettings
    ) -> None:
        await self.client.upsert(
            self.table,
            [
                {
                    "item_name": item_name,
                    "year": year,
                    "month": month,
                    "method": settings.method.value,
                    "discrete_values": settings.discrete_values,
                }
            ],
            on_conflict="item_name,year,month",
        )


class SupabaseSnapshotService(_SupabaseStoreMixin, SnapshotService):
    """P&L snapshots through the ``store_pl_snapshot`` RPC."""

    name = "supabase"

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
        try:
            await self.client.rpc(
                "store_pl_snapshot",
                {
                    "p_year": year,
                    "p_month": month,
                    "p_category": category,
                    "p_name": name,
                    "p_budget_amount": budget_amount,
                    "p_actual_amount": actual_amount,
                    "p_forecast_amount": forecast_amount,
                },
            )
        except StoreError as e:
            logger.error("Error storing snapshot for %r: %s", name, e)
            return False
        return True

    async def get_latest(self, year: int, month: int) -> list[Snapshot]:
        rows = await self.client.rpc("get_latest_pl_snapshots", {"p_year": year, "p_month": month})
        snapshots: list[Snapshot] = []
        for row in rows or []:
            snapshots.append(
                Snapshot(
                    category=row.get("category") or "",
                    name=row.get("name") or "",
                    budget_amount=row.get("budget_amount") or 0.0,
                    actual_amount=row.get("actual_amount"),
                    forecast_amount=row.get("forecast_amount"),
                    budget_variance=row.get("budget_variance"),
                    forecast_variance=row.get("forecast_variance"),
                    captured_at=row.get("captured_at") or row.get("created_at"),
                )
            )
        return snapshots


def create_stores(credentials: dict[str, Any] | None = None, **options: Any) -> StoreBundle:
    """Build the Supabase store bundle from ``url`` and ``api_key`` credentials."""
    creds = credentials or {}
    client = SupabaseClient(
        url=creds.get("url", ""),
        api_key=creds.get("api_key", ""),
        timeout=float(options.get("timeout", 30.0)),
    )
    return StoreBundle(
        items=SupabaseBudgetItemStore(client),
        settings=SupabaseForecastSettingsStore(client),
        snapshots=SupabaseSnapshotService(client),
        backend="supabase",
    )
