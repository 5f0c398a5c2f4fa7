"""Tests for the Supabase (PostgREST) store backend."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from profitpilot.models.budget import BudgetLineItem, ForecastMethod, ForecastSettings, TrackingType
from profitpilot.stores.base import StoreError
from profitpilot.stores.supabase_store import SupabaseClient, create_stores


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.content = b"" if payload is None else json.dumps(payload).encode()
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


def _failing_response():
    response = _response({"message": "permission denied"}, status_code=401)
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "401 Unauthorized", request=MagicMock(), response=MagicMock()
    )
    return response


@pytest.fixture
def bundle():
    return create_stores({"url": "https://demo.supabase.co/", "api_key": "anon-key"})


class TestSupabaseClient:
    def test_init(self, bundle) -> None:
        client = bundle.items.client
        assert client.url == "https://demo.supabase.co"
        assert bundle.settings.client is client
        assert bundle.backend == "supabase"

    @pytest.mark.asyncio
    async def test_http_client_headers(self) -> None:
        client = SupabaseClient(url="https://demo.supabase.co", api_key="anon-key")
        http = await client._get_client()
        assert str(http.base_url).startswith("https://demo.supabase.co/rest/v1")
        assert http.headers["apikey"] == "anon-key"
        assert http.headers["Authorization"] == "Bearer anon-key"
        await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_http_errors_wrapped(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_failing_response())
            mock_get_client.return_value = mock_client

            with pytest.raises(StoreError):
                await bundle.items.fetch(2025, 6)


class TestSupabaseValidateCredentials:
    @pytest.mark.asyncio
    async def test_empty_key_returns_false(self) -> None:
        bundle = create_stores({"url": "https://demo.supabase.co"})
        assert await bundle.items.validate_credentials() is False

    @pytest.mark.asyncio
    async def test_valid_key(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=_response([]))
            mock_get_client.return_value = mock_client

            assert await bundle.items.validate_credentials() is True

    @pytest.mark.asyncio
    async def test_unreachable(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(side_effect=httpx.ConnectError("no route"))
            mock_get_client.return_value = mock_client

            health = await bundle.items.health_check()
            assert health["healthy"] is False


class TestSupabaseBudgetItems:
    @pytest.mark.asyncio
    async def test_fetch_merges_tracking_and_daily_values(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(
                side_effect=[
                    _response([
                        {"id": "b1", "year": 2025, "month": 6, "category": "Revenue", "name": "Food Revenue",
                         "budget_amount": 60000, "actual_amount": 30000, "forecast_amount": None},
                        {"id": "b2", "year": 2025, "month": 6, "category": "Admin", "name": "Rent",
                         "budget_amount": None, "actual_amount": None, "forecast_amount": 7500},
                    ]),
                    _response([{"budget_item_id": "b2", "tracking_type": "Discrete"}]),
                    _response([
                        {"budget_item_id": "b2", "day": 1, "value": 100},
                        {"budget_item_id": "b2", "day": 2, "value": None},
                    ]),
                ]
            )
            mock_get_client.return_value = mock_client

            items = await bundle.items.fetch(2025, 6)

        assert [i.name for i in items] == ["Food Revenue", "Rent"]
        assert items[0].actual_amount == 30000
        assert "tracking_type" not in items[0].model_fields_set
        assert items[1].budget_amount == 0.0
        assert items[1].tracking_type == TrackingType.DISCRETE
        assert items[1].daily_total == 100

        method, path = mock_client.request.call_args_list[0].args
        params = mock_client.request.call_args_list[0].kwargs["params"]
        assert (method, path) == ("GET", "/budget_items")
        assert params["year"] == "eq.2025"
        assert params["order"] == "created_at.asc"
        assert mock_client.request.call_args_list[1].kwargs["params"]["budget_item_id"] == "in.(b1,b2)"

    @pytest.mark.asyncio
    async def test_fetch_empty_month(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response([]))
            mock_get_client.return_value = mock_client

            assert await bundle.items.fetch(2025, 6) == []
            assert mock_client.request.call_count == 1

    @pytest.mark.asyncio
    async def test_update_forecast(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response(status_code=204))
            mock_get_client.return_value = mock_client

            await bundle.items.update_forecast("b2", 8000.0)

            call = mock_client.request.call_args
            assert call.args == ("PATCH", "/budget_items")
            assert call.kwargs["params"] == {"id": "eq.b2"}
            assert call.kwargs["json"] == {"forecast_amount": 8000.0}

    @pytest.mark.asyncio
    async def test_update_tracking_type_upserts(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response(status_code=201))
            mock_get_client.return_value = mock_client

            await bundle.items.update_tracking_type("b2", TrackingType.PRO_RATED)

            call = mock_client.request.call_args
            assert call.kwargs["params"] == {"on_conflict": "budget_item_id"}
            assert call.kwargs["json"] == [{"budget_item_id": "b2", "tracking_type": "Pro-Rated"}]
            assert "merge-duplicates" in call.kwargs["headers"]["Prefer"]

    @pytest.mark.asyncio
    async def test_replace_month(self, bundle) -> None:
        with patch.object(bundle.items.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response(status_code=204))
            mock_get_client.return_value = mock_client

            count = await bundle.items.replace_month(
                2025, 6, [BudgetLineItem(category="Admin", name="Rent", budget_amount=8000)]
            )

            assert count == 1
            delete_call, insert_call = mock_client.request.call_args_list
            assert delete_call.args[0] == "DELETE"
            assert insert_call.args[0] == "POST"
            assert insert_call.kwargs["json"][0]["actual_amount"] is None
            assert insert_call.kwargs["json"][0]["budget_amount"] == 8000


class TestSupabaseForecastSettings:
    @pytest.mark.asyncio
    async def test_get_parses_json_string(self, bundle) -> None:
        with patch.object(bundle.settings.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(
                return_value=_response([{"method": "discrete", "discrete_values": '{"week1": 100, "week2": "50"}'}])
            )
            mock_get_client.return_value = mock_client

            settings = await bundle.settings.get("Rent", 2025, 6)

        assert settings.method == ForecastMethod.DISCRETE
        assert settings.discrete_total == 150

    @pytest.mark.asyncio
    async def test_malformed_json_is_no_settings(self, bundle) -> None:
        with patch.object(bundle.settings.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(
                return_value=_response([{"method": "discrete", "discrete_values": "{broken"}])
            )
            mock_get_client.return_value = mock_client

            assert await bundle.settings.get("Rent", 2025, 6) is None

    @pytest.mark.asyncio
    async def test_upsert(self, bundle) -> None:
        with patch.object(bundle.settings.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response(status_code=201))
            mock_get_client.return_value = mock_client

            await bundle.settings.upsert("Rent", 2025, 6, ForecastSettings(method="fixed_plus", discrete_values={"a": 1}))

            call = mock_client.request.call_args
            assert call.kwargs["params"] == {"on_conflict": "item_name,year,month"}
            assert call.kwargs["json"][0]["method"] == "fixed_plus"


class TestSupabaseSnapshots:
    @pytest.mark.asyncio
    async def test_store_calls_rpc(self, bundle) -> None:
        with patch.object(bundle.snapshots.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_response(status_code=204))
            mock_get_client.return_value = mock_client

            ok = await bundle.snapshots.store(2025, 6, "Admin", "Rent", 8000, 4000, 8000)

            assert ok is True
            call = mock_client.request.call_args
            assert call.args == ("POST", "/rpc/store_pl_snapshot")
            assert call.kwargs["json"]["p_name"] == "Rent"

    @pytest.mark.asyncio
    async def test_store_failure_returns_false(self, bundle) -> None:
        with patch.object(bundle.snapshots.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(return_value=_failing_response())
            mock_get_client.return_value = mock_client

            assert await bundle.snapshots.store(2025, 6, "Admin", "Rent", 8000, None, None) is False

    @pytest.mark.asyncio
    async def test_get_latest(self, bundle) -> None:
        with patch.object(bundle.snapshots.client, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.request = AsyncMock(
                return_value=_response([
                    {"category": "Admin", "name": "Rent", "budget_amount": 8000, "actual_amount": 4000,
                     "forecast_amount": 8500, "budget_variance": -4000, "forecast_variance": 500,
                     "captured_at": "2025-06-16T09:00:00"},
                ])
            )
            mock_get_client.return_value = mock_client

            snapshots = await bundle.snapshots.get_latest(2025, 6)

        assert len(snapshots) == 1
        assert snapshots[0].forecast_variance == 500
        assert snapshots[0].captured_at.day == 16
