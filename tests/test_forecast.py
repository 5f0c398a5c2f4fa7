"""Tests for the forecast engine."""

import pytest

from profitpilot.engine.forecast import (
    ForecastBasis,
    ForecastEngine,
    compute_forecast,
    linear_projection,
    needs_write_back,
    settings_forecast,
)
from profitpilot.models.budget import BudgetLineItem, ForecastSettings, Period

DISCRETE_VALUES = {"week1": 100, "week2": "50", "week3": {"value": 25}}


@pytest.fixture
def day_10() -> Period:
    return Period(year=2025, month=6, day_of_month=10, days_in_month=30)


class TestRunRateOverride:
    def test_revenue_projects_actual(self, day_10) -> None:
        item = BudgetLineItem(name="Food Revenue", budget_amount=5_000, actual_amount=1_000)
        result = compute_forecast(item, day_10)
        assert result.value == pytest.approx(3_000)
        assert result.basis == ForecastBasis.RUN_RATE_OVERRIDE

    def test_override_ignores_configured_method(self, day_10) -> None:
        item = BudgetLineItem(
            name="Food Revenue",
            budget_amount=5_000,
            actual_amount=1_000,
            forecast_amount=9_999,
            forecast_settings=ForecastSettings(method="discrete", discrete_values=DISCRETE_VALUES),
        )
        assert compute_forecast(item, day_10).value == pytest.approx(3_000)

    def test_wages_and_cost_of_sales_project(self, day_10) -> None:
        for name in ("Wages", "Food Cost of Sales"):
            item = BudgetLineItem(name=name, budget_amount=2_000, actual_amount=500)
            assert compute_forecast(item, day_10).value == pytest.approx(1_500)

    def test_no_projection_on_day_zero(self) -> None:
        period = Period(year=2025, month=6, day_of_month=0, days_in_month=30)
        item = BudgetLineItem(name="Food Revenue", budget_amount=5_000, actual_amount=1_000)
        assert compute_forecast(item, period).basis == ForecastBasis.BUDGET


class TestConfiguredMethods:
    def test_persisted_forecast_returned_unchanged(self, day_10) -> None:
        item = BudgetLineItem(name="Rent", budget_amount=8_000, forecast_amount=7_500)
        result = compute_forecast(item, day_10)
        assert result.value == 7_500
        assert result.basis == ForecastBasis.PERSISTED

    def test_fixed(self, day_10) -> None:
        item = BudgetLineItem(name="Rent", budget_amount=8_000, forecast_settings=ForecastSettings(method="fixed"))
        assert compute_forecast(item, day_10).value == 8_000

    def test_discrete_sums_mixed_values(self, day_10) -> None:
        item = BudgetLineItem(
            name="Repairs",
            budget_amount=500,
            forecast_settings=ForecastSettings(method="discrete", discrete_values=DISCRETE_VALUES),
        )
        result = compute_forecast(item, day_10)
        assert result.value == pytest.approx(175)
        assert result.basis == ForecastBasis.DISCRETE

    def test_fixed_plus(self, day_10) -> None:
        item = BudgetLineItem(
            name="Repairs",
            budget_amount=500,
            forecast_settings=ForecastSettings(method="fixed_plus", discrete_values=DISCRETE_VALUES),
        )
        assert compute_forecast(item, day_10).value == pytest.approx(675)

    def test_mtd_projection(self, day_10) -> None:
        item = BudgetLineItem(
            name="Utilities",
            budget_amount=1_000,
            manually_entered_actual=300,
            forecast_settings=ForecastSettings(method="mtd_projection"),
        )
        result = compute_forecast(item, day_10)
        assert result.value == pytest.approx(900)
        assert result.basis == ForecastBasis.MTD_PROJECTION

    def test_mtd_projection_without_actual_uses_budget(self, day_10) -> None:
        item = BudgetLineItem(
            name="Utilities", budget_amount=1_000, forecast_settings=ForecastSettings(method="mtd_projection")
        )
        assert compute_forecast(item, day_10).value == 1_000

    def test_settings_forecast_ignores_stored_value(self, day_10) -> None:
        item = BudgetLineItem(name="Repairs", budget_amount=500, forecast_amount=42)
        settings = ForecastSettings(method="fixed_plus", discrete_values={"a": 10})
        assert settings_forecast(item, settings, day_10) == pytest.approx(510)


class TestFallbacks:
    def test_admin_actual_projects(self, day_10) -> None:
        item = BudgetLineItem(name="Rent", budget_amount=8_000, manually_entered_actual=2_000)
        result = compute_forecast(item, day_10)
        assert result.value == pytest.approx(6_000)
        assert result.basis == ForecastBasis.RUN_RATE

    def test_budget_fallback(self, day_10) -> None:
        result = compute_forecast(BudgetLineItem(name="Rent", budget_amount=8_000), day_10)
        assert result.value == 8_000
        assert result.is_budget_fallback

    def test_header(self, day_10) -> None:
        result = compute_forecast(BudgetLineItem(name="Admin", is_header=True, budget_amount=10), day_10)
        assert result.value == 0.0
        assert result.basis == ForecastBasis.HEADER

    def test_linear_projection(self, day_10) -> None:
        assert linear_projection(1_000, day_10) == pytest.approx(3_000)


class TestWriteBack:
    def test_idempotent(self, day_10) -> None:
        item = BudgetLineItem(id="a1", name="Rent", budget_amount=8_000)
        first = compute_forecast(item, day_10)
        stored = item.model_copy(update={"forecast_amount": first.value})
        second = compute_forecast(stored, day_10)
        assert first.value == second.value
        assert needs_write_back(item, first) is True
        assert needs_write_back(stored, second) is False

    def test_changed_run_rate_needs_write(self, day_10) -> None:
        item = BudgetLineItem(id="r1", name="Food Revenue", actual_amount=1_000, forecast_amount=2_000)
        assert needs_write_back(item, compute_forecast(item, day_10)) is True

    def test_no_id_or_header_never_written(self, day_10) -> None:
        item = BudgetLineItem(name="Rent", budget_amount=8_000)
        assert needs_write_back(item, compute_forecast(item, day_10)) is False
        header = BudgetLineItem(id="h1", name="Admin", is_header=True)
        assert needs_write_back(header, compute_forecast(header, day_10)) is False


class TestForecastEngine:
    def test_forecast_all(self, items, period) -> None:
        results = ForecastEngine().forecast_all(items, period)
        assert len(results) == len(items)
        assert results[0].basis == ForecastBasis.HEADER
        assert results[1].value == pytest.approx(60_000)
