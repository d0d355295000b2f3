import io

import pandas as pd
import pytest
from hypothesis import given
from hypothesis import strategies as st

from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.forecast import ALL_PERIODS_LABEL, ForecastItem, ForecastPeriod, ForecastQuery
from inmoflow.services.forecast import ForecastService, compare_forecast, summarize_forecasts
from inmoflow.services.forecast_rules import (
    sanitize_assumptions,
    validate_assumption_field,
    validate_assumptions,
    validate_forecast_filters,
    validate_forecast_scenario,
)


def _item(i, type_, amount, probability=50.0):
    return ForecastItem(
        id=str(i), period_id="1", category_id="1", name=f"Línea {i}", type=type_, amount=amount,
        probability=probability, created_at="2024-01-01T00:00:00Z", updated_at="2024-01-01T00:00:00Z",
    )


items_strategy = st.lists(
    st.builds(
        _item,
        st.integers(0, 10_000),
        st.sampled_from(["income", "expense"]),
        st.floats(min_value=0, max_value=1e7, allow_nan=False),
        st.floats(min_value=0, max_value=100, allow_nan=False),
    ),
    max_size=30,
)


# ----------------------------
# Summary aggregation
# ----------------------------

def test_empty_summary():
    summary = summarize_forecasts([])
    assert summary.average_probability == 0
    assert summary.net_amount == 0
    assert summary.period_name == ALL_PERIODS_LABEL
    assert summary.currency == "EUR"


@given(items_strategy)
def test_net_is_income_minus_expenses(items):
    s = summarize_forecasts(items)
    assert s.net_amount == s.total_income - s.total_expenses
    assert s.income_count + s.expense_count == len(items)


@given(items_strategy, st.randoms())
def test_summary_ignores_input_order(items, rnd):
    shuffled = list(items)
    rnd.shuffle(shuffled)
    assert summarize_forecasts(items) == summarize_forecasts(shuffled)


def test_seeded_period_summary(repos):
    s = ForecastService(repos).summary("1")
    assert (s.total_income, s.total_expenses, s.net_amount) == (46_200, 3_300, 42_900)
    assert (s.income_count, s.expense_count) == (2, 2)
    assert s.average_probability == 85
    assert s.period_name == "Q1 2024"


def test_seeded_summary_across_periods(repos):
    s = ForecastService(repos).summary()
    assert s.net_amount == 322_900
    assert s.average_probability == 80
    assert s.period_id == ""


def test_comparison_uses_simulated_accuracy(repos):
    (c,) = ForecastService(repos).comparison("1")
    assert c.forecasted_amount == 49_500
    assert c.actual_amount == pytest.approx(42_075)
    assert c.variance_percentage == pytest.approx(-15)
    assert c.accuracy == pytest.approx(85)


def test_comparison_is_zero_safe():
    period = ForecastPeriod(id="9", name="Vacío", start_date="2025-01-01", end_date="2025-03-31",
                            created_at="x", updated_at="x")
    c = compare_forecast(period, [])
    assert (c.variance_percentage, c.accuracy) == (0, 0)
    assert compare_forecast(period, [_item(1, "income", 100)], accuracy_factor=3).accuracy == 0


def test_comparison_of_unknown_period_is_empty(repos):
    assert ForecastService(repos).comparison("nope") == []


# ----------------------------
# CRUD and listing
# ----------------------------

def test_search_and_pagination(repos):
    service = ForecastService(repos)
    found = service.list(ForecastQuery(search="venta"))
    assert {i.id for i in found.items} == {"1", "5"}

    page = service.list(ForecastQuery(limit=2, page=3))
    assert (page.total, page.total_pages, len(page.items)) == (5, 3, 1)

    expenses = service.list(ForecastQuery(type="expense", status="confirmed"))
    assert {i.id for i in expenses.items} == {"3", "4"}


def test_create_update_delete(repos):
    service = ForecastService(repos)
    item = service.create({
        "periodId": "2", "categoryId": "1", "name": "Venta Local", "type": "income",
        "amount": 90_000, "probability": 40, "tags": ["venta"],
    })
    assert item.status == "draft"
    assert service.get(item.id) == item

    updated = service.update(item.id, {"amount": 95_000, "status": "confirmed", "period_id": "1"})
    assert (updated.amount, updated.status, updated.period_id) == (95_000, "confirmed", "1")
    assert updated.created_at == item.created_at

    service.delete(item.id)
    with pytest.raises(NotFoundError):
        service.get(item.id)
    with pytest.raises(NotFoundError):
        service.delete(item.id)


def test_create_rejects_bad_items(repos):
    with pytest.raises(InvalidInputError) as exc:
        ForecastService(repos).create({"periodId": "1", "categoryId": "1", "name": "x", "amount": -5,
                                       "probability": 120})
    assert {"type", "amount", "probability"} <= set(exc.value.errors)


def test_update_cannot_break_the_record(repos):
    with pytest.raises(InvalidInputError) as exc:
        ForecastService(repos).update("1", {"probability": 150})
    assert "probability" in exc.value.errors


def test_taxonomies(repos):
    service = ForecastService(repos)
    period = service.create_period({"name": "Q4 2024", "startDate": "2024-10-01", "endDate": "2024-12-31"})
    assert period in service.periods()
    category = service.create_category({"name": "Comisiones"})
    assert category.color == "#6B7280"

    scenario = service.create_scenario({"name": "Conservador", "kind": "CUSTOM", "probability": 10})
    assert scenario in service.scenarios()
    with pytest.raises(InvalidInputError) as exc:
        service.create_scenario({"name": "", "kind": "OTRO"})
    assert set(exc.value.errors) == {"name", "kind"}


def test_csv_export(repos):
    csv = ForecastService(repos).export_csv(ForecastQuery(period_id="1"))
    df = pd.read_csv(io.StringIO(csv))
    assert list(df.columns)[:5] == ["ID", "Período", "Categoría", "Nombre", "Tipo"]
    assert len(df) == 4
    assert set(df["Tipo"]) == {"Ingreso", "Gasto"}
    assert df.loc[df["ID"] == 1, "Etiquetas"].item() == "venta;apartamento;centro"


# ----------------------------
# Assumptions, filters, scenarios
# ----------------------------

def test_assumption_ranges():
    result = validate_assumptions({"convLeadVisit": 1.5, "cycleDays": 0, "cac": -1, "fixedCosts": 100})
    assert set(result.errors) == {"convLeadVisit", "cycleDays", "cac"}
    assert validate_assumption_field("feesPctSale", 0.05) is None
    assert validate_assumption_field("feesPctSale", "5%") == "Debe ser un número"


def test_seasonality_needs_twelve_factors():
    assert "seasonality" in validate_assumptions({"seasonality": [1.0] * 11}).errors
    assert "seasonality" in validate_assumptions({"seasonality": [1.0] * 11 + [2.5]}).errors
    assert validate_assumptions({"seasonality": [1.0] * 12}).ok


def test_forecast_filters():
    assert validate_forecast_filters({"from": "2024-01-01", "to": "2024-12-31", "currency": "EUR"}).ok

    result = validate_forecast_filters({"from": "2024-06-01", "to": "2024-01-01", "currency": "JPY"})
    assert set(result.errors) == {"to", "currency"}

    too_long = validate_forecast_filters({"from": "2024-01-01", "to": "2027-06-01", "currency": "USD"})
    assert too_long.errors == {"to": "El máximo período de proyección es 36 meses"}

    missing = validate_forecast_filters({})
    assert set(missing.errors) == {"from", "to", "currency"}


def test_scenario_assumptions_are_nested():
    result = validate_forecast_scenario({"name": "Base", "kind": "BASELINE", "assumptions": {"commissionPct": 2}})
    assert list(result.errors) == ["assumptions.commissionPct"]
    assert "name" in validate_forecast_scenario({"name": "x" * 101, "kind": "BASELINE"}).errors


def test_sanitize_clamps_every_field():
    clean = sanitize_assumptions({"convLeadVisit": 1.4, "cac": -10, "cycleDays": 0, "seasonality": [3, -1]})
    assert (clean.conv_lead_visit, clean.cac, clean.cycle_days) == (1, 0, 1)
    assert clean.seasonality == [2, 0]
    assert validate_assumptions(clean).errors.keys() == {"seasonality"}
