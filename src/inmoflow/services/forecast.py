# src/inmoflow/services/forecast.py
from __future__ import annotations

import math
from typing import Any, Iterable

import pandas as pd

from inmoflow.adapters.config import config
from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import InMemoryRepository, Repositories, new_id, now_iso
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.forecast import (
    ALL_PERIODS_LABEL,
    ForecastCategory,
    ForecastCategoryIn,
    ForecastComparison,
    ForecastItem,
    ForecastItemIn,
    ForecastListResponse,
    ForecastPeriod,
    ForecastPeriodIn,
    ForecastQuery,
    ForecastScenario,
    ForecastScenarioIn,
    ForecastSummary,
)
from inmoflow.domain.validation import parse_model, to_camel
from inmoflow.services.forecast_rules import validate_forecast_scenario

logger = get_logger(__name__)

CSV_COLUMNS = [
    "ID", "Período", "Categoría", "Nombre", "Tipo", "Monto", "Moneda",
    "Probabilidad", "Estado", "Etiquetas", "Notas", "Fecha Creación",
]


# ----------------------------
# Pure aggregation
# ----------------------------

def summarize_forecasts(
    items: Iterable[ForecastItem],
    period: ForecastPeriod | None = None,
    currency: str | None = None,
) -> ForecastSummary:
    """
    Totals per side, net = income − expenses, and the mean probability over
    every item (0 for an empty list). Sums use fsum so the result does not
    depend on input order.
    """
    items = list(items)
    income = [i.amount for i in items if i.type == "income"]
    expenses = [i.amount for i in items if i.type == "expense"]
    total_income = math.fsum(income)
    total_expenses = math.fsum(expenses)
    probs = [i.probability for i in items]

    return ForecastSummary(
        period_id=period.id if period else "",
        period_name=period.name if period else ALL_PERIODS_LABEL,
        total_income=total_income,
        total_expenses=total_expenses,
        net_amount=total_income - total_expenses,
        income_count=len(income),
        expense_count=len(expenses),
        average_probability=math.fsum(probs) / len(probs) if probs else 0.0,
        currency=currency or config.DEFAULT_CURRENCY,
    )


def compare_forecast(
    period: ForecastPeriod,
    items: Iterable[ForecastItem],
    accuracy_factor: float | None = None,
) -> ForecastComparison:
    """Forecast against a simulated actual (a fixed share of the forecast)."""
    factor = config.FORECAST_ACCURACY_SIMULATION if accuracy_factor is None else accuracy_factor
    forecasted = math.fsum(i.amount for i in items)
    actual = forecasted * factor
    variance = actual - forecasted
    if forecasted:
        variance_pct = variance / forecasted * 100
        accuracy = max(0.0, (1 - abs(variance) / forecasted) * 100)
    else:
        variance_pct = 0.0
        accuracy = 0.0

    return ForecastComparison(
        period_id=period.id,
        period_name=period.name,
        actual_amount=actual,
        forecasted_amount=forecasted,
        variance=variance,
        variance_percentage=variance_pct,
        accuracy=accuracy,
    )


def query_forecasts(items: Iterable[ForecastItem], query: ForecastQuery) -> ForecastListResponse:
    filtered = list(items)
    if query.period_id:
        filtered = [i for i in filtered if i.period_id == query.period_id]
    if query.category_id:
        filtered = [i for i in filtered if i.category_id == query.category_id]
    if query.type:
        filtered = [i for i in filtered if i.type == query.type]
    if query.status:
        filtered = [i for i in filtered if i.status == query.status]
    if query.search:
        needle = query.search.lower()
        filtered = [
            i for i in filtered
            if needle in i.name.lower() or needle in (i.description or "").lower()
        ]

    total = len(filtered)
    start = (query.page - 1) * query.limit
    return ForecastListResponse(
        items=filtered[start:start + query.limit],
        total=total,
        page=query.page,
        limit=query.limit,
        total_pages=math.ceil(total / query.limit),
    )


# ----------------------------
# Service over the stores
# ----------------------------

class ForecastService:
    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    # items

    def list(self, query: ForecastQuery | None = None) -> ForecastListResponse:
        return query_forecasts(self.repos.forecasts.list(), query or ForecastQuery())

    def get(self, item_id: str) -> ForecastItem:
        item = self.repos.forecasts.get(item_id)
        if item is None:
            raise NotFoundError("Previsión", item_id)
        return item

    def create(self, data: dict[str, Any]) -> ForecastItem:
        payload, result = parse_model(ForecastItemIn, data)
        if payload is None:
            raise InvalidInputError(result)
        ts = now_iso()
        item = ForecastItem(**payload.model_dump(), id=new_id(), created_at=ts, updated_at=ts)
        self.repos.forecasts.add(item)
        log_event(logger, "forecast_created", forecast_id=item.id, type=item.type, amount=item.amount)
        return item

    def update(self, item_id: str, data: dict[str, Any]) -> ForecastItem:
        current = self.get(item_id)
        merged = {**current.model_dump(by_alias=True), **{to_camel(k): v for k, v in data.items()}}
        payload, result = parse_model(ForecastItemIn, merged)
        if payload is None:
            raise InvalidInputError(result)
        item = ForecastItem(**payload.model_dump(), id=current.id,
                            created_at=current.created_at, updated_at=now_iso())
        self.repos.forecasts.replace(item)
        log_event(logger, "forecast_updated", forecast_id=item.id)
        return item

    def delete(self, item_id: str) -> None:
        if not self.repos.forecasts.delete(item_id):
            raise NotFoundError("Previsión", item_id)
        log_event(logger, "forecast_deleted", forecast_id=item_id)

    # taxonomies

    def _create(self, repo: InMemoryRepository, in_model, out_model, data: dict[str, Any]):
        payload, result = parse_model(in_model, data)
        if payload is None:
            raise InvalidInputError(result)
        ts = now_iso()
        return repo.add(out_model(**payload.model_dump(), id=new_id(), created_at=ts, updated_at=ts))

    def periods(self) -> list[ForecastPeriod]:
        return self.repos.periods.list()

    def create_period(self, data: dict[str, Any]) -> ForecastPeriod:
        return self._create(self.repos.periods, ForecastPeriodIn, ForecastPeriod, data)

    def categories(self) -> list[ForecastCategory]:
        return self.repos.categories.list()

    def create_category(self, data: dict[str, Any]) -> ForecastCategory:
        return self._create(self.repos.categories, ForecastCategoryIn, ForecastCategory, data)

    def scenarios(self) -> list[ForecastScenario]:
        return self.repos.forecast_scenarios.list()

    def create_scenario(self, data: dict[str, Any]) -> ForecastScenario:
        result = validate_forecast_scenario(data)
        if not result.ok:
            raise InvalidInputError(result, "Escenario de previsión inválido")
        return self._create(self.repos.forecast_scenarios, ForecastScenarioIn, ForecastScenario, data)

    # analytics

    def summary(self, period_id: str | None = None) -> ForecastSummary:
        items = self.repos.forecasts.list()
        period = None
        if period_id:
            items = [i for i in items if i.period_id == period_id]
            period = self.repos.periods.get(period_id)
        return summarize_forecasts(items, period)

    def comparison(self, period_id: str) -> list[ForecastComparison]:
        period = self.repos.periods.get(period_id)
        if period is None:
            return []
        items = [i for i in self.repos.forecasts.list() if i.period_id == period_id]
        return [compare_forecast(period, items)]

    def export_csv(self, query: ForecastQuery | None = None) -> str:
        page = self.list(query)
        periods = {p.id: p.name for p in self.repos.periods.list()}
        categories = {c.id: c.name for c in self.repos.categories.list()}
        rows = [
            [
                i.id,
                periods.get(i.period_id, ""),
                categories.get(i.category_id, ""),
                i.name,
                "Ingreso" if i.type == "income" else "Gasto",
                i.amount,
                i.currency,
                i.probability,
                i.status,
                ";".join(i.tags),
                i.notes or "",
                i.created_at,
            ]
            for i in page.items
        ]
        df = pd.DataFrame(rows, columns=CSV_COLUMNS)
        log_event(logger, "forecasts_exported", rows=len(df))
        return df.to_csv(index=False)
