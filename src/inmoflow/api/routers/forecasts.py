# src/inmoflow/api/routers/forecasts.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.domain.errors import InvalidInputError
from inmoflow.domain.forecast import ForecastQuery
from inmoflow.domain.validation import parse_model
from inmoflow.services.forecast import ForecastService

router = APIRouter(prefix="/forecasts", tags=["forecasts"])


def _query(request: Request) -> ForecastQuery:
    query, result = parse_model(ForecastQuery, dict(request.query_params))
    if query is None:
        raise InvalidInputError(result, "Filtros inválidos")
    return query


@router.get("")
def list_forecasts(request: Request, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).list(_query(request)))


@router.post("", status_code=201)
def create_forecast(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).create(payload))


# taxonomies and analytics sit before /{forecast_id} so they are not captured by it

@router.get("/periods")
def list_periods(repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(ForecastService(repos).periods())


@router.post("/periods", status_code=201)
def create_period(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).create_period(payload))


@router.get("/categories")
def list_categories(repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(ForecastService(repos).categories())


@router.post("/categories", status_code=201)
def create_category(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).create_category(payload))


@router.get("/scenarios")
def list_scenarios(repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(ForecastService(repos).scenarios())


@router.post("/scenarios", status_code=201)
def create_scenario(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).create_scenario(payload))


@router.get("/summary")
def forecast_summary(
    period_id: str | None = Query(None, alias="periodId"), repos: Repositories = Depends(get_repos)
) -> dict[str, Any]:
    return dump(ForecastService(repos).summary(period_id))


@router.get("/comparison/{period_id}")
def forecast_comparison(period_id: str, repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(ForecastService(repos).comparison(period_id))


@router.get("/export.csv")
def export_forecasts(request: Request, repos: Repositories = Depends(get_repos)) -> Response:
    csv = ForecastService(repos).export_csv(_query(request))
    return Response(content=csv, media_type="text/csv; charset=utf-8")


@router.get("/{forecast_id}")
def get_forecast(forecast_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(ForecastService(repos).get(forecast_id))


@router.patch("/{forecast_id}")
def update_forecast(
    forecast_id: str, payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)
) -> dict[str, Any]:
    return dump(ForecastService(repos).update(forecast_id, payload))


@router.delete("/{forecast_id}", status_code=204)
def delete_forecast(forecast_id: str, repos: Repositories = Depends(get_repos)) -> Response:
    ForecastService(repos).delete(forecast_id)
    return Response(status_code=204)
