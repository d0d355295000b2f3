# src/inmoflow/api/routers/maps.py
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.domain.errors import InvalidInputError
from inmoflow.domain.property import MapFilters, MapPoint
from inmoflow.domain.validation import ValidationResult, parse_model
from inmoflow.services.map_view import bounds_from_points, cluster_points, filter_map_points, normalize_to_map_point

router = APIRouter(prefix="/map", tags=["map"])


def _points(request: Request, repos: Repositories) -> list[MapPoint]:
    params: dict[str, Any] = {k: v for k, v in request.query_params.items() if k != "zoom"}
    if "bounds" in params:
        try:
            params["bounds"] = json.loads(params["bounds"])
        except json.JSONDecodeError:
            raise InvalidInputError(
                ValidationResult.failure({"bounds": "JSON inválido"}), "Filtros inválidos"
            ) from None
    filters, result = parse_model(MapFilters, params)
    if filters is None:
        raise InvalidInputError(result, "Filtros inválidos")
    points = [normalize_to_map_point(p) for p in repos.properties.list()]
    return filter_map_points(points, filters)


@router.get("/points")
def map_points(request: Request, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    points = _points(request, repos)
    bounds = bounds_from_points(points)
    return {"points": dump(points), "bounds": bounds.to_json_dict() if bounds else None}


@router.get("/clusters")
def map_clusters(
    request: Request,
    zoom: float = Query(12, ge=0, le=22),
    repos: Repositories = Depends(get_repos),
) -> list[dict[str, Any]]:
    return dump(cluster_points(_points(request, repos), zoom))
