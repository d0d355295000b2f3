# src/inmoflow/api/routers/properties.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.api.schemas import BulkUpdateRequest, IdList, PublishRequest
from inmoflow.domain.errors import InvalidInputError
from inmoflow.domain.property import PropertyFilters
from inmoflow.domain.validation import parse_model
from inmoflow.services.properties import PropertyService

router = APIRouter(prefix="/properties", tags=["properties"])


def _filters(request: Request) -> PropertyFilters:
    filters, result = parse_model(PropertyFilters, dict(request.query_params))
    if filters is None:
        raise InvalidInputError(result, "Filtros inválidos")
    return filters


@router.get("")
def list_properties(request: Request, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(PropertyService(repos).list(_filters(request)))


@router.post("", status_code=201)
def create_property(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(PropertyService(repos).create(payload))


@router.get("/export.csv")
def export_properties(request: Request, repos: Repositories = Depends(get_repos)) -> Response:
    csv = PropertyService(repos).export_csv(_filters(request))
    return Response(content=csv, media_type="text/csv; charset=utf-8")


@router.post("/bulk-delete")
def bulk_delete(payload: IdList, repos: Repositories = Depends(get_repos)) -> dict[str, int]:
    return {"deleted": PropertyService(repos).bulk_delete(payload.ids)}


@router.post("/bulk-update")
def bulk_update(payload: BulkUpdateRequest, repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(PropertyService(repos).bulk_update(payload.ids, payload.updates))


@router.get("/{property_id}")
def get_property(property_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(PropertyService(repos).get(property_id))


@router.patch("/{property_id}")
def update_property(
    property_id: str, payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)
) -> dict[str, Any]:
    return dump(PropertyService(repos).update(property_id, payload))


@router.delete("/{property_id}", status_code=204)
def delete_property(property_id: str, repos: Repositories = Depends(get_repos)) -> Response:
    PropertyService(repos).delete(property_id)
    return Response(status_code=204)


@router.post("/{property_id}/publish")
def publish_property(
    property_id: str, payload: PublishRequest | None = None, repos: Repositories = Depends(get_repos)
) -> dict[str, Any]:
    portals = payload.portals if payload else None
    return dump(PropertyService(repos).publish(property_id, portals))
