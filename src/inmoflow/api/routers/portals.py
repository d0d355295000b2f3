# src/inmoflow/api/routers/portals.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.api.schemas import SyncRequest
from inmoflow.services.portal_rules import render_template, sample_property
from inmoflow.services.portals import PortalService

router = APIRouter(prefix="/portals", tags=["portals"])


@router.get("")
def list_portals(repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(PortalService(repos).list_portals())


@router.get("/logs")
def portal_logs(request: Request, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    params: dict[str, Any] = dict(request.query_params)
    for key in ("page", "size"):
        if key in params and params[key].lstrip("-").isdigit():
            params[key] = int(params[key])
    return dump(PortalService(repos).logs(params))


@router.get("/audit")
def audit_all(repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(PortalService(repos).audit_trail())


@router.post("/{portal_id}/connect")
def connect(
    portal_id: str,
    credentials: dict[str, Any] = Body(...),
    user: str = Query("system"),
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    portal = PortalService(repos).connect(portal_id, credentials, user=user)
    return {"success": True, "message": f"Conectado exitosamente a {portal.name}", "portal": dump(portal)}


@router.post("/{portal_id}/disconnect")
def disconnect(portal_id: str, user: str = Query("system"), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    portal = PortalService(repos).disconnect(portal_id, user=user)
    return {"success": True, "message": f"Desconectado de {portal.name}", "portal": dump(portal)}


@router.get("/{portal_id}/config")
def get_config(portal_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(PortalService(repos).get_config(portal_id))


@router.put("/{portal_id}/config")
def save_config(
    portal_id: str,
    payload: dict[str, Any] = Body(...),
    user: str = Query("system"),
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    return dump(PortalService(repos).save_config(portal_id, payload, user=user))


@router.get("/{portal_id}/preview")
def preview(portal_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    """Title and description rendered with the demo listing."""
    config = PortalService(repos).get_config(portal_id)
    sample = sample_property()
    defaults = config.publish_defaults
    return {
        "title": render_template(defaults.title_tpl, sample) if defaults else "",
        "description": render_template(defaults.desc_tpl, sample) if defaults else "",
    }


@router.post("/{portal_id}/sync")
def sync(
    portal_id: str,
    payload: SyncRequest | None = None,
    user: str = Query("system"),
    repos: Repositories = Depends(get_repos),
) -> list[dict[str, Any]]:
    service = PortalService(repos)
    if payload and payload.action:
        for ref in payload.refs:
            service.enqueue(portal_id, payload.action, ref)
    return dump(service.run_pending(portal_id, user=user))


@router.post("/{portal_id}/retry")
def retry(portal_id: str, user: str = Query("system"), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    retried = PortalService(repos).retry_failed(portal_id, user=user)
    return {"success": True, "retriedCount": retried}


@router.get("/{portal_id}/jobs")
def jobs(portal_id: str, repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    return dump(PortalService(repos).jobs(portal_id))


@router.get("/{portal_id}/stats")
def stats(
    portal_id: str,
    start: str | None = Query(None, alias="from"),
    end: str | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    service = PortalService(repos)
    portal_stats = service.stats(portal_id, start, end)
    return {**dump(portal_stats), "health": dump(service.health(portal_id))}


@router.get("/{portal_id}/audit")
def audit(portal_id: str, repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    service = PortalService(repos)
    service.get_portal(portal_id)
    return dump(service.audit_trail(portal_id))
