# src/inmoflow/api/routers/esign.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.api.schemas import SignerEventRequest
from inmoflow.domain.errors import InvalidInputError
from inmoflow.domain.esign import EnvelopeFilters
from inmoflow.domain.validation import ValidationResult, parse_model
from inmoflow.services import esign
from inmoflow.services.esign import EsignService

router = APIRouter(prefix="/esign", tags=["esign"])

_VALIDATORS: dict[str, Callable[[Any], ValidationResult]] = {
    "template": esign.validate_template,
    "flow": esign.validate_flow,
    "signer": esign.validate_signer,
    "envelope": esign.validate_envelope,
    "webhook": esign.validate_webhook,
    "credentials": esign.validate_connection,
    "branding": esign.validate_branding,
}


@router.post("/validate/{kind}")
def validate(kind: str, payload: Any = Body(...)) -> dict[str, Any]:
    validator = _VALIDATORS.get(kind)
    if validator is None:
        raise HTTPException(status_code=404, detail=f"Validador desconocido: {kind}")
    return validator(payload).to_dict()


@router.post("/render")
def render(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    rendered, missing = esign.render_template(str(payload.get("template", "")), payload.get("data") or {})
    return {"rendered": rendered, "missing": missing}


@router.get("/envelopes")
def list_envelopes(request: Request, repos: Repositories = Depends(get_repos)) -> list[dict[str, Any]]:
    filters, result = parse_model(EnvelopeFilters, dict(request.query_params))
    if filters is None:
        raise InvalidInputError(result, "Filtros inválidos")
    return dump(EsignService(repos).list(filters))


@router.post("/envelopes", status_code=201)
def create_envelope(payload: dict[str, Any] = Body(...), repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(EsignService(repos).create(payload))


@router.get("/envelopes/{envelope_id}")
def get_envelope(envelope_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(EsignService(repos).get(envelope_id))


@router.post("/envelopes/{envelope_id}/send")
def send_envelope(envelope_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(EsignService(repos).send(envelope_id))


@router.post("/envelopes/{envelope_id}/remind")
def remind_envelope(envelope_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(EsignService(repos).remind(envelope_id))


@router.post("/envelopes/{envelope_id}/cancel")
def cancel_envelope(envelope_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(EsignService(repos).cancel(envelope_id))


@router.post("/envelopes/{envelope_id}/signers/{signer_id}/events")
def signer_event(
    envelope_id: str,
    signer_id: str,
    payload: SignerEventRequest,
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    env = EsignService(repos).record_signer_event(envelope_id, signer_id, payload.event, reason=payload.reason)
    return dump(env)
