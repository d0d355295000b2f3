# src/inmoflow/services/esign.py
"""
Digital-signature side of the back-office: form validators for provider
connections, templates, signing flows, envelopes, webhooks and branding,
plus the envelope lifecycle.

Envelope states:

    draft -> sent -> viewed -> signed
                  \\        \\-> declined
                   \\-> expired (past expiresAt while sent/viewed)
    draft | sent | viewed -> canceled
"""
from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Literal

from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import Repositories, new_id, now_iso
from inmoflow.domain.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from inmoflow.domain.esign import (
    CONNECTION_MODELS,
    PAGE_HEIGHT_PT,
    PAGE_WIDTH_PT,
    BrandingIn,
    Envelope,
    EnvelopeFilters,
    EnvelopeIn,
    FlowIn,
    Signer,
    SignerIn,
    TemplateIn,
    WebhookIn,
)
from inmoflow.domain.validation import ValidationResult, parse_model

logger = get_logger(__name__)

_VARIABLE = re.compile(r"\{\{([^}]+)\}\}")

OTP_PHONE_MESSAGE = "El teléfono es obligatorio con autenticación OTP_SMS"
SEQUENTIAL_ORDER_MESSAGE = "Un flujo secuencial debe tener órdenes consecutivos empezando en 1"

CANCELABLE = ("draft", "sent", "viewed")
REMINDABLE = ("sent", "viewed")
OPEN = ("sent", "viewed")

SignerEvent = Literal["viewed", "signed", "declined"]


# ----------------------------
# Validators
# ----------------------------

def validate_connection(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return ValidationResult.failure({"__root__": "Se esperaba un objeto"})
    model = CONNECTION_MODELS.get(data.get("type"))
    if model is None:
        return ValidationResult.failure(
            {"type": f"Tipo de conexión inválido. Valores permitidos: {', '.join(CONNECTION_MODELS)}"}
        )
    return parse_model(model, data)[1]


def _signer_rules(signer: SignerIn | dict[str, Any], result: ValidationResult, prefix: str = "") -> None:
    auth = signer.auth if isinstance(signer, SignerIn) else signer.get("auth")
    phone = signer.phone if isinstance(signer, SignerIn) else signer.get("phone")
    if auth == "OTP_SMS" and not phone:
        result.add(f"{prefix}phone", OTP_PHONE_MESSAGE)


def validate_signer(data: Any) -> ValidationResult:
    signer, result = parse_model(SignerIn, data)
    if isinstance(data, dict):
        # runs even when the shape failed so the phone rule shows alongside
        _signer_rules(signer or data, result)
    return result


def signer_order_is_consecutive(orders: Iterable[int]) -> bool:
    ranked = sorted(orders)
    return ranked == list(range(1, len(ranked) + 1))


def validate_flow(data: Any) -> ValidationResult:
    flow, result = parse_model(FlowIn, data)
    if flow is None:
        return result
    for i, s in enumerate(flow.signers):
        _signer_rules(s, result, prefix=f"signers.{i}.")
    if flow.sequence == "SECUENCIAL" and not signer_order_is_consecutive(s.order for s in flow.signers):
        result.add("signers", SEQUENTIAL_ORDER_MESSAGE)
    return result


def validate_template(data: Any, page_count: int | None = None) -> ValidationResult:
    """Shape, declared variables and field geometry; page existence only when `page_count` is known."""
    template, result = parse_model(TemplateIn, data)
    if template is None:
        return result
    undeclared = validate_template_variables(template.content, template.variables)
    if template.variables and undeclared:
        result.warn(f"Variables no declaradas en la plantilla: {', '.join(undeclared)}")
    for i, f in enumerate(template.signature_fields):
        for msg in validate_signature_field(f.model_dump(), page_count=page_count or f.page):
            result.add(f"signatureFields.{i}", msg)
    return result


def validate_envelope(data: Any) -> ValidationResult:
    envelope, result = parse_model(EnvelopeIn, data)
    if envelope is None:
        return result
    for i, s in enumerate(envelope.signers):
        _signer_rules(s.model_dump(), result, prefix=f"signers.{i}.")
    return result


def validate_webhook(data: Any) -> ValidationResult:
    return parse_model(WebhookIn, data)[1]


def validate_branding(data: Any) -> ValidationResult:
    return parse_model(BrandingIn, data)[1]


# ----------------------------
# Template and document helpers
# ----------------------------

def extract_template_variables(content: str) -> list[str]:
    """Distinct `{{ variable }}` names in order of first appearance."""
    seen: list[str] = []
    for raw in _VARIABLE.findall(content):
        name = raw.strip()
        if name not in seen:
            seen.append(name)
    return seen


def validate_template_variables(content: str, variables: Iterable[str]) -> list[str]:
    declared = set(variables)
    return [v for v in (m.strip() for m in _VARIABLE.findall(content)) if v not in declared]


def _lookup(data: dict[str, Any], path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def render_template(template: str, data: dict[str, Any]) -> tuple[str, list[str]]:
    """
    Substitute dotted placeholders (``{{cliente.nombre}}``) from nested data.

    Returns the rendered text and the variables that had no value; those
    placeholders are left in place so the document shows what is missing.
    """
    missing: list[str] = []

    def fill(m: re.Match[str]) -> str:
        name = m.group(1).strip()
        value = _lookup(data, name)
        if value is None:
            missing.append(name)
            return "{{" + name + "}}"
        return str(value)

    return _VARIABLE.sub(fill, template), missing


def validate_signature_field(field: dict[str, Any], page_count: int) -> list[str]:
    errors = []
    if field["page"] > page_count:
        errors.append(f"La página {field['page']} no existe (el documento tiene {page_count} páginas)")
    if field["x"] + field["width"] > PAGE_WIDTH_PT:
        errors.append("El campo de firma excede el ancho de la página")
    if field["y"] + field["height"] > PAGE_HEIGHT_PT:
        errors.append("El campo de firma excede el alto de la página")
    return errors


def reorder_signers(signers: list[Signer]) -> list[Signer]:
    return [s.model_copy(update={"order": i}) for i, s in enumerate(signers, start=1)]


def compute_hash(data: str | bytes) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return f"sha256:{hashlib.sha256(raw).hexdigest()}"


def mask_secret(secret: str | None, visible: int = 4) -> str:
    """Keep both ends of a provider secret; short secrets are fully masked."""
    if not secret or len(secret) <= visible * 2:
        return "*" * (len(secret) if secret else 8)
    return secret[:visible] + "*" * (len(secret) - visible * 2) + secret[-visible:]


# ----------------------------
# Envelope lifecycle
# ----------------------------

class EsignService:
    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    def list(self, filters: EnvelopeFilters | None = None) -> list[Envelope]:
        f = filters or EnvelopeFilters()
        items = self.repos.envelopes.list()
        if f.status:
            items = [e for e in items if e.status == f.status]
        if f.provider_id:
            items = [e for e in items if e.provider_id == f.provider_id]
        if f.template_id:
            items = [e for e in items if e.template_id == f.template_id]
        if f.q:
            needle = f.q.lower()
            items = [e for e in items
                     if needle in e.subject.lower() or any(needle in s.name.lower() for s in e.signers)]
        return sorted(items, key=lambda e: e.created_at, reverse=True)

    def get(self, envelope_id: str) -> Envelope:
        env = self.repos.envelopes.get(envelope_id)
        if env is None:
            raise NotFoundError("Sobre", envelope_id)
        return env

    def create(self, data: dict[str, Any], *, now: datetime | None = None) -> Envelope:
        result = validate_envelope(data)
        if not result.ok:
            log_event(logger, "envelope_rejected", level=logging.WARNING, fields=sorted(result.errors))
            raise InvalidInputError(result, "Sobre inválido")

        payload = EnvelopeIn.model_validate(data)
        now = now or datetime.now(timezone.utc)
        # signers without an explicit order keep their position
        ranked = sorted(enumerate(payload.signers), key=lambda p: (p[1].order or p[0] + 1, p[0]))
        signers = reorder_signers([
            Signer(id=new_id("signer"), **s.model_dump(exclude={"order"}), order=s.order or pos + 1)
            for pos, s in ranked
        ])
        env = Envelope(
            id=new_id("env"),
            template_id=payload.template_id,
            provider_id=payload.provider_id,
            subject=payload.subject,
            message=payload.message,
            created_at=now.isoformat(),
            expires_at=(now + timedelta(days=payload.expires_in_days)).isoformat(),
            signers=signers,
            hash=compute_hash(f"{payload.template_id}|{payload.subject}|{payload.message or ''}"),
        )
        self.repos.envelopes.add(env)
        log_event(logger, "envelope_created", envelope_id=env.id, signers=len(signers))
        return env

    def _transition(self, env: Envelope, allowed: tuple[str, ...], action: str) -> None:
        if env.status not in allowed:
            log_event(logger, "envelope_transition_rejected", level=logging.WARNING,
                      envelope_id=env.id, status=env.status, action=action)
            raise InvalidTransitionError(f"No se puede {action} un sobre en estado {env.status}")

    def send(self, envelope_id: str) -> Envelope:
        env = self.get(envelope_id)
        self._transition(env, ("draft",), "enviar")
        ts = now_iso()
        sent = env.model_copy(update={
            "status": "sent",
            "sent_at": ts,
            "signers": [s.model_copy(update={"status": "sent"}) if s.status == "pending" else s
                        for s in env.signers],
        })
        self.repos.envelopes.replace(sent)
        log_event(logger, "envelope_sent", envelope_id=envelope_id)
        return sent

    def remind(self, envelope_id: str) -> Envelope:
        env = self.get(envelope_id)
        self._transition(env, REMINDABLE, "recordar")
        reminded = env.model_copy(update={"reminders_sent": env.reminders_sent + 1})
        self.repos.envelopes.replace(reminded)
        log_event(logger, "envelope_reminded", envelope_id=envelope_id, count=reminded.reminders_sent)
        return reminded

    def cancel(self, envelope_id: str) -> Envelope:
        env = self.get(envelope_id)
        self._transition(env, CANCELABLE, "cancelar")
        canceled = env.model_copy(update={
            "status": "canceled",
            "signers": [s.model_copy(update={"status": "canceled"}) if s.status not in ("signed", "declined")
                        else s for s in env.signers],
        })
        self.repos.envelopes.replace(canceled)
        log_event(logger, "envelope_canceled", envelope_id=envelope_id)
        return canceled

    def record_signer_event(
        self, envelope_id: str, signer_id: str, event: SignerEvent, *, reason: str | None = None
    ) -> Envelope:
        """Apply a provider callback for one signer and roll the envelope status up."""
        env = self.get(envelope_id)
        self._transition(env, OPEN, "actualizar")
        if not any(s.id == signer_id for s in env.signers):
            raise NotFoundError("Firmante", signer_id)

        ts = now_iso()
        signers = []
        for s in env.signers:
            if s.id == signer_id:
                if s.status in ("signed", "declined"):
                    raise InvalidTransitionError(f"El firmante ya está en estado {s.status}")
                update: dict[str, Any] = {"status": event}
                if event == "viewed":
                    update["viewed_at"] = ts
                elif event == "signed":
                    update["signed_at"] = ts
                    update["viewed_at"] = s.viewed_at or ts
                else:
                    update["declined_at"] = ts
                    update["decline_reason"] = reason
                s = s.model_copy(update=update)
            signers.append(s)

        status = env.status
        completed_at = env.completed_at
        if any(s.status == "declined" for s in signers):
            status, completed_at = "declined", ts
        elif all(s.status == "signed" for s in signers):
            status, completed_at = "signed", ts
        elif any(s.status in ("viewed", "signed") for s in signers):
            status = "viewed"

        updated = env.model_copy(update={"signers": signers, "status": status, "completed_at": completed_at})
        self.repos.envelopes.replace(updated)
        log_event(logger, "envelope_signer_event", envelope_id=envelope_id, signer_id=signer_id,
                  signer_event=event, status=status)
        return updated

    def expire_overdue(self, now: datetime | None = None) -> list[Envelope]:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        expired = []
        for env in self.repos.envelopes.list():
            if env.status not in OPEN or not env.expires_at:
                continue
            deadline = datetime.fromisoformat(env.expires_at.replace("Z", "+00:00"))
            if deadline.tzinfo is None:
                deadline = deadline.replace(tzinfo=timezone.utc)
            if deadline < now:
                done = env.model_copy(update={
                    "status": "expired",
                    "signers": [s.model_copy(update={"status": "expired"}) if s.status not in ("signed", "declined")
                                else s for s in env.signers],
                })
                self.repos.envelopes.replace(done)
                expired.append(done)
        if expired:
            log_event(logger, "envelopes_expired", count=len(expired))
        return expired
