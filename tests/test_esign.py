from datetime import datetime, timezone

import pytest

from inmoflow.domain.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from inmoflow.domain.esign import EnvelopeFilters
from inmoflow.services.esign import (
    OTP_PHONE_MESSAGE,
    EsignService,
    compute_hash,
    extract_template_variables,
    mask_secret,
    render_template,
    validate_branding,
    validate_connection,
    validate_envelope,
    validate_flow,
    validate_signature_field,
    validate_signer,
    validate_template,
    validate_template_variables,
    validate_webhook,
)

OWNER = {"name": "Juan García", "email": "juan@example.com", "role": "PROPIETARIO", "auth": "EMAIL", "order": 1}
CLIENT = {"name": "María López", "email": "maria@example.com", "phone": "+34600111222", "role": "CLIENTE",
          "auth": "OTP_SMS", "order": 2}


def _flow(sequence="SECUENCIAL", signers=(OWNER, CLIENT)):
    return {"name": "Mandato estándar", "reminders": {"everyDays": 3, "max": 3}, "expiresInDays": 15,
            "sequence": sequence, "signers": list(signers)}


def _template(**overrides):
    data = {
        "name": "Mandato de venta",
        "type": "MANDATO",
        "content": "Yo, {{cliente.nombre}}, autorizo la venta de {{inmueble.direccion}}.",
        "variables": ["cliente.nombre", "inmueble.direccion"],
        "signatureFields": [{"id": "f1", "type": "signature", "x": 100, "y": 700, "width": 150, "height": 50,
                             "page": 1}],
    }
    data.update(overrides)
    return data


def _envelope(**overrides):
    data = {"templateId": "tpl-1", "providerId": "signaturit", "subject": "Mandato Calle Mayor 15",
            "signers": [CLIENT, OWNER]}
    data.update(overrides)
    return data


# ----------------------------
# Validators
# ----------------------------

def test_connection_is_discriminated_by_type():
    assert validate_connection({"type": "oauth", "clientId": "id", "clientSecret": "secret"}).ok
    assert "apiKey" in validate_connection({"type": "apikey"}).errors
    assert "redirectUri" in validate_connection(
        {"type": "oauth", "clientId": "id", "clientSecret": "s", "redirectUri": "not a url"}
    ).errors
    assert list(validate_connection({"type": "saml"}).errors) == ["type"]


def test_otp_signer_needs_phone():
    no_phone = {**CLIENT, "phone": None}
    assert validate_signer(no_phone).errors == {"phone": OTP_PHONE_MESSAGE}
    assert "phone" in validate_signer({**CLIENT, "phone": "600-111"}).errors
    assert validate_signer(OWNER).ok


def test_phone_rule_shows_alongside_shape_errors():
    result = validate_signer({**CLIENT, "phone": None, "email": "no-at-sign"})
    assert set(result.errors) == {"email", "phone"}


def test_sequential_flow_needs_consecutive_orders():
    assert validate_flow(_flow()).ok
    gap = _flow(signers=(OWNER, {**CLIENT, "order": 3}))
    assert validate_flow(gap).errors == {
        "signers": "Un flujo secuencial debe tener órdenes consecutivos empezando en 1"
    }
    assert validate_flow({**gap, "sequence": "PARALELO"}).ok


def test_flow_reports_signer_phone_by_index():
    flow = _flow(signers=(OWNER, {**CLIENT, "phone": None}))
    assert validate_flow(flow).errors == {"signers.1.phone": OTP_PHONE_MESSAGE}


def test_template_checks():
    assert validate_template(_template()).ok
    assert "signatureFields" in validate_template(_template(signatureFields=[])).errors

    wide = _template(signatureFields=[{"id": "f", "type": "signature", "x": 500, "y": 10, "width": 200,
                                       "height": 40, "page": 2}])
    result = validate_template(wide, page_count=1)
    assert result.errors == {"signatureFields.0": "La página 2 no existe (el documento tiene 1 páginas)"}


def test_template_warns_on_undeclared_variables():
    result = validate_template(_template(variables=["cliente.nombre"]))
    assert result.ok
    assert result.warnings == ["Variables no declaradas en la plantilla: inmueble.direccion"]


def test_envelope_webhook_branding():
    assert validate_envelope(_envelope()).ok
    assert "subject" in validate_envelope(_envelope(subject="")).errors

    hook = {"url": "https://crm.example.com/hooks/esign", "secret": "s3cr3t-value", "events": ["signed"]}
    assert validate_webhook(hook).ok
    assert validate_webhook({**hook, "url": "http://crm.example.com"}).errors == {"url": "El webhook debe usar HTTPS"}
    assert set(validate_webhook({**hook, "secret": "short", "events": []}).errors) == {"secret", "events"}

    brand = {"providerId": "signaturit", "primaryColor": "#0A84FF", "secondaryColor": "#fff",
             "senderName": "Inmoflow", "emailSubjectTemplate": "Firma pendiente",
             "emailBodyTemplate": "Tiene un documento pendiente de firma."}
    assert validate_branding(brand).ok
    assert "primaryColor" in validate_branding({**brand, "primaryColor": "blue"}).errors


# ----------------------------
# Helpers
# ----------------------------

def test_template_variables():
    content = "Hola {{ cliente.nombre }}, firma el {{fecha}}. {{cliente.nombre}}"
    assert extract_template_variables(content) == ["cliente.nombre", "fecha"]
    assert validate_template_variables(content, ["cliente.nombre"]) == ["fecha"]


def test_render_reports_missing_values():
    rendered, missing = render_template(
        "Hola {{cliente.nombre}}, firma el {{fecha}}", {"cliente": {"nombre": "Ana"}}
    )
    assert rendered == "Hola Ana, firma el {{fecha}}"
    assert missing == ["fecha"]


def test_signature_field_geometry():
    field = {"x": 450, "y": 800, "width": 200, "height": 60, "page": 1}
    assert validate_signature_field(field, page_count=1) == [
        "El campo de firma excede el ancho de la página",
        "El campo de firma excede el alto de la página",
    ]


def test_hash_and_mask():
    assert compute_hash("abc") == "sha256:ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert compute_hash(b"abc") == compute_hash("abc")
    assert mask_secret("abcdefghijkl") == "abcd****ijkl"
    assert mask_secret("abc") == "***"
    assert mask_secret(None) == "********"


# ----------------------------
# Envelope lifecycle
# ----------------------------

def test_create_orders_signers(repos):
    env = EsignService(repos).create(_envelope(), now=datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert env.status == "draft"
    assert [(s.name, s.order) for s in env.signers] == [("Juan García", 1), ("María López", 2)]
    assert env.expires_at.startswith("2025-01-31")
    assert env.hash.startswith("sha256:")


def test_create_rejects_invalid(repos):
    with pytest.raises(InvalidInputError) as exc:
        EsignService(repos).create(_envelope(signers=[{**CLIENT, "phone": None}]))
    assert "signers.0.phone" in exc.value.errors


def test_full_signing_lifecycle(repos):
    service = EsignService(repos)
    env = service.create(_envelope())
    sent = service.send(env.id)
    assert sent.status == "sent" and sent.sent_at
    assert {s.status for s in sent.signers} == {"sent"}

    with pytest.raises(InvalidTransitionError):
        service.send(env.id)

    assert service.remind(env.id).reminders_sent == 1

    first, second = sent.signers
    viewed = service.record_signer_event(env.id, first.id, "viewed")
    assert viewed.status == "viewed"
    service.record_signer_event(env.id, first.id, "signed")
    done = service.record_signer_event(env.id, second.id, "signed")
    assert done.status == "signed" and done.completed_at
    assert all(s.signed_at for s in done.signers)

    with pytest.raises(InvalidTransitionError):
        service.cancel(env.id)


def test_decline_closes_the_envelope(repos):
    service = EsignService(repos)
    env = service.send(service.create(_envelope()).id)
    declined = service.record_signer_event(env.id, env.signers[1].id, "declined", reason="Precio no acordado")
    assert declined.status == "declined"
    assert declined.signers[1].decline_reason == "Precio no acordado"


def test_unknown_signer_and_envelope(repos):
    service = EsignService(repos)
    with pytest.raises(NotFoundError):
        service.get("env-404")
    with pytest.raises(NotFoundError):
        service.record_signer_event("env-2", "signer-404", "viewed")


def test_cancel_and_remind_rules(repos):
    service = EsignService(repos)
    draft = service.create(_envelope())
    with pytest.raises(InvalidTransitionError):
        service.remind(draft.id)
    canceled = service.cancel(draft.id)
    assert canceled.status == "canceled"
    assert {s.status for s in canceled.signers} == {"canceled"}


def test_overdue_envelopes_expire(repos):
    service = EsignService(repos)
    expired = service.expire_overdue(now=datetime(2024, 3, 1, tzinfo=timezone.utc))
    assert [e.id for e in expired] == ["env-2"]
    env = service.get("env-2")
    assert env.status == "expired"
    assert [s.status for s in env.signers] == ["expired", "expired"]
    assert service.get("env-1").status == "signed"


def test_naive_now_is_read_as_utc(repos):
    expired = EsignService(repos).expire_overdue(now=datetime(2024, 3, 1))
    assert [e.id for e in expired] == ["env-2"]


def test_list_filters(repos):
    service = EsignService(repos)
    assert [e.id for e in service.list()] == ["env-2", "env-1"]
    assert [e.id for e in service.list(EnvelopeFilters(status="signed"))] == ["env-1"]
    assert [e.id for e in service.list(EnvelopeFilters(q="maría"))] == ["env-2"]
