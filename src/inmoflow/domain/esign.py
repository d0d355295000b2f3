# src/inmoflow/domain/esign.py
from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator

from inmoflow.domain.validation import CamelModel

EnvelopeStatus = Literal["draft", "sent", "viewed", "signed", "declined", "expired", "canceled"]
SignerStatus = Literal["pending", "sent", "viewed", "signed", "declined", "expired", "canceled"]
AuthMethod = Literal["EMAIL", "OTP_SMS", "KBA"]
SignerRole = Literal["CLIENTE", "PROPIETARIO", "AGENCIA", "TESTIGO"]
TemplateType = Literal["MANDATO", "ENCARGO", "CONTRATO", "ANEXO", "SEPA", "DPA"]
Language = Literal["es", "en", "ca", "gl", "eu"]
FlowSequence = Literal["SECUENCIAL", "PARALELO"]
FieldKind = Literal["signature", "initial", "checkbox", "text", "date"]

E164_PATTERN = r"^\+?[1-9]\d{1,14}$"
HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# A4 in PDF points
PAGE_WIDTH_PT = 595
PAGE_HEIGHT_PT = 842


def _is_url(value: str, *, https_only: bool = False) -> bool:
    scheme, sep, rest = value.partition("://")
    if not sep or not rest or " " in value:
        return False
    return scheme == "https" if https_only else scheme in ("http", "https")


# ----------------------------
# Provider connection
# ----------------------------

class OAuthConnection(CamelModel):
    type: Literal["oauth"]
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    redirect_uri: str | None = None
    region: str | None = None

    @field_validator("redirect_uri")
    @classmethod
    def _redirect(cls, v: str | None) -> str | None:
        if v is not None and not _is_url(v):
            raise ValueError("URI de redirección inválida")
        return v


class ApiKeyConnection(CamelModel):
    type: Literal["apikey"]
    api_key: str = Field(min_length=1)
    account_id: str | None = None
    region: str | None = None


class PasswordConnection(CamelModel):
    type: Literal["credentials"]
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    account_id: str | None = None


CONNECTION_MODELS: dict[str, type[CamelModel]] = {
    "oauth": OAuthConnection,
    "apikey": ApiKeyConnection,
    "credentials": PasswordConnection,
}


# ----------------------------
# Templates
# ----------------------------

class SignatureField(CamelModel):
    id: str
    type: FieldKind
    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(ge=10)
    height: float = Field(ge=10)
    page: int = Field(ge=1)
    required: bool = True
    signer_id: str | None = None
    label: str | None = None


class TemplateIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    type: TemplateType
    lang: Language = "es"
    office_id: str | None = None
    content: str = Field(min_length=1)
    variables: list[str] = Field(default_factory=list)
    signature_fields: list[SignatureField] = Field(min_length=1)


# ----------------------------
# Signers & flows
# ----------------------------

class SignerIn(CamelModel):
    id: str | None = None
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, pattern=E164_PATTERN)
    role: SignerRole
    auth: AuthMethod
    order: int = Field(ge=1)


class Reminders(CamelModel):
    every_days: int = Field(ge=1, le=30)
    max: int = Field(ge=1, le=10)


class FlowIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    default_provider_id: str | None = None
    reminders: Reminders
    expires_in_days: int = Field(ge=1, le=365)
    sequence: FlowSequence
    signers: list[SignerIn] = Field(min_length=1)
    required_attachments: list[str] | None = None


class EnvelopeSigner(CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, pattern=E164_PATTERN)
    role: SignerRole
    auth: AuthMethod
    order: int | None = Field(default=None, ge=1)


class EnvelopeIn(CamelModel):
    template_id: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=200)
    message: str | None = Field(default=None, max_length=1000)
    signers: list[EnvelopeSigner] = Field(min_length=1)
    expires_in_days: int = Field(default=30, ge=1, le=365)


class Signer(CamelModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    role: SignerRole
    auth: AuthMethod
    order: int
    status: SignerStatus = "pending"
    signed_at: str | None = None
    viewed_at: str | None = None
    declined_at: str | None = None
    decline_reason: str | None = None


class Envelope(CamelModel):
    id: str
    template_id: str
    flow_id: str | None = None
    provider_id: str
    status: EnvelopeStatus = "draft"
    subject: str
    message: str | None = None
    created_at: str
    sent_at: str | None = None
    expires_at: str | None = None
    completed_at: str | None = None
    signers: list[Signer]
    hash: str | None = None
    reminders_sent: int = 0
    metadata: dict[str, Any] | None = None


# ----------------------------
# Webhooks & branding
# ----------------------------

class WebhookIn(CamelModel):
    url: str
    secret: str = Field(min_length=8)
    events: list[str] = Field(min_length=1)
    enabled: bool = True

    @field_validator("url")
    @classmethod
    def _https(cls, v: str) -> str:
        if not _is_url(v):
            raise ValueError("URL de webhook inválida")
        if not v.startswith("https://"):
            raise ValueError("El webhook debe usar HTTPS")
        return v


class BrandingIn(CamelModel):
    provider_id: str = Field(min_length=1)
    logo: str | None = None
    primary_color: str = Field(pattern=HEX_COLOR_PATTERN)
    secondary_color: str = Field(pattern=HEX_COLOR_PATTERN)
    sender_name: str = Field(min_length=1, max_length=50)
    email_subject_template: str = Field(min_length=1, max_length=200)
    email_body_template: str = Field(min_length=1, max_length=2000)
    legal_footer: str | None = Field(default=None, max_length=1000)
    language: Language = "es"

    @field_validator("logo")
    @classmethod
    def _logo_url(cls, v: str | None) -> str | None:
        if v is not None and not _is_url(v):
            raise ValueError("URL de logo inválida")
        return v


class EnvelopeFilters(CamelModel):
    status: EnvelopeStatus | None = None
    provider_id: str | None = None
    template_id: str | None = None
    q: str | None = None
