# src/inmoflow/domain/portals.py
from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from inmoflow.domain.validation import CamelModel

PortalStatus = Literal["CONNECTED", "DISCONNECTED", "TOKEN_EXPIRED", "ERROR", "PAUSED"]
PortalMode = Literal["API", "FEED"]
CredentialMode = Literal["oauth", "apikey", "creds"]
JobAction = Literal["create", "update", "delete"]
JobStatus = Literal["ok", "error", "pending"]
Visibility = Literal["public", "private"]
DeletePolicy = Literal["remove", "pause", "archive"]
DuplicatePolicy = Literal["skip", "update", "create"]
AuditEventType = Literal[
    "connect", "disconnect", "credential_update", "config_change", "mapping_change", "sync_retry",
]
HealthLevel = Literal["excellent", "good", "warning", "critical"]

CREDENTIAL_MODES = ("oauth", "apikey", "creds")
CURRENCIES = ("EUR", "USD", "GBP")
VISIBILITIES = ("public", "private")
JOB_ACTIONS = ("create", "update", "delete")
JOB_STATUSES = ("ok", "error", "pending")
DELETE_POLICIES = ("remove", "pause", "archive")
DUPLICATE_POLICIES = ("skip", "update", "create")
TRANSFORMS = ("stringify", "lowercase", "uppercase", "truncate", "enum_map")

# Fields every portal needs on a listing
REQUIRED_TARGETS = ("propertyType", "price", "address")

TEMPLATE_PLACEHOLDERS = (
    "address", "sqm", "numRooms", "price", "propertyType", "description",
    "features", "city", "district", "floor", "bathrooms", "year", "garage",
)


class PortalInfo(CamelModel):
    id: str
    name: str
    logo: str | None = None
    mode: PortalMode = "API"
    status: PortalStatus = "DISCONNECTED"
    last_sync_at: str | None = None
    description: str | None = None
    api_version: str | None = None
    supported_actions: list[JobAction] = Field(default_factory=list)
    website_url: str | None = None


# ----------------------------
# Credentials
# ----------------------------

class OAuthCredentials(CamelModel):
    client_id: str
    client_secret: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: str | None = None


class ApiKeyCredentials(CamelModel):
    api_key: str
    account_id: str | None = None
    region: str | None = None


class UserCredentials(CamelModel):
    username: str
    password: str


class Credentials(CamelModel):
    mode: CredentialMode
    alias: str
    office_scope: str | None = None
    updated_at: str | None = None
    oauth: OAuthCredentials | None = None
    apikey: ApiKeyCredentials | None = None
    creds: UserCredentials | None = None


# ----------------------------
# Publishing config
# ----------------------------

class PricePolicy(CamelModel):
    currency: str = "EUR"
    margin_pct: float | None = None
    rounding: float | None = None
    min_price: float | None = None
    max_price: float | None = None


class PhotosPolicy(CamelModel):
    min: int | None = None
    max: int | None = None
    watermark: bool = False
    quality: int | None = None


class PublishDefaults(CamelModel):
    title_tpl: str
    desc_tpl: str
    price_policy: PricePolicy
    photos_policy: PhotosPolicy | None = None
    visibility: Visibility = "public"
    auto_renew: bool = False
    contact_phone: str | None = None


class FieldMap(CamelModel):
    from_: str = Field(alias="from")
    to: str
    required: bool = False
    transform: str | None = None


class AdvancedConfig(CamelModel):
    sync_frequency_min: int = 15
    throttle_req_per_min: int = 60
    delete_policy: DeletePolicy = "pause"
    duplicate_policy: DuplicatePolicy = "skip"
    error_retry_count: int = 3
    backoff_multiplier: float = 2


class PortalConfig(CamelModel):
    credentials: Credentials | None = None
    publish_defaults: PublishDefaults | None = None
    mappings: list[FieldMap] = Field(default_factory=list)
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)
    updated_at: str | None = None
    updated_by: str | None = None


# ----------------------------
# Sync jobs, stats, logs, audit
# ----------------------------

class SyncJob(CamelModel):
    id: str
    portal_id: str
    action: JobAction
    entity: str = "property"
    ref: str
    status: JobStatus = "pending"
    duration_ms: int | None = None
    attempts: int = 0
    message: str | None = None
    at: str
    started_at: str | None = None
    completed_at: str | None = None


class PortalStats(CamelModel):
    from_: str = Field(alias="from")
    to: str
    active_listings: int = 0
    leads: int = 0
    errors_24h: int = 0
    cost: float | None = None
    cpl: float | None = None
    cpa: float | None = None
    duplicates_pct: float | None = None
    avg_response_time: float | None = None
    total_requests: int = 0
    success_rate: float = 100.0


class HealthScore(CamelModel):
    score: int
    level: HealthLevel


class LogEntry(CamelModel):
    id: str
    timestamp: str
    portal_id: str
    portal_name: str
    action: JobAction
    entity: str = "property"
    entity_id: str
    result: JobStatus
    message: str | None = None
    duration: int | None = None
    user: str = "system"


class LogFilters(CamelModel):
    portal_id: str | None = None
    action: JobAction | None = None
    result: JobStatus | None = None
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    page: int = 1
    size: int = 20


class LogPage(CamelModel):
    logs: list[LogEntry]
    total: int
    page: int
    total_pages: int


class AuditEvent(CamelModel):
    id: str
    timestamp: str
    portal_id: str
    portal_name: str
    event_type: AuditEventType
    user: str
    description: str
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    ip_address: str | None = None


class SampleProperty(CamelModel):
    address: str
    sqm: float
    num_rooms: int
    price: float
    property_type: str
    description: str = ""
    features: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
