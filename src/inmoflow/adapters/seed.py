# src/inmoflow/adapters/seed.py
"""
Demo data for the in-memory stores: the forecast taxonomy, portal catalogue,
a couple of sync jobs and envelopes, and a seeded property generator.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np

from inmoflow.domain.esign import Envelope, Signer
from inmoflow.domain.forecast import ForecastCategory, ForecastItem, ForecastPeriod, ForecastScenario
from inmoflow.domain.portals import (
    AdvancedConfig,
    ApiKeyCredentials,
    AuditEvent,
    Credentials,
    FieldMap,
    LogEntry,
    PhotosPolicy,
    PortalConfig,
    PortalInfo,
    PricePolicy,
    PublishDefaults,
    SyncJob,
)
from inmoflow.domain.property import Activity, Coordinates, PriceHistoryEntry, PricingInfo, Property

PROPERTY_TYPES = ("piso", "atico", "duplex", "casa", "chalet", "estudio", "loft")
PROPERTY_STATUSES = ("borrador", "activo", "vendido", "alquilado")
AGENTS = ("Ana García", "Carlos López", "María Rodríguez", "Juan Martín", "Laura Sánchez")
FEATURES = ("Exterior", "Luminoso", "Céntrico")

# city -> (lat, lng) of the centre
CITY_CENTRES: dict[str, tuple[float, float]] = {
    "Madrid": (40.4168, -3.7038),
    "Barcelona": (41.3874, 2.1686),
    "Valencia": (39.4699, -0.3763),
    "Sevilla": (37.3891, -5.9845),
    "Bilbao": (43.2630, -2.9350),
    "Málaga": (36.7213, -4.4214),
}

_SEEDED_AT = "2024-01-01T00:00:00Z"


def generate_property(rng: np.random.Generator, index: int, now: datetime | None = None) -> Property:
    now = now or datetime.now(timezone.utc)
    kind = PROPERTY_TYPES[rng.integers(len(PROPERTY_TYPES))]
    city = list(CITY_CENTRES)[rng.integers(len(CITY_CENTRES))]
    lat, lng = CITY_CENTRES[city]
    price = float(rng.integers(100_000, 900_000))
    created = now - timedelta(days=float(rng.uniform(0, 90)))

    return Property(
        id=f"prop-{index:04d}",
        title=f"{kind.capitalize()} en {city}",
        address=f"Calle Ejemplo {int(rng.integers(1, 101))}",
        city=city,
        type=kind,
        status=PROPERTY_STATUSES[rng.integers(len(PROPERTY_STATUSES))],
        price=price,
        area=float(rng.integers(50, 250)),
        rooms=int(rng.integers(1, 6)),
        bathrooms=int(rng.integers(1, 4)),
        exclusive=bool(rng.random() > 0.6),
        agent=AGENTS[rng.integers(len(AGENTS))],
        description=f"Excelente {kind} en {city} con gran potencial",
        features=list(FEATURES[: int(rng.integers(1, 4))]),
        coordinates=Coordinates(
            lat=round(lat + float(rng.uniform(-0.03, 0.03)), 6),
            lng=round(lng + float(rng.uniform(-0.03, 0.03)), 6),
        ),
        created_at=created.isoformat(),
        updated_at=now.isoformat(),
        activity=Activity(
            visits=int(rng.integers(0, 100)),
            inquiries=int(rng.integers(0, 20)),
            saves=int(rng.integers(0, 30)),
        ),
        pricing=PricingInfo(
            original_price=price,
            history=[PriceHistoryEntry(price=price, date=now.isoformat(), reason="Precio inicial")],
        ),
    )


def generate_properties(count: int = 50, seed: int = 42) -> list[Property]:
    """Same seed, same catalogue (ids, prices, cities and coordinates)."""
    rng = np.random.default_rng(seed)
    now = datetime.now(timezone.utc)
    return [generate_property(rng, i + 1, now) for i in range(count)]


# ----------------------------
# Forecast taxonomy
# ----------------------------

def forecast_periods() -> list[ForecastPeriod]:
    rows = [
        ("1", "Q1 2024", "2024-01-01", "2024-03-31", True),
        ("2", "Q2 2024", "2024-04-01", "2024-06-30", True),
        ("3", "Q3 2024", "2024-07-01", "2024-09-30", False),
    ]
    return [
        ForecastPeriod(id=i, name=n, start_date=s, end_date=e, is_active=a,
                       created_at=_SEEDED_AT, updated_at=_SEEDED_AT)
        for i, n, s, e, a in rows
    ]


def forecast_categories() -> list[ForecastCategory]:
    rows = [
        ("1", "Ventas", "Ingresos por ventas de propiedades", "#10B981"),
        ("2", "Alquileres", "Ingresos por alquiler de propiedades", "#3B82F6"),
        ("3", "Marketing", "Gastos de marketing y publicidad", "#F59E0B"),
        ("4", "Operaciones", "Gastos operativos generales", "#EF4444"),
    ]
    return [
        ForecastCategory(id=i, name=n, description=d, color=c, created_at=_SEEDED_AT, updated_at=_SEEDED_AT)
        for i, n, d, c in rows
    ]


def forecast_items() -> list[ForecastItem]:
    rows = [
        ("1", "1", "1", "Venta Apartamento Centro", "Venta de apartamento en zona centro", "income",
         45000, 85, "confirmed", ["venta", "apartamento", "centro"], "2024-01-15T10:00:00Z"),
        ("2", "1", "2", "Alquiler Local Comercial", "Alquiler de local en zona comercial", "income",
         1200, 70, "draft", ["alquiler", "local", "comercial"], "2024-01-10T14:30:00Z"),
        ("3", "1", "3", "Campaña Google Ads", "Campaña publicitaria en Google Ads", "expense",
         2500, 90, "confirmed", ["marketing", "digital", "ads"], "2024-01-05T09:15:00Z"),
        ("4", "1", "4", "Mantenimiento Oficina", "Gastos de mantenimiento de oficina", "expense",
         800, 95, "confirmed", ["mantenimiento", "oficina"], "2024-01-20T16:45:00Z"),
        ("5", "2", "1", "Venta Casa Familiar", "Venta de casa familiar en urbanización", "income",
         280000, 60, "draft", ["venta", "casa", "familiar"], "2024-02-01T11:20:00Z"),
    ]
    return [
        ForecastItem(
            id=i, period_id=p, category_id=c, name=n, description=d, type=t, amount=a,
            probability=prob, status=s, tags=tags, created_at=ts, updated_at=ts,
        )
        for i, p, c, n, d, t, a, prob, s, tags, ts in rows
    ]


def forecast_scenarios() -> list[ForecastScenario]:
    rows = [
        ("1", "Escenario Base", "Escenario de referencia con probabilidades medias", 50, "BASELINE"),
        ("2", "Escenario Optimista", "Escenario con mejores expectativas", 25, "OPTIMISTIC"),
        ("3", "Escenario Pesimista", "Escenario con expectativas conservadoras", 25, "PESSIMISTIC"),
    ]
    return [
        ForecastScenario(id=i, name=n, description=d, probability=p, kind=k,
                         created_at=_SEEDED_AT, updated_at=_SEEDED_AT)
        for i, n, d, p, k in rows
    ]


# ----------------------------
# Portals
# ----------------------------

def portals() -> list[PortalInfo]:
    return [
        PortalInfo(id="idealista", name="Idealista", mode="API", status="CONNECTED",
                   last_sync_at="2024-01-15T10:30:00Z", description="Portal líder en España",
                   api_version="v3", supported_actions=["create", "update", "delete"],
                   website_url="https://www.idealista.com"),
        PortalInfo(id="fotocasa", name="Fotocasa", mode="API", status="TOKEN_EXPIRED",
                   last_sync_at="2024-01-14T15:45:00Z", description="Portal con enfoque fotográfico",
                   api_version="v2", supported_actions=["create", "update"],
                   website_url="https://www.fotocasa.es"),
        PortalInfo(id="habitaclia", name="Habitaclia", mode="API", status="CONNECTED",
                   last_sync_at="2024-01-15T09:15:00Z", description="Portal especializado en Cataluña",
                   api_version="v1", supported_actions=["create", "update", "delete"],
                   website_url="https://www.habitaclia.com"),
        PortalInfo(id="pisos.com", name="Pisos.com", mode="FEED", status="DISCONNECTED",
                   description="Portal tradicional", api_version="v1", supported_actions=["create"],
                   website_url="https://www.pisos.com"),
    ]


def default_portal_config(portal_id: str) -> PortalConfig:
    return PortalConfig(
        credentials=Credentials(
            mode="apikey", alias=f"{portal_id}-prod", office_scope="global",
            apikey=ApiKeyCredentials(api_key="sk_test_123456789abcdef", account_id="acc_123456",
                                     region="eu-west-1"),
        ),
        publish_defaults=PublishDefaults(
            title_tpl="{{propertyType}} de {{numRooms}} habitaciones en {{address}}",
            desc_tpl="{{description}} Superficie: {{sqm}}m². Características: {{features}}.",
            price_policy=PricePolicy(currency="EUR", margin_pct=0, rounding=1000),
            photos_policy=PhotosPolicy(min=3, max=20, watermark=False, quality=85),
            visibility="public",
            auto_renew=True,
            contact_phone="+34 900 123 456",
        ),
        mappings=[
            FieldMap(from_="type", to="propertyType", required=True),
            FieldMap(from_="rooms", to="numRooms"),
            FieldMap(from_="location", to="address", required=True),
            FieldMap(from_="cost", to="price", required=True, transform="stringify"),
        ],
        advanced=AdvancedConfig(),
        updated_at="2024-01-10T12:00:00Z",
        updated_by="admin@inmoflow.com",
    )


def portal_configs() -> dict[str, PortalConfig]:
    return {p.id: default_portal_config(p.id) for p in portals() if p.status != "DISCONNECTED"}


def sync_jobs() -> list[SyncJob]:
    return [
        SyncJob(id="job1", portal_id="idealista", action="create", ref="PROP001", status="ok",
                duration_ms=1250, attempts=1, message="Propiedad creada exitosamente",
                at="2024-01-15T10:30:00Z", started_at="2024-01-15T10:29:58Z",
                completed_at="2024-01-15T10:30:00Z"),
        SyncJob(id="job2", portal_id="fotocasa", action="update", ref="PROP002", status="error",
                duration_ms=5000, attempts=3, message="Token de acceso expirado",
                at="2024-01-15T10:25:00Z"),
    ]


def portal_logs() -> list[LogEntry]:
    return [
        LogEntry(id="log1", timestamp="2024-01-15T10:30:00Z", portal_id="idealista", portal_name="Idealista",
                 action="create", entity_id="PROP001", result="ok", message="Propiedad publicada",
                 duration=1250, user="admin@inmoflow.com"),
        LogEntry(id="log2", timestamp="2024-01-15T10:25:00Z", portal_id="fotocasa", portal_name="Fotocasa",
                 action="update", entity_id="PROP002", result="error", message="Token expirado",
                 duration=5000, user="system"),
    ]


def portal_audit() -> list[AuditEvent]:
    return [
        AuditEvent(id="audit1", timestamp="2024-01-15T09:00:00Z", portal_id="idealista",
                   portal_name="Idealista", event_type="credential_update", user="admin@inmoflow.com",
                   description="Actualizada API key", old_value={"apiKey": "sk_old_***"},
                   new_value={"apiKey": "sk_new_***"}, ip_address="192.168.1.100"),
        AuditEvent(id="audit2", timestamp="2024-01-14T16:30:00Z", portal_id="fotocasa",
                   portal_name="Fotocasa", event_type="mapping_change", user="marketing@inmoflow.com",
                   description="Modificado mapeo de campos", old_value={"mappings": 4},
                   new_value={"mappings": 5}),
    ]


# ----------------------------
# E-signature
# ----------------------------

def envelopes() -> list[Envelope]:
    return [
        Envelope(
            id="env-1", template_id="tpl-1", provider_id="signaturit", status="signed",
            subject="Mandato de gestión - Piso Calle Mayor 15",
            message="Por favor, firme este mandato de gestión comercial",
            created_at="2024-01-15T09:00:00Z", sent_at="2024-01-15T09:05:00Z",
            completed_at="2024-01-15T14:30:00Z", expires_at="2024-01-30T23:59:59Z",
            signers=[Signer(id="signer-1", name="Juan García", email="juan.garcia@email.com",
                            role="PROPIETARIO", auth="EMAIL", order=1, status="signed",
                            signed_at="2024-01-15T14:30:00Z", viewed_at="2024-01-15T14:25:00Z")],
        ),
        Envelope(
            id="env-2", template_id="tpl-2", provider_id="signaturit", status="sent",
            subject="Contrato de arrendamiento - Apartamento Zona Centro",
            created_at="2024-01-16T11:30:00Z", sent_at="2024-01-16T11:35:00Z",
            expires_at="2024-02-15T23:59:59Z",
            signers=[
                Signer(id="signer-2", name="María López", email="maria.lopez@email.com", phone="+34600111222",
                       role="CLIENTE", auth="OTP_SMS", order=1, status="viewed",
                       viewed_at="2024-01-16T15:20:00Z"),
                Signer(id="signer-3", name="Pedro Martín", email="pedro.martin@email.com",
                       role="PROPIETARIO", auth="EMAIL", order=2),
            ],
        ),
    ]
