# src/inmoflow/services/portal_rules.py
"""
Checks on the documents an operator edits per portal: credentials, publish
defaults, field mappings, advanced sync settings and the log filters.

The inputs come straight from a form, so each validator accepts a raw dict
(camelCase keys) and reports every problem it finds under a dotted path.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from datetime import date
from typing import Any

from inmoflow.domain.portals import (
    CREDENTIAL_MODES,
    CURRENCIES,
    DELETE_POLICIES,
    DUPLICATE_POLICIES,
    JOB_ACTIONS,
    JOB_STATUSES,
    REQUIRED_TARGETS,
    TEMPLATE_PLACEHOLDERS,
    TRANSFORMS,
    VISIBILITIES,
    HealthScore,
    PortalStats,
    SampleProperty,
)
from inmoflow.domain.validation import ValidationResult

ALIAS_MAX = 50
LOG_PAGE_SIZE_MAX = 100

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
_PHONE = re.compile(r"^[+]?[\d\s\-()]{9,15}$")
_ISO_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_CITY = "Madrid"
DEFAULT_DISTRICT = "Centro"


def _blank(v: Any) -> bool:
    return not isinstance(v, str) or not v.strip()


def _num(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _not_object(message: str) -> ValidationResult:
    return ValidationResult.failure({"__root__": message})


def has_valid_placeholders(template: str) -> bool:
    return all(name in TEMPLATE_PLACEHOLDERS for name in _PLACEHOLDER.findall(template))


# ----------------------------
# Credentials
# ----------------------------

_MODE_FIELDS: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "oauth": ("Configuración OAuth requerida", [("clientId", "Client ID es requerido para OAuth")]),
    "apikey": ("Configuración API Key requerida", [("apiKey", "API Key es requerida")]),
    "creds": (
        "Configuración de credenciales requerida",
        [("username", "Username es requerido"), ("password", "Password es requerido")],
    ),
}


def validate_credentials(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _not_object("Las credenciales deben ser un objeto")
    result = ValidationResult()

    mode = data.get("mode")
    if mode not in CREDENTIAL_MODES:
        result.add("mode", f"Modo inválido. Valores permitidos: {', '.join(CREDENTIAL_MODES)}")

    alias = data.get("alias")
    if _blank(alias):
        result.add("alias", "El alias es requerido")
    elif len(alias) > ALIAS_MAX:
        result.add("alias", f"El alias no puede exceder {ALIAS_MAX} caracteres")

    if mode in _MODE_FIELDS:
        missing_msg, fields = _MODE_FIELDS[mode]
        section = data.get(mode)
        if not isinstance(section, dict):
            result.add(mode, missing_msg)
        else:
            for key, msg in fields:
                if _blank(section.get(key)):
                    result.add(f"{mode}.{key}", msg)
    return result


def mask_secret(secret: str | None, visible: int = 4) -> str | None:
    if not secret or len(secret) <= visible:
        return secret
    return secret[:visible] + "*" * (len(secret) - visible)


def mask_credentials(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of a credentials document with every secret value masked."""
    secret_keys = {"clientSecret", "accessToken", "refreshToken", "apiKey", "password"}
    out = dict(data)
    for section in ("oauth", "apikey", "creds"):
        values = out.get(section)
        if isinstance(values, dict):
            out[section] = {k: mask_secret(v) if k in secret_keys else v for k, v in values.items()}
    return out


# ----------------------------
# Publish defaults
# ----------------------------

def validate_publish_defaults(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _not_object("Los valores por defecto deben ser un objeto")
    result = ValidationResult()

    for key, label in (("titleTpl", "título"), ("descTpl", "descripción")):
        tpl = data.get(key)
        if _blank(tpl):
            result.add(key, f"La plantilla de {label} es requerida")
        elif not has_valid_placeholders(tpl):
            result.add(key, f"La plantilla de {label} contiene placeholders inválidos")

    policy = data.get("pricePolicy")
    if not isinstance(policy, dict):
        result.add("pricePolicy", "La política de precios es requerida")
    else:
        if policy.get("currency") not in CURRENCIES:
            result.add("pricePolicy.currency", f"Moneda inválida. Valores permitidos: {', '.join(CURRENCIES)}")
        margin = policy.get("marginPct")
        if _num(margin) and not -50 <= margin <= 100:
            result.add("pricePolicy.marginPct", "El margen debe estar entre -50% y 100%")
        lo, hi = policy.get("minPrice"), policy.get("maxPrice")
        if _num(lo) and lo < 0:
            result.add("pricePolicy.minPrice", "El precio mínimo debe ser >= 0")
        if _num(hi) and hi < 0:
            result.add("pricePolicy.maxPrice", "El precio máximo debe ser >= 0")
        if _num(lo) and _num(hi) and lo and hi and lo > hi:
            result.add("pricePolicy.maxPrice", "El precio mínimo debe ser <= precio máximo")

    photos = data.get("photosPolicy")
    if isinstance(photos, dict):
        lo, hi = photos.get("min"), photos.get("max")
        if _num(lo) and lo < 0:
            result.add("photosPolicy.min", "El mínimo de fotos debe ser >= 0")
        if _num(hi) and hi < 1:
            result.add("photosPolicy.max", "El máximo de fotos debe ser >= 1")
        if _num(lo) and _num(hi) and lo and hi and lo > hi:
            result.add("photosPolicy.max", "El mínimo de fotos debe ser <= máximo")

    if data.get("visibility") not in VISIBILITIES:
        result.add("visibility", f"Visibilidad inválida. Valores permitidos: {', '.join(VISIBILITIES)}")

    phone = data.get("contactPhone")
    if phone and not (isinstance(phone, str) and _PHONE.match(phone)):
        result.add("contactPhone", "El formato del teléfono no es válido")
    return result


# ----------------------------
# Field mappings
# ----------------------------

def validate_mappings(data: Any) -> ValidationResult:
    if not isinstance(data, list):
        return _not_object("Los mapeos deben ser un array")
    result = ValidationResult()
    maps = [m if isinstance(m, dict) else {} for m in data]

    mapped_required = {m.get("to") for m in maps if m.get("required")}
    missing = [t for t in REQUIRED_TARGETS if t not in mapped_required]
    if len(missing) == 1:
        result.add("mappings", f"El campo obligatorio '{missing[0]}' debe estar mapeado")
    elif missing:
        names = ", ".join(f"'{t}'" for t in missing)
        result.add("mappings", f"Los campos obligatorios {names} deben estar mapeados")

    for i, m in enumerate(maps):
        if _blank(m.get("from")):
            result.add(f"mappings.{i}.from", f"Campo origen requerido en mapeo {i + 1}")
        if _blank(m.get("to")):
            result.add(f"mappings.{i}.to", f"Campo destino requerido en mapeo {i + 1}")
        transform = m.get("transform")
        if transform and transform not in TRANSFORMS:
            result.add(f"mappings.{i}.transform", f"Transformación inválida en mapeo {i + 1}: {transform}")

    dupes = [t for t, n in Counter(m.get("to") for m in maps if m.get("to")).items() if n > 1]
    if dupes:
        result.add("mappings", f"Campos destino duplicados: {', '.join(dupes)}")
    return result


def missing_required_mappings(data: list[dict[str, Any]]) -> list[str]:
    mapped = {m.get("to") for m in data if m.get("required")}
    return [t for t in REQUIRED_TARGETS if t not in mapped]


# ----------------------------
# Advanced config
# ----------------------------

_ADVANCED_RANGES = (
    ("syncFrequencyMin", 1, 1440, "La frecuencia de sync debe estar entre 1 y 1440 minutos"),
    ("throttleReqPerMin", 1, 1000, "El throttle debe estar entre 1 y 1000 req/min"),
    ("errorRetryCount", 0, 10, "Los reintentos deben estar entre 0 y 10"),
    ("backoffMultiplier", 1, 10, "El multiplicador de backoff debe estar entre 1 y 10"),
)


def validate_advanced_config(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _not_object("La configuración avanzada debe ser un objeto")
    result = ValidationResult()
    for key, low, high, msg in _ADVANCED_RANGES:
        v = data.get(key)
        if v is not None and (not _num(v) or not low <= v <= high):
            result.add(key, msg)

    delete = data.get("deletePolicy")
    if delete and delete not in DELETE_POLICIES:
        result.add("deletePolicy", f"Política de borrado inválida. Valores permitidos: {', '.join(DELETE_POLICIES)}")
    dup = data.get("duplicatePolicy")
    if dup and dup not in DUPLICATE_POLICIES:
        result.add(
            "duplicatePolicy",
            f"Política de duplicados inválida. Valores permitidos: {', '.join(DUPLICATE_POLICIES)}",
        )
    return result


# ----------------------------
# Log filters
# ----------------------------

def validate_log_filters(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return _not_object("Los filtros deben ser un objeto")
    result = ValidationResult()

    action = data.get("action")
    if action and action not in JOB_ACTIONS:
        result.add("action", f"Acción inválida. Valores permitidos: {', '.join(JOB_ACTIONS)}")
    outcome = data.get("result")
    if outcome and outcome not in JOB_STATUSES:
        result.add("result", f"Resultado inválido. Valores permitidos: {', '.join(JOB_STATUSES)}")

    start, end = data.get("from"), data.get("to")
    if start and not _ISO_DAY.match(str(start)):
        result.add("from", "Formato de fecha 'from' inválido (YYYY-MM-DD)")
    if end and not _ISO_DAY.match(str(end)):
        result.add("to", "Formato de fecha 'to' inválido (YYYY-MM-DD)")
    if start and end and "from" not in result.errors and "to" not in result.errors:
        try:
            if date.fromisoformat(start) > date.fromisoformat(end):
                result.add("to", "La fecha 'from' debe ser <= 'to'")
        except ValueError:
            result.add("to", "Fecha inválida")

    page = data.get("page")
    if page is not None and (not _num(page) or page < 1):
        result.add("page", "La página debe ser >= 1")
    size = data.get("size")
    if size is not None and (not _num(size) or not 1 <= size <= LOG_PAGE_SIZE_MAX):
        result.add("size", f"El tamaño debe estar entre 1 y {LOG_PAGE_SIZE_MAX}")
    return result


# ----------------------------
# Templates and health
# ----------------------------

def _address_parts(address: str) -> tuple[str, str]:
    # "Street 28, District, City"; the last segment is the city
    parts = [p.strip() for p in address.split(",") if p.strip()]
    city = parts[-1] if len(parts) >= 2 else DEFAULT_CITY
    district = parts[-2] if len(parts) >= 3 else DEFAULT_DISTRICT
    return city, district


def render_template(template: str, prop: SampleProperty) -> str:
    """Fill `{{placeholder}}` tokens; unknown placeholders are left as-is."""
    if not template:
        return template
    city, district = _address_parts(prop.address)
    values: dict[str, Any] = {
        "address": prop.address,
        "sqm": prop.sqm,
        "numRooms": prop.num_rooms,
        "price": prop.price,
        "propertyType": prop.property_type,
        "description": prop.description,
        "features": ", ".join(prop.features),
        "city": city,
        "district": district,
        "floor": "2º",
        "bathrooms": math.ceil(prop.num_rooms / 2),
        "year": "2010",
        "garage": "Sí" if "Garaje" in prop.features else "No",
    }

    def fill(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in values:
            return m.group(0)
        v = values[key]
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return str(v)

    return _PLACEHOLDER.sub(fill, template)


def health_score(stats: PortalStats) -> HealthScore:
    score = 100.0
    if stats.errors_24h > 0:
        score -= min(stats.errors_24h * 5, 40)
    if stats.success_rate < 95:
        score -= (95 - stats.success_rate) * 2
    if stats.avg_response_time and stats.avg_response_time > 2000:
        score -= min((stats.avg_response_time - 2000) / 100, 20)
    final = max(0, round(score))

    if final >= 90:
        level = "excellent"
    elif final >= 75:
        level = "good"
    elif final >= 50:
        level = "warning"
    else:
        level = "critical"
    return HealthScore(score=final, level=level)


def sample_property() -> SampleProperty:
    return SampleProperty(
        address="Calle Gran Vía 28, Centro, Madrid",
        sqm=85,
        num_rooms=3,
        price=320000,
        property_type="Piso",
        description="Luminoso piso en el centro de Madrid con todas las comodidades.",
        features=["Ascensor", "Aire acondicionado", "Calefacción", "Internet"],
    )
