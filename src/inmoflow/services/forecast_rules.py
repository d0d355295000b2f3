# src/inmoflow/services/forecast_rules.py
"""
Field checks for projection assumptions, dashboard filters and forecast
scenarios. Inputs are partial: only the keys that are present get checked.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from inmoflow.adapters.config import config
from inmoflow.domain.forecast import Assumptions
from inmoflow.domain.validation import ValidationResult

CURRENCIES = ("EUR", "USD", "GBP")
SCENARIO_KINDS = ("BASELINE", "OPTIMISTIC", "PESSIMISTIC", "CUSTOM")
SCENARIO_NAME_MAX = 100

# key -> (low, high, message); None means unbounded on that side
_RATE_FIELDS: dict[str, tuple[float | None, float | None, str]] = {
    "convLeadVisit": (0, 1, "La conversión Lead→Visita debe estar entre 0 y 1"),
    "convVisitOffer": (0, 1, "La conversión Visita→Oferta debe estar entre 0 y 1"),
    "convOfferReservation": (0, 1, "La conversión Oferta→Reserva debe estar entre 0 y 1"),
    "convReservationContract": (0, 1, "La conversión Reserva→Contrato debe estar entre 0 y 1"),
    "avgTicketSale": (0, None, "El ticket medio de venta debe ser mayor o igual a 0"),
    "avgTicketRent": (0, None, "El ticket medio de alquiler debe ser mayor o igual a 0"),
    "feesPctSale": (0, 1, "El porcentaje de honorarios de venta debe estar entre 0 y 1"),
    "feesPctRent": (0, 1, "El porcentaje de honorarios de alquiler debe estar entre 0 y 1"),
    "commissionPct": (0, 1, "El porcentaje de comisión debe estar entre 0 y 1"),
    "fixedCosts": (0, None, "Los costos fijos deben ser mayor o igual a 0"),
    "cac": (0, None, "El CAC debe ser mayor o igual a 0"),
}


def _as_dict(data: Any) -> dict[str, Any] | None:
    if isinstance(data, Assumptions):
        return data.model_dump(by_alias=True, exclude_none=True)
    if isinstance(data, dict):
        return data
    return None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_assumptions(data: Any) -> ValidationResult:
    result = ValidationResult()
    values = _as_dict(data)
    if values is None:
        return ValidationResult.failure({"__root__": "Se esperaba un objeto"})

    for key, (low, high, message) in _RATE_FIELDS.items():
        v = values.get(key)
        if v is None:
            continue
        if not _is_number(v):
            result.add(key, "Debe ser un número")
        elif (low is not None and v < low) or (high is not None and v > high):
            result.add(key, message)

    cycle = values.get("cycleDays")
    if cycle is not None and (not _is_number(cycle) or cycle <= 0):
        result.add("cycleDays", "Los días del ciclo deben ser mayor a 0")

    seasonality = values.get("seasonality")
    if seasonality:
        if not isinstance(seasonality, list) or len(seasonality) != 12:
            result.add("seasonality", "La estacionalidad debe tener exactamente 12 valores (uno por mes)")
        elif any(not _is_number(f) or f < 0 or f > 2 for f in seasonality):
            result.add("seasonality", "Cada factor de estacionalidad debe estar entre 0 y 2")
    return result


def validate_assumption_field(field: str, value: Any) -> str | None:
    return validate_assumptions({field: value}).errors.get(field)


def _parse_date(value: Any) -> date | None:
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def validate_forecast_filters(data: dict[str, Any], max_months: int | None = None) -> ValidationResult:
    max_months = config.MAX_FORECAST_MONTHS if max_months is None else max_months
    result = ValidationResult()

    start_raw, end_raw = data.get("from"), data.get("to")
    if not start_raw:
        result.add("from", "La fecha inicial es requerida")
    if not end_raw:
        result.add("to", "La fecha final es requerida")

    if start_raw and end_raw:
        start, end = _parse_date(start_raw), _parse_date(end_raw)
        if start is None:
            result.add("from", "Fecha inválida")
        if end is None:
            result.add("to", "Fecha inválida")
        if start and end:
            if start >= end:
                result.add("to", "La fecha final debe ser posterior a la fecha inicial")
            if months_between(start, end) > max_months:
                result.add("to", f"El máximo período de proyección es {max_months} meses")

    currency = data.get("currency")
    if not currency:
        result.add("currency", "La moneda es requerida")
    elif currency not in CURRENCIES:
        result.add("currency", "La moneda debe ser EUR, USD o GBP")
    return result


def validate_forecast_scenario(data: dict[str, Any]) -> ValidationResult:
    result = ValidationResult()

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        result.add("name", "El nombre del escenario es requerido")
    elif len(name) > SCENARIO_NAME_MAX:
        result.add("name", f"El nombre del escenario no puede tener más de {SCENARIO_NAME_MAX} caracteres")

    kind = data.get("kind")
    if not kind:
        result.add("kind", "El tipo de escenario es requerido")
    elif kind not in SCENARIO_KINDS:
        result.add("kind", "El tipo de escenario debe ser BASELINE, OPTIMISTIC, PESSIMISTIC o CUSTOM")

    assumptions = data.get("assumptions")
    if assumptions:
        result.merge(validate_assumptions(assumptions), prefix="assumptions")
    return result


def _clamp(v: float, low: float, high: float | None = None) -> float:
    v = max(low, v)
    return min(high, v) if high is not None else v


def sanitize_assumptions(data: Assumptions | dict[str, Any]) -> Assumptions:
    """Clamp every present numeric field into its allowed range."""
    a = data if isinstance(data, Assumptions) else Assumptions.model_validate(data)
    updates: dict[str, Any] = {}
    for name in ("conv_lead_visit", "conv_visit_offer", "conv_offer_reservation",
                 "conv_reservation_contract", "fees_pct_sale", "fees_pct_rent", "commission_pct"):
        v = getattr(a, name)
        if v is not None:
            updates[name] = _clamp(v, 0, 1)
    for name in ("avg_ticket_sale", "avg_ticket_rent", "fixed_costs", "cac"):
        v = getattr(a, name)
        if v is not None:
            updates[name] = _clamp(v, 0)
    if a.cycle_days is not None:
        updates["cycle_days"] = _clamp(a.cycle_days, 1)
    if a.seasonality is not None:
        updates["seasonality"] = [_clamp(f, 0, 2) for f in a.seasonality]
    return a.model_copy(update=updates)
