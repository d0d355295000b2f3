# src/inmoflow/services/pricing_rules.py
"""
Cross-field business rules for pricing records.

Every validator here is pure and synchronous: it takes a raw dict (form
input, JSON body) or an already-parsed model and returns a ValidationResult.
Shape errors come back as field errors; cross-field rules only run once the
record parses, and all of them run so the caller sees every violation.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from inmoflow.adapters.config import config
from inmoflow.domain.pricing import (
    Constraints,
    ElasticityAnalysis,
    ElasticityPoint,
    NetWaterfall,
    OfferSimulation,
    PricePlan,
    Recommendation,
    Scenario,
    Subject,
)
from inmoflow.domain.validation import ValidationResult, parse_model


@dataclass(frozen=True)
class PricingRules:
    """Thresholds behind the pricing rules; defaults come from AppConfig."""
    min_owner_appraisal_ceiling: float = 1.20
    list_price_appraisal_ceiling: float = 1.25
    waterfall_tolerance: float = 1.0
    offer_distribution_tolerance: float = 0.05

    @classmethod
    def from_config(cls) -> "PricingRules":
        return cls(
            min_owner_appraisal_ceiling=config.MIN_OWNER_APPRAISAL_CEILING,
            list_price_appraisal_ceiling=config.LIST_PRICE_APPRAISAL_CEILING,
            waterfall_tolerance=config.WATERFALL_TOLERANCE,
            offer_distribution_tolerance=config.OFFER_DISTRIBUTION_TOLERANCE,
        )


def _rules(rules: PricingRules | None) -> PricingRules:
    return rules or PricingRules.from_config()


# ----------------------------
# Small standalone checks
# ----------------------------

def price_hierarchy_holds(anchor_price: float, list_price: float, min_acceptable: float) -> bool:
    return anchor_price >= list_price >= min_acceptable


def validate_bank_appraisal_limit(
    list_price: float,
    bank_appraisal: float | None,
    rules: PricingRules | None = None,
) -> bool:
    if not bank_appraisal:
        return True
    return list_price <= bank_appraisal * _rules(rules).list_price_appraisal_ceiling


def validate_price_step(price: float, min_step: float = 1000) -> bool:
    return price >= min_step and price % min_step == 0


_FILTER_CLIFFS = (50_000, 100_000, 150_000, 200_000, 250_000, 300_000, 400_000, 500_000)


def validate_filter_cliffs(price: float) -> dict[str, Any]:
    """Flag prices just above a round portal search-filter threshold."""
    for cliff in _FILTER_CLIFFS:
        if cliff < price < cliff + 5000:
            return {"is_cliff": True, "suggestion": cliff - 1000}
    return {"is_cliff": False}


def validate_owner_constraints(
    list_price: float,
    min_acceptable: float,
    constraints: Constraints | dict[str, Any],
) -> list[str]:
    if isinstance(constraints, dict):
        constraints = Constraints.model_validate(constraints)

    errors: list[str] = []
    if min_acceptable < constraints.min_owner:
        errors.append("Precio mínimo aceptable debe ser ≥ mínimo del propietario")
    if constraints.min_net_proceeds and min_acceptable < constraints.min_net_proceeds:
        errors.append("Precio mínimo no garantiza ingresos netos requeridos")
    if list_price < constraints.min_owner:
        errors.append("Precio de lista debe ser ≥ mínimo del propietario")
    return errors


# ----------------------------
# Record validators
# ----------------------------

def validate_subject(data: Any) -> ValidationResult:
    subject, result = parse_model(Subject, data)
    if subject is None:
        return result
    rng = subject.avm_range
    if rng is not None and rng.low > rng.high:
        result.add("avmRange", "El valor mínimo debe ser menor o igual al máximo")
    return result


def _check_constraints(c: Constraints, result: ValidationResult, rules: PricingRules, prefix: str = "") -> None:
    if c.bank_appraisal and c.min_owner > c.bank_appraisal * rules.min_owner_appraisal_ceiling:
        pct = round(rules.min_owner_appraisal_ceiling * 100)
        result.add(f"{prefix}minOwner", f"Precio mínimo no puede superar {pct}% de la tasación bancaria")


def validate_constraints(data: Any, rules: PricingRules | None = None) -> ValidationResult:
    constraints, result = parse_model(Constraints, data)
    if constraints is None:
        return result
    _check_constraints(constraints, result, _rules(rules))
    return result


def validate_recommendation(data: Any) -> ValidationResult:
    rec, result = parse_model(Recommendation, data)
    if rec is None:
        return result
    if not price_hierarchy_holds(rec.anchor_price, rec.list_price, rec.min_acceptable):
        result.add("listPrice", "Precio ancla ≥ Precio lista ≥ Mínimo aceptable")
    if not (rec.close_prob_30d <= rec.close_prob_60d <= rec.close_prob_90d):
        result.add("closeProb60d", "Las probabilidades deben aumentar con el tiempo")
    return result


def validate_scenario(data: Any, rules: PricingRules | None = None) -> ValidationResult:
    """
    Price hierarchy anchor ≥ list ≥ minAcceptable, list ≥ owner minimum and,
    when a bank appraisal exists, list ≤ ceiling × appraisal. Every failure
    is attributed to `listPrice`; the owner-constraint check on the nested
    constraints is reported under `constraints.minOwner`.
    """
    rules = _rules(rules)
    scenario, result = parse_model(Scenario, data)
    if scenario is None:
        return result

    c = scenario.constraints
    _check_constraints(c, result, rules, prefix="constraints.")

    if not price_hierarchy_holds(scenario.anchor_price, scenario.list_price, scenario.min_acceptable):
        result.add("listPrice", "Precio ancla ≥ Precio lista ≥ Mínimo aceptable")
    if scenario.list_price < c.min_owner:
        result.add("listPrice", "Precio lista debe ser ≥ mínimo del propietario")
    if not validate_bank_appraisal_limit(scenario.list_price, c.bank_appraisal, rules):
        pct = round(rules.list_price_appraisal_ceiling * 100)
        result.add("listPrice", f"Precio lista no puede superar {pct}% de tasación bancaria")
    return result


def validate_scenario_consistency(data: Any, rules: PricingRules | None = None) -> ValidationResult:
    """
    Softer review of a scenario: hard errors for the price ladder and owner
    floor, warnings for things a human should look at.
    """
    rules = _rules(rules)
    scenario, result = parse_model(Scenario, data)
    if scenario is None:
        return result

    if scenario.anchor_price < scenario.list_price:
        result.add("anchorPrice", "Precio ancla debe ser mayor o igual al precio de lista")
    if scenario.list_price < scenario.min_acceptable:
        result.add("listPrice", "Precio de lista debe ser mayor o igual al mínimo aceptable")
    if scenario.min_acceptable < scenario.constraints.min_owner:
        result.add("minAcceptable", "Mínimo aceptable debe ser mayor o igual al mínimo del propietario")

    if not validate_bank_appraisal_limit(scenario.list_price, scenario.constraints.bank_appraisal, rules):
        pct = round(rules.list_price_appraisal_ceiling * 100)
        result.warn(f"Precio de lista supera {pct}% de la tasación bancaria")

    outcome = scenario.expected_outcome
    if outcome.close_prob_60d > 0.95 and outcome.dom_p50 > 30:
        result.warn("Alta probabilidad de cierre con DOM elevado es inconsistente")
    return result


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def validate_price_plan(data: Any, *, now: datetime | None = None) -> ValidationResult:
    """
    Steps must never raise the price, `currentStep` must index an existing
    step, and steps that have not been executed yet must be dated now or
    later.
    """
    plan, result = parse_model(PricePlan, data)
    if plan is None:
        return result

    now = _as_utc(now or datetime.now(timezone.utc))
    for i, step in enumerate(plan.steps):
        if not step.executed and _as_utc(step.at) < now:
            result.add(f"steps.{i}.at", "Fecha debe ser presente o futura")

    for prev, cur in zip(plan.steps, plan.steps[1:]):
        if cur.list_price > prev.list_price:
            result.add("steps", "Los pasos de precio deben seguir orden descendente")
            break

    if plan.current_step >= len(plan.steps):
        result.add("currentStep", "Paso actual fuera de rango")
    return result


def expected_net_owner(gross_amount: float, items: list) -> float:
    """gross − Σ|amount| over every item that is not the net line."""
    deductions = sum(abs(item.amount) for item in items if item.kind != "net")
    return gross_amount - deductions


def validate_net_waterfall(data: Any, rules: PricingRules | None = None) -> ValidationResult:
    rules = _rules(rules)
    waterfall, result = parse_model(NetWaterfall, data)
    if waterfall is None:
        return result

    expected = expected_net_owner(waterfall.gross_amount, waterfall.items)
    if abs(waterfall.net_owner - expected) >= rules.waterfall_tolerance:
        result.add("netOwner", "Cálculo de neto incorrecto")
    return result


def validate_offer_simulation(data: Any, rules: PricingRules | None = None) -> ValidationResult:
    rules = _rules(rules)
    sim, result = parse_model(OfferSimulation, data)
    if sim is None:
        return result

    if not (sim.prob_close_30 <= sim.prob_close_60 <= sim.prob_close_90):
        result.add("probClose60", "Probabilidades deben ser consistentes temporalmente")

    if sim.offer_distribution:
        total = sum(b.probability for b in sim.offer_distribution)
        if abs(total - 1.0) >= rules.offer_distribution_tolerance:
            result.add("offerDistribution", "Probabilidades de distribución deben sumar ~100%")
    return result


def _check_point(point: ElasticityPoint, result: ValidationResult, prefix: str = "") -> None:
    if point.demand_low is not None and point.demand_high is not None:
        if not (point.demand_low <= point.demand <= point.demand_high):
            result.add(f"{prefix}demand", "Demanda debe estar dentro del intervalo de confianza")


def validate_elasticity_point(data: Any) -> ValidationResult:
    point, result = parse_model(ElasticityPoint, data)
    if point is not None:
        _check_point(point, result)
    return result


def validate_elasticity_analysis(data: Any) -> ValidationResult:
    analysis, result = parse_model(ElasticityAnalysis, data)
    if analysis is None:
        return result

    for i, point in enumerate(analysis.points):
        _check_point(point, result, prefix=f"points.{i}.")
    ci = analysis.confidence_interval
    if ci.low > ci.high:
        result.add("confidenceInterval", "Intervalo de confianza inválido")
    return result
