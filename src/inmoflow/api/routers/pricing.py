# src/inmoflow/api/routers/pricing.py
from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.deps import dump, get_repos
from inmoflow.api.schemas import ElasticityFitRequest, OfferSimulationRequest, PriceStepsRequest, WaterfallRequest
from inmoflow.domain.pricing import AuditCategory
from inmoflow.domain.validation import ValidationResult
from inmoflow.services import pricing_rules
from inmoflow.services.pricing import PricingService
from inmoflow.services.pricing_analysis import (
    ClosingCosts,
    avoid_filter_cliffs,
    calc_net_owner_proceeds,
    calculate_optimal_price_steps,
    expected_dom,
    fit_elasticity,
    simulate_offers,
)

router = APIRouter(prefix="/pricing", tags=["pricing"])

_VALIDATORS: dict[str, Callable[[Any], ValidationResult]] = {
    "scenario": pricing_rules.validate_scenario,
    "scenario-consistency": pricing_rules.validate_scenario_consistency,
    "price-plan": pricing_rules.validate_price_plan,
    "waterfall": pricing_rules.validate_net_waterfall,
    "offer-simulation": pricing_rules.validate_offer_simulation,
    "subject": pricing_rules.validate_subject,
    "constraints": pricing_rules.validate_constraints,
    "recommendation": pricing_rules.validate_recommendation,
    "elasticity": pricing_rules.validate_elasticity_analysis,
    "elasticity-point": pricing_rules.validate_elasticity_point,
}


@router.post("/validate/{kind}")
def validate(kind: str, payload: Any = Body(...)) -> dict[str, Any]:
    """Always 200: the body says whether the record is valid and why not."""
    validator = _VALIDATORS.get(kind)
    if validator is None:
        raise HTTPException(status_code=404, detail=f"Validador desconocido: {kind}")
    return validator(payload).to_dict()


# ----------------------------
# Computations
# ----------------------------

@router.post("/waterfall")
def net_waterfall(payload: WaterfallRequest) -> dict[str, Any]:
    costs = ClosingCosts(**payload.model_dump(exclude={"price"}))
    waterfall = calc_net_owner_proceeds(payload.price, costs)
    return {
        "waterfall": waterfall.to_json_dict(),
        "validation": pricing_rules.validate_net_waterfall(waterfall).to_dict(),
    }


@router.post("/elasticity/fit")
def elasticity_fit(payload: ElasticityFitRequest) -> dict[str, Any]:
    fit = fit_elasticity(payload.points)
    out: dict[str, Any] = {"fit": fit.to_json_dict()}
    price = payload.price or fit.optimal_price
    if price:
        out["dom"] = expected_dom(price, payload.curve).to_json_dict()
        out["cliff"] = avoid_filter_cliffs(price).to_json_dict()
    return out


@router.post("/offers/simulate")
def offers_simulate(payload: OfferSimulationRequest) -> dict[str, Any]:
    return simulate_offers(payload.price, payload.goal).to_json_dict()


@router.post("/price-steps")
def price_steps(payload: PriceStepsRequest) -> list[dict[str, Any]]:
    return dump(calculate_optimal_price_steps(payload.start_price, payload.min_price, payload.goal))


# ----------------------------
# Store
# ----------------------------

@router.post("/scenarios", status_code=201)
def create_scenario(
    payload: dict[str, Any] = Body(...),
    user: str = Query("system"),
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    return dump(PricingService(repos).create_scenario(payload, user=user))


@router.get("/scenarios")
def list_scenarios(
    property_id: str | None = Query(None, alias="propertyId"), repos: Repositories = Depends(get_repos)
) -> list[dict[str, Any]]:
    return dump(PricingService(repos).list_scenarios(property_id))


@router.get("/scenarios/{scenario_id}")
def get_scenario(scenario_id: str, repos: Repositories = Depends(get_repos)) -> dict[str, Any]:
    return dump(PricingService(repos).get_scenario(scenario_id))


@router.post("/plans", status_code=201)
def create_plan(
    payload: dict[str, Any] = Body(...),
    user: str = Query("system"),
    repos: Repositories = Depends(get_repos),
) -> dict[str, Any]:
    return dump(PricingService(repos).create_plan(payload, user=user))


@router.get("/plans")
def list_plans(
    property_id: str | None = Query(None, alias="propertyId"), repos: Repositories = Depends(get_repos)
) -> list[dict[str, Any]]:
    return dump(PricingService(repos).list_plans(property_id))


@router.get("/audit")
def audit_trail(
    property_id: str | None = Query(None, alias="propertyId"),
    category: AuditCategory | None = Query(None),
    repos: Repositories = Depends(get_repos),
) -> list[dict[str, Any]]:
    return dump(PricingService(repos).audit_trail(property_id=property_id, category=category))
