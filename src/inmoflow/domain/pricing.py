# src/inmoflow/domain/pricing.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from inmoflow.domain.validation import CamelModel

# Smallest price the back-office accepts for any advertised figure.
MIN_PRICE = 1000.0

Goal = Literal["RAPIDEZ", "EQUILIBRIO", "MAX_PRECIO"]
Confidence = Literal["LOW", "MEDIUM", "HIGH"]
RoundingMode = Literal["99", "95", "000", "NONE"]
Currency = Literal["EUR", "USD", "GBP"]
WaterfallKind = Literal["fee", "tax", "cost", "net"]
ScenarioType = Literal["BASELINE", "OPTIMISTA", "AGRESIVO", "PERSONALIZADO"]


# ----------------------------
# Subject & owner constraints
# ----------------------------

class AvmRange(CamelModel):
    low: float = Field(ge=0)
    high: float = Field(ge=0)
    confidence: float = Field(ge=0, le=1)


class Subject(CamelModel):
    id: str
    address: str = Field(min_length=10)
    area: float = Field(ge=20, le=2000)
    rooms: int = Field(ge=0, le=20)
    bathrooms: int = Field(ge=1, le=10)
    property_type: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    building_year: int = Field(ge=1800)
    coordinates: tuple[float, float] | None = None
    neighborhood: str | None = None
    postal_code: str | None = Field(default=None, pattern=r"^\d{5}$")
    city: str | None = None
    province: str | None = None
    features: list[str] = Field(default_factory=list)
    avm_value: float | None = Field(default=None, ge=0)
    avm_range: AvmRange | None = None
    last_updated: str | None = None

    @field_validator("building_year")
    @classmethod
    def _not_future(cls, v: int) -> int:
        if v > datetime.now().year + 2:
            raise ValueError("Año no puede ser futuro")
        return v


class Constraints(CamelModel):
    min_owner: float = Field(ge=0)
    bank_appraisal: float | None = Field(default=None, ge=0)
    pending_mortgage: float | None = Field(default=None, ge=0)
    legal_window_days: int | None = Field(default=None, ge=1, le=365)
    channel_limits: dict[str, Any] | None = None
    owner_deadline: str | None = None
    max_discount_pct: float | None = Field(default=None, ge=0, le=50)
    min_net_proceeds: float | None = Field(default=None, ge=0)


# ----------------------------
# Recommendation
# ----------------------------

class Recommendation(CamelModel):
    id: str
    list_price: float = Field(ge=MIN_PRICE)
    anchor_price: float = Field(ge=MIN_PRICE)
    min_acceptable: float = Field(ge=MIN_PRICE)
    confidence: Confidence
    reasons: list[str] = Field(min_length=1)
    dom_p50: float = Field(ge=0)
    close_prob_30d: float = Field(ge=0, le=1)
    close_prob_60d: float = Field(ge=0, le=1)
    close_prob_90d: float = Field(ge=0, le=1)
    expected_net_owner: float = Field(ge=0)
    elasticity_score: float | None = None
    competitive_position: Literal["ABOVE", "AT", "BELOW"] | None = None
    risk_factors: list[str] | None = None


# ----------------------------
# Staged strategy
# ----------------------------

class PhaseTriggers(CamelModel):
    dom_gt: float | None = Field(default=None, ge=0)
    visits_lt: float | None = Field(default=None, ge=0)
    leads_lt: float | None = Field(default=None, ge=0)
    offers_lt: float | None = Field(default=None, ge=0)
    date_after: str | None = None


class PricingPhase(CamelModel):
    id: str
    name: str = Field(min_length=1)
    order: int = Field(ge=1)
    list_price: float = Field(ge=MIN_PRICE)
    duration: int = Field(ge=1, le=365)
    objective: str = Field(min_length=5)
    triggers: PhaseTriggers = Field(default_factory=PhaseTriggers)
    actions: list[str] = Field(default_factory=list)
    active: bool = True


class TriggerCondition(CamelModel):
    type: Literal["DOM", "VISITS", "LEADS", "OFFERS", "DATE", "COMPETITOR"]
    operator: Literal["GT", "LT", "EQ", "GTE", "LTE"]
    value: float | str
    timeframe: int | None = Field(default=None, ge=1)


class TriggerAction(CamelModel):
    type: Literal["PRICE_CHANGE", "ALERT", "CHANNEL_UPDATE", "CONTACT_OWNER"]
    parameters: dict[str, Any] = Field(default_factory=dict)


class PriceTrigger(CamelModel):
    id: str
    name: str = Field(min_length=1)
    condition: TriggerCondition
    action: TriggerAction
    active: bool = True
    last_triggered: str | None = None


class NegotiationRules(CamelModel):
    max_discount: float = Field(ge=0, le=50)
    counter_offer_steps: list[float] = Field(default_factory=list)
    auto_accept_threshold: float | None = Field(default=None, ge=0)

    @field_validator("counter_offer_steps")
    @classmethod
    def _steps_min(cls, v: list[float]) -> list[float]:
        if any(s < MIN_PRICE for s in v):
            raise ValueError(f"Cada contraoferta debe ser ≥ {MIN_PRICE:,.0f}")
        return v


class PricingStrategy(CamelModel):
    phases: list[PricingPhase] = Field(min_length=1)
    triggers: list[PriceTrigger] = Field(default_factory=list)
    channel_mapping: dict[str, float] = Field(default_factory=dict)
    negotiation_rules: NegotiationRules


class ExpectedOutcome(CamelModel):
    dom_p50: float = Field(ge=0)
    close_prob_60d: float = Field(ge=0, le=1)
    net_owner: float = Field(ge=0)
    total_revenue: float = Field(ge=0)


class Scenario(CamelModel):
    id: str | None = None
    name: str = Field(min_length=3)
    type: ScenarioType = "PERSONALIZADO"
    goal: Goal
    constraints: Constraints
    list_price: float = Field(ge=MIN_PRICE)
    anchor_price: float = Field(ge=MIN_PRICE)
    min_acceptable: float = Field(ge=MIN_PRICE)
    strategy: PricingStrategy | None = None
    expected_outcome: ExpectedOutcome
    created_by: str = Field(min_length=1)
    is_baseline: bool | None = None
    property_id: str | None = None
    created_at: datetime | None = None


# ----------------------------
# Price plan
# ----------------------------

class StepTrigger(CamelModel):
    dom_gt: float | None = Field(default=None, ge=0)
    visits_lt: float | None = Field(default=None, ge=0)
    leads_lt: float | None = Field(default=None, ge=0)
    competitor_action: str | None = None


class PriceStep(CamelModel):
    at: datetime
    list_price: float = Field(ge=MIN_PRICE)
    reason: str | None = None
    trigger: StepTrigger | None = None
    executed: bool | None = None
    executed_at: str | None = None
    executed_by: str | None = None


class PlanNotifications(CamelModel):
    email: bool = True
    sms: bool = False
    dashboard: bool = True


class PricePlan(CamelModel):
    id: str | None = None
    property_id: str = Field(min_length=1)
    scenario_id: str = Field(min_length=1)
    steps: list[PriceStep] = Field(min_length=1)
    current_step: int = Field(ge=0)
    next_review_date: str
    auto_execute: bool = False
    notifications: PlanNotifications = Field(default_factory=PlanNotifications)


# ----------------------------
# Elasticity & offers
# ----------------------------

class ElasticityPoint(CamelModel):
    price: float = Field(ge=0)
    demand: float = Field(ge=0)
    demand_low: float | None = Field(default=None, ge=0)
    demand_high: float | None = Field(default=None, ge=0)
    visits: float | None = Field(default=None, ge=0)
    leads: float | None = Field(default=None, ge=0)
    offers: float | None = Field(default=None, ge=0)


class ConfidenceInterval(CamelModel):
    low: float = Field(ge=0, le=1)
    high: float = Field(ge=0, le=1)


class ElasticityAnalysis(CamelModel):
    points: list[ElasticityPoint] = Field(min_length=3)
    elasticity_coeff: float
    optimal_price: float | None = Field(default=None, ge=0)
    confidence_interval: ConfidenceInterval
    r2_score: float = Field(ge=0, le=1)
    last_updated: str


class DomPoint(CamelModel):
    price: float
    p50: float
    p90: float
    p10: float | None = None


class OfferBucket(CamelModel):
    range: str
    probability: float = Field(ge=0, le=1)
    avg_amount: float = Field(ge=0)


class OfferSimulation(CamelModel):
    price: float = Field(ge=MIN_PRICE)
    prob_above_min: float = Field(ge=0, le=1)
    prob_close_30: float = Field(ge=0, le=1)
    prob_close_60: float = Field(ge=0, le=1)
    prob_close_90: float = Field(ge=0, le=1)
    expected_discount_pct: float = Field(ge=0, le=100)
    expected_offers: float = Field(ge=0)
    offer_distribution: list[OfferBucket] = Field(default_factory=list)
    negotiation_rounds: float | None = Field(default=None, ge=0, le=10)
    time_to_decision: float | None = Field(default=None, ge=0)


# ----------------------------
# Net waterfall
# ----------------------------

class WaterfallItem(CamelModel):
    label: str = Field(min_length=1)
    amount: float
    percentage: float | None = Field(default=None, ge=0, le=100)
    kind: WaterfallKind
    description: str | None = None
    optional: bool | None = None


class NetWaterfall(CamelModel):
    price: float = Field(ge=MIN_PRICE)
    gross_amount: float = Field(ge=0)
    items: list[WaterfallItem] = Field(min_length=1)
    net_owner: float = Field(ge=0)
    effective_yield: float = Field(default=0.0, ge=0, le=1)
    breakdown_by_category: dict[WaterfallKind, float] = Field(default_factory=dict)
    last_updated: str | None = None


# ----------------------------
# Channels & audit
# ----------------------------

class FeeStructure(CamelModel):
    listing_fee: float | None = Field(default=None, ge=0)
    success_fee: float | None = Field(default=None, ge=0, le=20)
    monthly_fee: float | None = Field(default=None, ge=0)


class ChannelRule(CamelModel):
    channel: str = Field(min_length=1)
    name: str = Field(min_length=1)
    rounding: RoundingMode = "NONE"
    margin_pct: float | None = Field(default=None, ge=-10, le=10)
    currency: Currency = "EUR"
    min_step: float | None = Field(default=None, ge=1)
    max_photos: int | None = Field(default=None, ge=1, le=50)
    requires_description: bool | None = None
    fee_structure: FeeStructure | None = None
    restrictions: list[str] | None = None
    active: bool = True


AuditCategory = Literal["PRICE_CHANGE", "SCENARIO", "CHANNEL", "SIMULATION", "NEGOTIATION"]


class PricingAuditEvent(CamelModel):
    id: str
    at: datetime
    user: str = Field(min_length=1)
    action: str = Field(min_length=3)
    category: AuditCategory
    property_id: str | None = None
    payload: dict[str, Any] | None = None
    reason: str | None = None


# ----------------------------
# Analysis outputs
# ----------------------------

class ElasticityFit(CamelModel):
    elasticity_coeff: float
    r2_score: float = Field(ge=0, le=1)
    optimal_price: float | None = None


class DomEstimate(CamelModel):
    p50: float
    p90: float
    p10: float | None = None


class CliffCheck(CamelModel):
    is_cliff: bool
    suggestion: float | None = None
    cliff_type: Literal["search", "psychological"] | None = None
    savings: float | None = None


class PriceStepSuggestion(CamelModel):
    price: float
    timing: int
    reason: str
