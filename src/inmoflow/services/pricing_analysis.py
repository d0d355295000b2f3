# src/inmoflow/services/pricing_analysis.py
"""
Pricing computations that feed the validators: rounding, the net owner
waterfall, elasticity fitting, DOM interpolation, offer simulation and the
price-drop ladder.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np

from inmoflow.adapters.config import config
from inmoflow.domain.pricing import (
    ChannelRule,
    CliffCheck,
    DomEstimate,
    DomPoint,
    ElasticityFit,
    ElasticityPoint,
    Goal,
    NetWaterfall,
    OfferBucket,
    OfferSimulation,
    PriceStepSuggestion,
    RoundingMode,
    WaterfallItem,
)


def round_price(price: float, mode: RoundingMode, step: float = 1000) -> float:
    if mode == "99":
        return math.floor(price / step) * step + (step - 1)
    if mode == "95":
        return math.floor(price / step) * step + (step - 5)
    if mode == "000":
        return round(price / step) * step
    return float(round(price))


def calculate_channel_price(base_price: float, rule: ChannelRule) -> float:
    price = base_price
    if rule.margin_pct:
        price = base_price * (1 + rule.margin_pct / 100)
    price = round_price(price, rule.rounding)
    if rule.min_step and price % rule.min_step != 0:
        price = round(price / rule.min_step) * rule.min_step
    return price


# ----------------------------
# Net waterfall
# ----------------------------

@dataclass
class ClosingCosts:
    """Seller-side closing costs; any field left as None falls back to config."""
    agency_fee: float | None = None
    notary_fee: float | None = None
    registry_fee: float | None = None
    taxes: float | None = None
    mortgage: float | None = None
    other: float = 0.0

    def resolved(self, price: float) -> "ClosingCosts":
        return ClosingCosts(
            agency_fee=self.agency_fee if self.agency_fee is not None else price * config.AGENCY_FEE_PCT,
            notary_fee=self.notary_fee if self.notary_fee is not None else config.NOTARY_FEE,
            registry_fee=self.registry_fee if self.registry_fee is not None else config.REGISTRY_FEE,
            taxes=self.taxes if self.taxes is not None else price * config.TRANSFER_TAX_PCT,
            mortgage=self.mortgage if self.mortgage is not None else price * config.MORTGAGE_PAYOFF_PCT,
            other=self.other or 0.0,
        )


def _pct(amount: float, price: float) -> float:
    return round(min(100.0, abs(amount) / price * 100), 2)


def calc_net_owner_proceeds(price: float, costs: ClosingCosts | None = None) -> NetWaterfall:
    """
    Decompose a sale price into what the owner actually keeps.

    Deduction items carry negative amounts and absolute percentages. The net
    is clamped at zero, so a waterfall whose costs exceed the price will not
    reconcile and `validate_net_waterfall` reports it.
    """
    c = (costs or ClosingCosts()).resolved(price)
    deductions: list[tuple[str, float, str, str]] = [
        ("Honorarios agencia", c.agency_fee, "fee", "Comisión comercial"),
        ("Gastos notariales", c.notary_fee, "cost", "Notaría"),
        ("Registro propiedad", c.registry_fee, "cost", "Inscripción registral"),
        ("Impuestos", c.taxes, "tax", "ITP y otros impuestos"),
        ("Cancelación hipoteca", c.mortgage, "cost", "Hipoteca pendiente"),
    ]
    if c.other > 0:
        deductions.append(("Otros gastos", c.other, "cost", "Gastos adicionales"))

    items = [WaterfallItem(label="Precio de venta", amount=price, percentage=100.0, kind="net",
                           description="Precio bruto acordado")]
    for label, amount, kind, desc in deductions:
        items.append(WaterfallItem(label=label, amount=-amount, percentage=_pct(amount, price),
                                   kind=kind, description=desc))

    total = sum(amount for _, amount, _, _ in deductions)
    net_owner = max(0.0, price - total)
    by_kind = {"fee": 0.0, "tax": 0.0, "cost": 0.0}
    for _, amount, kind, _ in deductions:
        by_kind[kind] += amount

    return NetWaterfall(
        price=price,
        gross_amount=price,
        items=items,
        net_owner=net_owner,
        effective_yield=net_owner / price,
        breakdown_by_category={**by_kind, "net": net_owner},
        last_updated=datetime.now(timezone.utc).isoformat(),
    )


# ----------------------------
# Elasticity & DOM
# ----------------------------

OPTIMAL_PRICE_FACTOR = 0.95


def fit_elasticity(points: list[ElasticityPoint]) -> ElasticityFit:
    """Least-squares fit of log(demand) on log(price); the slope is the elasticity."""
    if len(points) < 3:
        return ElasticityFit(elasticity_coeff=-1.0, r2_score=0.0)

    optimal = round(float(np.mean([p.price for p in points])) * OPTIMAL_PRICE_FACTOR)
    usable = [(p.price, p.demand) for p in points if p.price > 0 and p.demand > 0]
    if len(usable) < 2:
        return ElasticityFit(elasticity_coeff=-1.0, r2_score=0.0, optimal_price=optimal)

    x = np.log(np.array([u[0] for u in usable], dtype=float))
    y = np.log(np.array([u[1] for u in usable], dtype=float))
    if np.ptp(x) == 0:
        return ElasticityFit(elasticity_coeff=-1.0, r2_score=0.0, optimal_price=optimal)

    slope, intercept = np.polyfit(x, y, 1)
    ss_res = float(np.sum((y - (slope * x + intercept)) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r2 = 0.0 if ss_tot == 0 else 1 - ss_res / ss_tot

    return ElasticityFit(
        elasticity_coeff=float(slope),
        r2_score=float(np.clip(r2, 0.0, 1.0)),
        optimal_price=optimal,
    )


def expected_dom(price: float, curve: list[DomPoint]) -> DomEstimate:
    if not curve:
        return DomEstimate(p50=45, p90=90)

    pts = sorted(curve, key=lambda p: p.price)
    lower, upper = pts[0], pts[-1]
    for a, b in zip(pts, pts[1:]):
        if a.price <= price <= b.price:
            lower, upper = a, b
            break

    if lower.price == upper.price:
        return DomEstimate(p50=lower.p50, p90=lower.p90, p10=lower.p10)

    ratio = (price - lower.price) / (upper.price - lower.price)
    p10 = None
    if lower.p10 and upper.p10:
        p10 = round(lower.p10 + (upper.p10 - lower.p10) * ratio)
    return DomEstimate(
        p50=round(lower.p50 + (upper.p50 - lower.p50) * ratio),
        p90=round(lower.p90 + (upper.p90 - lower.p90) * ratio),
        p10=p10,
    )


# ----------------------------
# Offer simulation
# ----------------------------

@dataclass(frozen=True)
class _GoalProfile:
    prob_above_min: float
    prob_close: tuple[float, float, float]
    offer_ratio: float
    expected_offers: float
    negotiation_rounds: float
    time_to_decision: float
    # probability per bucket: 85-90%, 90-95%, 95-100%, >= list
    buckets: tuple[float, float, float, float]


GOAL_PROFILES: dict[str, _GoalProfile] = {
    "RAPIDEZ": _GoalProfile(0.85, (0.75, 0.92, 0.98), 0.95, 3.2, 1.5, 48, (0.25, 0.45, 0.25, 0.05)),
    "EQUILIBRIO": _GoalProfile(0.75, (0.60, 0.85, 0.95), 0.92, 2.1, 2.2, 72, (0.28, 0.45, 0.22, 0.05)),
    "MAX_PRECIO": _GoalProfile(0.65, (0.45, 0.70, 0.88), 0.88, 1.4, 3.1, 120, (0.35, 0.43, 0.20, 0.02)),
}


def simulate_offers(price: float, goal: Goal) -> OfferSimulation:
    profile = GOAL_PROFILES[goal]
    bands = ((0.85, 0.90, 0.875), (0.90, 0.95, 0.925), (0.95, 1.00, 0.975))
    buckets = [
        OfferBucket(range=f"{round(price * lo)}-{round(price * hi)}", probability=prob,
                    avg_amount=round(price * avg))
        for (lo, hi, avg), prob in zip(bands, profile.buckets)
    ]
    buckets.append(OfferBucket(range=f"≥{round(price)}", probability=profile.buckets[3],
                               avg_amount=round(price * 1.02)))

    p30, p60, p90 = profile.prob_close
    return OfferSimulation(
        price=price,
        prob_above_min=profile.prob_above_min,
        prob_close_30=p30,
        prob_close_60=p60,
        prob_close_90=p90,
        expected_discount_pct=round((1 - profile.offer_ratio) * 100, 2),
        expected_offers=profile.expected_offers,
        offer_distribution=buckets,
        negotiation_rounds=profile.negotiation_rounds,
        time_to_decision=profile.time_to_decision,
    )


# ----------------------------
# Filter cliffs & price ladder
# ----------------------------

SEARCH_CLIFFS = (50_000, 100_000, 150_000, 200_000, 250_000, 300_000, 400_000, 500_000, 750_000, 1_000_000)
PSYCHOLOGICAL_CLIFFS = (99_000, 199_000, 299_000, 499_000, 999_000)


def avoid_filter_cliffs(price: float, increment: float = 1000) -> CliffCheck:
    for cliff in SEARCH_CLIFFS:
        if cliff < price < cliff + 10_000:
            suggestion = cliff - increment
            return CliffCheck(is_cliff=True, suggestion=suggestion, cliff_type="search",
                              savings=price - suggestion)
    for cliff in PSYCHOLOGICAL_CLIFFS:
        if cliff < price < cliff + 5_000:
            return CliffCheck(is_cliff=True, suggestion=cliff, cliff_type="psychological",
                              savings=price - cliff)
    return CliffCheck(is_cliff=False)


# (days after the previous step, fractional reduction)
STEP_SCHEDULES: dict[str, list[tuple[int, float]]] = {
    "RAPIDEZ": [(15, 0.03), (30, 0.05)],
    "EQUILIBRIO": [(21, 0.025), (45, 0.035), (75, 0.05)],
    "MAX_PRECIO": [(30, 0.02), (60, 0.03), (90, 0.04), (120, 0.06)],
}


def calculate_optimal_price_steps(start_price: float, min_price: float, goal: Goal) -> list[PriceStepSuggestion]:
    """Non-increasing price drops from `start_price`, never below `min_price`."""
    steps: list[PriceStepSuggestion] = []
    if start_price <= min_price:
        return steps

    current = start_price
    day = 0
    for i, (interval, reduction) in enumerate(STEP_SCHEDULES[goal], start=1):
        if current <= min_price:
            break
        nxt = max(min_price, round(current * (1 - reduction)))
        if nxt < current:
            day += interval
            steps.append(PriceStepSuggestion(
                price=nxt, timing=day, reason=f"Ajuste estratégico {i} - Respuesta al mercado",
            ))
            current = nxt
    return steps
