import math

import pytest

from inmoflow.domain.pricing import ChannelRule, DomPoint, ElasticityPoint
from inmoflow.services.pricing import PricingService
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.services.pricing_analysis import (
    ClosingCosts,
    avoid_filter_cliffs,
    calc_net_owner_proceeds,
    calculate_channel_price,
    calculate_optimal_price_steps,
    expected_dom,
    fit_elasticity,
    round_price,
    simulate_offers,
)
from fixtures.pricing import NOW, price_plan, valid_scenario


@pytest.mark.parametrize(
    "mode, expected",
    [("99", 123_999), ("95", 123_995), ("000", 123_000), ("NONE", 123_456)],
)
def test_round_price_modes(mode, expected):
    assert round_price(123_456.4, mode) == expected


def test_channel_price_applies_margin_then_rounding():
    rule = ChannelRule(channel="idealista", name="Idealista", rounding="000", margin_pct=2)
    assert calculate_channel_price(250_000, rule) == 255_000

    stepped = ChannelRule(channel="web", name="Web", rounding="NONE", min_step=5_000)
    assert calculate_channel_price(251_000, stepped) == 250_000


def test_waterfall_uses_configured_defaults():
    wf = calc_net_owner_proceeds(300_000)
    by_label = {item.label: item for item in wf.items}

    assert by_label["Honorarios agencia"].amount == pytest.approx(-9_000)
    assert by_label["Honorarios agencia"].percentage == 3.0
    assert by_label["Gastos notariales"].amount == -1_200
    assert by_label["Cancelación hipoteca"].amount == pytest.approx(-120_000)
    assert "Otros gastos" not in by_label
    assert wf.net_owner == pytest.approx(300_000 - 9_000 - 1_200 - 800 - 1_800 - 120_000)
    assert wf.breakdown_by_category["net"] == wf.net_owner
    assert 0 < wf.effective_yield < 1


def test_waterfall_with_explicit_costs_and_other():
    wf = calc_net_owner_proceeds(
        200_000, ClosingCosts(agency_fee=0, notary_fee=0, registry_fee=0, taxes=0, mortgage=0, other=5_000)
    )
    assert wf.items[-1].label == "Otros gastos"
    assert wf.net_owner == 195_000
    assert wf.breakdown_by_category["cost"] == 5_000


def test_waterfall_net_is_clamped_at_zero():
    wf = calc_net_owner_proceeds(10_000, ClosingCosts(mortgage=50_000))
    assert wf.net_owner == 0
    assert all(item.percentage <= 100 for item in wf.items)


def test_elasticity_recovers_the_slope():
    points = [ElasticityPoint(price=p, demand=1e9 * p ** -1.5) for p in (200_000, 250_000, 300_000, 350_000)]
    fit = fit_elasticity(points)
    assert fit.elasticity_coeff == pytest.approx(-1.5, abs=1e-6)
    assert fit.r2_score == pytest.approx(1.0)
    assert fit.optimal_price == round(275_000 * 0.95)


def test_elasticity_needs_three_points():
    fit = fit_elasticity([ElasticityPoint(price=1, demand=1), ElasticityPoint(price=2, demand=1)])
    assert (fit.elasticity_coeff, fit.r2_score, fit.optimal_price) == (-1.0, 0.0, None)


def test_elasticity_with_constant_price_falls_back():
    points = [ElasticityPoint(price=250_000, demand=d) for d in (5, 8, 12)]
    fit = fit_elasticity(points)
    assert fit.elasticity_coeff == -1.0
    assert fit.optimal_price == round(250_000 * 0.95)


def test_expected_dom_interpolates():
    curve = [DomPoint(price=200_000, p50=50, p90=100), DomPoint(price=100_000, p50=30, p90=60)]
    est = expected_dom(150_000, curve)
    assert (est.p50, est.p90) == (40, 80)


def test_expected_dom_defaults_and_edges():
    assert expected_dom(150_000, []).p50 == 45
    assert expected_dom(150_000, []).p90 == 90
    single = [DomPoint(price=100_000, p50=30, p90=60, p10=10)]
    assert expected_dom(500_000, single).p10 == 10


@pytest.mark.parametrize("goal", ["RAPIDEZ", "EQUILIBRIO", "MAX_PRECIO"])
def test_offer_distribution_sums_to_one(goal):
    sim = simulate_offers(250_000, goal)
    assert math.fsum(b.probability for b in sim.offer_distribution) == pytest.approx(1.0)
    assert sim.prob_close_30 <= sim.prob_close_60 <= sim.prob_close_90
    assert sim.offer_distribution[-1].range == "≥250000"


def test_faster_goal_means_more_offers():
    fast = simulate_offers(250_000, "RAPIDEZ")
    slow = simulate_offers(250_000, "MAX_PRECIO")
    assert fast.expected_offers > slow.expected_offers
    assert fast.expected_discount_pct < slow.expected_discount_pct


def test_filter_cliffs():
    search = avoid_filter_cliffs(202_000)
    assert (search.is_cliff, search.cliff_type, search.suggestion, search.savings) == (True, "search", 199_000, 3_000)

    psych = avoid_filter_cliffs(999_500)
    assert (psych.cliff_type, psych.suggestion) == ("psychological", 999_000)

    assert not avoid_filter_cliffs(180_000).is_cliff


def test_price_steps_never_rise_nor_cross_the_floor():
    steps = calculate_optimal_price_steps(300_000, 280_000, "EQUILIBRIO")
    assert [s.price for s in steps] == [292_500, 282_262, 280_000]
    assert [s.timing for s in steps] == [21, 66, 141]

    for goal in ("RAPIDEZ", "EQUILIBRIO", "MAX_PRECIO"):
        prices = [s.price for s in calculate_optimal_price_steps(500_000, 300_000, goal)]
        assert all(b <= a for a, b in zip(prices, prices[1:]))
        assert min(prices) >= 300_000


def test_price_steps_empty_when_start_at_floor():
    assert calculate_optimal_price_steps(250_000, 250_000, "RAPIDEZ") == []


# ----------------------------
# Store
# ----------------------------

def test_scenario_store_records_audit(repos):
    service = PricingService(repos)
    scenario = service.create_scenario(valid_scenario(), user="ana")

    assert scenario.id and scenario.created_at
    assert service.get_scenario(scenario.id) == scenario
    assert service.list_scenarios("prop-0001") == [scenario]
    assert service.list_scenarios("prop-9999") == []

    (event,) = service.audit_trail(property_id="prop-0001")
    assert (event.category, event.action, event.user) == ("SCENARIO", "scenario_created", "ana")


def test_invalid_scenario_is_rejected_with_errors(repos):
    with pytest.raises(InvalidInputError) as exc:
        PricingService(repos).create_scenario(valid_scenario(minAcceptable=290_000))
    assert "listPrice" in exc.value.errors
    assert repos.pricing_scenarios.list() == []


def test_plan_requires_known_scenario(repos):
    service = PricingService(repos)
    with pytest.raises(NotFoundError):
        service.create_plan(price_plan([300_000, 290_000], scenario_id="missing"), now=NOW)

    scenario = service.create_scenario(valid_scenario())
    plan = service.create_plan(price_plan([300_000, 290_000], scenario_id=scenario.id), now=NOW)
    assert service.list_plans("prop-0001") == [plan]
    assert [e.category for e in service.audit_trail(category="PRICE_CHANGE")] == ["PRICE_CHANGE"]


def test_rising_plan_is_rejected(repos):
    with pytest.raises(InvalidInputError) as exc:
        PricingService(repos).create_plan(price_plan([300_000, 320_000]), now=NOW)
    assert exc.value.errors == {"steps": "Los pasos de precio deben seguir orden descendente"}
