# tests/fixtures/pricing.py

from datetime import datetime, timedelta, timezone

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def valid_scenario(**overrides) -> dict:
    """
    anchor 300k >= list 280k >= min 250k, owner floor 260k, no appraisal.
    Valid for the hierarchy checks.
    """
    data = dict(
        name="Escenario base",
        type="BASELINE",
        goal="EQUILIBRIO",
        constraints={"minOwner": 260_000},
        anchorPrice=300_000,
        listPrice=280_000,
        minAcceptable=250_000,
        expectedOutcome={
            "domP50": 45,
            "closeProb60d": 0.7,
            "netOwner": 255_000,
            "totalRevenue": 280_000,
        },
        createdBy="ana@inmoflow.com",
        propertyId="prop-0001",
    )
    data.update(overrides)
    return data


def price_plan(prices, *, current_step=0, start=NOW, executed=(), scenario_id="scn-1") -> dict:
    """One step per price, a week apart, starting one day after `start`."""
    steps = []
    for i, p in enumerate(prices):
        step = {"at": (start + timedelta(days=1 + 7 * i)).isoformat(), "listPrice": p}
        if i in executed:
            step["executed"] = True
        steps.append(step)
    return {
        "propertyId": "prop-0001",
        "scenarioId": scenario_id,
        "steps": steps,
        "currentStep": current_step,
        "nextReviewDate": (start + timedelta(days=7)).date().isoformat(),
    }


def waterfall(gross=300_000, items=None, net_owner=None) -> dict:
    items = items if items is not None else [
        {"label": "Honorarios", "amount": -9_000, "kind": "fee"},
        {"label": "Impuestos", "amount": -1_200, "kind": "tax"},
    ]
    if net_owner is None:
        net_owner = gross - sum(abs(i["amount"]) for i in items if i["kind"] != "net")
    return {"price": gross, "grossAmount": gross, "items": items, "netOwner": net_owner}


def offer_simulation(p30=0.6, p60=0.85, p90=0.95, distribution=None) -> dict:
    data = {
        "price": 280_000,
        "probAboveMin": 0.75,
        "probClose30": p30,
        "probClose60": p60,
        "probClose90": p90,
        "expectedDiscountPct": 8,
        "expectedOffers": 2.1,
    }
    if distribution is not None:
        data["offerDistribution"] = [
            {"range": f"bucket-{i}", "probability": p, "avgAmount": 250_000} for i, p in enumerate(distribution)
        ]
    return data


def subject(**overrides) -> dict:
    data = dict(
        id="subj-1",
        address="Calle Mayor 15, Madrid",
        area=85,
        rooms=3,
        bathrooms=2,
        propertyType="piso",
        condition="bueno",
        buildingYear=1990,
        postalCode="28013",
    )
    data.update(overrides)
    return data
