# src/inmoflow/services/pricing.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import Repositories, new_id
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.pricing import AuditCategory, PricePlan, PricingAuditEvent, Scenario
from inmoflow.services.pricing_rules import PricingRules, validate_price_plan, validate_scenario

logger = get_logger(__name__)


class PricingService:
    """Scenario and price-plan store; every accepted change lands in the audit trail."""

    def __init__(self, repos: Repositories, rules: PricingRules | None = None) -> None:
        self.repos = repos
        self.rules = rules

    def _audit(
        self,
        *,
        user: str,
        action: str,
        category: AuditCategory,
        property_id: str | None,
        payload: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> PricingAuditEvent:
        event = PricingAuditEvent(
            id=new_id("audit"),
            at=datetime.now(timezone.utc),
            user=user,
            action=action,
            category=category,
            property_id=property_id,
            payload=payload,
            reason=reason,
        )
        return self.repos.pricing_audit.append(event)

    # ----------------------------
    # Scenarios
    # ----------------------------

    def create_scenario(self, data: dict[str, Any], *, user: str = "system") -> Scenario:
        result = validate_scenario(data, self.rules)
        if not result.ok:
            log_event(logger, "scenario_rejected", level=logging.WARNING, fields=sorted(result.errors))
            raise InvalidInputError(result, "Escenario inválido")

        scenario = Scenario.model_validate(data)
        scenario = scenario.model_copy(update={
            "id": scenario.id or new_id("scn"),
            "created_at": scenario.created_at or datetime.now(timezone.utc),
        })
        self.repos.pricing_scenarios.add(scenario)
        self._audit(
            user=user,
            action="scenario_created",
            category="SCENARIO",
            property_id=scenario.property_id,
            payload={"scenarioId": scenario.id, "listPrice": scenario.list_price, "goal": scenario.goal},
        )
        log_event(logger, "scenario_created", scenario_id=scenario.id, goal=scenario.goal)
        return scenario

    def get_scenario(self, scenario_id: str) -> Scenario:
        scenario = self.repos.pricing_scenarios.get(scenario_id)
        if scenario is None:
            raise NotFoundError("Escenario", scenario_id)
        return scenario

    def list_scenarios(self, property_id: str | None = None) -> list[Scenario]:
        items = self.repos.pricing_scenarios.list()
        if property_id:
            items = [s for s in items if s.property_id == property_id]
        return items

    # ----------------------------
    # Price plans
    # ----------------------------

    def create_plan(
        self, data: dict[str, Any], *, user: str = "system", now: datetime | None = None
    ) -> PricePlan:
        result = validate_price_plan(data, now=now)
        if not result.ok:
            log_event(logger, "price_plan_rejected", level=logging.WARNING, fields=sorted(result.errors))
            raise InvalidInputError(result, "Plan de precios inválido")

        plan = PricePlan.model_validate(data)
        if self.repos.pricing_scenarios.get(plan.scenario_id) is None:
            raise NotFoundError("Escenario", plan.scenario_id)

        plan = plan.model_copy(update={"id": plan.id or new_id("plan")})
        self.repos.price_plans.add(plan)
        self._audit(
            user=user,
            action="price_plan_created",
            category="PRICE_CHANGE",
            property_id=plan.property_id,
            payload={"planId": plan.id, "steps": [s.list_price for s in plan.steps]},
        )
        log_event(logger, "price_plan_created", plan_id=plan.id, steps=len(plan.steps))
        return plan

    def list_plans(self, property_id: str | None = None) -> list[PricePlan]:
        items = self.repos.price_plans.list()
        if property_id:
            items = [p for p in items if p.property_id == property_id]
        return items

    # ----------------------------
    # Audit
    # ----------------------------

    def audit_trail(
        self, *, property_id: str | None = None, category: AuditCategory | None = None
    ) -> list[PricingAuditEvent]:
        events = self.repos.pricing_audit.list()
        if property_id:
            events = [e for e in events if e.property_id == property_id]
        if category:
            events = [e for e in events if e.category == category]
        return sorted(events, key=lambda e: e.at, reverse=True)
