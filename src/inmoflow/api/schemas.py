# src/inmoflow/api/schemas.py
from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from inmoflow.domain.pricing import MIN_PRICE, DomPoint, ElasticityPoint, Goal
from inmoflow.domain.validation import CamelModel


# --------------------------------------------
# Shared
# --------------------------------------------

class IdList(CamelModel):
    ids: list[str] = Field(min_length=1)


class BulkUpdateRequest(CamelModel):
    ids: list[str] = Field(min_length=1)
    updates: dict[str, Any]


class PublishRequest(CamelModel):
    portals: list[str] | None = None


# --------------------------------------------
# Pricing computations
# --------------------------------------------

class WaterfallRequest(CamelModel):
    price: float = Field(ge=MIN_PRICE)
    agency_fee: float | None = Field(default=None, ge=0)
    notary_fee: float | None = Field(default=None, ge=0)
    registry_fee: float | None = Field(default=None, ge=0)
    taxes: float | None = Field(default=None, ge=0)
    mortgage: float | None = Field(default=None, ge=0)
    other: float = Field(default=0.0, ge=0)


class ElasticityFitRequest(CamelModel):
    points: list[ElasticityPoint]
    curve: list[DomPoint] = Field(default_factory=list)
    price: float | None = Field(default=None, gt=0)


class OfferSimulationRequest(CamelModel):
    price: float = Field(ge=MIN_PRICE)
    goal: Goal = "EQUILIBRIO"


class PriceStepsRequest(CamelModel):
    start_price: float = Field(ge=MIN_PRICE)
    min_price: float = Field(ge=MIN_PRICE)
    goal: Goal = "EQUILIBRIO"


# --------------------------------------------
# Portals
# --------------------------------------------

class SyncRequest(CamelModel):
    action: Literal["create", "update", "delete"] | None = None
    refs: list[str] = Field(default_factory=list)


class SignerEventRequest(CamelModel):
    event: Literal["viewed", "signed", "declined"]
    reason: str | None = None
