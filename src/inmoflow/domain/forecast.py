# src/inmoflow/domain/forecast.py
from __future__ import annotations

from typing import Literal

from pydantic import Field

from inmoflow.domain.validation import CamelModel

ForecastType = Literal["income", "expense"]
ForecastStatus = Literal["draft", "confirmed", "cancelled"]
ScenarioKind = Literal["BASELINE", "OPTIMISTIC", "PESSIMISTIC", "CUSTOM"]

ALL_PERIODS_LABEL = "Todos los períodos"


class ForecastItemIn(CamelModel):
    period_id: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    type: ForecastType
    amount: float = Field(ge=0)
    currency: str = "EUR"
    probability: float = Field(ge=0, le=100)
    status: ForecastStatus = "draft"
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None


class ForecastItem(ForecastItemIn):
    id: str
    created_at: str
    updated_at: str


class ForecastPeriodIn(CamelModel):
    name: str = Field(min_length=1)
    start_date: str
    end_date: str
    is_active: bool = True


class ForecastPeriod(ForecastPeriodIn):
    id: str
    created_at: str
    updated_at: str


class ForecastCategoryIn(CamelModel):
    name: str = Field(min_length=1)
    description: str | None = None
    color: str = "#6B7280"
    is_active: bool = True


class ForecastCategory(ForecastCategoryIn):
    id: str
    created_at: str
    updated_at: str


class Assumptions(CamelModel):
    """Funnel and revenue drivers behind a projection; all fields optional."""
    conv_lead_visit: float | None = None
    conv_visit_offer: float | None = None
    conv_offer_reservation: float | None = None
    conv_reservation_contract: float | None = None
    avg_ticket_sale: float | None = None
    avg_ticket_rent: float | None = None
    fees_pct_sale: float | None = None
    fees_pct_rent: float | None = None
    cycle_days: float | None = None
    commission_pct: float | None = None
    fixed_costs: float | None = None
    cac: float | None = None
    seasonality: list[float] | None = None


class ForecastScenarioIn(CamelModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_active: bool = True
    probability: float = Field(default=0, ge=0, le=100)
    kind: ScenarioKind | None = None
    assumptions: Assumptions | None = None


class ForecastScenario(ForecastScenarioIn):
    id: str
    created_at: str
    updated_at: str


class ForecastQuery(CamelModel):
    period_id: str | None = None
    category_id: str | None = None
    type: ForecastType | None = None
    status: ForecastStatus | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class ForecastListResponse(CamelModel):
    items: list[ForecastItem]
    total: int
    page: int
    limit: int
    total_pages: int


class ForecastSummary(CamelModel):
    period_id: str
    period_name: str
    total_income: float
    total_expenses: float
    net_amount: float
    income_count: int
    expense_count: int
    average_probability: float
    currency: str


class ForecastComparison(CamelModel):
    period_id: str
    period_name: str
    actual_amount: float
    forecasted_amount: float
    variance: float
    variance_percentage: float
    accuracy: float
