# src/inmoflow/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # Mock data store
    MOCK_LATENCY_MS: int = Field(default=0)
    SEED_PROPERTIES: int = Field(default=50)
    SEED_RANDOM: int = Field(default=42)

    # Listing / paging
    DEFAULT_PAGE_SIZE: int = Field(default=20)
    MAX_PAGE_SIZE: int = Field(default=100)
    DEFAULT_CURRENCY: str = Field(default="EUR")

    # -----------------------------
    # Pricing business rules
    # -----------------------------
    MIN_OWNER_APPRAISAL_CEILING: float = Field(default=1.20)
    LIST_PRICE_APPRAISAL_CEILING: float = Field(default=1.25)
    WATERFALL_TOLERANCE: float = Field(default=1.0)
    OFFER_DISTRIBUTION_TOLERANCE: float = Field(default=0.05)

    # Net waterfall defaults (Spanish closing costs)
    AGENCY_FEE_PCT: float = Field(default=0.03)
    TRANSFER_TAX_PCT: float = Field(default=0.006)
    MORTGAGE_PAYOFF_PCT: float = Field(default=0.40)
    NOTARY_FEE: float = Field(default=1200.0)
    REGISTRY_FEE: float = Field(default=800.0)

    # -----------------------------
    # Forecast
    # -----------------------------
    MAX_FORECAST_MONTHS: int = Field(default=36)
    FORECAST_ACCURACY_SIMULATION: float = Field(default=0.85)

    model_config = SettingsConfigDict(
        env_prefix="INMOFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "AGENCY_FEE_PCT",
        "TRANSFER_TAX_PCT",
        "MORTGAGE_PAYOFF_PCT",
        "OFFER_DISTRIBUTION_TOLERANCE",
        "FORECAST_ACCURACY_SIMULATION",
        mode="before",
    )
    @classmethod
    def _to_non_negative_fraction(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except Exception as err:
            raise ValueError("rate must be numeric or percent-like") from err
        if f > 1.0:
            f = f / 100.0
        if f < 0:
            raise ValueError("rate must be non-negative")
        return f

    @field_validator(
        "MIN_OWNER_APPRAISAL_CEILING",
        "LIST_PRICE_APPRAISAL_CEILING",
        "WATERFALL_TOLERANCE",
        mode="before",
    )
    @classmethod
    def _positive(cls, v: Any) -> Any:
        f = float(v)
        if f <= 0:
            raise ValueError("ceilings and tolerances must be > 0")
        return f

    @field_validator("DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE")
    @classmethod
    def _page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page sizes must be >= 1")
        return v


config = AppConfig()
