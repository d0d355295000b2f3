# src/inmoflow/domain/property.py
from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from inmoflow.domain.validation import CamelModel

# Listing types and lifecycle states shown in the catalog
PropertyType = Literal["piso", "atico", "duplex", "casa", "chalet", "estudio", "loft", "local", "oficina"]
PropertyStatus = Literal["borrador", "activo", "vendido", "alquilado"]

DEFAULT_PORTALS = ("idealista", "fotocasa")


class Coordinates(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Activity(CamelModel):
    visits: int = 0
    inquiries: int = 0
    saves: int = 0


class PriceHistoryEntry(CamelModel):
    price: float
    date: str
    reason: str


class PricingInfo(CamelModel):
    original_price: float
    history: list[PriceHistoryEntry] = Field(default_factory=list)


class PropertyIn(CamelModel):
    """Editable fields of a listing (the create form)."""
    title: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    type: PropertyType
    status: PropertyStatus = "borrador"
    price: float = Field(gt=0, description="Asking price in EUR")
    area: float = Field(gt=0, description="Built area in m²")
    rooms: int = Field(ge=0)
    bathrooms: int = Field(ge=0)
    exclusive: bool = False
    agent: str | None = None
    description: str | None = None
    features: list[str] = Field(default_factory=list)
    coordinates: Coordinates | None = None


class PropertyUpdate(CamelModel):
    """Partial update; only fields that are set are applied."""
    title: str | None = Field(default=None, min_length=1, max_length=200)
    address: str | None = Field(default=None, min_length=1)
    city: str | None = Field(default=None, min_length=1)
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    price: float | None = Field(default=None, gt=0)
    area: float | None = Field(default=None, gt=0)
    rooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    exclusive: bool | None = None
    agent: str | None = None
    description: str | None = None
    features: list[str] | None = None
    coordinates: Coordinates | None = None
    price_change_reason: str | None = None


class Property(PropertyIn):
    id: str
    created_at: str
    updated_at: str
    published_at: str | None = None
    activity: Activity = Field(default_factory=Activity)
    pricing: PricingInfo | None = None
    portal_sync: dict[str, bool] = Field(default_factory=dict)

    @property
    def price_per_m2(self) -> int:
        return round(self.price / self.area)


SortOrder = Literal["asc", "desc"]


class PropertyFilters(CamelModel):
    q: str | None = None
    status: PropertyStatus | None = None
    type: PropertyType | None = None
    city: str | None = None
    agent: str | None = None
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, ge=0)
    rooms: int | None = Field(default=None, ge=0)
    exclusive: bool | None = None
    portal_sync: bool | None = None
    sort: str | None = None
    page: int = Field(default=0, ge=0)
    size: int | None = Field(default=None, ge=1)

    @field_validator("sort")
    @classmethod
    def _sort_format(cls, v: str | None) -> str | None:
        if v is None:
            return v
        field, _, order = v.partition(":")
        if not field or order not in ("", "asc", "desc"):
            raise ValueError("Formato de orden inválido, use campo:asc|desc")
        return v


class PropertyPage(CamelModel):
    data: list[Property]
    total: int
    page: int
    size: int
    total_pages: int


# ----------------------------
# Map view
# ----------------------------

class MapPoint(CamelModel):
    id: str
    title: str
    lat: float
    lng: float
    price: float
    status: PropertyStatus
    type: PropertyType
    address: str
    city: str
    area: float
    rooms: int


class MapBounds(CamelModel):
    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class MapCluster(CamelModel):
    lat: float
    lng: float
    properties: list[MapPoint]
    is_cluster: bool = False


class MapFilters(CamelModel):
    q: str | None = None
    city: str | None = None
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, ge=0)
    rooms: int | None = Field(default=None, ge=0)
    bounds: MapBounds | None = None
