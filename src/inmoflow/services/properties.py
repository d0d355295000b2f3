# src/inmoflow/services/properties.py
from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable
from urllib.parse import parse_qsl, urlencode

import pandas as pd

from inmoflow.adapters.config import config
from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import Repositories, new_id, now_iso
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.property import (
    DEFAULT_PORTALS,
    PriceHistoryEntry,
    PricingInfo,
    Property,
    PropertyFilters,
    PropertyIn,
    PropertyPage,
    PropertyUpdate,
)
from inmoflow.domain.validation import parse_model

logger = get_logger(__name__)

INITIAL_PRICE_REASON = "Precio inicial"
PRICE_CHANGE_REASON = "Actualización de precio"

CSV_COLUMNS = [
    "ID", "Título", "Dirección", "Ciudad", "Tipo", "Precio", "M2",
    "Habitaciones", "Baños", "Estado", "Exclusiva", "Agente",
]

_STRING_FILTERS = ("q", "status", "type", "city", "agent", "sort")
_NUMBER_FILTERS = ("priceMin", "priceMax", "rooms", "page", "size")
_BOOL_FILTERS = ("exclusive", "portalSync")


def _to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _sort_key(field: str):
    def key(p: Property):
        v = getattr(p, field, None)
        # missing values sort last ascending
        return (v is None, v if v is not None else 0)
    return key


def apply_filters(items: Iterable[Property], f: PropertyFilters) -> list[Property]:
    out = list(items)
    if f.q:
        needle = f.q.lower()
        out = [p for p in out
               if needle in p.title.lower() or needle in p.address.lower() or needle in p.city.lower()]
    if f.status:
        out = [p for p in out if p.status == f.status]
    if f.type:
        out = [p for p in out if p.type == f.type]
    if f.city:
        out = [p for p in out if p.city == f.city]
    if f.agent:
        out = [p for p in out if p.agent == f.agent]
    if f.price_min is not None:
        out = [p for p in out if p.price >= f.price_min]
    if f.price_max is not None:
        out = [p for p in out if p.price <= f.price_max]
    if f.rooms is not None:
        out = [p for p in out if p.rooms >= f.rooms]
    if f.exclusive is not None:
        out = [p for p in out if p.exclusive == f.exclusive]
    if f.portal_sync is not None:
        out = [p for p in out if any(p.portal_sync.values()) == f.portal_sync]
    if f.sort:
        field, _, order = f.sort.partition(":")
        out.sort(key=_sort_key(_to_snake(field)), reverse=order == "desc")
    return out


def paginate(items: list[Property], page: int, size: int | None) -> PropertyPage:
    size = min(size or config.DEFAULT_PAGE_SIZE, config.MAX_PAGE_SIZE)
    start = page * size
    return PropertyPage(
        data=items[start:start + size],
        total=len(items),
        page=page,
        size=size,
        total_pages=math.ceil(len(items) / size),
    )


def filters_to_query_string(filters: PropertyFilters) -> str:
    values = filters.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
    params = [(k, str(v).lower() if isinstance(v, bool) else str(v)) for k, v in values.items() if v != ""]
    return urlencode(params)


def query_string_to_filters(query: str) -> PropertyFilters:
    """Unknown keys, non-numeric numbers and out-of-range values are dropped rather than rejected."""
    params = dict(parse_qsl(query.lstrip("?")))
    data: dict[str, Any] = {}
    for key in _STRING_FILTERS:
        if params.get(key):
            data[key] = params[key]
    for key in _NUMBER_FILTERS:
        raw = params.get(key)
        if raw:
            try:
                num = float(raw)
            except ValueError:
                continue
            data[key] = int(num) if num.is_integer() else num
    for key in _BOOL_FILTERS:
        if params.get(key) in ("true", "false"):
            data[key] = params[key] == "true"
    filters, result = parse_model(PropertyFilters, data)
    if filters is None:
        # invalid values fall back to their defaults
        for path in result.errors:
            data.pop(path.split(".")[0], None)
        filters = PropertyFilters.model_validate(data)
    return filters


class PropertyService:
    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    def list(self, filters: PropertyFilters | None = None) -> PropertyPage:
        f = filters or PropertyFilters()
        return paginate(apply_filters(self.repos.properties.list(), f), f.page, f.size)

    def get(self, property_id: str) -> Property:
        prop = self.repos.properties.get(property_id)
        if prop is None:
            raise NotFoundError("Propiedad", property_id)
        return prop

    def create(self, data: dict[str, Any] | PropertyIn) -> Property:
        payload, result = parse_model(PropertyIn, data)
        if payload is None:
            log_event(logger, "property_rejected", level=logging.WARNING, fields=sorted(result.errors))
            raise InvalidInputError(result, "Propiedad inválida")

        ts = now_iso()
        prop = Property(
            **payload.model_dump(),
            id=new_id(),
            created_at=ts,
            updated_at=ts,
            pricing=PricingInfo(
                original_price=payload.price,
                history=[PriceHistoryEntry(price=payload.price, date=ts, reason=INITIAL_PRICE_REASON)],
            ),
        )
        self.repos.properties.add(prop)
        log_event(logger, "property_created", property_id=prop.id, price=prop.price)
        return prop

    def update(self, property_id: str, data: dict[str, Any] | PropertyUpdate) -> Property:
        current = self.get(property_id)
        patch, result = parse_model(PropertyUpdate, data)
        if patch is None:
            log_event(logger, "property_rejected", level=logging.WARNING, fields=sorted(result.errors))
            raise InvalidInputError(result, "Propiedad inválida")

        changes = patch.model_dump(exclude_unset=True, exclude={"price_change_reason"})
        ts = now_iso()
        updates: dict[str, Any] = {**changes, "updated_at": ts}

        new_price = changes.get("price")
        if new_price is not None and new_price != current.price:
            pricing = current.pricing or PricingInfo(original_price=current.price)
            entry = PriceHistoryEntry(
                price=new_price, date=ts, reason=patch.price_change_reason or PRICE_CHANGE_REASON
            )
            updates["pricing"] = pricing.model_copy(update={"history": [*pricing.history, entry]})

        # re-validate the merged record so partial updates cannot break it
        merged = Property.model_validate({**current.model_dump(), **updates})
        self.repos.properties.replace(merged)
        log_event(logger, "property_updated", property_id=property_id, fields=sorted(changes))
        return merged

    def delete(self, property_id: str) -> None:
        if not self.repos.properties.delete(property_id):
            raise NotFoundError("Propiedad", property_id)
        log_event(logger, "property_deleted", property_id=property_id)

    def bulk_delete(self, ids: list[str]) -> int:
        deleted = self.repos.properties.delete_many(ids)
        log_event(logger, "properties_bulk_deleted", requested=len(ids), deleted=deleted)
        return deleted

    def bulk_update(self, ids: list[str], data: dict[str, Any]) -> list[Property]:
        """Apply one patch to many listings; ids that do not exist are skipped."""
        updated = [self.update(pid, data) for pid in ids if self.repos.properties.get(pid) is not None]
        log_event(logger, "properties_bulk_updated", requested=len(ids), updated=len(updated))
        return updated

    def publish(self, property_id: str, portals: Iterable[str] | None = None) -> Property:
        current = self.get(property_id)
        targets = list(portals) if portals else list(DEFAULT_PORTALS)
        ts = now_iso()
        published = current.model_copy(update={
            "published_at": ts,
            "updated_at": ts,
            "portal_sync": {p: True for p in targets},
        })
        self.repos.properties.replace(published)
        log_event(logger, "property_published", property_id=property_id, portals=targets)
        return published

    def export_csv(self, filters: PropertyFilters | None = None) -> str:
        page = self.list(filters)
        rows = [
            [p.id, p.title, p.address, p.city, p.type, p.price, p.area, p.rooms,
             p.bathrooms, p.status, "Sí" if p.exclusive else "No", p.agent or ""]
            for p in page.data
        ]
        df = pd.DataFrame(rows, columns=CSV_COLUMNS)
        log_event(logger, "properties_exported", rows=len(df))
        return df.to_csv(index=False)
