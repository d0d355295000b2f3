import io

import pandas as pd
import pytest

from inmoflow.adapters.seed import generate_properties
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.property import PropertyFilters
from inmoflow.services.properties import (
    INITIAL_PRICE_REASON,
    PRICE_CHANGE_REASON,
    PropertyService,
    apply_filters,
    filters_to_query_string,
    paginate,
    query_string_to_filters,
)

NEW_LISTING = {
    "title": "Piso luminoso en Chamberí",
    "address": "Calle Fuencarral 120",
    "city": "Madrid",
    "type": "piso",
    "price": 350_000,
    "area": 90,
    "rooms": 3,
    "bathrooms": 2,
    "coordinates": {"lat": 40.43, "lng": -3.70},
}


def test_seed_is_deterministic():
    a = generate_properties(10, seed=3)
    b = generate_properties(10, seed=3)
    assert [(p.id, p.price, p.city, p.coordinates) for p in a] == [(p.id, p.price, p.city, p.coordinates) for p in b]
    assert [p.id for p in a][:2] == ["prop-0001", "prop-0002"]


def test_create_records_initial_price(repos):
    service = PropertyService(repos)
    prop = service.create(NEW_LISTING)
    assert prop.status == "borrador"
    assert prop.pricing.original_price == 350_000
    assert [(h.price, h.reason) for h in prop.pricing.history] == [(350_000, INITIAL_PRICE_REASON)]
    assert service.get(prop.id) == prop


def test_create_collects_every_field_error(repos):
    with pytest.raises(InvalidInputError) as exc:
        PropertyService(repos).create({**NEW_LISTING, "price": 0, "type": "castillo", "title": ""})
    assert {"price", "type", "title"} <= set(exc.value.errors)


def test_price_change_appends_history(repos):
    service = PropertyService(repos)
    prop = service.create(NEW_LISTING)

    same = service.update(prop.id, {"title": "Piso reformado", "price": 350_000})
    assert len(same.pricing.history) == 1

    cheaper = service.update(prop.id, {"price": 330_000})
    assert cheaper.title == "Piso reformado"
    assert [h.reason for h in cheaper.pricing.history] == [INITIAL_PRICE_REASON, PRICE_CHANGE_REASON]

    custom = service.update(prop.id, {"price": 320_000, "priceChangeReason": "Negociación"})
    assert custom.pricing.history[-1].reason == "Negociación"
    assert custom.pricing.original_price == 350_000


def test_update_rejects_invalid_patch(repos):
    with pytest.raises(InvalidInputError) as exc:
        PropertyService(repos).update("prop-0001", {"rooms": -1})
    assert "rooms" in exc.value.errors


def test_missing_listing(repos):
    service = PropertyService(repos)
    with pytest.raises(NotFoundError):
        service.get("prop-9999")
    with pytest.raises(NotFoundError):
        service.delete("prop-9999")


def test_bulk_operations(repos):
    service = PropertyService(repos)
    assert service.bulk_delete(["prop-0001", "prop-0002", "nope"]) == 2
    assert len(repos.properties) == 48

    updated = service.bulk_update(["prop-0003", "prop-0001", "prop-0004"], {"status": "vendido"})
    assert [p.id for p in updated] == ["prop-0003", "prop-0004"]
    assert all(service.get(p.id).status == "vendido" for p in updated)


def test_publish_defaults_to_main_portals(repos):
    service = PropertyService(repos)
    published = service.publish("prop-0005")
    assert published.portal_sync == {"idealista": True, "fotocasa": True}
    assert published.published_at

    only_one = service.publish("prop-0006", ["habitaclia"])
    assert only_one.portal_sync == {"habitaclia": True}
    assert service.list(PropertyFilters(portal_sync=True, size=100)).total == 2


def test_filters_and_sorting(repos):
    items = repos.properties.list()
    city = items[0].city
    same_city = apply_filters(items, PropertyFilters(city=city))
    assert same_city and all(p.city == city for p in same_city)

    by_price = apply_filters(items, PropertyFilters(sort="price:desc"))
    assert [p.price for p in by_price] == sorted((p.price for p in items), reverse=True)

    roomy = apply_filters(items, PropertyFilters(rooms=4, price_max=500_000))
    assert all(p.rooms >= 4 and p.price <= 500_000 for p in roomy)

    q = apply_filters(items, PropertyFilters(q=city.upper()))
    assert {p.id for p in q} == {p.id for p in same_city}


def test_bad_sort_is_a_filter_error():
    with pytest.raises(ValueError):
        PropertyFilters(sort="price:sideways")


def test_pagination_is_zero_based_and_capped(repos):
    items = repos.properties.list()
    first = paginate(items, 0, 10)
    assert (first.total, first.total_pages, len(first.data)) == (50, 5, 10)
    assert first.data[0].id == "prop-0001"
    assert paginate(items, 4, 10).data[-1].id == "prop-0050"
    assert paginate(items, 0, 500).size == 100
    assert paginate(items, 0, None).size == 20


def test_query_string_conversion():
    filters = PropertyFilters(city="Madrid", price_min=100_000, exclusive=True, sort="price:asc")
    qs = filters_to_query_string(filters)
    assert "city=Madrid" in qs and "exclusive=true" in qs
    assert query_string_to_filters(qs) == filters

    loose = query_string_to_filters("?rooms=abc&page=2&unknown=1&exclusive=maybe")
    assert (loose.rooms, loose.page, loose.exclusive) == (None, 2, None)


def test_query_string_drops_out_of_range_values():
    filters = query_string_to_filters("page=-1&size=0&rooms=2&priceMin=-5&sort=price:sideways")
    assert (filters.page, filters.size, filters.price_min, filters.sort) == (0, None, None, None)
    assert filters.rooms == 2
    assert query_string_to_filters("size=2.5").size is None


def test_csv_export(repos):
    csv = PropertyService(repos).export_csv(PropertyFilters(size=100))
    df = pd.read_csv(io.StringIO(csv))
    assert len(df) == 50
    assert list(df.columns) == [
        "ID", "Título", "Dirección", "Ciudad", "Tipo", "Precio", "M2",
        "Habitaciones", "Baños", "Estado", "Exclusiva", "Agente",
    ]
    assert set(df["Exclusiva"]) <= {"Sí", "No"}
