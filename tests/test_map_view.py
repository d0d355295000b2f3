import numpy as np
import pytest

from inmoflow.domain.property import MapBounds, MapFilters, MapPoint
from inmoflow.services.map_view import (
    bounds_from_points,
    cluster_points,
    cluster_radius_km,
    filter_map_points,
    haversine_km,
    is_within_radius,
    normalize_to_map_point,
)
from inmoflow.services.properties import PropertyService

MADRID = (40.4168, -3.7038)
BARCELONA = (41.3874, 2.1686)


def _point(pid, lat, lng, **kw):
    data = dict(id=pid, title=f"Piso {pid}", lat=lat, lng=lng, price=300_000, status="activo", type="piso",
                address="Calle Mayor 1", city="Madrid", area=80, rooms=3)
    data.update(kw)
    return MapPoint(**data)


def test_haversine_known_distance():
    assert float(haversine_km(*MADRID, *BARCELONA)) == pytest.approx(505, abs=5)
    assert float(haversine_km(*MADRID, *MADRID)) == 0


def test_haversine_is_vectorised():
    lats = np.array([MADRID[0], BARCELONA[0]])
    lngs = np.array([MADRID[1], BARCELONA[1]])
    d = haversine_km(MADRID[0], MADRID[1], lats, lngs)
    assert d.shape == (2,)
    assert d[0] == 0


def test_within_radius():
    assert is_within_radius(*MADRID, 40.4178, -3.7038, radius_km=0.2)
    assert not is_within_radius(*MADRID, *BARCELONA, radius_km=100)


def test_radius_by_zoom():
    assert [cluster_radius_km(z) for z in (14, 13, 11, 10, 3)] == [0.005, 0.005, 0.01, 0.02, 0.02]


def test_high_zoom_gives_one_marker_per_point():
    pts = [_point("a", *MADRID), _point("b", *MADRID)]
    clusters = cluster_points(pts, zoom=15)
    assert len(clusters) == 2
    assert not any(c.is_cluster for c in clusters)


def test_nearby_points_merge_and_centre_moves():
    a = _point("a", 40.41680, -3.70380)
    b = _point("b", 40.41682, -3.70380)  # ~2 m north
    far = _point("c", *BARCELONA)
    clusters = cluster_points([a, b, far], zoom=12)

    assert len(clusters) == 2
    merged = clusters[0]
    assert merged.is_cluster
    assert [p.id for p in merged.properties] == ["a", "b"]
    assert merged.lat == pytest.approx(40.41681)
    assert not clusters[1].is_cluster


def test_bounds():
    assert bounds_from_points([]) is None
    b = bounds_from_points([_point("a", *MADRID), _point("b", *BARCELONA)])
    assert (b.north, b.south, b.east, b.west) == (BARCELONA[0], MADRID[0], BARCELONA[1], MADRID[1])
    assert b.contains(41.0, 0.0)
    assert not b.contains(42.0, 0.0)


def test_listing_without_coordinates_lands_at_origin(repos):
    prop = PropertyService(repos).create({
        "title": "Local sin geolocalizar", "address": "Calle Sin Número", "city": "Bilbao", "type": "local",
        "price": 90_000, "area": 60, "rooms": 0, "bathrooms": 1,
    })
    point = normalize_to_map_point(prop)
    assert (point.lat, point.lng) == (0.0, 0.0)
    assert point.city == "Bilbao"


def test_map_filters():
    pts = [
        _point("a", *MADRID, price=200_000, rooms=2),
        _point("b", *BARCELONA, city="Barcelona", price=450_000, rooms=4, type="atico"),
        _point("c", 40.45, -3.69, status="vendido", price=320_000),
    ]
    assert [p.id for p in filter_map_points(pts, MapFilters(city="barcelona"))] == ["b"]
    assert [p.id for p in filter_map_points(pts, MapFilters(price_min=250_000, rooms=3))] == ["b", "c"]
    assert [p.id for p in filter_map_points(pts, MapFilters(status="activo", type="piso"))] == ["a"]

    box = MapBounds(north=40.5, south=40.3, east=-3.6, west=-3.8)
    assert [p.id for p in filter_map_points(pts, MapFilters(bounds=box))] == ["a", "c"]
    assert [p.id for p in filter_map_points(pts, MapFilters(q="piso b"))] == ["b"]
