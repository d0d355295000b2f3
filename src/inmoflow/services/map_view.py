# src/inmoflow/services/map_view.py
"""
Map projection of the catalog: marker points, bounding boxes and the greedy
distance clustering used at low zoom levels.
"""
from __future__ import annotations

from typing import Iterable

from inmoflow.adapters.geo import distance_km, haversine_km, is_within_radius
from inmoflow.domain.property import MapBounds, MapCluster, MapFilters, MapPoint, Property

__all__ = [
    "haversine_km",
    "is_within_radius",
    "normalize_to_map_point",
    "bounds_from_points",
    "cluster_radius_km",
    "cluster_points",
    "filter_map_points",
]

# zoom above which every point gets its own marker
INDIVIDUAL_MARKER_ZOOM = 14


def normalize_to_map_point(prop: Property) -> MapPoint:
    # listings without coordinates land on (0, 0), same as the list view
    coords = prop.coordinates
    return MapPoint(
        id=prop.id,
        title=prop.title,
        lat=coords.lat if coords else 0.0,
        lng=coords.lng if coords else 0.0,
        price=prop.price,
        status=prop.status,
        type=prop.type,
        address=prop.address,
        city=prop.city,
        area=prop.area,
        rooms=prop.rooms,
    )


def bounds_from_points(points: Iterable[MapPoint]) -> MapBounds | None:
    points = list(points)
    if not points:
        return None
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return MapBounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


def cluster_radius_km(zoom: float) -> float:
    if zoom > 12:
        return 0.005
    if zoom > 10:
        return 0.01
    return 0.02


def cluster_points(points: Iterable[MapPoint], zoom: float) -> list[MapCluster]:
    """
    Greedy single pass: each point joins the first cluster whose current
    centre is within the zoom radius, and that centre moves to the mean of
    its members. Input order therefore matters.
    """
    points = list(points)
    if zoom > INDIVIDUAL_MARKER_ZOOM:
        return [MapCluster(lat=p.lat, lng=p.lng, properties=[p], is_cluster=False) for p in points]

    radius = cluster_radius_km(zoom)
    clusters: list[MapCluster] = []
    for p in points:
        for c in clusters:
            if distance_km(c.lat, c.lng, p.lat, p.lng) <= radius:
                c.properties.append(p)
                n = len(c.properties)
                c.lat = sum(m.lat for m in c.properties) / n
                c.lng = sum(m.lng for m in c.properties) / n
                c.is_cluster = n > 1
                break
        else:
            clusters.append(MapCluster(lat=p.lat, lng=p.lng, properties=[p], is_cluster=False))
    return clusters


def filter_map_points(points: Iterable[MapPoint], filters: MapFilters) -> list[MapPoint]:
    out = []
    needle = filters.q.lower() if filters.q else None
    for p in points:
        if needle and needle not in p.title.lower() and needle not in p.address.lower() \
                and needle not in p.city.lower():
            continue
        if filters.city and p.city.lower() != filters.city.lower():
            continue
        if filters.type and p.type != filters.type:
            continue
        if filters.status and p.status != filters.status:
            continue
        if filters.price_min is not None and p.price < filters.price_min:
            continue
        if filters.price_max is not None and p.price > filters.price_max:
            continue
        if filters.rooms is not None and p.rooms < filters.rooms:
            continue
        if filters.bounds and not filters.bounds.contains(p.lat, p.lng):
            continue
        out.append(p)
    return out
