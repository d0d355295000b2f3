# src/inmoflow/adapters/geo.py
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

EARTH_R_KM = 6371.0


def haversine_km(lat1: ArrayLike, lng1: ArrayLike, lat2: ArrayLike, lng2: ArrayLike) -> np.ndarray:
    lat1_arr, lng1_arr, lat2_arr, lng2_arr = map(lambda a: np.radians(np.asarray(a, dtype=float)),
                                                 [lat1, lng1, lat2, lng2])
    dlat = lat2_arr - lat1_arr
    dlng = lng2_arr - lng1_arr
    a = np.sin(dlat / 2.0) ** 2 + np.cos(lat1_arr) * np.cos(lat2_arr) * np.sin(dlng / 2.0) ** 2
    return 2.0 * EARTH_R_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return float(haversine_km(lat1, lng1, lat2, lng2))


def is_within_radius(
    center_lat: float, center_lng: float, lat: float, lng: float, radius_km: float
) -> bool:
    return distance_km(center_lat, center_lng, lat, lng) <= radius_km
