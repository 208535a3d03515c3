"""Geospatial helper functions."""

from __future__ import annotations

import math

import numpy as np

from ..models.domain import GeoPoint, Priority

EARTH_RADIUS_KM = 6371.0

_PRIORITY_WEIGHTS = {
    Priority.NORMAL: 1.0,
    Priority.URGENT: 2.0,
    Priority.CRITICAL: 3.0,
}

# Lower weight = visited sooner.
_ROUTE_WEIGHTS = {
    Priority.CRITICAL: 0.5,
    Priority.URGENT: 0.7,
    Priority.NORMAL: 1.0,
}


def to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def to_degrees(radians: float) -> float:
    return radians * (180 / math.pi)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = to_radians(lat1), to_radians(lat2)
    d_phi = to_radians(lat2 - lat1)
    d_lambda = to_radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_km_many(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorised Haversine distance from one coordinate to arrays of coordinates."""

    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    d_phi = np.radians(lats - lat)
    d_lambda = np.radians(lons - lon)

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def snap_to_grid(value: float, cell_size_deg: float) -> float:
    """Round a coordinate to the nearest multiple of ``cell_size_deg``.

    Halves round away from zero so the buckets match the SQL ``ROUND`` used by
    the report store. Snapping an already-snapped value returns it unchanged.
    """

    if cell_size_deg <= 0:
        raise ValueError(f"Grid cell size must be positive, got {cell_size_deg}")
    steps = math.floor(abs(value) / cell_size_deg + 0.5)
    return math.copysign(steps, value) * cell_size_deg


def snap_point(point: GeoPoint, cell_size_deg: float) -> GeoPoint:
    return GeoPoint(
        latitude=snap_to_grid(point.latitude, cell_size_deg),
        longitude=snap_to_grid(point.longitude, cell_size_deg),
    )


def priority_weight(priority: Priority) -> float:
    return _PRIORITY_WEIGHTS.get(priority, 1.0)


def route_weight(priority: Priority) -> float:
    return _ROUTE_WEIGHTS.get(priority, 1.0)
