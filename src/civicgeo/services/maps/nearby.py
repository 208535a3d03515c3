"""Radius search around a point."""

from __future__ import annotations

import logging
import math
from typing import FrozenSet, List, Optional

import numpy as np

from ...config import settings
from ...data.reports_repository import fetch_reports
from ...models.domain import BoundingBox, GeoPoint, IssueCategory, ReportFilters
from ..geospatial import EARTH_RADIUS_KM, haversine_km_many
from .models import NearbyReport

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180


def _search_box(center: GeoPoint, radius_km: float) -> BoundingBox | None:
    """Conservative lat/lon box enclosing the search circle.

    Returns None when the box would cross a pole or the antimeridian, in which
    case candidates are not pre-filtered by location.
    """

    lat_delta = radius_km / KM_PER_DEGREE
    north, south = center.latitude + lat_delta, center.latitude - lat_delta
    if north >= 90 or south <= -90:
        return None
    # widest longitude span occurs at the edge closest to a pole
    cos_lat = math.cos(math.radians(max(abs(north), abs(south))))
    lon_delta = radius_km / (KM_PER_DEGREE * cos_lat) * 1.01
    east, west = center.longitude + lon_delta, center.longitude - lon_delta
    if east > 180 or west < -180:
        return None
    return BoundingBox(north=north + 1e-9, south=south - 1e-9, east=east, west=west)


def find_nearby_reports(
    center: GeoPoint,
    radius_km: float,
    *,
    categories: Optional[FrozenSet[IssueCategory]] = None,
    exclude_report_id: str | None = None,
    limit: int | None = None,
) -> List[NearbyReport]:
    """Return reports within ``radius_km`` of ``center``, closest first.

    Equal distances keep the repository's return order (stable sort).
    """

    effective_limit = limit if limit is not None else settings.default_nearby_limit
    effective_limit = max(1, min(effective_limit, settings.max_nearby_results))

    filters = ReportFilters(categories=categories, exclude_report_id=exclude_report_id)
    candidates = fetch_reports(_search_box(center, radius_km), filters)
    if not candidates:
        return []

    lats = np.fromiter((report.location.latitude for report in candidates), dtype=float, count=len(candidates))
    lons = np.fromiter((report.location.longitude for report in candidates), dtype=float, count=len(candidates))
    distances = haversine_km_many(center.latitude, center.longitude, lats, lons)

    within = np.flatnonzero(distances <= radius_km)
    ordered = within[np.argsort(distances[within], kind="stable")][:effective_limit]

    results = [NearbyReport(report=candidates[index], distance_km=float(distances[index])) for index in ordered]
    logging.info(
        f"Nearby search ({radius_km} km) matched {len(within)} of {len(candidates)} candidates, returning {len(results)}"
    )
    return results
