"""Dataset-wide geographic summary."""

from __future__ import annotations

import logging
from collections import Counter

from shapely.geometry import MultiPoint

from ...data.reports_repository import fetch_reports
from ...models.domain import BoundingBox
from .models import AreaCount, GeoStatistics


def compute_geo_statistics(top_n: int = 10) -> GeoStatistics:
    reports = fetch_reports()
    if not reports:
        return GeoStatistics(
            total_reports=0,
            avg_latitude=0.0,
            avg_longitude=0.0,
            bounding_box=BoundingBox(north=0.0, south=0.0, east=0.0, west=0.0),
            top_areas=[],
        )

    points = MultiPoint([(report.location.longitude, report.location.latitude) for report in reports])
    min_lon, min_lat, max_lon, max_lat = points.bounds
    centroid = points.centroid

    # areas are coordinates rounded to two decimals (~1 km)
    area_counts: Counter[str] = Counter(
        f"{report.location.latitude:.2f},{report.location.longitude:.2f}" for report in reports
    )
    logging.info(f"Geo statistics over {len(reports)} reports spanning {len(area_counts)} areas")

    return GeoStatistics(
        total_reports=len(reports),
        avg_latitude=centroid.y,
        avg_longitude=centroid.x,
        bounding_box=BoundingBox(north=max_lat, south=min_lat, east=max_lon, west=min_lon),
        top_areas=[AreaCount(area=area, count=count) for area, count in area_counts.most_common(top_n)],
    )
