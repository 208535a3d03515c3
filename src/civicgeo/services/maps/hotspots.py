"""Per-category hotspot detection on a fixed grid."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from shapely.geometry import MultiPoint

from ...config import settings
from ...data.reports_repository import fetch_reports
from ...models.domain import GeoPoint, IssueCategory, Report, ReportFilters
from ..geospatial import snap_point
from .models import Hotspot


def _member_center(members: List[Report]) -> GeoPoint:
    """Mean coordinate of the members, not the cell's snap center."""

    centroid = MultiPoint([(report.location.longitude, report.location.latitude) for report in members]).centroid
    return GeoPoint(latitude=centroid.y, longitude=centroid.x)


def detect_hotspots(
    *,
    category: Optional[IssueCategory] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_reports: int = 5,
    radius_km: float = 1.0,
) -> List[Hotspot]:
    """Find grid cells where one category has at least ``min_reports`` reports.

    Cells are grouped per category, so unrelated problems sharing a cell never
    add up to a single hotspot. ``radius_km`` is echoed on each hotspot and does
    not size the grid.
    """

    filters = ReportFilters(
        categories=frozenset({category}) if category is not None else None,
        date_from=date_from,
        date_to=date_to,
    )
    reports = fetch_reports(None, filters)

    groups: Dict[Tuple[float, float, IssueCategory], List[Report]] = {}
    for report in reports:
        cell = snap_point(report.location, settings.hotspot_grid_deg)
        groups.setdefault((cell.latitude, cell.longitude, report.category), []).append(report)

    hotspots = [
        Hotspot(
            center=_member_center(members),
            radius=radius_km,
            report_count=len(members),
            category=cell_category,
            density=len(members),
        )
        for (_, _, cell_category), members in groups.items()
        if len(members) >= min_reports
    ]
    hotspots.sort(
        key=lambda spot: (-spot.report_count, spot.category.value, spot.center.latitude, spot.center.longitude)
    )
    logging.info(f"Detected {len(hotspots)} hotspots from {len(reports)} reports (min_reports={min_reports})")
    return hotspots
