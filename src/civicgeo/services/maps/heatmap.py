"""Density heatmap aggregation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from ...config import settings
from ...data.reports_repository import fetch_reports
from ...models.domain import BoundingBox, GeoPoint, IssueCategory, ReportFilters
from ..geospatial import priority_weight, snap_point
from .models import HeatmapPoint


def build_heatmap(
    bounds: BoundingBox,
    *,
    categories: Optional[FrozenSet[IssueCategory]] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    grid_size_deg: float | None = None,
) -> List[HeatmapPoint]:
    """Return one intensity point per non-empty grid cell inside ``bounds``.

    intensity = count(cell) * mean(priority weight of cell members). Values are
    left unnormalised; colour scaling belongs to the map client.
    """

    if bounds.is_degenerate:
        return []

    grid_size = grid_size_deg or settings.default_heatmap_grid_deg
    filters = ReportFilters(categories=categories, date_from=date_from, date_to=date_to)
    reports = fetch_reports(bounds, filters)

    # cell -> (count, summed weight)
    cells: Dict[Tuple[float, float], Tuple[int, float]] = {}
    for report in reports:
        cell = snap_point(report.location, grid_size)
        key = (cell.latitude, cell.longitude)
        count, weight_total = cells.get(key, (0, 0.0))
        cells[key] = (count + 1, weight_total + priority_weight(report.priority))

    points = [
        HeatmapPoint(
            location=GeoPoint(latitude=lat, longitude=lon),
            intensity=count * (weight_total / count),
        )
        for (lat, lon), (count, weight_total) in cells.items()
    ]
    points.sort(key=lambda point: (-point.intensity, point.location.latitude, point.location.longitude))
    logging.info(f"Heatmap built {len(points)} cells from {len(reports)} reports (grid={grid_size}°)")
    return points
