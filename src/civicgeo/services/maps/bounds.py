"""Bounding-box report queries with optional grid clustering."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from ...config import settings
from ...data.reports_repository import fetch_reports
from ...models.domain import BoundingBox, GeoPoint, Report, ReportFilters
from ..geospatial import priority_weight, snap_point
from .models import BoundsQueryResult, ClusterPoint


def cluster_reports(reports: Sequence[Report], cell_size_deg: float) -> List[ClusterPoint]:
    """Group reports into snapped grid cells, one ClusterPoint per non-empty cell."""

    cells: Dict[Tuple[float, float], List[Report]] = {}
    for report in reports:
        cell = snap_point(report.location, cell_size_deg)
        cells.setdefault((cell.latitude, cell.longitude), []).append(report)

    clusters: List[ClusterPoint] = []
    for (lat, lon), members in cells.items():
        clusters.append(
            ClusterPoint(
                location=GeoPoint(latitude=lat, longitude=lon),
                count=len(members),
                member_ids=[member.id for member in members],
                categories=sorted({member.category for member in members}, key=lambda item: item.value),
                avg_priority_score=sum(priority_weight(member.priority) for member in members) / len(members),
                statuses=sorted({member.status for member in members}, key=lambda item: item.value),
            )
        )

    return sorted(
        clusters,
        key=lambda cluster: (-cluster.count, cluster.location.latitude, cluster.location.longitude),
    )


def get_reports_in_bounds(
    bounds: BoundingBox,
    filters: ReportFilters | None = None,
    *,
    clustered: bool = False,
    cell_size_deg: float | None = None,
) -> BoundsQueryResult:
    """Return the reports inside ``bounds``, or their grid clusters when ``clustered``.

    Unclustered results are newest first and capped at ``settings.max_bounds_results``.
    Clustered results are uncapped: every matching report lands in exactly one cluster.
    A degenerate box (north < south or east < west) is an empty area, not an error.
    """

    if bounds.is_degenerate:
        logging.debug(f"Degenerate bounds {bounds}, returning empty result")
        return BoundsQueryResult(clustered=clustered)

    if not clustered:
        reports = fetch_reports(bounds, filters, newest_first=True, limit=settings.max_bounds_results)
        logging.info(f"Bounds query returned {len(reports)} reports")
        return BoundsQueryResult(clustered=False, reports=reports)

    cell_size = cell_size_deg or settings.default_cluster_cell_deg
    reports = fetch_reports(bounds, filters)
    clusters = cluster_reports(reports, cell_size)
    logging.info(f"Clustered {len(reports)} reports into {len(clusters)} cells (cell={cell_size}°)")
    return BoundsQueryResult(clustered=True, clusters=clusters)
