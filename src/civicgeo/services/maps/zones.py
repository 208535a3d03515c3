"""Per-zone report analytics."""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Sequence

from ...data.reports_repository import fetch_reports
from ...models.domain import RESOLVED_STATUSES, IssueCategory, Priority, Report, as_utc
from .models import CategoryCount, PriorityDistribution, Zone, ZoneReport

TOP_CATEGORY_COUNT = 5


def summarize_zone(zone: Zone, reports: Sequence[Report]) -> ZoneReport:
    resolution_hours = [
        (as_utc(report.resolved_at) - as_utc(report.created_at)).total_seconds() / 3600
        for report in reports
        if report.resolved_at is not None
    ]
    avg_resolution_hours = None
    if resolution_hours:
        avg_resolution_hours = round(sum(resolution_hours) / len(resolution_hours), 2)

    category_counts: Counter[IssueCategory] = Counter(report.category for report in reports)
    priority_counts: Counter[Priority] = Counter(report.priority for report in reports)

    return ZoneReport(
        zone_id=zone.zone_id,
        zone_name=zone.zone_name,
        total_reports=len(reports),
        resolved_reports=sum(1 for report in reports if report.status in RESOLVED_STATUSES),
        avg_resolution_hours=avg_resolution_hours,
        top_categories=[
            CategoryCount(category=category, count=count)
            for category, count in category_counts.most_common(TOP_CATEGORY_COUNT)
        ],
        priority_distribution=PriorityDistribution(
            normal=priority_counts[Priority.NORMAL],
            urgent=priority_counts[Priority.URGENT],
            critical=priority_counts[Priority.CRITICAL],
        ),
    )


def compute_zone_analytics(zones: Sequence[Zone]) -> List[ZoneReport]:
    """One ZoneReport per zone, in input order. Empty zones get a zero-filled record."""

    analytics: List[ZoneReport] = []
    for zone in zones:
        reports = [] if zone.bounds.is_degenerate else fetch_reports(zone.bounds)
        analytics.append(summarize_zone(zone, reports))
    logging.info(f"Computed analytics for {len(analytics)} zones")
    return analytics
