"""Map analytics result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import BoundingBox, GeoPoint, IssueCategory, Report, ReportStatus


@dataclass(slots=True)
class ClusterPoint:
    location: GeoPoint
    count: int
    member_ids: List[str]
    categories: List[IssueCategory]
    avg_priority_score: float
    statuses: List[ReportStatus]


@dataclass(slots=True)
class BoundsQueryResult:
    """Either individual reports or grid clusters, never both."""

    clustered: bool
    reports: List[Report] = field(default_factory=list)
    clusters: List[ClusterPoint] = field(default_factory=list)


@dataclass(slots=True)
class HeatmapPoint:
    location: GeoPoint
    intensity: float


@dataclass(slots=True)
class NearbyReport:
    report: Report
    distance_km: float


@dataclass(slots=True)
class Hotspot:
    center: GeoPoint
    radius: float
    report_count: int
    category: IssueCategory
    density: int


@dataclass(slots=True)
class CategoryCount:
    category: IssueCategory
    count: int


@dataclass(slots=True)
class PriorityDistribution:
    normal: int = 0
    urgent: int = 0
    critical: int = 0


@dataclass(slots=True)
class Zone:
    zone_id: str
    zone_name: str
    bounds: BoundingBox


@dataclass(slots=True)
class ZoneReport:
    zone_id: str
    zone_name: str
    total_reports: int
    resolved_reports: int
    avg_resolution_hours: Optional[float]
    top_categories: List[CategoryCount]
    priority_distribution: PriorityDistribution


@dataclass(slots=True)
class AreaCount:
    area: str
    count: int


@dataclass(slots=True)
class GeoStatistics:
    total_reports: int
    avg_latitude: float
    avg_longitude: float
    bounding_box: BoundingBox
    top_areas: List[AreaCount]
