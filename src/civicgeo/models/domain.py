"""Domain models for citizen reports and map geometry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional


class IssueCategory(str, Enum):
    POTHOLE = "POTHOLE"
    STREETLIGHT = "STREETLIGHT"
    GARBAGE = "GARBAGE"
    WATER_LEAK = "WATER_LEAK"
    SEWAGE = "SEWAGE"
    ROAD_MAINTENANCE = "ROAD_MAINTENANCE"
    TRAFFIC_SIGNAL = "TRAFFIC_SIGNAL"
    PARK_MAINTENANCE = "PARK_MAINTENANCE"
    NOISE_POLLUTION = "NOISE_POLLUTION"
    OTHER = "OTHER"


class Priority(str, Enum):
    NORMAL = "NORMAL"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


class ReportStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


RESOLVED_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.CLOSED})


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime; naive values are taken to be UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned lat/lon rectangle. Boxes crossing the antimeridian are not supported."""

    north: float
    south: float
    east: float
    west: float

    @property
    def is_degenerate(self) -> bool:
        return self.north < self.south or self.east < self.west

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.south <= point.latitude <= self.north
            and self.west <= point.longitude <= self.east
        )


@dataclass(slots=True)
class Report:
    """Read-only projection of a citizen report as consumed by the map analytics."""

    id: str
    category: IssueCategory
    priority: Priority
    status: ReportStatus
    location: GeoPoint
    created_at: datetime
    resolved_at: Optional[datetime] = None
    title: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReportFilters:
    categories: Optional[FrozenSet[IssueCategory]] = None
    statuses: Optional[FrozenSet[ReportStatus]] = None
    priorities: Optional[FrozenSet[Priority]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    exclude_report_id: Optional[str] = None

    def matches(self, report: Report) -> bool:
        if self.categories and report.category not in self.categories:
            return False
        if self.statuses and report.status not in self.statuses:
            return False
        if self.priorities and report.priority not in self.priorities:
            return False
        created_at = as_utc(report.created_at)
        if self.date_from is not None and created_at < as_utc(self.date_from):
            return False
        if self.date_to is not None and created_at > as_utc(self.date_to):
            return False
        if self.exclude_report_id is not None and report.id == self.exclude_report_id:
            return False
        return True
