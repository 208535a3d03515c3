"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(slots=True)
class RouteStop:
    report_id: str
    sequence: int
    arrival_min: float
    distance_from_prev_km: float


@dataclass(slots=True)
class RoutePlan:
    visit_order: List[str]
    total_distance_km: float
    estimated_minutes: int
    stops: List[RouteStop] = field(default_factory=list)
    skipped_report_ids: List[str] = field(default_factory=list)
