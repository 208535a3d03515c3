"""Field visit route planning for staff assignments."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ...config import settings
from ...data.reports_repository import fetch_reports_by_ids
from ...models.domain import GeoPoint, Report
from ..geospatial import distance_km, route_weight
from .models import RoutePlan, RouteStop


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _resolve_assignments(report_ids: Sequence[str]) -> tuple[list[Report], list[str]]:
    """Resolve ids to reports in request order, dropping duplicates and stale ids."""

    requested = list(dict.fromkeys(str(report_id) for report_id in report_ids))
    by_id = {report.id: report for report in fetch_reports_by_ids(requested)}
    resolved = [by_id[report_id] for report_id in requested if report_id in by_id]
    skipped = [report_id for report_id in requested if report_id not in by_id]
    return resolved, skipped


def plan_route(start: GeoPoint, reports: Sequence[Report], speed_kmh: float | None = None) -> RoutePlan:
    """Greedy priority-weighted nearest-neighbour ordering of ``reports``.

    Each step picks the unvisited report with the smallest
    ``distance * route_weight(priority)``; ties keep the earlier report. The
    weight only steers the order: totals are real Haversine leg distances.
    O(n^2), intended for assignment sets of tens of reports.
    """

    speed = speed_kmh or settings.route_speed_kmh
    unvisited = list(reports)
    current = start
    total_distance = 0.0
    stops: list[RouteStop] = []

    while unvisited:
        best_index = 0
        best_score = math.inf
        best_distance = 0.0
        for index, candidate in enumerate(unvisited):
            leg = distance_km(current, candidate.location)
            score = leg * route_weight(candidate.priority)
            if score < best_score:
                best_index, best_score, best_distance = index, score, leg

        chosen = unvisited.pop(best_index)
        total_distance += best_distance
        stops.append(
            RouteStop(
                report_id=chosen.id,
                sequence=len(stops) + 1,
                arrival_min=round(total_distance / speed * 60, 1),
                distance_from_prev_km=round(best_distance, 2),
            )
        )
        current = chosen.location

    return RoutePlan(
        visit_order=[stop.report_id for stop in stops],
        total_distance_km=round(total_distance, 2),
        estimated_minutes=_round_half_up(total_distance / speed * 60),
        stops=stops,
    )


def optimize_route(start: GeoPoint, report_ids: Sequence[str]) -> RoutePlan:
    """Plan a visit sequence for a staff member's assigned reports.

    Ids the repository no longer knows are dropped rather than failing the plan.
    The plan is computed fresh on every call.
    """

    reports, skipped = _resolve_assignments(report_ids)
    if skipped:
        logging.info(f"Route planning skipped {len(skipped)} unknown report ids: {skipped}")

    plan = plan_route(start, reports)
    plan.skipped_report_ids = skipped
    logging.info(
        f"Planned route over {len(plan.visit_order)} reports: {plan.total_distance_km} km, ~{plan.estimated_minutes} min"
    )
    return plan
