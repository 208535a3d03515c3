"""Map analytics endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Type, TypeVar, Union

from fastapi import APIRouter, HTTPException, Query, status

from ...config import settings
from ...data.reports_repository import RepositoryError
from ...models.domain import (
    BoundingBox,
    GeoPoint,
    IssueCategory,
    Priority,
    Report,
    ReportFilters,
    ReportStatus,
)
from ...schemas.maps import (
    AreaCountModel,
    BoundsModel,
    CategoryCountModel,
    ClusterModel,
    ClustersResponse,
    GeoPointModel,
    GeoStatisticsResponse,
    HeatmapPointModel,
    HeatmapResponse,
    HotspotModel,
    HotspotsResponse,
    NearbyReportModel,
    NearbyResponse,
    PriorityDistributionModel,
    ReportModel,
    ReportsResponse,
    RouteOptimizeRequest,
    RoutePlanResponse,
    RouteStopModel,
    ZoneAnalyticsRequest,
    ZoneAnalyticsResponse,
    ZoneReportModel,
)
from ...services.maps import (
    build_heatmap,
    compute_geo_statistics,
    compute_zone_analytics,
    detect_hotspots,
    find_nearby_reports,
    get_reports_in_bounds,
)
from ...services.maps.models import Zone
from ...services.routing.service import optimize_route

router = APIRouter(prefix="/maps", tags=["maps"])

E = TypeVar("E", bound=Enum)

REPOSITORY_UNAVAILABLE = "Report repository unavailable"


def _parse_enum_list(values: Optional[list[str]], enum_cls: Type[E], param: str) -> Optional[FrozenSet[E]]:
    """Accept repeated and/or comma-separated query values."""
    if not values:
        return None
    items = [item.strip().upper() for value in values for item in value.split(",") if item.strip()]
    if not items:
        return None
    try:
        return frozenset(enum_cls(item) for item in items)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid value in '{param}'. Allowed: {allowed}",
        ) from exc


def _unavailable(exc: RepositoryError) -> HTTPException:
    logging.error(f"Report repository failure: {exc}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=REPOSITORY_UNAVAILABLE)


def _failed(action: str, exc: Exception) -> HTTPException:
    logging.exception(f"Error {action}: {exc}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed {action}")


def _report_fields(report: Report) -> dict:
    return {
        "id": report.id,
        "title": report.title,
        "category": report.category,
        "priority": report.priority,
        "status": report.status,
        "latitude": report.location.latitude,
        "longitude": report.location.longitude,
        "address": report.address,
        "createdAt": report.created_at,
        "resolvedAt": report.resolved_at,
    }


def _bounds(north: float, south: float, east: float, west: float) -> BoundingBox:
    return BoundingBox(north=north, south=south, east=east, west=west)


@router.get(
    "/reports",
    response_model=Union[ReportsResponse, ClustersResponse],
    status_code=status.HTTP_200_OK,
)
def get_reports(
    north: float = Query(..., ge=-90, le=90),
    south: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    west: float = Query(..., ge=-180, le=180),
    categories: list[str] | None = Query(default=None),
    statuses: list[str] | None = Query(default=None),
    priorities: list[str] | None = Query(default=None),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    clustered: bool = Query(default=False),
    cluster_radius: float = Query(
        default=settings.default_cluster_cell_deg,
        alias="clusterRadius",
        ge=0.001,
        le=1,
        description="Grid cell size in degrees used when clustered=true.",
    ),
) -> Union[ReportsResponse, ClustersResponse]:
    filters = ReportFilters(
        categories=_parse_enum_list(categories, IssueCategory, "categories"),
        statuses=_parse_enum_list(statuses, ReportStatus, "statuses"),
        priorities=_parse_enum_list(priorities, Priority, "priorities"),
        date_from=date_from,
        date_to=date_to,
    )
    try:
        result = get_reports_in_bounds(
            _bounds(north, south, east, west),
            filters,
            clustered=clustered,
            cell_size_deg=cluster_radius,
        )
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("querying reports in bounds", exc) from exc

    if result.clustered:
        return ClustersResponse(
            clusters=[
                ClusterModel(
                    latitude=cluster.location.latitude,
                    longitude=cluster.location.longitude,
                    count=cluster.count,
                    reportIds=cluster.member_ids,
                    categories=cluster.categories,
                    statuses=cluster.statuses,
                    avgPriorityScore=cluster.avg_priority_score,
                )
                for cluster in result.clusters
            ]
        )
    return ReportsResponse(reports=[ReportModel(**_report_fields(report)) for report in result.reports])


@router.get("/heatmap", response_model=HeatmapResponse, status_code=status.HTTP_200_OK)
def get_heatmap(
    north: float = Query(..., ge=-90, le=90),
    south: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    west: float = Query(..., ge=-180, le=180),
    categories: list[str] | None = Query(default=None),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    grid_size: float = Query(default=settings.default_heatmap_grid_deg, alias="gridSize", ge=0.001, le=1),
) -> HeatmapResponse:
    category_set = _parse_enum_list(categories, IssueCategory, "categories")
    try:
        points = build_heatmap(
            _bounds(north, south, east, west),
            categories=category_set,
            date_from=date_from,
            date_to=date_to,
            grid_size_deg=grid_size,
        )
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("building heatmap", exc) from exc
    return HeatmapResponse(
        points=[
            HeatmapPointModel(
                latitude=point.location.latitude,
                longitude=point.location.longitude,
                intensity=point.intensity,
            )
            for point in points
        ]
    )


@router.get("/nearby", response_model=NearbyResponse, status_code=status.HTTP_200_OK)
def get_nearby(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=2.0, alias="radiusKm", ge=0.1, le=50),
    categories: list[str] | None = Query(default=None),
    exclude_report_id: str | None = Query(default=None, alias="excludeReportId"),
    limit: int = Query(default=settings.default_nearby_limit, ge=1, le=settings.max_nearby_results),
) -> NearbyResponse:
    category_set = _parse_enum_list(categories, IssueCategory, "categories")
    try:
        matches = find_nearby_reports(
            GeoPoint(latitude=lat, longitude=lng),
            radius_km,
            categories=category_set,
            exclude_report_id=exclude_report_id,
            limit=limit,
        )
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("finding nearby reports", exc) from exc
    return NearbyResponse(
        reports=[
            NearbyReportModel(**_report_fields(match.report), distanceKm=round(match.distance_km, 3))
            for match in matches
        ]
    )


@router.get("/hotspots", response_model=HotspotsResponse, status_code=status.HTTP_200_OK)
def get_hotspots(
    category: str | None = Query(default=None),
    min_reports: int = Query(default=5, alias="minReports", ge=2, le=100),
    radius_km: float = Query(default=1.0, alias="radiusKm", ge=0.1, le=10),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
) -> HotspotsResponse:
    category_set = _parse_enum_list([category] if category else None, IssueCategory, "category")
    if category_set and len(category_set) > 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only one category may be given.")
    try:
        hotspots = detect_hotspots(
            category=next(iter(category_set)) if category_set else None,
            date_from=date_from,
            date_to=date_to,
            min_reports=min_reports,
            radius_km=radius_km,
        )
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("detecting hotspots", exc) from exc
    return HotspotsResponse(
        hotspots=[
            HotspotModel(
                center=GeoPointModel(latitude=spot.center.latitude, longitude=spot.center.longitude),
                radius=spot.radius,
                reportCount=spot.report_count,
                category=spot.category,
                density=spot.density,
            )
            for spot in hotspots
        ]
    )


@router.post("/zones/analytics", response_model=ZoneAnalyticsResponse, status_code=status.HTTP_200_OK)
def zone_analytics(payload: ZoneAnalyticsRequest) -> ZoneAnalyticsResponse:
    if not payload.zones:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="zones array is required")

    zones = [
        Zone(
            zone_id=zone.id,
            zone_name=zone.name,
            bounds=_bounds(zone.bounds.north, zone.bounds.south, zone.bounds.east, zone.bounds.west),
        )
        for zone in payload.zones
    ]
    try:
        reports = compute_zone_analytics(zones)
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("computing zone analytics", exc) from exc
    return ZoneAnalyticsResponse(
        zones=[
            ZoneReportModel(
                zoneId=report.zone_id,
                zoneName=report.zone_name,
                totalReports=report.total_reports,
                resolvedReports=report.resolved_reports,
                avgResolutionHours=report.avg_resolution_hours,
                topCategories=[
                    CategoryCountModel(category=item.category, count=item.count) for item in report.top_categories
                ],
                priorityDistribution=PriorityDistributionModel(
                    normal=report.priority_distribution.normal,
                    urgent=report.priority_distribution.urgent,
                    critical=report.priority_distribution.critical,
                ),
            )
            for report in reports
        ]
    )


@router.post("/route/optimize", response_model=RoutePlanResponse, status_code=status.HTTP_200_OK)
def route_optimize(payload: RouteOptimizeRequest) -> RoutePlanResponse:
    try:
        plan = optimize_route(
            GeoPoint(latitude=payload.start.lat, longitude=payload.start.lng),
            payload.reportIds,
        )
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("optimizing route", exc) from exc
    return RoutePlanResponse(
        visitOrder=plan.visit_order,
        totalDistanceKm=plan.total_distance_km,
        estimatedMinutes=plan.estimated_minutes,
        stops=[
            RouteStopModel(
                reportId=stop.report_id,
                sequence=stop.sequence,
                arrivalMin=stop.arrival_min,
                distanceFromPrevKm=stop.distance_from_prev_km,
            )
            for stop in plan.stops
        ],
        skippedReportIds=plan.skipped_report_ids,
    )


@router.get("/statistics", response_model=GeoStatisticsResponse, status_code=status.HTTP_200_OK)
def geo_statistics(top: int = Query(default=10, ge=1, le=100, description="Number of top areas")) -> GeoStatisticsResponse:
    try:
        stats = compute_geo_statistics(top_n=top)
    except RepositoryError as exc:
        raise _unavailable(exc) from exc
    except Exception as exc:
        raise _failed("computing geo statistics", exc) from exc
    box = stats.bounding_box
    return GeoStatisticsResponse(
        totalReports=stats.total_reports,
        avgLatitude=stats.avg_latitude,
        avgLongitude=stats.avg_longitude,
        boundingBox=BoundsModel(north=box.north, south=box.south, east=box.east, west=box.west),
        topAreas=[AreaCountModel(area=area.area, count=area.count) for area in stats.top_areas],
    )
