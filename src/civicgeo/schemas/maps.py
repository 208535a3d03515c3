"""Map analytics request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import IssueCategory, Priority, ReportStatus


class BoundsModel(BaseModel):
    north: float = Field(..., ge=-90, le=90)
    south: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)
    west: float = Field(..., ge=-180, le=180)


class LatLngModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class GeoPointModel(BaseModel):
    latitude: float
    longitude: float


class ReportModel(BaseModel):
    id: str
    title: Optional[str] = None
    category: IssueCategory
    priority: Priority
    status: ReportStatus
    latitude: float
    longitude: float
    address: Optional[str] = None
    createdAt: datetime
    resolvedAt: Optional[datetime] = None


class ReportsResponse(BaseModel):
    reports: List[ReportModel]


class ClusterModel(BaseModel):
    latitude: float
    longitude: float
    count: int
    reportIds: List[str]
    categories: List[IssueCategory]
    statuses: List[ReportStatus]
    avgPriorityScore: float


class ClustersResponse(BaseModel):
    clusters: List[ClusterModel]


class HeatmapPointModel(BaseModel):
    latitude: float
    longitude: float
    intensity: float


class HeatmapResponse(BaseModel):
    points: List[HeatmapPointModel]


class NearbyReportModel(ReportModel):
    distanceKm: float


class NearbyResponse(BaseModel):
    reports: List[NearbyReportModel]


class HotspotModel(BaseModel):
    center: GeoPointModel
    radius: float
    reportCount: int
    category: IssueCategory
    density: int


class HotspotsResponse(BaseModel):
    hotspots: List[HotspotModel]


class ZoneInput(BaseModel):
    id: str
    name: str
    bounds: BoundsModel


class ZoneAnalyticsRequest(BaseModel):
    zones: List[ZoneInput] = Field(..., description="Zones to analyse, reported in input order.")


class CategoryCountModel(BaseModel):
    category: IssueCategory
    count: int


class PriorityDistributionModel(BaseModel):
    normal: int
    urgent: int
    critical: int


class ZoneReportModel(BaseModel):
    zoneId: str
    zoneName: str
    totalReports: int
    resolvedReports: int
    avgResolutionHours: Optional[float] = None
    topCategories: List[CategoryCountModel]
    priorityDistribution: PriorityDistributionModel


class ZoneAnalyticsResponse(BaseModel):
    zones: List[ZoneReportModel]


class RouteOptimizeRequest(BaseModel):
    start: LatLngModel
    reportIds: List[str] = Field(..., description="Reports assigned to the staff member.")


class RouteStopModel(BaseModel):
    reportId: str
    sequence: int
    arrivalMin: float
    distanceFromPrevKm: float


class RoutePlanResponse(BaseModel):
    visitOrder: List[str]
    totalDistanceKm: float
    estimatedMinutes: int
    stops: List[RouteStopModel]
    skippedReportIds: List[str]


class AreaCountModel(BaseModel):
    area: str
    count: int


class GeoStatisticsResponse(BaseModel):
    totalReports: int
    avgLatitude: float
    avgLongitude: float
    boundingBox: BoundsModel
    topAreas: List[AreaCountModel]
