from datetime import datetime, timedelta, timezone

import pytest

from civicgeo.config import settings
from civicgeo.data import reports_repository
from civicgeo.data.reports_repository import select_reports
from civicgeo.models.domain import (
    BoundingBox,
    GeoPoint,
    IssueCategory,
    Priority,
    Report,
    ReportFilters,
    ReportStatus,
)
from civicgeo.services.geospatial import distance_km
from civicgeo.services.maps import bounds as bounds_service
from civicgeo.services.maps import heatmap as heatmap_service
from civicgeo.services.maps import hotspots as hotspots_service
from civicgeo.services.maps import nearby as nearby_service
from civicgeo.services.maps import statistics as statistics_service
from civicgeo.services.maps import zones as zones_service
from civicgeo.services.maps.models import Zone

BASE_TIME = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
NYC_BOX = BoundingBox(north=41, south=40, east=-73, west=-75)


def _report(
    rid: str,
    lat: float,
    lon: float,
    priority: Priority = Priority.NORMAL,
    category: IssueCategory = IssueCategory.POTHOLE,
    status: ReportStatus = ReportStatus.SUBMITTED,
    created_offset_h: float = 0,
    resolved_after_h: float | None = None,
) -> Report:
    created = BASE_TIME + timedelta(hours=created_offset_h)
    return Report(
        id=rid,
        category=category,
        priority=priority,
        status=status,
        location=GeoPoint(lat, lon),
        created_at=created,
        resolved_at=created + timedelta(hours=resolved_after_h) if resolved_after_h is not None else None,
    )


def _use_reports(monkeypatch: pytest.MonkeyPatch, module, reports: list[Report]) -> list:
    calls: list = []

    def fake_fetch(bounds=None, filters=None, *, newest_first=False, limit=None):
        calls.append((bounds, filters, newest_first, limit))
        return select_reports(reports, bounds, filters, newest_first=newest_first, limit=limit)

    monkeypatch.setattr(module, "fetch_reports", fake_fetch)
    return calls


def _fail_fetch(*args, **kwargs):
    raise AssertionError("repository should not be queried")


# -- bounding box queries -------------------------------------------------------


def test_clustered_and_unclustered_results_partition_same_reports(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report(f"r{i}", 40.0 + (i * 0.037) % 1, -75.0 + (i * 0.061) % 2, created_offset_h=i)
        for i in range(60)
    ]
    reports.append(_report("far", 52.0, 13.0))
    _use_reports(monkeypatch, bounds_service, reports)
    filters = ReportFilters(priorities=frozenset({Priority.NORMAL}))

    plain = bounds_service.get_reports_in_bounds(NYC_BOX, filters, clustered=False)
    grouped = bounds_service.get_reports_in_bounds(NYC_BOX, filters, clustered=True, cell_size_deg=0.1)

    plain_ids = [report.id for report in plain.reports]
    member_ids = [rid for cluster in grouped.clusters for rid in cluster.member_ids]
    assert len(member_ids) == len(set(member_ids))
    assert set(member_ids) == set(plain_ids)
    assert "far" not in plain_ids
    assert sum(cluster.count for cluster in grouped.clusters) == len(plain_ids)


def test_clustering_groups_reports_by_snapped_cell(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report("a", 40.5, -74.0, Priority.NORMAL, status=ReportStatus.SUBMITTED),
        _report("b", 40.5, -74.0, Priority.URGENT, category=IssueCategory.GARBAGE, status=ReportStatus.RESOLVED),
        # cells snap to the nearest 0.5 multiple, so 40.6,-74.2 would join 40.5,-74.0
        _report("c", 40.9, -74.4, Priority.CRITICAL),
    ]
    _use_reports(monkeypatch, bounds_service, reports)

    result = bounds_service.get_reports_in_bounds(NYC_BOX, clustered=True, cell_size_deg=0.5)

    assert result.clustered is True
    assert [cluster.count for cluster in result.clusters] == [2, 1]
    pair, single = result.clusters
    assert pair.location == GeoPoint(40.5, -74.0)
    assert pair.member_ids == ["a", "b"]
    assert pair.categories == [IssueCategory.GARBAGE, IssueCategory.POTHOLE]
    assert pair.statuses == [ReportStatus.RESOLVED, ReportStatus.SUBMITTED]
    assert pair.avg_priority_score == pytest.approx(1.5)
    assert single.location == GeoPoint(41.0, -74.5)
    assert single.avg_priority_score == pytest.approx(3.0)


def test_unclustered_results_are_newest_first_and_capped(monkeypatch: pytest.MonkeyPatch):
    reports = [_report(f"r{i}", 40.5, -74.0, created_offset_h=i) for i in range(5)]
    calls = _use_reports(monkeypatch, bounds_service, reports)
    monkeypatch.setattr(settings, "max_bounds_results", 3)

    result = bounds_service.get_reports_in_bounds(NYC_BOX)

    assert [report.id for report in result.reports] == ["r4", "r3", "r2"]
    assert calls[0][2:] == (True, 3)


def test_degenerate_box_returns_empty_without_querying(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(bounds_service, "fetch_reports", _fail_fetch)

    inverted_lat = BoundingBox(north=40, south=41, east=-73, west=-75)
    inverted_lon = BoundingBox(north=41, south=40, east=-75, west=-73)

    assert bounds_service.get_reports_in_bounds(inverted_lat).reports == []
    assert bounds_service.get_reports_in_bounds(inverted_lon, clustered=True).clusters == []


# -- heatmap --------------------------------------------------------------------


def test_heatmap_intensity_is_count_times_mean_priority_weight(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report("a", 40.5001, -74.0001, Priority.NORMAL),
        _report("b", 40.5002, -74.0002, Priority.CRITICAL),
        _report("c", 40.7, -74.3, Priority.URGENT),
        _report("d", 40.7, -74.3, Priority.URGENT, category=IssueCategory.SEWAGE),
    ]
    _use_reports(monkeypatch, heatmap_service, reports)

    points = heatmap_service.build_heatmap(NYC_BOX, grid_size_deg=0.005)

    intensities = {(round(p.location.latitude, 3), round(p.location.longitude, 3)): p.intensity for p in points}
    assert intensities == {(40.5, -74.0): pytest.approx(4.0), (40.7, -74.3): pytest.approx(4.0)}

    potholes = heatmap_service.build_heatmap(NYC_BOX, categories=frozenset({IssueCategory.POTHOLE}))
    assert sorted(p.intensity for p in potholes) == [pytest.approx(2.0), pytest.approx(4.0)]


def test_heatmap_is_not_normalised(monkeypatch: pytest.MonkeyPatch):
    reports = [_report(f"r{i}", 40.5, -74.0, Priority.CRITICAL) for i in range(10)]
    _use_reports(monkeypatch, heatmap_service, reports)

    (point,) = heatmap_service.build_heatmap(NYC_BOX)

    assert point.intensity == pytest.approx(30.0)


def test_heatmap_degenerate_box(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(heatmap_service, "fetch_reports", _fail_fetch)
    assert heatmap_service.build_heatmap(BoundingBox(north=0, south=1, east=1, west=0)) == []


# -- nearby ---------------------------------------------------------------------


def test_nearby_returns_reports_within_radius_sorted_by_distance(monkeypatch: pytest.MonkeyPatch):
    center = GeoPoint(40.7128, -74.0060)
    reports = [
        _report("far", 40.75, -74.0060),
        _report("near", 40.7138, -74.0060),
        _report("mid", 40.7228, -74.0060),
        _report("outside", 40.9, -74.0060),
        _report("self", 40.7128, -74.0060),
    ]
    _use_reports(monkeypatch, nearby_service, reports)

    results = nearby_service.find_nearby_reports(center, 5.0, exclude_report_id="self")

    assert [match.report.id for match in results] == ["near", "mid", "far"]
    for match in results:
        assert match.distance_km == pytest.approx(distance_km(center, match.report.location))
        assert match.distance_km <= 5.0


def test_nearby_ties_keep_repository_order(monkeypatch: pytest.MonkeyPatch):
    center = GeoPoint(10.0, 10.0)
    reports = [_report(rid, 10.01, 10.0) for rid in ("z", "a", "m")]
    _use_reports(monkeypatch, nearby_service, reports)

    results = nearby_service.find_nearby_reports(center, 2.0)

    assert [match.report.id for match in results] == ["z", "a", "m"]


def test_nearby_limit_and_category_filter(monkeypatch: pytest.MonkeyPatch):
    center = GeoPoint(10.0, 10.0)
    reports = [
        _report(f"p{i}", 10.0 + (i + 1) * 0.001, 10.0, category=IssueCategory.STREETLIGHT) for i in range(300)
    ] + [_report("pothole", 10.0, 10.0)]
    _use_reports(monkeypatch, nearby_service, reports)

    lights = nearby_service.find_nearby_reports(
        center, 50.0, categories=frozenset({IssueCategory.STREETLIGHT}), limit=1000
    )
    assert len(lights) == settings.max_nearby_results
    assert all(match.report.category is IssueCategory.STREETLIGHT for match in lights)

    default = nearby_service.find_nearby_reports(center, 50.0)
    assert len(default) == settings.default_nearby_limit
    assert default[0].report.id == "pothole"


def test_nearby_search_box_encloses_circle():
    center = GeoPoint(60.0, 25.0)
    box = nearby_service._search_box(center, 10.0)

    for bearing_point in (GeoPoint(60.0899, 25.0), GeoPoint(60.0, 25.179), GeoPoint(60.0, 24.821)):
        assert distance_km(center, bearing_point) <= 10.0
        assert box.contains(bearing_point)
    assert nearby_service._search_box(GeoPoint(89.99, 0.0), 5.0) is None
    assert nearby_service._search_box(GeoPoint(0.0, 179.99), 5.0) is None


# -- hotspots -------------------------------------------------------------------


def test_hotspot_threshold_is_inclusive(monkeypatch: pytest.MonkeyPatch):
    below = [_report(f"b{i}", 40.501, -74.001) for i in range(4)]
    exact = [_report(f"e{i}", 40.701, -74.201) for i in range(5)]
    _use_reports(monkeypatch, hotspots_service, below + exact)

    hotspots = hotspots_service.detect_hotspots(min_reports=5)

    assert len(hotspots) == 1
    assert hotspots[0].report_count == 5
    assert hotspots[0].density == 5
    assert hotspots[0].center.latitude == pytest.approx(40.701)


def test_hotspots_ignore_stored_rows_with_unusable_coordinates(tmp_path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "reports.csv"
    rows = [f"p{i},POTHOLE,NORMAL,SUBMITTED,40.701,-74.201,2024-05-01T08:00:00Z" for i in range(5)]
    rows += ["nan,POTHOLE,NORMAL,SUBMITTED,NaN,-74.201,2024-05-01T08:00:00Z"]
    rows += ["inf,POTHOLE,NORMAL,SUBMITTED,40.701,inf,2024-05-01T08:00:00Z"]
    path.write_text("id,category,priority,status,latitude,longitude,created_at\n" + "\n".join(rows) + "\n")
    monkeypatch.setattr(reports_repository, "get_supabase_client", lambda: None)
    monkeypatch.setattr(settings, "report_file", path)

    hotspots = hotspots_service.detect_hotspots(min_reports=5)

    assert [spot.report_count for spot in hotspots] == [5]


def test_hotspots_are_grouped_per_category(monkeypatch: pytest.MonkeyPatch):
    reports = [_report(f"p{i}", 40.5, -74.0) for i in range(3)] + [
        _report(f"n{i}", 40.5, -74.0, category=IssueCategory.NOISE_POLLUTION) for i in range(3)
    ]
    _use_reports(monkeypatch, hotspots_service, reports)

    assert hotspots_service.detect_hotspots(min_reports=5) == []
    pairs = hotspots_service.detect_hotspots(min_reports=3)
    assert sorted(spot.category for spot in pairs) == [IssueCategory.NOISE_POLLUTION, IssueCategory.POTHOLE]


def test_hotspot_center_is_mean_of_members_and_radius_is_echoed(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report("a", 40.501, -74.002),
        _report("b", 40.503, -74.004),
        _report("c", 40.502, -74.003),
        _report("x1", 40.8, -74.5),
        _report("x2", 40.8, -74.5),
        _report("x3", 40.8, -74.5),
        _report("x4", 40.8, -74.5),
    ]
    _use_reports(monkeypatch, hotspots_service, reports)

    hotspots = hotspots_service.detect_hotspots(min_reports=3, radius_km=2.5)

    assert [spot.report_count for spot in hotspots] == [4, 3]
    smaller = hotspots[1]
    assert smaller.center.latitude == pytest.approx(40.502)
    assert smaller.center.longitude == pytest.approx(-74.003)
    assert all(spot.radius == 2.5 for spot in hotspots)


def test_hotspot_category_and_date_filters_reach_repository(monkeypatch: pytest.MonkeyPatch):
    calls = _use_reports(monkeypatch, hotspots_service, [])
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)

    hotspots_service.detect_hotspots(category=IssueCategory.SEWAGE, date_from=since)

    bounds, filters, _, _ = calls[0]
    assert bounds is None
    assert filters.categories == frozenset({IssueCategory.SEWAGE})
    assert filters.date_from == since


# -- zones ----------------------------------------------------------------------


def test_zone_analytics_for_empty_zone_is_zero_filled(monkeypatch: pytest.MonkeyPatch):
    _use_reports(monkeypatch, zones_service, [])

    (report,) = zones_service.compute_zone_analytics([Zone("z1", "Empty", NYC_BOX)])

    assert report.total_reports == 0
    assert report.resolved_reports == 0
    assert report.avg_resolution_hours is None
    assert report.top_categories == []
    assert (report.priority_distribution.normal, report.priority_distribution.urgent,
            report.priority_distribution.critical) == (0, 0, 0)


def test_zone_analytics_metrics(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report("a", 40.5, -74.0, Priority.CRITICAL, status=ReportStatus.RESOLVED, resolved_after_h=10),
        _report("b", 40.5, -74.0, Priority.URGENT, status=ReportStatus.CLOSED, resolved_after_h=20),
        _report("c", 40.5, -74.0, category=IssueCategory.GARBAGE),
        _report("d", 40.5, -74.0, category=IssueCategory.GARBAGE, status=ReportStatus.IN_PROGRESS),
        _report("e", 40.5, -74.0, category=IssueCategory.GARBAGE),
    ] + [
        _report(f"cat{i}", 40.6, -74.1, category=category)
        for i, category in enumerate(
            [IssueCategory.SEWAGE, IssueCategory.STREETLIGHT, IssueCategory.WATER_LEAK, IssueCategory.OTHER]
        )
    ]
    _use_reports(monkeypatch, zones_service, reports)
    zones = [
        Zone("downtown", "Downtown", BoundingBox(north=40.55, south=40.45, east=-73.95, west=-74.05)),
        Zone("all", "Everything", NYC_BOX),
        Zone("bad", "Inverted", BoundingBox(north=1, south=2, east=1, west=0)),
    ]

    downtown, everything, inverted = zones_service.compute_zone_analytics(zones)

    assert downtown.zone_id == "downtown" and downtown.zone_name == "Downtown"
    assert downtown.total_reports == 5
    assert downtown.resolved_reports == 2
    assert downtown.avg_resolution_hours == pytest.approx(15.0)
    assert [(item.category, item.count) for item in downtown.top_categories] == [
        (IssueCategory.GARBAGE, 3),
        (IssueCategory.POTHOLE, 2),
    ]
    assert (downtown.priority_distribution.normal, downtown.priority_distribution.urgent,
            downtown.priority_distribution.critical) == (3, 1, 1)

    assert everything.total_reports == 9
    assert len(everything.top_categories) == 5
    assert everything.top_categories[0].category is IssueCategory.GARBAGE

    assert inverted.zone_id == "bad"
    assert inverted.total_reports == 0
    assert inverted.avg_resolution_hours is None


# -- statistics -----------------------------------------------------------------


def test_geo_statistics_summary(monkeypatch: pytest.MonkeyPatch):
    reports = [
        _report("a", 40.501, -74.001),
        _report("b", 40.502, -74.002),
        _report("c", 41.0, -73.0),
    ]
    _use_reports(monkeypatch, statistics_service, reports)

    stats = statistics_service.compute_geo_statistics()

    assert stats.total_reports == 3
    assert stats.avg_latitude == pytest.approx((40.501 + 40.502 + 41.0) / 3)
    assert stats.bounding_box == BoundingBox(north=41.0, south=40.501, east=-73.0, west=-74.002)
    assert stats.top_areas[0].area == "40.50,-74.00"
    assert stats.top_areas[0].count == 2


def test_geo_statistics_empty_dataset(monkeypatch: pytest.MonkeyPatch):
    _use_reports(monkeypatch, statistics_service, [])

    stats = statistics_service.compute_geo_statistics()

    assert stats.total_reports == 0
    assert stats.top_areas == []
    assert stats.bounding_box == BoundingBox(0.0, 0.0, 0.0, 0.0)
