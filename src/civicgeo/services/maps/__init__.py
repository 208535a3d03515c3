"""Map analytics services."""

from .bounds import cluster_reports, get_reports_in_bounds
from .heatmap import build_heatmap
from .hotspots import detect_hotspots
from .nearby import find_nearby_reports
from .statistics import compute_geo_statistics
from .zones import compute_zone_analytics

__all__ = [
    "get_reports_in_bounds",
    "cluster_reports",
    "build_heatmap",
    "find_nearby_reports",
    "detect_hotspots",
    "compute_zone_analytics",
    "compute_geo_statistics",
]
