"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check which report store is active and whether it answers."""
    from ...config import settings
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        fallback = settings.report_file
        return {
            "configured": False,
            "fallback_file": str(fallback) if fallback else None,
            "fallback_available": bool(fallback and fallback.exists()),
            "message": "Supabase not configured. Set CIVICGEO_SUPABASE_URL and CIVICGEO_SUPABASE_KEY environment variables.",
        }

    try:
        response = supabase.table(settings.reports_table).select("id", count="exact").limit(1).execute()
        return {
            "configured": True,
            "connected": True,
            "reports_count": response.count,
            "message": f"Database connected. Found {response.count} reports in '{settings.reports_table}'.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
