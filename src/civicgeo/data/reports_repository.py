"""Read-only access to citizen reports, database-first with a CSV fallback."""

from __future__ import annotations

import csv
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import (
    BoundingBox,
    GeoPoint,
    IssueCategory,
    Priority,
    Report,
    ReportFilters,
    ReportStatus,
    as_utc,
)

REPORT_COLUMNS = "id,title,category,priority,status,latitude,longitude,address,created_at,resolved_at"
_ID_CHUNK_SIZE = 100


class RepositoryError(RuntimeError):
    """Raised when the report store cannot be reached or queried."""


def _coerce_float(value: Any) -> float:
    if value is None or value == "":
        raise ValueError("missing coordinate")
    if isinstance(value, str):
        value = value.replace(",", "")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite coordinate {value!r}")
    return number


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).strip()))


def _optional_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def parse_report_row(row: Mapping[str, Any]) -> Report:
    """Build a Report from a database or CSV row.

    Raises ValueError/KeyError for rows with unknown enum values, bad coordinates
    or a missing creation timestamp.
    """

    created_at = _coerce_datetime(row.get("created_at") or row.get("createdAt"))
    if created_at is None:
        raise ValueError("missing created_at")
    latitude = _coerce_float(row.get("latitude"))
    longitude = _coerce_float(row.get("longitude"))
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValueError(f"coordinate out of range ({latitude}, {longitude})")
    return Report(
        id=str(row["id"]).strip(),
        category=IssueCategory(str(row["category"]).strip().upper()),
        priority=Priority(str(row.get("priority") or "NORMAL").strip().upper()),
        status=ReportStatus(str(row.get("status") or "SUBMITTED").strip().upper()),
        location=GeoPoint(
            latitude=latitude,
            longitude=longitude,
        ),
        created_at=created_at,
        resolved_at=_coerce_datetime(row.get("resolved_at") or row.get("resolvedAt")),
        title=_optional_text(row.get("title")),
        address=_optional_text(row.get("address")),
    )


def _parse_rows(rows: Iterable[Mapping[str, Any]]) -> list[Report]:
    reports: list[Report] = []
    seen: set[str] = set()
    for row in rows:
        try:
            report = parse_report_row(row)
        except (KeyError, ValueError, TypeError) as e:
            # Skip invalid rows but continue processing
            logging.warning(f"Skipping invalid report row {row.get('id')!r}: {e}")
            continue
        if report.id in seen:
            logging.warning(f"Skipping duplicate report row {report.id!r}")
            continue
        seen.add(report.id)
        reports.append(report)
    return reports


def select_reports(
    reports: Iterable[Report],
    bounds: BoundingBox | None = None,
    filters: ReportFilters | None = None,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[Report]:
    """Apply bounds, filters, ordering and limit to an in-memory report sequence."""

    selected = [
        report
        for report in reports
        if (bounds is None or bounds.contains(report.location))
        and (filters is None or filters.matches(report))
    ]
    if newest_first:
        selected.sort(key=lambda report: as_utc(report.created_at), reverse=True)
    if limit is not None:
        return selected[: max(limit, 0)]
    return selected


def load_reports_from_file(source: Path) -> tuple[Report, ...]:
    """Load reports from a CSV export. The file is re-read on every call."""

    if not source.exists():
        raise FileNotFoundError(f"Report file not found: {source}")
    with source.open(mode="r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            raise ValueError(f"Report file '{source}' is missing a header row.")
        return tuple(_parse_rows(reader))


def _build_query(client: Any, bounds: BoundingBox | None, filters: ReportFilters | None, newest_first: bool) -> Any:
    query = client.table(settings.reports_table).select(REPORT_COLUMNS)
    if bounds is not None:
        query = (
            query.gte("latitude", bounds.south)
            .lte("latitude", bounds.north)
            .gte("longitude", bounds.west)
            .lte("longitude", bounds.east)
        )
    if filters is not None:
        if filters.categories:
            query = query.in_("category", sorted(item.value for item in filters.categories))
        if filters.statuses:
            query = query.in_("status", sorted(item.value for item in filters.statuses))
        if filters.priorities:
            query = query.in_("priority", sorted(item.value for item in filters.priorities))
        if filters.date_from is not None:
            query = query.gte("created_at", as_utc(filters.date_from).isoformat())
        if filters.date_to is not None:
            query = query.lte("created_at", as_utc(filters.date_to).isoformat())
        if filters.exclude_report_id is not None:
            query = query.neq("id", filters.exclude_report_id)
    if newest_first:
        return query.order("created_at", desc=True).order("id", desc=True)
    return query.order("id")


def _after_row(query: Any, last_row: Mapping[str, Any], newest_first: bool) -> Any:
    """Restrict ``query`` to rows sorting strictly after ``last_row``."""

    last_id = str(last_row["id"])
    if not newest_first:
        return query.gt("id", last_id)
    created_at = last_row.get("created_at")
    return query.or_(f'created_at.lt."{created_at}",and(created_at.eq."{created_at}",id.lt."{last_id}")')


def _query_database(
    client: Any,
    bounds: BoundingBox | None,
    filters: ReportFilters | None,
    newest_first: bool,
    limit: int | None,
) -> list[Report]:
    """Read matching rows page by page.

    Pages continue from the sort key of the previous page's last row, so rows
    inserted or deleted while paging never shift later pages.
    """

    page_size = settings.repository_page_size
    rows: list[dict] = []
    last_row: Mapping[str, Any] | None = None
    try:
        while limit is None or len(rows) < limit:
            wanted = page_size if limit is None else min(page_size, limit - len(rows))
            # PostgREST builders accumulate params, so every page gets a fresh query.
            query = _build_query(client, bounds, filters, newest_first)
            if last_row is not None:
                query = _after_row(query, last_row, newest_first)
            response = query.limit(wanted).execute()
            page = response.data or []
            rows.extend(page)
            if len(page) < wanted:
                break
            last_row = page[-1]
    except Exception as e:
        logging.error(f"Report query failed against table '{settings.reports_table}': {e}")
        raise RepositoryError("Report repository query failed") from e
    return _parse_rows(rows)


def _load_fallback() -> tuple[Report, ...]:
    if settings.report_file is None:
        raise RepositoryError(
            "Report repository not configured. Set CIVICGEO_SUPABASE_URL and CIVICGEO_SUPABASE_KEY "
            "or CIVICGEO_REPORT_FILE."
        )
    try:
        return load_reports_from_file(settings.report_file)
    except (OSError, ValueError) as e:
        logging.error(f"Failed to load reports from {settings.report_file}: {e}")
        raise RepositoryError("Report file could not be read") from e


def fetch_reports(
    bounds: BoundingBox | None = None,
    filters: ReportFilters | None = None,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[Report]:
    """Return reports matching ``bounds`` and ``filters`` from the configured store."""

    if limit is not None and limit <= 0:
        return []
    supabase = get_supabase_client()
    if supabase is not None:
        return _query_database(supabase, bounds, filters, newest_first, limit)
    return select_reports(_load_fallback(), bounds, filters, newest_first=newest_first, limit=limit)


def fetch_reports_by_ids(report_ids: Sequence[str]) -> list[Report]:
    """Resolve report ids to reports. Unknown ids are simply absent from the result."""

    wanted = list(dict.fromkeys(str(report_id) for report_id in report_ids))
    if not wanted:
        return []

    supabase = get_supabase_client()
    if supabase is None:
        id_set = set(wanted)
        return [report for report in _load_fallback() if report.id in id_set]

    rows: list[dict] = []
    try:
        for offset in range(0, len(wanted), _ID_CHUNK_SIZE):
            chunk = wanted[offset : offset + _ID_CHUNK_SIZE]
            response = (
                supabase.table(settings.reports_table)
                .select(REPORT_COLUMNS)
                .in_("id", chunk)
                .execute()
            )
            rows.extend(response.data or [])
    except Exception as e:
        logging.error(f"Report lookup by id failed: {e}")
        raise RepositoryError("Report repository query failed") from e
    return _parse_rows(rows)
