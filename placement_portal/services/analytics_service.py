"""
Dashboard analytics.

Read-only aggregate queries over drives, registrations and attendance.
Results without a drive filter are memoized in the Redis analytics
cache for a short window; drive-scoped reads always hit the database.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from placement_portal.db.postgres import fetch_all, fetch_one, is_postgres
from placement_portal.utils.cache import AnalyticsCache


def _since(days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=days)


def _day(db: Session, column: str) -> str:
    """SQL expression truncating `column` to a YYYY-MM-DD string."""
    if is_postgres(db):
        return f"to_char(date_trunc('day', {column}), 'YYYY-MM-DD')"
    return f"strftime('%Y-%m-%d', {column})"


def _drive_filter(drive_id: Optional[int], params: dict) -> str:
    if drive_id is None:
        return ""
    params["drive_id"] = drive_id
    return " AND pd.drive_id = :drive_id"


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def _cached(cache: AnalyticsCache, metric: str, filters: dict, drive_id: Optional[int], force: bool, compute):
    if drive_id is not None:
        return compute()
    return cache.get_or_compute(metric, filters, compute, force=force)


def summary(db: Session, cache: AnalyticsCache, days: int = 30, drive_id: Optional[int] = None, force: bool = False) -> dict:
    """Drive counts per phase, registrations and attendance rate."""

    def compute() -> dict:
        params = {"since": _since(days)}
        drive_filter = _drive_filter(drive_id, params)

        drives = fetch_one(db, f"""
            SELECT
                COUNT(*) AS total_drives,
                COALESCE(SUM(CASE WHEN COALESCE(pd.status, 'posted') IN ('pending', 'posted') THEN 1 ELSE 0 END), 0) AS posted,
                COALESCE(SUM(CASE WHEN pd.status = 'attending' THEN 1 ELSE 0 END), 0) AS ongoing,
                COALESCE(SUM(CASE WHEN pd.attendance_published = TRUE THEN 1 ELSE 0 END), 0) AS finished
            FROM placement_drives pd
            WHERE pd.created_at >= :since{drive_filter}
        """, params)
        regs = fetch_one(db, f"""
            SELECT COUNT(*) AS registrations
            FROM drive_registrations dr
            JOIN placement_drives pd ON dr.drive_id = pd.drive_id
            WHERE pd.created_at >= :since{drive_filter}
        """, params)
        att = fetch_one(db, f"""
            SELECT
                COALESCE(SUM(CASE WHEN a.status = 'PRESENT' THEN 1 ELSE 0 END), 0) AS present,
                COUNT(a.id) AS total
            FROM attendance a
            JOIN placement_drives pd ON a.drive_id = pd.drive_id
            WHERE pd.created_at >= :since{drive_filter}
        """, params)

        return {
            "total_drives": int(drives["total_drives"] or 0),
            "posted": int(drives["posted"] or 0),
            "ongoing": int(drives["ongoing"] or 0),
            "finished": int(drives["finished"] or 0),
            "registrations": int(regs["registrations"] or 0),
            "attendance_rate_percent": _percent(int(att["present"] or 0), int(att["total"] or 0)),
        }

    return _cached(cache, "summary", {"days": days}, drive_id, force, compute)


def drives_over_time(db: Session, cache: AnalyticsCache, days: int = 30, drive_id: Optional[int] = None, force: bool = False) -> List[dict]:
    def compute() -> List[dict]:
        params = {"since": _since(days)}
        drive_filter = _drive_filter(drive_id, params)
        day = _day(db, "pd.created_at")
        rows = fetch_all(db, f"""
            SELECT {day} AS day, COUNT(*) AS count
            FROM placement_drives pd
            WHERE pd.created_at >= :since{drive_filter}
            GROUP BY {day}
            ORDER BY {day}
        """, params)
        return [{"day": r["day"], "count": int(r["count"])} for r in rows]

    return _cached(cache, "drives_over_time", {"days": days}, drive_id, force, compute)


def registrations_by_drive(
    db: Session,
    cache: AnalyticsCache,
    days: int = 30,
    limit: int = 10,
    drive_id: Optional[int] = None,
    force: bool = False
) -> List[dict]:
    """Top drives by registration count."""

    def compute() -> List[dict]:
        params = {"since": _since(days), "limit": limit}
        drive_filter = _drive_filter(drive_id, params)
        rows = fetch_all(db, f"""
            SELECT pd.drive_id, pd.company_name, pd.job_title, COUNT(dr.registration_id) AS registrations
            FROM placement_drives pd
            LEFT JOIN drive_registrations dr ON dr.drive_id = pd.drive_id
            WHERE pd.created_at >= :since{drive_filter}
            GROUP BY pd.drive_id, pd.company_name, pd.job_title
            ORDER BY registrations DESC, pd.drive_id
            LIMIT :limit
        """, params)
        return [{**r, "registrations": int(r["registrations"])} for r in rows]

    return _cached(cache, "registrations_by_drive", {"days": days, "limit": limit}, drive_id, force, compute)


def attendance_trend(db: Session, cache: AnalyticsCache, days: int = 30, drive_id: Optional[int] = None, force: bool = False) -> List[dict]:
    """Percent present per drive-creation day."""

    def compute() -> List[dict]:
        params = {"since": _since(days)}
        drive_filter = _drive_filter(drive_id, params)
        day = _day(db, "pd.created_at")
        rows = fetch_all(db, f"""
            SELECT {day} AS day,
                   COALESCE(SUM(CASE WHEN a.status = 'PRESENT' THEN 1 ELSE 0 END), 0) AS present,
                   COUNT(a.id) AS total
            FROM placement_drives pd
            LEFT JOIN attendance a ON a.drive_id = pd.drive_id
            WHERE pd.created_at >= :since{drive_filter}
            GROUP BY {day}
            ORDER BY {day}
        """, params)
        return [{"day": r["day"], "percent": _percent(int(r["present"] or 0), int(r["total"] or 0))} for r in rows]

    return _cached(cache, "attendance_trend", {"days": days}, drive_id, force, compute)
