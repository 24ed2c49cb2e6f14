"""
Analytics Routes

GET /analytics/summary
GET /analytics/drives-over-time
GET /analytics/registrations-by-drive
GET /analytics/attendance-trend

All accept ?days=&drive_id=&force=; drive-scoped results are never cached.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from placement_portal.core.auth import get_current_user
from placement_portal.db.postgres import get_db_session
from placement_portal.schemas.schemas import SummaryResponse, DayCount, DayPercent, DriveRegistrations
from placement_portal.services import analytics_service
from placement_portal.utils.cache import AnalyticsCache, get_analytics_cache

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/summary", response_model=SummaryResponse)
async def summary(
    days: int = Query(30, ge=1, le=3650),
    drive_id: Optional[int] = None,
    force: bool = False,
    user: dict = Depends(get_current_user),
    cache: AnalyticsCache = Depends(get_analytics_cache)
):
    with get_db_session() as db:
        return analytics_service.summary(db, cache, days=days, drive_id=drive_id, force=force)


@router.get("/drives-over-time", response_model=List[DayCount])
async def drives_over_time(
    days: int = Query(30, ge=1, le=3650),
    drive_id: Optional[int] = None,
    force: bool = False,
    user: dict = Depends(get_current_user),
    cache: AnalyticsCache = Depends(get_analytics_cache)
):
    with get_db_session() as db:
        return analytics_service.drives_over_time(db, cache, days=days, drive_id=drive_id, force=force)


@router.get("/registrations-by-drive", response_model=List[DriveRegistrations])
async def registrations_by_drive(
    days: int = Query(30, ge=1, le=3650),
    limit: int = Query(10, ge=1, le=100),
    drive_id: Optional[int] = None,
    force: bool = False,
    user: dict = Depends(get_current_user),
    cache: AnalyticsCache = Depends(get_analytics_cache)
):
    with get_db_session() as db:
        return analytics_service.registrations_by_drive(
            db, cache, days=days, limit=limit, drive_id=drive_id, force=force
        )


@router.get("/attendance-trend", response_model=List[DayPercent])
async def attendance_trend(
    days: int = Query(30, ge=1, le=3650),
    drive_id: Optional[int] = None,
    force: bool = False,
    user: dict = Depends(get_current_user),
    cache: AnalyticsCache = Depends(get_analytics_cache)
):
    with get_db_session() as db:
        return analytics_service.attendance_trend(db, cache, days=days, drive_id=drive_id, force=force)
