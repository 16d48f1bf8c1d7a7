# report_service/crud.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from cachetools import TTLCache, LRUCache
from google.cloud.firestore import Query
from google.cloud.firestore_v1.base_query import FieldFilter

from . import schemas
from .database import REPORT_CACHE_TTL_MINUTES, REPORT_FETCH_LIMIT, WEEKLY_REPORTS_COLLECTION
from .errors import NetworkError, is_network_error

logger = logging.getLogger(__name__)

# 리포트 조회 결과를 캐시하기 위한 TTLCache 설정
# 키는 "{uuid}_{주 시작 밀리초}"
report_cache = TTLCache(maxsize=1000, ttl=timedelta(minutes=REPORT_CACHE_TTL_MINUTES).total_seconds())

# 네트워크 오류 시 반환할 마지막 조회 결과 (사용자별)
offline_reports = LRUCache(maxsize=1000)
offline_current_reports = LRUCache(maxsize=1000)


def get_week_start(date: datetime) -> datetime:
    """Sunday 00:00 of the week containing ``date``."""
    days_from_sunday = (date.weekday() + 1) % 7
    start = date - timedelta(days=days_from_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def get_week_end(week_start: datetime) -> datetime:
    return week_start + timedelta(days=6, hours=23, minutes=59, seconds=59)


def _as_utc(date: datetime) -> datetime:
    if date.tzinfo is None:
        return date.replace(tzinfo=timezone.utc)
    return date


def cache_key(user_uuid: str, week_start: datetime) -> str:
    return f"{user_uuid}_{int(_as_utc(week_start).timestamp() * 1000)}"


def _update_cache(report: schemas.WeeklyReport, key: Optional[str] = None):
    report_cache[key or cache_key(report.user_uuid, report.week_start_date)] = report


def _stats_from_dict(data: Dict[str, Any]) -> schemas.WeeklyStats:
    return schemas.WeeklyStats(
        total_certifications=data.get("totalCertifications", 0),
        exercise_days=data.get("exerciseDays", 0),
        diet_days=data.get("dietDays", 0),
        exercise_types=data.get("exerciseTypes") or {},
        exercise_categories=data.get("exerciseCategories") or {},
        diet_categories=data.get("dietCategories") or {},
        consistency_score=float(data.get("consistencyScore", 0.0)),
    )


def _analysis_from_dict(data: Dict[str, Any]) -> schemas.AIAnalysis:
    return schemas.AIAnalysis(
        exercise_insights=data.get("exerciseInsights", ""),
        diet_insights=data.get("dietInsights", ""),
        overall_assessment=data.get("overallAssessment", ""),
        strength_areas=data.get("strengthAreas") or [],
        improvement_areas=data.get("improvementAreas") or [],
    )


def report_from_firestore(doc) -> schemas.WeeklyReport:
    data = doc.to_dict() or {}
    now = datetime.now(timezone.utc)
    return schemas.WeeklyReport(
        id=doc.id,
        user_uuid=data.get("userUuid", ""),
        week_start_date=data.get("weekStartDate") or now,
        week_end_date=data.get("weekEndDate") or now,
        generated_at=data.get("generatedAt") or now,
        stats=_stats_from_dict(data.get("stats") or {}),
        analysis=_analysis_from_dict(data.get("analysis") or {}),
        recommendations=data.get("recommendations") or [],
        status=schemas.ReportStatus.parse(data.get("status")),
    )


def _user_reports_query(db, user_uuid: str):
    return db.collection(WEEKLY_REPORTS_COLLECTION).where(filter=FieldFilter("userUuid", "==", user_uuid))


def _week_query(db, user_uuid: str, week_start: datetime):
    return (
        _user_reports_query(db, user_uuid)
        .where(filter=FieldFilter("weekStartDate", "==", week_start))
        .where(filter=FieldFilter("weekEndDate", "==", get_week_end(week_start)))
        .limit(1)
    )


async def fetch_user_reports(db, user_uuid: str, limit: int = REPORT_FETCH_LIMIT) -> List[schemas.WeeklyReport]:
    """Newest-first reports for a user. Falls back to the last successful fetch on network errors."""
    try:
        query = (
            _user_reports_query(db, user_uuid)
            .order_by("weekStartDate", direction=Query.DESCENDING)
            .limit(limit)
        )
        docs = await query.get()
        reports = [report_from_firestore(doc) for doc in docs]

        for report in reports:
            _update_cache(report)
        if reports:
            offline_reports[user_uuid] = reports

        logger.info(f"Fetched {len(reports)} reports for user {user_uuid}")
        return reports
    except Exception as e:
        logger.error(f"Error fetching reports for user {user_uuid}: {str(e)}")
        if is_network_error(e):
            cached = offline_reports.get(user_uuid)
            if cached is not None:
                logger.warning(f"Returning cached reports for user {user_uuid} due to network error")
                return cached[:limit]
            raise NetworkError(f"Failed to fetch reports: {str(e)}") from e
        raise


async def fetch_current_week_report(db, user_uuid: str, now: Optional[datetime] = None,
                                    utc_offset_minutes: int = 0) -> Optional[schemas.WeeklyReport]:
    """Report for the week containing ``now``.

    Reports are stored at the device-local Sunday midnight, so the week is
    computed in the caller's UTC offset (UTC by default).
    """
    local_now = _as_utc(now or datetime.now(timezone.utc)).astimezone(timezone(timedelta(minutes=utc_offset_minutes)))
    week_start = get_week_start(local_now)
    key = cache_key(user_uuid, week_start)
    if key in report_cache:
        logger.debug(f"Returning cached current week report for user {user_uuid}")
        return report_cache[key]

    try:
        docs = await _week_query(db, user_uuid, week_start).get()
        report = None
        if docs:
            report = report_from_firestore(docs[0])
            _update_cache(report, key)
            logger.info(f"Current week report found: {report.id}")
        else:
            logger.info(f"No current week report for user {user_uuid}")

        offline_current_reports[user_uuid] = report
        return report
    except Exception as e:
        logger.error(f"Error fetching current week report for user {user_uuid}: {str(e)}")
        if is_network_error(e):
            cached = offline_current_reports.get(user_uuid)
            if cached is not None:
                logger.warning(f"Returning cached current week report for user {user_uuid} due to network error")
                _update_cache(cached, key)
                return cached
            raise NetworkError(f"Failed to fetch current week report: {str(e)}") from e
        raise


async def fetch_report_by_week(db, user_uuid: str, week_start: datetime) -> Optional[schemas.WeeklyReport]:
    key = cache_key(user_uuid, week_start)
    if key in report_cache:
        return report_cache[key]

    try:
        docs = await _week_query(db, user_uuid, week_start).get()
        if not docs:
            logger.info(f"No report found for week {week_start.isoformat()}")
            return None

        report = report_from_firestore(docs[0])
        _update_cache(report, key)
        return report
    except Exception as e:
        logger.error(f"Error fetching report by week for user {user_uuid}: {str(e)}")
        if is_network_error(e):
            for cached in offline_reports.get(user_uuid) or []:
                if _as_utc(cached.week_start_date) == _as_utc(week_start):
                    logger.warning(f"Returning cached report for week {week_start.isoformat()} due to network error")
                    _update_cache(cached, key)
                    return cached
            raise NetworkError(f"Failed to fetch report by week: {str(e)}") from e
        raise


async def has_any_reports(db, user_uuid: str) -> bool:
    try:
        docs = await _user_reports_query(db, user_uuid).limit(1).get()
        return len(docs) > 0
    except Exception as e:
        logger.error(f"Error checking reports for user {user_uuid}: {str(e)}")
        return bool(offline_reports.get(user_uuid))


async def get_reports_count(db, user_uuid: str) -> int:
    try:
        docs = await _user_reports_query(db, user_uuid).get()
        return len(docs)
    except Exception as e:
        logger.error(f"Error counting reports for user {user_uuid}: {str(e)}")
        return len(offline_reports.get(user_uuid) or [])


async def get_available_weeks(db, user_uuid: str) -> List[datetime]:
    try:
        docs = await (
            _user_reports_query(db, user_uuid)
            .order_by("weekStartDate", direction=Query.DESCENDING)
            .get()
        )
        return [doc.to_dict()["weekStartDate"] for doc in docs]
    except Exception as e:
        logger.error(f"Error getting available weeks for user {user_uuid}: {str(e)}")
        if is_network_error(e):
            cached = offline_reports.get(user_uuid)
            if cached:
                return sorted((r.week_start_date for r in cached), reverse=True)
        return []


async def get_earliest_report_date(db, user_uuid: str) -> Optional[datetime]:
    try:
        docs = await (
            _user_reports_query(db, user_uuid)
            .order_by("weekStartDate", direction=Query.ASCENDING)
            .limit(1)
            .get()
        )
        if not docs:
            return None
        return docs[0].to_dict()["weekStartDate"]
    except Exception as e:
        logger.error(f"Error getting earliest report date for user {user_uuid}: {str(e)}")
        if is_network_error(e):
            cached = offline_reports.get(user_uuid)
            if cached:
                return min(r.week_start_date for r in cached)
        return None


def clear_cache():
    report_cache.clear()
    logger.info("Report cache cleared")


def clear_expired_cache():
    expired = report_cache.expire() or []
    if expired:
        logger.info(f"Cleared {len(expired)} expired cache entries")
