# report_service/main.py

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi_utils.tasks import repeat_every
from firebase_admin import firestore_async
from firebase_admin_init import initialize_firebase

from . import schemas, crud, utils, notifications
from . import trend_analysis, predictive_analytics, achievements, goals, consistency
from .database import get_db, REPORT_FETCH_LIMIT
from .errors import NetworkError, NotFoundError

initialize_firebase()

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

# 분석용 조회 개수 (현재 주 + 최대 12주 기록)
ANALYTICS_FETCH_LIMIT = 13

app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Weekly Report Service API",
        version="1.0.0",
        description="API for weekly report category analytics",
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "Bearer": {
            "type": "apiKey",
            "in": "header",
            "name": "Authorization",
            "description": "Enter your Firebase ID token with the `Bearer ` prefix, e.g. `Bearer abcde12345`"
        }
    }
    openapi_schema["security"] = [{"Bearer": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.get("/docs", include_in_schema=False)
async def get_documentation():
    return get_swagger_ui_html(openapi_url="/openapi.json", title="docs")


@app.get("/openapi.json", include_in_schema=False)
async def openapi():
    return app.openapi()


@app.get("/health")
async def health():
    return {"status": "ok"}


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, NetworkError):
        logger.error(f"Network error: {str(e)}")
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, ValueError):
        logger.error(f"ValueError: {str(e)}")
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Unexpected error occurred: {str(e)}", exc_info=True)
    return HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


async def _current_and_history(db, user_uuid: str):
    """Most recent report and the older ones, newest first."""
    reports = await crud.fetch_user_reports(db, user_uuid, ANALYTICS_FETCH_LIMIT)
    if not reports:
        return None, []
    return reports[0], reports[1:]


# Reports

@router.get("/api/reports", response_model=List[schemas.WeeklyReportResponse])
async def get_reports(
    limit: int = Query(REPORT_FETCH_LIMIT, ge=1, le=52),
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        reports = await crud.fetch_user_reports(db, current_user["uid"], limit)
        return [schemas.WeeklyReportResponse.from_report(r) for r in reports]
    except Exception as e:
        raise _http_error(e)


@router.get("/api/reports/current", response_model=Optional[schemas.WeeklyReportResponse])
async def get_current_report(
    utc_offset_minutes: int = Query(0, ge=-720, le=840),
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    """Current week's report. ``utc_offset_minutes`` is the device's offset from UTC."""
    try:
        report = await crud.fetch_current_week_report(db, current_user["uid"], utc_offset_minutes=utc_offset_minutes)
        return schemas.WeeklyReportResponse.from_report(report) if report else None
    except Exception as e:
        raise _http_error(e)


@router.get("/api/reports/week/{week_start}", response_model=schemas.WeeklyReportResponse)
async def get_report_by_week(
    week_start: datetime,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        report = await crud.fetch_report_by_week(db, current_user["uid"], week_start)
        if report is None:
            raise NotFoundError(f"No report for week starting {week_start.isoformat()}")
        return schemas.WeeklyReportResponse.from_report(report)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/reports/weeks", response_model=List[datetime])
async def get_available_weeks(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    return await crud.get_available_weeks(db, current_user["uid"])


@router.get("/api/reports/count", response_model=schemas.ReportCountResponse)
async def get_report_count(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    uid = current_user["uid"]
    count = await crud.get_reports_count(db, uid)
    return schemas.ReportCountResponse(
        count=count,
        has_reports=await crud.has_any_reports(db, uid),
        earliest_report_date=await crud.get_earliest_report_date(db, uid),
    )


@router.post("/api/reports/current/notify")
async def notify_current_report(
    report_type: schemas.NotificationReportType = schemas.NotificationReportType.ai_analysis,
    utc_offset_minutes: int = Query(0, ge=-720, le=840),
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        report = await crud.fetch_current_week_report(db, current_user["uid"], utc_offset_minutes=utc_offset_minutes)
        if report is None:
            raise NotFoundError("No report for the current week")
        return await notifications.send_report_notification(db, current_user["uid"], report, report_type)
    except Exception as e:
        raise _http_error(e)


# Trend analytics

@router.get("/api/analytics/trends", response_model=schemas.CategoryTrendAnalysis)
async def get_trends(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return schemas.CategoryTrendAnalysis()
        return trend_analysis.analyze_week_over_week_trends(current, history)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/emerging", response_model=schemas.CategoryEmergenceAnalysis)
async def get_emerging(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return schemas.CategoryEmergenceAnalysis()
        return trend_analysis.detect_emerging_and_declining(current, history)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/preferences", response_model=schemas.CategoryPreferencePatterns)
async def get_preferences(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return schemas.CategoryPreferencePatterns()
        return trend_analysis.recognize_preference_patterns(current, history)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/diversity", response_model=schemas.CategoryDiversityAnalysis)
async def get_diversity(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return schemas.CategoryDiversityAnalysis()
        return trend_analysis.analyze_category_diversity(current, history)
    except Exception as e:
        raise _http_error(e)


# Predictive analytics

@router.get("/api/analytics/predictions", response_model=schemas.PreferencePredictionResult)
async def get_predictions(
    weeks_ahead: int = Query(4, ge=1, le=12),
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        reports = await crud.fetch_user_reports(db, current_user["uid"], ANALYTICS_FETCH_LIMIT)
        return predictive_analytics.predict_category_preferences(reports, weeks_ahead)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/seasonal", response_model=schemas.SeasonalForecast)
async def get_seasonal_forecast(
    target_date: Optional[datetime] = None,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        reports = await crud.fetch_user_reports(db, current_user["uid"], 52)
        return predictive_analytics.forecast_seasonal_category_trends(
            reports, target_date or datetime.now(timezone.utc)
        )
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/suggestions", response_model=schemas.ActivitySuggestions)
async def get_suggestions(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        return predictive_analytics.generate_activity_suggestions(history, current)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/optimization", response_model=schemas.OptimizationRecommendations)
async def get_optimization(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        return predictive_analytics.generate_optimization_recommendations(history, current)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/correlations", response_model=schemas.CategoryCorrelationAnalysis)
async def get_correlations(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        return predictive_analytics.analyze_category_correlations(history, current)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/analytics/consistency", response_model=schemas.ConsistencyResponse)
async def get_consistency(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, _ = await _current_and_history(db, current_user["uid"])
        stats = current.stats if current else schemas.WeeklyStats()
        score = consistency.calculate_consistency_score(stats)
        return schemas.ConsistencyResponse(
            score=score,
            grade=consistency.get_consistency_grade(score),
            feedback=consistency.get_consistency_feedback(score),
            suggestions=consistency.get_improvement_suggestions(stats),
        )
    except Exception as e:
        raise _http_error(e)


# Achievements

@router.get("/api/achievements", response_model=List[schemas.CategoryAchievement])
async def get_achievements(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return []
        return achievements.detect_achievements(current, history)
    except Exception as e:
        raise _http_error(e)


@router.get("/api/achievements/progress", response_model=List[schemas.AchievementProgress])
async def get_achievement_progress(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return []
        return achievements.get_achievement_progress(current, history)
    except Exception as e:
        raise _http_error(e)


# Goals

@router.get("/api/goals", response_model=schemas.GoalsResponse)
async def get_goals(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            return schemas.GoalsResponse(
                goals=[],
                diversity_target=goals.default_diversity_target(),
                consistency_goals=[],
                exploration_challenges=[],
            )
        return schemas.GoalsResponse(
            goals=goals.generate_dynamic_goals(current, history),
            diversity_target=goals.create_diversity_target(current, history),
            consistency_goals=goals.create_consistency_goals(current, history),
            exploration_challenges=goals.create_exploration_challenges(current, history),
        )
    except Exception as e:
        raise _http_error(e)


@router.post("/api/goals/summary", response_model=schemas.GoalSummary)
async def summarize_goals(
    goal_list: List[schemas.CategoryGoal],
    current_user: dict = Depends(utils.get_current_user),
):
    return goals.get_goal_summary(goal_list)


@router.post("/api/goals/progress", response_model=schemas.CategoryGoal)
async def update_goal_progress(
    goal: schemas.CategoryGoal,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        current, history = await _current_and_history(db, current_user["uid"])
        if current is None:
            raise NotFoundError("No reports available to measure goal progress")
        return goals.update_goal_progress(goal, current, history)
    except Exception as e:
        raise _http_error(e)


# Notifications

@router.get("/api/notifications", response_model=List[schemas.WebNotification])
async def get_notifications(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        return await notifications.get_active_notifications(db, current_user["uid"])
    except Exception as e:
        raise _http_error(e)


@router.post("/api/notifications/dismiss-all")
async def dismiss_all_notifications(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        count = await notifications.dismiss_all_notifications(db, current_user["uid"])
        return {"message": "Notifications dismissed successfully", "dismissed": count}
    except Exception as e:
        raise _http_error(e)


@router.post("/api/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        await notifications.mark_as_read(db, current_user["uid"], notification_id)
        return {"message": "Notification marked as read"}
    except Exception as e:
        raise _http_error(e)


@router.post("/api/notifications/{notification_id}/dismiss")
async def dismiss_notification(
    notification_id: str,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        await notifications.dismiss_notification(db, current_user["uid"], notification_id)
        return {"message": "Notification dismissed"}
    except Exception as e:
        raise _http_error(e)


@router.get("/api/notifications/settings", response_model=Dict[str, bool])
async def get_notification_settings(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        return await notifications.get_notification_settings(db, current_user["uid"])
    except Exception as e:
        raise _http_error(e)


@router.put("/api/notifications/settings", response_model=Dict[str, bool])
async def update_notification_settings(
    settings: schemas.NotificationSettingsUpdate,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        return await notifications.update_notification_settings(db, current_user["uid"], settings)
    except Exception as e:
        raise _http_error(e)


# FCM tokens

@router.post("/api/fcm-token")
async def add_fcm_token(token: str, current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        updated_tokens = await notifications.add_fcm_token(db, current_user["uid"], token)
        return {"message": "FCM token added successfully", "tokens": updated_tokens}
    except Exception as e:
        raise _http_error(e)


@router.delete("/api/fcm-token")
async def remove_fcm_token(token: str, current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        updated_tokens = await notifications.remove_fcm_token(db, current_user["uid"], token)
        return {"message": "FCM token removed successfully", "tokens": updated_tokens}
    except Exception as e:
        raise _http_error(e)


@router.put("/api/fcm-token")
async def refresh_fcm_token(
    old_token: str,
    new_token: str,
    current_user: dict = Depends(utils.get_current_user),
    db=Depends(get_db),
):
    try:
        updated_tokens = await notifications.refresh_fcm_token(db, current_user["uid"], old_token, new_token)
        return {"message": "FCM token refreshed successfully", "tokens": updated_tokens}
    except Exception as e:
        raise _http_error(e)


@router.post("/api/update-last-active")
async def update_last_active(current_user: dict = Depends(utils.get_current_user), db=Depends(get_db)):
    try:
        await notifications.update_user_last_active(db, current_user["uid"])
        return {"message": "Last active timestamp updated successfully"}
    except Exception as e:
        raise _http_error(e)


# 비활성 토큰 제거 및 만료 캐시 정리 (매일 실행)
@app.on_event("startup")
@repeat_every(seconds=60*60*24)
async def daily_maintenance_task():
    try:
        await notifications.remove_inactive_tokens(firestore_async.client())
    except Exception as e:
        logger.error(f"Inactive token cleanup failed: {str(e)}", exc_info=True)
    crud.clear_expired_cache()


app.include_router(router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
