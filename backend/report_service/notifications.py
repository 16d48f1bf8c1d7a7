# report_service/notifications.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from firebase_admin import messaging
from google.cloud.firestore import ArrayRemove, ArrayUnion, Query
from google.cloud.firestore_v1.base_query import FieldFilter

from . import schemas
from .database import USERS_COLLECTION, WEB_NOTIFICATIONS_COLLECTION, SYSTEM_STATUS_COLLECTION
from .errors import NotFoundError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_BASE = 1  # seconds

# Firestore 배치 하나당 최대 쓰기 수
BATCH_WRITE_LIMIT = 500

# systemStatus 문서의 status 값 중 푸시 전송을 막는 값
NON_OPERATIONAL_STATUSES = ("unavailable", "error")

SETTINGS_FIELDS = {
    "weekly_reports": ("notificationSettings", "weeklyReports"),
    "push_notifications_enabled": ("notificationSettings", "pushNotificationsEnabled"),
    "web_notifications_enabled": ("webNotificationSettings", "inAppNotifications"),
}


async def commit_in_batches(db, updates: List[Tuple[Any, Dict[str, Any]]]) -> int:
    """Apply ``(doc_ref, data)`` updates in batches of at most BATCH_WRITE_LIMIT writes.

    Returns the number of committed batches.
    """
    commits = 0
    for start in range(0, len(updates), BATCH_WRITE_LIMIT):
        batch = db.batch()
        for doc_ref, data in updates[start:start + BATCH_WRITE_LIMIT]:
            batch.update(doc_ref, data)
        await batch.commit()
        commits += 1
    return commits


# Web notifications

def notification_from_firestore(doc) -> schemas.WebNotification:
    data = doc.to_dict() or {}
    return schemas.WebNotification(
        id=doc.id,
        user_uuid=data.get("userUuid", ""),
        type=data.get("type", ""),
        title=data.get("title", ""),
        message=data.get("message", ""),
        created_at=data.get("createdAt") or datetime.now(timezone.utc),
        read=data.get("read", False),
        dismissed=data.get("dismissed", False),
        report_id=data.get("reportId"),
        metadata=data.get("metadata"),
    )


async def create_web_notification(db, user_uuid: str, notification_type: str, title: str, message: str,
                                  report_id: Optional[str] = None,
                                  metadata: Optional[Dict[str, Any]] = None) -> schemas.WebNotification:
    try:
        created_at = datetime.now(timezone.utc)
        doc_ref = db.collection(WEB_NOTIFICATIONS_COLLECTION).document()
        await doc_ref.set({
            "userUuid": user_uuid,
            "type": notification_type,
            "title": title,
            "message": message,
            "createdAt": created_at,
            "read": False,
            "dismissed": False,
            "reportId": report_id,
            "metadata": metadata,
        })
        logger.info(f"Web notification {doc_ref.id} created for user {user_uuid}")
        return schemas.WebNotification(
            id=doc_ref.id,
            user_uuid=user_uuid,
            type=notification_type,
            title=title,
            message=message,
            created_at=created_at,
            report_id=report_id,
            metadata=metadata,
        )
    except Exception as e:
        logger.error(f"Error creating web notification: {str(e)}")
        raise


async def get_active_notifications(db, user_uuid: str) -> List[schemas.WebNotification]:
    try:
        query = (
            db.collection(WEB_NOTIFICATIONS_COLLECTION)
            .where(filter=FieldFilter("userUuid", "==", user_uuid))
            .where(filter=FieldFilter("dismissed", "==", False))
            .order_by("createdAt", direction=Query.DESCENDING)
        )
        docs = await query.get()
        return [notification_from_firestore(doc) for doc in docs]
    except Exception as e:
        logger.error(f"Error fetching notifications for user {user_uuid}: {str(e)}")
        raise


async def _owned_notification_ref(db, user_uuid: str, notification_id: str):
    doc_ref = db.collection(WEB_NOTIFICATIONS_COLLECTION).document(notification_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists or (snapshot.to_dict() or {}).get("userUuid") != user_uuid:
        raise NotFoundError(f"Notification {notification_id} not found")
    return doc_ref


async def mark_as_read(db, user_uuid: str, notification_id: str):
    try:
        doc_ref = await _owned_notification_ref(db, user_uuid, notification_id)
        await doc_ref.update({"read": True})
        logger.info(f"Notification {notification_id} marked as read")
    except Exception as e:
        logger.error(f"Error marking notification as read: {str(e)}")
        raise


async def dismiss_notification(db, user_uuid: str, notification_id: str):
    try:
        doc_ref = await _owned_notification_ref(db, user_uuid, notification_id)
        await doc_ref.update({"dismissed": True})
        logger.info(f"Notification {notification_id} dismissed")
    except Exception as e:
        logger.error(f"Error dismissing notification: {str(e)}")
        raise


async def dismiss_all_notifications(db, user_uuid: str) -> int:
    try:
        notifications = await get_active_notifications(db, user_uuid)
        if not notifications:
            return 0

        await commit_in_batches(db, [
            (db.collection(WEB_NOTIFICATIONS_COLLECTION).document(notification.id), {"dismissed": True})
            for notification in notifications
        ])
        logger.info(f"Dismissed {len(notifications)} notifications for user {user_uuid}")
        return len(notifications)
    except Exception as e:
        logger.error(f"Error dismissing notifications: {str(e)}")
        raise


# Notification settings

async def update_notification_settings(db, user_uuid: str, settings: schemas.NotificationSettingsUpdate) -> Dict[str, bool]:
    updates: Dict[str, Dict[str, bool]] = {}
    for name, value in settings.model_dump(exclude_none=True).items():
        group, field = SETTINGS_FIELDS[name]
        updates.setdefault(group, {})[field] = value
    try:
        if updates:
            # 사용자 문서가 없을 수도 있으므로 merge로 저장
            await db.collection(USERS_COLLECTION).document(user_uuid).set(updates, merge=True)
            logger.info(f"Notification settings updated for user {user_uuid}: {list(updates)}")
        return await get_notification_settings(db, user_uuid)
    except Exception as e:
        logger.error(f"Error updating notification settings: {str(e)}")
        raise


async def get_notification_settings(db, user_uuid: str) -> Dict[str, bool]:
    try:
        snapshot = await db.collection(USERS_COLLECTION).document(user_uuid).get()
        data = (snapshot.to_dict() or {}) if snapshot.exists else {}
        settings = data.get("notificationSettings") or {}
        web_settings = data.get("webNotificationSettings") or {}
        return {
            "weekly_reports": settings.get("weeklyReports", True),
            "push_notifications_enabled": settings.get("pushNotificationsEnabled", True),
            "web_notifications_enabled": web_settings.get("inAppNotifications", True),
        }
    except Exception as e:
        logger.error(f"Error fetching notification settings: {str(e)}")
        raise


# FCM tokens

async def add_fcm_token(db, user_uid: str, token: str) -> List[str]:
    try:
        doc_ref = db.collection(USERS_COLLECTION).document(user_uid)
        await doc_ref.set({
            "fcmTokens": ArrayUnion([token]),
            "lastActive": datetime.now(timezone.utc),
        }, merge=True)
        logger.info(f"FCM token added for user {user_uid}")
        return await get_user_fcm_tokens(db, user_uid)
    except Exception as e:
        logger.error(f"Error adding FCM token: {str(e)}")
        raise


async def remove_fcm_token(db, user_uid: str, token: str) -> List[str]:
    try:
        doc_ref = db.collection(USERS_COLLECTION).document(user_uid)
        await doc_ref.update({"fcmTokens": ArrayRemove([token])})
        logger.info(f"FCM token removed for user {user_uid}")
        return await get_user_fcm_tokens(db, user_uid)
    except Exception as e:
        logger.error(f"Error removing FCM token: {str(e)}")
        raise


async def refresh_fcm_token(db, user_uid: str, old_token: str, new_token: str) -> List[str]:
    try:
        doc_ref = db.collection(USERS_COLLECTION).document(user_uid)
        await doc_ref.update({"fcmTokens": ArrayRemove([old_token])})
        await doc_ref.set({
            "fcmTokens": ArrayUnion([new_token]),
            "lastActive": datetime.now(timezone.utc),
        }, merge=True)
        logger.info(f"FCM token refreshed for user {user_uid}")
        return await get_user_fcm_tokens(db, user_uid)
    except Exception as e:
        logger.error(f"Error refreshing FCM token: {str(e)}")
        raise


async def get_user_fcm_tokens(db, user_uid: str) -> List[str]:
    try:
        snapshot = await db.collection(USERS_COLLECTION).document(user_uid).get()
        if not snapshot.exists:
            return []
        data = snapshot.to_dict() or {}
        tokens = list(data.get("fcmTokens") or [])
        # 단일 fcmToken 필드로 저장된 이전 형식
        legacy = data.get("fcmToken")
        if legacy and legacy not in tokens:
            tokens.append(legacy)
        return tokens
    except Exception as e:
        logger.error(f"Error fetching FCM tokens: {str(e)}")
        raise


async def update_user_last_active(db, user_uid: str):
    try:
        await db.collection(USERS_COLLECTION).document(user_uid).set(
            {"lastActive": datetime.now(timezone.utc)}, merge=True
        )
        logger.info(f"Updated last active timestamp for user {user_uid}")
    except Exception as e:
        logger.error(f"Error updating last active timestamp: {str(e)}")
        raise


async def remove_inactive_tokens(db, days_threshold: int = 60) -> int:
    try:
        threshold = datetime.now(timezone.utc) - timedelta(days=days_threshold)
        docs = await (
            db.collection(USERS_COLLECTION)
            .where(filter=FieldFilter("lastActive", "<", threshold))
            .get()
        )

        await commit_in_batches(db, [(doc.reference, {"fcmTokens": []}) for doc in docs])

        logger.info(f"Removed inactive tokens older than {days_threshold} days ({len(docs)} users)")
        return len(docs)
    except Exception as e:
        logger.error(f"Error removing inactive tokens: {str(e)}")
        raise


# System status

async def get_system_status(db, service: str) -> Optional[str]:
    """Status string of ``systemStatus/{service}``, or None when the document is missing."""
    snapshot = await db.collection(SYSTEM_STATUS_COLLECTION).document(service).get()
    if not snapshot.exists:
        return None
    return (snapshot.to_dict() or {}).get("status")


async def is_push_available(db) -> bool:
    try:
        for service in ("fcm", "notifications"):
            if await get_system_status(db, service) in NON_OPERATIONAL_STATUSES:
                logger.warning(f"Push delivery disabled: systemStatus/{service} is not operational")
                return False
        return True
    except Exception as e:
        logger.error(f"Error reading system status: {str(e)}")
        return False


# Report notifications

def format_korean_date(date: datetime) -> str:
    return f"{date.month}월 {date.day}일"


def compose_report_message(report_type: schemas.NotificationReportType, week_start: datetime,
                           week_end: datetime) -> Tuple[str, str]:
    period = f"{format_korean_date(week_start)}~{format_korean_date(week_end)}"

    if report_type == schemas.NotificationReportType.ai_analysis:
        return ("주간 분석 리포트가 준비되었습니다! 📊",
                f"{period} 운동과 식단 활동을 AI가 분석했어요. 확인해보세요!")
    if report_type == schemas.NotificationReportType.motivational:
        return ("더 꾸준한 인증이 필요해요! 💪",
                f"{period} 인증이 부족했어요. 다음 주에는 더 열심히 해보세요!")
    if report_type == schemas.NotificationReportType.basic:
        return ("건강한 습관을 시작해보세요! 🌟",
                f"{period} 운동과 식단 인증으로 건강한 라이프스타일을 만들어가요!")
    return ("주간 리포트가 준비되었습니다! 📊", f"{period} 활동 리포트를 확인해보세요!")


async def send_push_with_retry(db, user_uid: str, token: str, title: str, body: str,
                               data: Dict[str, str]) -> Optional[str]:
    """Sends one FCM message, retrying with exponential back-off.

    Returns the FCM message id, or None when the token is no longer registered
    (the token is removed from the user's registry in that case).
    """
    message = messaging.Message(
        notification=messaging.Notification(title=title, body=body),
        data=data,
        token=token,
    )

    last_error = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            message_id = messaging.send(message)
            logger.info(f"FCM message sent to user {user_uid} (attempt {attempt}): {message_id}")
            return message_id
        except messaging.UnregisteredError:
            logger.warning(f"FCM token for user {user_uid} is no longer registered, removing it")
            await remove_fcm_token(db, user_uid, token)
            return None
        except Exception as e:
            last_error = e
            logger.warning(f"FCM send failed for user {user_uid} (attempt {attempt}/{MAX_RETRIES}): {str(e)}")
            if attempt < MAX_RETRIES:
                await asyncio.sleep(RETRY_DELAY_BASE * 2 ** (attempt - 1))

    raise last_error


async def send_report_notification(db, user_uuid: str, report: schemas.WeeklyReport,
                                   report_type: schemas.NotificationReportType) -> Dict[str, Any]:
    title, body = compose_report_message(report_type, report.week_start_date, report.week_end_date)
    data = {
        "type": "weekly_report",
        "reportId": report.id,
        "userUuid": user_uuid,
        "weekStartDate": report.week_start_date.isoformat(),
        "weekEndDate": report.week_end_date.isoformat(),
        "reportType": report_type.value,
    }

    settings = await get_notification_settings(db, user_uuid)
    message_ids = []
    failed_tokens = []

    if settings["weekly_reports"] and settings["push_notifications_enabled"] and await is_push_available(db):
        for token in await get_user_fcm_tokens(db, user_uuid):
            try:
                message_id = await send_push_with_retry(db, user_uuid, token, title, body, data)
                if message_id:
                    message_ids.append(message_id)
            except Exception as e:
                logger.error(f"Failed to deliver report notification to user {user_uuid}: {str(e)}", exc_info=True)
                failed_tokens.append(token)
    else:
        logger.info(f"Push delivery skipped for user {user_uuid}")

    notification = None
    if settings["web_notifications_enabled"]:
        notification = await create_web_notification(
            db, user_uuid, "weekly_report", title, body,
            report_id=report.id, metadata={"reportType": report_type.value},
        )

    return {
        "notification_id": notification.id if notification else None,
        "message_ids": message_ids,
        "failed_tokens": failed_tokens,
    }
