"""
Admin notification endpoints: sending, inbox state, preferences, templates.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from portfolio_backend.auth import require_admin
from portfolio_backend.dependencies import get_notification_service
from portfolio_backend.notifications import NotificationService
from portfolio_backend.schemas import (
    BulkNotificationRequest,
    MarkReadRequest,
    NotificationSendRequest,
    NotificationTemplateRequest,
)
from portfolio_backend.timeutils import parse_timestamp

router = APIRouter(prefix="/notifications", dependencies=[Depends(require_admin)])


def _send_options(payload) -> dict:
    return {
        "title": payload.title,
        "message": payload.message,
        "template_id": payload.templateId,
        "variables": payload.variables,
        "channels": payload.channels,
    }


def _require_content(payload) -> None:
    if not payload.templateId and not (payload.title and payload.message):
        raise HTTPException(
            status_code=400, detail="title and message are required without a template"
        )


@router.post("/send", status_code=201)
def send_notification(
    payload: NotificationSendRequest,
    notifications: NotificationService = Depends(get_notification_service),
):
    _require_content(payload)
    try:
        notification = notifications.send(payload.userId, payload.type, **_send_options(payload))
    except KeyError:
        raise HTTPException(status_code=404, detail="Template not found")
    if notification is None:
        return {"notificationId": None, "message": "No channels enabled for this notification"}
    return {"notificationId": notification["id"], "message": "Notification queued successfully"}


@router.post("/send/bulk", status_code=201)
def send_bulk_notifications(
    payload: BulkNotificationRequest,
    notifications: NotificationService = Depends(get_notification_service),
):
    _require_content(payload)
    try:
        ids = notifications.send_bulk(payload.userIds, payload.type, **_send_options(payload))
    except KeyError:
        raise HTTPException(status_code=404, detail="Template not found")
    return {
        "notificationIds": ids,
        "count": len(ids),
        "message": f"{len(ids)} notifications queued successfully",
    }


@router.get("/user/{user_id}")
def user_notifications(
    user_id: str,
    unreadOnly: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.for_user(user_id, unread_only=unreadOnly, limit=limit, offset=offset)


@router.put("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    payload: MarkReadRequest,
    notifications: NotificationService = Depends(get_notification_service),
):
    if not notifications.mark_read(notification_id, payload.userId):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}


@router.put("/user/{user_id}/read-all")
def mark_all_notifications_read(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    count = notifications.mark_all_read(user_id)
    return {"count": count, "message": "All notifications marked as read"}


@router.get("/preferences/{user_id}")
def get_preferences(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.get_preferences(user_id)


@router.put("/preferences/{user_id}")
def update_preferences(
    user_id: str,
    payload: dict,
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.update_preferences(user_id, payload)


@router.get("/statistics")
def notification_statistics(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    notifications: NotificationService = Depends(get_notification_service),
):
    if not startDate or not endDate:
        raise HTTPException(status_code=400, detail="Start date and end date are required")
    try:
        start, end = parse_timestamp(startDate), parse_timestamp(endDate)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date")
    return notifications.statistics(start, end)


@router.post("/templates", status_code=201)
def create_template(
    payload: NotificationTemplateRequest,
    notifications: NotificationService = Depends(get_notification_service),
):
    template = notifications.create_template(payload.model_dump())
    return {"message": "Template created successfully", "template": template}
