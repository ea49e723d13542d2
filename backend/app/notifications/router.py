"""Notifications router.

Endpoints:
    GET    /api/v1/notifications            - List own notifications (+ unread count)
    PATCH  /api/v1/notifications/read-all   - Mark all as read
    PATCH  /api/v1/notifications/{id}/read  - Mark one as read
    DELETE /api/v1/notifications/{id}       - Delete one
    DELETE /api/v1/notifications            - Delete all

Real-time delivery of new notifications happens over the WebSocket.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.auth.dependencies import get_current_user
from app.storage import PersistenceGateway, User, get_store

from .service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _service(store: PersistenceGateway = Depends(get_store)) -> NotificationService:
    return NotificationService(store)


@router.get("")
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    skip: int = Query(0, ge=0, description="Number of notifications to skip"),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(_service),
) -> JSONResponse:
    """List the caller's notifications, newest first."""
    notifications, unread = await service.list_notifications(user.id, limit, skip)
    return JSONResponse({
        "notifications": [n.model_dump(mode="json") for n in notifications],
        "unreadCount": unread,
    })


@router.patch("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(_service),
) -> JSONResponse:
    updated = await service.mark_all_read(user.id)
    logger.info("[Notifications] User %s marked %d as read", user.id, updated)
    return JSONResponse({"message": "All notifications marked as read"})


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(_service),
) -> JSONResponse:
    notification = await service.mark_read(user.id, notification_id)
    return JSONResponse({
        "message": "Notification marked as read",
        "notification": notification.model_dump(mode="json"),
    })


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(_service),
) -> JSONResponse:
    await service.delete(user.id, notification_id)
    return JSONResponse({"message": "Notification deleted successfully"})


@router.delete("")
async def delete_all_notifications(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(_service),
) -> JSONResponse:
    deleted = await service.delete_all(user.id)
    logger.info("[Notifications] User %s deleted %d", user.id, deleted)
    return JSONResponse({"message": "All notifications deleted successfully"})
