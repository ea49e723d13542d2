"""NotificationService: per-recipient notices and their fan-out.

Notifications are only created by the message pipeline: one per room
participant other than the sender, for every user-authored message.
All read/delete operations are scoped to the caller's own notifications;
someone else's notification is reported as not found.
"""
import logging
from typing import List, Optional, Tuple

from app.chat.manager import ConnectionManager
from app.config import get_config
from app.errors import NotFoundError, ValidationError
from app.storage import Message, Notification, PersistenceGateway, Room, is_valid_id

logger = logging.getLogger(__name__)


def _check_window(limit: int, skip: int) -> None:
    if limit < 1 or skip < 0:
        raise ValidationError(
            "Invalid pagination", "limit must be positive and skip must not be negative"
        )


class NotificationService:
    """Notification queries, mutations and real-time delivery."""

    def __init__(self, store: PersistenceGateway) -> None:
        self.store = store

    async def fan_out_message(
        self, room: Room, message: Message, connections: ConnectionManager
    ) -> List[Notification]:
        """Notify every participant except the sender about *message*.

        Each notification is persisted, then pushed as ``newNotification``
        to the recipient's personal group. System messages notify nobody.

        Returns:
            The notifications created, in participant order.
        """
        if message.type != "user":
            return []

        sender = room.participant(message.senderId)
        title = sender.display_name if sender else "New message"

        created = []
        for participant in room.participants:
            if participant.id == message.senderId:
                continue
            notification = await self.store.create_notification(Notification(
                userId=participant.id,
                type="message",
                title=title,
                body=message.content,
                roomId=room.id,
                metadata={"messageId": message.id, "senderId": message.senderId},
            ))
            created.append(notification)
            await connections.emit_to_user(
                participant.id,
                "newNotification",
                {"notification": notification.model_dump(mode="json")},
            )
        logger.info(
            f"[Notifications] Room {room.id}: {len(created)} notification(s) for message {message.id}"
        )
        return created

    async def list_notifications(
        self, user_id: str, limit: Optional[int] = None, skip: int = 0
    ) -> Tuple[List[Notification], int]:
        """The caller's notifications, newest first, and their unread total."""
        if limit is None:
            limit = get_config().notifications.default_page_size
        _check_window(limit, skip)
        notifications = await self.store.list_notifications(user_id, limit, skip)
        unread = await self.store.count_unread_notifications(user_id)
        return notifications, unread

    async def mark_read(self, user_id: str, notification_id: str) -> Notification:
        notification = None
        if is_valid_id(notification_id):
            notification = await self.store.mark_notification_read(user_id, notification_id)
        if notification is None:
            raise NotFoundError("Not Found", "Notification not found")
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        return await self.store.mark_all_notifications_read(user_id)

    async def delete(self, user_id: str, notification_id: str) -> None:
        deleted = is_valid_id(notification_id) and await self.store.delete_notification(
            user_id, notification_id
        )
        if not deleted:
            raise NotFoundError("Not Found", "Notification not found")

    async def delete_all(self, user_id: str) -> int:
        return await self.store.delete_all_notifications(user_id)
