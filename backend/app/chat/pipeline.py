"""Message pipeline: send, read-mark and history for a room.

Sending a message is a best-effort sequence of independent writes, with
no transaction and no compensation:

    1. persist the message
    2. overwrite the room's ``lastMessage`` summary
    3. broadcast ``newMessage`` to ``room:<id>`` and ``roomUpdated`` to
       every participant's ``user:<id>``
    4. create and push one notification per non-sender participant

If a step fails, the steps before it stay done. Two concurrent sends to
the same room may leave ``lastMessage`` pointing at the older message
(last write wins).
"""
import logging
from typing import Any, Optional

from app.errors import ValidationError
from app.notifications.service import NotificationService
from app.rooms.service import require_participant
from app.storage import LastMessage, Message, PersistenceGateway

from .manager import ConnectionManager
from .pagination import MessagePage, paginate_messages

logger = logging.getLogger(__name__)


def clean_content(content: Any) -> str:
    """Trim message content.

    Raises:
        ValidationError: If the content is missing, not text, or blank.
    """
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Message content is required")
    return content.strip()


class MessagePipeline:
    """Room message operations shared by the WebSocket and REST surfaces."""

    def __init__(self, store: PersistenceGateway, connections: ConnectionManager) -> None:
        self.store = store
        self.connections = connections
        self.notifications = NotificationService(store)

    async def send_message(self, sender_id: str, room_id: Any, content: Any) -> Message:
        """Persist, broadcast and notify a new user message.

        Args:
            sender_id: Authenticated sender.
            room_id: Target room; the sender must be a participant.
            content: Raw text; trimmed before storing.

        Returns:
            The stored message.

        Raises:
            ValidationError: Blank content or malformed room id.
            NotFoundError: Room missing or sender not a participant.
        """
        text = clean_content(content)
        room = await require_participant(self.store, room_id, sender_id)

        message = await self.store.create_message(Message(
            roomId=room.id,
            senderId=sender_id,
            content=text,
            type="user",
        ))

        updated_room = await self.store.set_room_last_message(room.id, LastMessage(
            id=message.id,
            content=message.content,
            timestamp=message.timestamp,
        ))
        if updated_room is not None:
            room = updated_room

        delivered = await self.connections.emit_to_room(
            room.id,
            "newMessage",
            {"roomId": room.id, "message": message.model_dump(mode="json")},
        )
        room_payload = {"room": room.model_dump(mode="json")}
        for participant in room.participants:
            await self.connections.emit_to_user(participant.id, "roomUpdated", room_payload)
        logger.info(
            f"[Pipeline] Message {message.id} in room {room.id} from {sender_id} "
            f"delivered to {delivered} connection(s)"
        )

        await self.notifications.fan_out_message(room, message, self.connections)
        return message

    async def mark_messages_read(self, reader_id: str, room_id: Any) -> int:
        """Mark everything the other side sent as read and zero the unread count.

        Idempotent: a second call changes nothing.

        Returns:
            Number of messages that flipped to read.
        """
        room = await require_participant(self.store, room_id, reader_id)
        updated = await self.store.mark_messages_read(room.id, reader_id)
        await self.store.reset_unread_count(room.id)
        logger.debug(f"[Pipeline] User {reader_id} read {updated} message(s) in room {room.id}")
        return updated

    async def get_messages(
        self,
        user_id: str,
        room_id: Any,
        limit: Any = None,
        cursor: Optional[str] = None,
    ) -> MessagePage:
        """A page of the room's history for a participant."""
        room = await require_participant(self.store, room_id, user_id)
        return await paginate_messages(self.store, room.id, limit=limit, cursor=cursor)
