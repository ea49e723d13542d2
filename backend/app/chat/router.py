"""Chat WebSocket endpoint.

This module provides:
    - WebSocket /ws: authenticated real-time channel for one user connection

Protocol:
    Client and server frames are JSON objects ``{"type": <event>, ...payload}``.

    1. Client connects with ``?token=<jwt>`` (or ``Authorization: Bearer``)
       → Server accepts, then either closes with 1008 and
         ``Authentication error: ...`` or sends ``{type: "connected", userId}``
    2. getRooms {search?}              → roomsList {rooms}
    3. joinRoom {roomId}               → joinedRoom {roomId} | error
    4. leaveRoom {roomId}              → leftRoom {roomId}
    5. getMessages {roomId, limit?, cursor?}
                                       → messagesList {roomId, messages, pagination}
    6. sendMessage {roomId, content}   → newMessage to the room group,
                                         roomUpdated / newNotification to personal groups
    7. markMessagesAsRead {roomId}     → messagesMarkedAsRead {roomId}
    8. getNotifications {limit?, skip?}
                                       → notificationsList {notifications, unreadCount}
    9. typing {roomId, isTyping}       → userTyping to the rest of the room group
    10. On disconnect the connection leaves every group and the user goes offline.

Events from one connection are handled one at a time, in arrival order.
Binary frames and text that is not a JSON object get an ``error`` reply
and the connection stays open.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError as PayloadError

from app.errors import ApiError
from app.notifications.service import NotificationService
from app.rooms.service import RoomService, require_participant
from app.storage import PersistenceGateway, get_store

from .authenticator import authenticate_connection
from .manager import ConnectionInfo, close_quietly, manager
from .pipeline import MessagePipeline
from .presence import PresenceTracker
from .schemas import (
    GetMessagesPayload,
    GetNotificationsPayload,
    GetRoomsPayload,
    RoomPayload,
    SendMessagePayload,
    TypingPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter()

POLICY_VIOLATION = 1008
NOT_AUTHORIZED_TO_JOIN = "Not authorized to join this room"

FALLBACK_ERRORS = {
    "getRooms": "Failed to get rooms",
    "joinRoom": "Failed to join room",
    "getMessages": "Failed to get messages",
    "sendMessage": "Failed to send message",
    "markMessagesAsRead": "Failed to mark messages as read",
    "getNotifications": "Failed to get notifications",
}


class ChatSession:
    """Event handlers bound to one authenticated connection."""

    def __init__(self, info: ConnectionInfo, store: PersistenceGateway) -> None:
        self.info = info
        self.store = store
        self.pipeline = MessagePipeline(store, manager)
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            "getRooms": self.get_rooms,
            "joinRoom": self.join_room,
            "leaveRoom": self.leave_room,
            "getMessages": self.get_messages,
            "sendMessage": self.send_message,
            "markMessagesAsRead": self.mark_messages_as_read,
            "getNotifications": self.get_notifications,
            "typing": self.typing,
        }

    @property
    def user_id(self) -> str:
        return self.info.user_id

    async def reply(self, event: str, payload: Dict[str, Any]) -> None:
        await manager.emit(self.info.connection_id, event, payload)

    async def error(self, message: str) -> None:
        await self.reply("error", {"message": message})

    async def dispatch(self, frame: Any) -> None:
        """Route one decoded frame to its handler.

        Failures are reported to this connection only; the loop keeps going.
        """
        if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
            await self.error("Invalid frame")
            return

        event = frame["type"]
        handler = self.handlers.get(event)
        if handler is None:
            await self.error(f"Unknown event: {event}")
            return

        logger.debug("[WS] User %s event=%s", self.user_id, event)
        try:
            await handler(frame)
        except PayloadError as exc:
            logger.info(f"[WS] Bad {event} payload from {self.user_id}: {exc.error_count()} error(s)")
            await self.error(f"Invalid {event} data")
        except ApiError as exc:
            await self.error(exc.message)
        except Exception as exc:
            logger.error(f"[WS] {event} failed for user {self.user_id}: {exc}", exc_info=True)
            await self.error(FALLBACK_ERRORS.get(event, "Something went wrong"))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def get_rooms(self, frame: Dict[str, Any]) -> None:
        payload = GetRoomsPayload.model_validate(frame)
        rooms = await RoomService(self.store).list_rooms(self.user_id, payload.search)
        await self.reply("roomsList", {"rooms": [r.model_dump(mode="json") for r in rooms]})

    async def join_room(self, frame: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(frame)
        try:
            room = await require_participant(self.store, payload.roomId, self.user_id)
        except ApiError:
            logger.warning(f"[WS] User {self.user_id} refused join of room {payload.roomId}")
            await self.error(NOT_AUTHORIZED_TO_JOIN)
            return
        if not manager.join_room(self.info.connection_id, room.id):
            return
        logger.info(
            f"[WS] User {self.user_id} joined room {room.id} "
            f"({manager.room_connection_count(room.id)} connection(s))"
        )
        await self.reply("joinedRoom", {"roomId": room.id})

    async def leave_room(self, frame: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(frame)
        manager.leave_room(self.info.connection_id, payload.roomId)
        await self.reply("leftRoom", {"roomId": payload.roomId})

    async def get_messages(self, frame: Dict[str, Any]) -> None:
        payload = GetMessagesPayload.model_validate(frame)
        page = await self.pipeline.get_messages(
            self.user_id, payload.roomId, limit=payload.limit, cursor=payload.cursor
        )
        await self.reply("messagesList", {"roomId": payload.roomId, **page.to_dict()})

    async def send_message(self, frame: Dict[str, Any]) -> None:
        payload = SendMessagePayload.model_validate(frame)
        await self.pipeline.send_message(self.user_id, payload.roomId, payload.content)

    async def mark_messages_as_read(self, frame: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(frame)
        await self.pipeline.mark_messages_read(self.user_id, payload.roomId)
        await self.reply("messagesMarkedAsRead", {"roomId": payload.roomId})

    async def get_notifications(self, frame: Dict[str, Any]) -> None:
        payload = GetNotificationsPayload.model_validate(frame)
        notifications, unread = await NotificationService(self.store).list_notifications(
            self.user_id, payload.limit, payload.skip
        )
        await self.reply("notificationsList", {
            "notifications": [n.model_dump(mode="json") for n in notifications],
            "unreadCount": unread,
        })

    async def typing(self, frame: Dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(frame)
        # only connections inside the room may signal typing to it
        if payload.roomId not in self.info.rooms:
            return
        await manager.emit_to_room(
            payload.roomId,
            "userTyping",
            {"roomId": payload.roomId, "userId": self.user_id, "isTyping": payload.isTyping},
            exclude=self.info.connection_id,
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Real-time channel for one authenticated user connection.

    SECURITY MODEL:
        - The user id comes from the verified token, never from the client
        - Room membership is checked against the stored participants on join
          and on every room-scoped event
    """
    store = get_store()

    await websocket.accept()
    try:
        user = await authenticate_connection(websocket, store)
    except ApiError as exc:
        logger.warning(f"[WS] Rejected connection: {exc.message}")
        await websocket.close(code=POLICY_VIOLATION, reason=exc.message)
        return

    info = manager.register(websocket, user.id)
    session = ChatSession(info, store)
    try:
        await websocket.send_json({"type": "connected", "userId": user.id})

        # a pruned connection (failed send) stops reading
        while info.connection_id in manager.connections:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

            raw = message.get("text")
            if raw is None:
                # binary frames carry no event
                await session.error("Invalid frame")
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                await session.error("Invalid frame")
                continue
            await session.dispatch(frame)

    except WebSocketDisconnect as exc:
        logger.info(f"[WS] User {user.id} disconnected (code={exc.code})")
    except Exception as exc:
        logger.error(f"[WS] Connection of user {user.id} failed: {exc}", exc_info=True)
    finally:
        manager.unregister(info.connection_id)
        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            await close_quietly(websocket)
        await PresenceTracker(store).mark_offline(user.id)
