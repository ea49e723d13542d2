"""WebSocket connection registry and broadcast multiplexer.

This module tracks every authenticated WebSocket connection and the
broadcast groups it belongs to, and fans events out to those groups.

Groups:
    - ``user:<userId>``: every connection of one user (all devices).
      Joined automatically on connect; used for room-list refreshes and
      notifications.
    - ``room:<roomId>``: connections that joined a room. Used for message
      and typing relay.

Key features:
    - Explicit registry: connection id -> ConnectionInfo(userId, rooms)
    - Concurrent delivery within a group with asyncio.gather()
    - Failed sends prune and close the dead connection instead of raising
    - Broadcasting to an empty or unknown group is a no-op

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    Registry mutations never span an ``await``, so they cannot interleave
    with one another. It is NOT thread-safe for access from multiple threads.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

GOING_AWAY = 1001


async def close_quietly(websocket: WebSocket, code: int = 1000) -> None:
    """Close a socket, ignoring a peer that is already gone."""
    try:
        await websocket.close(code=code)
    except Exception as e:
        logger.debug(f"Failed to close connection: {e}")


def user_group(user_id: str) -> str:
    return f"user:{user_id}"


def room_group(room_id: str) -> str:
    return f"room:{room_id}"


@dataclass
class ConnectionInfo:
    """State kept for one live connection.

    Attributes:
        connection_id: Server-assigned id, unique per connection.
        user_id: Authenticated user behind the connection.
        websocket: The underlying socket.
        rooms: Room ids whose group this connection joined.
        connected_at: Unix timestamp of the handshake.
    """
    connection_id: str
    user_id: str
    websocket: WebSocket
    rooms: Set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)


class ConnectionManager:
    """Registry of live connections and their broadcast groups.

    The application holds one instance (``manager`` below); tests create
    their own.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        # connection_id -> ConnectionInfo
        self.connections: Dict[str, ConnectionInfo] = {}

        # group name -> connection ids
        self.groups: Dict[str, Set[str]] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def register(self, websocket: WebSocket, user_id: str) -> ConnectionInfo:
        """Track an authenticated connection and join its personal group.

        Args:
            websocket: The accepted WebSocket.
            user_id: Id of the authenticated user.

        Returns:
            The new ConnectionInfo.
        """
        info = ConnectionInfo(
            connection_id=str(uuid.uuid4()),
            user_id=user_id,
            websocket=websocket,
        )
        self.connections[info.connection_id] = info
        self._add(user_group(user_id), info.connection_id)
        logger.info(
            f"[Manager] Connection {info.connection_id} registered for user {user_id} "
            f"({self.user_connection_count(user_id)} active)"
        )
        return info

    def unregister(self, connection_id: str) -> Optional[ConnectionInfo]:
        """Forget a connection and remove it from every group.

        Safe to call more than once.

        Returns:
            The removed ConnectionInfo, or None if it was already gone.
        """
        info = self.connections.pop(connection_id, None)
        if info is None:
            return None
        self._discard(user_group(info.user_id), connection_id)
        for room_id in info.rooms:
            self._discard(room_group(room_id), connection_id)
        info.rooms.clear()
        logger.info(f"[Manager] Connection {connection_id} of user {info.user_id} unregistered")
        return info

    # =========================================================================
    # Group membership
    # =========================================================================

    def join_room(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to ``room:<room_id>``.

        Authorization is the caller's job; this only updates the registry.

        Returns:
            False if the connection is unknown.
        """
        info = self.connections.get(connection_id)
        if info is None:
            return False
        info.rooms.add(room_id)
        self._add(room_group(room_id), connection_id)
        return True

    def leave_room(self, connection_id: str, room_id: str) -> None:
        """Remove a connection from ``room:<room_id>``. Always safe."""
        info = self.connections.get(connection_id)
        if info is not None:
            info.rooms.discard(room_id)
        self._discard(room_group(room_id), connection_id)

    def remove_user_from_room(self, user_id: str, room_id: str) -> int:
        """Drop every connection of *user_id* from a room group.

        Returns:
            Number of connections removed.
        """
        removed = 0
        for connection_id in list(self.groups.get(user_group(user_id), ())):
            if connection_id in self.groups.get(room_group(room_id), ()):
                self.leave_room(connection_id, room_id)
                removed += 1
        return removed

    def group_members(self, group: str) -> List[str]:
        return list(self.groups.get(group, ()))

    def user_connection_count(self, user_id: str) -> int:
        return len(self.groups.get(user_group(user_id), ()))

    def room_connection_count(self, room_id: str) -> int:
        return len(self.groups.get(room_group(room_id), ()))

    def _add(self, group: str, connection_id: str) -> None:
        self.groups.setdefault(group, set()).add(connection_id)

    def _discard(self, group: str, connection_id: str) -> None:
        members = self.groups.get(group)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.groups[group]

    # =========================================================================
    # Delivery
    # =========================================================================

    async def emit(self, connection_id: str, event: str, payload: Dict[str, Any]) -> bool:
        """Send one event to a single connection.

        Returns:
            True if delivered, False if the connection is gone or failed.
        """
        info = self.connections.get(connection_id)
        if info is None:
            return False
        delivered = await self._safe_send(info.websocket, {"type": event, **payload})
        if not delivered:
            await self._cleanup_connections([connection_id])
        return delivered

    async def emit_to_group(
        self,
        group: str,
        event: str,
        payload: Dict[str, Any],
        exclude: Optional[str] = None,
    ) -> int:
        """Broadcast an event to every connection in a group concurrently.

        Args:
            group: Group name (``user:<id>`` or ``room:<id>``).
            event: Event name, sent as the frame's ``type``.
            payload: Event fields merged into the frame.
            exclude: Connection id to skip (e.g. the typist).

        Returns:
            Number of connections the event reached.
        """
        targets = [
            self.connections[cid]
            for cid in self.groups.get(group, ())
            if cid != exclude and cid in self.connections
        ]
        if not targets:
            return 0

        message = {"type": event, **payload}
        results = await asyncio.gather(
            *[self._safe_send(info.websocket, message) for info in targets],
            return_exceptions=True
        )

        # Remove failed connections
        failed = [
            info.connection_id for info, success in zip(targets, results)
            if success is not True
        ]
        await self._cleanup_connections(failed)
        return len(targets) - len(failed)

    async def emit_to_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> int:
        return await self.emit_to_group(user_group(user_id), event, payload)

    async def emit_to_room(
        self,
        room_id: str,
        event: str,
        payload: Dict[str, Any],
        exclude: Optional[str] = None,
    ) -> int:
        return await self.emit_to_group(room_group(room_id), event, payload, exclude=exclude)

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    async def _cleanup_connections(self, failed_connections: List[str]) -> None:
        """Unregister and close connections whose send failed.

        Closing ends the receive loop that owns the socket.
        """
        for connection_id in failed_connections:
            info = self.unregister(connection_id)
            if info is not None:
                logger.debug(f"Removed dead connection {connection_id}")
                await close_quietly(info.websocket, GOING_AWAY)

    def clear(self) -> None:
        """Drop all connections and groups (used by tests)."""
        self.connections.clear()
        self.groups.clear()


# Global instance shared by the WebSocket endpoint and the REST routers
manager = ConnectionManager()
