"""DuckDB-backed document store.

Implements :class:`PersistenceGateway` on an embedded DuckDB database.
The service keeps one connection for the lifetime of the process and
follows the singleton pattern so routers and the WebSocket handler share
it.

Database Schema:
    users:             one row per account (presence and preferences inline)
    rooms:             room header plus the embedded last-message summary
    room_participants: participant snapshots, ordered by ``ordinal``
    messages:          chat messages, ``id`` doubles as pagination cursor
    notifications:     per-recipient notices, ``metadata`` stored as JSON text

Thread Safety:
    The DuckDB connection is NOT thread-safe. Every statement runs under a
    lock; in production all calls come from the event-loop thread anyway.

Usage:
    store = DuckDBStore.get_instance()
    user = await store.get_user(user_id)
"""
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import duckdb

from .gateway import PersistenceGateway
from .schemas import (
    LastMessage,
    Message,
    Notification,
    Participant,
    Room,
    User,
    UserStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id                    VARCHAR PRIMARY KEY,
        first_name            VARCHAR NOT NULL,
        last_name             VARCHAR NOT NULL,
        username              VARCHAR NOT NULL,
        email                 VARCHAR NOT NULL,
        password              VARCHAR NOT NULL,
        avatar                VARCHAR,
        status                VARCHAR NOT NULL DEFAULT 'offline',
        notifications_enabled BOOLEAN NOT NULL DEFAULT TRUE,
        sound_enabled         BOOLEAN NOT NULL DEFAULT TRUE,
        theme                 VARCHAR NOT NULL DEFAULT 'light',
        onboarding_completed  BOOLEAN NOT NULL DEFAULT FALSE,
        created_at            TIMESTAMP NOT NULL,
        updated_at            TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rooms (
        id                     VARCHAR PRIMARY KEY,
        name                   VARCHAR,
        last_message_id        VARCHAR,
        last_message_content   VARCHAR,
        last_message_timestamp TIMESTAMP,
        unread_count           INTEGER NOT NULL DEFAULT 0,
        created_at             TIMESTAMP NOT NULL,
        updated_at             TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS room_participants (
        room_id    VARCHAR NOT NULL,
        ordinal    INTEGER NOT NULL,
        user_id    VARCHAR NOT NULL,
        first_name VARCHAR NOT NULL,
        last_name  VARCHAR NOT NULL,
        username   VARCHAR NOT NULL,
        avatar     VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id         VARCHAR PRIMARY KEY,
        room_id    VARCHAR NOT NULL,
        sender_id  VARCHAR NOT NULL,
        content    VARCHAR NOT NULL,
        timestamp  TIMESTAMP NOT NULL,
        read       BOOLEAN NOT NULL DEFAULT FALSE,
        type       VARCHAR NOT NULL DEFAULT 'user',
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id         VARCHAR PRIMARY KEY,
        user_id    VARCHAR NOT NULL,
        type       VARCHAR NOT NULL,
        title      VARCHAR NOT NULL,
        body       VARCHAR NOT NULL,
        room_id    VARCHAR,
        read       BOOLEAN NOT NULL DEFAULT FALSE,
        metadata   VARCHAR,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_participants_user ON room_participants(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_room ON messages(room_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id)",
]

_USER_COLUMNS = (
    "id, first_name, last_name, username, email, password, avatar, status, "
    "notifications_enabled, sound_enabled, theme, onboarding_completed, "
    "created_at, updated_at"
)
_ROOM_COLUMNS = (
    "id, name, last_message_id, last_message_content, last_message_timestamp, "
    "unread_count, created_at, updated_at"
)
_MESSAGE_COLUMNS = "id, room_id, sender_id, content, timestamp, read, type, created_at, updated_at"
_NOTIFICATION_COLUMNS = (
    "id, user_id, type, title, body, room_id, read, metadata, created_at, updated_at"
)


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DuckDBStore(PersistenceGateway):
    """Singleton document store on DuckDB.

    Attributes:
        _instance: Singleton instance of the store.
        _default_db_path: Database file used when no path is given.
    """

    _instance: Optional["DuckDBStore"] = None
    _default_db_path: str = "rooms.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Open the database and create the schema if it does not exist.

        Args:
            db_path: Path to the DuckDB file, or ``:memory:``.
        """
        self._db_path = db_path or self._default_db_path
        self._lock = threading.Lock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(self._db_path)
        for statement in _SCHEMA:
            self._conn.execute(statement)
        logger.info("[Store] Initialized with db=%s", self._db_path)

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "DuckDBStore":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close and forget the singleton. Primarily used by tests."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -----------------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------------

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBStore is closed")
        return self._conn.execute(sql, list(params))

    def _fetchone(self, sql: str, params: Sequence[Any] = ()):
        with self._lock:
            return self._execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list:
        with self._lock:
            return self._execute(sql, params).fetchall()

    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=row[0],
            firstName=row[1],
            lastName=row[2],
            username=row[3],
            email=row[4],
            password=row[5],
            avatar=row[6],
            status=row[7],
            notificationsEnabled=row[8],
            soundEnabled=row[9],
            theme=row[10],
            onboardingCompleted=row[11],
            createdAt=_from_db(row[12]),
            updatedAt=_from_db(row[13]),
        )

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row[0],
            roomId=row[1],
            senderId=row[2],
            content=row[3],
            timestamp=_from_db(row[4]),
            read=row[5],
            type=row[6],
            createdAt=_from_db(row[7]),
            updatedAt=_from_db(row[8]),
        )

    @staticmethod
    def _row_to_notification(row) -> Notification:
        return Notification(
            id=row[0],
            userId=row[1],
            type=row[2],
            title=row[3],
            body=row[4],
            roomId=row[5],
            read=row[6],
            metadata=json.loads(row[7]) if row[7] else None,
            createdAt=_from_db(row[8]),
            updatedAt=_from_db(row[9]),
        )

    def _load_rooms(self, rows: list) -> List[Room]:
        """Attach participant snapshots to room header rows, keeping row order."""
        if not rows:
            return []
        room_ids = [row[0] for row in rows]
        placeholders = ", ".join("?" for _ in room_ids)
        participant_rows = self._fetchall(
            f"""
            SELECT room_id, user_id, first_name, last_name, username, avatar
            FROM room_participants
            WHERE room_id IN ({placeholders})
            ORDER BY room_id, ordinal
            """,
            room_ids,
        )
        participants: Dict[str, List[Participant]] = {rid: [] for rid in room_ids}
        for p in participant_rows:
            participants[p[0]].append(Participant(
                id=p[1], firstName=p[2], lastName=p[3], username=p[4], avatar=p[5],
            ))

        rooms = []
        for row in rows:
            last_message = None
            if row[2] is not None:
                last_message = LastMessage(
                    id=row[2], content=row[3], timestamp=_from_db(row[4]),
                )
            rooms.append(Room(
                id=row[0],
                name=row[1],
                participants=participants[row[0]],
                lastMessage=last_message,
                unreadCount=row[5],
                createdAt=_from_db(row[6]),
                updatedAt=_from_db(row[7]),
            ))
        return rooms

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    async def create_user(self, user: User) -> User:
        with self._lock:
            self._execute(
                f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    user.id, user.firstName, user.lastName, user.username,
                    user.email, user.password, user.avatar, user.status,
                    user.notificationsEnabled, user.soundEnabled, user.theme,
                    user.onboardingCompleted, _to_db(user.createdAt),
                    _to_db(user.updatedAt),
                ],
            )
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        row = self._fetchone(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", [user_id])
        return self._row_to_user(row) if row else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        row = self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE lower(email) = lower(?)", [email]
        )
        return self._row_to_user(row) if row else None

    async def find_user_by_username(self, username: str) -> Optional[User]:
        row = self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", [username]
        )
        return self._row_to_user(row) if row else None

    async def update_user(self, user: User) -> User:
        user.updatedAt = utcnow()
        with self._lock:
            self._execute(
                """
                UPDATE users SET
                    first_name = ?, last_name = ?, username = ?, password = ?,
                    avatar = ?, status = ?, notifications_enabled = ?,
                    sound_enabled = ?, theme = ?, onboarding_completed = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                [
                    user.firstName, user.lastName, user.username, user.password,
                    user.avatar, user.status, user.notificationsEnabled,
                    user.soundEnabled, user.theme, user.onboardingCompleted,
                    _to_db(user.updatedAt), user.id,
                ],
            )
        return user

    async def set_user_status(self, user_id: str, status: UserStatus) -> bool:
        row = self._fetchone(
            "UPDATE users SET status = ?, updated_at = ? WHERE id = ? RETURNING id",
            [status, _to_db(utcnow()), user_id],
        )
        return row is not None

    # -----------------------------------------------------------------------
    # Rooms
    # -----------------------------------------------------------------------

    def _insert_room(self, room: Room) -> None:
        last = room.lastMessage
        self._execute(
            f"INSERT INTO rooms ({_ROOM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                room.id, room.name,
                last.id if last else None,
                last.content if last else None,
                _to_db(last.timestamp) if last else None,
                room.unreadCount, _to_db(room.createdAt), _to_db(room.updatedAt),
            ],
        )
        for ordinal, p in enumerate(room.participants):
            self._execute(
                """
                INSERT INTO room_participants
                    (room_id, ordinal, user_id, first_name, last_name, username, avatar)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [room.id, ordinal, p.id, p.firstName, p.lastName, p.username, p.avatar],
            )

    async def create_room(self, room: Room, opening_message: Optional[Message] = None) -> Room:
        if opening_message is not None:
            room.lastMessage = LastMessage(
                id=opening_message.id,
                content=opening_message.content,
                timestamp=opening_message.timestamp,
            )
        with self._lock:
            self._execute("BEGIN TRANSACTION")
            try:
                self._insert_room(room)
                if opening_message is not None:
                    self._insert_message(opening_message)
                self._execute("COMMIT")
            except Exception:
                self._execute("ROLLBACK")
                logger.warning("[Store] Room %s rolled back", room.id)
                raise
        return room

    async def get_room(self, room_id: str) -> Optional[Room]:
        row = self._fetchone(f"SELECT {_ROOM_COLUMNS} FROM rooms WHERE id = ?", [room_id])
        if row is None:
            return None
        return self._load_rooms([row])[0]

    async def list_rooms_for_user(
        self, user_id: str, search: Optional[str] = None
    ) -> List[Room]:
        sql = f"""
            SELECT {_ROOM_COLUMNS} FROM rooms r
            WHERE EXISTS (
                SELECT 1 FROM room_participants p
                WHERE p.room_id = r.id AND p.user_id = ?
            )
        """
        params: List[Any] = [user_id]
        if search:
            pattern = _like_pattern(search)
            sql += """
            AND (
                r.name ILIKE ? ESCAPE '\\'
                OR EXISTS (
                    SELECT 1 FROM room_participants q
                    WHERE q.room_id = r.id AND (
                        q.first_name ILIKE ? ESCAPE '\\'
                        OR q.last_name ILIKE ? ESCAPE '\\'
                        OR q.username ILIKE ? ESCAPE '\\'
                    )
                )
            )
            """
            params.extend([pattern] * 4)
        sql += " ORDER BY r.last_message_timestamp DESC NULLS LAST, r.updated_at DESC, r.id DESC"
        return self._load_rooms(self._fetchall(sql, params))

    async def set_room_last_message(
        self, room_id: str, last_message: LastMessage
    ) -> Optional[Room]:
        row = self._fetchone(
            """
            UPDATE rooms SET
                last_message_id = ?, last_message_content = ?,
                last_message_timestamp = ?, updated_at = ?
            WHERE id = ?
            RETURNING id
            """,
            [
                last_message.id, last_message.content,
                _to_db(last_message.timestamp), _to_db(utcnow()), room_id,
            ],
        )
        if row is None:
            return None
        return await self.get_room(room_id)

    async def reset_unread_count(self, room_id: str) -> None:
        with self._lock:
            self._execute("UPDATE rooms SET unread_count = 0 WHERE id = ?", [room_id])

    async def remove_participant(self, room_id: str, user_id: str) -> bool:
        rows = self._fetchall(
            "DELETE FROM room_participants WHERE room_id = ? AND user_id = ? RETURNING user_id",
            [room_id, user_id],
        )
        if rows:
            with self._lock:
                self._execute(
                    "UPDATE rooms SET updated_at = ? WHERE id = ?",
                    [_to_db(utcnow()), room_id],
                )
        return bool(rows)

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    def _insert_message(self, message: Message) -> None:
        self._execute(
            f"INSERT INTO messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                message.id, message.roomId, message.senderId, message.content,
                _to_db(message.timestamp), message.read, message.type,
                _to_db(message.createdAt), _to_db(message.updatedAt),
            ],
        )

    async def create_message(self, message: Message) -> Message:
        with self._lock:
            self._insert_message(message)
        return message

    async def find_messages(
        self, room_id: str, before_id: Optional[str], limit: int
    ) -> List[Message]:
        if before_id:
            rows = self._fetchall(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE room_id = ? AND id < ?
                ORDER BY id DESC
                LIMIT ?
                """,
                [room_id, before_id, limit],
            )
        else:
            rows = self._fetchall(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE room_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                [room_id, limit],
            )
        return [self._row_to_message(r) for r in rows]

    async def mark_messages_read(self, room_id: str, reader_id: str) -> int:
        rows = self._fetchall(
            """
            UPDATE messages SET read = TRUE, updated_at = ?
            WHERE room_id = ? AND sender_id <> ? AND read = FALSE
            RETURNING id
            """,
            [_to_db(utcnow()), room_id, reader_id],
        )
        return len(rows)

    # -----------------------------------------------------------------------
    # Notifications
    # -----------------------------------------------------------------------

    async def create_notification(self, notification: Notification) -> Notification:
        with self._lock:
            self._execute(
                f"INSERT INTO notifications ({_NOTIFICATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    notification.id, notification.userId, notification.type,
                    notification.title, notification.body, notification.roomId,
                    notification.read,
                    json.dumps(notification.metadata) if notification.metadata else None,
                    _to_db(notification.createdAt), _to_db(notification.updatedAt),
                ],
            )
        return notification

    async def list_notifications(
        self, user_id: str, limit: int, skip: int
    ) -> List[Notification]:
        rows = self._fetchall(
            f"""
            SELECT {_NOTIFICATION_COLUMNS} FROM notifications
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            [user_id, limit, skip],
        )
        return [self._row_to_notification(r) for r in rows]

    async def count_unread_notifications(self, user_id: str) -> int:
        row = self._fetchone(
            "SELECT count(*) FROM notifications WHERE user_id = ? AND read = FALSE",
            [user_id],
        )
        return row[0]

    async def mark_notification_read(
        self, user_id: str, notification_id: str
    ) -> Optional[Notification]:
        row = self._fetchone(
            """
            UPDATE notifications SET read = TRUE, updated_at = ?
            WHERE id = ? AND user_id = ?
            RETURNING id
            """,
            [_to_db(utcnow()), notification_id, user_id],
        )
        if row is None:
            return None
        found = self._fetchone(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications WHERE id = ?",
            [notification_id],
        )
        return self._row_to_notification(found)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        rows = self._fetchall(
            """
            UPDATE notifications SET read = TRUE, updated_at = ?
            WHERE user_id = ? AND read = FALSE
            RETURNING id
            """,
            [_to_db(utcnow()), user_id],
        )
        return len(rows)

    async def delete_notification(self, user_id: str, notification_id: str) -> bool:
        row = self._fetchone(
            "DELETE FROM notifications WHERE id = ? AND user_id = ? RETURNING id",
            [notification_id, user_id],
        )
        return row is not None

    async def delete_all_notifications(self, user_id: str) -> int:
        rows = self._fetchall(
            "DELETE FROM notifications WHERE user_id = ? RETURNING id", [user_id]
        )
        return len(rows)
