"""PersistenceGateway abstract interface.

Everything above the storage layer talks to this interface. All operations
are coroutines; callers suspend on each one and other tasks may run in
between, so no sequence of calls is atomic. Room creation is the one
multi-row write done as a single operation.

Usage:
    from app.storage import get_store

    store = get_store()
    room = await store.get_room(room_id)
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .schemas import LastMessage, Message, Notification, Room, User, UserStatus


class PersistenceGateway(ABC):
    """Create/read/update/delete operations for the four document kinds."""

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    @abstractmethod
    async def create_user(self, user: User) -> User:
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_user_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def update_user(self, user: User) -> User:
        """Persist every mutable field of *user* and bump ``updatedAt``."""

    @abstractmethod
    async def set_user_status(self, user_id: str, status: UserStatus) -> bool:
        """Update presence only. Returns False when the user is unknown."""

    # -----------------------------------------------------------------------
    # Rooms
    # -----------------------------------------------------------------------

    @abstractmethod
    async def create_room(self, room: Room, opening_message: Optional[Message] = None) -> Room:
        """Insert a room, and optionally its first message, in one transaction.

        When *opening_message* is given it is stored in the same transaction
        and becomes the room's ``lastMessage``. Either both rows exist
        afterwards or neither does.
        """

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[Room]:
        ...

    @abstractmethod
    async def list_rooms_for_user(
        self, user_id: str, search: Optional[str] = None
    ) -> List[Room]:
        """Rooms the user participates in, newest ``lastMessage`` first.

        Rooms without a last message come after all others, ordered by
        ``updatedAt`` descending. *search* is a case-insensitive substring
        matched against the room name and every participant's first name,
        last name and username.
        """

    @abstractmethod
    async def set_room_last_message(
        self, room_id: str, last_message: LastMessage
    ) -> Optional[Room]:
        """Overwrite the room summary. Returns the updated room."""

    @abstractmethod
    async def reset_unread_count(self, room_id: str) -> None:
        ...

    @abstractmethod
    async def remove_participant(self, room_id: str, user_id: str) -> bool:
        ...

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    @abstractmethod
    async def create_message(self, message: Message) -> Message:
        ...

    @abstractmethod
    async def find_messages(
        self, room_id: str, before_id: Optional[str], limit: int
    ) -> List[Message]:
        """Up to *limit* messages with id < *before_id*, newest first."""

    @abstractmethod
    async def mark_messages_read(self, room_id: str, reader_id: str) -> int:
        """Flag unread messages not sent by *reader_id*. Returns rows changed."""

    # -----------------------------------------------------------------------
    # Notifications
    # -----------------------------------------------------------------------

    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    async def list_notifications(
        self, user_id: str, limit: int, skip: int
    ) -> List[Notification]:
        """The recipient's notifications, newest first."""

    @abstractmethod
    async def count_unread_notifications(self, user_id: str) -> int:
        ...

    @abstractmethod
    async def mark_notification_read(
        self, user_id: str, notification_id: str
    ) -> Optional[Notification]:
        """None when the notification does not exist or belongs to someone else."""

    @abstractmethod
    async def mark_all_notifications_read(self, user_id: str) -> int:
        ...

    @abstractmethod
    async def delete_notification(self, user_id: str, notification_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_all_notifications(self, user_id: str) -> int:
        ...

    def close(self) -> None:
        """Release underlying resources."""

