"""Document models for users, rooms, messages and notifications.

Field names are the wire names (camelCase), so ``model_dump(mode="json")``
is what clients receive. The credential hash on :class:`User` is excluded
from every dump.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .ids import new_id

UserStatus = Literal["online", "offline", "away"]
Theme = Literal["light", "dark"]
MessageKind = Literal["system", "user"]
NotificationType = Literal["message", "room_invite", "system"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Account, presence and preference record."""
    id: str = Field(default_factory=new_id)
    firstName: str
    lastName: str
    username: str
    email: str
    password: str = Field(default="", exclude=True)
    avatar: Optional[str] = None
    status: UserStatus = "offline"
    notificationsEnabled: bool = True
    soundEnabled: bool = True
    theme: Theme = "light"
    onboardingCompleted: bool = False
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.firstName} {self.lastName}"


class Participant(BaseModel):
    """Copy of a user's display fields, frozen into a room at creation."""
    id: str
    firstName: str
    lastName: str
    username: str
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Participant":
        return cls(
            id=user.id,
            firstName=user.firstName,
            lastName=user.lastName,
            username=user.username,
            avatar=user.avatar,
        )

    @property
    def display_name(self) -> str:
        return f"{self.firstName} {self.lastName}"


class LastMessage(BaseModel):
    """Summary of the newest message, embedded in its room."""
    id: str
    content: str
    timestamp: datetime


class Room(BaseModel):
    """Two-person conversation."""
    id: str = Field(default_factory=new_id)
    name: Optional[str] = None
    participants: List[Participant] = Field(default_factory=list)
    lastMessage: Optional[LastMessage] = None
    unreadCount: int = 0
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

    def participant(self, user_id: str) -> Optional[Participant]:
        for p in self.participants:
            if p.id == user_id:
                return p
        return None

    def has_participant(self, user_id: str) -> bool:
        return self.participant(user_id) is not None


class Message(BaseModel):
    """One chat message. Only ``read`` changes after creation."""
    id: str = Field(default_factory=new_id)
    roomId: str
    senderId: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    read: bool = False
    type: MessageKind = "user"
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    """Per-recipient notice, e.g. about a new message."""
    id: str = Field(default_factory=new_id)
    userId: str
    type: NotificationType
    title: str
    body: str
    roomId: Optional[str] = None
    read: bool = False
    metadata: Optional[dict] = None
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
