"""Payload schemas for client -> server WebSocket events.

Frames are JSON objects whose ``type`` names the event; the remaining
fields are the payload. Content and id checks that must produce specific
error messages happen in the pipeline, not here.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GetRoomsPayload(EventPayload):
    search: Optional[str] = None


class RoomPayload(EventPayload):
    roomId: str = Field(..., min_length=1)


class GetMessagesPayload(RoomPayload):
    limit: Optional[int] = None
    cursor: Optional[str] = None


class SendMessagePayload(RoomPayload):
    content: Any = None


class TypingPayload(RoomPayload):
    isTyping: bool = True


class GetNotificationsPayload(EventPayload):
    limit: Optional[int] = Field(default=None, ge=1)
    skip: int = Field(default=0, ge=0)


class PostMessageRequest(BaseModel):
    """REST body for posting a message; content is checked by the pipeline."""
    content: Any = None
