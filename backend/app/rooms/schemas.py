"""Pydantic schemas for the rooms endpoints."""
from typing import Optional

from pydantic import BaseModel, Field


class CreateRoomRequest(BaseModel):
    """Request body for starting a conversation with another user."""
    participantEmail: Optional[str] = Field(default=None, description="Counterpart's email")
    name: Optional[str] = Field(default=None, max_length=100)
