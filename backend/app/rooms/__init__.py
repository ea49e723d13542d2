"""Rooms module: two-person rooms and participant checks."""

from .service import RoomService, require_participant, require_valid_id

__all__ = ["RoomService", "require_participant", "require_valid_id"]
