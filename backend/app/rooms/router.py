"""Rooms router.

Endpoints:
    GET  /api/v1/rooms               - Caller's rooms, newest activity first (?search=)
    POST /api/v1/rooms               - Start a room with another user by email
    GET  /api/v1/rooms/{id}          - One room the caller belongs to
    POST /api/v1/rooms/{id}/leave    - Leave a room for good
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.auth.dependencies import get_current_user
from app.chat.manager import manager
from app.storage import PersistenceGateway, User, get_store

from .schemas import CreateRoomRequest
from .service import RoomService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


def _service(store: PersistenceGateway = Depends(get_store)) -> RoomService:
    return RoomService(store)


@router.get("")
async def list_rooms(
    search: Optional[str] = Query(None, description="Filter by room or participant name"),
    user: User = Depends(get_current_user),
    service: RoomService = Depends(_service),
) -> JSONResponse:
    rooms = await service.list_rooms(user.id, search)
    return JSONResponse({"rooms": [r.model_dump(mode="json") for r in rooms]})


@router.post("", status_code=201)
async def create_room(
    body: CreateRoomRequest,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(_service),
) -> JSONResponse:
    """Create a two-person room and push it to both participants' sockets."""
    room = await service.create_room(user.id, body.participantEmail, body.name)
    payload = {"room": room.model_dump(mode="json")}
    for participant in room.participants:
        await manager.emit_to_user(participant.id, "roomUpdated", payload)
    return JSONResponse(payload, status_code=201)


@router.get("/{room_id}")
async def get_room(
    room_id: str,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(_service),
) -> JSONResponse:
    room = await service.get_room(user.id, room_id)
    return JSONResponse({"room": room.model_dump(mode="json")})


@router.post("/{room_id}/leave")
async def leave_room(
    room_id: str,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(_service),
) -> JSONResponse:
    """Remove the caller from the room and from its live broadcast group."""
    room = await service.leave_room(user.id, room_id)
    removed = manager.remove_user_from_room(user.id, room.id)
    logger.info("[Rooms] User %s left room %s (%d socket(s) detached)", user.id, room.id, removed)
    return JSONResponse({"message": "Left the room successfully"})
