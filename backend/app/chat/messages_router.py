"""Message history router.

Endpoints:
    GET  /api/v1/rooms/chat/{id}/messages       - Page of history (?limit=&cursor=)
    POST /api/v1/rooms/chat/{id}/messages       - Send a message (same pipeline as the socket)
    POST /api/v1/rooms/chat/{id}/messages/read  - Mark the other side's messages read
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.auth.dependencies import get_current_user
from app.storage import PersistenceGateway, User, get_store

from .manager import manager
from .pipeline import MessagePipeline
from .schemas import PostMessageRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/rooms/chat", tags=["messages"])


def _pipeline(store: PersistenceGateway = Depends(get_store)) -> MessagePipeline:
    return MessagePipeline(store, manager)


@router.get("/{room_id}/messages")
async def get_messages(
    room_id: str,
    limit: Optional[int] = Query(None, description="Page size, clamped to the configured maximum"),
    cursor: Optional[str] = Query(None, description="Id of the oldest message already loaded"),
    user: User = Depends(get_current_user),
    pipeline: MessagePipeline = Depends(_pipeline),
) -> JSONResponse:
    """Return one page of history, oldest message first.

    Pass ``pagination.nextCursor`` back as ``cursor`` to load older messages.
    """
    page = await pipeline.get_messages(user.id, room_id, limit=limit, cursor=cursor)
    return JSONResponse(page.to_dict())


@router.post("/{room_id}/messages", status_code=201)
async def post_message(
    room_id: str,
    body: PostMessageRequest,
    user: User = Depends(get_current_user),
    pipeline: MessagePipeline = Depends(_pipeline),
) -> JSONResponse:
    message = await pipeline.send_message(user.id, room_id, body.content)
    return JSONResponse({"message": message.model_dump(mode="json")}, status_code=201)


@router.post("/{room_id}/messages/read")
async def mark_read(
    room_id: str,
    user: User = Depends(get_current_user),
    pipeline: MessagePipeline = Depends(_pipeline),
) -> JSONResponse:
    await pipeline.mark_messages_read(user.id, room_id)
    return JSONResponse({"message": "Messages marked as read"})
