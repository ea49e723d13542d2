"""Handshake authentication for WebSocket connections.

The token is read from the ``token`` query parameter first, then from an
``Authorization: Bearer`` header. A connection that fails here is closed
before any event is read.
"""
import logging
from typing import Optional

from fastapi import WebSocket

from app.auth.security import bearer_token, decode_access_token
from app.errors import AuthenticationError
from app.storage import PersistenceGateway, User

from .presence import PresenceTracker

logger = logging.getLogger(__name__)

NO_TOKEN = "Authentication error: No token provided"
INVALID_TOKEN = "Authentication error: Invalid token"


def extract_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token and token.strip():
        return token.strip()
    return bearer_token(websocket.headers.get("authorization"))


async def authenticate_connection(
    websocket: WebSocket, store: PersistenceGateway
) -> User:
    """Resolve the handshake token to a user and mark them online.

    Raises:
        AuthenticationError: With a client-facing ``Authentication error: ...``
            message when the token is missing or unusable.
    """
    token = extract_token(websocket)
    if token is None:
        raise AuthenticationError(NO_TOKEN)

    try:
        user_id = decode_access_token(token)
        user = await store.get_user(user_id)
        if user is None:
            raise AuthenticationError(INVALID_TOKEN)
        await PresenceTracker(store).mark_online(user.id)
    except AuthenticationError as exc:
        raise AuthenticationError(INVALID_TOKEN) from exc
    except Exception as exc:
        logger.error(f"[WS] Handshake failed while resolving token: {exc}")
        raise AuthenticationError(INVALID_TOKEN) from exc

    user.status = "online"
    return user
