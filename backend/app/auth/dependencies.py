"""FastAPI dependencies resolving the authenticated caller."""
from typing import Optional

from fastapi import Depends, Header

from app.errors import AuthenticationError
from app.storage import PersistenceGateway, User, get_store

from .security import bearer_token, decode_access_token


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    store: PersistenceGateway = Depends(get_store),
) -> User:
    """Resolve ``Authorization: Bearer <jwt>`` to an existing user.

    Raises:
        AuthenticationError: Missing header, bad token, or unknown user.
    """
    token = bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Authorization token required")

    user_id = decode_access_token(token)
    user = await store.get_user(user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user
