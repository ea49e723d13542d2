"""Presence tracking: online on connect, offline on disconnect."""
import logging

from app.storage import PersistenceGateway

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Writes a user's ``status`` through the persistence gateway."""

    def __init__(self, store: PersistenceGateway) -> None:
        self.store = store

    async def mark_online(self, user_id: str) -> None:
        """Set ``status=online``. Errors propagate to the handshake."""
        await self.store.set_user_status(user_id, "online")
        logger.debug(f"[Presence] User {user_id} online")

    async def mark_offline(self, user_id: str) -> bool:
        """Set ``status=offline``.

        Failures are logged and swallowed: disconnect teardown must finish
        regardless, and the write is not retried.

        Returns:
            True if the status was written.
        """
        try:
            updated = await self.store.set_user_status(user_id, "offline")
        except Exception as exc:
            logger.error(f"[Presence] Could not mark user {user_id} offline: {exc}")
            return False
        logger.debug(f"[Presence] User {user_id} offline")
        return updated
