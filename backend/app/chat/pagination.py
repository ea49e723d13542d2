"""Cursor-based backward pagination over a room's messages.

The cursor is a message id. Ids sort in creation order, so "older than the
cursor" is simply ``id < cursor``. Each page is fetched newest-first and
returned oldest-first for display.

``hasMore`` is ``len(page) == limit``: when exactly ``limit`` messages
remain, the next request returns an empty page with ``hasMore`` false.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.config import get_config
from app.errors import ValidationError
from app.storage import Message, PersistenceGateway, is_valid_id


@dataclass
class MessagePage:
    """One page of history, oldest message first.

    Attributes:
        messages: The page, in chronological order.
        has_more: Whether an older page may exist.
        next_cursor: Id of the oldest message on this page, or None if empty.
    """
    messages: List[Message]
    has_more: bool
    next_cursor: Optional[str]

    def pagination(self) -> Dict[str, Any]:
        return {"hasMore": self.has_more, "nextCursor": self.next_cursor}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "pagination": self.pagination(),
        }


def normalize_limit(limit: Any) -> int:
    """Apply the configured default and ceiling to a requested page size.

    Raises:
        ValidationError: If *limit* is not a positive integer.
    """
    settings = get_config().pagination
    if limit is None:
        return settings.default_page_size
    if isinstance(limit, bool):
        raise ValidationError("Invalid limit", "limit must be a positive integer")
    try:
        value = int(limit)
    except (TypeError, ValueError):
        raise ValidationError("Invalid limit", "limit must be a positive integer")
    if value < 1:
        raise ValidationError("Invalid limit", "limit must be a positive integer")
    return min(value, settings.max_page_size)


async def paginate_messages(
    store: PersistenceGateway,
    room_id: str,
    limit: Any = None,
    cursor: Optional[str] = None,
) -> MessagePage:
    """Fetch the page of messages older than *cursor*.

    Args:
        store: Persistence gateway.
        room_id: Room to read. Participation must be checked by the caller.
        limit: Requested page size (default and ceiling from config).
        cursor: Id of the oldest message already seen; None for the newest page.

    Returns:
        MessagePage with messages oldest-first.
    """
    page_size = normalize_limit(limit)
    cursor = cursor or None
    if cursor is not None and not is_valid_id(cursor):
        raise ValidationError("Invalid cursor", "The provided cursor is not valid")

    newest_first = await store.find_messages(room_id, cursor, page_size)
    next_cursor = newest_first[-1].id if newest_first else None
    return MessagePage(
        messages=list(reversed(newest_first)),
        has_more=len(newest_first) == page_size,
        next_cursor=next_cursor,
    )
