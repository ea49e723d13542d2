"""Persistence gateway and its DuckDB implementation."""

from app.config import get_config

from .duckdb_store import DuckDBStore
from .gateway import PersistenceGateway
from .ids import is_valid_id, new_id
from .schemas import (
    LastMessage,
    Message,
    Notification,
    Participant,
    Room,
    User,
)


def get_store() -> PersistenceGateway:
    """Return the shared store, opening it from config on first use."""
    return DuckDBStore.get_instance(get_config().database.path)


__all__ = [
    "DuckDBStore",
    "LastMessage",
    "Message",
    "Notification",
    "Participant",
    "PersistenceGateway",
    "Room",
    "User",
    "get_store",
    "is_valid_id",
    "new_id",
]
