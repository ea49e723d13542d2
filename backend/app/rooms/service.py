"""RoomService: room listing, creation and participant checks.

Participants are stored as snapshots of the users' display fields at the
moment the room is created. Later profile edits do not reach existing
rooms.
"""
import logging
from typing import List, Optional

from app.errors import NotFoundError, ValidationError
from app.storage import Message, Participant, PersistenceGateway, Room, is_valid_id

logger = logging.getLogger(__name__)

ROOM_NOT_FOUND = "Room not found"


def require_valid_id(value: object, label: str = "ID") -> str:
    """Reject ids that could never have been issued by the store.

    Raises:
        ValidationError: If *value* is not a well-formed id.
    """
    if not is_valid_id(value):
        raise ValidationError("Invalid ID format", f"The provided {label} is not valid")
    return value


async def require_participant(
    store: PersistenceGateway, room_id: object, user_id: str
) -> Room:
    """Load a room the caller belongs to.

    A missing room and a room the caller is not part of raise the same
    error, so callers cannot probe for room ids.

    Raises:
        ValidationError: Malformed room id.
        NotFoundError: Room missing, or caller not a participant.
    """
    require_valid_id(room_id, "room ID")
    room = await store.get_room(room_id)
    if room is None or not room.has_participant(user_id):
        raise NotFoundError(ROOM_NOT_FOUND, "User is not a participant of the room")
    return room


class RoomService:
    """Room operations on top of the persistence gateway."""

    def __init__(self, store: PersistenceGateway) -> None:
        self.store = store

    async def list_rooms(self, user_id: str, search: Optional[str] = None) -> List[Room]:
        search = search.strip() if search else None
        return await self.store.list_rooms_for_user(user_id, search or None)

    async def create_room(
        self, user_id: str, participant_email: Optional[str], name: Optional[str] = None
    ) -> Room:
        """Create a room with the user owning *participant_email*.

        A ``system`` message announcing the room is stored in the same
        transaction as the room and becomes its ``lastMessage``.

        Raises:
            ValidationError: Email missing, or it belongs to the caller.
            NotFoundError: No user with that email.
        """
        if not participant_email or not participant_email.strip():
            raise ValidationError("Bad Request", "Participant email is required")

        counterpart = await self.store.find_user_by_email(participant_email.strip())
        if counterpart is None:
            raise NotFoundError("Not Found", "User with this email does not exist")

        creator = await self.store.get_user(user_id)
        if creator is None:
            raise NotFoundError("Not Found", "Current user not found")
        if counterpart.id == creator.id:
            raise ValidationError("Bad Request", "Cannot start a room with yourself")

        room = Room(
            name=name,
            participants=[Participant.from_user(creator), Participant.from_user(counterpart)],
        )
        system_message = Message(
            roomId=room.id,
            senderId=creator.id,
            content=(
                f"{creator.display_name} created the room with {counterpart.display_name}."
            ),
            type="system",
        )
        room = await self.store.create_room(room, system_message)
        logger.info(
            "[Rooms] User %s created room %s with %s", creator.id, room.id, counterpart.id
        )
        return room

    async def get_room(self, user_id: str, room_id: str) -> Room:
        return await require_participant(self.store, room_id, user_id)

    async def leave_room(self, user_id: str, room_id: str) -> Room:
        """Remove the caller from the room's participants for good.

        The room itself stays; it simply stops appearing in the caller's list.
        """
        room = await require_participant(self.store, room_id, user_id)
        await self.store.remove_participant(room.id, user_id)
        logger.info("[Rooms] User %s left room %s", user_id, room.id)
        return room
