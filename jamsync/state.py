"""
In-memory state for sync rooms
Rooms are created on first reference and dropped the moment they empty.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Set

logger = logging.getLogger("jamsync")


@dataclass(slots=True)
class Room:
    id: str
    leader_id: Optional[str] = None
    is_playing: bool = False
    stored_position: float = 0.0
    last_update: float = field(default_factory=time.monotonic)
    track_url: Optional[str] = None
    members: Set[str] = field(default_factory=set)

    @property
    def member_count(self) -> int:
        return len(self.members)

    def is_leader(self, connection_id: str) -> bool:
        return self.leader_id is not None and self.leader_id == connection_id


class RoomRegistry:
    """Owns room_id -> Room and the connection_id -> room_id index."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Room] = {}
        self._room_of: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str, now: Optional[float] = None) -> Room:
        """Return the room, creating a fresh paused one if it is unseen"""
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(id=room_id, last_update=time.monotonic() if now is None else now)
            self._rooms[room_id] = room
            logger.info("🎪 Room created: %s", room_id)
        return room

    def remove(self, room_id: str) -> None:
        room = self._rooms.pop(room_id, None)
        if room is None:
            return
        for connection_id in room.members:
            if self._room_of.get(connection_id) == room_id:
                del self._room_of[connection_id]
        logger.info("🛑 Room removed: %s", room_id)

    def room_of(self, connection_id: str) -> Optional[str]:
        return self._room_of.get(connection_id)

    def bind(self, connection_id: str, room_id: str) -> None:
        self._room_of[connection_id] = room_id

    def unbind(self, connection_id: str) -> Optional[str]:
        return self._room_of.pop(connection_id, None)
