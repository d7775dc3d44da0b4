"""
Room membership lifecycle: join (with leave-on-join) and leave on disconnect
"""
import logging
from typing import Any, Dict, List

from . import leader
from .clock import current_position
from .protocol import Delivery, Event
from .state import Room, RoomRegistry

logger = logging.getLogger("jamsync")


def room_snapshot(room: Room, connection_id: str, now: float) -> Dict[str, Any]:
    """Full room state as seen by one member at `now`"""
    return {
        "isPlaying": room.is_playing,
        "currentTime": current_position(room, now),
        "trackUrl": room.track_url,
        "userCount": room.member_count,
        "isLeader": room.is_leader(connection_id),
    }


class MembershipManager:
    """Keeps each connection in at most one room and rooms free of ghosts."""

    def __init__(self, registry: RoomRegistry) -> None:
        self._registry = registry

    def join(self, connection_id: str, room_id: Any, now: float) -> List[Delivery]:
        if not isinstance(room_id, str):
            logger.warning("Ignoring join from %s: bad room id %r", connection_id, room_id)
            return []

        deliveries: List[Delivery] = []
        previous = self._registry.room_of(connection_id)
        if previous is not None and previous != room_id:
            deliveries.extend(self.leave(connection_id))

        room = self._registry.get_or_create(room_id, now)
        room.members.add(connection_id)
        self._registry.bind(connection_id, room_id)
        promoted = leader.on_member_joined(room, connection_id)

        logger.info("✅ %s joined %s (%d members)", connection_id, room_id, room.member_count)

        deliveries.append(Delivery(Event.ROOM_STATE, room_snapshot(room, connection_id, now), (connection_id,)))
        if promoted:
            deliveries.append(Delivery(Event.LEADER_STATUS, True, (connection_id,)))
        deliveries.append(Delivery(Event.USER_COUNT, room.member_count, tuple(room.members)))
        return deliveries

    def leave(self, connection_id: str) -> List[Delivery]:
        room_id = self._registry.unbind(connection_id)
        if room_id is None:
            return []
        room = self._registry.get(room_id)
        if room is None or connection_id not in room.members:
            return []

        room.members.discard(connection_id)
        logger.info("👋 %s left %s", connection_id, room_id)

        new_leader = None
        if room.leader_id == connection_id:
            new_leader = leader.on_leader_left(room)

        if not room.members:
            self._registry.remove(room_id)
            return []

        deliveries: List[Delivery] = []
        if new_leader is not None:
            deliveries.append(Delivery(Event.LEADER_STATUS, True, (new_leader,)))
        deliveries.append(Delivery(Event.USER_COUNT, room.member_count, tuple(room.members)))
        return deliveries
