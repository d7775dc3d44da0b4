"""
Leader assignment per room: first joiner leads, any remaining member takes
over when the leader leaves. Leadership never moves while the leader is
connected.
"""
import logging
from typing import Optional

from .state import Room

logger = logging.getLogger("jamsync")


def on_member_joined(room: Room, connection_id: str) -> bool:
    """Promote the joiner if the room has no leader. Returns True on promotion."""
    if room.leader_id is not None:
        return False
    room.leader_id = connection_id
    logger.info("👑 %s leads room %s", connection_id, room.id)
    return True


def on_leader_left(room: Room) -> Optional[str]:
    """Hand leadership to a remaining member, or clear it if none remain.

    Must be called after the departing leader was removed from `members`.
    Returns the new leader id, or None when the room is now empty.
    """
    if not room.members:
        room.leader_id = None
        return None
    room.leader_id = next(iter(room.members))
    logger.info("👑 Leadership of %s passed to %s", room.id, room.leader_id)
    return room.leader_id
