"""
Playback clock extrapolation
"""
from .state import Room


def current_position(room: Room, now: float) -> float:
    """Position of the room's track at `now`, in seconds.

    A paused room reports its stored position unchanged. A playing room adds
    the wall-clock time elapsed since the position was last set. The result is
    never negative; no upper bound is applied since track duration is only
    known to the players.
    """
    if not room.is_playing:
        return room.stored_position
    return max(0.0, room.stored_position + (now - room.last_update))
