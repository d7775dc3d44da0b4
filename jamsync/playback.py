"""
Leader playback commands (play / pause / seek)

Only the room's leader may change playback. Anything else is rejected without
touching state and without producing a broadcast; the result is tagged so
callers can tell an applied command from a dropped one.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .clock import current_position
from .protocol import Delivery, Event, as_position
from .state import Room, RoomRegistry

logger = logging.getLogger("jamsync")


class RejectReason(str, Enum):
    UNAUTHORIZED = "unauthorized"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class Applied:
    room_id: str
    delivery: Delivery


@dataclass(frozen=True, slots=True)
class Rejected:
    reason: RejectReason
    detail: str = ""


CommandResult = Union[Applied, Rejected]

_MISSING = object()


class PlaybackProcessor:
    """Validates leader commands and applies them to room state."""

    def __init__(self, registry: RoomRegistry) -> None:
        self._registry = registry

    def handle(self, event: Event, connection_id: str, payload: Any, now: float) -> CommandResult:
        if event is Event.PLAY:
            return self.play(connection_id, payload, now)
        if event is Event.PAUSE:
            return self.pause(connection_id, payload, now)
        if event is Event.SEEK:
            return self.seek(connection_id, payload, now)
        return self._reject(RejectReason.MALFORMED, connection_id, f"not a playback command: {event.value}")

    def play(self, connection_id: str, payload: Any, now: float) -> CommandResult:
        room = self._authorize(connection_id, payload)
        if isinstance(room, Rejected):
            return room

        track_url = payload.get("trackUrl")
        if track_url is not None and not isinstance(track_url, str):
            return self._reject(RejectReason.MALFORMED, connection_id, "trackUrl must be a string")
        position = _MISSING
        if payload.get("currentTime") is not None:
            position = as_position(payload["currentTime"])
            if position is None:
                return self._reject(RejectReason.MALFORMED, connection_id, "invalid currentTime")

        if position is _MISSING:
            # resume from wherever the room clock is now
            position = current_position(room, now)
        if track_url is not None:
            room.track_url = track_url
        room.stored_position = position
        room.is_playing = True
        room.last_update = now

        logger.info("▶️ %s play %s at %.2fs", room.id, room.track_url, room.stored_position)
        return self._applied(room, connection_id, Event.PLAY, {
            "trackUrl": room.track_url,
            "currentTime": room.stored_position,
        })

    def pause(self, connection_id: str, payload: Any, now: float) -> CommandResult:
        room = self._authorize(connection_id, payload)
        if isinstance(room, Rejected):
            return room
        position = as_position(payload.get("currentTime"))
        if position is None:
            return self._reject(RejectReason.MALFORMED, connection_id, "pause needs currentTime")

        room.is_playing = False
        room.stored_position = position
        room.last_update = now

        logger.info("⏸️ %s pause at %.2fs", room.id, position)
        return self._applied(room, connection_id, Event.PAUSE, {"currentTime": position})

    def seek(self, connection_id: str, payload: Any, now: float) -> CommandResult:
        room = self._authorize(connection_id, payload)
        if isinstance(room, Rejected):
            return room
        position = as_position(payload.get("currentTime"))
        if position is None:
            return self._reject(RejectReason.MALFORMED, connection_id, "seek needs currentTime")

        room.stored_position = position
        room.last_update = now

        logger.info("⏩ %s seek to %.2fs", room.id, position)
        return self._applied(room, connection_id, Event.SEEK, {"currentTime": position})

    def _authorize(self, connection_id: str, payload: Any) -> Union[Room, Rejected]:
        if not isinstance(payload, dict):
            return self._reject(RejectReason.MALFORMED, connection_id, "payload must be an object")
        room_id = payload.get("roomId")
        if not isinstance(room_id, str):
            return self._reject(RejectReason.MALFORMED, connection_id, "missing roomId")
        # a command never creates a room: an unseen room has no leader
        room = self._registry.get(room_id)
        if room is None or not room.is_leader(connection_id):
            logger.debug("Ignoring command from non-leader %s in %s", connection_id, room_id)
            return Rejected(RejectReason.UNAUTHORIZED)
        return room

    @staticmethod
    def _applied(room: Room, sender: str, event: Event, data: Dict[str, Optional[object]]) -> Applied:
        recipients = tuple(m for m in room.members if m != sender)
        return Applied(room_id=room.id, delivery=Delivery(event, data, recipients))

    @staticmethod
    def _reject(reason: RejectReason, connection_id: str, detail: str) -> Rejected:
        logger.warning("Rejected command from %s: %s", connection_id, detail)
        return Rejected(reason, detail)
