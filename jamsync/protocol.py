"""
Event names and envelope helpers for the room sync WebSocket.

Every frame is a JSON object {"event": <name>, "data": <payload>}. Handlers
in the core never touch sockets; they return Delivery records whose
recipients were resolved at the moment the room state changed.
"""
import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, TypedDict


class Event(str, Enum):
    # client -> server
    JOIN_ROOM = "join-room"
    # server -> client
    CONNECTED = "connected"
    ROOM_STATE = "room-state"
    LEADER_STATUS = "leader-status"
    USER_COUNT = "user-count"
    # both directions
    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"


class Envelope(TypedDict):
    event: str
    data: Any


@dataclass(frozen=True, slots=True)
class Delivery:
    """One event to hand to the transport for a fixed set of connections."""

    event: Event
    data: Any
    recipients: Tuple[str, ...]


def encode_message(event: Event, data: Any) -> str:
    envelope: Envelope = {"event": event.value, "data": data}
    return json.dumps(envelope, separators=(",", ":"))


def decode_message(raw: str) -> Optional[Envelope]:
    """Parse a client frame. Returns None for anything that is not an envelope."""
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
        return None
    return {"event": envelope["event"], "data": envelope.get("data")}


def as_position(value: Any) -> Optional[float]:
    """A finite, non-negative number of seconds, or None"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)
