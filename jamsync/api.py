"""
HTTP + WebSocket handlers for jamsync
The WebSocket endpoint is the transport: it maps sockets to connection ids,
feeds events into the sync core and delivers whatever the core hands back.
"""
import hashlib
import json
import logging
import time
from typing import Any, Dict, Iterable, Optional

from aiohttp import web

from .clock import current_position
from .membership import MembershipManager
from .playback import Applied, PlaybackProcessor
from .protocol import Delivery, Event, decode_message, encode_message
from .state import RoomRegistry
from .utils import generate_connection_id

logger = logging.getLogger("jamsync")

PLAYBACK_EVENTS = (Event.PLAY, Event.PAUSE, Event.SEEK)


class SyncHub:
    """Owns the room registry for the lifetime of the app"""

    def __init__(self, registry: Optional[RoomRegistry] = None) -> None:
        self.registry = registry if registry is not None else RoomRegistry()
        self.membership = MembershipManager(self.registry)
        self.playback = PlaybackProcessor(self.registry)
        self.connections: Dict[str, web.WebSocketResponse] = {}

    async def dispatch(self, connection_id: str, event_name: str, data: Any) -> None:
        """Apply one client event and deliver the results"""
        now = time.monotonic()
        try:
            event = Event(event_name)
        except ValueError:
            logger.warning("Unknown event %r from %s", event_name, connection_id)
            return

        if event is Event.JOIN_ROOM:
            await self.deliver(self.membership.join(connection_id, data, now))
        elif event in PLAYBACK_EVENTS:
            result = self.playback.handle(event, connection_id, data, now)
            if isinstance(result, Applied):
                await self.deliver([result.delivery])
        else:
            logger.warning("Event %s is server-only, ignored from %s", event.value, connection_id)

    async def disconnect(self, connection_id: str) -> None:
        self.connections.pop(connection_id, None)
        await self.deliver(self.membership.leave(connection_id))

    async def deliver(self, deliveries: Iterable[Delivery]) -> None:
        for delivery in deliveries:
            message = encode_message(delivery.event, delivery.data)
            for connection_id in delivery.recipients:
                ws = self.connections.get(connection_id)
                if ws is None or ws.closed:
                    continue
                try:
                    await ws.send_str(message)
                except Exception as e:
                    logger.debug(f"Failed to send to {connection_id}: {e}")


HUB_KEY = web.AppKey("hub", SyncHub)

# ============================================================
# WEBSOCKET TRANSPORT
# ============================================================

async def ws_sync(request: web.Request) -> web.WebSocketResponse:
    """WebSocket endpoint carrying the room sync protocol"""
    hub = request.app[HUB_KEY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    connection_id = generate_connection_id()
    hub.connections[connection_id] = ws
    logger.info("🔌 Connected: %s (total: %d)", connection_id, len(hub.connections))

    try:
        await ws.send_str(encode_message(Event.CONNECTED, {"connectionId": connection_id}))
        async for msg in ws:
            if msg.type != web.WSMsgType.TEXT:
                continue
            # keepalive
            if msg.data == "ping":
                await ws.send_str("pong")
                continue
            envelope = decode_message(msg.data)
            if envelope is None:
                logger.warning("Dropping malformed frame from %s", connection_id)
                continue
            await hub.dispatch(connection_id, envelope["event"], envelope["data"])
    except Exception as e:
        logger.debug(f"WebSocket error: {e}")
    finally:
        await hub.disconnect(connection_id)
        logger.info("🔌 Disconnected: %s (remaining: %d)", connection_id, len(hub.connections))

    return ws

# ============================================================
# HTTP ENDPOINTS
# ============================================================

async def api_health(request: web.Request) -> web.Response:
    """Liveness check with aggregate counts"""
    hub = request.app[HUB_KEY]
    return web.json_response({
        "ok": True,
        "rooms": len(hub.registry),
        "connections": len(hub.connections),
    })


def get_rooms_data(hub: SyncHub, now: float) -> list:
    items = []
    for room in hub.registry:
        items.append({
            "id": room.id,
            "memberCount": room.member_count,
            "isPlaying": room.is_playing,
            "currentTime": current_position(room, now),
            "trackUrl": room.track_url,
        })
    return items


async def api_rooms(request: web.Request) -> web.Response:
    """List active rooms with ETag caching"""
    items = get_rooms_data(request.app[HUB_KEY], time.monotonic())

    content = json.dumps(items, sort_keys=True)
    etag = hashlib.md5(content.encode()).hexdigest()

    if request.headers.get("If-None-Match") == etag:
        return web.Response(status=304)

    response = web.json_response({"ok": True, "rooms": items})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "max-age=5"
    return response
