#!/usr/bin/env python3
"""
jamsync - Entry Point
Leader-driven synchronized playback rooms over WebSocket + rate limiting
"""
import logging
import socket
import os
import time
from pathlib import Path
from aiohttp import web
from collections import defaultdict
from typing import Optional

from jamsync.api import HUB_KEY, SyncHub, api_health, api_rooms, ws_sync

logging.basicConfig(
    level=os.getenv("JAMSYNC_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("jamsync")

STATIC_DIR = Path(os.getenv('JAMSYNC_STATIC_DIR', './static'))
RATE_LIMIT = int(os.getenv('JAMSYNC_RATE_LIMIT', 100))
RATE_LIMIT_EXEMPT = ('/static', '/ws')

# Rate limiting storage
rate_limit_store = defaultdict(list)

async def index(request):
    return web.FileResponse(STATIC_DIR / 'index.html')

@web.middleware
async def rate_limit_middleware(request, handler):
    """Simple rate limiting: RATE_LIMIT requests per minute per IP"""
    ip = request.remote
    now = time.time()

    if request.path.startswith(RATE_LIMIT_EXEMPT):
        return await handler(request)

    # Clean old entries, dropping IPs with no recent requests
    for key in [k for k, stamps in rate_limit_store.items() if not stamps or now - stamps[-1] >= 60]:
        del rate_limit_store[key]
    rate_limit_store[ip] = [t for t in rate_limit_store[ip] if now - t < 60]

    if len(rate_limit_store[ip]) >= RATE_LIMIT:
        logger.warning(f"Rate limit exceeded for {ip}")
        return web.json_response(
            {"ok": False, "error": "Rate limit exceeded"},
            status=429
        )

    rate_limit_store[ip].append(now)
    return await handler(request)

def create_app(hub: Optional[SyncHub] = None) -> web.Application:
    """Create and configure the aiohttp application"""
    app = web.Application(middlewares=[rate_limit_middleware])
    app[HUB_KEY] = hub if hub is not None else SyncHub()

    # HTML routes
    if (STATIC_DIR / 'index.html').exists():
        app.router.add_get("/", index)
        app.router.add_get("/r/{room_id}", index)
        app.router.add_get("/r/{room_id}/", index)

    # API routes
    app.router.add_get("/health", api_health)
    app.router.add_get("/rooms", api_rooms)

    # WebSocket sync transport
    app.router.add_get("/ws", ws_sync)

    # Static files
    if STATIC_DIR.is_dir():
        app.router.add_static('/static', STATIC_DIR, name='static')

    logger.info("🎧 jamsync server ready")
    return app

def get_local_ip():
    """Get local WiFi IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "localhost"

def main():
    app = create_app()
    port = int(os.environ.get("PORT", 3000))
    host = os.environ.get("SERVER_HOST", "0.0.0.0")
    local_ip = get_local_ip()

    logger.info(f"🚀 Starting server on {host}:{port}")
    logger.info(f"💡 Access at: http://{local_ip}:{port}")

    web.run_app(app, host=host, port=port)

if __name__ == "__main__":
    main()
