"""WebSocket endpoint for real-time marketplace events."""

import json
import logging
import uuid as uuid_mod
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from freight_market.app.config import get_settings
from freight_market.infra.database import open_session
from freight_market.infra.repository import MarketRepository
from freight_market.services.publisher import PUBLIC_ROOM, manager, user_room
from freight_market.services.session_service import resolve_session

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _resolve_user(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    async with open_session() as session:
        ctx = await resolve_session(MarketRepository(session), token)
    return ctx.user_id if ctx else None


@router.websocket("/ws")
async def marketplace_socket(websocket: WebSocket, token: Optional[str] = None):
    """Public events for everyone; ``dm:new`` only for the signed-in user.

    The session token is taken from ``?token=`` or the session cookie.
    Supported incoming messages:
        {"type": "ping"}  ->  server replies {"type": "pong"}
    """
    token = token or websocket.cookies.get(get_settings().session_cookie_name)
    user_id = await _resolve_user(token)

    rooms = [PUBLIC_ROOM]
    if user_id:
        rooms.append(user_room(user_id))

    client_id = f"ws_{uuid_mod.uuid4().hex[:8]}"
    await manager.connect(websocket, client_id, rooms)
    logger.info("WebSocket client connected: %s (user=%s)", client_id, user_id)
    await manager.send_json(client_id, {"type": "welcome", "data": {"rooms": rooms}})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await manager.send_json(client_id, {"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected: %s", client_id)
    except Exception as e:
        logger.error("WebSocket error for %s: %s", client_id, e)
    finally:
        manager.disconnect(client_id)
