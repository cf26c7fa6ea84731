"""Server-Sent Events stream of public marketplace events."""

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from freight_market.app.config import get_settings
from freight_market.services.publisher import StreamSink, stream_sink

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

KEEP_ALIVE = ": keep-alive\n\n"


def format_frame(message: dict) -> str:
    """``event:`` / ``data:`` frame for one published envelope."""
    return f"event: {message['type']}\ndata: {json.dumps(message['data'])}\n\n"


async def event_stream(request: Request, sink: StreamSink, keepalive: float):
    queue = sink.subscribe()
    logger.info("SSE subscriber connected (%d open)", sink.subscriber_count)
    try:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                message = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield KEEP_ALIVE
                continue
            yield format_frame(message)
    finally:
        sink.unsubscribe(queue)
        logger.info("SSE subscriber disconnected (%d open)", sink.subscriber_count)


@router.get("/shipments")
async def shipment_events(request: Request):
    """Stream ``shipment:new``, ``quote:new``, ``booking:new`` and ``booking:update``."""
    return StreamingResponse(
        event_stream(request, stream_sink, get_settings().sse_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
