"""Direct messages between signed-in users."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from freight_market.app.routes.auth import require_session_user
from freight_market.domain.schemas import DMMessageCreate, DMThreadCreate
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import dm_service
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import dm_message_view, dm_thread_view, dump
from freight_market.services.session_service import SessionContext

router = APIRouter(prefix="/api/dm", tags=["dm"])


@router.get("/threads")
async def list_threads(
    session: SessionContext = Depends(require_session_user),
    repo: MarketRepository = Depends(get_repository),
):
    threads = await dm_service.list_threads(repo, session.user_id)
    return {"ok": True, "data": [dump(dm_thread_view(t, session.user_id)) for t in threads]}


@router.post("/threads")
async def open_thread(
    data: DMThreadCreate,
    session: SessionContext = Depends(require_session_user),
    repo: MarketRepository = Depends(get_repository),
):
    """Get or create the caller's thread with ``userId``."""
    thread, created = await dm_service.get_or_create_thread(repo, session.user_id, data.user_id)
    return {"ok": True, "data": dump(dm_thread_view(thread, session.user_id)), "created": created}


@router.get("/messages")
async def list_messages(
    thread_id: Optional[str] = Query(None, alias="threadId"),
    limit: Optional[int] = Query(None, ge=1),
    session: SessionContext = Depends(require_session_user),
    repo: MarketRepository = Depends(get_repository),
):
    messages = await dm_service.list_messages(repo, thread_id or "", session.user_id, limit)
    return {"ok": True, "data": [dump(dm_message_view(m)) for m in messages]}


@router.post("/messages")
async def send_message(
    data: DMMessageCreate,
    session: SessionContext = Depends(require_session_user),
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
):
    message = await dm_service.send_message(
        repo,
        session.user_id,
        data.text,
        thread_id=data.thread_id,
        to_user_id=data.to_user_id,
        publisher=publisher,
    )
    return {"ok": True, "data": dump(dm_message_view(message))}
