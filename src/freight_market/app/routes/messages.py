"""Booking thread messages."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from freight_market.app.routes.auth import get_session_dep
from freight_market.domain.schemas import MessageCreate
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import messaging
from freight_market.services.serializers import dump, message_view
from freight_market.services.session_service import SessionContext

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("")
async def list_messages(
    thread_id: Optional[str] = Query(None, alias="threadId"),
    limit: Optional[int] = Query(None, ge=1),
    repo: MarketRepository = Depends(get_repository),
):
    messages = await messaging.list_messages(repo, thread_id or "", limit)
    return {"ok": True, "data": [dump(message_view(m)) for m in messages]}


@router.post("")
async def post_message(
    data: MessageCreate,
    repo: MarketRepository = Depends(get_repository),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    sender_role = data.sender_role or (session.role if session else None)
    message = await messaging.post_message(
        repo,
        data.thread_id,
        data.text,
        sender_role=sender_role,
        sender_id=session.user_id if session else None,
    )
    return {"ok": True, "data": dump(message_view(message))}
