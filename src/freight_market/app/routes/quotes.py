"""Flat quote endpoints used by older clients (shipment named in query/body)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from freight_market.app.routes.auth import get_session_dep
from freight_market.domain.schemas import LegacyQuoteCreate, QuoteCreate
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import quote_ledger, shipment_store
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import booking_view, dump, quote_view
from freight_market.services.session_service import SessionContext

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.get("")
async def list_quotes(
    shipment_id: Optional[str] = Query(None, alias="shipmentId"),
    repo: MarketRepository = Depends(get_repository),
):
    quotes = await quote_ledger.list_quotes(repo, shipment_id or "")
    return {"ok": True, "data": [dump(quote_view(q)) for q in quotes]}


@router.post("")
async def submit_quote(
    data: LegacyQuoteCreate,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    fields = QuoteCreate.model_validate(data.model_dump(exclude={"shipment_id"}))
    if session is not None and session.user_id and not fields.transporter_user_id:
        fields = fields.model_copy(update={"transporter_user_id": session.user_id})
    quote = await quote_ledger.submit_quote(repo, data.shipment_id, fields, publisher=publisher)
    return {"ok": True, "data": dump(quote_view(quote))}


@router.post("/{quote_id}/accept")
async def accept_quote(
    quote_id: str,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    result = await quote_ledger.accept_quote(
        repo, quote_id, publisher=publisher, actor=session.role if session else "shipper"
    )
    shipment = await shipment_store.get_shipment(repo, result.booking.shipment_id)
    return {
        "ok": True,
        "data": dump(booking_view(result.booking, shipment)),
        "threadId": result.thread_id,
    }
