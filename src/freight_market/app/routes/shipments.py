"""Shipment feed, posting, flagging and per-shipment quotes."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from freight_market.app.routes.auth import get_session_dep
from freight_market.domain.schemas import FlagCreate, QuoteCreate, ShipmentCreate
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import quote_ledger, shipment_store
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import (
    booking_view,
    dump,
    flag_view,
    quote_view,
    shipment_detail_view,
    shipment_view,
)
from freight_market.services.session_service import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shipments", tags=["shipments"])


@router.get("")
async def list_shipments(
    status: Optional[str] = None,
    pickup_contains: Optional[str] = Query(None, alias="pickupContains"),
    dropoff_contains: Optional[str] = Query(None, alias="dropoffContains"),
    service: Optional[str] = None,
    adr: Optional[bool] = None,
    earliest_date: Optional[date] = Query(None, alias="earliestDate"),
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    repo: MarketRepository = Depends(get_repository),
):
    """Visible shipments, newest first. Follow ``nextCursor`` for the next page."""
    filters = shipment_store.build_filters(
        status=status,
        pickup_contains=pickup_contains,
        dropoff_contains=dropoff_contains,
        service=service,
        adr=adr,
        earliest_date=earliest_date,
    )
    page = await shipment_store.query_shipments(repo, filters, cursor=cursor, limit=limit)
    return {
        "ok": True,
        "data": [dump(shipment_view(s)) for s in page.items],
        "nextCursor": page.next_cursor,
    }


@router.post("")
async def create_shipment(
    data: ShipmentCreate,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    shipment = await shipment_store.create_shipment(
        repo,
        data,
        owner_id=session.user_id if session else None,
        publisher=publisher,
        actor=session.role if session else "shipper",
    )
    return {"ok": True, "data": dump(shipment_view(shipment))}


@router.get("/{shipment_id}")
async def get_shipment(shipment_id: str, repo: MarketRepository = Depends(get_repository)):
    shipment = await shipment_store.get_shipment(repo, shipment_id)
    quotes = await quote_ledger.list_quotes(repo, shipment.id)
    return {"ok": True, "data": dump(shipment_detail_view(shipment, quotes))}


@router.post("/{shipment_id}/flag")
async def flag_shipment(
    shipment_id: str,
    data: Optional[FlagCreate] = None,
    repo: MarketRepository = Depends(get_repository),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    reason = data.reason if data else ""
    reporter = (session.user_id or session.role) if session else None
    flag = await shipment_store.flag_shipment(repo, shipment_id, reason, reporter)
    shipment = await shipment_store.get_shipment(repo, shipment_id)
    return {"ok": True, "data": dump(flag_view(flag, shipment))}


@router.get("/{shipment_id}/quotes")
async def list_shipment_quotes(shipment_id: str, repo: MarketRepository = Depends(get_repository)):
    await shipment_store.get_shipment(repo, shipment_id)
    quotes = await quote_ledger.list_quotes(repo, shipment_id)
    return {"ok": True, "data": [dump(quote_view(q)) for q in quotes]}


@router.post("/{shipment_id}/quotes")
async def submit_quote(
    shipment_id: str,
    data: QuoteCreate,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    if session is not None and session.user_id and not data.transporter_user_id:
        data = data.model_copy(update={"transporter_user_id": session.user_id})
    quote = await quote_ledger.submit_quote(repo, shipment_id, data, publisher=publisher)
    return {"ok": True, "data": dump(quote_view(quote))}


@router.post("/{shipment_id}/quotes/{quote_id}/accept")
async def accept_quote(
    shipment_id: str,
    quote_id: str,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    result = await quote_ledger.accept_quote(
        repo,
        quote_id,
        shipment_id=shipment_id,
        publisher=publisher,
        actor=session.role if session else "shipper",
    )
    shipment = await shipment_store.get_shipment(repo, result.booking.shipment_id)
    return {
        "ok": True,
        "data": dump(booking_view(result.booking, shipment)),
        "threadId": result.thread_id,
    }
