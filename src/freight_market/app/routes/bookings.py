"""Bookings, booking status updates and the payment-captured callback."""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from freight_market.app.config import get_settings
from freight_market.app.routes.auth import get_session_dep
from freight_market.domain.errors import AuthorizationError
from freight_market.domain.schemas import BookingCreate, BookingStatusUpdate, PaymentCaptured
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services import booking_status, quote_ledger
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import booking_view, dump
from freight_market.services.session_service import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])
payments_router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("")
async def list_bookings(repo: MarketRepository = Depends(get_repository)):
    bookings = await repo.list_bookings()
    shipments = await repo.shipments_by_ids({b.shipment_id for b in bookings})
    return {"ok": True, "data": [dump(booking_view(b, shipments.get(b.shipment_id))) for b in bookings]}


@router.get("/{booking_id}")
async def get_booking(booking_id: str, repo: MarketRepository = Depends(get_repository)):
    booking = await booking_status.get_booking(repo, booking_id)
    shipment = await repo.get_shipment(booking.shipment_id)
    data = dump(booking_view(booking, shipment))
    allowed = booking_status.state_machine.get_allowed_transitions(booking.status)
    data["allowedTransitions"] = [s.value for s in allowed]
    return {"ok": True, "data": data}


@router.post("")
async def create_booking(
    data: BookingCreate,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    """Book a shipment by accepting one of its quotes."""
    result = await quote_ledger.accept_quote(
        repo, data.quote_id, publisher=publisher, actor=session.role if session else "shipper"
    )
    shipment = await repo.get_shipment(result.booking.shipment_id)
    return {
        "ok": True,
        "data": dump(booking_view(result.booking, shipment)),
        "threadId": result.thread_id,
    }


@router.post("/{booking_id}/status")
async def update_status(
    booking_id: str,
    data: BookingStatusUpdate,
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
    session: Optional[SessionContext] = Depends(get_session_dep),
):
    booking = await booking_status.update_booking_status(
        repo,
        booking_id,
        data.status,
        actor_role=session.role if session else "transporter",
        publisher=publisher,
    )
    shipment = await repo.get_shipment(booking.shipment_id)
    return {"ok": True, "data": dump(booking_view(booking, shipment))}


@payments_router.post("/captured")
async def payment_captured(
    data: PaymentCaptured,
    x_payment_secret: Optional[str] = Header(None),
    repo: MarketRepository = Depends(get_repository),
    publisher: Publisher = Depends(get_publisher),
):
    """Payment provider callback: marks the booking paid."""
    secret = get_settings().payment_webhook_secret
    if secret and not hmac.compare_digest(x_payment_secret or "", secret):
        logger.warning("Payment callback for %s rejected: bad secret", data.booking_id)
        raise AuthorizationError("invalid payment secret", forbidden=True)

    booking = await booking_status.mark_paid(repo, data.booking_id, publisher=publisher)
    shipment = await repo.get_shipment(booking.shipment_id)
    return {"ok": True, "data": dump(booking_view(booking, shipment))}
