"""Booking transition engine: the only producer of Booking entities.

Turns an accepted quote into a booking plus its coordination thread. The
caller owns the transaction; ``announce_booking`` is called once it has been
committed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from freight_market.domain.enums import BookingStatus, EventName, IdPrefix, SenderRole
from freight_market.domain.models import Booking, Message, Quote, Shipment, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services.identity import next_id
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import booking_view, dump

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingResult:
    booking: Booking
    thread_id: str
    welcome_message: Message


def welcome_text(shipment_id: str) -> str:
    return f"Booking created for shipment {shipment_id}. Use this thread to coordinate."


async def create_booking(repo: MarketRepository, quote: Quote, shipment: Shipment) -> BookingResult:
    """Create exactly one booking and one seeded thread for an accepted quote."""
    now = utcnow()
    thread_id = await next_id(repo, IdPrefix.THREAD)
    booking = Booking(
        id=await next_id(repo, IdPrefix.BOOKING),
        shipment_id=shipment.id,
        quote_id=quote.id,
        transporter_company=quote.company_name or "",
        price=quote.price or 0,
        status=BookingStatus.BOOKED.value,
        thread_id=thread_id,
        paid=False,
        created_at=now,
        updated_at=now,
    )
    repo.add(booking)

    welcome = Message(
        id=await next_id(repo, IdPrefix.MESSAGE),
        thread_id=thread_id,
        sender_role=SenderRole.SYSTEM.value,
        sender_id=None,
        text=welcome_text(shipment.id),
        ts=now,
    )
    repo.add(welcome)
    await repo.flush()

    logger.info("Booking %s created for shipment %s from quote %s", booking.id, shipment.id, quote.id)
    return BookingResult(booking=booking, thread_id=thread_id, welcome_message=welcome)


def announce_booking(
    booking: Booking,
    shipment: Optional[Shipment],
    publisher: Optional[Publisher] = None,
    event: EventName = EventName.BOOKING_NEW,
) -> dict:
    """Publish the denormalised booking view; returns the payload sent."""
    payload = dump(booking_view(booking, shipment))
    (publisher or get_publisher()).emit_public(event.value, payload)
    return payload
