"""Booking status machine and the payment-captured callback."""

import logging
from typing import Optional

from freight_market.domain.enums import BookingStatus, EventName, IdPrefix, SenderRole, ShipmentStatus
from freight_market.domain.errors import NotFoundError, ValidationError
from freight_market.domain.models import Booking, Message, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log
from freight_market.services.booking_engine import announce_booking
from freight_market.services.identity import next_id
from freight_market.services.publisher import Publisher

logger = logging.getLogger(__name__)


S = BookingStatus

# Any recognised status may follow any other. The lifecycle graph has not been
# decided yet; tighten this map rather than adding checks elsewhere.
TRANSITION_MAP: dict[BookingStatus, set[BookingStatus]] = {
    current: set(BookingStatus) for current in BookingStatus
}

# Booking statuses mirrored onto the parent shipment
TERMINAL_SHIPMENT_STATUS: dict[BookingStatus, ShipmentStatus] = {
    S.DELIVERED: ShipmentStatus.DELIVERED,
    S.CANCELLED: ShipmentStatus.CANCELLED,
}


def parse_status(value) -> BookingStatus:
    """Map raw input to a BookingStatus or raise ValidationError."""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(f"invalid status: {value}")


class BookingStatusMachine:
    """Validates booking status transitions."""

    def validate_transition(self, current, target) -> BookingStatus:
        """Return the parsed target status, or raise ValidationError."""
        target_status = parse_status(target)
        current_status = parse_status(current)
        if target_status not in TRANSITION_MAP.get(current_status, set()):
            raise ValidationError(
                f"Transition from {current_status.value} to {target_status.value} is not allowed"
            )
        return target_status

    def get_allowed_transitions(self, current) -> list[BookingStatus]:
        return sorted(TRANSITION_MAP.get(parse_status(current), set()), key=list(BookingStatus).index)


state_machine = BookingStatusMachine()


async def get_booking(repo: MarketRepository, booking_id: str) -> Booking:
    booking = await repo.get_booking(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    return booking


async def update_booking_status(
    repo: MarketRepository,
    booking_id: str,
    status,
    actor_role: str = "transporter",
    publisher: Optional[Publisher] = None,
) -> Booking:
    """Move a booking to ``status``, post a system note and sync the shipment."""
    booking = await get_booking(repo, booking_id)
    target = state_machine.validate_transition(booking.status, status)

    now = utcnow()
    previous = booking.status
    booking.status = target.value
    booking.updated_at = now

    shipment = await repo.get_shipment(booking.shipment_id)
    mirrored = TERMINAL_SHIPMENT_STATUS.get(target)
    # The shipment only ever moves forward: BOOKED -> DELIVERED | CANCELLED
    if shipment is not None and mirrored is not None and shipment.status == ShipmentStatus.BOOKED.value:
        shipment.status = mirrored.value

    repo.add(
        Message(
            id=await next_id(repo, IdPrefix.MESSAGE),
            thread_id=booking.thread_id,
            sender_role=SenderRole.SYSTEM.value,
            sender_id=None,
            text=f"Status updated to {target.value}",
            ts=now,
        )
    )
    await repo.flush()
    await audit_log.record(repo, actor_role, "status", booking.id, f"Set status to {target.value}")
    await repo.commit()

    logger.info("Booking %s: %s -> %s (actor=%s)", booking.id, previous, target.value, actor_role)
    announce_booking(booking, shipment, publisher, EventName.BOOKING_UPDATE)
    return booking


async def mark_paid(
    repo: MarketRepository,
    booking_id: str,
    publisher: Optional[Publisher] = None,
) -> Booking:
    """Payment-provider callback (onPaymentCaptured). Repeated calls are no-ops."""
    booking = await get_booking(repo, booking_id)
    if booking.paid:
        logger.info("Booking %s already marked paid", booking.id)
        return booking

    booking.paid = True
    booking.updated_at = utcnow()
    await audit_log.record(repo, "payments", "payment", booking.id, "Payment captured")
    await repo.commit()

    shipment = await repo.get_shipment(booking.shipment_id)
    logger.info("Booking %s marked paid", booking.id)
    announce_booking(booking, shipment, publisher, EventName.BOOKING_UPDATE)
    return booking
