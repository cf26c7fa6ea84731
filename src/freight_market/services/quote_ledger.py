"""Quote ledger: submitting quotes and the accept → booking transition.

Acceptance invariants:
- at most one quote per shipment ever reaches ACCEPTED;
- accepting one quote rejects every other ACTIVE quote of the shipment;
- the shipment flips OPEN → BOOKED only after the quote updates, in the same
  transaction, and exactly one booking is created.

Submission and acceptance on a shipment run under a per-shipment lock, and
the shipment flip is a compare-and-swap, so two concurrent accepts cannot
both observe OPEN.
"""

import logging
from typing import Optional

from freight_market.domain.enums import EventName, IdPrefix, QuoteStatus, ShipmentStatus
from freight_market.domain.errors import ConflictError, NotFoundError, ValidationError
from freight_market.domain.models import Quote, utcnow
from freight_market.domain.schemas import QuoteCreate
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log
from freight_market.services.booking_engine import BookingResult, announce_booking, create_booking
from freight_market.services.identity import next_id
from freight_market.services.locks import KeyedLock
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import dump, quote_view

logger = logging.getLogger(__name__)


shipment_locks = KeyedLock()


async def submit_quote(
    repo: MarketRepository,
    shipment_id: str,
    data: QuoteCreate,
    publisher: Optional[Publisher] = None,
) -> Quote:
    """Create an ACTIVE quote on an OPEN shipment."""
    if not shipment_id:
        raise ValidationError("shipmentId required")

    async with shipment_locks.hold(shipment_id):
        shipment = await repo.get_shipment(shipment_id)
        if shipment is None:
            raise NotFoundError("shipment not found")
        await repo.refresh(shipment)
        if shipment.status != ShipmentStatus.OPEN.value:
            raise ConflictError("shipment is not open for quotes")

        quote = Quote(
            id=await next_id(repo, IdPrefix.QUOTE),
            shipment_id=shipment_id,
            company_name=data.company_name or "Transporter",
            contact_email=data.contact_email or "",
            price=data.price or 0,
            eta_days=data.eta_days,
            message=data.message or "",
            status=QuoteStatus.ACTIVE.value,
            transporter_user_id=data.transporter_user_id,
            created_at=utcnow(),
        )
        repo.add(quote)
        await repo.flush()
        await audit_log.record(repo, "transporter", "quote", quote.id, f"Submitted quote for {shipment_id}")
        await repo.commit()

    logger.info("Quote %s submitted on %s by %s (%.2f)", quote.id, shipment_id, quote.company_name, quote.price)
    (publisher or get_publisher()).emit_public(EventName.QUOTE_NEW.value, dump(quote_view(quote)))
    return quote


async def list_quotes(repo: MarketRepository, shipment_id: str) -> list[Quote]:
    if not shipment_id:
        raise ValidationError("shipmentId required")
    return await repo.list_quotes(shipment_id)


async def accept_quote(
    repo: MarketRepository,
    quote_id: str,
    shipment_id: Optional[str] = None,
    publisher: Optional[Publisher] = None,
    actor: str = "shipper",
) -> BookingResult:
    """Accept a quote, reject its competitors, book the shipment and open a thread.

    ``shipment_id`` is the shipment named in the URL, if any; the quote must
    belong to it.
    """
    quote = await repo.get_quote(quote_id)
    if quote is None or (shipment_id is not None and quote.shipment_id != shipment_id):
        raise NotFoundError("quote not found")

    async with shipment_locks.hold(quote.shipment_id):
        shipment = await repo.get_shipment(quote.shipment_id)
        if shipment is None:
            raise NotFoundError("shipment not found")
        await repo.refresh(shipment)
        await repo.refresh(quote)
        if shipment.status != ShipmentStatus.OPEN.value:
            raise ConflictError("shipment not open")
        if quote.status != QuoteStatus.ACTIVE.value:
            raise ConflictError(f"quote is {quote.status}")

        try:
            quote.status = QuoteStatus.ACCEPTED.value
            rejected = await repo.reject_competing_quotes(shipment.id, quote.id)
            if not await repo.set_shipment_status_if(
                shipment.id, ShipmentStatus.OPEN.value, ShipmentStatus.BOOKED.value
            ):
                raise ConflictError("shipment not open")
            result = await create_booking(repo, quote, shipment)
            await audit_log.record(
                repo, actor, "booking", result.booking.id, f"Accepted quote {quote.id}; booking created"
            )
            await repo.commit()
        except Exception:
            await repo.rollback()
            raise

    logger.info(
        "Quote %s accepted on %s: booking %s, %d competing quote(s) rejected",
        quote.id,
        shipment.id,
        result.booking.id,
        rejected,
    )
    announce_booking(result.booking, shipment, publisher)
    return result
