"""Read-model projections: ORM rows -> frozen view models -> JSON dicts.

Route handlers and event payloads only ever see these views, so a caller can
never mutate a stored entity through a response object.
"""

from pydantic import BaseModel

from freight_market.domain.models import (
    AuditLogEntry,
    Booking,
    DMMessage,
    DMThread,
    Flag,
    Message,
    Quote,
    Shipment,
    User,
)
from freight_market.domain.schemas import (
    AuditLogView,
    BookingView,
    DMMessageView,
    DMThreadView,
    FlagView,
    MessageView,
    QuoteView,
    ShipmentDetailView,
    ShipmentView,
    UserView,
)


def dump(view: BaseModel) -> dict:
    """JSON-ready dict with camelCase keys."""
    return view.model_dump(mode="json", by_alias=True)


def route_label(shipment: Shipment | None) -> str:
    if shipment is None:
        return ""
    return f"{shipment.pickup} → {shipment.dropoff}"


def shipment_view(shipment: Shipment) -> ShipmentView:
    return ShipmentView.model_validate(shipment)


def quote_view(quote: Quote) -> QuoteView:
    return QuoteView.model_validate(quote)


def shipment_detail_view(shipment: Shipment, quotes: list[Quote]) -> ShipmentDetailView:
    base = shipment_view(shipment).model_dump()
    return ShipmentDetailView(**base, quotes=tuple(quote_view(q) for q in quotes))


def booking_view(booking: Booking, shipment: Shipment | None) -> BookingView:
    """Booking denormalised with its shipment's route and current status."""
    return BookingView(
        id=booking.id,
        shipment_id=booking.shipment_id,
        quote_id=booking.quote_id,
        transporter_company=booking.transporter_company or "",
        price=booking.price or 0,
        status=booking.status,
        thread_id=booking.thread_id,
        paid=bool(booking.paid),
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        route=route_label(shipment),
        pickup=shipment.pickup if shipment else "",
        dropoff=shipment.dropoff if shipment else "",
        shipment_status=shipment.status if shipment else "",
    )


def message_view(message: Message) -> MessageView:
    return MessageView.model_validate(message)


def dm_thread_view(thread: DMThread, viewer_id: str) -> DMThreadView:
    other = thread.user_b if thread.user_a == viewer_id else thread.user_a
    return DMThreadView(
        id=thread.id,
        members=(thread.user_a, thread.user_b),
        other_user_id=other,
        created_at=thread.created_at,
        last_message_at=thread.last_message_at,
    )


def dm_message_view(message: DMMessage) -> DMMessageView:
    return DMMessageView.model_validate(message)


def user_view(user: User) -> UserView:
    return UserView(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        status="BANNED" if user.banned else "ACTIVE",
        verified=bool(user.verified),
        created_at=user.created_at,
    )


def flag_view(flag: Flag, shipment: Shipment | None) -> FlagView:
    return FlagView(
        id=flag.id,
        shipment_id=flag.shipment_id,
        route=route_label(shipment),
        reason=flag.reason or "",
        reporter=flag.reporter,
        hidden=bool(flag.hidden),
        created_at=flag.created_at,
    )


def audit_log_view(entry: AuditLogEntry) -> AuditLogView:
    return AuditLogView.model_validate(entry)
