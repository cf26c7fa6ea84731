"""Pydantic v2 schemas for API request validation and read-model views.

Wire format is camelCase (``readyDate``, ``nextCursor``); Python attributes
stay snake_case. Views are frozen: handlers receive a snapshot, never a live
ORM row.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for request bodies: accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ViewModel(CamelModel):
    """Base for immutable response projections."""

    model_config = ConfigDict(from_attributes=True, frozen=True)


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------


class ShipmentCreate(CamelModel):
    """Body of POST /api/shipments.

    pickup/dropoff are checked by the store so that a missing value surfaces
    as a domain ValidationError rather than a schema error.
    """

    title: str = ""
    pickup: str = ""
    dropoff: str = ""
    ready_date: date | None = None
    weight_kg: float = Field(0, ge=0)
    volume_m3: float = Field(0, ge=0)
    cross_border: bool = False
    service: str = ""
    adr: bool = False
    notes: str = ""
    owner_id: str | None = None

    @field_validator("ready_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ShipmentView(ViewModel):
    id: str
    title: str
    pickup: str
    dropoff: str
    ready_date: date | None = None
    weight_kg: float
    volume_m3: float
    cross_border: bool
    service: str
    adr: bool
    notes: str
    status: str
    hidden: bool
    owner_id: str | None = None
    created_at: datetime


class FlagCreate(CamelModel):
    reason: str = "Content"


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class QuoteCreate(CamelModel):
    """Body of POST /api/shipments/{id}/quotes."""

    company_name: str = "Transporter"
    contact_email: str = ""
    price: float = Field(0, ge=0)
    eta_days: int | None = Field(None, ge=0)
    message: str = ""
    transporter_user_id: str | None = None


class LegacyQuoteCreate(QuoteCreate):
    """Body of POST /api/quotes, which names the shipment in the body."""

    shipment_id: str = ""


class QuoteView(ViewModel):
    id: str
    shipment_id: str
    company_name: str
    contact_email: str
    price: float
    eta_days: int | None = None
    message: str
    status: str
    transporter_user_id: str | None = None
    created_at: datetime


class ShipmentDetailView(ShipmentView):
    quotes: tuple[QuoteView, ...] = ()


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class BookingCreate(CamelModel):
    quote_id: str


class BookingStatusUpdate(CamelModel):
    # Free-form on purpose: unknown values are rejected by the status machine
    status: str = ""


class BookingView(ViewModel):
    """Booking joined with its shipment's route and current status."""

    id: str
    shipment_id: str
    quote_id: str
    transporter_company: str
    price: float
    status: str
    thread_id: str
    paid: bool
    created_at: datetime
    updated_at: datetime
    route: str = ""
    pickup: str = ""
    dropoff: str = ""
    shipment_status: str = ""


class PaymentCaptured(CamelModel):
    booking_id: str


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class MessageCreate(CamelModel):
    thread_id: str = ""
    text: str = ""
    sender_role: str | None = None


class MessageView(ViewModel):
    id: str
    thread_id: str
    sender_role: str
    sender_id: str | None = None
    text: str
    ts: datetime


class DMThreadCreate(CamelModel):
    user_id: str


class DMMessageCreate(CamelModel):
    """Either thread_id or to_user_id identifies the conversation."""

    thread_id: str | None = None
    to_user_id: str | None = None
    text: str = ""


class DMThreadView(ViewModel):
    id: str
    members: tuple[str, str]
    other_user_id: str
    created_at: datetime
    last_message_at: datetime | None = None


class DMMessageView(ViewModel):
    id: str
    thread_id: str
    sender_id: str
    text: str
    ts: datetime


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class DemoLogin(CamelModel):
    role: str
    user_id: str | None = None


class SessionView(ViewModel):
    role: str
    user_id: str | None = None
    expires_at: datetime


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class VerifyDecision(CamelModel):
    decision: str = ""


class BanRequest(CamelModel):
    ban: bool = False


class HideRequest(CamelModel):
    hide: bool = False


class UserView(ViewModel):
    id: str
    name: str
    email: str
    role: str
    status: str
    verified: bool
    created_at: datetime


class FlagView(ViewModel):
    id: str
    shipment_id: str
    route: str
    reason: str
    reporter: str | None = None
    hidden: bool
    created_at: datetime


class AuditLogView(ViewModel):
    id: str
    ts: datetime
    actor: str
    type: str
    subject: str
    detail: str
