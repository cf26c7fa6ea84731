"""SQLAlchemy ORM models for the freight marketplace.

All models use SQLite-compatible types:
- String(32) for prefixed sequential ids ("load-0001")
- DateTime for timestamps, stored as naive UTC
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from freight_market.infra.database import Base


def utcnow() -> datetime:
    """Current time as naive UTC (SQLite does not keep tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class IdCounter(Base):
    """Next sequence value per id category."""

    __tablename__ = "id_counters"

    category = Column(String(20), primary_key=True)
    next_value = Column(Integer, nullable=False, default=1)


# ---------------------------------------------------------------------------
# Users / sessions
# ---------------------------------------------------------------------------


class User(Base):
    """Demo account: shipper, transporter or admin."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # UserRole
    verified = Column(Boolean, default=False)
    banned = Column(Boolean, default=False)
    insurance = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class AuthSession(Base):
    """Server-side record behind a signed session token."""

    __tablename__ = "auth_sessions"

    id = Column(String(64), primary_key=True)
    role = Column(String(20), nullable=False)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    revoked = Column(Boolean, default=False)


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------


class Shipment(Base):
    """A shipper's posted load seeking transport."""

    __tablename__ = "shipments"

    id = Column(String(32), primary_key=True)
    title = Column(String(255), default="")
    pickup = Column(String(255), nullable=False)
    dropoff = Column(String(255), nullable=False)
    ready_date = Column(Date, nullable=True)
    weight_kg = Column(Float, default=0)
    volume_m3 = Column(Float, default=0)
    cross_border = Column(Boolean, default=False)
    service = Column(String(50), default="")
    adr = Column(Boolean, default=False)  # hazardous goods
    notes = Column(Text, default="")
    status = Column(String(20), nullable=False, default="OPEN", index=True)
    hidden = Column(Boolean, default=False)
    # owner_id is not a FK: anonymous posts are allowed
    owner_id = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class Quote(Base):
    """A transporter's priced offer against an open shipment."""

    __tablename__ = "quotes"

    id = Column(String(32), primary_key=True)
    shipment_id = Column(String(32), ForeignKey("shipments.id"), nullable=False, index=True)
    company_name = Column(String(255), default="Transporter")
    contact_email = Column(String(255), default="")
    price = Column(Float, nullable=False, default=0)
    eta_days = Column(Integer, nullable=True)
    message = Column(Text, default="")
    status = Column(String(20), nullable=False, default="ACTIVE", index=True)
    transporter_user_id = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Booking(Base):
    """Contract created when a quote is accepted."""

    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True)
    shipment_id = Column(String(32), ForeignKey("shipments.id"), nullable=False, index=True)
    quote_id = Column(String(32), ForeignKey("quotes.id"), nullable=False, unique=True)
    transporter_company = Column(String(255), default="")
    price = Column(Float, default=0)
    status = Column(String(20), nullable=False, default="BOOKED")
    thread_id = Column(String(32), nullable=False, unique=True)
    paid = Column(Boolean, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class Message(Base):
    """Append-only entry of a booking thread."""

    __tablename__ = "messages"

    id = Column(String(32), primary_key=True)
    thread_id = Column(String(32), nullable=False, index=True)
    sender_role = Column(String(20), nullable=False, default="shipper")
    sender_id = Column(String(32), nullable=True)
    text = Column(Text, nullable=False)
    ts = Column(DateTime, nullable=False, default=utcnow)


class DMThread(Base):
    """Two-party direct-message thread; user_a < user_b."""

    __tablename__ = "dm_threads"
    __table_args__ = (UniqueConstraint("user_a", "user_b", name="uq_dm_pair"),)

    id = Column(String(32), primary_key=True)
    user_a = Column(String(32), ForeignKey("users.id"), nullable=False)
    user_b = Column(String(32), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_message_at = Column(DateTime, nullable=True)


class DMMessage(Base):
    """Entry of a direct-message thread."""

    __tablename__ = "dm_messages"

    id = Column(String(32), primary_key=True)
    thread_id = Column(String(32), ForeignKey("dm_threads.id"), nullable=False, index=True)
    sender_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    ts = Column(DateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Moderation / audit
# ---------------------------------------------------------------------------


class Flag(Base):
    """A shipment reported for moderation."""

    __tablename__ = "flags"

    id = Column(String(32), primary_key=True)
    shipment_id = Column(String(32), ForeignKey("shipments.id"), nullable=False, index=True)
    reason = Column(String(255), default="Content")
    reporter = Column(String(32), nullable=True)
    hidden = Column(Boolean, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AuditLogEntry(Base):
    """One line of the admin activity log."""

    __tablename__ = "audit_log"

    id = Column(String(32), primary_key=True)
    ts = Column(DateTime, nullable=False, default=utcnow, index=True)
    actor = Column(String(32), default="system")
    type = Column(String(32), default="info")
    subject = Column(String(64), default="-")
    detail = Column(Text, default="")
