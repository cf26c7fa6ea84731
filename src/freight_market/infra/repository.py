"""Marketplace repository: every read and write the services perform.

Services never build queries themselves; they go through ``MarketRepository``
so the storage backend can change without touching business logic. Routes
obtain one per request with ``Depends(get_repository)``.
"""

from dataclasses import dataclass
from datetime import date, datetime

from fastapi import Depends
from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from freight_market.domain.models import (
    AuditLogEntry,
    AuthSession,
    Booking,
    DMMessage,
    DMThread,
    Flag,
    IdCounter,
    Message,
    Quote,
    Shipment,
    User,
)
from freight_market.infra.database import get_db, reset_db


@dataclass(frozen=True)
class ShipmentFilters:
    """Feed filters; None means "do not filter on this field"."""

    status: str | None = None
    pickup_contains: str | None = None
    dropoff_contains: str | None = None
    service: str | None = None
    adr: bool | None = None
    earliest_date: date | None = None


class MarketRepository:
    """Repository over an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def add(self, obj) -> None:
        self.session.add(obj)

    async def flush(self) -> None:
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    def savepoint(self):
        """Nested transaction: a failure inside rolls back only its own writes."""
        return self.session.begin_nested()

    async def wipe(self) -> None:
        """Delete everything, counters included."""
        await reset_db(self.session)
        self.session.expunge_all()

    async def refresh(self, obj) -> None:
        """Re-read a row so decisions are made on committed state."""
        await self.session.refresh(obj)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def bump_counter(self, category: str) -> int | None:
        """Atomically increment a counter; returns the value it held, or None if missing."""
        result = await self.session.execute(
            update(IdCounter.__table__)
            .where(IdCounter.category == category)
            .values(next_value=IdCounter.next_value + 1)
            .returning(IdCounter.next_value)
        )
        value = result.scalar_one_or_none()
        return None if value is None else value - 1

    async def create_counter(self, category: str) -> None:
        """Insert a counter starting at 1. A concurrent insert of the same category wins."""
        try:
            async with self.savepoint():
                await self.session.execute(insert(IdCounter.__table__).values(category=category, next_value=1))
        except IntegrityError:
            pass

    # ------------------------------------------------------------------
    # Users / sessions
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def list_users(self, role: str | None = None) -> list[User]:
        stmt = select(User).order_by(User.id)
        if role:
            stmt = stmt.where(User.role == role)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_auth_session(self, session_id: str) -> AuthSession | None:
        return await self.session.get(AuthSession, session_id)

    # ------------------------------------------------------------------
    # Shipments
    # ------------------------------------------------------------------

    async def get_shipment(self, shipment_id: str) -> Shipment | None:
        return await self.session.get(Shipment, shipment_id)

    async def shipments_by_ids(self, shipment_ids: set[str]) -> dict[str, Shipment]:
        if not shipment_ids:
            return {}
        result = await self.session.execute(
            select(Shipment).where(Shipment.id.in_(list(shipment_ids)))
        )
        return {s.id: s for s in result.scalars().all()}

    async def query_shipments(
        self,
        filters: ShipmentFilters,
        after: tuple[datetime, str] | None,
        limit: int,
    ) -> list[Shipment]:
        """Visible shipments matching filters, newest first, strictly after the key."""
        stmt = select(Shipment).where(Shipment.hidden.is_(False))

        if filters.status:
            stmt = stmt.where(Shipment.status == filters.status)
        if filters.pickup_contains:
            stmt = stmt.where(
                func.lower(Shipment.pickup).contains(filters.pickup_contains.lower(), autoescape=True)
            )
        if filters.dropoff_contains:
            stmt = stmt.where(
                func.lower(Shipment.dropoff).contains(filters.dropoff_contains.lower(), autoescape=True)
            )
        if filters.service:
            stmt = stmt.where(Shipment.service == filters.service)
        if filters.adr is not None:
            stmt = stmt.where(Shipment.adr.is_(filters.adr))
        if filters.earliest_date is not None:
            stmt = stmt.where(Shipment.ready_date >= filters.earliest_date)

        if after is not None:
            created_at, shipment_id = after
            stmt = stmt.where(
                or_(
                    Shipment.created_at < created_at,
                    and_(Shipment.created_at == created_at, Shipment.id < shipment_id),
                )
            )

        stmt = stmt.order_by(Shipment.created_at.desc(), Shipment.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_shipment_status_if(self, shipment_id: str, expected: str, new: str) -> bool:
        """Compare-and-swap on shipment status. Returns False if it was not ``expected``."""
        result = await self.session.execute(
            update(Shipment)
            .where(Shipment.id == shipment_id, Shipment.status == expected)
            .values(status=new)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def get_quote(self, quote_id: str) -> Quote | None:
        return await self.session.get(Quote, quote_id)

    async def list_quotes(self, shipment_id: str) -> list[Quote]:
        result = await self.session.execute(
            select(Quote)
            .where(Quote.shipment_id == shipment_id)
            .order_by(Quote.created_at.desc(), Quote.id.desc())
        )
        return list(result.scalars().all())

    async def reject_competing_quotes(self, shipment_id: str, accepted_quote_id: str) -> int:
        """ACTIVE → REJECTED for every other quote on the shipment."""
        result = await self.session.execute(
            update(Quote)
            .where(
                Quote.shipment_id == shipment_id,
                Quote.id != accepted_quote_id,
                Quote.status == "ACTIVE",
            )
            .values(status="REJECTED")
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Bookings / booking threads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    async def get_booking_by_thread(self, thread_id: str) -> Booking | None:
        result = await self.session.execute(select(Booking).where(Booking.thread_id == thread_id))
        return result.scalar_one_or_none()

    async def list_bookings(self) -> list[Booking]:
        result = await self.session.execute(
            select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())

    async def count_bookings_for_shipment(self, shipment_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Booking).where(Booking.shipment_id == shipment_id)
        )
        return result.scalar_one()

    async def list_messages(self, thread_id: str, limit: int | None = None) -> list[Message]:
        stmt = select(Message).where(Message.thread_id == thread_id).order_by(Message.ts, Message.id)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Direct messages
    # ------------------------------------------------------------------

    async def get_dm_thread(self, thread_id: str) -> DMThread | None:
        return await self.session.get(DMThread, thread_id)

    async def dm_thread_for_pair(self, user_a: str, user_b: str) -> DMThread | None:
        result = await self.session.execute(
            select(DMThread).where(DMThread.user_a == user_a, DMThread.user_b == user_b)
        )
        return result.scalar_one_or_none()

    async def dm_threads_for_user(self, user_id: str) -> list[DMThread]:
        result = await self.session.execute(
            select(DMThread)
            .where(or_(DMThread.user_a == user_id, DMThread.user_b == user_id))
            .order_by(DMThread.created_at.desc(), DMThread.id.desc())
        )
        return list(result.scalars().all())

    async def list_dm_messages(self, thread_id: str, limit: int | None = None) -> list[DMMessage]:
        stmt = (
            select(DMMessage)
            .where(DMMessage.thread_id == thread_id)
            .order_by(DMMessage.ts, DMMessage.id)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Moderation / audit
    # ------------------------------------------------------------------

    async def list_flags(self) -> list[Flag]:
        result = await self.session.execute(select(Flag).order_by(Flag.created_at, Flag.id))
        return list(result.scalars().all())

    async def flags_for_shipment(self, shipment_id: str) -> list[Flag]:
        result = await self.session.execute(select(Flag).where(Flag.shipment_id == shipment_id))
        return list(result.scalars().all())

    async def recent_log(self, limit: int) -> list[AuditLogEntry]:
        result = await self.session.execute(
            select(AuditLogEntry)
            .order_by(AuditLogEntry.ts.desc(), AuditLogEntry.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def trim_log(self, keep: int) -> None:
        """Drop all but the newest ``keep`` log entries."""
        newest = (
            select(AuditLogEntry.id)
            .order_by(AuditLogEntry.ts.desc(), AuditLogEntry.id.desc())
            .limit(keep)
        )
        await self.session.execute(
            delete(AuditLogEntry)
            .where(AuditLogEntry.id.not_in(newest))
            .execution_options(synchronize_session=False)
        )

    async def counts(self) -> dict[str, int]:
        async def _count(stmt) -> int:
            return (await self.session.execute(stmt)).scalar_one()

        return {
            "shipments": await _count(select(func.count()).select_from(Shipment)),
            "quotes": await _count(select(func.count()).select_from(Quote)),
            "bookings": await _count(select(func.count()).select_from(Booking)),
            "users": await _count(select(func.count()).select_from(User)),
            "pendingKYB": await _count(
                select(func.count())
                .select_from(User)
                .where(User.role == "transporter", User.verified.is_(False), User.banned.is_(False))
            ),
            "flags": await _count(select(func.count()).select_from(Flag)),
        }


async def get_repository(db: AsyncSession = Depends(get_db)) -> MarketRepository:
    """FastAPI dependency: repository bound to the request's session."""
    return MarketRepository(db)
