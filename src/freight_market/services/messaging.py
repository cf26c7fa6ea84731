"""Booking thread messages."""

from typing import Optional

from freight_market.domain.enums import IdPrefix, SenderRole
from freight_market.domain.errors import NotFoundError, ValidationError
from freight_market.domain.models import Message, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log
from freight_market.services.identity import next_id

MAX_TEXT_LENGTH = 4000


async def list_messages(repo: MarketRepository, thread_id: str, limit: Optional[int] = None) -> list[Message]:
    """Thread messages, oldest first."""
    if not thread_id:
        raise ValidationError("threadId required")
    return await repo.list_messages(thread_id, limit)


async def post_message(
    repo: MarketRepository,
    thread_id: str,
    text: str,
    sender_role: Optional[str] = None,
    sender_id: Optional[str] = None,
) -> Message:
    """Append a message to a booking's thread."""
    text = (text or "").strip()
    if not thread_id or not text:
        raise ValidationError("threadId and text required")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"text longer than {MAX_TEXT_LENGTH} characters")

    role = (sender_role or SenderRole.SHIPPER.value).strip().lower()
    if role not in {r.value for r in SenderRole} or role == SenderRole.SYSTEM.value:
        raise ValidationError(f"invalid senderRole: {sender_role}")

    booking = await repo.get_booking_by_thread(thread_id)
    if booking is None:
        raise NotFoundError("thread not found")

    message = Message(
        id=await next_id(repo, IdPrefix.MESSAGE),
        thread_id=thread_id,
        sender_role=role,
        sender_id=sender_id,
        text=text,
        ts=utcnow(),
    )
    repo.add(message)
    await repo.flush()
    await audit_log.record(repo, role, "message", thread_id, f"+ {text[:60]}")
    await repo.commit()
    return message
