"""Direct messages between two users.

A DM thread is keyed by the unordered user pair, created on first contact
and visible only to its two members. New messages are pushed to the
members' socket rooms only.
"""

import logging
from typing import Optional

from freight_market.domain.enums import EventName, IdPrefix
from freight_market.domain.errors import AuthorizationError, NotFoundError, ValidationError
from freight_market.domain.models import DMMessage, DMThread, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services.identity import next_id
from freight_market.services.locks import KeyedLock
from freight_market.services.messaging import MAX_TEXT_LENGTH
from freight_market.services.publisher import Publisher, get_publisher
from freight_market.services.serializers import dm_message_view, dm_thread_view, dump

logger = logging.getLogger(__name__)

pair_locks = KeyedLock()


def pair_key(user_x: str, user_y: str) -> tuple[str, str]:
    """Normalised (smaller, larger) ordering of a user pair."""
    return (user_x, user_y) if user_x < user_y else (user_y, user_x)


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthorizationError("sign in required")
    return user_id


async def get_or_create_thread(
    repo: MarketRepository, user_id: Optional[str], other_user_id: str
) -> tuple[DMThread, bool]:
    """Return the pair's thread, creating it on first contact. Second item: created."""
    me = require_user(user_id)
    other_user_id = (other_user_id or "").strip()
    if not other_user_id:
        raise ValidationError("userId required")
    if other_user_id == me:
        raise ValidationError("cannot message yourself")
    if await repo.get_user(other_user_id) is None:
        raise NotFoundError("user not found")

    user_a, user_b = pair_key(me, other_user_id)
    async with pair_locks.hold(f"{user_a}|{user_b}"):
        thread = await repo.dm_thread_for_pair(user_a, user_b)
        if thread is not None:
            return thread, False

        thread = DMThread(
            id=await next_id(repo, IdPrefix.DM_THREAD),
            user_a=user_a,
            user_b=user_b,
            created_at=utcnow(),
        )
        repo.add(thread)
        await repo.flush()
        await repo.commit()

    logger.info("DM thread %s opened between %s and %s", thread.id, user_a, user_b)
    return thread, True


async def list_threads(repo: MarketRepository, user_id: Optional[str]) -> list[DMThread]:
    return await repo.dm_threads_for_user(require_user(user_id))


async def get_thread_for_member(
    repo: MarketRepository, thread_id: str, user_id: Optional[str]
) -> DMThread:
    me = require_user(user_id)
    if not thread_id:
        raise ValidationError("threadId required")
    thread = await repo.get_dm_thread(thread_id)
    if thread is None:
        raise NotFoundError("thread not found")
    if me not in (thread.user_a, thread.user_b):
        raise AuthorizationError("not a member of this thread", forbidden=True)
    return thread


async def list_messages(
    repo: MarketRepository, thread_id: str, user_id: Optional[str], limit: Optional[int] = None
) -> list[DMMessage]:
    thread = await get_thread_for_member(repo, thread_id, user_id)
    return await repo.list_dm_messages(thread.id, limit)


async def send_message(
    repo: MarketRepository,
    user_id: Optional[str],
    text: str,
    thread_id: Optional[str] = None,
    to_user_id: Optional[str] = None,
    publisher: Optional[Publisher] = None,
) -> DMMessage:
    """Append to a DM thread named by id, or by the other member's user id."""
    me = require_user(user_id)
    text = (text or "").strip()
    if not text:
        raise ValidationError("text required")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"text longer than {MAX_TEXT_LENGTH} characters")

    if thread_id:
        thread = await get_thread_for_member(repo, thread_id, me)
    elif to_user_id:
        thread, _ = await get_or_create_thread(repo, me, to_user_id)
    else:
        raise ValidationError("threadId or toUserId required")

    now = utcnow()
    message = DMMessage(
        id=await next_id(repo, IdPrefix.DM_MESSAGE),
        thread_id=thread.id,
        sender_id=me,
        text=text,
        ts=now,
    )
    repo.add(message)
    thread.last_message_at = now
    await repo.flush()
    await repo.commit()

    publisher = publisher or get_publisher()
    message_data = dump(dm_message_view(message))
    # Each member sees the thread from their own side
    for member in (thread.user_a, thread.user_b):
        payload = {"thread": dump(dm_thread_view(thread, member)), "message": message_data}
        publisher.emit_to_users([member], EventName.DM_NEW.value, payload)
    return message
