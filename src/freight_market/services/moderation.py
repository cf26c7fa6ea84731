"""Admin moderation: KYB verification, bans, flagged shipments."""

import logging
from typing import Optional

from freight_market.domain.enums import UserRole
from freight_market.domain.errors import NotFoundError, ValidationError
from freight_market.domain.models import User
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log
from freight_market.services.serializers import dump, flag_view

logger = logging.getLogger(__name__)

VERIFY_DECISIONS = ("approve", "reject")


async def pending_verifications(repo: MarketRepository) -> list[dict]:
    """Transporters awaiting KYB review."""
    return [
        {
            "userId": u.id,
            "companyName": u.name,
            "email": u.email,
            "insurance": u.insurance,
            "status": "PENDING",
            "since": u.created_at.isoformat(),
        }
        for u in await repo.list_users(UserRole.TRANSPORTER.value)
        if not u.verified and not u.banned
    ]


async def decide_verification(repo: MarketRepository, user_id: str, decision: str) -> User:
    user = await repo.get_user(user_id)
    if user is None or user.role != UserRole.TRANSPORTER.value:
        raise NotFoundError("transporter not found")
    decision = (decision or "").strip().lower()
    if decision not in VERIFY_DECISIONS:
        raise ValidationError("decision must be approve|reject")

    user.verified = decision == "approve"
    await audit_log.record(repo, "admin", "verify", user.id, f"Decision: {decision}")
    await repo.commit()
    logger.info("KYB decision for %s: %s", user.id, decision)
    return user


async def set_banned(repo: MarketRepository, user_id: str, banned: bool) -> User:
    user = await repo.get_user(user_id)
    if user is None:
        raise NotFoundError("user not found")
    user.banned = bool(banned)
    await audit_log.record(repo, "admin", "ban", user.id, f"ban={user.banned}")
    await repo.commit()
    logger.info("User %s banned=%s", user.id, user.banned)
    return user


async def verified_transporters(repo: MarketRepository) -> list[dict]:
    return [
        {
            "id": u.id,
            "company": u.name,
            "contact": u.email,
            "insurance": u.insurance or "—",
            "since": u.created_at.date().isoformat(),
            "banned": bool(u.banned),
        }
        for u in await repo.list_users(UserRole.TRANSPORTER.value)
        if u.verified
    ]


async def flagged_shipments(repo: MarketRepository) -> list[dict]:
    flags = await repo.list_flags()
    shipments = await repo.shipments_by_ids({f.shipment_id for f in flags})
    return [dump(flag_view(f, shipments.get(f.shipment_id))) for f in flags]


async def recent_activity(repo: MarketRepository, limit: Optional[int] = 200):
    return await repo.recent_log(limit)
