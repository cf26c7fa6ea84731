"""Admin activity log, capped to the most recent entries."""

import logging

from freight_market.app.config import get_settings
from freight_market.domain.enums import IdPrefix
from freight_market.domain.models import AuditLogEntry, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services.identity import next_id

logger = logging.getLogger(__name__)


async def record(
    repo: MarketRepository,
    actor: str | None,
    entry_type: str | None,
    subject: str | None,
    detail: str | None = "",
) -> AuditLogEntry | None:
    """Append a log entry in the caller's transaction.

    Logging is not allowed to break the flow that triggered it: a failing
    write is reported and skipped. The entry lives in a savepoint, so only
    the entry is lost and the caller's changes still commit.
    """
    # Errors from the caller's pending changes propagate
    await repo.flush()
    try:
        async with repo.savepoint():
            entry = AuditLogEntry(
                id=await next_id(repo, IdPrefix.LOG),
                ts=utcnow(),
                actor=actor or "system",
                type=entry_type or "info",
                subject=subject or "-",
                detail=detail or "",
            )
            repo.add(entry)
            await repo.flush()
            await repo.trim_log(get_settings().audit_log_cap)
    except Exception as e:
        logger.warning("Audit log write skipped (%s %s): %s", entry_type, subject, e)
        return None
    logger.info("audit %s %s %s: %s", entry.actor, entry.type, entry.subject, entry.detail)
    return entry
