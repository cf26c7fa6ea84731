"""Demo sessions: signed tokens backed by a server-side session record.

The token is a JWT that only names a session id; role and user are read from
the ``auth_sessions`` row, so logging out (revoking the row) invalidates the
token immediately.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from freight_market.app.config import get_settings
from freight_market.domain.enums import UserRole
from freight_market.domain.errors import AuthorizationError, NotFoundError, ValidationError
from freight_market.domain.models import AuthSession, utcnow
from freight_market.infra.repository import MarketRepository
from freight_market.services import audit_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """The (role, user) pair a request acts as."""

    session_id: str
    role: str
    user_id: Optional[str]
    expires_at: datetime


def _encode(session_id: str, role: str, expires_at: datetime) -> str:
    settings = get_settings()
    payload = {"sid": session_id, "role": role, "exp": expires_at.replace(tzinfo=timezone.utc)}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def create_session(
    repo: MarketRepository, role: str, user_id: Optional[str] = None
) -> tuple[str, SessionContext]:
    """Sign in as ``role``; without a user id the first active user of that role is used."""
    role = (role or "").strip().lower()
    if role not in {r.value for r in UserRole}:
        raise ValidationError(f"invalid role: {role}")

    if user_id:
        user = await repo.get_user(user_id)
        if user is None:
            raise NotFoundError("user not found")
        if user.role != role:
            raise ValidationError(f"user {user_id} is not a {role}")
    else:
        candidates = [u for u in await repo.list_users(role) if not u.banned]
        user = candidates[0] if candidates else None
    if user is not None and user.banned:
        raise AuthorizationError("user is banned", forbidden=True)

    expires_at = utcnow() + timedelta(minutes=get_settings().session_ttl_minutes)
    record = AuthSession(
        id=secrets.token_urlsafe(24),
        role=role,
        user_id=user.id if user else None,
        created_at=utcnow(),
        expires_at=expires_at,
        revoked=False,
    )
    repo.add(record)
    await repo.flush()
    await audit_log.record(repo, role, "login", record.user_id or "-", "Demo login")
    await repo.commit()

    logger.info("Session opened: role=%s user=%s", role, record.user_id)
    token = _encode(record.id, role, expires_at)
    return token, SessionContext(record.id, role, record.user_id, expires_at)


async def resolve_session(repo: MarketRepository, token: Optional[str]) -> Optional[SessionContext]:
    """Validate a token against the session store; None for anything invalid."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or "sid" not in payload:
        return None
    record = await repo.get_auth_session(payload["sid"])
    if record is None or record.revoked or record.expires_at <= utcnow():
        return None
    if payload.get("role") != record.role:
        return None
    return SessionContext(record.id, record.role, record.user_id, record.expires_at)


async def revoke_session(repo: MarketRepository, token: Optional[str]) -> bool:
    payload = decode_token(token) if token else None
    if not payload or "sid" not in payload:
        return False
    record = await repo.get_auth_session(payload["sid"])
    if record is None or record.revoked:
        return False
    record.revoked = True
    await repo.commit()
    logger.info("Session revoked: role=%s user=%s", record.role, record.user_id)
    return True
