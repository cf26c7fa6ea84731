"""Demo authentication routes: role login, logout, me."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from freight_market.app.config import get_settings
from freight_market.domain.errors import AuthorizationError
from freight_market.domain.schemas import DemoLogin, SessionView
from freight_market.infra.repository import MarketRepository, get_repository
from freight_market.services.serializers import dump, user_view
from freight_market.services.session_service import (
    SessionContext,
    create_session,
    resolve_session,
    revoke_session,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def extract_token(request: Request) -> Optional[str]:
    """Bearer token if present, otherwise the session cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ").strip() or None
    return request.cookies.get(get_settings().session_cookie_name)


async def get_session_dep(
    request: Request, repo: MarketRepository = Depends(get_repository)
) -> Optional[SessionContext]:
    """Dependency: the caller's session, or None when anonymous."""
    return await resolve_session(repo, extract_token(request))


async def require_session_user(
    session: Optional[SessionContext] = Depends(get_session_dep),
) -> SessionContext:
    """Dependency: a signed-in session bound to a user."""
    if session is None or not session.user_id:
        raise AuthorizationError("sign in required")
    return session


def require_role(*roles: str):
    """Factory: dependency that checks the session has one of the required roles."""

    async def checker(session: Optional[SessionContext] = Depends(get_session_dep)):
        if session is None:
            raise AuthorizationError("sign in required")
        if session.role not in roles:
            raise AuthorizationError("insufficient permissions", forbidden=True)
        return session

    return checker


@router.post("/demo-login")
async def demo_login(
    data: DemoLogin,
    response: Response,
    repo: MarketRepository = Depends(get_repository),
):
    settings = get_settings()
    token, session = await create_session(repo, data.role, data.user_id)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return {
        "ok": True,
        "token": token,
        "data": dump(SessionView(role=session.role, user_id=session.user_id, expires_at=session.expires_at)),
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    repo: MarketRepository = Depends(get_repository),
):
    revoked = await revoke_session(repo, extract_token(request))
    response.delete_cookie(get_settings().session_cookie_name)
    return {"ok": True, "revoked": revoked}


@router.get("/me")
async def me(
    session: Optional[SessionContext] = Depends(get_session_dep),
    repo: MarketRepository = Depends(get_repository),
):
    if session is None:
        raise AuthorizationError("sign in required")
    user = await repo.get_user(session.user_id) if session.user_id else None
    return {
        "ok": True,
        "data": {
            "role": session.role,
            "userId": session.user_id,
            "expiresAt": session.expires_at.isoformat(),
            "user": dump(user_view(user)) if user else None,
        },
    }
