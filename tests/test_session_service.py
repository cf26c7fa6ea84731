"""Tests for demo sessions: signed tokens backed by stored session rows."""

from datetime import timedelta

import pytest
from jose import jwt

from freight_market.app.config import get_settings
from freight_market.domain.errors import AuthorizationError, NotFoundError, ValidationError
from freight_market.domain.models import utcnow
from freight_market.services.session_service import (
    create_session,
    decode_token,
    resolve_session,
    revoke_session,
)


class TestCreateSession:

    async def test_defaults_to_first_user_of_role(self, repo, make_user):
        await make_user(role="shipper", name="Other")
        transporter = await make_user(role="transporter", name="Duff")

        token, ctx = await create_session(repo, "Transporter")

        assert ctx.role == "transporter"
        assert ctx.user_id == transporter.id
        assert decode_token(token)["sid"] == ctx.session_id

    async def test_explicit_user(self, repo, make_user):
        await make_user(role="transporter", name="First")
        second = await make_user(role="transporter", name="Second")
        _, ctx = await create_session(repo, "transporter", second.id)
        assert ctx.user_id == second.id

    async def test_role_without_users(self, repo):
        _, ctx = await create_session(repo, "admin")
        assert ctx.user_id is None

    async def test_invalid_role(self, repo):
        with pytest.raises(ValidationError):
            await create_session(repo, "superuser")

    async def test_user_role_mismatch(self, repo, make_user):
        shipper = await make_user(role="shipper")
        with pytest.raises(ValidationError):
            await create_session(repo, "transporter", shipper.id)

    async def test_unknown_user(self, repo):
        with pytest.raises(NotFoundError):
            await create_session(repo, "shipper", "user-9999")

    async def test_banned_user_forbidden(self, repo, make_user):
        banned = await make_user(role="transporter", banned=True)
        with pytest.raises(AuthorizationError) as exc:
            await create_session(repo, "transporter", banned.id)
        assert exc.value.status_code == 403

    async def test_banned_users_skipped_by_default(self, repo, make_user):
        await make_user(role="transporter", name="Banned", banned=True)
        active = await make_user(role="transporter", name="Active")
        _, ctx = await create_session(repo, "transporter")
        assert ctx.user_id == active.id


class TestResolveSession:

    async def test_round_trip(self, repo, make_user):
        user = await make_user(role="shipper")
        token, ctx = await create_session(repo, "shipper")
        resolved = await resolve_session(repo, token)
        assert resolved.session_id == ctx.session_id
        assert resolved.user_id == user.id

    @pytest.mark.parametrize("token", [None, "", "not.a.jwt"])
    async def test_garbage(self, repo, token):
        assert await resolve_session(repo, token) is None

    async def test_wrong_signature(self, repo):
        _, ctx = await create_session(repo, "shipper")
        forged = jwt.encode({"sid": ctx.session_id, "role": "admin"}, "other-key", algorithm="HS256")
        assert await resolve_session(repo, forged) is None

    async def test_role_in_token_must_match_record(self, repo):
        _, ctx = await create_session(repo, "shipper")
        settings = get_settings()
        tampered = jwt.encode(
            {"sid": ctx.session_id, "role": "admin"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        assert await resolve_session(repo, tampered) is None

    async def test_revoked(self, repo):
        token, _ = await create_session(repo, "shipper")
        assert await revoke_session(repo, token) is True
        assert await resolve_session(repo, token) is None
        assert await revoke_session(repo, token) is False

    async def test_expired_record(self, repo):
        token, ctx = await create_session(repo, "shipper")
        record = await repo.get_auth_session(ctx.session_id)
        record.expires_at = utcnow() - timedelta(minutes=1)
        await repo.commit()
        assert await resolve_session(repo, token) is None
