"""Tests for two-party direct message threads."""

import asyncio

import pytest

from freight_market.domain.errors import AuthorizationError, NotFoundError, ValidationError
from freight_market.services import dm_service


@pytest.fixture
def pair(make_user):
    async def _factory():
        shipper = await make_user(role="shipper", name="Acme Shipper")
        transporter = await make_user(role="transporter", name="Duff Logistics Ltd")
        return shipper, transporter
    return _factory


class TestThreads:

    async def test_same_pair_returns_same_thread(self, repo, pair):
        a, b = await pair()
        first, created = await dm_service.get_or_create_thread(repo, a.id, b.id)
        second, created_again = await dm_service.get_or_create_thread(repo, b.id, a.id)

        assert created is True
        assert created_again is False
        assert first.id == second.id == "dm-0001"
        assert (first.user_a, first.user_b) == tuple(sorted([a.id, b.id]))

    async def test_concurrent_first_contact_creates_one_thread(self, repo, pair):
        a, b = await pair()
        (t1, _), (t2, _) = await asyncio.gather(
            dm_service.get_or_create_thread(repo, a.id, b.id),
            dm_service.get_or_create_thread(repo, b.id, a.id),
        )
        assert t1.id == t2.id
        assert len(await repo.dm_threads_for_user(a.id)) == 1

    async def test_cannot_message_self(self, repo, pair):
        a, _ = await pair()
        with pytest.raises(ValidationError):
            await dm_service.get_or_create_thread(repo, a.id, a.id)

    async def test_unknown_counterpart(self, repo, pair):
        a, _ = await pair()
        with pytest.raises(NotFoundError):
            await dm_service.get_or_create_thread(repo, a.id, "user-9999")

    async def test_anonymous_caller(self, repo, pair):
        _, b = await pair()
        with pytest.raises(AuthorizationError) as exc:
            await dm_service.get_or_create_thread(repo, None, b.id)
        assert exc.value.status_code == 401

    async def test_list_threads_only_for_members(self, repo, pair, make_user):
        a, b = await pair()
        outsider = await make_user(name="Outsider")
        await dm_service.get_or_create_thread(repo, a.id, b.id)

        assert len(await dm_service.list_threads(repo, a.id)) == 1
        assert await dm_service.list_threads(repo, outsider.id) == []


class TestMessages:

    async def test_send_by_recipient_creates_thread(self, repo, publisher, pair):
        a, b = await pair()
        message = await dm_service.send_message(repo, a.id, "Hello", to_user_id=b.id, publisher=publisher)

        assert message.id == "dmmsg-0001"
        assert message.sender_id == a.id
        thread = await repo.get_dm_thread(message.thread_id)
        assert thread.last_message_at == message.ts

    async def test_send_by_thread_id(self, repo, publisher, pair):
        a, b = await pair()
        thread, _ = await dm_service.get_or_create_thread(repo, a.id, b.id)
        await dm_service.send_message(repo, a.id, "one", thread_id=thread.id, publisher=publisher)
        await dm_service.send_message(repo, b.id, "two", thread_id=thread.id, publisher=publisher)

        messages = await dm_service.list_messages(repo, thread.id, a.id)
        assert [m.text for m in messages] == ["one", "two"]

    async def test_non_member_forbidden(self, repo, publisher, pair, make_user):
        a, b = await pair()
        outsider = await make_user(name="Outsider")
        thread, _ = await dm_service.get_or_create_thread(repo, a.id, b.id)

        with pytest.raises(AuthorizationError) as exc:
            await dm_service.list_messages(repo, thread.id, outsider.id)
        assert exc.value.status_code == 403

        with pytest.raises(AuthorizationError):
            await dm_service.send_message(repo, outsider.id, "hi", thread_id=thread.id, publisher=publisher)

    async def test_event_only_to_members(self, repo, publisher, events, pair):
        a, b = await pair()
        await dm_service.send_message(repo, a.id, "Hello", to_user_id=b.id, publisher=publisher)

        rooms = events.rooms_for("dm:new")
        assert sorted(rooms) == sorted([[f"user:{a.id}"], [f"user:{b.id}"]])
        for payload in events.of_type("dm:new"):
            assert payload["message"]["text"] == "Hello"
            assert sorted(payload["thread"]["members"]) == sorted([a.id, b.id])

    async def test_each_member_sees_the_other_party(self, repo, publisher, events, pair):
        a, b = await pair()
        await dm_service.send_message(repo, a.id, "Hello", to_user_id=b.id, publisher=publisher)

        other_by_room = {
            rooms[0]: message["data"]["thread"]["otherUserId"]
            for rooms, message in events.delivered
            if message["type"] == "dm:new"
        }
        assert other_by_room == {f"user:{a.id}": b.id, f"user:{b.id}": a.id}

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_blank_text_rejected(self, repo, publisher, pair, text):
        a, b = await pair()
        with pytest.raises(ValidationError):
            await dm_service.send_message(repo, a.id, text, to_user_id=b.id, publisher=publisher)

    async def test_target_required(self, repo, publisher, pair):
        a, _ = await pair()
        with pytest.raises(ValidationError):
            await dm_service.send_message(repo, a.id, "hi", publisher=publisher)
