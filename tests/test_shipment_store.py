"""Tests for the shipment store: creation, feed filters and cursor paging."""

from datetime import date, datetime, timedelta, timezone

import pytest

from freight_market.domain.errors import NotFoundError, ValidationError
from freight_market.domain.schemas import ShipmentCreate
from freight_market.services import shipment_store
from freight_market.services.shipment_store import (
    build_filters,
    decode_cursor,
    encode_cursor,
    query_shipments,
)


async def _collect_all(repo, filters, limit):
    """Follow next_cursor until exhausted; returns ids in page order."""
    ids, cursor, pages = [], None, 0
    while True:
        page = await query_shipments(repo, filters, cursor=cursor, limit=limit)
        ids.extend(s.id for s in page.items)
        pages += 1
        if page.next_cursor is None:
            return ids, pages
        cursor = page.next_cursor


class TestCreateShipment:

    async def test_creates_open_visible_shipment(self, repo, publisher):
        data = ShipmentCreate(title="Boxes", pickup="  London  ", dropoff="Paris")
        shipment = await shipment_store.create_shipment(repo, data, publisher=publisher)

        assert shipment.id == "load-0001"
        assert shipment.status == "OPEN"
        assert shipment.hidden is False
        assert shipment.pickup == "London"
        assert shipment.created_at is not None

    @pytest.mark.parametrize("pickup,dropoff", [
        ("", "Paris"), ("London", ""), ("   ", "Paris"), ("London", "  "),
    ])
    async def test_pickup_and_dropoff_required(self, repo, publisher, pickup, dropoff):
        with pytest.raises(ValidationError):
            await shipment_store.create_shipment(
                repo, ShipmentCreate(pickup=pickup, dropoff=dropoff), publisher=publisher
            )

    async def test_emits_shipment_new(self, make_shipment, events):
        shipment = await make_shipment(pickup="London", dropoff="Paris")

        payloads = events.of_type("shipment:new")
        assert len(payloads) == 1
        assert payloads[0]["id"] == shipment.id
        assert payloads[0]["pickup"] == "London"
        assert events.rooms_for("shipment:new") == [["shipments"]]

    async def test_owner_recorded(self, repo, publisher):
        shipment = await shipment_store.create_shipment(
            repo, ShipmentCreate(pickup="A", dropoff="B"), owner_id="user-0002", publisher=publisher
        )
        assert shipment.owner_id == "user-0002"

    async def test_get_unknown_shipment(self, repo):
        with pytest.raises(NotFoundError):
            await shipment_store.get_shipment(repo, "load-9999")


class TestFilters:

    async def test_newest_first(self, repo, make_shipment):
        first = await make_shipment()
        second = await make_shipment()
        page = await query_shipments(repo, build_filters())
        assert [s.id for s in page.items] == [second.id, first.id]
        assert page.next_cursor is None

    async def test_pickup_contains_is_case_insensitive(self, repo, make_shipment):
        london = await make_shipment(pickup="London, UK")
        await make_shipment(pickup="Leeds, UK")
        page = await query_shipments(repo, build_filters(pickup_contains="LONDON"))
        assert [s.id for s in page.items] == [london.id]

    async def test_dropoff_contains(self, repo, make_shipment):
        await make_shipment(dropoff="Berlin, DE")
        paris = await make_shipment(dropoff="Paris, FR")
        page = await query_shipments(repo, build_filters(dropoff_contains="par"))
        assert [s.id for s in page.items] == [paris.id]

    async def test_contains_treats_wildcards_literally(self, repo, make_shipment):
        await make_shipment(pickup="London")
        page = await query_shipments(repo, build_filters(pickup_contains="%"))
        assert page.items == []

    async def test_service_and_adr(self, repo, make_shipment):
        await make_shipment(service="pallet", adr=False)
        hazardous = await make_shipment(service="tanker", adr=True)
        page = await query_shipments(repo, build_filters(service="tanker", adr=True))
        assert [s.id for s in page.items] == [hazardous.id]

        page = await query_shipments(repo, build_filters(adr=False))
        assert hazardous.id not in [s.id for s in page.items]

    async def test_earliest_date(self, repo, make_shipment):
        await make_shipment(ready_date=date(2026, 1, 1))
        later = await make_shipment(ready_date=date(2026, 3, 1))
        page = await query_shipments(repo, build_filters(earliest_date=date(2026, 2, 1)))
        assert [s.id for s in page.items] == [later.id]

    async def test_status_filter(self, repo, make_shipment):
        open_one = await make_shipment()
        booked = await make_shipment()
        booked.status = "BOOKED"
        await repo.commit()

        page = await query_shipments(repo, build_filters(status="OPEN"))
        assert [s.id for s in page.items] == [open_one.id]

    @pytest.mark.parametrize("status", ["FOO", "open", " OPEN "])
    def test_unknown_status_rejected(self, status):
        with pytest.raises(ValidationError):
            build_filters(status=status)

    def test_blank_values_mean_no_filter(self):
        filters = build_filters(status=" ", pickup_contains="", service="  ")
        assert filters.status is None
        assert filters.pickup_contains is None
        assert filters.service is None

    async def test_hidden_shipments_excluded(self, repo, make_shipment):
        visible = await make_shipment()
        hidden = await make_shipment()
        await shipment_store.set_hidden(repo, hidden.id, True)

        page = await query_shipments(repo, build_filters())
        assert [s.id for s in page.items] == [visible.id]


class TestPagination:

    async def test_pages_concatenate_to_full_result(self, repo, make_shipment):
        created = [await make_shipment(pickup=f"Depot {i}") for i in range(7)]
        full = await query_shipments(repo, build_filters(), limit=50)

        ids, pages = await _collect_all(repo, build_filters(), limit=3)

        assert ids == [s.id for s in full.items]
        assert sorted(ids) == sorted(s.id for s in created)
        assert len(set(ids)) == len(ids)
        assert pages == 3

    async def test_pagination_with_filter(self, repo, make_shipment):
        for i in range(5):
            await make_shipment(pickup=f"London {i}")
            await make_shipment(pickup=f"Leeds {i}")

        filters = build_filters(pickup_contains="london")
        ids, _ = await _collect_all(repo, filters, limit=2)
        full = await query_shipments(repo, filters, limit=50)
        assert ids == [s.id for s in full.items]
        assert len(ids) == 5

    async def test_exact_page_boundary_has_no_cursor(self, repo, make_shipment):
        for _ in range(3):
            await make_shipment()
        page = await query_shipments(repo, build_filters(), limit=3)
        assert len(page.items) == 3
        assert page.next_cursor is None

    async def test_same_timestamp_ties_broken_by_id(self, repo, make_shipment):
        shipments = [await make_shipment() for _ in range(4)]
        stamp = datetime(2026, 5, 1, 12, 0, 0)
        for s in shipments:
            s.created_at = stamp
        await repo.commit()

        ids, _ = await _collect_all(repo, build_filters(), limit=1)
        assert ids == sorted((s.id for s in shipments), reverse=True)

    async def test_limit_is_clamped(self, repo, make_shipment):
        for _ in range(2):
            await make_shipment()
        page = await query_shipments(repo, build_filters(), limit=0)
        assert len(page.items) == 1
        assert page.next_cursor is not None

    async def test_malformed_cursor(self, repo):
        with pytest.raises(ValidationError):
            await query_shipments(repo, build_filters(), cursor="not-a-cursor")


class TestCursorCodec:

    def test_cursor_is_urlsafe(self):
        cursor = encode_cursor(datetime(2026, 1, 2, 3, 4, 5, 678901), "load-0001")
        assert "=" not in cursor
        assert "+" not in cursor and "/" not in cursor

    def test_decode_restores_key(self):
        stamp = datetime(2026, 1, 2, 3, 4, 5, 678901)
        assert decode_cursor(encode_cursor(stamp, "load-0042")) == (stamp, "load-0042")

    def test_offset_normalised_to_utc(self):
        stamp = datetime(2026, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert decode_cursor(encode_cursor(stamp, "load-0007")) == (datetime(2026, 1, 2, 3, 4, 5), "load-0007")

    @pytest.mark.parametrize("bad", ["", "!!!", "W10", "eyJhIjoxfQ"])
    def test_garbage_rejected(self, bad):
        with pytest.raises(ValidationError):
            decode_cursor(bad)


class TestModeration:

    async def test_flag_keeps_shipment_visible(self, repo, make_shipment):
        shipment = await make_shipment()
        flag = await shipment_store.flag_shipment(repo, shipment.id, "Spam", reporter="user-0002")

        assert flag.id == "flag-0001"
        assert flag.reason == "Spam"
        assert shipment.hidden is False

    async def test_hide_updates_flags(self, repo, make_shipment):
        shipment = await make_shipment()
        await shipment_store.flag_shipment(repo, shipment.id, "", reporter=None)
        await shipment_store.set_hidden(repo, shipment.id, True)

        flags = await repo.flags_for_shipment(shipment.id)
        assert flags[0].reason == "Content"
        assert all(f.hidden for f in flags)
