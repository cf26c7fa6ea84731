"""Tests for booking creation and its coordination thread."""

from freight_market.domain.schemas import QuoteCreate
from freight_market.services.booking_engine import announce_booking, welcome_text
from freight_market.services.quote_ledger import accept_quote, submit_quote


async def _booked(repo, publisher, make_shipment, **shipment_fields):
    shipment = await make_shipment(**shipment_fields)
    quote = await submit_quote(
        repo, shipment.id, QuoteCreate(company_name="Duff Logistics Ltd", price=1450), publisher=publisher
    )
    result = await accept_quote(repo, quote.id, publisher=publisher)
    return shipment, quote, result


class TestCreateBooking:

    async def test_thread_seeded_with_welcome(self, repo, publisher, make_shipment):
        shipment, _, result = await _booked(repo, publisher, make_shipment)

        messages = await repo.list_messages(result.thread_id)
        assert len(messages) == 1
        assert messages[0].sender_role == "system"
        assert messages[0].text == welcome_text(shipment.id)
        assert messages[0].id == result.welcome_message.id

    def test_welcome_text(self):
        assert welcome_text("load-0007") == (
            "Booking created for shipment load-0007. Use this thread to coordinate."
        )

    async def test_thread_owned_by_booking(self, repo, publisher, make_shipment):
        _, _, result = await _booked(repo, publisher, make_shipment)
        owner = await repo.get_booking_by_thread(result.thread_id)
        assert owner.id == result.booking.id

    async def test_ids_are_sequential(self, repo, publisher, make_shipment):
        _, _, first = await _booked(repo, publisher, make_shipment)
        _, _, second = await _booked(repo, publisher, make_shipment)

        assert (first.booking.id, first.thread_id) == ("booking-0001", "thread-0001")
        assert (second.booking.id, second.thread_id) == ("booking-0002", "thread-0002")


class TestAnnounceBooking:

    async def test_payload_is_denormalised(self, repo, publisher, events, make_shipment):
        shipment, _, result = await _booked(
            repo, publisher, make_shipment, pickup="Leeds, UK", dropoff="Prague, CZ"
        )
        payload = announce_booking(result.booking, shipment, publisher)

        assert payload["route"] == "Leeds, UK → Prague, CZ"
        assert payload["pickup"] == "Leeds, UK"
        assert payload["dropoff"] == "Prague, CZ"
        assert payload["threadId"] == result.thread_id
        assert payload["paid"] is False
        assert events.of_type("booking:new")[-1] == payload

    async def test_missing_shipment_gives_blank_route(self, repo, publisher, make_shipment):
        _, _, result = await _booked(repo, publisher, make_shipment)
        payload = announce_booking(result.booking, None, publisher)
        assert payload["route"] == ""
        assert payload["shipmentStatus"] == ""
