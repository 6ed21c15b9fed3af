"""Tests for ingestion payload validation."""

from datetime import timedelta

import pytest

from kitchen_core.exceptions import MalformedTicket
from kitchen_core.intake import INTAKE_OPERATOR, parse_ticket
from kitchen_core.types import Channel, FulfillmentType, TicketStatus, TimelineAction


def _payload(**overrides):
    payload = {
        "id": "t-100",
        "order_number": "ORD-100",
        "channel": "delivery",
        "fulfillment_type": "delivery",
        "created_at": "2026-03-14T18:00:00+00:00",
        "promised_in_minutes": 20,
        "items": [
            {"id": "i-1", "name": "Chicken Tikka Masala", "station": "curry"},
            {
                "name": "Garlic Naan",
                "station": "grill",
                "quantity": 2,
                "modifiers": ["extra butter"],
            },
        ],
        "allergen_notes": "nut allergy",
    }
    payload.update(overrides)
    return payload


class TestParseTicket:
    """Tests for parse_ticket."""

    def test_valid_payload(self, now):
        ticket = parse_ticket(_payload())

        assert ticket.id == "t-100"
        assert ticket.status is TicketStatus.NEW
        assert ticket.channel is Channel.DELIVERY
        assert ticket.fulfillment_type is FulfillmentType.DELIVERY
        assert ticket.created_at == now
        assert ticket.promised_at == now + timedelta(minutes=20)
        assert ticket.station_assignments == ("curry", "grill")
        assert ticket.items[0].id == "i-1"
        assert ticket.items[1].id.startswith("i-")
        assert ticket.items[1].quantity == 2
        assert ticket.items[1].modifiers == ["extra butter"]
        assert ticket.has_allergens

        [event] = ticket.timeline
        assert event.action is TimelineAction.CREATE
        assert event.timestamp == now
        assert event.performed_by == INTAKE_OPERATOR

    def test_defaults(self, now):
        ticket = parse_ticket(
            {
                "order_number": "ORD-7",
                "promised_at": "2026-03-14T18:30:00Z",
                "items": [{"name": "Fries", "station": "fry"}],
            },
            now=now,
        )

        assert ticket.id.startswith("t-")
        assert ticket.channel is Channel.POS
        assert ticket.fulfillment_type is FulfillmentType.DINE_IN
        assert ticket.created_at == now
        assert ticket.promised_at == now + timedelta(minutes=30)

    def test_blank_allergen_notes_dropped(self, now):
        ticket = parse_ticket(_payload(allergen_notes="   "), now=now)

        assert ticket.allergen_notes == ""
        assert not ticket.has_allergens

    def test_missing_items(self):
        payload = _payload()
        del payload["items"]

        with pytest.raises(MalformedTicket, match="items") as exc_info:
            parse_ticket(payload)

        assert exc_info.value.ticket_id == "t-100"

    def test_empty_items(self):
        with pytest.raises(MalformedTicket, match="items"):
            parse_ticket(_payload(items=[]))

    def test_naive_created_at(self):
        with pytest.raises(MalformedTicket, match="created_at"):
            parse_ticket(_payload(created_at="2026-03-14T18:00:00"))

    def test_promised_before_created(self):
        with pytest.raises(MalformedTicket, match="before created_at"):
            parse_ticket(
                _payload(promised_in_minutes=None, promised_at="2026-03-14T17:50:00+00:00")
            )

    def test_no_due_time(self):
        with pytest.raises(MalformedTicket, match="promised_in_minutes"):
            parse_ticket(_payload(promised_in_minutes=None))

    def test_unknown_channel(self):
        with pytest.raises(MalformedTicket, match="channel"):
            parse_ticket(_payload(channel="fax"))

    def test_zero_quantity(self):
        with pytest.raises(MalformedTicket, match="quantity"):
            parse_ticket(_payload(items=[{"name": "Fries", "station": "fry", "quantity": 0}]))

    def test_blank_station(self):
        with pytest.raises(MalformedTicket, match="station"):
            parse_ticket(_payload(items=[{"name": "Fries", "station": ""}]))

    def test_not_a_dict(self):
        with pytest.raises(MalformedTicket) as exc_info:
            parse_ticket("ORD-1 burger")

        assert exc_info.value.ticket_id is None
