"""
Shared fixtures for kitchen tests.

Every time-dependent test runs against a fixed ``NOW`` and a FakeClock, so
ticket ages and due margins are exact.
"""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from kitchen_core.config import KitchenLoadState
from kitchen_core.engine import KitchenEngine
from kitchen_core.types import (
    Channel,
    FulfillmentType,
    RemakeLogEntry,
    RemakeReason,
    Ticket,
    TicketItem,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
)

NOW = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_item():
    """Factory for ticket items with unique ids."""
    ids = count(1)

    def _make(name: str = "Classic Burger", station: str = "grill", **kwargs) -> TicketItem:
        kwargs.setdefault("id", f"i-{next(ids)}")
        return TicketItem(name=name, station=station, **kwargs)

    return _make


@pytest.fixture
def make_ticket(make_item):
    """
    Factory for NEW tickets created ``minutes_ago`` before NOW and due
    ``due_in`` minutes after NOW.
    """
    ids = count(1)

    def _make(
        ticket_id: str | None = None,
        minutes_ago: float = 0,
        due_in: float = 20,
        items: list[TicketItem] | None = None,
        stations: tuple[str, ...] = ("grill",),
        status: TicketStatus = TicketStatus.NEW,
        allergen_notes: str = "",
        fulfillment_type: FulfillmentType = FulfillmentType.DINE_IN,
        now: datetime = NOW,
    ) -> Ticket:
        number = next(ids)
        created_at = now - timedelta(minutes=minutes_ago)
        return Ticket(
            id=ticket_id or f"t-{number}",
            order_number=f"ORD-{100 + number}",
            channel=Channel.POS,
            fulfillment_type=fulfillment_type,
            created_at=created_at,
            promised_at=now + timedelta(minutes=due_in),
            items=items if items is not None else [make_item(station=s) for s in stations],
            status=status,
            table_number="7" if fulfillment_type is FulfillmentType.DINE_IN else None,
            allergen_notes=allergen_notes,
            timeline=[
                TimelineEvent(
                    id=f"ev-create-{number}",
                    action=TimelineAction.CREATE,
                    timestamp=created_at,
                    performed_by="intake",
                )
            ],
        )

    return _make


@pytest.fixture
def make_remake():
    """Factory for remake log entries ``minutes_ago`` before NOW."""
    ids = count(1)

    def _make(
        item_name: str = "Lamb Biryani",
        station: str = "curry",
        reason: RemakeReason = RemakeReason.WRONG_TEMPERATURE,
        minutes_ago: float = 10,
    ) -> RemakeLogEntry:
        number = next(ids)
        return RemakeLogEntry(
            id=f"rm-{number}",
            ticket_id=f"t-{number}",
            item_id=f"i-{number}",
            item_name=item_name,
            reason=reason,
            station=station,
            timestamp=NOW - timedelta(minutes=minutes_ago),
        )

    return _make


@pytest.fixture
def engine(clock) -> KitchenEngine:
    """Engine at 30% global load on the fake clock."""
    return KitchenEngine(KitchenLoadState(global_load_percent=30), clock=clock)
