"""
Tests for the ticket state machine and the lifecycle controller.

The edge table is checked exhaustively; the controller tests cover the
side effects each accepted action has on a ticket and the side logs.
"""

import itertools
from datetime import timedelta

import pytest

from kitchen_core.exceptions import (
    EmptyActionContext,
    InvalidTransition,
    ItemNotFound,
    UnknownRemakeReason,
)
from kitchen_core.lifecycle import (
    TRANSITIONS,
    HandoffLog,
    TicketLifecycleController,
    allowed_actions,
    is_consistent_timeline,
    next_status,
    parse_remake_reason,
)
from kitchen_core.monitor.mistakes import RemakeLog
from kitchen_core.store import TicketStore
from kitchen_core.types import (
    FulfillmentType,
    HandoffMethod,
    OperatorAction,
    RemakeReason,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
)

STATUS_ACTIONS = [a for a in OperatorAction if a is not OperatorAction.MARK_REMAKE]


def _event(action: TimelineAction, at, number: int = 0) -> TimelineEvent:
    return TimelineEvent(id=f"ev-{number}", action=action, timestamp=at, performed_by="cook")


class TestStateMachine:
    """Tests for the edge table."""

    @pytest.mark.parametrize(
        "status,action", list(itertools.product(TicketStatus, STATUS_ACTIONS))
    )
    def test_every_pair(self, status, action):
        expected = TRANSITIONS.get((status, action))
        if expected is None:
            with pytest.raises(InvalidTransition) as exc_info:
                next_status("t-1", status, action)
            assert exc_info.value.status is status
            assert exc_info.value.action is action
            assert exc_info.value.hint
        else:
            assert next_status("t-1", status, action) is expected

    def test_bump_new_ticket_hint(self):
        with pytest.raises(InvalidTransition) as exc_info:
            next_status("t-1", TicketStatus.NEW, OperatorAction.BUMP)

        assert exc_info.value.hint == "cannot bump a ticket that has not been started"
        assert "t-1" in str(exc_info.value)

    def test_recall_recalled_ticket_rejected(self):
        with pytest.raises(InvalidTransition, match="already recalled"):
            next_status("t-1", TicketStatus.RECALLED, OperatorAction.RECALL)

    def test_bump_always_lands_on_ready(self):
        assert next_status("t", TicketStatus.IN_PROGRESS, OperatorAction.BUMP) is TicketStatus.READY
        assert next_status("t", TicketStatus.RECALLED, OperatorAction.BUMP) is TicketStatus.READY

    def test_allowed_actions(self):
        assert allowed_actions(TicketStatus.NEW) == [OperatorAction.START]
        assert set(allowed_actions(TicketStatus.READY)) == {
            OperatorAction.RECALL,
            OperatorAction.MARK_COMPLETE,
        }
        assert allowed_actions(TicketStatus.IN_PROGRESS) == [OperatorAction.BUMP]


class TestConsistentTimeline:
    """Tests for timeline replay."""

    def test_full_lifecycle(self, now):
        events = [
            _event(TimelineAction.CREATE, now, 1),
            _event(TimelineAction.START, now + timedelta(minutes=1), 2),
            _event(TimelineAction.REMAKE, now + timedelta(minutes=2), 3),
            _event(TimelineAction.BUMP, now + timedelta(minutes=5), 4),
            _event(TimelineAction.COMPLETE, now + timedelta(minutes=6), 5),
            _event(TimelineAction.RECALL, now + timedelta(minutes=7), 6),
            _event(TimelineAction.BUMP, now + timedelta(minutes=9), 7),
        ]
        assert is_consistent_timeline(events)

    def test_must_start_with_create(self, now):
        assert not is_consistent_timeline([_event(TimelineAction.START, now)])
        assert not is_consistent_timeline([])

    def test_illegal_edge(self, now):
        events = [_event(TimelineAction.CREATE, now), _event(TimelineAction.BUMP, now)]
        assert not is_consistent_timeline(events)

    def test_timestamps_must_not_go_backwards(self, now):
        events = [
            _event(TimelineAction.CREATE, now),
            _event(TimelineAction.START, now - timedelta(seconds=1)),
        ]
        assert not is_consistent_timeline(events)


class TestParseRemakeReason:
    """Tests for parse_remake_reason."""

    @pytest.mark.parametrize(
        "raw",
        ["wrong-temperature", "Wrong temperature", "WRONG_TEMPERATURE", " wrong temperature "],
    )
    def test_accepted_forms(self, raw):
        assert parse_remake_reason(raw) is RemakeReason.WRONG_TEMPERATURE

    def test_enum_passthrough(self):
        assert parse_remake_reason(RemakeReason.DROPPED) is RemakeReason.DROPPED

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing(self, raw):
        with pytest.raises(EmptyActionContext) as exc_info:
            parse_remake_reason(raw)
        assert exc_info.value.missing == "reason"

    def test_unknown(self):
        with pytest.raises(UnknownRemakeReason):
            parse_remake_reason("too salty")


@pytest.fixture
def store(make_ticket, make_item):
    store = TicketStore()
    store.append(
        make_ticket(
            "t-1",
            items=[
                make_item("Lamb Biryani", "curry", id="i-biryani"),
                make_item("Garlic Naan", "grill", id="i-naan"),
            ],
        )
    )
    store.append(make_ticket("t-pickup", fulfillment_type=FulfillmentType.PICKUP))
    return store


@pytest.fixture
def controller(store, clock):
    return TicketLifecycleController(store, RemakeLog(), clock=clock)


class TestTicketLifecycleController:
    """Tests for TicketLifecycleController."""

    def test_start(self, controller, clock):
        ticket = controller.start("t-1", "curry-1", station="curry")

        assert ticket.status is TicketStatus.IN_PROGRESS
        assert ticket.started_at == clock.now
        assert ticket.priority is None
        assert ticket.timeline[-1].action is TimelineAction.START
        assert ticket.timeline[-1].performed_by == "curry-1"
        assert ticket.timeline[-1].station == "curry"

    def test_start_twice_rejected_without_side_effects(self, controller, store, clock):
        controller.start("t-1", "curry-1")
        clock.advance(minutes=1)

        with pytest.raises(InvalidTransition):
            controller.start("t-1", "curry-2")

        ticket = store.get("t-1")
        assert ticket.started_at == clock.now - timedelta(minutes=1)
        assert len(ticket.timeline) == 2

    def test_bump_new_ticket_rejected(self, controller, store):
        with pytest.raises(InvalidTransition) as exc_info:
            controller.bump("t-1", "curry-1")

        assert "not been started" in exc_info.value.hint
        assert store.get("t-1").status is TicketStatus.NEW

    def test_recall_records_reason_and_origin(self, controller, clock):
        controller.start("t-1", "curry-1")
        clock.advance(minutes=8)
        controller.bump("t-1", "curry-1")
        clock.advance(minutes=1)

        ticket = controller.recall("t-1", "expo", reason="wrong item")

        assert ticket.status is TicketStatus.RECALLED
        assert ticket.recall_reason == "wrong item"
        assert ticket.recalled_from is TicketStatus.READY
        recalls = [e for e in ticket.timeline if e.action is TimelineAction.RECALL]
        assert len(recalls) == 1
        assert recalls[0].note == "wrong item"

    def test_recall_requires_reason(self, controller):
        controller.start("t-1", "curry-1")
        controller.bump("t-1", "curry-1")

        with pytest.raises(EmptyActionContext) as exc_info:
            controller.recall("t-1", "expo", reason="  ")

        assert exc_info.value.missing == "reason"

    def test_recall_completed_ticket(self, controller):
        for step in (controller.start, controller.bump, controller.complete):
            step("t-1", "curry-1")

        ticket = controller.recall("t-1", "expo", reason="guest says cold")

        assert ticket.recalled_from is TicketStatus.COMPLETED

    def test_bump_recalled_clears_recall_fields(self, controller):
        controller.start("t-1", "curry-1")
        controller.bump("t-1", "curry-1")
        controller.recall("t-1", "expo", reason="missing raita")

        ticket = controller.bump("t-1", "curry-1")

        assert ticket.status is TicketStatus.READY
        assert ticket.recall_reason is None
        assert ticket.recalled_from is None

    def test_complete_dine_in_defaults_to_served(self, controller, clock):
        controller.start("t-1", "curry-1")
        controller.bump("t-1", "curry-1")

        ticket = controller.complete("t-1", "runner-2")

        assert ticket.status is TicketStatus.COMPLETED
        assert ticket.handoff_by == "runner-2"
        assert ticket.handoff_method is HandoffMethod.SERVED
        assert ticket.completed_at == clock.now

        [entry] = controller.handoff_log.entries()
        assert entry.ticket_id == "t-1"
        assert entry.method is HandoffMethod.SERVED
        assert entry.table_number == "7"
        assert entry.handed_off_by == "runner-2"

    def test_complete_pickup_with_explicit_method(self, controller):
        controller.start("t-pickup", "grill-1")
        controller.bump("t-pickup", "grill-1")

        ticket = controller.complete("t-pickup", "counter", method=HandoffMethod.DELIVERY)

        assert ticket.handoff_method is HandoffMethod.DELIVERY
        assert ticket.timeline[-1].note == "delivery"

    def test_complete_pickup_default(self, controller):
        controller.start("t-pickup", "grill-1")
        controller.bump("t-pickup", "grill-1")

        assert controller.complete("t-pickup", "counter").handoff_method is HandoffMethod.PICKUP

    def test_complete_in_progress_rejected(self, controller):
        controller.start("t-1", "curry-1")

        with pytest.raises(InvalidTransition, match="bumped to ready"):
            controller.complete("t-1", "runner")

        assert len(controller.handoff_log) == 0

    def test_blank_operator_rejected(self, controller):
        with pytest.raises(EmptyActionContext) as exc_info:
            controller.start("t-1", " ")

        assert exc_info.value.missing == "operator"

    def test_remake_keeps_status_and_logs(self, controller, clock):
        controller.start("t-1", "curry-1")
        clock.advance(minutes=3)

        ticket = controller.remake(
            "t-1", "i-biryani", "expo", "wrong temperature", notes="lukewarm at pass"
        )

        assert ticket.status is TicketStatus.IN_PROGRESS
        item = ticket.find_item("i-biryani")
        assert item.is_remake is True
        assert item.remake_reason is RemakeReason.WRONG_TEMPERATURE
        assert ticket.timeline[-1].action is TimelineAction.REMAKE
        assert ticket.timeline[-1].note == "Lamb Biryani: wrong-temperature"
        assert ticket.timeline[-1].station == "curry"

        [entry] = controller.remake_log.entries()
        assert entry.item_name == "Lamb Biryani"
        assert entry.station == "curry"
        assert entry.reason is RemakeReason.WRONG_TEMPERATURE
        assert entry.performed_by == "expo"
        assert entry.notes == "lukewarm at pass"
        assert entry.timestamp == clock.now

    def test_remake_again_appends_new_entry(self, controller):
        controller.remake("t-1", "i-naan", "expo", RemakeReason.DROPPED)
        ticket = controller.remake("t-1", "i-naan", "expo", RemakeReason.OVERCOOKED)

        assert ticket.find_item("i-naan").is_remake is True
        assert ticket.find_item("i-naan").remake_reason is RemakeReason.OVERCOOKED
        assert len(controller.remake_log) == 2

    def test_remake_requires_item(self, controller):
        with pytest.raises(EmptyActionContext) as exc_info:
            controller.remake("t-1", None, "expo", RemakeReason.DROPPED)

        assert exc_info.value.missing == "item"

    def test_remake_unknown_item(self, controller):
        with pytest.raises(ItemNotFound):
            controller.remake("t-1", "i-missing", "expo", RemakeReason.DROPPED)

        assert len(controller.remake_log) == 0

    def test_remake_unknown_reason(self, controller, store):
        with pytest.raises(UnknownRemakeReason):
            controller.remake("t-1", "i-naan", "expo", "too salty")

        assert len(store.get("t-1").timeline) == 1

    def test_timeline_consistent_after_full_run(self, controller, store, clock):
        controller.start("t-1", "curry-1")
        clock.advance(minutes=2)
        controller.remake("t-1", "i-naan", "expo", "dropped")
        clock.advance(minutes=6)
        controller.bump("t-1", "curry-1")
        controller.recall("t-1", "expo", reason="wrong item")
        controller.bump("t-1", "curry-1")
        controller.complete("t-1", "runner")

        assert is_consistent_timeline(store.get("t-1").timeline)

    def test_shared_handoff_log(self, store, clock):
        log = HandoffLog()
        controller = TicketLifecycleController(store, RemakeLog(), log, clock=clock)

        controller.start("t-1", "a")
        controller.bump("t-1", "a")
        controller.complete("t-1", "a")

        assert len(log) == 1
