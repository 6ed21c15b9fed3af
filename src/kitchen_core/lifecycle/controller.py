"""
Ticket lifecycle controller.

Turns operator actions into store operations. Every accepted action
appends exactly one timeline event; status-changing actions go through
``TicketStore.transition``, remakes through ``TicketStore.mark_remake``.

Side logs:
- Every remake appends a RemakeLogEntry to the remake log
- Every completion appends a HandoffLogEntry to the handoff log
"""

import logging
import threading

from kitchen_protocols import OperatorId, StationId, TicketId
from kitchen_core.exceptions import EmptyActionContext, UnknownRemakeReason
from kitchen_core.lifecycle.machine import event_action_for, next_status
from kitchen_core.monitor.mistakes import RemakeLog
from kitchen_core.store import TicketStore
from kitchen_core.types import (
    Clock,
    HandoffLogEntry,
    HandoffMethod,
    OperatorAction,
    RemakeLogEntry,
    RemakeReason,
    Ticket,
    TimelineAction,
    TimelineEvent,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


def parse_remake_reason(reason: RemakeReason | str | None) -> RemakeReason:
    """
    Coerce a remake reason from its enum or string form.

    Accepts the enum value ("wrong-temperature") as well as the label form
    ("Wrong temperature").

    Raises:
        EmptyActionContext: If no reason is given
        UnknownRemakeReason: If the reason is not a known remake reason
    """
    if isinstance(reason, RemakeReason):
        return reason
    if reason is None or not reason.strip():
        raise EmptyActionContext(OperatorAction.MARK_REMAKE, "reason")
    normalized = reason.strip().lower().replace(" ", "-").replace("_", "-")
    try:
        return RemakeReason(normalized)
    except ValueError:
        raise UnknownRemakeReason(reason) from None


class HandoffLog:
    """Append-only, thread-safe log of tickets handed off at the pass."""

    def __init__(self) -> None:
        self._entries: list[HandoffLogEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: HandoffLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> tuple[HandoffLogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TicketLifecycleController:
    """
    Applies operator actions to tickets in a TicketStore.

    Example:
        controller = TicketLifecycleController(store, RemakeLog())
        controller.start(ticket_id, "grill-1")
        controller.bump(ticket_id, "grill-1")
        controller.recall(ticket_id, "expo", reason="wrong item")
    """

    def __init__(
        self,
        store: TicketStore,
        remake_log: RemakeLog,
        handoff_log: HandoffLog | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the controller.

        Args:
            store: Ticket store to act on
            remake_log: Log that receives an entry per remade item
            handoff_log: Log that receives an entry per completed ticket
            clock: Source of event timestamps
        """
        self.store = store
        self.remake_log = remake_log
        self.handoff_log = handoff_log if handoff_log is not None else HandoffLog()
        self.clock = clock

    def _event(
        self,
        action: TimelineAction,
        operator: OperatorId,
        note: str | None = None,
        station: StationId | None = None,
    ) -> TimelineEvent:
        return TimelineEvent(
            id=new_id("ev"),
            action=action,
            timestamp=self.clock(),
            performed_by=operator,
            note=note,
            station=station,
        )

    @staticmethod
    def _require_operator(action: OperatorAction, operator: OperatorId) -> OperatorId:
        if not operator or not operator.strip():
            raise EmptyActionContext(action, "operator")
        return operator.strip()

    def _move(
        self,
        ticket_id: TicketId,
        action: OperatorAction,
        operator: OperatorId,
        note: str | None = None,
        station: StationId | None = None,
        handoff_method: HandoffMethod | None = None,
    ) -> Ticket:
        operator = self._require_operator(action, operator)
        current = self.store.get(ticket_id)
        # Resolved here for the error message; the store re-validates under its lock
        target = next_status(ticket_id, current.status, action)
        event = self._event(event_action_for(target), operator, note, station)
        ticket = self.store.transition(
            ticket_id, target, event, handoff_method=handoff_method
        )
        logger.info(
            f"Ticket {ticket.order_number} ({ticket_id}): {action.value} by {operator} "
            f"-> {ticket.status.value}"
        )
        return ticket

    def start(
        self, ticket_id: TicketId, operator: OperatorId, station: StationId | None = None
    ) -> Ticket:
        """Begin work on a NEW ticket."""
        return self._move(ticket_id, OperatorAction.START, operator, station=station)

    def bump(
        self, ticket_id: TicketId, operator: OperatorId, station: StationId | None = None
    ) -> Ticket:
        """Mark an in-progress or recalled ticket ready."""
        return self._move(ticket_id, OperatorAction.BUMP, operator, station=station)

    def recall(
        self,
        ticket_id: TicketId,
        operator: OperatorId,
        reason: str | None,
        station: StationId | None = None,
    ) -> Ticket:
        """
        Pull a ready or completed ticket back for rework.

        Raises:
            EmptyActionContext: If ``reason`` is missing or blank
        """
        if reason is None or not reason.strip():
            raise EmptyActionContext(OperatorAction.RECALL, "reason")
        return self._move(
            ticket_id, OperatorAction.RECALL, operator, note=reason.strip(), station=station
        )

    def complete(
        self,
        ticket_id: TicketId,
        operator: OperatorId,
        method: HandoffMethod | None = None,
    ) -> Ticket:
        """
        Hand a ready ticket off and record it in the handoff log.

        Args:
            ticket_id: Ticket to complete
            operator: Who handed the ticket off
            method: How it left the kitchen (defaults from the fulfillment type)
        """
        note = method.value if method else None
        ticket = self._move(
            ticket_id,
            OperatorAction.MARK_COMPLETE,
            operator,
            note=note,
            handoff_method=method,
        )
        self.handoff_log.record(
            HandoffLogEntry(
                id=new_id("ho"),
                ticket_id=ticket.id,
                order_number=ticket.order_number,
                handed_off_by=ticket.handoff_by,
                method=ticket.handoff_method,
                timestamp=ticket.completed_at,
                table_number=ticket.table_number,
            )
        )
        return ticket

    def remake(
        self,
        ticket_id: TicketId,
        item_id: str | None,
        operator: OperatorId,
        reason: RemakeReason | str | None,
        notes: str | None = None,
    ) -> Ticket:
        """
        Flag one item for remaking; the ticket's status does not change.

        Raises:
            EmptyActionContext: If the item, reason or operator is missing
            UnknownRemakeReason: If the reason is not a known remake reason
            ItemNotFound: If the ticket has no such item
        """
        operator = self._require_operator(OperatorAction.MARK_REMAKE, operator)
        if not item_id:
            raise EmptyActionContext(OperatorAction.MARK_REMAKE, "item")
        remake_reason = parse_remake_reason(reason)

        current = self.store.get(ticket_id)
        item = current.find_item(item_id)
        note = f"{item.name}: {remake_reason.value}" if item else remake_reason.value
        event = self._event(
            TimelineAction.REMAKE,
            operator,
            note=note,
            station=item.station if item else None,
        )
        ticket, item = self.store.mark_remake(ticket_id, item_id, remake_reason, event)

        self.remake_log.record_remake(
            RemakeLogEntry(
                id=new_id("rm"),
                ticket_id=ticket.id,
                item_id=item.id,
                item_name=item.name,
                reason=remake_reason,
                station=item.station,
                timestamp=ticket.timeline[-1].timestamp,
                performed_by=operator,
                notes=notes,
            )
        )
        logger.info(
            f"Remake on {ticket.order_number}: {item.name} at {item.station} "
            f"({remake_reason.value}) by {operator}"
        )
        return ticket
