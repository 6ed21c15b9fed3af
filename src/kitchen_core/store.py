"""
In-memory ticket store.

The store is the single source of truth for tickets. It hands out deep
copies, so callers can never change a stored ticket behind its back; the
only ways in are ``append``, ``transition``, ``mark_remake`` and
``restamp_priority``.

Concurrency:
- One lock per ticket id linearizes transitions on the same ticket
- A registry lock guards the id -> ticket map itself
- Operations on different tickets proceed independently
"""

import copy
import logging
import threading
from dataclasses import replace

from kitchen_protocols import TicketId
from kitchen_core.exceptions import (
    EmptyActionContext,
    ItemNotFound,
    MalformedTicket,
    TicketNotFound,
)
from kitchen_core.lifecycle.machine import validate_edge
from kitchen_core.types import (
    DEFAULT_HANDOFF_FOR,
    HandoffMethod,
    OperatorAction,
    PriorityScore,
    RemakeReason,
    Ticket,
    TicketItem,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
)

logger = logging.getLogger(__name__)


class TicketStore:
    """
    Thread-safe map of tickets keyed by id.

    Example:
        store = TicketStore()
        store.append(ticket)
        store.transition(ticket.id, TicketStatus.IN_PROGRESS, start_event)
        in_progress = store.list_by_status(TicketStatus.IN_PROGRESS)
    """

    def __init__(self) -> None:
        self._tickets: dict[TicketId, Ticket] = {}
        self._locks: dict[TicketId, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._tickets)

    def __contains__(self, ticket_id: object) -> bool:
        with self._registry_lock:
            return ticket_id in self._tickets

    def _lock_for(self, ticket_id: TicketId) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(ticket_id)
        if lock is None:
            raise TicketNotFound(ticket_id)
        return lock

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, ticket_id: TicketId) -> Ticket:
        """
        Snapshot of one ticket.

        Raises:
            TicketNotFound: If no ticket has this id
        """
        with self._lock_for(ticket_id):
            return copy.deepcopy(self._tickets[ticket_id])

    def list_all(self) -> list[Ticket]:
        """Snapshots of every ticket, oldest first."""
        with self._registry_lock:
            ids = list(self._tickets)
        tickets = []
        for ticket_id in ids:
            with self._locks[ticket_id]:
                tickets.append(copy.deepcopy(self._tickets[ticket_id]))
        tickets.sort(key=lambda t: t.created_at)
        return tickets

    def list_by_status(self, status: TicketStatus) -> list[Ticket]:
        """Snapshots of every ticket currently in ``status``, oldest first."""
        return [t for t in self.list_all() if t.status == status]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def append(self, ticket: Ticket) -> Ticket:
        """
        Store a new ticket.

        The store keeps its own copy; later changes to ``ticket`` by the
        caller have no effect.

        Raises:
            MalformedTicket: If a ticket with the same id already exists
        """
        stored = copy.deepcopy(ticket)
        with self._registry_lock:
            if stored.id in self._tickets:
                raise MalformedTicket("duplicate ticket id", ticket_id=stored.id)
            self._tickets[stored.id] = stored
            self._locks[stored.id] = threading.Lock()
        return copy.deepcopy(stored)

    def transition(
        self,
        ticket_id: TicketId,
        new_status: TicketStatus,
        event: TimelineEvent,
        *,
        handoff_method: HandoffMethod | None = None,
    ) -> Ticket:
        """
        Move a ticket to ``new_status`` and append ``event`` to its timeline.

        This is the only way a ticket's status changes. Side effects by
        target status:
        - in_progress: started_at set, priority cleared
        - ready: ready_at set, recall fields cleared
        - recalled: recall_reason (the event note) and recalled_from set
        - completed: completed_at and handoff fields set

        An event timestamp earlier than the last timeline entry is clamped
        to it, so timeline timestamps never go backwards.

        Args:
            ticket_id: Ticket to move
            new_status: Target status
            event: Timeline event describing the move
            handoff_method: Handoff method for completion (defaults from
                the fulfillment type)

        Returns:
            Snapshot of the ticket after the transition

        Raises:
            TicketNotFound: If no ticket has this id
            InvalidTransition: If the edge does not exist from the current status
            EmptyActionContext: If a recall event carries no reason
        """
        with self._lock_for(ticket_id):
            ticket = self._tickets[ticket_id]
            previous = ticket.status
            validate_edge(ticket_id, previous, new_status, event.action)

            if new_status is TicketStatus.RECALLED and not (event.note and event.note.strip()):
                raise EmptyActionContext(OperatorAction.RECALL, "reason")

            event = self._clamped(ticket, event)
            at = event.timestamp

            if new_status is TicketStatus.IN_PROGRESS:
                ticket.started_at = at
                ticket.priority = None
            elif new_status is TicketStatus.READY:
                ticket.ready_at = at
                ticket.recall_reason = None
                ticket.recalled_from = None
            elif new_status is TicketStatus.RECALLED:
                ticket.recall_reason = event.note.strip()
                ticket.recalled_from = previous
            elif new_status is TicketStatus.COMPLETED:
                ticket.completed_at = at
                ticket.handoff_by = event.performed_by
                ticket.handoff_method = handoff_method or DEFAULT_HANDOFF_FOR[
                    ticket.fulfillment_type
                ]

            ticket.status = new_status
            ticket.timeline.append(event)
            logger.debug(
                f"Ticket {ticket_id}: {previous.value} -> {new_status.value} "
                f"by {event.performed_by}"
            )
            return copy.deepcopy(ticket)

    def mark_remake(
        self,
        ticket_id: TicketId,
        item_id: str,
        reason: RemakeReason,
        event: TimelineEvent,
    ) -> tuple[Ticket, TicketItem]:
        """
        Flag an item as remade and append ``event``; status is unchanged.

        Allowed in any status. Marking an item again keeps the flag set and
        records the latest reason.

        Returns:
            Snapshots of the ticket and the remade item

        Raises:
            TicketNotFound: If no ticket has this id
            ItemNotFound: If the ticket has no item with ``item_id``
        """
        if event.action is not TimelineAction.REMAKE:
            raise ValueError(f"Expected a remake event, got {event.action.value}")

        with self._lock_for(ticket_id):
            ticket = self._tickets[ticket_id]
            item = ticket.find_item(item_id)
            if item is None:
                raise ItemNotFound(ticket_id, item_id)

            item.is_remake = True
            item.remake_reason = reason
            ticket.timeline.append(self._clamped(ticket, event))
            return copy.deepcopy(ticket), copy.deepcopy(item)

    def restamp_priority(self, ticket_id: TicketId, score: PriorityScore) -> bool:
        """
        Replace the priority of a NEW ticket.

        Returns:
            False (and changes nothing) if the ticket has already started
        """
        with self._lock_for(ticket_id):
            ticket = self._tickets[ticket_id]
            if ticket.status is not TicketStatus.NEW:
                return False
            ticket.priority = score
            return True

    @staticmethod
    def _clamped(ticket: Ticket, event: TimelineEvent) -> TimelineEvent:
        if ticket.timeline and event.timestamp < ticket.timeline[-1].timestamp:
            return replace(event, timestamp=ticket.timeline[-1].timestamp)
        return event
