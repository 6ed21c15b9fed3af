"""
Ticket status state machine.

Edges (from, action) -> to:
    new         + start          -> in_progress
    in_progress + bump           -> ready
    recalled    + bump           -> ready
    ready       + recall         -> recalled
    completed   + recall         -> recalled
    ready       + mark-complete  -> completed

Every other pair is rejected with InvalidTransition and an operator-readable
hint. mark-remake is an item-level action and never appears here.
"""

from typing import Iterable

from kitchen_core.exceptions import InvalidTransition
from kitchen_core.types import (
    OperatorAction,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
)

TRANSITIONS: dict[tuple[TicketStatus, OperatorAction], TicketStatus] = {
    (TicketStatus.NEW, OperatorAction.START): TicketStatus.IN_PROGRESS,
    (TicketStatus.IN_PROGRESS, OperatorAction.BUMP): TicketStatus.READY,
    (TicketStatus.RECALLED, OperatorAction.BUMP): TicketStatus.READY,
    (TicketStatus.READY, OperatorAction.RECALL): TicketStatus.RECALLED,
    (TicketStatus.COMPLETED, OperatorAction.RECALL): TicketStatus.RECALLED,
    (TicketStatus.READY, OperatorAction.MARK_COMPLETE): TicketStatus.COMPLETED,
}

# Hints for the rejected pairs an operator is most likely to hit
_HINTS: dict[tuple[TicketStatus, OperatorAction], str] = {
    (TicketStatus.NEW, OperatorAction.BUMP): "cannot bump a ticket that has not been started",
    (TicketStatus.NEW, OperatorAction.RECALL): "cannot recall a ticket that has not been started",
    (TicketStatus.NEW, OperatorAction.MARK_COMPLETE): (
        "cannot complete a ticket that has not been started"
    ),
    (TicketStatus.IN_PROGRESS, OperatorAction.START): "ticket is already in progress",
    (TicketStatus.IN_PROGRESS, OperatorAction.RECALL): (
        "ticket is still being prepared; bump it before recalling"
    ),
    (TicketStatus.IN_PROGRESS, OperatorAction.MARK_COMPLETE): (
        "ticket must be bumped to ready before it can be completed"
    ),
    (TicketStatus.READY, OperatorAction.START): "ticket is already ready",
    (TicketStatus.READY, OperatorAction.BUMP): "ticket is already ready",
    (TicketStatus.COMPLETED, OperatorAction.START): "ticket is already completed",
    (TicketStatus.COMPLETED, OperatorAction.BUMP): "ticket is already completed",
    (TicketStatus.COMPLETED, OperatorAction.MARK_COMPLETE): "ticket is already completed",
    (TicketStatus.RECALLED, OperatorAction.START): (
        "recalled tickets are reworked and bumped, not started again"
    ),
    (TicketStatus.RECALLED, OperatorAction.RECALL): "ticket is already recalled",
    (TicketStatus.RECALLED, OperatorAction.MARK_COMPLETE): (
        "recalled ticket must be bumped to ready before it can be completed"
    ),
}

# Timeline action recorded for each status a transition lands in
_EVENT_FOR_STATUS = {
    TicketStatus.IN_PROGRESS: TimelineAction.START,
    TicketStatus.READY: TimelineAction.BUMP,
    TicketStatus.RECALLED: TimelineAction.RECALL,
    TicketStatus.COMPLETED: TimelineAction.COMPLETE,
}

_ACTION_FOR_EVENT = {
    TimelineAction.START: OperatorAction.START,
    TimelineAction.BUMP: OperatorAction.BUMP,
    TimelineAction.RECALL: OperatorAction.RECALL,
    TimelineAction.COMPLETE: OperatorAction.MARK_COMPLETE,
}


def allowed_actions(status: TicketStatus) -> list[OperatorAction]:
    """Status-changing actions that are legal from ``status``."""
    return [action for (src, action) in TRANSITIONS if src == status]


def next_status(
    ticket_id: str,
    current: TicketStatus,
    action: OperatorAction,
) -> TicketStatus:
    """
    Resolve the status ``action`` leads to from ``current``.

    Args:
        ticket_id: Ticket the action applies to (for the error message)
        current: The ticket's current status
        action: A status-changing action

    Returns:
        The target status

    Raises:
        InvalidTransition: If no edge exists for (current, action)
    """
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        hint = _HINTS.get(
            (current, action),
            f"{action.value} is not allowed from {current.value}",
        )
        raise InvalidTransition(ticket_id, current, action, hint) from None


def validate_edge(
    ticket_id: str,
    current: TicketStatus,
    target: TicketStatus,
    event_action: TimelineAction,
) -> OperatorAction:
    """
    Check that an event of ``event_action`` legally moves ``current`` to ``target``.

    Used by the store, which receives the target status and the event
    rather than the operator action.

    Returns:
        The operator action the event stands for

    Raises:
        ValueError: If the event does not describe a move into ``target``
        InvalidTransition: If the edge does not exist from ``current``
    """
    action = _ACTION_FOR_EVENT.get(event_action)
    if action is None or _EVENT_FOR_STATUS.get(target) is not event_action:
        raise ValueError(
            f"A {event_action.value} event cannot move a ticket to {target.value}"
        )
    next_status(ticket_id, current, action)
    return action


def event_action_for(status: TicketStatus) -> TimelineAction:
    """Timeline action recorded when a ticket enters ``status``."""
    return _EVENT_FOR_STATUS[status]


def is_consistent_timeline(events: Iterable[TimelineEvent]) -> bool:
    """
    Replay a timeline against the edge table.

    The first event must be ``create``; every status-changing event after
    that must be a legal edge from the replayed status. Remake events are
    allowed anywhere after creation. Timestamps must not go backwards.
    """
    events = list(events)
    if not events or events[0].action is not TimelineAction.CREATE:
        return False

    status = TicketStatus.NEW
    previous = events[0].timestamp
    for event in events[1:]:
        if event.timestamp < previous:
            return False
        previous = event.timestamp
        if event.action is TimelineAction.REMAKE:
            continue
        action = _ACTION_FOR_EVENT.get(event.action)
        if action is None:
            return False
        target = TRANSITIONS.get((status, action))
        if target is None:
            return False
        status = target
    return True
