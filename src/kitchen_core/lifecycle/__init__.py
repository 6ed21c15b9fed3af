"""
Lifecycle module for ticket status changes.

Exports:
    TRANSITIONS: The (status, action) -> status edge table
    allowed_actions: Status-changing actions legal from a status
    next_status: Resolve an action's target status or raise InvalidTransition
    is_consistent_timeline: Replay a timeline against the edge table
    TicketLifecycleController: Applies operator actions to stored tickets
    HandoffLog: Append-only log of completed handoffs
"""

from kitchen_core.lifecycle.machine import (
    TRANSITIONS,
    allowed_actions,
    is_consistent_timeline,
    next_status,
)

# Lazy import to avoid circular dependency with store
# TicketStore imports lifecycle.machine; the controller imports TicketStore


def __getattr__(name: str):
    """Lazy import for the controller to avoid circular imports."""
    if name in ("TicketLifecycleController", "HandoffLog", "parse_remake_reason"):
        from kitchen_core.lifecycle import controller

        return getattr(controller, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "TRANSITIONS",
    "HandoffLog",
    "TicketLifecycleController",
    "allowed_actions",
    "is_consistent_timeline",
    "next_status",
    "parse_remake_reason",
]
