"""
Exception classes for the kitchen engine.

Every error raised by the core is local, synchronous and caller-visible.
None of them is retried automatically: they describe a logic or input
problem, not a transient fault.

- InvalidTransition: Requested action has no edge from the current status
- TicketNotFound / ItemNotFound: Unknown ticket or item id
- MalformedTicket: Ticket rejected at submission
- EmptyActionContext: Action missing required context (reason, item, operator)
- UnknownAction / UnknownRemakeReason / UnknownHandoffMethod: Value outside
  a closed set

Per project patterns:
- Store context data in attributes for error handling
- Include a specific, operator-readable message
"""

from kitchen_core.types import HandoffMethod, OperatorAction, RemakeReason, TicketStatus


class KitchenError(Exception):
    """Base class for all errors raised by the kitchen core."""


class InvalidTransition(KitchenError):
    """
    Raised when an action is not allowed from a ticket's current status.

    Attributes:
        ticket_id: The ticket the action was applied to
        status: The ticket's status at the time
        action: The rejected action
        hint: Why the action is not allowed, phrased for an operator
    """

    def __init__(
        self,
        ticket_id: str,
        status: TicketStatus,
        action: OperatorAction,
        hint: str,
    ) -> None:
        self.ticket_id = ticket_id
        self.status = status
        self.action = action
        self.hint = hint
        super().__init__(
            f"Cannot {action.value} ticket {ticket_id} (status: {status.value}): {hint}"
        )


class TicketNotFound(KitchenError):
    """
    Raised when no ticket exists with the given id.

    Attributes:
        ticket_id: The id that was looked up
    """

    def __init__(self, ticket_id: str) -> None:
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class ItemNotFound(KitchenError):
    """
    Raised when a ticket has no item with the given id.

    Attributes:
        ticket_id: The ticket that was searched
        item_id: The item id that was looked up
    """

    def __init__(self, ticket_id: str, item_id: str) -> None:
        self.ticket_id = ticket_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found on ticket {ticket_id}")


class MalformedTicket(KitchenError):
    """
    Raised when a submitted ticket is rejected and not stored.

    Attributes:
        reason: What is wrong with the ticket
        ticket_id: The ticket id, when one could be read
    """

    def __init__(self, reason: str, ticket_id: str | None = None) -> None:
        self.reason = reason
        self.ticket_id = ticket_id
        prefix = f"Ticket {ticket_id} rejected" if ticket_id else "Ticket rejected"
        super().__init__(f"{prefix}: {reason}")


class EmptyActionContext(KitchenError):
    """
    Raised when an action is missing context it cannot run without.

    Attributes:
        action: The action that was attempted
        missing: Name of the missing piece of context (e.g. "reason")
    """

    def __init__(self, action: OperatorAction, missing: str) -> None:
        self.action = action
        self.missing = missing
        super().__init__(f"Cannot {action.value} without a {missing}")


class UnknownAction(KitchenError):
    """Raised when an action name is not one of the operator actions."""

    def __init__(self, action: str) -> None:
        self.action = action
        allowed = ", ".join(a.value for a in OperatorAction)
        super().__init__(f"Unknown action '{action}' (expected one of: {allowed})")


class UnknownRemakeReason(KitchenError):
    """Raised when a remake reason is not one of the known reasons."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        allowed = ", ".join(r.value for r in RemakeReason)
        super().__init__(f"Unknown remake reason '{reason}' (expected one of: {allowed})")


class UnknownHandoffMethod(KitchenError):
    """Raised when a handoff method is not served, pickup or delivery."""

    def __init__(self, method: str) -> None:
        self.method = method
        allowed = ", ".join(m.value for m in HandoffMethod)
        super().__init__(f"Unknown handoff method '{method}' (expected one of: {allowed})")
