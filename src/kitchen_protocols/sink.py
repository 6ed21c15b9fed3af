"""
Log sink protocol definition.

The LogSinkProtocol defines what the kitchen core must persist, without
saying how. The remake log and handoff log are write-once audit trails;
completed tickets are archived so history outlives the in-memory store.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LogSinkProtocol(Protocol):
    """
    Protocol for durable kitchen history storage.

    Implementations must treat every append as permanent: entries are never
    edited or deleted. ``archive_ticket`` may be called again for a ticket
    that was recalled and completed a second time, in which case the newer
    snapshot replaces the older one.
    """

    async def append_remake(self, entry: Any) -> None:
        """Persist one RemakeLogEntry."""
        ...

    async def append_handoff(self, entry: Any) -> None:
        """Persist one HandoffLogEntry."""
        ...

    async def archive_ticket(self, ticket: Any) -> None:
        """Persist a snapshot of a completed Ticket."""
        ...
