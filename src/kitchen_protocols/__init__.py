"""
Protocol definitions for the kitchen display engine.

This package provides generic Protocol definitions for the collaborators
that sit outside the kitchen core (order intake, durable history storage).
It has zero dependencies on other kitchen-* packages.

Key protocols:
- TicketSourceProtocol: Interface for anything that manufactures new tickets
- LogSinkProtocol: Interface for durable remake/handoff/ticket history

Key types:
- StationId: Type alias for preparation station identifiers
- TicketId: Type alias for ticket identifiers
- OperatorId: Type alias for operator identities
"""

from kitchen_protocols.sink import LogSinkProtocol
from kitchen_protocols.source import TicketSourceProtocol
from kitchen_protocols.types import OperatorId, StationId, TicketId

__all__ = [
    # Protocols
    "LogSinkProtocol",
    "TicketSourceProtocol",
    # Identifier aliases
    "OperatorId",
    "StationId",
    "TicketId",
]
