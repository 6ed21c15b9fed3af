"""
Ticket source protocol definition.

A TicketSource is the order-intake side of the kitchen: a POS bridge, an
online ordering feed, or the demo simulator. The kitchen core only consumes
what a source produces; it never tells a source what to make.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TicketSourceProtocol(Protocol):
    """
    Protocol for ticket ingestion sources.

    Implementations return every ticket manufactured since the previous
    call. Returned objects are either fully-formed ``Ticket`` instances or
    JSON-like payload dicts accepted by ``kitchen_core.intake.parse_ticket``.

    Example:
        class PosBridge:
            async def poll(self) -> list[Any]:
                return await self._client.fetch_new_orders()
    """

    async def poll(self) -> list[Any]:
        """
        Collect tickets created since the last poll.

        Returns:
            List of new tickets (possibly empty). Never returns the same
            ticket twice.
        """
        ...
