"""
Station routing.

A ticket visits every station one of its items is assigned to. A ticket
with items at several stations shows up in several station groups at once;
each station only looks at its own items through ``items_for_station``.
"""

from typing import Iterable

from kitchen_protocols import StationId
from kitchen_core.types import Ticket, TicketItem, derive_station_assignments

__all__ = [
    "derive_station_assignments",
    "group_active_by_station",
    "items_for_station",
    "tickets_for_station",
]


def group_active_by_station(
    tickets: Iterable[Ticket],
    stations: Iterable[StationId] = (),
) -> dict[StationId, list[Ticket]]:
    """
    Group active tickets (new, in progress, recalled) by station.

    Ready and completed tickets have left the stations' active work and are
    not included.

    Args:
        tickets: Tickets to group
        stations: Known stations to include even when they have no tickets

    Returns:
        Mapping of station to its active tickets, in input order
    """
    groups: dict[StationId, list[Ticket]] = {station: [] for station in stations}
    for ticket in tickets:
        if not ticket.status.is_active:
            continue
        for station in ticket.station_assignments:
            groups.setdefault(station, []).append(ticket)
    return groups


def tickets_for_station(tickets: Iterable[Ticket], station: StationId) -> list[Ticket]:
    """All tickets (any status) with at least one item at ``station``."""
    return [t for t in tickets if station in t.station_assignments]


def items_for_station(ticket: Ticket, station: StationId) -> list[TicketItem]:
    """The items of ``ticket`` a given station is responsible for."""
    return [item for item in ticket.items if item.station == station]
