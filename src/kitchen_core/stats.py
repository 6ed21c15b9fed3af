"""
Station and kitchen performance statistics.

Read-only aggregates over a ticket snapshot for the stats screen:
- station_stats: per-station backlog, completions, average ticket time
- performance_summary: kitchen-wide averages, late handoffs, slowest items

Ticket time is measured from started_at to completed_at; tickets missing
either timestamp do not contribute to averages.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from kitchen_protocols import StationId, TicketId
from kitchen_core.types import Ticket, TicketStatus, minutes_between


@dataclass(frozen=True)
class StationStats:
    """Aggregates for one station."""

    station: StationId
    backlog: int
    completed: int
    avg_ticket_minutes: float
    late_count: int

    def to_dict(self) -> dict:
        return {
            "station": self.station,
            "backlog": self.backlog,
            "completed": self.completed,
            "avg_ticket_minutes": self.avg_ticket_minutes,
            "late_count": self.late_count,
        }


@dataclass(frozen=True)
class SlowItem:
    item_name: str
    avg_minutes: float
    count: int


@dataclass(frozen=True)
class RecentCompletion:
    ticket_id: TicketId
    order_number: str
    completed_at: datetime
    duration_minutes: float | None


@dataclass(frozen=True)
class PerformanceSummary:
    """
    Kitchen-wide performance.

    Attributes:
        avg_ticket_minutes: Mean start-to-complete time of completed tickets
        completed_count: Tickets currently completed
        late_count: Completed tickets handed off after promised_at
        stations: Per-station aggregates
        slowest_items: Items whose tickets took longest, slowest first
        recent: Most recent completions, newest first
    """

    avg_ticket_minutes: float
    completed_count: int
    late_count: int
    stations: list[StationStats] = field(default_factory=list)
    slowest_items: list[SlowItem] = field(default_factory=list)
    recent: list[RecentCompletion] = field(default_factory=list)


def _ticket_minutes(ticket: Ticket) -> float | None:
    if ticket.started_at is None or ticket.completed_at is None:
        return None
    return minutes_between(ticket.started_at, ticket.completed_at)


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def station_stats(
    tickets: Iterable[Ticket],
    now: datetime,
    stations: Iterable[StationId] = (),
) -> list[StationStats]:
    """
    Per-station aggregates.

    Args:
        tickets: Ticket snapshot
        now: Reference time for lateness
        stations: Known stations to report even when they have no tickets

    Returns:
        One StationStats per station, sorted by station id
    """
    backlog: dict[StationId, int] = defaultdict(int)
    completed: dict[StationId, int] = defaultdict(int)
    late: dict[StationId, int] = defaultdict(int)
    durations: dict[StationId, list[float]] = defaultdict(list)
    seen: set[StationId] = set(stations)

    for ticket in tickets:
        minutes = _ticket_minutes(ticket)
        for station in ticket.station_assignments:
            seen.add(station)
            if ticket.status.is_active:
                backlog[station] += 1
            if ticket.is_late(now):
                late[station] += 1
            if ticket.status is TicketStatus.COMPLETED:
                completed[station] += 1
            if minutes is not None:
                durations[station].append(minutes)

    return [
        StationStats(
            station=station,
            backlog=backlog[station],
            completed=completed[station],
            avg_ticket_minutes=_mean(durations[station]),
            late_count=late[station],
        )
        for station in sorted(seen)
    ]


def performance_summary(
    tickets: Iterable[Ticket],
    now: datetime,
    slow_limit: int = 5,
    recent_limit: int = 10,
) -> PerformanceSummary:
    """Kitchen-wide performance for the stats screen."""
    tickets = list(tickets)
    completed = [t for t in tickets if t.status is TicketStatus.COMPLETED]

    durations = [m for m in (_ticket_minutes(t) for t in completed) if m is not None]
    late = [t for t in completed if t.completed_at and t.completed_at > t.promised_at]

    per_item: dict[str, list[float]] = defaultdict(list)
    for ticket in completed:
        minutes = _ticket_minutes(ticket)
        if minutes is None:
            continue
        for item in ticket.items:
            per_item[item.name].append(minutes)

    slowest = sorted(
        (SlowItem(name, _mean(values), len(values)) for name, values in per_item.items()),
        key=lambda s: (-s.avg_minutes, s.item_name),
    )[:slow_limit]

    recent = [
        RecentCompletion(
            ticket_id=t.id,
            order_number=t.order_number,
            completed_at=t.completed_at,
            duration_minutes=(
                round(_ticket_minutes(t), 1) if _ticket_minutes(t) is not None else None
            ),
        )
        for t in sorted(completed, key=lambda t: t.completed_at, reverse=True)[:recent_limit]
    ]

    return PerformanceSummary(
        avg_ticket_minutes=_mean(durations),
        completed_count=len(completed),
        late_count=len(late),
        stations=station_stats(tickets, now),
        slowest_items=slowest,
        recent=recent,
    )
