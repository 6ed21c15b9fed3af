"""
Priority engine for tickets that have not been started.

Priority is a pure function of (ticket, load state, now):
1. minutes_until_due = promised_at - now (negative when already late)
2. adjusted_margin = minutes_until_due - load_penalty(global load)
3. adjusted_margin < 0 -> urgent, < 5 -> high, < 15 -> normal, else low
4. Allergen-bearing tickets are escalated one level (capped at urgent)
5. The explanation names the dominant factors in one short line

Under heavy load a ticket that is nominally on time is already at risk,
which is what the load penalty models.
"""

import math
from datetime import datetime
from typing import Iterable, Literal

from kitchen_core.config import KitchenLoadState, PriorityConfig
from kitchen_core.types import (
    PriorityLevel,
    PriorityScore,
    Ticket,
    TicketStatus,
    minutes_between,
)

DEFAULT_PRIORITY_CONFIG = PriorityConfig()

UrgencyLevel = Literal["ok", "warning", "critical", "late"]


def load_penalty(
    global_load_percent: float,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> float:
    """
    Minutes to subtract from a ticket's due margin at the given load.

    Monotonically non-decreasing step function: no penalty below the
    moderate threshold, the moderate penalty up to and including the high
    threshold, the high penalty above it.
    """
    if global_load_percent > config.high_load_percent:
        return config.high_load_penalty_minutes
    if global_load_percent >= config.moderate_load_percent:
        return config.moderate_load_penalty_minutes
    return 0.0


def level_for_margin(
    adjusted_margin: float,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> PriorityLevel:
    """Map a load-adjusted margin (minutes) to a priority level."""
    if adjusted_margin < config.urgent_below_minutes:
        return PriorityLevel.URGENT
    if adjusted_margin < config.high_below_minutes:
        return PriorityLevel.HIGH
    if adjusted_margin < config.normal_below_minutes:
        return PriorityLevel.NORMAL
    return PriorityLevel.LOW


def _due_phrase(minutes_until_due: float) -> str:
    whole = math.floor(minutes_until_due)
    if whole < 0:
        return f"{abs(whole)} min late"
    if whole == 0:
        return "Due now"
    return f"Due in {whole} min"


def compute_priority(
    ticket: Ticket,
    load: KitchenLoadState,
    now: datetime,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> PriorityScore:
    """
    Compute the priority level and explanation for a ticket.

    Never mutates its inputs, so the same (ticket, load, now) always yields
    the same score.

    Args:
        ticket: Ticket to score (normally in status NEW)
        load: Current kitchen load
        now: Evaluation time
        config: Penalty and cut-off tunables

    Returns:
        PriorityScore with level, explanation and the contributing factors
    """
    global_load = load.global_load_percent
    minutes_until_due = minutes_between(now, ticket.promised_at)
    penalty = load_penalty(global_load, config)
    adjusted_margin = minutes_until_due - penalty

    base_level = level_for_margin(adjusted_margin, config)
    level = base_level
    escalated = False
    if ticket.has_allergens:
        level = base_level.escalate()
        escalated = level is not base_level

    parts = [_due_phrase(minutes_until_due)]
    if penalty > 0:
        parts.append(f"kitchen at {global_load:.0f}% load")
    if escalated:
        parts.append(f"allergen ticket escalated from {base_level.value}")
    elif ticket.has_allergens:
        parts.append("allergen ticket")

    return PriorityScore(
        level=level,
        explanation=f"{level.value.upper()}: " + ", ".join(parts),
        minutes_until_due=minutes_until_due,
        load_penalty_minutes=penalty,
        adjusted_margin=adjusted_margin,
        allergen_escalated=escalated,
        evaluated_at=now,
    )


def prioritize(
    tickets: Iterable[Ticket],
    load: KitchenLoadState,
    now: datetime,
    config: PriorityConfig = DEFAULT_PRIORITY_CONFIG,
) -> list[tuple[Ticket, PriorityScore]]:
    """
    Order unstarted tickets most pressing first.

    Tickets not in status NEW are skipped. Ties on level are broken by the
    smaller adjusted margin, then by the older ticket.

    Returns:
        List of (ticket, score) pairs
    """
    scored = [
        (ticket, compute_priority(ticket, load, now, config))
        for ticket in tickets
        if ticket.status == TicketStatus.NEW
    ]
    scored.sort(
        key=lambda pair: (
            -pair[1].level.rank,
            pair[1].adjusted_margin,
            pair[0].created_at,
        )
    )
    return scored


def urgency_level(
    ticket: Ticket,
    now: datetime,
    late_threshold_minutes: float = 15.0,
) -> UrgencyLevel:
    """
    Display urgency of a ticket on the screen.

    late: past promised time; critical: due within 5 minutes;
    warning: older than the late threshold; ok otherwise.
    """
    remaining = minutes_between(now, ticket.promised_at)
    if remaining < 0:
        return "late"
    if remaining <= 5:
        return "critical"
    if minutes_between(ticket.created_at, now) > late_threshold_minutes:
        return "warning"
    return "ok"
