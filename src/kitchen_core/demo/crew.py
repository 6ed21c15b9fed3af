"""
Simulated kitchen crew for demos.

Each call to ``work`` plays one round of station operators: a few NEW
tickets are started (most urgent first), some in-progress tickets are
bumped, ready tickets are handed off, and now and then an item is sent
back for a remake. Throughput is deliberately a little below the
simulator's intake so backlogs build and bottleneck alerts appear.
"""

import logging
import random
import time
from datetime import datetime, timedelta, timezone

from kitchen_core.engine import KitchenEngine
from kitchen_core.exceptions import KitchenError
from kitchen_core.types import OperatorAction, RemakeReason, TicketStatus

logger = logging.getLogger(__name__)

# Remake reasons a demo crew tends to produce, most common first
_DEMO_REASONS = (
    RemakeReason.WRONG_TEMPERATURE,
    RemakeReason.WRONG_TEMPERATURE,
    RemakeReason.OVERCOOKED,
    RemakeReason.WRONG_MODIFIER,
    RemakeReason.MISSING_ITEM,
    RemakeReason.DROPPED,
)


class AcceleratedClock:
    """
    Clock that runs ``speed`` times faster than wall time.

    Example:
        clock = AcceleratedClock(speed=60)  # one real second = one minute
        engine = KitchenEngine(clock=clock)
    """

    def __init__(self, speed: float = 60.0, start: datetime | None = None) -> None:
        self.speed = speed
        self.start = start or datetime.now(timezone.utc)
        self._origin = time.monotonic()

    def __call__(self) -> datetime:
        elapsed = time.monotonic() - self._origin
        return self.start + timedelta(seconds=elapsed * self.speed)


class DemoCrew:
    """
    Plays station operators against a KitchenEngine.

    Example:
        crew = DemoCrew(engine, seed=7)
        crew.work()
    """

    def __init__(
        self,
        engine: KitchenEngine,
        seed: int | None = None,
        starts_per_round: int = 1,
        remake_rate: float = 0.2,
    ) -> None:
        self.engine = engine
        self.starts_per_round = starts_per_round
        self.remake_rate = remake_rate
        self._rng = random.Random(seed)

    def work(self) -> int:
        """
        Play one round.

        Returns:
            Number of actions applied
        """
        applied = 0
        rng = self._rng

        for ticket in self.engine.list_tickets(TicketStatus.READY):
            if rng.random() < self.remake_rate:
                item = rng.choice(ticket.items)
                applied += self._act(
                    ticket.id,
                    OperatorAction.MARK_REMAKE,
                    "expo",
                    rng.choice(_DEMO_REASONS).value,
                    item_id=item.id,
                )
            applied += self._act(ticket.id, OperatorAction.MARK_COMPLETE, "expo")

        for ticket in self.engine.list_tickets(TicketStatus.IN_PROGRESS):
            if rng.random() < 0.5:
                station = ticket.station_assignments[0]
                applied += self._act(ticket.id, OperatorAction.BUMP, f"{station}-1")

        queue = self.engine.prioritized_queue()
        for ticket, _score in queue[: self.starts_per_round]:
            station = ticket.station_assignments[0]
            applied += self._act(ticket.id, OperatorAction.START, f"{station}-1")

        return applied

    def _act(
        self,
        ticket_id: str,
        action: OperatorAction,
        operator: str,
        reason: str | None = None,
        item_id: str | None = None,
    ) -> int:
        try:
            self.engine.apply_action(ticket_id, action, operator, reason, item_id=item_id)
        except KitchenError as e:
            # Another actor may have moved the ticket since it was listed
            logger.debug(f"Demo crew skipped {action.value} on {ticket_id}: {e}")
            return 0
        return 1
