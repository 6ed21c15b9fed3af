"""
Kitchen engine facade.

KitchenEngine wires the ticket store, lifecycle controller, priority
engine, bottleneck detector and mistake detector together and is the only
object collaborators talk to:
- submit_ticket / submit_payload: intake from the ingestion source
- apply_action: start, bump, recall, mark-complete, mark-remake
- list_tickets: by status and/or station, for rendering
- current_alerts / current_insights: results of the latest refresh
- adjust_load: operator load adjustment, global or per station
- refresh: one detection pass (re-stamp priorities, detect, mine)

The engine never sleeps or schedules; DetectionLoop calls ``refresh`` on a
fixed interval, and tests call it directly with a synthetic ``now``.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, NamedTuple

from kitchen_protocols import OperatorId, StationId, TicketId
from kitchen_core.config import (
    BottleneckConfig,
    KitchenLoadState,
    KitchenSettings,
    MiningConfig,
    PriorityConfig,
)
from kitchen_core.exceptions import MalformedTicket, UnknownAction, UnknownHandoffMethod
from kitchen_core.intake import parse_ticket
from kitchen_core.lifecycle.controller import HandoffLog, TicketLifecycleController
from kitchen_core.monitor.bottleneck import BottleneckDetector
from kitchen_core.monitor.mistakes import RemakeLog, detect_patterns
from kitchen_core.priority import compute_priority, prioritize
from kitchen_core.stats import PerformanceSummary, StationStats, performance_summary, station_stats
from kitchen_core.store import TicketStore
from kitchen_core.types import (
    BottleneckAlert,
    Clock,
    HandoffLogEntry,
    HandoffMethod,
    MistakeInsight,
    OperatorAction,
    PriorityScore,
    RemakeLogEntry,
    RemakeReason,
    Ticket,
    TicketStatus,
    TimelineAction,
    TimelineEvent,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


class DetectionResult(NamedTuple):
    """Output of one refresh pass."""

    alerts: list[BottleneckAlert]
    insights: list[MistakeInsight]
    restamped: int


def _coerce_action(action: OperatorAction | str) -> OperatorAction:
    if isinstance(action, OperatorAction):
        return action
    try:
        return OperatorAction(action.strip().lower())
    except ValueError:
        raise UnknownAction(action) from None


def _coerce_handoff_method(method: HandoffMethod | str) -> HandoffMethod:
    if isinstance(method, HandoffMethod):
        return method
    try:
        return HandoffMethod(method.strip().lower())
    except ValueError:
        raise UnknownHandoffMethod(method) from None


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


class KitchenEngine:
    """
    The kitchen-operations core.

    Example:
        engine = KitchenEngine(KitchenLoadState(global_load_percent=60))
        ticket = engine.submit_ticket(ticket)
        engine.apply_action(ticket.id, "start", "grill-1")
        result = engine.refresh()
        for alert in engine.current_alerts()[:3]:
            show(alert)
    """

    def __init__(
        self,
        load: KitchenLoadState | None = None,
        *,
        clock: Clock = utc_now,
        priority_config: PriorityConfig | None = None,
        bottleneck_config: BottleneckConfig | None = None,
        mining_config: MiningConfig | None = None,
        remake_log: RemakeLog | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            load: Shared kitchen load state (defaults to KitchenLoadState())
            clock: Source of "now" for events and detection
            priority_config: Priority tunables
            bottleneck_config: Bottleneck tunables
            mining_config: Remake mining tunables
            remake_log: Remake log to append to (e.g. seeded from history)
        """
        self.load = load if load is not None else KitchenLoadState()
        self.clock = clock
        self.priority_config = priority_config or PriorityConfig()
        self.mining_config = mining_config or MiningConfig()
        self.detector = BottleneckDetector(bottleneck_config)
        self.store = TicketStore()
        self.remake_log = remake_log if remake_log is not None else RemakeLog()
        self.handoff_log = HandoffLog()
        self.controller = TicketLifecycleController(
            self.store, self.remake_log, self.handoff_log, clock=clock
        )

        self._results_lock = threading.Lock()
        self._alerts: list[BottleneckAlert] = []
        self._insights: list[MistakeInsight] = []
        self._last_refresh: datetime | None = None

    @classmethod
    def from_settings(
        cls,
        settings: KitchenSettings,
        clock: Clock = utc_now,
        remake_log: RemakeLog | None = None,
    ) -> "KitchenEngine":
        """Build an engine from environment-backed settings."""
        return cls(
            settings.build_load_state(),
            clock=clock,
            bottleneck_config=settings.bottleneck_config(),
            mining_config=settings.mining_config(),
            remake_log=remake_log,
        )

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def _validate(self, ticket: Ticket) -> None:
        if not ticket.id:
            raise MalformedTicket("ticket has no id")
        if not ticket.items:
            raise MalformedTicket("ticket has no items", ticket_id=ticket.id)
        if not (_is_aware(ticket.created_at) and _is_aware(ticket.promised_at)):
            raise MalformedTicket("timestamps must be timezone-aware", ticket_id=ticket.id)
        if ticket.promised_at < ticket.created_at:
            raise MalformedTicket("promised_at is before created_at", ticket_id=ticket.id)
        if ticket.status != TicketStatus.NEW:
            raise MalformedTicket(
                f"submitted tickets must be new, got {ticket.status.value}",
                ticket_id=ticket.id,
            )
        item_ids = [item.id for item in ticket.items]
        if len(set(item_ids)) != len(item_ids):
            raise MalformedTicket("duplicate item ids", ticket_id=ticket.id)
        for item in ticket.items:
            if not item.station:
                raise MalformedTicket(f"item {item.id} has no station", ticket_id=ticket.id)
            if item.quantity < 1:
                raise MalformedTicket(
                    f"item {item.id} has quantity {item.quantity}", ticket_id=ticket.id
                )
        if ticket.timeline and ticket.timeline[0].action is not TimelineAction.CREATE:
            raise MalformedTicket(
                "timeline must start with a create event", ticket_id=ticket.id
            )
        if len(ticket.timeline) > 1:
            raise MalformedTicket(
                "new tickets carry only their create event", ticket_id=ticket.id
            )

    def submit_ticket(self, ticket: Ticket) -> Ticket:
        """
        Accept a fully-formed ticket from the ingestion source.

        A ``create`` event is added when the timeline is empty and the
        ticket is stamped with its initial priority.

        Returns:
            Snapshot of the stored ticket

        Raises:
            MalformedTicket: If the ticket is rejected (nothing is stored)
        """
        self._validate(ticket)
        # Whitespace-only allergen notes carry no allergen information
        ticket = replace(ticket, allergen_notes=(ticket.allergen_notes or "").strip())

        timeline = list(ticket.timeline) or [
            TimelineEvent(
                id=new_id("ev"),
                action=TimelineAction.CREATE,
                timestamp=ticket.created_at,
                performed_by="intake",
            )
        ]
        now = self.clock()
        priority = compute_priority(ticket, self.load, now, self.priority_config)
        stored = self.store.append(replace(ticket, timeline=timeline, priority=priority))
        logger.info(
            f"Ticket {stored.order_number} ({stored.id}) received: "
            f"{len(stored.items)} item(s) for {', '.join(stored.station_assignments)}, "
            f"{priority.explanation}"
        )
        return stored

    def submit_payload(self, payload: dict[str, Any]) -> Ticket:
        """Validate an ingestion payload and submit the resulting ticket."""
        return self.submit_ticket(parse_ticket(payload, now=self.clock()))

    def submit(self, incoming: Ticket | dict[str, Any]) -> Ticket:
        """Submit either a Ticket or an ingestion payload."""
        if isinstance(incoming, Ticket):
            return self.submit_ticket(incoming)
        return self.submit_payload(incoming)

    # -------------------------------------------------------------------------
    # Operator actions
    # -------------------------------------------------------------------------

    def apply_action(
        self,
        ticket_id: TicketId,
        action: OperatorAction | str,
        operator: OperatorId,
        reason: str | None = None,
        *,
        item_id: str | None = None,
        station: StationId | None = None,
        handoff_method: HandoffMethod | str | None = None,
    ) -> Ticket:
        """
        Apply an operator action to a ticket.

        Args:
            ticket_id: Ticket to act on
            action: start, bump, recall, mark-complete or mark-remake
            operator: Who is acting
            reason: Recall reason, or the remake reason for mark-remake
            item_id: The item for mark-remake
            station: Station the action is taken from, recorded on the event
            handoff_method: Handoff method for mark-complete

        Returns:
            Snapshot of the ticket after the action

        Raises:
            UnknownAction: If ``action`` is not an operator action
            UnknownHandoffMethod: If ``handoff_method`` is not a handoff method
            TicketNotFound: If the ticket does not exist
            InvalidTransition: If the action is not allowed from the ticket's status
            EmptyActionContext: If a required reason, item or operator is missing
        """
        action = _coerce_action(action)

        if action is OperatorAction.START:
            return self.controller.start(ticket_id, operator, station)
        if action is OperatorAction.BUMP:
            return self.controller.bump(ticket_id, operator, station)
        if action is OperatorAction.RECALL:
            return self.controller.recall(ticket_id, operator, reason, station)
        if action is OperatorAction.MARK_COMPLETE:
            method = _coerce_handoff_method(handoff_method) if handoff_method else None
            return self.controller.complete(ticket_id, operator, method)
        return self.controller.remake(ticket_id, item_id, operator, reason)

    def remake_item(
        self,
        ticket_id: TicketId,
        item_id: str,
        operator: OperatorId,
        reason: RemakeReason | str,
        notes: str | None = None,
    ) -> Ticket:
        """Flag an item for remaking, with optional free-text notes."""
        return self.controller.remake(ticket_id, item_id, operator, reason, notes)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_ticket(self, ticket_id: TicketId) -> Ticket:
        return self.store.get(ticket_id)

    def list_tickets(
        self,
        status: TicketStatus | str | None = None,
        station: StationId | None = None,
    ) -> list[Ticket]:
        """
        Tickets for rendering, oldest first.

        Args:
            status: Only tickets in this status
            station: Only tickets with at least one item at this station
        """
        tickets = self.store.list_all()
        if status is not None:
            wanted = TicketStatus(status)
            tickets = [t for t in tickets if t.status == wanted]
        if station is not None:
            tickets = [t for t in tickets if station in t.station_assignments]
        return tickets

    def prioritized_queue(self, now: datetime | None = None) -> list[tuple[Ticket, PriorityScore]]:
        """NEW tickets with freshly computed scores, most pressing first."""
        return prioritize(
            self.store.list_by_status(TicketStatus.NEW),
            self.load,
            now or self.clock(),
            self.priority_config,
        )

    def current_alerts(self) -> list[BottleneckAlert]:
        """Alerts from the latest refresh, most severe first."""
        with self._results_lock:
            return list(self._alerts)

    def current_insights(self) -> list[MistakeInsight]:
        """Insights from the latest refresh, most remade first."""
        with self._results_lock:
            return list(self._insights)

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    def remake_entries(self) -> tuple[RemakeLogEntry, ...]:
        return self.remake_log.entries()

    def handoff_entries(self) -> tuple[HandoffLogEntry, ...]:
        return self.handoff_log.entries()

    def station_stats(self, now: datetime | None = None) -> list[StationStats]:
        return station_stats(self.store.list_all(), now or self.clock())

    def performance(self, now: datetime | None = None) -> PerformanceSummary:
        return performance_summary(self.store.list_all(), now or self.clock())

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def adjust_load(self, scope: str, delta: float) -> float:
        """
        Adjust global ("global") or per-station load by ``delta`` points.

        Returns:
            The new, clamped load percentage for the scope
        """
        value = self.load.adjust(scope, delta)
        logger.info(f"Load for {scope} adjusted by {delta:+.0f} to {value:.0f}%")
        return value

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def detect_bottlenecks(self, now: datetime | None = None) -> list[BottleneckAlert]:
        """Run the bottleneck detector against the current store."""
        return self.detector.detect(self.store.list_all(), self.load, now or self.clock())

    def detect_mistakes(self, now: datetime | None = None) -> list[MistakeInsight]:
        """Mine the remake log against the trailing window ending at ``now``."""
        return detect_patterns(self.remake_log.entries(), now or self.clock(), self.mining_config)

    def refresh(self, now: datetime | None = None) -> DetectionResult:
        """
        Run one detection pass.

        Re-stamps the priority of every NEW ticket (due margins shrink as
        time passes), then recomputes alerts and insights. Every transition
        applied before the call is visible to it.

        Args:
            now: Detection time (defaults to the engine clock)

        Returns:
            The new alerts, insights and the number of re-stamped tickets
        """
        now = now or self.clock()

        restamped = 0
        for ticket in self.store.list_by_status(TicketStatus.NEW):
            score = compute_priority(ticket, self.load, now, self.priority_config)
            if self.store.restamp_priority(ticket.id, score):
                restamped += 1

        alerts = self.detect_bottlenecks(now)
        insights = self.detect_mistakes(now)
        with self._results_lock:
            self._alerts = alerts
            self._insights = insights
            self._last_refresh = now

        logger.debug(
            f"Refresh at {now.isoformat()}: {restamped} priorities, "
            f"{len(alerts)} alert(s), {len(insights)} insight(s)"
        )
        return DetectionResult(alerts, insights, restamped)
