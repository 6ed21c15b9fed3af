"""
Shared data types for the kitchen engine.

This module defines the core data structures used to represent tickets,
their items and audit trail, and the read-models produced by the detectors:
- TicketStatus / TimelineAction / OperatorAction: lifecycle vocabulary
- Ticket, TicketItem, TimelineEvent: the unit of kitchen work
- PriorityScore: priority stamp for tickets that have not started
- RemakeLogEntry, HandoffLogEntry: write-once log records
- BottleneckAlert, MistakeInsight: ephemeral detector output

All types use @dataclass. Pydantic models are reserved for ingestion
payloads and settings. Enums are str-valued for easy JSON serialization.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable
from uuid import uuid4

from kitchen_protocols import OperatorId, StationId, TicketId

Clock = Callable[[], datetime]
"""Zero-argument callable returning the current (timezone-aware) time."""


def utc_now() -> datetime:
    """Default clock: current time in UTC."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Generate a short unique identifier such as ``ev-3f2a9c0d1b7e``."""
    return f"{prefix}-{uuid4().hex[:12]}"


def minutes_between(start: datetime, end: datetime) -> float:
    """Signed number of minutes from ``start`` to ``end``."""
    return (end - start).total_seconds() / 60.0


# =============================================================================
# Enums
# =============================================================================


class TicketStatus(str, Enum):
    """
    Valid ticket states.

    Tickets flow through these states:
        new -> in_progress -> ready -> completed
    with recalled reachable from ready or completed and bumped back to ready.
    """

    NEW = "new"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    COMPLETED = "completed"
    RECALLED = "recalled"

    @property
    def is_active(self) -> bool:
        """True while the ticket still needs work at its stations."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset(
    {TicketStatus.NEW, TicketStatus.IN_PROGRESS, TicketStatus.RECALLED}
)


class OperatorAction(str, Enum):
    """Actions an operator (or the expo) can apply to a ticket."""

    START = "start"
    BUMP = "bump"
    RECALL = "recall"
    MARK_COMPLETE = "mark-complete"
    MARK_REMAKE = "mark-remake"


class TimelineAction(str, Enum):
    """Action recorded on a timeline event."""

    CREATE = "create"
    START = "start"
    BUMP = "bump"
    RECALL = "recall"
    COMPLETE = "complete"
    REMAKE = "remake"


TIMELINE_ACTION_FOR = {
    OperatorAction.START: TimelineAction.START,
    OperatorAction.BUMP: TimelineAction.BUMP,
    OperatorAction.RECALL: TimelineAction.RECALL,
    OperatorAction.MARK_COMPLETE: TimelineAction.COMPLETE,
    OperatorAction.MARK_REMAKE: TimelineAction.REMAKE,
}


class Channel(str, Enum):
    """Where the order came from."""

    DINE_IN = "dine-in"
    DELIVERY = "delivery"
    PICKUP = "pickup"
    MARKETPLACE = "marketplace"
    WEB = "web"
    APP = "app"
    QR = "qr"
    POS = "pos"


class FulfillmentType(str, Enum):
    """How the finished order leaves the kitchen."""

    DINE_IN = "dine-in"
    PICKUP = "pickup"
    DELIVERY = "delivery"


class HandoffMethod(str, Enum):
    """How a ready ticket was handed off at the pass."""

    SERVED = "served"
    PICKUP = "pickup"
    DELIVERY = "delivery"


DEFAULT_HANDOFF_FOR = {
    FulfillmentType.DINE_IN: HandoffMethod.SERVED,
    FulfillmentType.PICKUP: HandoffMethod.PICKUP,
    FulfillmentType.DELIVERY: HandoffMethod.DELIVERY,
}


class PriorityLevel(str, Enum):
    """Priority levels for unstarted tickets, least to most pressing."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Ordinal position, 0 for LOW up to 3 for URGENT."""
        return _PRIORITY_ORDER.index(self)

    def escalate(self) -> "PriorityLevel":
        """Return the next level up, capped at URGENT."""
        return _PRIORITY_ORDER[min(self.rank + 1, len(_PRIORITY_ORDER) - 1)]


_PRIORITY_ORDER = [
    PriorityLevel.LOW,
    PriorityLevel.NORMAL,
    PriorityLevel.HIGH,
    PriorityLevel.URGENT,
]


class Severity(str, Enum):
    """Severity of a detector finding."""

    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return 1 if self is Severity.CRITICAL else 0


class RemakeReason(str, Enum):
    """
    Closed set of reasons an item can be remade.

    Declaration order doubles as the tie-break order when two reasons are
    equally common in a group of remakes.
    """

    ALLERGY_MISSED = "allergy-missed"
    WRONG_TEMPERATURE = "wrong-temperature"
    OVERCOOKED = "overcooked"
    UNDERCOOKED = "undercooked"
    WRONG_MODIFIER = "wrong-modifier"
    MISSING_ITEM = "missing-item"
    WRONG_ITEM = "wrong-item"
    DROPPED = "dropped"
    CUSTOMER_CHANGED_MIND = "customer-changed-mind"
    OTHER = "other"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. "Wrong temperature"."""
        return self.value.replace("-", " ").capitalize()


# =============================================================================
# Ticket
# =============================================================================


@dataclass(frozen=True)
class TimelineEvent:
    """
    Immutable record of one thing that happened to a ticket.

    Attributes:
        id: Unique event identifier
        action: What happened
        timestamp: When it happened
        performed_by: Operator identity ("intake" for ticket creation)
        note: Optional free text (recall reason, remade item, handoff method)
        station: Optional station the action was taken from
    """

    id: str
    action: TimelineAction
    timestamp: datetime
    performed_by: OperatorId
    note: str | None = None
    station: StationId | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "performed_by": self.performed_by,
            "note": self.note,
            "station": self.station,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimelineEvent":
        return cls(
            id=data["id"],
            action=TimelineAction(data["action"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            performed_by=data["performed_by"],
            note=data.get("note"),
            station=data.get("station"),
        )


@dataclass
class TicketItem:
    """
    One line of a ticket.

    An item belongs to exactly one station. ``is_remake`` only ever goes
    from False to True; a later remake of the same dish adds a new remake
    log entry rather than toggling the flag.
    """

    id: str
    name: str
    station: StationId
    quantity: int = 1
    modifiers: list[str] = field(default_factory=list)
    notes: str | None = None
    is_remake: bool = False
    remake_reason: RemakeReason | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["remake_reason"] = self.remake_reason.value if self.remake_reason else None
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TicketItem":
        reason = data.get("remake_reason")
        return cls(
            id=data["id"],
            name=data["name"],
            station=data["station"],
            quantity=data.get("quantity", 1),
            modifiers=list(data.get("modifiers") or []),
            notes=data.get("notes"),
            is_remake=bool(data.get("is_remake", False)),
            remake_reason=RemakeReason(reason) if reason else None,
        )


@dataclass(frozen=True)
class PriorityScore:
    """
    Priority stamp for a ticket that has not been started.

    Attributes:
        level: Priority level
        explanation: One-line, operator-readable reason for the level
        minutes_until_due: Minutes until promised_at (negative when late)
        load_penalty_minutes: Minutes subtracted because of kitchen load
        adjusted_margin: minutes_until_due minus the load penalty
        allergen_escalated: True if allergen notes raised the level
        evaluated_at: The "now" the score was computed for
    """

    level: PriorityLevel
    explanation: str
    minutes_until_due: float
    load_penalty_minutes: float
    adjusted_margin: float
    allergen_escalated: bool
    evaluated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["level"] = self.level.value
        d["evaluated_at"] = self.evaluated_at.isoformat()
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriorityScore":
        return cls(
            level=PriorityLevel(data["level"]),
            explanation=data["explanation"],
            minutes_until_due=data["minutes_until_due"],
            load_penalty_minutes=data["load_penalty_minutes"],
            adjusted_margin=data["adjusted_margin"],
            allergen_escalated=data["allergen_escalated"],
            evaluated_at=datetime.fromisoformat(data["evaluated_at"]),
        )


def derive_station_assignments(items: Iterable[TicketItem]) -> tuple[StationId, ...]:
    """Distinct stations touched by ``items``, in first-seen order."""
    return tuple(dict.fromkeys(item.station for item in items))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Ticket:
    """
    One unit of kitchen work, tracked through preparation states.

    Status changes only through ``TicketStore.transition``; the timeline is
    append-only and always starts with a ``create`` event.

    Attributes:
        id: Opaque unique identifier
        order_number: Display string (e.g. "ORD-482")
        channel: Where the order came from
        fulfillment_type: How the order leaves the kitchen
        created_at: When the ticket was manufactured
        promised_at: Due time
        items: Ordered ticket lines
        status: Current status
        table_number: Table for dine-in orders
        started_at / ready_at / completed_at: Lifecycle timestamps
        allergen_notes: Free text, empty when there are no allergens
        customer_notes: Free text
        priority: Set only while status is NEW
        recall_reason / recalled_from: Set only while status is RECALLED
        handoff_by / handoff_method: Set when the ticket is completed
        timeline: Append-only audit trail
    """

    id: TicketId
    order_number: str
    channel: Channel
    fulfillment_type: FulfillmentType
    created_at: datetime
    promised_at: datetime
    items: list[TicketItem]
    status: TicketStatus = TicketStatus.NEW
    table_number: str | None = None
    started_at: datetime | None = None
    ready_at: datetime | None = None
    completed_at: datetime | None = None
    allergen_notes: str = ""
    customer_notes: str = ""
    priority: PriorityScore | None = None
    recall_reason: str | None = None
    recalled_from: TicketStatus | None = None
    handoff_by: OperatorId | None = None
    handoff_method: HandoffMethod | None = None
    timeline: list[TimelineEvent] = field(default_factory=list)

    @property
    def station_assignments(self) -> tuple[StationId, ...]:
        """Stations this ticket visits, always derived from its items."""
        return derive_station_assignments(self.items)

    @property
    def has_allergens(self) -> bool:
        return bool(self.allergen_notes and self.allergen_notes.strip())

    def find_item(self, item_id: str) -> TicketItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def is_late(self, now: datetime) -> bool:
        """True if the ticket is still active and past its promised time."""
        return self.status.is_active and now > self.promised_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "channel": self.channel.value,
            "fulfillment_type": self.fulfillment_type.value,
            "table_number": self.table_number,
            "created_at": self.created_at.isoformat(),
            "promised_at": self.promised_at.isoformat(),
            "started_at": _iso(self.started_at),
            "ready_at": _iso(self.ready_at),
            "completed_at": _iso(self.completed_at),
            "status": self.status.value,
            "items": [item.to_dict() for item in self.items],
            "allergen_notes": self.allergen_notes,
            "customer_notes": self.customer_notes,
            "station_assignments": list(self.station_assignments),
            "priority": self.priority.to_dict() if self.priority else None,
            "recall_reason": self.recall_reason,
            "recalled_from": self.recalled_from.value if self.recalled_from else None,
            "handoff_by": self.handoff_by,
            "handoff_method": self.handoff_method.value if self.handoff_method else None,
            "timeline": [event.to_dict() for event in self.timeline],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Ticket":
        """
        Rebuild a Ticket from ``to_dict`` output.

        ``station_assignments`` in the input is ignored; it is always
        re-derived from the items.
        """
        priority = data.get("priority")
        recalled_from = data.get("recalled_from")
        handoff_method = data.get("handoff_method")
        return cls(
            id=data["id"],
            order_number=data["order_number"],
            channel=Channel(data["channel"]),
            fulfillment_type=FulfillmentType(data["fulfillment_type"]),
            table_number=data.get("table_number"),
            created_at=datetime.fromisoformat(data["created_at"]),
            promised_at=datetime.fromisoformat(data["promised_at"]),
            started_at=_parse_iso(data.get("started_at")),
            ready_at=_parse_iso(data.get("ready_at")),
            completed_at=_parse_iso(data.get("completed_at")),
            status=TicketStatus(data["status"]),
            items=[TicketItem.from_dict(item) for item in data["items"]],
            allergen_notes=data.get("allergen_notes") or "",
            customer_notes=data.get("customer_notes") or "",
            priority=PriorityScore.from_dict(priority) if priority else None,
            recall_reason=data.get("recall_reason"),
            recalled_from=TicketStatus(recalled_from) if recalled_from else None,
            handoff_by=data.get("handoff_by"),
            handoff_method=HandoffMethod(handoff_method) if handoff_method else None,
            timeline=[TimelineEvent.from_dict(e) for e in data.get("timeline", [])],
        )


# =============================================================================
# Logs
# =============================================================================


@dataclass(frozen=True)
class RemakeLogEntry:
    """
    One remade item.

    ``ticket_id`` is a back-reference only: remake history outlives the
    ticket it came from.
    """

    id: str
    ticket_id: TicketId
    item_id: str
    item_name: str
    reason: RemakeReason
    station: StationId
    timestamp: datetime
    performed_by: OperatorId | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["reason"] = self.reason.value
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass(frozen=True)
class HandoffLogEntry:
    """One ticket handed off at the pass."""

    id: str
    ticket_id: TicketId
    order_number: str
    handed_off_by: OperatorId
    method: HandoffMethod
    timestamp: datetime
    table_number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["method"] = self.method.value
        d["timestamp"] = self.timestamp.isoformat()
        return d


# =============================================================================
# Detector output
# =============================================================================


@dataclass(frozen=True)
class BottleneckAlert:
    """
    A station whose backlog or ticket age exceeds its load-adjusted limit.

    Alerts are recomputed every detection cycle and get a fresh id each
    time; consumers de-duplicate by ``dedup_key`` if needed.

    Attributes:
        id: Unique per emission
        station: Affected station
        severity: warning or critical
        message: Short headline
        suggestion: Suggested operator action
        detected_at: Detection cycle time
        backlog: Active tickets at the station
        avg_age_minutes: Mean age of those tickets
        threshold: Load-adjusted backlog threshold
        late_count: Active tickets past their promised time
        overage: How far over the worst limit the station is (1.0 = at limit)
    """

    id: str
    station: StationId
    severity: Severity
    message: str
    suggestion: str
    detected_at: datetime
    backlog: int
    avg_age_minutes: float
    threshold: int
    late_count: int
    overage: float

    @property
    def dedup_key(self) -> tuple[StationId, str]:
        return (self.station, self.message)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["severity"] = self.severity.value
        d["detected_at"] = self.detected_at.isoformat()
        return d


@dataclass(frozen=True)
class MistakeInsight:
    """
    A recurring remake pattern for one item at one station.

    Read-model only: recomputed from the remake log each mining run.
    """

    id: str
    item_name: str
    station: StationId
    remake_count: int
    dominant_reason: RemakeReason
    reason_breakdown: tuple[tuple[RemakeReason, int], ...]
    severity: Severity
    suggestion: str
    first_seen: datetime
    last_seen: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "station": self.station,
            "remake_count": self.remake_count,
            "dominant_reason": self.dominant_reason.value,
            "reason_breakdown": [
                {"reason": reason.value, "count": count}
                for reason, count in self.reason_breakdown
            ],
            "severity": self.severity.value,
            "suggestion": self.suggestion,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }
