"""
Remake log and mistake pattern mining.

The remake log is a write-once audit trail: every item marked as a remake
is appended and nothing is ever edited or removed.

Mining groups the remakes inside a trailing window by (item name, station).
A group with at least ``min_occurrences`` remakes becomes a MistakeInsight
carrying its dominant reason and a suggestion derived from that reason.
Smaller groups are noise and produce nothing.
"""

import threading
from collections import Counter, defaultdict
from datetime import datetime
from typing import Iterable, NamedTuple

from kitchen_protocols import StationId
from kitchen_core.config import MiningConfig
from kitchen_core.types import (
    MistakeInsight,
    RemakeLogEntry,
    RemakeReason,
    Severity,
    new_id,
)

DEFAULT_MINING_CONFIG = MiningConfig()

_REASON_ORDER = {reason: index for index, reason in enumerate(RemakeReason)}


class RemakeLog:
    """
    Append-only, thread-safe log of remade items.

    Example:
        log = RemakeLog()
        log.record_remake(entry)
        recent = log.since(now - timedelta(hours=1))
    """

    def __init__(self, entries: Iterable[RemakeLogEntry] = ()) -> None:
        """
        Initialize the log.

        Args:
            entries: Previously persisted entries to seed the log with
        """
        self._entries: list[RemakeLogEntry] = list(entries)
        self._lock = threading.Lock()

    def record_remake(self, entry: RemakeLogEntry) -> None:
        """Append an entry unconditionally."""
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> tuple[RemakeLogEntry, ...]:
        """Snapshot of every entry, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def since(self, cutoff: datetime) -> list[RemakeLogEntry]:
        """Entries with timestamp at or after ``cutoff``."""
        return [e for e in self.entries() if e.timestamp >= cutoff]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def suggestion_for(reason: RemakeReason, item_name: str, station: StationId, count: int) -> str:
    """Actionable suggestion for a recurring remake reason."""
    prefix = f"{item_name} remade {count}x at {station}"
    if reason is RemakeReason.WRONG_TEMPERATURE:
        return f"{prefix} for wrong temperature. Recalibrate holding equipment and retrain timing."
    if reason is RemakeReason.OVERCOOKED:
        return f"{prefix} for overcooking. Add a timer reminder or temperature check."
    if reason is RemakeReason.UNDERCOOKED:
        return f"{prefix} for undercooking. Review cooking time standards."
    if reason is RemakeReason.WRONG_MODIFIER:
        return (
            f"{prefix} for wrong modifiers. Review ticket legibility and modifier "
            f"training for {station}."
        )
    if reason is RemakeReason.MISSING_ITEM:
        return f"{prefix} for missing components. Add a sides/extras check before bumping."
    if reason is RemakeReason.WRONG_ITEM:
        return f"{prefix} for wrong item sent. Tighten ticket-to-plate matching at the pass."
    if reason is RemakeReason.ALLERGY_MISSED:
        return (
            f"URGENT: {prefix} for missed allergy notes. Make an allergen check "
            "mandatory before cooking."
        )
    if reason is RemakeReason.DROPPED:
        return f"{prefix} after being dropped. Check plating area layout and handling."
    if reason is RemakeReason.CUSTOMER_CHANGED_MIND:
        return f"{prefix} on customer request. Confirm orders with guests before firing."
    return f"{prefix}. Review the preparation process."


class _Group(NamedTuple):
    item_name: str
    station: StationId


def _dominant_reason(counts: Counter) -> RemakeReason:
    return min(counts, key=lambda reason: (-counts[reason], _REASON_ORDER[reason]))


def detect_patterns(
    entries: Iterable[RemakeLogEntry],
    now: datetime,
    config: MiningConfig = DEFAULT_MINING_CONFIG,
) -> list[MistakeInsight]:
    """
    Mine remake entries for recurring item/station problems.

    Args:
        entries: Remake log entries (any order)
        now: End of the trailing window
        config: Window and occurrence thresholds

    Returns:
        Insights sorted by remake count (descending), then item name
    """
    cutoff = now - config.window
    groups: dict[_Group, list[RemakeLogEntry]] = defaultdict(list)
    for entry in entries:
        if cutoff <= entry.timestamp <= now:
            groups[_Group(entry.item_name, entry.station)].append(entry)

    insights: list[MistakeInsight] = []
    for group, members in groups.items():
        count = len(members)
        if count < config.min_occurrences:
            continue

        reasons = Counter(e.reason for e in members)
        dominant = _dominant_reason(reasons)
        breakdown = tuple(
            sorted(reasons.items(), key=lambda kv: (-kv[1], _REASON_ORDER[kv[0]]))
        )
        severity = (
            Severity.CRITICAL
            if count >= config.critical_occurrences
            else Severity.WARNING
        )
        timestamps = [e.timestamp for e in members]
        insights.append(
            MistakeInsight(
                id=new_id("mi"),
                item_name=group.item_name,
                station=group.station,
                remake_count=count,
                dominant_reason=dominant,
                reason_breakdown=breakdown,
                severity=severity,
                suggestion=suggestion_for(dominant, group.item_name, group.station, count),
                first_seen=min(timestamps),
                last_seen=max(timestamps),
            )
        )

    insights.sort(key=lambda i: (-i.remake_count, i.item_name, i.station))
    return insights


class MistakeSummary(NamedTuple):
    """Dashboard roll-up of a set of insights."""

    total_remakes: int
    most_problematic: str | None
    worst_station: StationId | None
    allergy_issue: bool


def summarize_insights(insights: list[MistakeInsight]) -> MistakeSummary:
    """
    Roll a list of insights up for a dashboard headline.

    ``most_problematic`` is the item of the first insight, so pass the list
    in ``detect_patterns`` order.
    """
    if not insights:
        return MistakeSummary(0, None, None, False)

    per_station: Counter = Counter()
    for insight in insights:
        per_station[insight.station] += insight.remake_count
    worst_station = min(per_station, key=lambda s: (-per_station[s], s))

    return MistakeSummary(
        total_remakes=sum(i.remake_count for i in insights),
        most_problematic=insights[0].item_name,
        worst_station=worst_station,
        allergy_issue=any(
            RemakeReason.ALLERGY_MISSED in dict(i.reason_breakdown) for i in insights
        ),
    )
