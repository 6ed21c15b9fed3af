"""
Station bottleneck detection.

For every station with active tickets:
- backlog: number of active tickets (new, in progress, recalled)
- avg_age_minutes: mean of now - created_at over those tickets
- threshold: base backlog threshold minus a penalty for the station's
  reported load (a loaded station has less slack to absorb surprises)

A station alerts when backlog > threshold or avg_age > late threshold.
Severity scales with how far over the worse of the two limits it is.

Detection is stateless across cycles: an alert is never resolved, it just
stops being emitted once its condition clears. A station with no active
tickets never alerts, whatever its configured load.
"""

import logging
from datetime import datetime
from typing import Iterable

from kitchen_protocols import StationId
from kitchen_core.config import BottleneckConfig, KitchenLoadState
from kitchen_core.routing import group_active_by_station
from kitchen_core.types import (
    BottleneckAlert,
    Severity,
    Ticket,
    minutes_between,
    new_id,
)

logger = logging.getLogger(__name__)

DEFAULT_BOTTLENECK_CONFIG = BottleneckConfig()

# Critical-severity advice for stations with a well-known failure mode
CRITICAL_SUGGESTIONS: dict[StationId, str] = {
    "fry": "Pause fried sides for 10 minutes and move a cook onto fry.",
    "grill": "Pause new grill orders for 15 minutes and add support staff to the grill.",
    "curry": "Pause incoming curry tickets for 10 minutes and batch the base sauces.",
    "bar": "Hold cocktails for now and prioritize simple drinks.",
    "dessert": "Pause plated desserts and send pre-portioned items first.",
    "prep": "Pause incoming tickets for prep and pull a cook from the quietest station.",
}


def station_name(station: StationId) -> str:
    """Display name for a station id ("grill" -> "Grill")."""
    return station.replace("_", " ").replace("-", " ").title()


def station_load_penalty(
    station_load_percent: float,
    config: BottleneckConfig = DEFAULT_BOTTLENECK_CONFIG,
) -> int:
    """Tickets removed from a station's backlog threshold at a given load."""
    if station_load_percent > config.high_load_percent:
        return config.high_load_penalty
    if station_load_percent >= config.moderate_load_percent:
        return config.moderate_load_penalty
    return 0


def backlog_threshold(
    station: StationId,
    load: KitchenLoadState,
    config: BottleneckConfig = DEFAULT_BOTTLENECK_CONFIG,
) -> int:
    """Load-adjusted backlog threshold for ``station``."""
    penalty = station_load_penalty(load.station_load(station), config)
    return max(config.min_threshold, config.base_backlog_threshold - penalty)


class BottleneckDetector:
    """
    Scans active tickets per station and emits bottleneck alerts.

    Holds only configuration; every call to ``detect`` is independent.

    Example:
        detector = BottleneckDetector()
        alerts = detector.detect(store.list_all(), load, now)
        for alert in alerts[:3]:
            show(alert)
    """

    def __init__(self, config: BottleneckConfig | None = None) -> None:
        """
        Initialize the detector.

        Args:
            config: Threshold tunables (defaults to BottleneckConfig())
        """
        self.config = config or DEFAULT_BOTTLENECK_CONFIG

    def detect(
        self,
        tickets: Iterable[Ticket],
        load: KitchenLoadState,
        now: datetime,
    ) -> list[BottleneckAlert]:
        """
        Run one detection pass over the full ticket set.

        Args:
            tickets: All tickets (inactive ones are ignored)
            load: Current kitchen load, read once per station
            now: Detection time

        Returns:
            Alerts sorted by severity, then overage, most severe first
        """
        alerts: list[BottleneckAlert] = []
        for station, active in group_active_by_station(tickets).items():
            alert = self._check_station(station, active, load, now)
            if alert:
                alerts.append(alert)

        alerts.sort(key=lambda a: (-a.severity.rank, -a.overage, a.station))
        if alerts:
            logger.debug(
                f"Detected {len(alerts)} bottleneck(s): "
                + ", ".join(f"{a.station}={a.severity.value}" for a in alerts)
            )
        return alerts

    def _check_station(
        self,
        station: StationId,
        active: list[Ticket],
        load: KitchenLoadState,
        now: datetime,
    ) -> BottleneckAlert | None:
        backlog = len(active)
        if backlog == 0:
            return None

        avg_age = sum(minutes_between(t.created_at, now) for t in active) / backlog
        late_threshold = load.late_threshold_minutes
        threshold = backlog_threshold(station, load, self.config)
        late_count = sum(1 for t in active if now > t.promised_at)

        backlog_over = backlog > threshold
        age_over = avg_age > late_threshold
        if not (backlog_over or age_over):
            return None

        overage = max(backlog / threshold, avg_age / late_threshold)
        severity = (
            Severity.CRITICAL
            if overage >= self.config.critical_overage_ratio
            else Severity.WARNING
        )

        name = station_name(station)
        if severity is Severity.CRITICAL:
            message = f"Critical bottleneck at {name}"
        else:
            message = f"{name} station slowing down"

        return BottleneckAlert(
            id=new_id("bn"),
            station=station,
            severity=severity,
            message=message,
            suggestion=self._suggest(
                station, severity, backlog, threshold, avg_age, late_count, backlog_over
            ),
            detected_at=now,
            backlog=backlog,
            avg_age_minutes=round(avg_age, 1),
            threshold=threshold,
            late_count=late_count,
            overage=round(overage, 2),
        )

    def _suggest(
        self,
        station: StationId,
        severity: Severity,
        backlog: int,
        threshold: int,
        avg_age: float,
        late_count: int,
        backlog_over: bool,
    ) -> str:
        name = station_name(station)
        if severity is Severity.CRITICAL:
            return CRITICAL_SUGGESTIONS.get(
                station,
                f"Pause incoming tickets for {name} and add staff; hold complex items.",
            )
        if backlog_over:
            return (
                f"{name} has {backlog} tickets queued (limit {threshold}). "
                f"Pause incoming tickets for {name} or add help."
            )
        if late_count >= 2:
            return f"{late_count} late tickets at {name}. Work the oldest tickets first."
        return (
            f"Average ticket age at {name} is {avg_age:.0f} min. "
            "Redistribute items to an alternate station if possible."
        )
