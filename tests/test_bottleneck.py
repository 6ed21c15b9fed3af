"""
Tests for station bottleneck detection.

Thresholds with the default config:
- base backlog threshold 4, minus 1 at >=50% station load, minus 2 above 75%
- late threshold comes from the load state (15 min unless overridden)
- overage >= 1.5 is critical
"""

from kitchen_core.config import BottleneckConfig, KitchenLoadState
from kitchen_core.monitor.bottleneck import (
    CRITICAL_SUGGESTIONS,
    BottleneckDetector,
    backlog_threshold,
    station_name,
)
from kitchen_core.types import Severity, TicketStatus


def _load(**station_load: float) -> KitchenLoadState:
    return KitchenLoadState(global_load_percent=30, station_load_percent=station_load)


class TestBacklogThreshold:
    """Tests for the load-adjusted threshold."""

    def test_unloaded_station_uses_base(self):
        assert backlog_threshold("grill", _load()) == 4

    def test_moderate_and_high_load_tighten(self):
        assert backlog_threshold("grill", _load(grill=50)) == 3
        assert backlog_threshold("grill", _load(grill=75)) == 3
        assert backlog_threshold("grill", _load(grill=80)) == 2

    def test_never_below_floor(self):
        config = BottleneckConfig(base_backlog_threshold=1)
        assert backlog_threshold("grill", _load(grill=100), config) == 1

    def test_station_name(self):
        assert station_name("grill") == "Grill"
        assert station_name("cold_prep") == "Cold Prep"


class TestBottleneckDetector:
    """Tests for BottleneckDetector.detect."""

    def test_idle_station_never_alerts(self, make_ticket, now):
        """A fully loaded station without active tickets stays quiet."""
        tickets = [
            make_ticket(minutes_ago=40, due_in=-10, status=TicketStatus.READY)
            for _ in range(6)
        ]

        alerts = BottleneckDetector().detect(tickets, _load(grill=100), now)

        assert alerts == []

    def test_backlog_at_threshold_does_not_alert(self, make_ticket, now):
        tickets = [make_ticket() for _ in range(4)]

        assert BottleneckDetector().detect(tickets, _load(), now) == []

    def test_backlog_over_threshold_warns(self, make_ticket, now):
        tickets = [make_ticket() for _ in range(5)]

        alerts = BottleneckDetector().detect(tickets, _load(), now)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.station == "grill"
        assert alert.severity is Severity.WARNING
        assert alert.message == "Grill station slowing down"
        assert alert.backlog == 5
        assert alert.threshold == 4
        assert alert.overage == 1.25
        assert "Pause incoming tickets for Grill" in alert.suggestion
        assert alert.detected_at == now

    def test_loaded_station_goes_critical(self, make_ticket, now):
        tickets = [make_ticket() for _ in range(5)]

        alerts = BottleneckDetector().detect(tickets, _load(grill=80), now)

        assert alerts[0].severity is Severity.CRITICAL
        assert alerts[0].message == "Critical bottleneck at Grill"
        assert alerts[0].threshold == 2
        assert alerts[0].suggestion == CRITICAL_SUGGESTIONS["grill"]

    def test_unknown_station_gets_generic_critical_advice(self, make_ticket, now):
        tickets = [make_ticket(stations=("wok",)) for _ in range(7)]

        alerts = BottleneckDetector().detect(tickets, _load(), now)

        assert alerts[0].severity is Severity.CRITICAL
        assert alerts[0].suggestion.startswith("Pause incoming tickets for Wok")

    def test_old_tickets_warn_on_age(self, make_ticket, now):
        tickets = [make_ticket(stations=("fry",), minutes_ago=20, due_in=5) for _ in range(2)]

        alerts = BottleneckDetector().detect(tickets, _load(), now)

        assert len(alerts) == 1
        assert alerts[0].station == "fry"
        assert alerts[0].severity is Severity.WARNING
        assert alerts[0].avg_age_minutes == 20.0
        assert alerts[0].late_count == 0
        assert "Redistribute" in alerts[0].suggestion

    def test_late_tickets_named_in_suggestion(self, make_ticket, now):
        tickets = [make_ticket(stations=("fry",), minutes_ago=20, due_in=-1) for _ in range(2)]

        alerts = BottleneckDetector().detect(tickets, _load(), now)

        assert alerts[0].late_count == 2
        assert alerts[0].suggestion.startswith("2 late tickets at Fry")

    def test_late_threshold_follows_load_state(self, make_ticket, now):
        tickets = [make_ticket(stations=("fry",), minutes_ago=12) for _ in range(2)]
        load = _load()

        assert BottleneckDetector().detect(tickets, load, now) == []

        load.set_late_threshold(10)
        assert len(BottleneckDetector().detect(tickets, load, now)) == 1

    def test_sorted_most_severe_first(self, make_ticket, now):
        fry = [make_ticket(stations=("fry",), minutes_ago=20, due_in=5) for _ in range(2)]
        grill = [make_ticket() for _ in range(5)]

        alerts = BottleneckDetector().detect(fry + grill, _load(grill=80), now)

        assert [a.station for a in alerts] == ["grill", "fry"]
        assert [a.severity for a in alerts] == [Severity.CRITICAL, Severity.WARNING]

    def test_stateless_across_calls(self, make_ticket, now):
        """Clearing the condition simply stops the alert."""
        tickets = [make_ticket() for _ in range(5)]
        detector = BottleneckDetector()

        first = detector.detect(tickets, _load(), now)
        tickets[0].status = TicketStatus.READY
        second = detector.detect(tickets, _load(), now)

        assert len(first) == 1
        assert second == []

    def test_fresh_id_per_emission_with_stable_dedup_key(self, make_ticket, now):
        tickets = [make_ticket() for _ in range(5)]
        detector = BottleneckDetector()

        first = detector.detect(tickets, _load(), now)[0]
        second = detector.detect(tickets, _load(), now)[0]

        assert first.id != second.id
        assert first.dedup_key == second.dedup_key
