"""
Tests for DetectionLoop.

Uses in-memory mock implementations of TicketSourceProtocol and
LogSinkProtocol to drive the loop without a database or simulator.
"""

import asyncio
import logging

import pytest

from kitchen_core.db.history import KitchenLogDB
from kitchen_core.demo.simulator import TicketSimulator
from kitchen_core.monitor.loop import DetectionLoop
from kitchen_core.types import HandoffLogEntry, RemakeLogEntry, Ticket
from kitchen_protocols import LogSinkProtocol, TicketSourceProtocol


# =============================================================================
# Mock Implementations
# =============================================================================


class MockSource:
    """Mock ticket source handing out queued payloads once."""

    def __init__(self, payloads: list[dict] | None = None, fail: bool = False):
        self.payloads = list(payloads or [])
        self.fail = fail
        self.polls = 0

    async def poll(self) -> list[dict]:
        self.polls += 1
        if self.fail:
            raise ConnectionError("POS bridge unreachable")
        batch, self.payloads = self.payloads, []
        return batch


class MockSink:
    """Mock log sink recording everything it receives."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.remakes: list[RemakeLogEntry] = []
        self.handoffs: list[HandoffLogEntry] = []
        self.archived: list[Ticket] = []

    def _maybe_fail(self) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise OSError("disk full")

    async def append_remake(self, entry: RemakeLogEntry) -> None:
        self._maybe_fail()
        self.remakes.append(entry)

    async def append_handoff(self, entry: HandoffLogEntry) -> None:
        self._maybe_fail()
        self.handoffs.append(entry)

    async def archive_ticket(self, ticket: Ticket) -> None:
        self._maybe_fail()
        self.archived.append(ticket)


def _payload(ticket_id: str, station: str = "grill", **overrides) -> dict:
    payload = {
        "id": ticket_id,
        "order_number": f"ORD-{ticket_id}",
        "promised_in_minutes": 20,
        "items": [{"id": f"{ticket_id}-1", "name": "Burger", "station": station}],
    }
    payload.update(overrides)
    return payload


def _complete(engine, ticket_id: str) -> None:
    for action in ("start", "bump", "mark-complete"):
        engine.apply_action(ticket_id, action, "cook")


# =============================================================================
# Tests
# =============================================================================


class TestProtocolCompliance:
    """Test that the shipped collaborators satisfy the protocols."""

    def test_mocks_implement_protocols(self):
        assert isinstance(MockSource(), TicketSourceProtocol)
        assert isinstance(MockSink(), LogSinkProtocol)

    def test_simulator_is_a_source(self):
        assert isinstance(TicketSimulator(seed=1), TicketSourceProtocol)

    def test_history_db_is_a_sink(self, tmp_path):
        assert isinstance(KitchenLogDB(tmp_path / "kitchen.db"), LogSinkProtocol)


class TestRunOnce:
    """Tests for a single detection cycle."""

    @pytest.mark.asyncio
    async def test_drains_source_into_engine(self, engine):
        source = MockSource([_payload(f"t-{n}") for n in range(5)])
        loop = DetectionLoop(engine, source=source)

        result = await loop.run_once()

        assert len(engine.list_tickets()) == 5
        assert [a.station for a in result.alerts] == ["grill"]
        assert result.restamped == 5
        assert loop.cycles == 1

    @pytest.mark.asyncio
    async def test_rejected_ticket_does_not_block_others(self, engine, caplog):
        source = MockSource([_payload("t-bad", items=[]), _payload("t-good")])
        loop = DetectionLoop(engine, source=source)

        with caplog.at_level(logging.WARNING):
            await loop.run_once()

        assert [t.id for t in engine.list_tickets()] == ["t-good"]
        assert "Rejected incoming ticket" in caplog.text

    @pytest.mark.asyncio
    async def test_source_failure_is_logged(self, engine, caplog):
        loop = DetectionLoop(engine, source=MockSource(fail=True))

        with caplog.at_level(logging.WARNING):
            result = await loop.run_once()

        assert result.alerts == []
        assert loop.cycles == 1
        assert "Ticket source poll failed" in caplog.text

    @pytest.mark.asyncio
    async def test_flushes_new_entries_once(self, engine):
        sink = MockSink()
        loop = DetectionLoop(engine, source=MockSource([_payload("t-1")]), sink=sink)
        await loop.run_once()

        engine.remake_item("t-1", "t-1-1", "expo", "overcooked")
        _complete(engine, "t-1")
        await loop.run_once()
        await loop.run_once()

        assert [e.item_id for e in sink.remakes] == ["t-1-1"]
        assert [e.ticket_id for e in sink.handoffs] == ["t-1"]
        assert [t.id for t in sink.archived] == ["t-1"]

    @pytest.mark.asyncio
    async def test_failed_flush_retried_next_cycle(self, engine, caplog):
        sink = MockSink(failures=1)
        loop = DetectionLoop(engine, source=MockSource([_payload("t-1")]), sink=sink)
        await loop.run_once()
        engine.remake_item("t-1", "t-1-1", "expo", "dropped")

        with caplog.at_level(logging.WARNING):
            await loop.run_once()
        assert sink.remakes == []
        assert "Log sink flush failed" in caplog.text

        await loop.run_once()
        assert len(sink.remakes) == 1

    @pytest.mark.asyncio
    async def test_recompleted_ticket_archived_again(self, engine, clock):
        sink = MockSink()
        loop = DetectionLoop(engine, source=MockSource([_payload("t-1")]), sink=sink)
        await loop.run_once()
        _complete(engine, "t-1")
        await loop.run_once()

        clock.advance(minutes=2)
        engine.apply_action("t-1", "recall", "expo", reason="missing sauce")
        engine.apply_action("t-1", "bump", "cook")
        engine.apply_action("t-1", "mark-complete", "runner")
        await loop.run_once()

        assert len(sink.archived) == 2
        assert sink.archived[-1].handoff_by == "runner"
        assert len(sink.handoffs) == 2


class TestRun:
    """Tests for the long-running loop."""

    @pytest.mark.asyncio
    async def test_stops_from_on_cycle(self, engine):
        sink = MockSink()
        cycles = []

        def on_cycle(result):
            cycles.append(result)
            if len(cycles) == 3:
                loop.stop()

        loop = DetectionLoop(
            engine,
            interval_seconds=0.01,
            source=MockSource([_payload("t-1")]),
            sink=sink,
            install_signal_handlers=False,
            on_cycle=on_cycle,
        )

        await asyncio.wait_for(loop.run(), timeout=5)

        assert loop.cycles == 3
        assert len(cycles) == 3

    @pytest.mark.asyncio
    async def test_final_flush_on_shutdown(self, engine):
        sink = MockSink()
        loop = DetectionLoop(
            engine,
            interval_seconds=0.01,
            sink=sink,
            install_signal_handlers=False,
        )
        engine.submit(_payload("t-1"))

        def on_cycle(result):
            # Recorded after this cycle's flush; only the shutdown flush sees it
            engine.remake_item("t-1", "t-1-1", "expo", "dropped")
            loop.stop()

        loop.on_cycle = on_cycle

        await asyncio.wait_for(loop.run(), timeout=5)

        assert len(sink.remakes) == 1
