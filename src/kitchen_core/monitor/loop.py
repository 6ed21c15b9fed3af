"""
DetectionLoop daemon for the kitchen engine.

This module implements the scheduler that:
- Runs continuously at a configurable interval
- Drains the ticket source into KitchenEngine.submit
- Runs one detection pass via KitchenEngine.refresh
- Flushes new remake and handoff entries and completed tickets to the sink
- Outputs periodic heartbeat messages
- Handles graceful shutdown on SIGINT/SIGTERM or stop()

Detection logic lives in the engine; the loop only decides when it runs,
so tests can drive ``run_once`` directly with a synthetic clock.
"""

import asyncio
import functools
import logging
import signal
from datetime import datetime
from typing import Callable

from kitchen_core.engine import DetectionResult, KitchenEngine
from kitchen_core.exceptions import KitchenError
from kitchen_core.types import TicketStatus
from kitchen_protocols import LogSinkProtocol, TicketSourceProtocol

logger = logging.getLogger(__name__)


class DetectionLoop:
    """
    Long-running daemon that keeps the engine's detection output fresh.

    Failures of the source or sink are logged and retried next cycle; they
    never stop the loop. Entries that failed to flush stay queued.

    Example:
        engine = KitchenEngine.from_settings(settings)
        async with KitchenLogDB(settings.db_path) as db:
            loop = DetectionLoop(engine, interval_seconds=5.0,
                                 source=TicketSimulator(), sink=db)
            await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        engine: KitchenEngine,
        interval_seconds: float = 5.0,
        source: TicketSourceProtocol | None = None,
        sink: LogSinkProtocol | None = None,
        install_signal_handlers: bool = True,
        on_cycle: Callable[[DetectionResult], None] | None = None,
    ) -> None:
        """
        Initialize detection loop.

        Args:
            engine: Engine to drive
            interval_seconds: Seconds between cycles (default 5)
            source: Optional ticket source drained every cycle
            sink: Optional durable log sink flushed every cycle
            install_signal_handlers: Register SIGINT/SIGTERM handlers in run()
            on_cycle: Called with each cycle's result (e.g. to render it)
        """
        self.engine = engine
        self.interval = interval_seconds
        self.source = source
        self.sink = sink
        self.install_signal_handlers = install_signal_handlers
        self.on_cycle = on_cycle
        self._shutdown = asyncio.Event()

        # Flush cursors into the engine's append-only logs
        self._remakes_flushed = 0
        self._handoffs_flushed = 0
        self._archived: dict[str, datetime] = {}

        # Stats for heartbeat
        self._cycles = 0
        self._last_result: DetectionResult | None = None
        self._last_check: datetime | None = None

    @property
    def cycles(self) -> int:
        return self._cycles

    async def run(self) -> None:
        """
        Run the detection loop until shutdown.

        Registers SIGINT and SIGTERM handlers for graceful shutdown, runs a
        cycle, then waits for the interval or the shutdown event.
        """
        loop = asyncio.get_running_loop()

        if self.install_signal_handlers:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(
                    sig,
                    functools.partial(self._handle_signal, sig),
                )

        logger.info(f"Detection loop starting (interval: {self.interval}s)")

        try:
            while not self._shutdown.is_set():
                result = await self.run_once()
                self._log_heartbeat()
                if self.on_cycle is not None:
                    self.on_cycle(result)

                # Event.wait() with timeout so stop() interrupts the sleep
                try:
                    await asyncio.wait_for(
                        self._shutdown.wait(),
                        timeout=self.interval,
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            if self.install_signal_handlers:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
            # Last flush so nothing recorded before shutdown is lost
            await self._flush()

        logger.info("Detection loop stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info(f"Received {sig.name}, shutting down...")
        self._shutdown.set()

    async def run_once(self, now: datetime | None = None) -> DetectionResult:
        """
        Run one cycle: intake, detection, flush.

        Args:
            now: Detection time (defaults to the engine clock)

        Returns:
            The detection result of this cycle
        """
        self._last_check = now or self.engine.clock()

        await self._drain_source()
        result = self.engine.refresh(now)
        await self._flush()

        self._cycles += 1
        self._last_result = result
        return result

    async def _drain_source(self) -> None:
        if self.source is None:
            return
        try:
            incoming = await self.source.poll()
        except Exception as e:
            # Log but don't crash on intake failure
            logger.warning(f"Ticket source poll failed: {e}")
            return

        for item in incoming:
            try:
                self.engine.submit(item)
            except KitchenError as e:
                logger.warning(f"Rejected incoming ticket: {e}")

    async def _flush(self) -> None:
        if self.sink is None:
            return
        try:
            await self._flush_remakes()
            await self._flush_handoffs()
            await self._archive_completed()
        except Exception as e:
            # Unflushed entries stay behind the cursors and go out next cycle
            logger.warning(f"Log sink flush failed: {e}")

    async def _flush_remakes(self) -> None:
        entries = self.engine.remake_entries()
        for entry in entries[self._remakes_flushed:]:
            await self.sink.append_remake(entry)
            self._remakes_flushed += 1

    async def _flush_handoffs(self) -> None:
        entries = self.engine.handoff_entries()
        for entry in entries[self._handoffs_flushed:]:
            await self.sink.append_handoff(entry)
            self._handoffs_flushed += 1

    async def _archive_completed(self) -> None:
        for ticket in self.engine.list_tickets(status=TicketStatus.COMPLETED):
            if self._archived.get(ticket.id) == ticket.completed_at:
                continue
            await self.sink.archive_ticket(ticket)
            self._archived[ticket.id] = ticket.completed_at

    def _log_heartbeat(self) -> None:
        """Output periodic status message."""
        result = self._last_result
        if result is None:
            return
        active = sum(1 for t in self.engine.list_tickets() if t.status.is_active)
        status = (
            "all stations clear"
            if not result.alerts
            else f"{len(result.alerts)} bottleneck(s)"
        )
        logger.info(
            f"Cycle {self._cycles} complete: {active} active ticket(s), {status}, "
            f"{len(result.insights)} mistake insight(s)"
        )
