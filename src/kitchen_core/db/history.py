"""
SQLite-based kitchen history.

This module provides async database operations for the durable log sink:
- Append remake and handoff entries (write-once)
- Archive completed ticket snapshots
- Query remakes by time window, handoffs and archived tickets

Per project patterns:
- Use async context manager for connection lifecycle
- Append-only tables are only ever INSERTed into
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from kitchen_core.db.schema import SCHEMA_SQL
from kitchen_core.types import (
    HandoffLogEntry,
    HandoffMethod,
    RemakeLogEntry,
    RemakeReason,
    Ticket,
)


def _utc_iso(value: datetime) -> str:
    # Fixed-width UTC text so stored timestamps compare in time order
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class KitchenLogDB:
    """
    Async context manager for kitchen history, implementing LogSinkProtocol.

    Example:
        async with KitchenLogDB(Path("kitchen.db")) as db:
            await db.append_remake(entry)
            recent = await db.list_remakes(since=now - timedelta(hours=3))
    """

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the database connection manager.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "KitchenLogDB":
        """Open database connection and ensure schema exists."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._ensure_schema()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _ensure_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()

    # -------------------------------------------------------------------------
    # LogSinkProtocol
    # -------------------------------------------------------------------------

    async def append_remake(self, entry: RemakeLogEntry) -> None:
        """
        Persist one remake entry.

        Re-appending an entry with an id already stored is a no-op, so a
        flush retried after a partial failure never duplicates history.
        """
        await self._conn.execute(
            """
            INSERT OR IGNORE INTO remake_log (
                id, ticket_id, item_id, item_name, reason, station,
                timestamp, performed_by, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.ticket_id,
                entry.item_id,
                entry.item_name,
                entry.reason.value,
                entry.station,
                _utc_iso(entry.timestamp),
                entry.performed_by,
                entry.notes,
            ),
        )
        await self._conn.commit()

    async def append_handoff(self, entry: HandoffLogEntry) -> None:
        """Persist one handoff entry (idempotent on entry id)."""
        await self._conn.execute(
            """
            INSERT OR IGNORE INTO handoff_log (
                id, ticket_id, order_number, handed_off_by, method,
                table_number, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.ticket_id,
                entry.order_number,
                entry.handed_off_by,
                entry.method.value,
                entry.table_number,
                _utc_iso(entry.timestamp),
            ),
        )
        await self._conn.commit()

    async def archive_ticket(self, ticket: Ticket) -> None:
        """Store the latest snapshot of a ticket, replacing an older one."""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO ticket_archive (
                ticket_id, order_number, status, created_at, completed_at,
                stations, snapshot
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ticket.id,
                ticket.order_number,
                ticket.status.value,
                _utc_iso(ticket.created_at),
                _utc_iso(ticket.completed_at) if ticket.completed_at else None,
                ",".join(ticket.station_assignments),
                json.dumps(ticket.to_dict()),
            ),
        )
        await self._conn.commit()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _row_to_remake(self, row: aiosqlite.Row) -> RemakeLogEntry:
        return RemakeLogEntry(
            id=row["id"],
            ticket_id=row["ticket_id"],
            item_id=row["item_id"],
            item_name=row["item_name"],
            reason=RemakeReason(row["reason"]),
            station=row["station"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            performed_by=row["performed_by"],
            notes=row["notes"],
        )

    def _row_to_handoff(self, row: aiosqlite.Row) -> HandoffLogEntry:
        return HandoffLogEntry(
            id=row["id"],
            ticket_id=row["ticket_id"],
            order_number=row["order_number"],
            handed_off_by=row["handed_off_by"],
            method=HandoffMethod(row["method"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            table_number=row["table_number"],
        )

    async def list_remakes(
        self,
        since: datetime | None = None,
        station: str | None = None,
    ) -> list[RemakeLogEntry]:
        """
        List remake entries, oldest first.

        Args:
            since: Only entries at or after this time
            station: Only entries for this station

        Returns:
            List of RemakeLogEntry
        """
        query = "SELECT * FROM remake_log WHERE 1=1"
        params: list[Any] = []
        if since is not None:
            query += " AND timestamp >= ?"
            params.append(_utc_iso(since))
        if station is not None:
            query += " AND station = ?"
            params.append(station)
        query += " ORDER BY timestamp ASC, rowid ASC"

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_remake(row) for row in rows]

    async def list_handoffs(self, limit: int | None = None) -> list[HandoffLogEntry]:
        """List handoff entries, newest first."""
        query = "SELECT * FROM handoff_log ORDER BY timestamp DESC, rowid DESC"
        params: list[Any] = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_handoff(row) for row in rows]

    async def get_archived(self, ticket_id: str) -> Ticket | None:
        """Get an archived ticket snapshot by id."""
        async with self._conn.execute(
            "SELECT snapshot FROM ticket_archive WHERE ticket_id = ?",
            (ticket_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return Ticket.from_dict(json.loads(row["snapshot"]))

    async def list_archived(
        self,
        station: str | None = None,
        limit: int | None = None,
    ) -> list[Ticket]:
        """
        List archived tickets, most recently completed first.

        Args:
            station: Only tickets with items at this station
            limit: Maximum number of tickets
        """
        async with self._conn.execute(
            "SELECT snapshot, stations FROM ticket_archive ORDER BY completed_at DESC"
        ) as cursor:
            rows = await cursor.fetchall()

        tickets = []
        for row in rows:
            if station is not None and station not in row["stations"].split(","):
                continue
            tickets.append(Ticket.from_dict(json.loads(row["snapshot"])))
            if limit is not None and len(tickets) >= limit:
                break
        return tickets
