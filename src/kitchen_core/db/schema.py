"""
SQLite schema for kitchen history.

This module defines the database schema for:
- Remake log (write-once record of every remade item)
- Handoff log (write-once record of every completed handoff)
- Ticket archive (latest snapshot of each completed ticket)

The remake and handoff logs are append-only. Remake rows keep ticket_id as
a plain back-reference with no foreign key, so remake history survives
whatever happens to the archive.
"""

SCHEMA_SQL = """
-- Remake log: one row per remade item, never updated or deleted
CREATE TABLE IF NOT EXISTS remake_log (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,               -- Back-reference only
    item_id TEXT NOT NULL,
    item_name TEXT NOT NULL,
    reason TEXT NOT NULL,                  -- RemakeReason value
    station TEXT NOT NULL,
    timestamp TEXT NOT NULL,               -- ISO8601 timestamp
    performed_by TEXT,
    notes TEXT,
    recorded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Index for windowed mining queries
CREATE INDEX IF NOT EXISTS idx_remake_log_time
ON remake_log(timestamp);

-- Index for per-item/station pattern lookups
CREATE INDEX IF NOT EXISTS idx_remake_log_item_station
ON remake_log(item_name, station);

-- Handoff log: one row per completed handoff
CREATE TABLE IF NOT EXISTS handoff_log (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,
    order_number TEXT NOT NULL,
    handed_off_by TEXT NOT NULL,
    method TEXT NOT NULL,                  -- served, pickup, delivery
    table_number TEXT,
    timestamp TEXT NOT NULL,
    recorded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_handoff_log_time
ON handoff_log(timestamp);

-- Ticket archive: latest snapshot of each completed ticket
CREATE TABLE IF NOT EXISTS ticket_archive (
    ticket_id TEXT PRIMARY KEY,
    order_number TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    stations TEXT NOT NULL,                -- Comma-separated station ids
    snapshot TEXT NOT NULL,                -- JSON of Ticket.to_dict()
    archived_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_ticket_archive_completed
ON ticket_archive(completed_at);
"""
