"""
Generic identifier types shared by the kitchen packages.

Stations, tickets and operators are all identified by plain strings. The
aliases exist so signatures document which kind of identifier they expect.
"""

StationId = str
"""Identifier of a physical preparation area (e.g. "grill", "curry", "bar")."""

TicketId = str
"""Opaque, unique identifier of a kitchen ticket."""

OperatorId = str
"""Identity of the station operator performing an action."""
