"""
Database module for kitchen history persistence.

Exports:
    KitchenLogDB: Async context manager implementing LogSinkProtocol
"""

from kitchen_core.db.history import KitchenLogDB

__all__ = ["KitchenLogDB"]
