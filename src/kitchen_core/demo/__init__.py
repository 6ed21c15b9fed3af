"""
Demo module for running the kitchen without a real order feed.

Exports:
    TicketSimulator: Seeded TicketSourceProtocol implementation
    DEFAULT_MENU: Small menu catalog used by the simulator
    DemoCrew: Simulated station operators acting on an engine
    AcceleratedClock: Clock running faster than wall time
"""

from kitchen_core.demo.crew import AcceleratedClock, DemoCrew
from kitchen_core.demo.simulator import DEFAULT_MENU, MenuItem, TicketSimulator

__all__ = ["DEFAULT_MENU", "AcceleratedClock", "DemoCrew", "MenuItem", "TicketSimulator"]
