"""
Kitchen Core Library

Kitchen display engine for multi-station kitchens. This package provides:

- Ticket lifecycle: state machine, store and operator actions
- Priority engine: load-adjusted priority for unstarted tickets
- Station routing and bottleneck detection
- Remake log and mistake pattern mining
- KitchenEngine: the facade collaborators talk to
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

# Re-export public types for convenient imports
from kitchen_core.config import KitchenLoadState, KitchenSettings, load_settings
from kitchen_core.engine import DetectionResult, KitchenEngine
from kitchen_core.exceptions import (
    EmptyActionContext,
    InvalidTransition,
    ItemNotFound,
    KitchenError,
    MalformedTicket,
    TicketNotFound,
    UnknownAction,
    UnknownHandoffMethod,
    UnknownRemakeReason,
)
from kitchen_core.types import (
    BottleneckAlert,
    MistakeInsight,
    OperatorAction,
    PriorityLevel,
    RemakeLogEntry,
    RemakeReason,
    Ticket,
    TicketItem,
    TicketStatus,
    TimelineEvent,
)

__all__ = [
    "__version__",
    # Engine
    "KitchenEngine",
    "DetectionResult",
    # Configuration
    "KitchenLoadState",
    "KitchenSettings",
    "load_settings",
    # Data Types
    "Ticket",
    "TicketItem",
    "TicketStatus",
    "TimelineEvent",
    "OperatorAction",
    "PriorityLevel",
    "RemakeReason",
    "RemakeLogEntry",
    "BottleneckAlert",
    "MistakeInsight",
    # Errors
    "KitchenError",
    "InvalidTransition",
    "TicketNotFound",
    "ItemNotFound",
    "MalformedTicket",
    "EmptyActionContext",
    "UnknownAction",
    "UnknownHandoffMethod",
    "UnknownRemakeReason",
]
