"""
Monitor module for kitchen detection.

Exports:
    BottleneckDetector: Per-station backlog and age alerts
    RemakeLog: Append-only log of remade items
    detect_patterns: Mine the remake log for recurring problems
    summarize_insights: Dashboard roll-up of mistake insights
    DetectionLoop: Scheduler that drives intake, detection and log flushing
"""

from kitchen_core.monitor.bottleneck import BottleneckDetector
from kitchen_core.monitor.mistakes import RemakeLog, detect_patterns, summarize_insights

# Lazy import to avoid circular dependency with the engine
# DetectionLoop imports KitchenEngine which imports monitor.mistakes
# Import DetectionLoop at usage time from kitchen_core.monitor.loop


def __getattr__(name: str):
    """Lazy import for DetectionLoop to avoid circular imports."""
    if name == "DetectionLoop":
        from kitchen_core.monitor.loop import DetectionLoop

        return DetectionLoop
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "BottleneckDetector",
    "DetectionLoop",
    "RemakeLog",
    "detect_patterns",
    "summarize_insights",
]
