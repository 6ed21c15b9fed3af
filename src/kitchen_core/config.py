"""
Configuration for the kitchen engine.

Two layers:
- KitchenSettings: environment-backed settings (KITCHEN_ prefix) read once
  at start-up by whoever hosts the engine
- PriorityConfig, BottleneckConfig, MiningConfig: immutable tunables for the
  detectors, built from settings or constructed directly in tests
- KitchenLoadState: the one piece of mutable, process-wide state; adjusted
  by operators, read by the priority engine and bottleneck detector

Nothing here is a module-level singleton. Callers build the objects and
pass them in, so tests can construct any load scenario deterministically.

Example:
    settings = load_settings()
    load = settings.build_load_state()
    load.adjust("global", +20)
    load.adjust("grill", +35)
"""

import threading
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from kitchen_protocols import StationId

GLOBAL_SCOPE = "global"

DEFAULT_DB_PATH = Path.home() / ".kitchen" / "kitchen.db"


@dataclass(frozen=True)
class PriorityConfig:
    """
    Tunables for the priority engine.

    Attributes:
        moderate_load_percent: Load at which the moderate penalty starts
        high_load_percent: Load above which the high penalty applies
        moderate_load_penalty_minutes: Penalty for moderate load
        high_load_penalty_minutes: Penalty for high load
        urgent_below_minutes: Adjusted margin below which a ticket is urgent
        high_below_minutes: Adjusted margin below which a ticket is high
        normal_below_minutes: Adjusted margin below which a ticket is normal
    """

    moderate_load_percent: float = 50.0
    high_load_percent: float = 75.0
    moderate_load_penalty_minutes: float = 3.0
    high_load_penalty_minutes: float = 7.0
    urgent_below_minutes: float = 0.0
    high_below_minutes: float = 5.0
    normal_below_minutes: float = 15.0


@dataclass(frozen=True)
class BottleneckConfig:
    """
    Tunables for the bottleneck detector.

    Attributes:
        base_backlog_threshold: Backlog a station tolerates at low load
        moderate_load_percent: Station load at which the threshold tightens
        high_load_percent: Station load above which it tightens further
        moderate_load_penalty: Tickets removed from the threshold at moderate load
        high_load_penalty: Tickets removed from the threshold at high load
        min_threshold: Floor for the adjusted threshold
        critical_overage_ratio: Overage at or above which an alert is critical
    """

    base_backlog_threshold: int = 4
    moderate_load_percent: float = 50.0
    high_load_percent: float = 75.0
    moderate_load_penalty: int = 1
    high_load_penalty: int = 2
    min_threshold: int = 1
    critical_overage_ratio: float = 1.5


@dataclass(frozen=True)
class MiningConfig:
    """
    Tunables for remake pattern mining.

    Attributes:
        window: Trailing window of remakes considered
        min_occurrences: Remakes needed before a group produces an insight
        critical_occurrences: Remakes at which an insight becomes critical
    """

    window: timedelta = field(default_factory=lambda: timedelta(minutes=180))
    min_occurrences: int = 3
    critical_occurrences: int = 5


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


@dataclass
class KitchenLoadState:
    """
    Process-wide, operator-adjusted kitchen load.

    Readers may see values change between reads; every adjustment is an
    independent scalar write.

    Attributes:
        global_load_percent: How busy the kitchen as a whole is (0-100)
        station_load_percent: Per-station load (0-100); missing means 0
        late_threshold_minutes: Average ticket age at which a station is late
    """

    global_load_percent: float = 50.0
    station_load_percent: dict[StationId, float] = field(default_factory=dict)
    late_threshold_minutes: float = 15.0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.global_load_percent = _clamp_percent(self.global_load_percent)
        self.station_load_percent = {
            station: _clamp_percent(value)
            for station, value in self.station_load_percent.items()
        }
        if self.late_threshold_minutes <= 0:
            raise ValueError("late_threshold_minutes must be positive")

    def station_load(self, station: StationId) -> float:
        return self.station_load_percent.get(station, 0.0)

    def adjust(self, scope: str, delta: float) -> float:
        """
        Adjust global or per-station load by ``delta`` percentage points.

        Args:
            scope: "global" or a station id
            delta: Signed change; the result is clamped to 0-100

        Returns:
            The new load percentage for the scope
        """
        with self._lock:
            if scope == GLOBAL_SCOPE:
                self.global_load_percent = _clamp_percent(self.global_load_percent + delta)
                return self.global_load_percent
            value = _clamp_percent(self.station_load(scope) + delta)
            self.station_load_percent[scope] = value
            return value

    def set_late_threshold(self, minutes: float) -> None:
        if minutes <= 0:
            raise ValueError("late threshold must be positive")
        self.late_threshold_minutes = minutes


class KitchenSettings(BaseSettings):
    """Kitchen engine configuration.

    All settings can be overridden via environment variables with
    KITCHEN_ prefix. For example:
        KITCHEN_DB_PATH=/var/lib/kitchen/kitchen.db
        KITCHEN_LATE_THRESHOLD_MINUTES=12
    """

    # Storage
    db_path: Path = DEFAULT_DB_PATH

    # Detection cycle
    detection_interval_seconds: float = 5.0

    # Initial load state
    late_threshold_minutes: float = 15.0
    global_load_percent: float = 50.0

    # Bottleneck detection
    base_backlog_threshold: int = 4
    critical_overage_ratio: float = 1.5

    # Remake mining
    remake_window_minutes: int = 180
    remake_min_occurrences: int = 3
    remake_critical_occurrences: int = 5

    # Demo intake
    simulator_interval_seconds: float = 15.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="KITCHEN_")

    def build_load_state(self) -> KitchenLoadState:
        return KitchenLoadState(
            global_load_percent=self.global_load_percent,
            late_threshold_minutes=self.late_threshold_minutes,
        )

    def bottleneck_config(self) -> BottleneckConfig:
        return BottleneckConfig(
            base_backlog_threshold=self.base_backlog_threshold,
            critical_overage_ratio=self.critical_overage_ratio,
        )

    def mining_config(self) -> MiningConfig:
        return MiningConfig(
            window=timedelta(minutes=self.remake_window_minutes),
            min_occurrences=self.remake_min_occurrences,
            critical_occurrences=self.remake_critical_occurrences,
        )


def load_settings(**overrides: object) -> KitchenSettings:
    """Build settings from the environment, with explicit overrides on top."""
    return KitchenSettings(**overrides)
