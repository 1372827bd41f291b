"""Data models for sysmon."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple

UNAVAILABLE = "N/A"
NO_COMMAND = "<none>"
COMMAND_WIDTH = 50
ELLIPSIS = "..."


class Metric(str, Enum):
    """Metrics checked against thresholds."""

    CPU = "cpu"
    RAM = "ram"
    DISK = "disk"
    SWAP = "swap"


class Severity(str, Enum):
    """Alert severity, ordered from least to most urgent."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class SortKey(Enum):
    """Sort keys for the process ranking."""

    CPU = "cpu"
    MEM = "mem"
    RSS = "rss"


class Heat(Enum):
    """Display classification of a ranked process row."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    CRITICAL = "critical"


class Reading(NamedTuple):
    """Value produced by a counter reader; ``ok`` is False when the source failed."""

    value: int
    ok: bool = True


def clamp_percent(value: float) -> int:
    """Round a percentage and clamp it to [0, 100]."""
    return max(0, min(100, int(round(value))))


def format_temperature(value: int | None) -> str:
    """Format a temperature in whole degrees, ``N/A°C`` when unknown."""
    return f"{UNAVAILABLE if value is None else value}°C"


def truncate_command(command: str, width: int = COMMAND_WIDTH) -> str:
    """Trim a command line for display, substituting a placeholder when empty."""
    command = command.lstrip()
    if not command:
        return NO_COMMAND
    if len(command) > width:
        return command[: width - len(ELLIPSIS)] + ELLIPSIS
    return command


@dataclass(slots=True, frozen=True)
class ThresholdConfig:
    """Alert limits in percent; a metric alerts when strictly above its limit."""

    cpu_limit: int = 80
    ram_limit: int = 85
    disk_limit: int = 90
    swap_warn_limit: int = 50


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable set of utilization readings taken in one sampling cycle."""

    cpu_pct: int
    ram_pct: int
    swap_pct: int
    disk_pct: int
    temperature: int | None  # whole degrees Celsius, None when unavailable
    timestamp: datetime
    unavailable: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in ("cpu_pct", "ram_pct", "swap_pct", "disk_pct"):
            object.__setattr__(self, name, clamp_percent(getattr(self, name)))

    @property
    def temperature_label(self) -> str:
        """Temperature formatted for display."""
        return format_temperature(self.temperature)

    def value_of(self, metric: Metric) -> int:
        """Return the percentage recorded for a metric."""
        return getattr(self, f"{metric.value}_pct")


@dataclass(slots=True, frozen=True)
class Alert:
    """A threshold breach, dispatched once and then discarded."""

    metric: Metric
    severity: Severity
    observed_value: int
    title: str
    message: str


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of a top-N process ranking."""

    user: str
    pid: int
    cpu_pct: float
    mem_pct: float
    vsz_mb: int
    rss_mb: int
    command: str
    heat: Heat = Heat.NORMAL
