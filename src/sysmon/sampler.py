"""Resource sampling for sysmon.

Reads raw OS counters through psutil and derives utilization percentages.
Every reader returns a Reading; a failing source degrades to 0 with
``ok=False`` instead of raising, so one bad counter never aborts a cycle.
"""

import time
from collections.abc import Callable
from datetime import datetime
from typing import NamedTuple

import psutil
import structlog

from sysmon.exceptions import UnreadableSourceError
from sysmon.models import Metric, Reading, Snapshot, clamp_percent
from sysmon.temperature import TemperatureChain

log = structlog.get_logger()

ROOT_MOUNT = "/"


class CpuCounters(NamedTuple):
    """Cumulative CPU time counters for the system-wide aggregate."""

    user: float = 0
    nice: float = 0
    system: float = 0
    idle: float = 0
    iowait: float = 0
    irq: float = 0
    softirq: float = 0
    steal: float = 0

    @property
    def total(self) -> float:
        return sum(self)

    @property
    def idle_total(self) -> float:
        return self.idle + self.iowait

    def __sub__(self, other: "CpuCounters") -> "CpuCounters":
        return CpuCounters(*(a - b for a, b in zip(self, other)))


def cpu_usage(counters: CpuCounters) -> int:
    """
    Busy percentage for a counter tuple (usually a delta between two reads).

    Raises:
        UnreadableSourceError: If the counters add up to nothing.
    """
    total = counters.total
    if total <= 0:
        raise UnreadableSourceError("cpu counters", "no elapsed CPU time")
    return clamp_percent(100 - round(100 * counters.idle_total / total))


def used_percent(used: float, total: float) -> int:
    """Share of ``total`` in use; an empty pool counts as 0%."""
    if total <= 0:
        return 0
    return clamp_percent(100 * used / total)


def read_cpu_counters() -> CpuCounters:
    """Read the aggregate CPU counters; fields the platform lacks count as 0."""
    try:
        times = psutil.cpu_times()
    except (OSError, psutil.Error) as e:
        raise UnreadableSourceError("cpu counters", str(e)) from e
    return CpuCounters(*(float(getattr(times, name, 0.0)) for name in CpuCounters._fields))


class Sampler:
    """
    Produces one Snapshot per call to ``sample``.

    The CPU figure is a delta over ``window`` seconds; that wait is the only
    blocking part of a sample.
    """

    def __init__(
        self,
        temperature: TemperatureChain,
        window: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        read_counters: Callable[[], CpuCounters] = read_cpu_counters,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the Sampler.

        Args:
            temperature: Fallback chain used for the temperature reading.
            window: Seconds between the two CPU counter reads.
            sleep: Blocking wait used for the CPU window.
            read_counters: Source of cumulative CPU counters.
            clock: Source of the snapshot timestamp.
        """
        self._temperature = temperature
        self._window = window
        self._sleep = sleep
        self._read_counters = read_counters
        self._clock = clock

    @property
    def window(self) -> float:
        """Get the CPU sampling window."""
        return self._window

    def read_cpu(self) -> Reading:
        """CPU utilization from two counter reads ``window`` seconds apart."""
        try:
            before = self._read_counters()
            self._sleep(self._window)
            after = self._read_counters()
            return Reading(cpu_usage(after - before))
        except UnreadableSourceError as e:
            log.warning("metric_unavailable", metric=Metric.CPU.value, error=e.message)
            return Reading(0, ok=False)

    def read_ram(self) -> Reading:
        """RAM utilization from the memory accounting source."""
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as e:
            log.warning("metric_unavailable", metric=Metric.RAM.value, error=str(e))
            return Reading(0, ok=False)
        return Reading(used_percent(mem.used, mem.total))

    def read_swap(self) -> Reading:
        """Swap utilization; a host without swap reports 0%."""
        try:
            swap = psutil.swap_memory()
        except (OSError, psutil.Error) as e:
            log.warning("metric_unavailable", metric=Metric.SWAP.value, error=str(e))
            return Reading(0, ok=False)
        return Reading(used_percent(swap.used, swap.total))

    def read_disk(self) -> Reading:
        """Percent-full figure for the root filesystem."""
        try:
            usage = psutil.disk_usage(ROOT_MOUNT)
        except (OSError, psutil.Error) as e:
            log.warning("metric_unavailable", metric=Metric.DISK.value, error=str(e))
            return Reading(0, ok=False)
        return Reading(clamp_percent(usage.percent))

    def sample(self) -> Snapshot:
        """Collect a snapshot of the current system state."""
        readings = {
            Metric.CPU: self.read_cpu(),
            Metric.RAM: self.read_ram(),
            Metric.SWAP: self.read_swap(),
            Metric.DISK: self.read_disk(),
        }
        unavailable = {metric.value for metric, reading in readings.items() if not reading.ok}

        temperature = self._temperature.resolve()
        if temperature is None:
            unavailable.add("temperature")

        return Snapshot(
            cpu_pct=readings[Metric.CPU].value,
            ram_pct=readings[Metric.RAM].value,
            swap_pct=readings[Metric.SWAP].value,
            disk_pct=readings[Metric.DISK].value,
            temperature=temperature,
            timestamp=self._clock(),
            unavailable=frozenset(unavailable),
        )
