"""Auxiliary host facts shown below the resource report.

Everything here is best effort: a fact that cannot be read comes back as
None and is rendered as ``N/A`` (or left out).
"""

import platform
import re
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path

import psutil
import structlog

log = structlog.get_logger()

ROUTE_TABLE = Path("/proc/net/route")
ERROR_PATTERN = re.compile(r"error|critical|fail|warn", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class Traffic:
    """Byte counters of one network interface since boot."""

    interface: str
    bytes_recv: int
    bytes_sent: int


@dataclass(slots=True, frozen=True)
class HostFacts:
    """Auxiliary information gathered once per report."""

    hostname: str
    system: str
    uptime_seconds: float | None
    load_avg: tuple[float, float, float] | None
    process_count: int | None
    traffic: Traffic | None
    log_errors: int | None


def default_route_interface(route_table: Path = ROUTE_TABLE) -> str | None:
    """Name of the interface carrying the default route, if any."""
    try:
        lines = route_table.read_text().splitlines()
    except OSError:
        return None
    for line in lines[1:]:
        fields = line.split()
        if len(fields) > 1 and fields[1] == "00000000":
            return fields[0]
    return None


def count_log_errors(path: Path, tail: int = 30) -> int | None:
    """Lines among the last ``tail`` of a log that mention an error keyword.

    Returns None when the log cannot be read.
    """
    try:
        with path.open(encoding="utf-8", errors="replace") as fh:
            last = deque(fh, maxlen=tail)
    except OSError:
        return None
    return sum(1 for line in last if ERROR_PATTERN.search(line))


class HostInspector:
    """Collects HostFacts."""

    def __init__(
        self,
        syslog_path: Path,
        syslog_tail_lines: int = 30,
        route_table: Path = ROUTE_TABLE,
    ) -> None:
        self.syslog_path = Path(syslog_path)
        self.syslog_tail_lines = syslog_tail_lines
        self.route_table = Path(route_table)

    def uptime(self) -> float | None:
        try:
            return time.time() - psutil.boot_time()
        except (OSError, psutil.Error):
            return None

    def load_avg(self) -> tuple[float, float, float] | None:
        try:
            return psutil.getloadavg()
        except (OSError, AttributeError):
            return None

    def process_count(self) -> int | None:
        try:
            return len(psutil.pids())
        except (OSError, psutil.Error):
            return None

    def traffic(self) -> Traffic | None:
        interface = default_route_interface(self.route_table)
        if interface is None:
            return None
        try:
            counters = psutil.net_io_counters(pernic=True).get(interface)
        except (OSError, psutil.Error) as e:
            log.debug("traffic_unavailable", interface=interface, error=str(e))
            return None
        if counters is None:
            return None
        return Traffic(interface, counters.bytes_recv, counters.bytes_sent)

    def collect(self) -> HostFacts:
        return HostFacts(
            hostname=platform.node() or "N/A",
            system=f"{platform.system()} {platform.release()}".strip() or "N/A",
            uptime_seconds=self.uptime(),
            load_avg=self.load_avg(),
            process_count=self.process_count(),
            traffic=self.traffic(),
            log_errors=count_log_errors(self.syslog_path, self.syslog_tail_lines),
        )
