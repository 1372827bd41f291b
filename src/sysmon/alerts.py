"""Threshold evaluation and alert delivery.

``evaluate`` turns a Snapshot into zero or more Alerts; ``AlertDispatcher``
hands each Alert to every configured sink. Sinks fail independently: a
broken sink never keeps an alert from the others.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog
from rich.console import Console
from rich.text import Text

from sysmon.config import MonitorSettings
from sysmon.exceptions import SinkError
from sysmon.models import Alert, Metric, Severity, Snapshot, ThresholdConfig

log = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
NOTIFY_COMMAND = "notify-send"
NOTIFY_TIMEOUT = 5.0
DISPLAY_VARIABLES = ("DISPLAY", "WAYLAND_DISPLAY")


@dataclass(slots=True, frozen=True)
class ThresholdRule:
    """How one metric is checked and reported."""

    metric: Metric
    severity: Severity
    title: str
    label: str
    limit: Callable[[ThresholdConfig], int]


RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule(Metric.CPU, Severity.CRITICAL, "High CPU load", "CPU usage", lambda t: t.cpu_limit),
    ThresholdRule(Metric.RAM, Severity.WARNING, "High RAM usage", "RAM usage", lambda t: t.ram_limit),
    ThresholdRule(Metric.DISK, Severity.CRITICAL, "Low disk space", "Disk usage", lambda t: t.disk_limit),
)
SWAP_RULE = ThresholdRule(
    Metric.SWAP, Severity.WARNING, "Swap in use", "Swap usage", lambda t: t.swap_warn_limit
)


def evaluate(
    snapshot: Snapshot,
    thresholds: ThresholdConfig,
    include_swap: bool = False,
) -> list[Alert]:
    """
    Check every monitored metric against its limit.

    Metrics are checked in CPU, RAM, disk (, swap) order and each breach,
    strictly above the limit, yields its own Alert.
    """
    rules = RULES + (SWAP_RULE,) if include_swap else RULES
    alerts = []
    for rule in rules:
        value = snapshot.value_of(rule.metric)
        if value > rule.limit(thresholds):
            alerts.append(
                Alert(
                    metric=rule.metric,
                    severity=rule.severity,
                    observed_value=value,
                    title=rule.title,
                    message=f"{rule.label}: {value}%",
                )
            )
    return alerts


def format_log_line(alert: Alert, when: datetime) -> str:
    """``YYYY-MM-DD HH:MM:SS - [severity] Title: Message``"""
    return f"{when.strftime(TIMESTAMP_FORMAT)} - [{alert.severity.value}] {alert.title}: {alert.message}"


class NotificationSink(ABC):
    """A delivery channel for alerts."""

    name: str = "sink"

    @abstractmethod
    def emit(self, alert: Alert) -> None:
        """Deliver one alert.

        Raises:
            SinkError: If delivery failed.
        """


class LogSink(NotificationSink):
    """Append-only alert log file.

    The file is opened and closed for every write. Write failures are
    swallowed, and creating the containing directory is attempted once.
    """

    name = "log"

    def __init__(self, path: Path, clock: Callable[[], datetime] = datetime.now) -> None:
        self.path = Path(path)
        self._clock = clock
        self._directory_checked = False

    def _ensure_directory(self) -> None:
        if self._directory_checked:
            return
        self._directory_checked = True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.debug("log_directory_unavailable", path=str(self.path.parent), error=str(e))

    def write_line(self, text: str) -> bool:
        """Append one line; returns False when the file could not be written."""
        self._ensure_directory()
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(text.rstrip("\n") + "\n")
        except OSError as e:
            log.debug("log_write_failed", path=str(self.path), error=str(e))
            return False
        return True

    def info(self, message: str) -> bool:
        """Append an unstructured, timestamped informational line."""
        return self.write_line(f"{self._clock().strftime(TIMESTAMP_FORMAT)} - {message}")

    def emit(self, alert: Alert) -> None:
        self.write_line(format_log_line(alert, self._clock()))


CONSOLE_STYLES: Mapping[Severity, tuple[str, str]] = {
    Severity.CRITICAL: ("CRITICAL", "bold red"),
    Severity.WARNING: ("WARNING", "yellow"),
    Severity.INFO: ("INFO", "green"),
}


class ConsoleSink(NotificationSink):
    """Coloured alert lines on the terminal."""

    name = "console"

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def emit(self, alert: Alert) -> None:
        label, style = CONSOLE_STYLES[alert.severity]
        self.console.print(Text(f"[{label}] {alert.title}: {alert.message}", style=style))


# (urgency, expire time in ms) passed to notify-send
DESKTOP_URGENCY: Mapping[Severity, tuple[str, int]] = {
    Severity.CRITICAL: ("critical", 5000),
    Severity.WARNING: ("normal", 3000),
    Severity.INFO: ("low", 2000),
}


def desktop_session_available(
    env: Mapping[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> bool:
    """True when a graphical session is running and notify-send is installed."""
    env = os.environ if env is None else env
    if not any(env.get(name) for name in DISPLAY_VARIABLES):
        return False
    return which(NOTIFY_COMMAND) is not None


class DesktopSink(NotificationSink):
    """Desktop notifications through notify-send."""

    name = "desktop"

    def __init__(
        self,
        binary: str = NOTIFY_COMMAND,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.binary = binary
        self._run = run

    def emit(self, alert: Alert) -> None:
        urgency, expire_ms = DESKTOP_URGENCY[alert.severity]
        try:
            self._run(
                [self.binary, "-u", urgency, "-t", str(expire_ms), alert.title, alert.message],
                check=True,
                capture_output=True,
                timeout=NOTIFY_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise SinkError(self.name, str(e)) from e


class AlertDispatcher:
    """Sends every alert to every sink."""

    def __init__(self, sinks: Iterable[NotificationSink]) -> None:
        self.sinks: Sequence[NotificationSink] = tuple(sinks)

    def dispatch(self, alert: Alert) -> list[str]:
        """Deliver one alert; returns the names of sinks that failed."""
        failed = []
        for sink in self.sinks:
            try:
                sink.emit(alert)
            except SinkError as e:
                log.warning("sink_failed", sink=sink.name, metric=alert.metric.value, error=e.message)
                failed.append(sink.name)
        return failed

    def dispatch_all(self, alerts: Iterable[Alert]) -> None:
        for alert in alerts:
            self.dispatch(alert)


def build_sinks(
    settings: MonitorSettings,
    console: Console,
    env: Mapping[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> list[NotificationSink]:
    """Log and console sinks always; desktop notifications when a session is detected."""
    sinks: list[NotificationSink] = [LogSink(settings.log_file), ConsoleSink(console)]
    if desktop_session_available(env, which):
        sinks.append(DesktopSink(which(NOTIFY_COMMAND) or NOTIFY_COMMAND))
    else:
        log.debug("desktop_notifications_disabled")
    return sinks
