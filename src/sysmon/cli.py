"""
Command line entry point for sysmon.

Usage:
    sysmon                      Show the report once
    sysmon --continuous [N]     Refresh the report every N seconds (default 60)
    sysmon --log                Check thresholds and log alerts, no report
    sysmon --help               Show usage, thresholds and log file

Exit Codes:
    0 - Success (including help and a cancelled run)
    1 - Missing system interface, invalid interval or invalid settings
"""

from __future__ import annotations

import argparse
import re
import signal
import sys
import threading
from collections.abc import Iterable, Sequence
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from types import FrameType
from typing import Optional

import structlog
from pydantic import ValidationError
from rich.console import Console

from sysmon.alerts import AlertDispatcher, LogSink, build_sinks
from sysmon.config import DEFAULT_INTERVAL, MonitorSettings
from sysmon.exceptions import InvalidArgumentError, MissingDependencyError, SysmonError
from sysmon.host import HostInspector
from sysmon.logging import configure_logging
from sysmon.monitor import RunMode, SystemMonitor
from sysmon.processes import ProcessRanker
from sysmon.report import ReportRenderer
from sysmon.sampler import Sampler
from sysmon.temperature import TemperatureChain

log = structlog.get_logger()

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

_INTERVAL = re.compile(r"^[0-9]+$")


def package_version() -> str:
    try:
        return version("sysmon")
    except PackageNotFoundError:
        return "unknown"


def validate_interval(value: str) -> int:
    """Parse a continuous-mode interval: a whole number of seconds, at least 1."""
    if not _INTERVAL.match(value) or int(value) < 1:
        raise InvalidArgumentError(f"invalid interval: {value}")
    return int(value)


def check_dependencies(required: Iterable[Path]) -> None:
    """
    Make sure the OS interfaces the counter readers rely on exist.

    Raises:
        MissingDependencyError: Listing every missing interface.
    """
    missing = [str(path) for path in required if not Path(path).exists()]
    if missing:
        raise MissingDependencyError(missing)


def build_parser(settings: MonitorSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysmon",
        description="Show CPU, RAM, disk, swap and temperature usage with the busiest processes.",
        epilog=(
            "thresholds:\n"
            f"  CPU:  {settings.cpu_limit}%\n"
            f"  RAM:  {settings.ram_limit}%\n"
            f"  Disk: {settings.disk_limit}%\n"
            "\n"
            f"log file: {settings.log_file}"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--continuous",
        "--c",
        nargs="?",
        const=str(settings.interval),
        metavar="N",
        help=f"refresh every N seconds (default {DEFAULT_INTERVAL})",
    )
    mode.add_argument(
        "--log",
        "--l",
        action="store_true",
        help="only check thresholds and log alerts, without the report",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    return parser


def install_signal_handlers(monitor: SystemMonitor) -> None:
    """
    Turn SIGINT and SIGTERM into a stop request.

    The handler runs on the main thread, which may be holding the stop
    event's lock inside ``Event.wait``; the event is set from a helper
    thread so the handler never blocks on that lock.
    """

    def _request_stop(signum: int, frame: Optional[FrameType]) -> None:
        threading.Thread(target=monitor.stop, name="sysmon-stop", daemon=True).start()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _request_stop)


def build_monitor(settings: MonitorSettings, console: Console) -> SystemMonitor:
    """Wire the sampler, ranker, sinks and renderer from settings."""
    sampler = Sampler(
        TemperatureChain.default(settings.thermal_zone_path),
        window=settings.cpu_sample_window,
    )
    return SystemMonitor(
        sampler=sampler,
        ranker=ProcessRanker(),
        dispatcher=AlertDispatcher(build_sinks(settings, console)),
        renderer=ReportRenderer(console),
        host=HostInspector(settings.syslog_path, settings.syslog_tail_lines),
        thresholds=settings.thresholds,
        alert_on_swap=settings.alert_on_swap,
        activity_log=LogSink(settings.log_file),
    )


def main(argv: Optional[Sequence[str]] = None, console: Optional[Console] = None) -> int:
    console = console or Console()
    error_console = Console(stderr=True)

    try:
        settings = MonitorSettings()
    except ValidationError as e:
        error_console.print("Error: invalid settings", style="red")
        error_console.print(str(e), markup=False)
        return EXIT_FAILURE

    configure_logging(settings.log_format, settings.log_level)
    args = build_parser(settings).parse_args(argv)

    try:
        if args.continuous is not None:
            mode = RunMode.CONTINUOUS
            interval = validate_interval(args.continuous)
        else:
            mode = RunMode.LOG_ONLY if args.log else RunMode.SNAPSHOT
            interval = settings.interval

        check_dependencies(settings.required_paths)

        monitor = build_monitor(settings, console)
        # Single-shot modes finish their cycle on a stop request
        install_signal_handlers(monitor)
        monitor.run(mode, interval)
    except SysmonError as e:
        log.debug("monitor_failed", error=e.message, exit_code=e.exit_code)
        error_console.print(f"Error: {e.message}", style="red", markup=False)
        return e.exit_code

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
