"""Sampling loop for sysmon.

One cycle samples, evaluates thresholds, dispatches alerts and optionally
renders a report. ``SystemMonitor.run`` drives a single cycle or repeats
cycles until ``stop`` is called. The inter-cycle sleep is the only place the
stop request is observed, so a cycle always completes once started.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum

import structlog

from sysmon.alerts import AlertDispatcher, LogSink, evaluate
from sysmon.host import HostInspector
from sysmon.models import Alert, ProcessEntry, Snapshot, SortKey, ThresholdConfig
from sysmon.processes import ProcessRanker
from sysmon.report import Report, ReportRenderer
from sysmon.sampler import Sampler

log = structlog.get_logger()

REPORT_VIEWS = (SortKey.CPU, SortKey.MEM)


class RunMode(Enum):
    """How many cycles to run and whether to render them."""

    SNAPSHOT = "snapshot"
    LOG_ONLY = "log"
    CONTINUOUS = "continuous"


class MonitorState(Enum):
    """Where the monitor currently is in its cycle."""

    IDLE = "idle"
    SAMPLING = "sampling"
    EVALUATING = "evaluating"
    RENDERING = "rendering"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass(slots=True)
class CycleResult:
    """Output of one sampling cycle."""

    snapshot: Snapshot
    alerts: list[Alert]
    rankings: dict[SortKey, list[ProcessEntry]] = field(default_factory=dict)


class SystemMonitor:
    """
    Drives sampling cycles in snapshot, log-only or continuous mode.

    Runs on the calling thread. ``stop`` may be called from a signal handler
    or another thread; it only sets the cancellation event.
    """

    def __init__(
        self,
        sampler: Sampler,
        ranker: ProcessRanker,
        dispatcher: AlertDispatcher,
        renderer: ReportRenderer,
        host: HostInspector,
        thresholds: ThresholdConfig,
        alert_on_swap: bool = False,
        activity_log: LogSink | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            sampler: Produces one Snapshot per cycle.
            ranker: Top-N process views for the report.
            dispatcher: Delivers alerts to every sink.
            renderer: Draws the report.
            host: Collects auxiliary host facts for the report.
            thresholds: Alert limits.
            alert_on_swap: Dispatch swap breaches as warnings as well.
            activity_log: Receives start/stop lines in continuous mode.
            stop_event: Cancellation token; a fresh one is created if omitted.
        """
        self._sampler = sampler
        self._ranker = ranker
        self._dispatcher = dispatcher
        self._renderer = renderer
        self._host = host
        self._thresholds = thresholds
        self._alert_on_swap = alert_on_swap
        self._activity_log = activity_log
        self._stop_event = stop_event or threading.Event()
        self._state = MonitorState.IDLE
        self._cycles = 0

    @property
    def state(self) -> MonitorState:
        """Get the current state."""
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request the loop to end at its next sleep."""
        self._stop_event.set()

    def run_cycle(self, render: bool = True) -> CycleResult:
        """Sample once, dispatch alerts and, if ``render``, draw the report."""
        self._state = MonitorState.SAMPLING
        if render:
            self._ranker.prime()
        snapshot = self._sampler.sample()

        self._state = MonitorState.EVALUATING
        alerts = evaluate(snapshot, self._thresholds, include_swap=self._alert_on_swap)
        self._dispatcher.dispatch_all(alerts)

        result = CycleResult(snapshot=snapshot, alerts=alerts)
        if render:
            self._state = MonitorState.RENDERING
            result.rankings = self._ranker.views(*REPORT_VIEWS)
            report = Report(
                snapshot=snapshot,
                thresholds=self._thresholds,
                rankings=result.rankings,
                host=self._host.collect(),
            )
            self._renderer.render(report)

        self._cycles += 1
        self._state = MonitorState.IDLE
        log.debug(
            "cycle_complete",
            cycle=self._cycles,
            alerts=len(alerts),
            unavailable=sorted(snapshot.unavailable),
        )
        return result

    def run_forever(self, interval: float) -> int:
        """
        Repeat rendered cycles every ``interval`` seconds until stopped.

        Returns:
            Number of cycles completed.
        """
        self._renderer.print(
            f"Continuous monitoring every {interval:g} seconds. Press Ctrl+C to stop."
        )
        if self._activity_log is not None:
            self._activity_log.info(f"Continuous monitoring started (interval {interval:g}s)")

        completed = 0
        while not self._stop_event.is_set():
            self._renderer.clear()
            self.run_cycle(render=True)
            completed += 1

            self._state = MonitorState.SLEEPING
            # Wait for the interval or until stop is requested
            if self._stop_event.wait(timeout=interval):
                break

        self._state = MonitorState.STOPPED
        self._renderer.print("\n[yellow]Stopping monitoring...[/yellow]")
        if self._activity_log is not None:
            self._activity_log.info(f"Continuous monitoring stopped after {completed} cycles")
        return completed

    def run(self, mode: RunMode, interval: float = 60) -> None:
        """Run the given mode to completion."""
        if mode is RunMode.CONTINUOUS:
            self.run_forever(interval)
            return
        self.run_cycle(render=mode is RunMode.SNAPSHOT)
        self._state = MonitorState.STOPPED
