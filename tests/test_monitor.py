"""Tests for the SystemMonitor loop controller."""

import io
import threading
from datetime import datetime

from rich.console import Console

from sysmon.alerts import AlertDispatcher, LogSink, NotificationSink
from sysmon.host import HostFacts
from sysmon.models import Metric, ProcessEntry, Snapshot, SortKey, ThresholdConfig
from sysmon.monitor import CycleResult, MonitorState, RunMode, SystemMonitor
from sysmon.report import ReportRenderer


def make_snapshot(cpu=10, ram=20, disk=30, swap=0) -> Snapshot:
    return Snapshot(
        cpu_pct=cpu,
        ram_pct=ram,
        swap_pct=swap,
        disk_pct=disk,
        temperature=50,
        timestamp=datetime(2026, 1, 1, 0, 0, 0),
    )


class FakeSampler:
    def __init__(self, snapshot=None, on_sample=None):
        self.snapshot = snapshot or make_snapshot()
        self.on_sample = on_sample
        self.calls = 0

    def sample(self):
        self.calls += 1
        if self.on_sample is not None:
            self.on_sample(self.calls)
        return self.snapshot


class FakeRanker:
    def __init__(self):
        self.primed = 0
        self.views_requested = []

    def prime(self):
        self.primed += 1

    def views(self, *keys):
        self.views_requested.append(keys)
        entry = ProcessEntry("root", 1, 0.0, 0.1, 10, 1, "/sbin/init")
        return {key: [entry] for key in keys}


class FakeHost:
    def collect(self):
        return HostFacts("box", "Linux", 10.0, None, 1, None, None)


class RecordingSink(NotificationSink):
    name = "recording"

    def __init__(self):
        self.received = []

    def emit(self, alert):
        self.received.append(alert)


class RecordingRenderer(ReportRenderer):
    def __init__(self):
        super().__init__(Console(file=io.StringIO(), width=120, color_system=None))
        self.reports = []
        self.clears = 0

    def render(self, report):
        self.reports.append(report)

    def clear(self):
        self.clears += 1

    @property
    def text(self):
        return self.console.file.getvalue()


def make_monitor(sampler=None, alert_on_swap=False, activity_log=None, stop_event=None):
    sink = RecordingSink()
    renderer = RecordingRenderer()
    ranker = FakeRanker()
    monitor = SystemMonitor(
        sampler=sampler or FakeSampler(),
        ranker=ranker,
        dispatcher=AlertDispatcher([sink]),
        renderer=renderer,
        host=FakeHost(),
        thresholds=ThresholdConfig(),
        alert_on_swap=alert_on_swap,
        activity_log=activity_log,
        stop_event=stop_event,
    )
    return monitor, sink, renderer, ranker


class TestRunCycle:
    """Tests for a single sampling cycle."""

    def test_monitor_creation(self):
        monitor, _, _, _ = make_monitor()

        assert monitor.state is MonitorState.IDLE
        assert monitor.cycles == 0
        assert not monitor.stop_requested

    def test_rendered_cycle(self):
        sampler = FakeSampler(make_snapshot(cpu=95, ram=90))
        monitor, sink, renderer, ranker = make_monitor(sampler)

        result = monitor.run_cycle(render=True)

        assert isinstance(result, CycleResult)
        assert [alert.metric for alert in result.alerts] == [Metric.CPU, Metric.RAM]
        assert sink.received == result.alerts
        assert ranker.primed == 1
        assert ranker.views_requested == [(SortKey.CPU, SortKey.MEM)]
        assert len(renderer.reports) == 1
        assert renderer.reports[0].snapshot is sampler.snapshot
        assert set(result.rankings) == {SortKey.CPU, SortKey.MEM}
        assert monitor.state is MonitorState.IDLE
        assert monitor.cycles == 1

    def test_unrendered_cycle_skips_report(self):
        sampler = FakeSampler(make_snapshot(disk=99))
        monitor, sink, renderer, ranker = make_monitor(sampler)

        result = monitor.run_cycle(render=False)

        assert [alert.metric for alert in sink.received] == [Metric.DISK]
        assert renderer.reports == []
        assert ranker.primed == 0
        assert ranker.views_requested == []
        assert result.rankings == {}

    def test_swap_alerts_follow_setting(self):
        snapshot = make_snapshot(swap=80)

        quiet, quiet_sink, _, _ = make_monitor(FakeSampler(snapshot))
        quiet.run_cycle(render=False)
        loud, loud_sink, _, _ = make_monitor(FakeSampler(snapshot), alert_on_swap=True)
        loud.run_cycle(render=False)

        assert quiet_sink.received == []
        assert [alert.metric for alert in loud_sink.received] == [Metric.SWAP]

    def test_state_during_sampling(self):
        states = []
        monitor = None

        def record(_):
            states.append(monitor.state)

        monitor, _, _, _ = make_monitor(FakeSampler(on_sample=record))
        monitor.run_cycle()

        assert states == [MonitorState.SAMPLING]


class TestRunModes:
    """Tests for SystemMonitor.run."""

    def test_snapshot_mode(self):
        monitor, _, renderer, _ = make_monitor()

        monitor.run(RunMode.SNAPSHOT)

        assert len(renderer.reports) == 1
        assert renderer.clears == 0
        assert monitor.state is MonitorState.STOPPED

    def test_log_only_mode(self):
        sampler = FakeSampler(make_snapshot(cpu=99))
        monitor, sink, renderer, _ = make_monitor(sampler)

        monitor.run(RunMode.LOG_ONLY)

        assert sampler.calls == 1
        assert len(sink.received) == 1
        assert renderer.reports == []
        assert monitor.state is MonitorState.STOPPED

    def test_continuous_stops_between_cycles(self):
        """A stop request during a sample lets that cycle finish, then ends the loop."""
        monitor = None

        def stop_on_third(call):
            if call == 3:
                monitor.stop()

        sampler = FakeSampler(on_sample=stop_on_third)
        monitor, _, renderer, _ = make_monitor(sampler)

        completed = monitor.run_forever(interval=0.01)

        assert completed == 3
        assert sampler.calls == 3
        assert len(renderer.reports) == 3
        assert renderer.clears == 3
        assert monitor.state is MonitorState.STOPPED
        assert "Stopping monitoring..." in renderer.text

    def test_continuous_stop_before_start(self):
        event = threading.Event()
        event.set()
        sampler = FakeSampler()
        monitor, _, _, _ = make_monitor(sampler, stop_event=event)

        assert monitor.run_forever(interval=60) == 0
        assert sampler.calls == 0

    def test_stop_interrupts_sleep(self):
        """A long interval does not delay cancellation."""
        monitor, _, _, _ = make_monitor()
        timer = threading.Timer(0.2, monitor.stop)
        timer.start()

        try:
            completed = monitor.run_forever(interval=30)
        finally:
            timer.cancel()

        assert completed == 1
        assert monitor.state is MonitorState.STOPPED

    def test_continuous_writes_activity_log(self, tmp_path):
        path = tmp_path / "monitor.log"
        monitor = None

        def stop_now(call):
            monitor.stop()

        monitor, _, _, _ = make_monitor(FakeSampler(on_sample=stop_now), activity_log=LogSink(path))

        monitor.run(RunMode.CONTINUOUS, interval=5)

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("Continuous monitoring started (interval 5s)")
        assert lines[1].endswith("Continuous monitoring stopped after 1 cycles")
