"""Tests for auxiliary host facts."""

from collections import namedtuple

import psutil

from sysmon.host import HostFacts, HostInspector, Traffic, count_log_errors, default_route_interface

NetIO = namedtuple("NetIO", ["bytes_sent", "bytes_recv"])

ROUTE_TABLE = (
    "Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\t\tMTU\tWindow\tIRTT\n"
    "eth0\t0000A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\t0\t0\t0\n"
    "wlan0\t00000000\t0100A8C0\t0003\t0\t0\t600\t00000000\t0\t0\t0\n"
)


class TestDefaultRouteInterface:
    def test_finds_default_route(self, tmp_path):
        table = tmp_path / "route"
        table.write_text(ROUTE_TABLE)

        assert default_route_interface(table) == "wlan0"

    def test_no_default_route(self, tmp_path):
        table = tmp_path / "route"
        table.write_text(ROUTE_TABLE.splitlines()[0] + "\n")

        assert default_route_interface(table) is None

    def test_missing_table(self, tmp_path):
        assert default_route_interface(tmp_path / "absent") is None


class TestCountLogErrors:
    def test_counts_keywords_case_insensitively(self, tmp_path):
        log = tmp_path / "syslog"
        log.write_text(
            "kernel: all good\n"
            "systemd: Failed to start unit\n"
            "app: WARNING disk slow\n"
            "app: Critical temperature\n"
            "app: error reading config\n"
        )

        assert count_log_errors(log) == 4

    def test_only_tail_is_scanned(self, tmp_path):
        log = tmp_path / "syslog"
        log.write_text("error early\n" * 10 + "fine\n" * 30)

        assert count_log_errors(log, tail=30) == 0
        assert count_log_errors(log, tail=35) == 5

    def test_unreadable_log(self, tmp_path):
        assert count_log_errors(tmp_path / "absent") is None


class TestHostInspector:
    def test_collect(self, tmp_path, monkeypatch):
        table = tmp_path / "route"
        table.write_text(ROUTE_TABLE)
        log = tmp_path / "syslog"
        log.write_text("ok\nfail\n")
        monkeypatch.setattr(
            psutil,
            "net_io_counters",
            lambda pernic=False: {"wlan0": NetIO(bytes_sent=2048, bytes_recv=4096)},
        )

        facts = HostInspector(log, route_table=table).collect()

        assert isinstance(facts, HostFacts)
        assert facts.traffic == Traffic("wlan0", bytes_recv=4096, bytes_sent=2048)
        assert facts.log_errors == 1
        assert facts.process_count is not None and facts.process_count > 0
        assert facts.hostname

    def test_traffic_for_unknown_interface(self, tmp_path, monkeypatch):
        table = tmp_path / "route"
        table.write_text(ROUTE_TABLE)
        monkeypatch.setattr(psutil, "net_io_counters", lambda pernic=False: {})

        assert HostInspector(tmp_path / "syslog", route_table=table).traffic() is None
