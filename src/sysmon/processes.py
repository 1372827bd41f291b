"""Process listing and top-N ranking for sysmon."""

from collections.abc import Iterable
from dataclasses import dataclass

import psutil
import structlog

from sysmon.models import Heat, ProcessEntry, SortKey, truncate_command

log = structlog.get_logger()

TOP_N = 5
KB = 1024

# Attributes to fetch in oneshot
_ATTRS = ["pid", "username", "cpu_percent", "memory_percent", "memory_info", "cmdline"]


@dataclass(slots=True, frozen=True)
class ProcessRow:
    """One line of the OS process table, memory sizes in kilobytes."""

    user: str
    pid: int
    cpu_percent: float
    memory_percent: float
    vsz_kb: int
    rss_kb: int
    command: str


class ProcessTable:
    """
    Reads the process table through psutil.

    Handles AccessDenied and ZombieProcess errors gracefully. psutil reports a
    process's CPU share relative to its previous measurement, so ``prime`` is
    called before the sampling window and ``rows`` after it.
    """

    def prime(self) -> None:
        """Start per-process CPU accounting for every live process."""
        for proc in psutil.process_iter():
            try:
                proc.cpu_percent(interval=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

    def rows(self) -> list[ProcessRow]:
        """Collect one row per readable process."""
        rows: list[ProcessRow] = []

        for proc in psutil.process_iter(attrs=_ATTRS):
            try:
                with proc.oneshot():
                    info = proc.info

                    cmdline = info.get("cmdline") or []
                    mem_info = info.get("memory_info")

                    rows.append(
                        ProcessRow(
                            user=info.get("username") or "?",
                            pid=info.get("pid", 0),
                            cpu_percent=info.get("cpu_percent") or 0.0,
                            memory_percent=info.get("memory_percent") or 0.0,
                            vsz_kb=mem_info.vms // KB if mem_info else 0,
                            rss_kb=mem_info.rss // KB if mem_info else 0,
                            command=" ".join(cmdline),
                        )
                    )

            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Process died mid-poll or is not ours to read
                continue

        return rows


def sort_value(row: ProcessRow, key: SortKey) -> float:
    """Value a row is ranked by."""
    if key is SortKey.MEM:
        return row.memory_percent
    if key is SortKey.RSS:
        return row.rss_kb
    return row.cpu_percent


def classify(value: float, key: SortKey) -> Heat:
    """Colour class of a ranked row; presentation only."""
    if key is SortKey.CPU:
        if value > 50:
            return Heat.CRITICAL
        if value > 20:
            return Heat.ELEVATED
    elif key is SortKey.MEM and value > 20:
        return Heat.ELEVATED
    return Heat.NORMAL


def to_entry(row: ProcessRow, key: SortKey) -> ProcessEntry:
    return ProcessEntry(
        user=row.user,
        pid=row.pid,
        cpu_pct=row.cpu_percent,
        mem_pct=row.memory_percent,
        vsz_mb=row.vsz_kb // KB,
        rss_mb=row.rss_kb // KB,
        command=truncate_command(row.command),
        heat=classify(sort_value(row, key), key),
    )


def rank_processes(
    rows: Iterable[ProcessRow],
    key: SortKey = SortKey.CPU,
    limit: int = TOP_N,
) -> list[ProcessEntry]:
    """
    Return the ``limit`` heaviest processes by ``key``, heaviest first.

    Ties are broken by ascending pid so the ranking is deterministic. Fewer
    rows than ``limit`` simply yield a shorter list.
    """
    ordered = sorted(rows, key=lambda row: (-sort_value(row, key), row.pid))
    return [to_entry(row, key) for row in ordered[:limit]]


class ProcessRanker:
    """Top-N views over a ProcessTable."""

    def __init__(self, table: ProcessTable | None = None, limit: int = TOP_N) -> None:
        self.table = table or ProcessTable()
        self.limit = limit

    def prime(self) -> None:
        self.table.prime()

    def top(self, key: SortKey) -> list[ProcessEntry]:
        """Read the process table fresh and rank it."""
        return rank_processes(self.table.rows(), key, self.limit)

    def views(self, *keys: SortKey) -> dict[SortKey, list[ProcessEntry]]:
        """Rank one read of the process table by several keys."""
        rows = self.table.rows()
        return {key: rank_processes(rows, key, self.limit) for key in keys}
