"""Console report for sysmon, rendered with rich."""

from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from sysmon.host import HostFacts
from sysmon.models import Heat, ProcessEntry, Snapshot, SortKey, ThresholdConfig

BAR_WIDTH = 20

HEAT_STYLES = {
    Heat.CRITICAL: "bold red",
    Heat.ELEVATED: "bold yellow",
    Heat.NORMAL: "green",
}

SORT_TITLES = {
    SortKey.CPU: ("CPU", "%CPU"),
    SortKey.MEM: ("RAM", "%MEM"),
    SortKey.RSS: ("resident memory", "RSS"),
}


@dataclass(slots=True, frozen=True)
class Report:
    """Everything one rendered cycle shows."""

    snapshot: Snapshot
    thresholds: ThresholdConfig
    rankings: dict[SortKey, list[ProcessEntry]]
    host: HostFacts


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_uptime(uptime: float) -> str:
    """Format seconds of uptime as ``[N days, ]HH:MM:SS``."""
    days = int(uptime // 86400)
    hours = int((uptime % 86400) // 3600)
    minutes = int((uptime % 3600) // 60)
    seconds = int(uptime % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def usage_bar(percent: int, color: str) -> str:
    """Fixed-width bar, one cell per 5%."""
    bar_len = min(int(percent / 5), BAR_WIDTH)
    # Escaped bracket keeps rich from reading the bar as markup
    return f"\\[[{color}]{'█' * bar_len}[/{color}][dim]{'░' * (BAR_WIDTH - bar_len)}[/dim]]"


def usage_line(label: str, percent: int, limit: int, flag: str, over_color: str = "red") -> str:
    """One resource line; values above ``limit`` are highlighted with ``flag``."""
    if percent > limit:
        return (
            f"[{over_color}]{label:<5}[/{over_color}] {usage_bar(percent, over_color)} "
            f"{percent:3d}% [{over_color}]\\[{flag}][/{over_color}]"
        )
    return f"[green]{label:<5}[/green] {usage_bar(percent, 'green')} {percent:3d}%"


def process_table(key: SortKey, entries: list[ProcessEntry]) -> Table:
    """Top-N table for one sort key."""
    title, column = SORT_TITLES[key]
    table = Table(title=f"Top {len(entries)} processes by {title}", title_style="bold yellow")
    table.add_column("USER", width=10, no_wrap=True)
    table.add_column("PID", justify="right")
    table.add_column(column, justify="right")
    table.add_column("VSZ (MB)", justify="right")
    table.add_column("RSS (MB)", justify="right")
    table.add_column("COMMAND", no_wrap=True)

    for entry in entries:
        if key is SortKey.MEM:
            value = f"{entry.mem_pct:.1f}"
        elif key is SortKey.RSS:
            value = str(entry.rss_mb)
        else:
            value = f"{entry.cpu_pct:.1f}"
        table.add_row(
            escape(entry.user[:10]),
            str(entry.pid),
            f"[{HEAT_STYLES[entry.heat]}]{value}[/]",
            str(entry.vsz_mb),
            str(entry.rss_mb),
            escape(entry.command),
        )
    return table


class ReportRenderer:
    """Writes reports to a rich Console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def clear(self) -> None:
        """Clear the previous report; a no-op when not writing to a terminal."""
        if self.console.is_terminal:
            self.console.clear()

    def print(self, message: str) -> None:
        self.console.print(message)

    def render(self, report: Report) -> None:
        console = self.console
        snapshot = report.snapshot
        limits = report.thresholds
        host = report.host

        console.print(Rule("[bold blue]SYSTEM MONITORING[/bold blue]", style="blue"))
        console.print(f"[green]System:[/green] {escape(host.hostname)} ({escape(host.system)})")
        console.print(f"[green]Time:[/green] {snapshot.timestamp:%Y-%m-%d %H:%M:%S}")
        uptime = format_uptime(host.uptime_seconds) if host.uptime_seconds is not None else "N/A"
        console.print(f"[green]Uptime:[/green] {uptime}")
        if host.load_avg is not None:
            load = host.load_avg
            console.print(f"[green]Load average:[/green] {load[0]:.2f} {load[1]:.2f} {load[2]:.2f}")
        console.print()

        console.print("[bold yellow]=== Resource usage ===[/bold yellow]")
        console.print(usage_line("CPU", snapshot.cpu_pct, limits.cpu_limit, "HIGH LOAD"))
        console.print(usage_line("RAM", snapshot.ram_pct, limits.ram_limit, "HIGH USAGE"))
        console.print(usage_line("Disk", snapshot.disk_pct, limits.disk_limit, "LOW SPACE"))
        console.print(usage_line("Swap", snapshot.swap_pct, limits.swap_warn_limit, "ACTIVE", "yellow"))
        console.print(f"[green]Temperature:[/green] {snapshot.temperature_label}")
        if snapshot.unavailable:
            console.print(f"[dim]Unavailable: {', '.join(sorted(snapshot.unavailable))}[/dim]")
        console.print()

        for key, entries in report.rankings.items():
            console.print(process_table(key, entries))
            console.print()

        self.render_extras(host)

    def render_extras(self, host: HostFacts) -> None:
        console = self.console
        console.print(Rule("[bold blue]Additional information[/bold blue]", style="blue"))
        count = host.process_count if host.process_count is not None else "N/A"
        console.print(f"[green]Active processes:[/green] {count}")
        if host.traffic is not None:
            traffic = host.traffic
            console.print(f"[green]Traffic ({escape(traffic.interface)}):[/green]")
            console.print(
                f"  In: {format_bytes(traffic.bytes_recv)}   Out: {format_bytes(traffic.bytes_sent)}"
            )
        if host.log_errors:
            console.print(
                f"[red]Errors in system log:[/red] {host.log_errors} (see the last lines of the log)"
            )
