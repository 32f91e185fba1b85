"""
Rich-based terminal dashboard for speed test results.

All formatting helpers live in ``client.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

import logging
from typing import List

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from client.download import ERROR, FINISHED, STOPPED, TransferSession
from client.stats import format_bytes, format_speed

console = Console()


def setup_logging(level: int = logging.WARNING) -> None:
    """Route all log records through ``rich`` on the shared console."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]speedstream[/bold cyan]\n"
            "[dim]Streaming download throughput test[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_server_banner(host: str, port: int, min_mb: int, max_mb: int, default_mb: int) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Listening:", f"http://{host}:{port}/")
    table.add_row("Sizes:", f"{min_mb}m - {max_mb}m")
    table.add_row("Page downloads:", f"{default_mb}m")
    console.print(Panel(table, title="[bold]Payload Server[/bold]", border_style="blue"))


_STATUS_STYLE = {
    FINISHED: ("Finished", "green"),
    STOPPED: ("Stopped", "yellow"),
    ERROR: ("Network error", "red"),
}


def print_session_result(session: TransferSession) -> None:
    """Print a summary table for a finished, stopped, or failed session."""
    label, color = _STATUS_STYLE.get(session.status, (session.status, "white"))

    table = Table(title="Download Results", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Status", f"[bold {color}]{label}[/bold {color}]")
    table.add_row("Speed", f"[bold {color}]{format_speed(session.display_mbps)}[/bold {color}]")
    table.add_row("Average", format_speed(session.average_mbps))
    table.add_row(
        "Data Transferred",
        f"{format_bytes(session.bytes_received)} / {format_bytes(session.total_bytes)}",
    )
    table.add_row("Duration", f"{session.duration_s:.1f} s")
    table.add_row("Progress", f"{session.progress:.0f}%")
    console.print(table)

    if session.error:
        console.print(f"[red]{session.error}[/red]")

    samples = session.samples.to_list()
    if samples:
        console.print(
            Panel(
                f"[{color}]{create_histogram(samples)}[/{color}]\n"
                f"[dim]Min: {min(samples):.1f} Mbps  Max: {max(samples):.1f} Mbps[/dim]",
                title="Recent Samples",
            )
        )


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar while a download runs."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self._last_speed = 0.0
        self._last_percent = 0.0

    def start(self, description: str) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, speed="")
        self._last_speed = 0.0
        self._last_percent = 0.0

    def update(self, percent: float, speed_mbps: float = 0) -> None:
        if self._task_id is None:
            return
        # Debounce: only update when values change noticeably
        if abs(percent - self._last_percent) < 1.0 and abs(speed_mbps - self._last_speed) < 1.0:
            return
        speed_str = format_speed(speed_mbps) if speed_mbps > 0 else "..."
        self.progress.update(self._task_id, completed=percent, speed=speed_str)
        self._last_percent = percent
        self._last_speed = speed_mbps

    def stop(self) -> None:
        self.progress.stop()
