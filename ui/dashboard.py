"""
Rich-based terminal dashboard for network check results.

All formatting helpers live in ``netcheck.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from netcheck.config import TestConfig
from netcheck.orchestrator import RunPhase, TestRunResult
from netcheck.stats import format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Signal bars
# ---------------------------------------------------------------------------

_BARS = "▂▄▆█"
_TONE_COLORS = {"Excellent": "green", "Good": "green", "Fair": "yellow", "Poor": "red"}


def quality_color(label: str) -> str:
    return _TONE_COLORS.get(label, "dim")


def render_signal_bars(filled: int, color: str = "green") -> str:
    """Four ascending bars, the first *filled* ones coloured."""
    filled = max(0, min(filled, len(_BARS)))
    lit = _BARS[:filled]
    unlit = _BARS[filled:]
    out = f"[{color}]{lit}[/{color}]" if lit else ""
    if unlit:
        out += f"[dim]{unlit}[/dim]"
    return out


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Wi-Fi Strength & Speed[/bold cyan]\n"
            "[dim]Quick signal quality, ping, and throughput estimate[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_settings(config: TestConfig) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Download:", config.target_download_url or "[yellow]simulated[/yellow]")
    table.add_row("Upload:", config.target_upload_url or "[yellow]simulated[/yellow]")
    table.add_row(
        "Streams:",
        f"{config.parallel_streams} down / {config.upload_streams} up, "
        f"{config.passes} pass(es) of {config.duration_seconds:.0f} s",
    )
    table.add_row(
        "Sampling:",
        f"{config.bucket_width_ms:.0f} ms buckets, {config.warmup_seconds:.1f} s warm-up, "
        f"{config.percentile_mode.value}",
    )
    console.print(Panel(table, title="[bold]Settings[/bold]", border_style="blue"))


def hint_line(result: TestRunResult) -> Optional[str]:
    """Connection hint summary; None when the run had no hint source."""
    if result.downlink_mbps is None and result.rtt_ms is None:
        return None
    return (
        f"Hint: {result.effective_type or 'unknown'}, {result.downlink_mbps or 0:.1f} Mbps, "
        f"{result.rtt_ms or 0:.0f} ms rtt"
    )


def print_final_results(result: TestRunResult) -> None:
    color = quality_color(result.quality)

    def _speed(mbps: int, measured: bool, style: str) -> str:
        text = f"[bold {style}]{format_speed(mbps)}[/bold {style}]"
        return text if measured else f"{text} [yellow](simulated)[/yellow]"

    lines = []
    if result.server_host:
        lines.append(f"[bold cyan]Server:[/bold cyan] {result.server_host}")
    if result.provider or result.ip:
        lines.append(f"[bold cyan]Provider:[/bold cyan] {result.provider or '?'} ({result.ip or '?'})")
    if lines:
        lines.append("")
    lines += [
        f"[bold white]   Quality:[/bold white]  [bold {color}]{result.quality}[/bold {color}] "
        f"({result.quality_score}%)  {render_signal_bars(result.signal_bars, color)}",
        f"[bold white]   Ping:[/bold white]  [bold yellow]{format_latency(result.ping_ms)}[/bold yellow]",
        f"[bold white]   Download:[/bold white]  {_speed(result.download_mbps, result.download_measured, 'green')}",
        f"[bold white]   Upload:[/bold white]  {_speed(result.upload_mbps, result.upload_measured, 'blue')}",
    ]
    hint = hint_line(result)
    if hint:
        lines.append(f"[dim]   {hint}[/dim]")

    console.print()
    console.print(
        Panel.fit(
            "\n".join(lines),
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

_PHASE_TEXT = {
    RunPhase.LATENCY: "Measuring latency",
    RunPhase.DOWNLOAD: "Testing download",
    RunPhase.UPLOAD: "Testing upload",
    RunPhase.FINALIZE: "Finalizing",
}
_NEXT_PHASE = {
    RunPhase.LATENCY: RunPhase.DOWNLOAD,
    RunPhase.DOWNLOAD: RunPhase.UPLOAD,
    RunPhase.UPLOAD: RunPhase.FINALIZE,
}


class ProgressDisplay:
    """Manages a ``rich`` progress bar that advances once per finished phase."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[metric]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(
            _PHASE_TEXT[RunPhase.LATENCY], total=100, metric=""
        )

    def phase_done(self, phase: RunPhase, percent: int) -> None:
        if self._task_id is None:
            return
        nxt: Optional[RunPhase] = _NEXT_PHASE.get(phase)
        description = _PHASE_TEXT[nxt] if nxt else "Done"
        self.progress.update(self._task_id, completed=percent, description=description)

    def metric(self, name: str, value: int) -> None:
        if self._task_id is None:
            return
        text = format_latency(value) if name == "ping" else f"{name} {format_speed(value)}"
        self.progress.update(self._task_id, metric=text)

    def stop(self) -> None:
        self.progress.stop()
