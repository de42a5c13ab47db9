from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pbdecode.orchestrator import PipelineOutcome


def _format_bytes(value: Optional[int]) -> str:
    if not value:
        return "N/A"
    return f"{value / (1024 * 1024):.2f}"


def build_summary(outcome: PipelineOutcome, message_name: str = "") -> Table:
    """
    Render a pipeline outcome as a rich table.
    """
    title = "pbdecode run"
    if message_name:
        title = f"{title}\n[dim]{message_name}[/dim]"

    table = Table(title=title, box=box.ROUNDED, show_header=True)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    status = "[green]ok[/green]" if outcome.ok else f"[red]failed ({outcome.error.stage})[/red]"
    table.add_row("Status", status)
    table.add_row("State", outcome.state.value)
    table.add_row("Records read", f"{outcome.records_read:,}")
    table.add_row("Records written", f"[magenta]{outcome.records_written:,}[/magenta]")
    table.add_row("Duration (s)", f"{outcome.duration_seconds:.3f}")
    throughput = outcome.throughput_records_per_sec
    table.add_row("Throughput (records/s)", f"[bold green]{throughput:,.2f}[/bold green]")
    table.add_row("Peak Memory (MB)", _format_bytes(outcome.peak_rss_bytes))
    cpu = outcome.cpu_percent
    table.add_row("CPU %", f"{cpu:.1f}" if cpu is not None else "N/A")
    if outcome.error is not None:
        table.add_row("Error", f"[red]{escape(str(outcome.error))}[/red]")
    return table


def print_summary(
    outcome: PipelineOutcome, message_name: str = "", console: Optional[Console] = None
) -> None:
    """Print the run summary; defaults to stderr so stdout stays pure output."""
    console = console or Console(stderr=True)
    console.print(build_summary(outcome, message_name))


__all__ = ["build_summary", "print_summary"]
