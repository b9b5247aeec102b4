"""
Rendering functions for housekeep output.

Each renderer consumes one run's ProgressEvent stream and returns the
WorkResults it saw, so the calling command can decide its exit code.

- plain: progress and per-repository log lines on stderr
- json: one JSON object per event on stdout
- pretty: rich progress bar followed by a summary table
"""

import sys
from typing import Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .domain.event import DONE, INIT, ITEM_RESULT, UPDATE, ProgressEvent
from .domain.work import WorkResult


def format_duration(seconds: float) -> str:
    """Format seconds as '42s' or '3m 05s'."""
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds:02d}s"


def render_plain(events: Iterable[ProgressEvent], stream=None) -> List[WorkResult]:
    """Plain text output for a progress stream."""
    out = stream or sys.stderr
    results: List[WorkResult] = []

    for event in events:
        if event.type == INIT:
            print(f"Processing {event.data['total']} repositories...", file=out)
        elif event.type == ITEM_RESULT:
            result = event.result
            results.append(result)
            mark = "✓" if result.success else "✗"
            print(f"{mark} {result.repo_name} ({format_duration(result.duration)})", file=out)
            for line in result.lines:
                print(f"    {line}", file=out)
            if result.diagnostics:
                print("    Build warnings:", file=out)
                for line in result.diagnostics.splitlines():
                    print(f"      {line}", file=out)
        elif event.type == UPDATE:
            data = event.data
            print(
                f"[{data['completed']}/{data['total']}] "
                f"remaining ~{format_duration(data['eta_seconds'])}",
                file=out
            )
        elif event.type == DONE:
            failed = sum(1 for r in results if not r.success)
            print(
                f"\nComplete in {format_duration(event.data['elapsed_seconds'])}:",
                file=out
            )
            print(f"  Successful: {len(results) - failed}", file=out)
            if failed:
                print(f"  Failed: {failed}", file=out)

    return results


def render_json(events: Iterable[ProgressEvent], stream=None) -> List[WorkResult]:
    """JSONL output for a progress stream."""
    out = stream or sys.stdout
    results: List[WorkResult] = []
    for event in events:
        if event.type == ITEM_RESULT:
            results.append(event.result)
        print(event.to_jsonl(), file=out, flush=True)
    return results


def render_pretty(
    events: Iterable[ProgressEvent],
    title: str,
    console: Optional[Console] = None
) -> List[WorkResult]:
    """Rich formatted output for a progress stream."""
    console = console or Console()
    results: List[WorkResult] = []
    elapsed = 0.0

    console.print(f"\n[bold]{title}[/bold]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TextColumn("[dim]{task.fields[eta]}[/dim]"),
        console=console,
    ) as progress:
        task = progress.add_task("Starting...", total=None, eta="")

        for event in events:
            if event.type == INIT:
                progress.update(task, total=event.data['total'])
            elif event.type == ITEM_RESULT:
                results.append(event.result)
                progress.update(task, description=event.result.repo_name)
            elif event.type == UPDATE:
                progress.update(
                    task,
                    completed=event.data['completed'],
                    eta=f"~{format_duration(event.data['eta_seconds'])} left",
                )
            elif event.type == DONE:
                elapsed = event.data['elapsed_seconds']
                progress.update(task, description="Done", eta="")

    if not results:
        console.print("[yellow]No repositories processed.[/yellow]")
        return results

    table = Table(title=f"{title} Summary", box=box.ROUNDED, show_header=True)
    table.add_column("Repository", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Warnings", justify="right")

    for result in sorted(results, key=lambda r: r.repo_name):
        status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
        warnings = len(result.diagnostics.splitlines()) if result.diagnostics else 0
        table.add_row(
            result.repo_name,
            status,
            format_duration(result.duration),
            str(warnings) if warnings else "",
        )

    console.print(table)
    console.print(f"[bold]Elapsed:[/bold] {format_duration(elapsed)}")

    failures = [r for r in results if not r.success]
    if failures:
        console.print(f"\n[red]Failed ({len(failures)}):[/red]")
        for result in failures:
            console.print(f"  [red]•[/red] {result.repo_name}")
            for line in result.lines[-3:]:
                console.print(f"      {line}", markup=False, highlight=False)

    return results
