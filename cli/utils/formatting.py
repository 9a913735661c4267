"""Rich Formatting Utilities for CLI Output"""

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "running": "blue",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create a panel describing a single job"""
    status = job.get("status", "unknown")
    style = STATUS_STYLES.get(status, "white")

    lines = [
        f"• Type: [cyan]{job.get('type', '')}[/cyan]",
        f"• Status: [{style}]{status}[/{style}]",
        f"• Created: {job.get('created_at') or '—'}",
        f"• Started: {job.get('started_at') or '—'}",
        f"• Finished: {job.get('completed_at') or '—'}",
        f"• Payload: [dim]{json.dumps(job.get('payload'))}[/dim]",
    ]
    if job.get("result") is not None:
        lines.append(f"• Result: [green]{json.dumps(job['result'])}[/green]")
    if job.get("error"):
        lines.append(f"• Error: [red]{job['error']}[/red]")

    return Panel("\n".join(lines), title=f"Job {job.get('id')}", border_style=style)


def create_stats_table(stats: dict[str, Any]) -> Table:
    """Create formatted table for queue statistics"""
    table = Table(title="Job Queue", box=box.ROUNDED)

    table.add_column("Status", justify="left", style="cyan")
    table.add_column("Jobs", justify="right")

    for status, count in stats.get("by_status", {}).items():
        style = STATUS_STYLES.get(status, "white")
        table.add_row(f"[{style}]{status}[/{style}]", str(count))

    table.add_section()
    table.add_row(
        "active slots", f"{stats.get('active_jobs', 0)}/{stats.get('concurrency', 0)}"
    )
    return table
