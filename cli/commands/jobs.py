"""Job Commands - Enqueue and inspect background jobs"""

import json

import typer
from rich.console import Console

from ..client.base import ImageBotError
from ..client.endpoints import ImageBotClient
from ..utils.formatting import (
    create_job_panel,
    create_stats_table,
    print_error,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Background job commands")


@app.command("enqueue")
def enqueue(
    ctx: typer.Context,
    job_type: str = typer.Argument(..., help="Job type, e.g. generate-image"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
):
    """📥 Enqueue a job"""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1) from None

    try:
        with ImageBotClient(ctx.obj["api_url"]) as client:
            result = client.enqueue_job(job_type, parsed)
    except ImageBotError as e:
        print_error(f"Failed to enqueue job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job {result['job_id']} enqueued ({job_type})")


@app.command("show")
def show(
    ctx: typer.Context,
    job_id: int = typer.Argument(..., help="Job ID"),
):
    """🔍 Show a job's status, result and error"""
    try:
        with ImageBotClient(ctx.obj["api_url"]) as client:
            job = client.get_job(job_id)
    except ImageBotError as e:
        print_error(f"Failed to get job {job_id}: {e}")
        raise typer.Exit(1) from None

    console.print(create_job_panel(job))


@app.command("stats")
def stats(ctx: typer.Context):
    """📊 Show queue depth by status"""
    try:
        with ImageBotClient(ctx.obj["api_url"]) as client:
            data = client.get_job_stats()
    except ImageBotError as e:
        print_error(f"Failed to get job stats: {e}")
        raise typer.Exit(1) from None

    console.print(create_stats_table(data))
