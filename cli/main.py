"""Image Bot CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .client.base import ImageBotError
from .client.endpoints import ImageBotClient
from .commands import jobs
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="imagebot",
    help="🤖 Image Bot - background job operator CLI",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")


@app.command()
def status(ctx: typer.Context):
    """📊 Check system status and connectivity"""
    base_url = ctx.obj["api_url"]
    print_info(f"Checking connection to: {base_url}")

    try:
        with ImageBotClient(base_url) as client:
            health = client.health_check()
    except ImageBotError as e:
        print_error(f"Failed to connect: {e}")
        console.print(Panel(
            f"🚫 [red]Connection Failed[/red]\n\n"
            f"Make sure the Image Bot API is running at:\n"
            f"[blue]{base_url}[/blue]\n\n"
            f"You can point the CLI elsewhere with:\n"
            f"[cyan]imagebot --api-url <url> status[/cyan]",
            title="Connection Error",
            border_style="red"
        ))
        raise typer.Exit(1) from None

    jobs_info = health.get("jobs") or {}
    console.print(Panel(
        f"🚀 [green]Connected Successfully![/green]\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Queue depth: [magenta]{jobs_info.get('queue_depth', 'n/a')}[/magenta]\n"
        f"• API URL: [blue]{base_url}[/blue]",
        title="System Status",
        border_style="green"
    ))


@app.command()
def version():
    """📎 Show CLI version information"""
    from . import __version__

    console.print(Panel(
        f"🤖 [bold cyan]Image Bot CLI[/bold cyan]\n\n"
        f"• Version: [green]{__version__}[/green]\n"
        f"• Type: [yellow]Command Line Interface[/yellow]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback()
def main(
    ctx: typer.Context,
    api_url: str = typer.Option(
        "http://localhost:8000",
        "--api-url",
        envvar="IMAGEBOT_API_URL",
        help="Image Bot API base URL",
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit", is_eager=True
    ),
):
    """
    🤖 Image Bot CLI

    Enqueue and inspect the background jobs that track model training,
    image generation and style checks.
    """
    if version:
        from . import __version__
        console.print(f"Image Bot CLI v{__version__}")
        raise typer.Exit()

    ctx.obj = {"api_url": api_url}


if __name__ == "__main__":
    app()
