"""
The `tubezip` command: run the server, resolve URLs, check the installation.
"""

import asyncio
import logging
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tubezip import __version__
from tubezip.api.client import YouTubeClient
from tubezip.exceptions import TubezipError
from tubezip.models.config import ServerConfig
from tubezip.storage.config_manager import ConfigManager, get_config_dir
from tubezip.utils.structured_logger import create_structured_logger
from tubezip.web.server import run_server

from .formatters import format_error_with_suggestions, print_config, print_items_table

console = Console()

# Libraries stay at WARNING, the application logs at INFO unless -v/-vv
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, show_path=False, markup=True)],
)
log = logging.getLogger("tubezip")
log.setLevel(logging.INFO)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

app = typer.Typer(
    name="tubezip",
    help="Serve YouTube downloads as single files or streamed ZIP archives.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_FILE = get_config_dir() / "config.ini"


def _load_config(cli_options: dict | None = None) -> ServerConfig:
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


def _set_verbosity(verbose: int) -> None:
    if verbose >= 2:
        log.setLevel(logging.DEBUG)
    if verbose >= 1:
        # Request lines from aiohttp's access logger
        logging.getLogger("aiohttp.access").setLevel(logging.INFO)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="-v logs requests, -vv logs debug output."
    ),
    version: bool = typer.Option(
        False, "--version", is_eager=True, help="Print the version and exit."
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Print the effective configuration and exit."
    ),
):
    if version:
        console.print(f"tubezip [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    _set_verbosity(verbose)

    if show_config:
        try:
            print_config(_load_config())
        except TubezipError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Interface to bind to."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on."),
    ytdlp: str | None = typer.Option(None, "--yt-dlp", help="yt-dlp executable."),
    log_dir: Path | None = typer.Option(  # noqa: B008
        None, "--log-dir", help="Write batch events as JSON lines into this directory."
    ),
):
    """Run the HTTP server until interrupted."""
    config = _load_config(
        {
            "host": host,
            "port": port,
            "ytdlp_binary": ytdlp,
            "log_dir": str(log_dir) if log_dir else None,
        }
    )
    events_dir = Path(config.log_dir) if config.log_dir else None
    events, batch_logger = create_structured_logger(
        log_dir=events_dir, enable_json=events_dir is not None
    )
    with events:
        run_server(config, batch_logger=batch_logger)


@app.command()
def resolve(url: str = typer.Argument(..., help="A YouTube video or playlist URL.")):
    """Show the items a URL resolves to."""
    config = _load_config()

    async def _resolve():
        client = YouTubeClient(config.yt_api_key)
        try:
            return await client.resolve(url)
        finally:
            await client.close()

    print_items_table(asyncio.run(_resolve()))


@app.command()
def diagnose():
    """Check the configuration, yt-dlp, ffmpeg and the API key."""
    try:
        config = _load_config()
    except TubezipError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    ytdlp = shutil.which(config.ytdlp_binary)
    ffmpeg = shutil.which("ffmpeg")
    checks = [
        (
            "config file",
            True,
            str(CONFIG_FILE) if CONFIG_FILE.is_file() else "none, using defaults",
        ),
        ("yt-dlp", bool(ytdlp), ytdlp or f"'{config.ytdlp_binary}' not on PATH"),
        ("ffmpeg", bool(ffmpeg), ffmpeg or "not found, video merging will fail"),
        (
            "YT_API_KEY",
            config.has_api_key,
            "set" if config.has_api_key else "missing, /api/parse will fail",
        ),
    ]

    table = Table(show_header=False, box=None, padding=(0, 2))
    for name, ok, detail in checks:
        mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
        table.add_row(mark, f"[bold]{name}[/bold]", f"[dim]{detail}[/dim]")
    console.print(table)

    if not all(ok for _, ok, _ in checks):
        console.print("[red]Some checks failed.[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Everything looks good.[/green]")
