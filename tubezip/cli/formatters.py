"""
Rich renderables for errors, configuration and resolved items.
"""

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tubezip.models.config import ServerConfig
from tubezip.models.item import ResolvedMedia

HINTS: dict[str, list[str]] = {
    "ConfigurationError": [
        "Check config.ini and the PORT / YT_API_KEY / YTDLP_PATH variables.",
        "`tubezip --show-config` prints what was loaded.",
    ],
    "ResolverError": [
        "Make sure YT_API_KEY is set and valid.",
        "Only youtube.com and youtu.be video or playlist URLs are supported.",
    ],
    "RetrievalError": [
        "Is yt-dlp installed? Set YTDLP_PATH if it is not on PATH.",
        "Video downloads also need ffmpeg.",
    ],
    "SetupError": [
        "The temporary directory may be full or read-only.",
        "Point TUBEZIP_TEMP_ROOT somewhere else.",
    ],
    "OSError": ["The port may already be in use, try --port."],
}
DEFAULT_HINTS = ["Run again with -vv for debug output."]


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Wraps an error and hints on how to fix it in a red panel."""
    error_type = type(error).__name__
    headline = Text.assemble((f"{error_type}: ", "bold red"), str(error))
    hints = Text("\n".join(f"• {h}" for h in HINTS.get(error_type, DEFAULT_HINTS)))

    parts = [headline, Text(""), hints]
    if context:
        parts.append(Text(f"\n{context}", style="dim"))

    return Panel(Group(*parts), title="[bold red]Error[/bold red]", border_style="red", expand=False)


def print_config(config: ServerConfig):
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    for key, value in config.model_dump().items():
        if key == "yt_api_key":
            value = "(hidden)" if value else "[red]not set[/red]"
        table.add_row(key, str(value))

    Console().print(Panel(table, title="tubezip configuration", border_style="cyan"))


def print_items_table(resolved: ResolvedMedia):
    table = Table(title=f"{resolved.kind.title()}: {len(resolved.items)} item(s)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Title")

    for i, item in enumerate(resolved.items, 1):
        table.add_row(str(i), item.id or "", item.title or "")
    Console().print(table)
