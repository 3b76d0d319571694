"""
Console entry point. Turns uncaught errors into a panel and an exit code.
"""

import logging
import sys

import typer
from rich.console import Console

from tubezip.cli.app import app
from tubezip.cli.formatters import format_error_with_suggestions
from tubezip.exceptions import TubezipError

log = logging.getLogger("tubezip")


def main() -> None:
    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except TubezipError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "unexpected"}))
        log.debug("Traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
