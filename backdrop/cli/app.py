"""Core CLI app definition and global state."""

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(
    name="backdrop",
    help="Seed and inspect in-memory mock backends from declarative server files.",
    no_args_is_help=True,
)

console = Console()

# Global state for JSON mode (set by callback)
_json_mode = False


def get_json_mode() -> bool:
    """Get current JSON mode state."""
    return _json_mode


def _version_callback(value: bool) -> None:
    if value:
        from .. import __version__

        print(f"backdrop {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool = False) -> None:
    """Route backdrop loggers through Rich; DEBUG when verbose."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )
    logging.getLogger("backdrop").setLevel(level)


@app.callback()
def main_callback(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output machine-readable JSON instead of human-friendly text",
            is_eager=True,
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log store writes and hook execution",
        ),
    ] = False,
):
    """Backdrop: in-memory relational mock backend with factories and traits.

    Use --json for machine-readable output suitable for scripting.
    Use --verbose to see every insert, link and hook as it happens.
    """
    global _json_mode
    _json_mode = json_output
    if verbose:
        setup_logging(verbose=True)


# Import commands to register them with the app
from .commands import (  # noqa: E402, F401
    seed,
    inspect,
    config_cmd,
)
