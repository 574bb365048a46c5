"""Config command for viewing and managing backdrop configuration."""

import typer

from ... import config as config_module
from ...config import MAX_DEPTH_CEILING, get_config, parse_bool, reset_config
from ..app import app, console


VALID_KEYS = {
    "store.strict_schema",
    "factories.max_depth",
    "factories.seed",
    "factories.locale",
}

INT_FIELDS = {"max_depth", "seed"}
BOOL_FIELDS = {"strict_schema"}


@app.command("config")
def config_command(
    action: str = typer.Argument(
        ...,
        help="Action: show, set, reset",
    ),
    key: str | None = typer.Argument(
        None,
        help="Config key (e.g. store.strict_schema, factories.seed)",
    ),
    value: str | None = typer.Argument(
        None,
        help="Value to set",
    ),
):
    """View or modify backdrop configuration.

    Examples:
        backdrop config show
        backdrop config set store.strict_schema true
        backdrop config set factories.seed 42
        backdrop config reset
    """
    if action == "show":
        _show_config()
    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage:[/red] backdrop config set <key> <value>")
            console.print()
            console.print("Available keys:")
            for k in sorted(VALID_KEYS):
                console.print(f"  {k}")
            raise typer.Exit(1)
        _set_config(key, value)
    elif action == "reset":
        _reset_config()
    else:
        console.print(f"[red]Unknown action:[/red] {action}")
        console.print("Valid actions: show, set, reset")
        raise typer.Exit(1)


def _show_config():
    """Display current resolved configuration."""
    config = get_config()

    console.print()
    console.print("[bold]Backdrop Configuration[/bold]")
    console.print("─" * 40)

    console.print()
    console.print("[bold cyan]Store[/bold cyan]")
    console.print(f"  strict_schema = {config.store.strict_schema}")

    console.print()
    console.print("[bold cyan]Factories[/bold cyan]")
    console.print(f"  max_depth     = {config.factories.max_depth}")
    console.print(f"  seed          = {config.factories.seed}")
    console.print(f"  locale        = {config.factories.locale}")

    console.print()
    config_file = config_module.CONFIG_FILE
    if config_file.exists():
        console.print(f"Config file: {config_file}")
    else:
        console.print(f"Config file: [dim]not created yet[/dim] ({config_file})")
    console.print()


def _set_config(key: str, value: str):
    """Set a config value and save."""
    if key not in VALID_KEYS:
        console.print(f"[red]Unknown key:[/red] {key}")
        console.print()
        console.print("Available keys:")
        for k in sorted(VALID_KEYS):
            console.print(f"  {k}")
        raise typer.Exit(1)

    config = get_config()
    zone, field_name = key.split(".", 1)
    target = config.store if zone == "store" else config.factories

    # Type coercion
    if field_name in INT_FIELDS:
        try:
            setattr(target, field_name, int(value))
        except ValueError:
            console.print(f"[red]Invalid integer value:[/red] {value}")
            raise typer.Exit(1)
        if field_name == "max_depth" and not 1 <= target.max_depth <= MAX_DEPTH_CEILING:
            console.print(
                f"[red]max_depth must be between 1 and {MAX_DEPTH_CEILING}:[/red] {value}"
            )
            raise typer.Exit(1)
    elif field_name in BOOL_FIELDS:
        try:
            setattr(target, field_name, parse_bool(value))
        except ValueError:
            console.print(f"[red]Invalid boolean value:[/red] {value}")
            raise typer.Exit(1)
    else:
        setattr(target, field_name, value)

    config.save()
    reset_config()  # Clear cached singleton so next get_config() reloads

    console.print(f"[green]✓[/green] Set {key} = {value}")
    console.print(f"  Saved to {config_module.CONFIG_FILE}")


def _reset_config():
    """Reset config to defaults."""
    config_file = config_module.CONFIG_FILE
    if config_file.exists():
        config_file.unlink()
        reset_config()
        console.print("[green]✓[/green] Config reset to defaults")
        console.print(f"  Removed {config_file}")
    else:
        console.print("Config already at defaults (no config file exists)")
