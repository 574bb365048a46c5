"""Seed command: build a server from a YAML file and dump its records."""

import json
from pathlib import Path

import typer

from ...core.models import ServerSpec
from ...server import Server
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, exit_code_for


@app.command("seed")
def seed_command(
    spec_file: Path = typer.Argument(..., help="Server file (YAML)"),
    seed: int | None = typer.Option(
        None, "--seed", help="Base seed for fake values (overrides the file and config)"
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Reject attributes a model does not declare"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the record dump to this JSON file"
    ),
):
    """
    Load fixtures, run seeds and report what was created.

    EXIT CODES:
        0 = Success
        1 = Validation error (malformed server file)
        3 = File not found
        4 = Generation error (factories, hooks, associations)
    """
    out = Output(console=console, json_mode=get_json_mode())

    if not spec_file.exists():
        out.error(f"Server file not found: {spec_file}", exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())

    try:
        spec = ServerSpec.from_yaml(spec_file)
        server = Server.from_spec(spec, seed=seed, strict_schema=True if strict else None)
    except Exception as e:
        out.error(f"{type(e).__name__}: {e}", exit_code=exit_code_for(e))
        raise typer.Exit(out.finish())

    dump = server.dump()
    total = sum(len(rows) for rows in dump.values())
    out.success(
        f"Seeded [bold]{spec.meta.name}[/bold]: {total} records",
        server=spec.meta.name,
        total=total,
    )
    out.table(
        "Records",
        ["Model", "Count"],
        [[model, str(len(rows))] for model, rows in dump.items()],
    )

    for issue in server.check_integrity():
        out.warning(f"Integrity: {issue}")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            json.dump(dump, f, indent=2, default=str)
        out.success(f"Wrote dump to {output}", output=str(output))
    else:
        out.set_data("dump", dump)

    raise typer.Exit(out.finish())
