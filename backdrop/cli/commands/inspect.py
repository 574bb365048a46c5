"""Inspect command: show models, associations and factories of a server file."""

from pathlib import Path

import typer

from ...core.models import SchemaRegistry, ServerSpec
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, exit_code_for


def _inverse_label(registry: SchemaRegistry, model: str, name: str) -> str:
    assoc = registry.association(model, name)
    if assoc.inverse is False:
        return "(one-way)"
    targets = registry.model_names if assoc.polymorphic else [assoc.model]
    pairs = []
    for target in targets:
        inverse = registry.inverse_for(model, name, target)
        if inverse is not None:
            pairs.append(f"{target}.{inverse}")
    return ", ".join(pairs) or "-"


@app.command("inspect")
def inspect_command(
    spec_file: Path = typer.Argument(..., help="Server file (YAML)"),
):
    """Show models, resolved inverses, factories and traits without seeding."""
    out = Output(console=console, json_mode=get_json_mode())

    if not spec_file.exists():
        out.error(f"Server file not found: {spec_file}", exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())

    try:
        spec = ServerSpec.from_yaml(spec_file)
        registry = SchemaRegistry(spec.models)
    except Exception as e:
        out.error(f"{type(e).__name__}: {e}", exit_code=exit_code_for(e))
        raise typer.Exit(out.finish())

    out.text(spec.summary())
    out.blank()

    out.table(
        "Models",
        ["Model", "Plural", "Attributes"],
        [
            [
                model,
                registry.plural(model),
                ", ".join(registry.require(model).attributes) or "-",
            ]
            for model in registry.model_names
        ],
    )

    assoc_rows = []
    for model in registry.model_names:
        for name, assoc in registry.associations(model).items():
            target = "(polymorphic)" if assoc.polymorphic else assoc.model
            assoc_rows.append(
                [
                    f"{model}.{name}",
                    assoc.kind,
                    target,
                    assoc.foreign_key(name),
                    _inverse_label(registry, model, name),
                ]
            )
    out.table("Associations", ["Association", "Kind", "Target", "Key", "Inverse"], assoc_rows)

    out.table(
        "Factories",
        ["Model", "Attributes", "Traits", "Hooks"],
        [
            [
                model,
                ", ".join(factory.attributes) or "-",
                ", ".join(factory.traits) or "-",
                str(len(factory.after_create)),
            ]
            for model, factory in spec.factories.items()
        ],
    )

    raise typer.Exit(out.finish())
