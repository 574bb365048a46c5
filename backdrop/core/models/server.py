"""Pydantic models for declarative server files.

A server file describes models, factories, fixtures and seeds in YAML:

    meta:
      name: blog
      seed: 42
    models:
      user:
        associations:
          posts: {kind: has_many}
      post:
        associations:
          user: {kind: belongs_to}
    factories:
      post:
        attributes:
          title: {formula: "f'Post {i}'"}
          user: {association: {}}
        traits:
          with_comments:
            after_create:
              - {model: comment, count: 3, link: post}
    seeds:
      - {model: post, count: 5, traits: [with_comments]}
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from .schema import ModelSpec


# =============================================================================
# Factories
# =============================================================================


class HookSpec(BaseModel):
    """Declarative post-creation step: create related records for the parent."""

    model: str = Field(description="Model to create")
    count: int = Field(default=1, ge=0, description="How many records to create")
    traits: list[str] = Field(default_factory=list)
    overrides: dict[str, Any] = Field(default_factory=dict)
    link: str | None = Field(
        default=None,
        description="Association on the created model that receives the parent record",
    )


class TraitSpec(BaseModel):
    """A named partial factory."""

    attributes: dict[str, Any] = Field(default_factory=dict)
    after_create: list[HookSpec] = Field(default_factory=list)


class FactorySpec(BaseModel):
    """Attributes, hooks and traits for one model.

    Attribute values are constants, or single-key mappings:
    ``{formula: expr}``, ``{fake: provider, args: [...], kwargs: {...}}``,
    ``{sequence: template}``, ``{association: {traits, overrides}}`` and
    ``{value: literal}`` for a constant that is itself a mapping.
    """

    extends: str | None = Field(
        default=None, description="Name of another factory to start from"
    )
    attributes: dict[str, Any] = Field(default_factory=dict)
    traits: dict[str, TraitSpec] = Field(default_factory=dict)
    after_create: list[HookSpec] = Field(default_factory=list)


# =============================================================================
# Seeds & Spec
# =============================================================================


class SeedSpec(BaseModel):
    """One ``create_list`` call run after fixtures load."""

    model: str
    count: int = Field(default=1, ge=0)
    traits: list[str] = Field(default_factory=list)
    overrides: dict[str, Any] = Field(default_factory=dict)


class ServerMeta(BaseModel):
    """Metadata about the server file."""

    name: str = Field(default="backdrop")
    description: str | None = Field(default=None)
    seed: int | None = Field(
        default=None, description="Base seed for fake values; overrides config"
    )
    version: str = Field(default="1.0", description="Server file format version")


class ServerSpec(BaseModel):
    """Complete declarative server description."""

    meta: ServerMeta = Field(default_factory=ServerMeta)
    models: dict[str, ModelSpec] = Field(default_factory=dict)
    factories: dict[str, FactorySpec] = Field(default_factory=dict)
    fixtures: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    seeds: list[SeedSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _null_models(cls, data: Any) -> Any:
        # ``user:`` with no body parses as None in YAML
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("models", "factories"):
            if isinstance(data.get(key), dict):
                data[key] = {k: v or {} for k, v in data[key].items()}
        return data

    def to_yaml(self, path: Path | str) -> None:
        """Save spec to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude_defaults=True)

        with open(path, "w") as f:
            yaml.dump(
                data, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ServerSpec":
        """Load spec from YAML file."""
        path = Path(path)

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.model_validate(data or {})

    def summary(self) -> str:
        """Get a text summary of the server file."""
        lines = [
            f"Server: {self.meta.name}",
            f"Models: {len(self.models)}",
            f"Factories: {len(self.factories)}",
            f"Fixture records: {sum(len(rows) for rows in self.fixtures.values())}",
            "",
            "Seeds:",
        ]
        for i, seed in enumerate(self.seeds, 1):
            traits = f" [{', '.join(seed.traits)}]" if seed.traits else ""
            lines.append(f"  {i}. {seed.count} x {seed.model}{traits}")

        return "\n".join(lines)
