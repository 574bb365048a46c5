"""Server facade: one store, its schema and its graph builder.

Python:
    server = Server(
        models={"user": {"posts": has_many()}, "post": {"user": belongs_to()}},
        factories={"post": factory(title=sequence("Post {}"), user=association())},
    )
    post = server.create("post")
    server.schema.users.all()

YAML:
    server = Server.from_spec("blog.yaml")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from .core.models.schema import SchemaRegistry
from .core.models.server import ServerSpec
from .errors import NotFoundError, SpecError
from .factories.builder import GraphBuilder
from .factories.definition import FactoryDefinition
from .factories.spec import compile_factories
from .schema import Schema
from .store.db import RecordStore
from .store.integrity import IntegrityIssue, check_integrity
from .store.record import Record

logger = logging.getLogger(__name__)


class Server:
    """In-memory backend: records, associations and factories."""

    def __init__(
        self,
        models: SchemaRegistry | Mapping[str, Any],
        factories: Mapping[str, FactoryDefinition] | None = None,
        *,
        strict_schema: bool | None = None,
        max_depth: int | None = None,
        seed: int | None = None,
        locale: str | None = None,
    ):
        self.registry = (
            models if isinstance(models, SchemaRegistry) else SchemaRegistry(models)
        )
        self.db = RecordStore(self.registry, strict_schema=strict_schema)
        self.schema = Schema(self.db)
        self.builder = GraphBuilder(
            self.db,
            factories,
            handle=self,
            max_depth=max_depth,
            seed=seed,
            locale=locale,
        )

    @property
    def factories(self) -> dict[str, FactoryDefinition]:
        return self.builder.factories

    # =========================================================================
    # Creation
    # =========================================================================

    def create(self, model: str, *traits_and_overrides: Any, **overrides: Any) -> Record:
        """Create one record from its factory (or from overrides alone)."""
        return self.builder.create(model, *traits_and_overrides, **overrides)

    def create_list(
        self, model: str, count: int, *traits_and_overrides: Any, **overrides: Any
    ) -> list[Record]:
        """Create ``count`` records; each runs the full pipeline."""
        return self.builder.create_list(model, count, *traits_and_overrides, **overrides)

    # =========================================================================
    # Store
    # =========================================================================

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        return self.db.dump()

    def reset(self) -> None:
        """Drop every record. Ids and creation indexes are not reused."""
        self.db.clear()

    def check_integrity(self) -> list[IntegrityIssue]:
        return check_integrity(self.db)

    def load_fixtures(self, fixtures: Mapping[str, list[dict[str, Any]]]) -> dict[str, list[Record]]:
        """Insert literal records, bypassing factories.

        Rows may reference each other in any order: plain attributes are
        inserted first, association keys are applied in a second pass.

        Returns:
            Inserted records per model, in input order

        Raises:
            NotFoundError: Unknown model in ``fixtures``
        """
        staged: list[tuple[str, str, dict[str, Any]]] = []
        for model, rows in fixtures.items():
            if not self.registry.has_model(model):
                raise NotFoundError(f"Fixtures reference unknown model '{model}'", model=model)
            assoc_keys = self.registry.association_keys(model)
            for row in rows:
                plain = {k: v for k, v in row.items() if k not in assoc_keys}
                links = {k: v for k, v in row.items() if k in assoc_keys}
                record = self.db.insert(model, plain)
                staged.append((model, record.id, links))

        for model, record_id, links in staged:
            if links:
                self.db.update(model, record_id, links)

        loaded: dict[str, list[Record]] = {model: [] for model in fixtures}
        for model, record_id, _ in staged:
            loaded[model].append(self.db.find(model, record_id))
        logger.info(
            "Loaded %d fixture records across %d models", len(staged), len(loaded)
        )
        return loaded

    # =========================================================================
    # Declarative servers
    # =========================================================================

    @classmethod
    def from_spec(
        cls,
        spec: ServerSpec | Path | str,
        *,
        strict_schema: bool | None = None,
        max_depth: int | None = None,
        seed: int | None = None,
        locale: str | None = None,
        run_seeds: bool = True,
    ) -> "Server":
        """Build a server from a ServerSpec or a YAML path, then load it.

        Fixtures load first, then each seed entry runs ``create_list``.

        Raises:
            SpecError: Factories or seeds reference unknown models
        """
        if not isinstance(spec, ServerSpec):
            spec = ServerSpec.from_yaml(spec)

        registry = SchemaRegistry(spec.models)
        unknown = [m for m in spec.factories if not registry.has_model(m)]
        unknown += [s.model for s in spec.seeds if not registry.has_model(s.model)]
        if unknown:
            raise SpecError(f"Unknown model(s) in server file: {', '.join(sorted(set(unknown)))}")

        server = cls(
            registry,
            compile_factories(spec.factories),
            strict_schema=strict_schema,
            max_depth=max_depth,
            seed=seed if seed is not None else spec.meta.seed,
            locale=locale,
        )

        if spec.fixtures:
            server.load_fixtures(spec.fixtures)
        if run_seeds:
            for entry in spec.seeds:
                logger.info("Seeding %d x %s", entry.count, entry.model)
                server.create_list(entry.model, entry.count, *entry.traits, **entry.overrides)
        return server

    def __repr__(self) -> str:
        counts = ", ".join(f"{m}={self.db.count(m)}" for m in self.registry.model_names)
        return f"<Server {counts}>"
