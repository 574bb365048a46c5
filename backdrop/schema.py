"""Query facade over the record store.

    server.schema.posts.all()
    server.schema.posts.find("1")
    server.schema.posts.where({"published": True})
    server.schema.users.create({"name": "Ada"})

Collections are addressed by plural name. Every read returns fresh Record
snapshots.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from .errors import NotFoundError
from .store.db import Predicate, RecordStore
from .store.record import Record


class ModelCollection:
    """Reads and writes for one model."""

    def __init__(self, store: RecordStore, model: str):
        self._store = store
        self.model = model

    def all(self) -> list[Record]:
        return self._store.all(self.model)

    def find(self, record_id: Any) -> Record | list[Record] | None:
        """Find one record by id, or several when given a list of ids.

        Missing ids yield None (single) or are skipped (list).
        """
        if isinstance(record_id, (list, tuple, set)):
            found = (self._store.find(self.model, rid) for rid in record_id)
            return [record for record in found if record is not None]
        return self._store.find(self.model, record_id)

    def find_or_fail(self, record_id: Any) -> Record:
        """Like find(), but raise NotFoundError for a missing id."""
        record = self._store.find(self.model, record_id)
        if record is None:
            raise NotFoundError(
                f"No {self.model} with id '{record_id}'",
                model=self.model,
                record_id=str(record_id),
            )
        return record

    def where(self, predicate: Predicate) -> list[Record]:
        return self._store.where(self.model, predicate)

    def find_by(self, **attrs: Any) -> Record | None:
        matches = self._store.where(self.model, attrs)
        return matches[0] if matches else None

    def first(self) -> Record | None:
        records = self._store.all(self.model)
        return records[0] if records else None

    def create(self, attrs: dict[str, Any] | None = None, **kwargs: Any) -> Record:
        """Insert a record directly, without running any factory."""
        return self._store.insert(self.model, {**(attrs or {}), **kwargs})

    def __len__(self) -> int:
        return self._store.count(self.model)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"<ModelCollection {self.model} ({len(self)} records)>"


class Schema:
    """Collections by plural name: ``schema.posts``, ``schema["posts"]``."""

    def __init__(self, store: RecordStore):
        self._store = store

    def collection(self, model: str) -> ModelCollection:
        """Collection for a model, addressed by model (singular) name."""
        self._store.registry.require(model)
        return ModelCollection(self._store, model)

    def __getitem__(self, plural: str) -> ModelCollection:
        model = self._store.registry.model_for_plural(plural)
        if model is None:
            raise NotFoundError(f"No collection named '{plural}'")
        return ModelCollection(self._store, model)

    def __getattr__(self, plural: str) -> ModelCollection:
        if plural.startswith("_"):
            raise AttributeError(plural)
        try:
            return self[plural]
        except NotFoundError:
            raise AttributeError(f"Schema has no collection '{plural}'") from None

    def __dir__(self) -> Iterable[str]:
        registry = self._store.registry
        return [*super().__dir__(), *(registry.plural(m) for m in registry.model_names)]
