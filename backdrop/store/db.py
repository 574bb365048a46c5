"""In-memory record store.

One store instance owns everything it needs: collections, identifier
counters, and per-model creation indexes. Nothing is module-global, so
independent stores (for example in parallel test runs) never interfere.

The store is single-writer and holds no locks. Callers that share one store
across threads must serialize writes themselves.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Iterator, Mapping

from ..config import get_config
from ..core.models.schema import SchemaRegistry
from ..errors import NotFoundError, ValidationError
from .associations import AssociationResolver, decode_refs, empty_value
from .record import Record

logger = logging.getLogger(__name__)

Predicate = Callable[[dict[str, Any]], bool] | Mapping[str, Any]


class RecordStore:
    """Typed collections of records with referential integrity."""

    def __init__(
        self,
        registry: SchemaRegistry,
        strict_schema: bool | None = None,
    ):
        self.registry = registry
        self.strict_schema = (
            get_config().strict_schema if strict_schema is None else strict_schema
        )
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            model: {} for model in registry.model_names
        }
        self._id_counters: dict[str, int] = {m: 0 for m in registry.model_names}
        self._issued_ids: dict[str, set[str]] = {m: set() for m in registry.model_names}
        self._creation_counters: dict[str, int] = {m: 0 for m in registry.model_names}
        self.associations = AssociationResolver(self)

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, model: str, attrs: Mapping[str, Any] | None = None) -> Record:
        """Persist a new record and return a snapshot of it.

        Attribute values are deep-copied; the store never keeps the caller's
        lists or dicts.

        Raises:
            NotFoundError: Unknown model
            ValidationError: Unknown keys in strict mode, or a reused explicit id
            TypeMismatchError / DanglingReferenceError: Bad association values
        """
        spec = self.registry.require(model)
        pending = dict(attrs or {})
        explicit_id = pending.pop("id", None)

        writes = self.associations.prepare(model, pending)
        self._check_schema(model, pending)
        pending = copy.deepcopy(pending)
        record_id = self._allocate_id(model, explicit_id)

        row: dict[str, Any] = {"id": record_id}
        for name, assoc in spec.associations.items():
            row[assoc.foreign_key(name)] = empty_value(assoc)
        row.update(pending)

        self._collections[model][record_id] = row
        self.associations.apply(model, record_id, writes)
        logger.debug("Inserted %s:%s", model, record_id)
        return self._snapshot(model, row)

    def update(self, model: str, record_id: str, attrs: Mapping[str, Any]) -> Record:
        """Merge ``attrs`` into an existing record, rewiring association keys.

        Raises:
            NotFoundError: Unknown model or id
        """
        row = self._require_row(model, record_id)
        pending = dict(attrs)
        if "id" in pending:
            if str(pending.pop("id")) != row["id"]:
                raise ValidationError(f"Cannot change the id of {model}:{record_id}")

        writes = self.associations.prepare(model, pending)
        self._check_schema(model, pending)
        pending = copy.deepcopy(pending)

        row.update(pending)
        self.associations.apply(model, row["id"], writes)
        logger.debug("Updated %s:%s (%s)", model, record_id, ", ".join(attrs) or "no keys")
        return self._snapshot(model, row)

    def append(self, model: str, record_id: str, association: str, *records: Record) -> Record:
        """Add records to a plural association, keeping existing members."""
        row = self._require_row(model, record_id)
        write = self.associations.prepare_append(model, association, records)
        self.associations.apply(model, row["id"], [write])
        return self._snapshot(model, row)

    def remove(self, model: str, record_id: str) -> None:
        """Delete a record and null out every reference to it.

        Dependent records are never deleted.
        """
        row = self._require_row(model, record_id)
        del self._collections[model][row["id"]]
        touched = self.associations.detach_everywhere((model, row["id"]))
        logger.debug("Removed %s:%s, detached %d references", model, row["id"], touched)

    def clear(self) -> None:
        """Empty every collection. Id and creation counters keep counting."""
        for rows in self._collections.values():
            rows.clear()
        logger.debug("Cleared all collections")

    # =========================================================================
    # Reads
    # =========================================================================

    def find(self, model: str, record_id: Any) -> Record | None:
        self.registry.require(model)
        row = self._collections[model].get(str(record_id))
        return self._snapshot(model, row) if row is not None else None

    def all(self, model: str) -> list[Record]:
        self.registry.require(model)
        return [self._snapshot(model, row) for row in self._collections[model].values()]

    def where(self, model: str, predicate: Predicate) -> list[Record]:
        """Records matching a callable over the attrs, or a dict of equalities."""
        self.registry.require(model)
        if isinstance(predicate, Mapping):
            expected = dict(predicate)

            def matches(attrs: dict[str, Any]) -> bool:
                return all(attrs.get(k) == v for k, v in expected.items())
        else:
            matches = predicate

        results = []
        for row in self._collections[model].values():
            attrs = copy.deepcopy(row)
            if matches(attrs):
                results.append(self._snapshot(model, row))
        return results

    def count(self, model: str) -> int:
        self.registry.require(model)
        return len(self._collections[model])

    def exists(self, model: str, record_id: str) -> bool:
        return record_id in self._collections.get(model, {})

    def related(self, model: str, record_id: str, association: str) -> Record | list[Record] | None:
        """Follow an association from a stored record."""
        spec = self.registry.association(model, association)
        row = self._require_row(model, record_id)
        refs = decode_refs(spec, row.get(spec.foreign_key(association)))
        records = [
            self._snapshot(ref[0], self._collections[ref[0]][ref[1]]) for ref in refs
        ]
        if spec.is_singular:
            return records[0] if records else None
        return records

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        """Plain deep-copied contents of every collection, keyed by model."""
        return {
            model: [copy.deepcopy(row) for row in rows.values()]
            for model, rows in self._collections.items()
        }

    # =========================================================================
    # Creation indexes
    # =========================================================================

    def next_creation_index(self, model: str) -> int:
        """Claim the next 0-based creation index for ``model``."""
        self.registry.require(model)
        index = self._creation_counters[model]
        self._creation_counters[model] = index + 1
        return index

    def peek_creation_index(self, model: str) -> int:
        self.registry.require(model)
        return self._creation_counters[model]

    # =========================================================================
    # Internals
    # =========================================================================

    def _rows(self, model: str) -> dict[str, dict[str, Any]]:
        """Live rows for ``model``. Package-internal; never hand these out."""
        return self._collections[model]

    def _iter_rows(self) -> Iterator[tuple[str, dict[str, Any]]]:
        for model, rows in self._collections.items():
            for row in rows.values():
                yield model, row

    def _require_row(self, model: str, record_id: Any) -> dict[str, Any]:
        self.registry.require(model)
        row = self._collections[model].get(str(record_id))
        if row is None:
            raise NotFoundError(
                f"No {model} with id '{record_id}'", model=model, record_id=str(record_id)
            )
        return row

    def _snapshot(self, model: str, row: dict[str, Any]) -> Record:
        return Record(self, model, copy.deepcopy(row))

    def _allocate_id(self, model: str, explicit_id: Any) -> str:
        issued = self._issued_ids[model]
        if explicit_id is not None:
            record_id = str(explicit_id)
            if record_id in issued:
                raise ValidationError(
                    f"Id '{record_id}' was already issued for {model} and cannot be reused"
                )
            if record_id.isdigit():
                self._id_counters[model] = max(self._id_counters[model], int(record_id))
        else:
            counter = self._id_counters[model]
            while True:
                counter += 1
                record_id = str(counter)
                if record_id not in issued:
                    break
            self._id_counters[model] = counter
        issued.add(record_id)
        return record_id

    def _check_schema(self, model: str, attrs: Mapping[str, Any]) -> None:
        if not self.strict_schema:
            return
        allowed = set(self.registry.require(model).attributes)
        unknown = [key for key in attrs if key not in allowed]
        if unknown:
            raise ValidationError(
                f"Unknown attribute(s) for {model} in strict schema mode: "
                f"{', '.join(sorted(unknown))}"
            )

