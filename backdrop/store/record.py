"""Detached record snapshots handed out by the store."""

from __future__ import annotations

import copy
from typing import Any, Iterator, TYPE_CHECKING

if TYPE_CHECKING:
    from .db import RecordStore


class Record:
    """A snapshot of one stored record.

    Mutating a snapshot (``record["title"] = ...``) never touches the store.
    Writes go through ``update``, ``append`` and ``destroy``, which call back
    into the owning store and refresh this snapshot.

    Association names resolve lazily:
        post.user      -> Record | None
        user.posts     -> list[Record]

    Two snapshots compare equal when they name the same stored record, even
    if one was taken before a later write. Use ``same_values`` to compare
    attributes as well.
    """

    __slots__ = ("_store", "_model", "_attrs")

    def __init__(self, store: RecordStore, model: str, attrs: dict[str, Any]):
        object.__setattr__(self, "_store", store)
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_attrs", attrs)

    # ── Identity ──

    @property
    def id(self) -> str:
        return self._attrs["id"]

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def attrs(self) -> dict[str, Any]:
        """A deep copy of the attribute dict, foreign keys included."""
        return copy.deepcopy(self._attrs)

    def to_dict(self) -> dict[str, Any]:
        return self.attrs

    # ── Mapping-style access ──

    def __getitem__(self, key: str) -> Any:
        return self._attrs[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key == "id":
            raise KeyError("Record ids are immutable")
        self._attrs[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._attrs

    def __iter__(self) -> Iterator[str]:
        return iter(self._attrs)

    def get(self, key: str, default: Any = None) -> Any:
        return self._attrs.get(key, default)

    def keys(self):
        return self._attrs.keys()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        store = self._store
        if name in store.registry.associations(self._model):
            return store.related(self._model, self.id, name)
        try:
            return self._attrs[name]
        except KeyError:
            raise AttributeError(
                f"'{self._model}' record has no attribute or association '{name}'"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(
            "Records are read-only snapshots; use record[key] = value for local "
            "edits or record.update(...) to write to the store"
        )

    # ── Store round-trips ──

    def update(self, attrs: dict[str, Any] | None = None, **kwargs: Any) -> Record:
        """Write attributes (and association changes) back to the store."""
        changes = {**(attrs or {}), **kwargs}
        fresh = self._store.update(self._model, self.id, changes)
        object.__setattr__(self, "_attrs", fresh._attrs)
        return self

    def append(self, association: str, *records: Record) -> Record:
        """Add members to a plural association without replacing existing ones."""
        fresh = self._store.append(self._model, self.id, association, *records)
        object.__setattr__(self, "_attrs", fresh._attrs)
        return self

    def reload(self) -> Record:
        fresh = self._store.find(self._model, self.id)
        if fresh is not None:
            object.__setattr__(self, "_attrs", fresh._attrs)
        return self

    def destroy(self) -> None:
        self._store.remove(self._model, self.id)

    # ── Copies and equality ──

    def __copy__(self) -> Record:
        return Record(self._store, self._model, dict(self._attrs))

    def __deepcopy__(self, memo: dict) -> Record:
        return Record(self._store, self._model, copy.deepcopy(self._attrs, memo))

    def __eq__(self, other: object) -> bool:
        # Same stored record, however stale either snapshot is
        if not isinstance(other, Record):
            return NotImplemented
        return (
            self._store is other._store
            and self._model == other._model
            and self.id == other.id
        )

    def same_values(self, other: Record) -> bool:
        """True if both snapshots name the same record and hold equal attributes."""
        return self == other and self._attrs == other._attrs

    def __hash__(self) -> int:
        return hash((self._model, self.id))

    def __repr__(self) -> str:
        return f"Record({self._model}:{self.id} {self._attrs!r})"
