"""Association wiring for the record store.

Translates association-valued attributes (records, lists of records, or raw
foreign keys) into stored foreign keys, and keeps the inverse side of every
relation in sync.

Both sides of a relation store keys:
    post.user_id = "1"        user.post_ids = ["3", "7"]

Every write is split in two phases. ``prepare`` validates types and target
existence without touching the store. ``apply`` performs the linking. A
failing write therefore never leaves one side half-wired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, TYPE_CHECKING

from ..core.models.schema import AssociationSpec
from ..errors import DanglingReferenceError, TypeMismatchError, ValidationError
from .record import Record

if TYPE_CHECKING:
    from .db import RecordStore

logger = logging.getLogger(__name__)

# (model, id) pair identifying one record across collections
Ref = tuple[str, str]


@dataclass
class AssociationWrite:
    """A validated, not yet applied change to one association."""

    name: str
    spec: AssociationSpec
    refs: list[Ref] = field(default_factory=list)
    append: bool = False


# =============================================================================
# Key encoding
# =============================================================================


def encode_ref(spec: AssociationSpec, ref: Ref) -> Any:
    if spec.polymorphic:
        return {"type": ref[0], "id": ref[1]}
    return ref[1]


def decode_refs(spec: AssociationSpec, value: Any) -> list[Ref]:
    """Decode a stored foreign-key value into refs."""
    if value is None:
        return []
    items = value if not spec.is_singular else [value]
    refs: list[Ref] = []
    for item in items:
        if spec.polymorphic:
            refs.append((item["type"], item["id"]))
        else:
            refs.append((spec.model, item))
    return refs


def empty_value(spec: AssociationSpec) -> Any:
    return None if spec.is_singular else []


# =============================================================================
# Resolver
# =============================================================================


class AssociationResolver:
    """Keeps foreign keys and inverse memberships consistent for one store."""

    def __init__(self, store: RecordStore):
        self.store = store
        self.registry = store.registry

    # ── Phase 1: validation ──

    def prepare(self, model: str, attrs: dict[str, Any]) -> list[AssociationWrite]:
        """Pop association keys out of ``attrs`` and validate them.

        Raises:
            TypeMismatchError: Value is not a record of the declared type
            DanglingReferenceError: Value refers to a record that does not exist
            ValidationError: Both ``user`` and ``user_id`` were supplied
        """
        writes: list[AssociationWrite] = []
        for name, spec in self.registry.associations(model).items():
            fk = spec.foreign_key(name)
            if name in attrs and fk in attrs:
                raise ValidationError(
                    f"Pass either '{name}' or '{fk}' for {model}, not both"
                )
            if name in attrs:
                refs = self._refs_from_records(model, name, spec, attrs.pop(name))
            elif fk in attrs:
                refs = self._refs_from_keys(model, name, spec, attrs.pop(fk))
            else:
                continue
            for ref in refs:
                self._check_exists(model, name, ref)
            writes.append(AssociationWrite(name=name, spec=spec, refs=refs))
        return writes

    def prepare_append(
        self, model: str, name: str, records: Iterable[Record]
    ) -> AssociationWrite:
        spec = self.registry.association(model, name)
        if spec.is_singular:
            raise ValidationError(
                f"{model}.{name} is singular; assign it with update() instead of append()"
            )
        refs = self._refs_from_records(model, name, spec, list(records))
        for ref in refs:
            self._check_exists(model, name, ref)
        return AssociationWrite(name=name, spec=spec, refs=refs, append=True)

    def _refs_from_records(
        self, model: str, name: str, spec: AssociationSpec, value: Any
    ) -> list[Ref]:
        if value is None:
            return []
        if spec.is_singular:
            if not isinstance(value, Record):
                raise TypeMismatchError(
                    f"{model}.{name} expects a record or None, got {type(value).__name__}",
                    association=name,
                    expected=spec.model,
                    actual=type(value).__name__,
                )
            self._check_type(model, name, spec, value.model_name)
            return [(value.model_name, value.id)]

        if isinstance(value, (Record, str, bytes)) or not isinstance(value, Iterable):
            raise TypeMismatchError(
                f"{model}.{name} expects a list of records, got {type(value).__name__}",
                association=name,
                expected=spec.model,
                actual=type(value).__name__,
            )
        refs: list[Ref] = []
        for item in value:
            if not isinstance(item, Record):
                raise TypeMismatchError(
                    f"{model}.{name} expects records, got {type(item).__name__}",
                    association=name,
                    expected=spec.model,
                    actual=type(item).__name__,
                )
            self._check_type(model, name, spec, item.model_name)
            ref = (item.model_name, item.id)
            if ref not in refs:
                refs.append(ref)
        return refs

    def _refs_from_keys(
        self, model: str, name: str, spec: AssociationSpec, value: Any
    ) -> list[Ref]:
        if value is None:
            return []
        items = [value] if spec.is_singular else value
        if not spec.is_singular and (isinstance(items, (str, dict)) or not isinstance(items, Iterable)):
            raise TypeMismatchError(
                f"{spec.foreign_key(name)} on {model} expects a list of keys",
                association=name,
            )
        refs: list[Ref] = []
        for item in items:
            if spec.polymorphic:
                if not isinstance(item, dict) or "type" not in item or "id" not in item:
                    raise TypeMismatchError(
                        f"{model}.{name} is polymorphic; keys need a type tag "
                        f"like {{'type': 'post', 'id': '1'}}, got {item!r}",
                        association=name,
                    )
                target_model = str(item["type"])
                self._check_type(model, name, spec, target_model)
                ref = (target_model, str(item["id"]))
            else:
                if isinstance(item, (dict, list, Record)):
                    raise TypeMismatchError(
                        f"{spec.foreign_key(name)} on {model} expects ids, got {item!r}",
                        association=name,
                        expected=spec.model,
                    )
                ref = (spec.model, str(item))
            if ref not in refs:
                refs.append(ref)
        return refs

    def _check_type(
        self, model: str, name: str, spec: AssociationSpec, target_model: str
    ) -> None:
        if spec.polymorphic:
            if not self.registry.has_model(target_model):
                raise TypeMismatchError(
                    f"{model}.{name} cannot reference unregistered model '{target_model}'",
                    association=name,
                    actual=target_model,
                )
            return
        if target_model != spec.model:
            raise TypeMismatchError(
                f"{model}.{name} expects a '{spec.model}' record, got '{target_model}'",
                association=name,
                expected=spec.model,
                actual=target_model,
            )

    def _check_exists(self, model: str, name: str, ref: Ref) -> None:
        if not self.store.exists(*ref):
            raise DanglingReferenceError(
                f"{model}.{name} refers to {ref[0]} '{ref[1]}', which does not exist",
                model=ref[0],
                record_id=ref[1],
            )

    # ── Phase 2: linking ──

    def apply(self, model: str, record_id: str, writes: list[AssociationWrite]) -> None:
        owner = (model, record_id)
        for write in writes:
            if write.spec.is_singular:
                self.set_singular(owner, write.name, write.refs[0] if write.refs else None)
            else:
                self.set_plural(owner, write.name, write.refs, append=write.append)

    def set_singular(self, owner: Ref, name: str, target: Ref | None) -> None:
        current = self._refs(owner, name)
        if target is None:
            for ref in current:
                self.unlink(owner, name, ref)
            return
        self.link(owner, name, target)

    def set_plural(
        self, owner: Ref, name: str, targets: list[Ref], append: bool = False
    ) -> None:
        if not append:
            for ref in self._refs(owner, name):
                if ref not in targets:
                    self.unlink(owner, name, ref)
        for ref in targets:
            self.link(owner, name, ref)
        if not append:
            # Replacement keeps the caller's ordering.
            spec = self.registry.association(owner[0], name)
            self._row(owner)[spec.foreign_key(name)] = [encode_ref(spec, r) for r in targets]

    def link(self, owner: Ref, name: str, target: Ref) -> None:
        """Link ``owner.name`` to ``target`` and mirror it on the inverse side."""
        spec = self.registry.association(owner[0], name)
        current = self._refs(owner, name)
        if target in current:
            return
        if spec.is_singular and current:
            self.unlink(owner, name, current[0])

        self._add(owner, name, target)

        inverse = self.registry.inverse_for(owner[0], name, target[0])
        if inverse is None:
            return
        inverse_spec = self.registry.association(target[0], inverse)
        if inverse_spec.is_singular:
            previous = self._refs(target, inverse)
            if previous and previous[0] != owner:
                self.unlink(target, inverse, previous[0])
        self._add(target, inverse, owner)
        logger.debug(
            "Linked %s:%s.%s <-> %s:%s.%s",
            owner[0], owner[1], name, target[0], target[1], inverse,
        )

    def unlink(self, owner: Ref, name: str, target: Ref) -> None:
        """Remove the ``owner.name`` -> ``target`` link from both sides."""
        self._discard(owner, name, target)
        inverse = self.registry.inverse_for(owner[0], name, target[0])
        if inverse is not None and self.store.exists(*target):
            self._discard(target, inverse, owner)

    def detach_everywhere(self, removed: Ref) -> int:
        """Clear every foreign key that points at a removed record.

        Returns the number of records that were touched.
        """
        touched = 0
        for model in self.registry.model_names:
            for name, spec in self.registry.associations(model).items():
                if not spec.polymorphic and spec.model != removed[0]:
                    continue
                fk = spec.foreign_key(name)
                for row in self.store._rows(model).values():
                    if removed in decode_refs(spec, row.get(fk)):
                        self._discard((model, row["id"]), name, removed)
                        touched += 1
        return touched

    # ── Single-side primitives ──

    def _row(self, ref: Ref) -> dict[str, Any]:
        return self.store._rows(ref[0])[ref[1]]

    def _refs(self, owner: Ref, name: str) -> list[Ref]:
        spec = self.registry.association(owner[0], name)
        return decode_refs(spec, self._row(owner).get(spec.foreign_key(name)))

    def _add(self, owner: Ref, name: str, target: Ref) -> None:
        spec = self.registry.association(owner[0], name)
        row = self._row(owner)
        fk = spec.foreign_key(name)
        if spec.is_singular:
            row[fk] = encode_ref(spec, target)
        elif target not in decode_refs(spec, row.get(fk)):
            row[fk] = list(row.get(fk) or []) + [encode_ref(spec, target)]

    def _discard(self, owner: Ref, name: str, target: Ref) -> None:
        spec = self.registry.association(owner[0], name)
        row = self._row(owner)
        fk = spec.foreign_key(name)
        if spec.is_singular:
            if decode_refs(spec, row.get(fk)) == [target]:
                row[fk] = None
        else:
            row[fk] = [
                encode_ref(spec, ref)
                for ref in decode_refs(spec, row.get(fk))
                if ref != target
            ]
