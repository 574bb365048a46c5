"""Referential integrity checks over a whole store.

Two invariants are checked:
- every stored foreign key resolves to an existing record of an allowed type
- every link with an inverse is mirrored on the other side
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from .associations import decode_refs

if TYPE_CHECKING:
    from .db import RecordStore


class IntegrityIssue(BaseModel):
    """One violated invariant."""

    model: str
    record_id: str
    association: str
    message: str

    def __str__(self) -> str:
        return f"{self.model}:{self.record_id}.{self.association}: {self.message}"


def check_integrity(store: RecordStore) -> list[IntegrityIssue]:
    """Scan every record and report dangling or one-sided links."""
    issues: list[IntegrityIssue] = []
    registry = store.registry

    for model, row in store._iter_rows():
        for name, spec in registry.associations(model).items():
            fk = spec.foreign_key(name)
            value = row.get(fk)
            if spec.is_singular and isinstance(value, list):
                issues.append(
                    IntegrityIssue(
                        model=model,
                        record_id=row["id"],
                        association=name,
                        message=f"{fk} holds a list on a singular association",
                    )
                )
                continue

            for target in decode_refs(spec, value):
                if not spec.polymorphic and target[0] != spec.model:
                    issues.append(
                        IntegrityIssue(
                            model=model,
                            record_id=row["id"],
                            association=name,
                            message=f"points at {target[0]}, expected {spec.model}",
                        )
                    )
                    continue
                if not store.exists(*target):
                    issues.append(
                        IntegrityIssue(
                            model=model,
                            record_id=row["id"],
                            association=name,
                            message=f"dangling reference to {target[0]}:{target[1]}",
                        )
                    )
                    continue

                inverse = registry.inverse_for(model, name, target[0])
                if inverse is None:
                    continue
                inverse_spec = registry.association(target[0], inverse)
                target_row = store._rows(target[0])[target[1]]
                mirrored = decode_refs(
                    inverse_spec, target_row.get(inverse_spec.foreign_key(inverse))
                )
                if (model, row["id"]) not in mirrored:
                    issues.append(
                        IntegrityIssue(
                            model=model,
                            record_id=row["id"],
                            association=name,
                            message=(
                                f"{target[0]}:{target[1]}.{inverse} does not link back"
                            ),
                        )
                    )

    return issues
