"""Model and association declarations.

A model declares its associations to other models:
- belongs_to: singular, stored as ``<name>_id``
- has_many: plural, stored as ``<singular name>_ids``

Polymorphic associations store ``{"type": model, "id": id}`` tags instead
of bare identifiers, since the related model varies per record.

SchemaRegistry normalizes declarations and resolves inverse pairs once, at
configuration time, so ambiguous or inconsistent schemas fail early.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from ...errors import NotFoundError, ValidationError
from ...utils.inflect import pluralize, singularize

logger = logging.getLogger(__name__)


# =============================================================================
# Declarations
# =============================================================================


class AssociationSpec(BaseModel):
    """One association declared on a model.

    inverse:
        None  -> auto-detect on the related model
        "x"   -> explicit inverse association name
        False -> one-way, no inverse is maintained
    """

    kind: Literal["belongs_to", "has_many"]
    model: str | None = Field(
        default=None,
        description="Related model name; defaults to the singularized association name",
    )
    inverse: str | Literal[False] | None = None
    polymorphic: bool = False

    @property
    def is_singular(self) -> bool:
        return self.kind == "belongs_to"

    def foreign_key(self, name: str) -> str:
        """Storage key for this association when declared under ``name``."""
        if self.is_singular:
            return f"{name}_id"
        return f"{singularize(name)}_ids"


class ModelSpec(BaseModel):
    """A model declaration: associations plus optional attribute whitelist.

    ``attributes`` is only enforced when the store runs in strict schema mode.
    """

    plural: str | None = None
    attributes: list[str] = Field(default_factory=list)
    associations: dict[str, AssociationSpec] = Field(default_factory=dict)


def belongs_to(
    model: str | None = None,
    *,
    inverse: str | Literal[False] | None = None,
    polymorphic: bool = False,
) -> AssociationSpec:
    """Declare a singular association."""
    return AssociationSpec(
        kind="belongs_to", model=model, inverse=inverse, polymorphic=polymorphic
    )


def has_many(
    model: str | None = None,
    *,
    inverse: str | Literal[False] | None = None,
    polymorphic: bool = False,
) -> AssociationSpec:
    """Declare a plural association."""
    return AssociationSpec(
        kind="has_many", model=model, inverse=inverse, polymorphic=polymorphic
    )


def _coerce_model_spec(value: Any) -> ModelSpec:
    """Accept a ModelSpec, a plain dict, or a shorthand dict of associations."""
    if isinstance(value, ModelSpec):
        return value
    if value is None:
        return ModelSpec()
    if isinstance(value, Mapping):
        if value and all(isinstance(v, AssociationSpec) for v in value.values()):
            return ModelSpec(associations=dict(value))
        return ModelSpec.model_validate(dict(value))
    raise ValidationError(f"Cannot interpret model declaration: {value!r}")


# =============================================================================
# Registry
# =============================================================================


class SchemaRegistry:
    """Normalized view over all model declarations with resolved inverses."""

    def __init__(self, models: Mapping[str, Any] | None = None):
        self._models: dict[str, ModelSpec] = {}
        self._plurals: dict[str, str] = {}
        self._inverse_cache: dict[tuple[str, str, str], str | None] = {}

        raw = {name: _coerce_model_spec(spec) for name, spec in (models or {}).items()}
        for name, spec in raw.items():
            associations = {}
            for assoc_name, assoc in spec.associations.items():
                if assoc.model is None and not assoc.polymorphic:
                    assoc = assoc.model_copy(update={"model": singularize(assoc_name)})
                associations[assoc_name] = assoc
            plural = spec.plural or pluralize(name)
            self._models[name] = spec.model_copy(
                update={"associations": associations, "plural": plural}
            )
            if plural in self._plurals:
                raise ValidationError(
                    f"Models '{self._plurals[plural]}' and '{name}' share plural '{plural}'"
                )
            self._plurals[plural] = name

        self._validate()

    # ── Lookups ──

    @property
    def model_names(self) -> list[str]:
        return list(self._models)

    def has_model(self, model: str) -> bool:
        return model in self._models

    def require(self, model: str) -> ModelSpec:
        """Return the spec for ``model`` or raise NotFoundError."""
        spec = self._models.get(model)
        if spec is None:
            raise NotFoundError(f"No model registered as '{model}'", model=model)
        return spec

    def plural(self, model: str) -> str:
        return self.require(model).plural or pluralize(model)

    def model_for_plural(self, plural: str) -> str | None:
        return self._plurals.get(plural)

    def associations(self, model: str) -> dict[str, AssociationSpec]:
        return self.require(model).associations

    def association(self, model: str, name: str) -> AssociationSpec:
        assoc = self.associations(model).get(name)
        if assoc is None:
            raise NotFoundError(
                f"Model '{model}' has no association '{name}'", model=model
            )
        return assoc

    def association_keys(self, model: str) -> set[str]:
        """Association names and their foreign keys for ``model``."""
        keys: set[str] = set()
        for name, assoc in self.associations(model).items():
            keys.add(name)
            keys.add(assoc.foreign_key(name))
        return keys

    # ── Inverses ──

    def inverse_for(self, model: str, name: str, target_model: str) -> str | None:
        """Name of the association on ``target_model`` that mirrors ``model.name``.

        Returns None for one-way associations.
        """
        key = (model, name, target_model)
        if key not in self._inverse_cache:
            self._inverse_cache[key] = self._find_inverse(model, name, target_model)
        return self._inverse_cache[key]

    def _find_inverse(self, model: str, name: str, target_model: str) -> str | None:
        assoc = self.association(model, name)
        target = self.require(target_model)

        if assoc.inverse is False:
            return None

        if isinstance(assoc.inverse, str):
            candidate = target.associations.get(assoc.inverse)
            if candidate is None and assoc.polymorphic:
                return None
            if candidate is None:
                raise ValidationError(
                    f"{model}.{name} names inverse '{assoc.inverse}', "
                    f"which '{target_model}' does not declare"
                )
            if not candidate.polymorphic and candidate.model != model:
                raise ValidationError(
                    f"{model}.{name} names inverse {target_model}.{assoc.inverse}, "
                    f"which points at '{candidate.model}', not '{model}'"
                )
            if candidate.inverse is False or (
                isinstance(candidate.inverse, str) and candidate.inverse != name
            ):
                raise ValidationError(
                    f"{model}.{name} and {target_model}.{assoc.inverse} disagree about their inverse"
                )
            return assoc.inverse

        def points_back(candidate_name: str, candidate: AssociationSpec) -> bool:
            if target_model == model and candidate_name == name:
                return False
            return candidate.polymorphic or candidate.model == model

        explicit = [
            n
            for n, c in target.associations.items()
            if c.inverse == name and points_back(n, c)
        ]
        if len(explicit) > 1:
            raise ValidationError(
                f"{model}.{name} is claimed as inverse by several associations "
                f"on '{target_model}': {', '.join(explicit)}"
            )
        if explicit:
            return explicit[0]

        # Polymorphic associations only pair when one side names the other.
        if assoc.polymorphic:
            return None
        implicit = [
            n
            for n, c in target.associations.items()
            if c.inverse is None and not c.polymorphic and points_back(n, c)
        ]
        if len(implicit) > 1:
            raise ValidationError(
                f"Ambiguous inverse for {model}.{name}: '{target_model}' declares "
                f"{', '.join(implicit)}. Set inverse= explicitly."
            )
        return implicit[0] if implicit else None

    def _validate(self) -> None:
        """Check targets exist and that every resolved inverse pair is symmetric."""
        for model, spec in self._models.items():
            for name, assoc in spec.associations.items():
                if assoc.polymorphic:
                    targets = list(self._models)
                else:
                    if assoc.model not in self._models:
                        raise ValidationError(
                            f"{model}.{name} points at unknown model '{assoc.model}'"
                        )
                    targets = [assoc.model]

                for target_model in targets:
                    inverse = self.inverse_for(model, name, target_model)
                    if inverse is None:
                        continue
                    back = self.inverse_for(target_model, inverse, model)
                    if back != name:
                        raise ValidationError(
                            f"Inverse mismatch: {model}.{name} -> {target_model}.{inverse} "
                            f"but {target_model}.{inverse} -> {model}.{back}"
                        )
                    logger.debug(
                        "Resolved inverse %s.%s <-> %s.%s", model, name, target_model, inverse
                    )
