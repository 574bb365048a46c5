"""Trait composition.

Merges a base factory with named traits in the order the caller names them.
Attributes merge left to right (base first, later traits win). Hooks never
replace each other: the base hook runs first, then each trait hook in the
order the traits were named.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..errors import UnknownTraitError
from .definition import FactoryDefinition, Hook

logger = logging.getLogger(__name__)


@dataclass
class ComposedFactory:
    """A factory with its requested traits folded in."""

    model: str
    attributes: dict[str, Any] = field(default_factory=dict)
    hooks: list[Hook] = field(default_factory=list)
    traits: tuple[str, ...] = ()


def compose(
    model: str,
    definition: FactoryDefinition | None,
    trait_names: Sequence[str] = (),
) -> ComposedFactory:
    """Merge ``definition`` with ``trait_names`` into one ComposedFactory.

    Raises:
        UnknownTraitError: If a name is not declared on the factory
    """
    definition = definition or FactoryDefinition()

    # Validate every name before merging anything
    for name in trait_names:
        if name not in definition.traits:
            raise UnknownTraitError(model, name, definition.trait_names)

    attributes = dict(definition.attributes)
    hooks: list[Hook] = []
    if definition.after_create is not None:
        hooks.append(definition.after_create)

    for name in trait_names:
        trait_def = definition.traits[name]
        attributes.update(trait_def.attributes)
        if trait_def.after_create is not None:
            hooks.append(trait_def.after_create)

    if trait_names:
        logger.debug("Composed %s with traits %s", model, ", ".join(trait_names))
    return ComposedFactory(
        model=model,
        attributes=attributes,
        hooks=hooks,
        traits=tuple(trait_names),
    )
