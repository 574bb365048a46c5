"""Compile declarative factory specs into FactoryDefinitions.

YAML attribute directives map onto the same building blocks Python factories
use:

    {formula: "title.lower()"}           -> fn(index, ctx) via eval_safe
    {fake: email}                        -> fake("email")
    {sequence: "user{}@example.com"}     -> sequence(...)
    {association: {traits: [admin]}}     -> association("admin")
    {value: {nested: mapping}}           -> constant mapping
    anything else                        -> constant
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping

from ..core.models.server import FactorySpec, HookSpec, TraitSpec
from ..errors import SpecError
from ..utils.eval_safe import compile_formula, eval_formula
from .definition import (
    AttributeFunction,
    FactoryDefinition,
    Hook,
    association,
    factory,
    merge_definitions,
    sequence,
    trait,
)
from .fakes import fake

logger = logging.getLogger(__name__)

# Directive key -> keys allowed alongside it
DIRECTIVES: dict[str, frozenset[str]] = {
    "formula": frozenset(),
    "fake": frozenset({"args", "kwargs"}),
    "sequence": frozenset(),
    "association": frozenset(),
    "value": frozenset(),
}


class FormulaScope(Mapping[str, Any]):
    """Names visible to a formula: ``i``/``index`` plus the record so far."""

    def __init__(self, index: int, ctx: Mapping[str, Any]):
        self._index = index
        self._ctx = ctx

    def __getitem__(self, key: str) -> Any:
        if key in ("i", "index") and key not in self._ctx:
            return self._index
        return self._ctx[key]

    def __contains__(self, key: object) -> bool:
        return key in ("i", "index") or key in self._ctx

    def __iter__(self) -> Iterator[str]:
        yield "i"
        yield "index"
        yield from self._ctx

    def __len__(self) -> int:
        return len(self._ctx) + 2


def formula(expression: str) -> AttributeFunction:
    """Attribute function evaluating ``expression`` against the record so far."""
    tree = compile_formula(expression)

    def evaluate(index: int, ctx: Mapping[str, Any]) -> Any:
        return eval_formula(tree, FormulaScope(index, ctx))

    evaluate.__name__ = "formula"
    return evaluate


def compile_attribute(owner: str, name: str, value: Any) -> Any:
    """Turn one declarative attribute value into a factory attribute.

    Raises:
        SpecError: If a directive mapping is malformed
    """
    if not isinstance(value, dict):
        return value
    directives = [key for key in value if key in DIRECTIVES]
    if not directives:
        return value
    if len(directives) > 1:
        raise SpecError(
            f"{owner}.{name}: only one of {', '.join(DIRECTIVES)} may be given"
        )

    directive = directives[0]
    extra = set(value) - {directive} - DIRECTIVES[directive]
    if extra:
        raise SpecError(
            f"{owner}.{name}: unexpected keys for '{directive}': {', '.join(sorted(extra))}"
        )
    body = value[directive]

    if directive == "formula":
        if not isinstance(body, str):
            raise SpecError(f"{owner}.{name}: formula must be a string")
        return formula(body)

    if directive == "fake":
        return fake(str(body), *value.get("args", []), **value.get("kwargs", {}))

    if directive == "sequence":
        return sequence(str(body))

    if directive == "association":
        body = body or {}
        if not isinstance(body, dict):
            raise SpecError(f"{owner}.{name}: association takes traits and overrides")
        unknown = set(body) - {"traits", "overrides"}
        if unknown:
            raise SpecError(
                f"{owner}.{name}: unexpected association keys: {', '.join(sorted(unknown))}"
            )
        return association(*body.get("traits", []), **body.get("overrides", {}))

    return body


def compile_hooks(owner: str, steps: list[HookSpec]) -> Hook | None:
    """Chain declarative after_create steps into one hook.

    Each step calls ``handle.create_list``; ``link`` names the association on
    the created model that receives the parent record.
    """
    if not steps:
        return None

    def run_steps(record: Any, handle: Any) -> None:
        for step in steps:
            overrides = dict(step.overrides)
            if step.link:
                overrides[step.link] = record
            logger.debug(
                "%s after_create: %d x %s", owner, step.count, step.model
            )
            handle.create_list(step.model, step.count, *step.traits, **overrides)

    run_steps.__name__ = f"{owner}_after_create"
    return run_steps


def _compile_attributes(owner: str, attributes: dict[str, Any]) -> dict[str, Any]:
    return {
        name: compile_attribute(owner, name, value)
        for name, value in attributes.items()
    }


def compile_trait(owner: str, spec: TraitSpec):
    return trait(
        _compile_attributes(owner, spec.attributes),
        after_create=compile_hooks(owner, spec.after_create),
    )


def compile_factory(model: str, spec: FactorySpec) -> FactoryDefinition:
    """Compile one factory, ignoring ``extends``."""
    definition = factory(
        _compile_attributes(model, spec.attributes),
        after_create=compile_hooks(model, spec.after_create),
    )
    traits = {
        name: compile_trait(f"{model}[{name}]", trait_spec)
        for name, trait_spec in spec.traits.items()
    }
    return FactoryDefinition(
        attributes=definition.attributes,
        after_create=definition.after_create,
        traits=traits,
    )


def compile_factories(specs: Mapping[str, FactorySpec]) -> dict[str, FactoryDefinition]:
    """Compile all factories, resolving ``extends`` chains.

    Raises:
        SpecError: Unknown ``extends`` target or an ``extends`` cycle
    """
    compiled: dict[str, FactoryDefinition] = {}

    def resolve(model: str, chain: list[str]) -> FactoryDefinition:
        if model in compiled:
            return compiled[model]
        if model in chain:
            raise SpecError(f"Factory extends cycle: {' -> '.join(chain + [model])}")
        spec = specs[model]
        own = compile_factory(model, spec)
        if spec.extends is not None:
            if spec.extends not in specs:
                raise SpecError(
                    f"Factory '{model}' extends unknown factory '{spec.extends}'"
                )
            own = merge_definitions(resolve(spec.extends, chain + [model]), own)
        compiled[model] = own
        return own

    for model in specs:
        resolve(model, [])
    return {model: compiled[model] for model in specs}
