"""Attribute resolution for one new record.

Resolution order:
1. Caller overrides, taken as already-resolved values (they always win)
2. Remaining factory attributes, evaluated in declaration order

Function attributes receive ``(index, ctx)``. ``ctx`` is an AttributeContext
over the partially built record. Reading an attribute that is declared but
not yet resolved raises UnresolvedDependencyError; there is no implicit
reordering. Reading a key that is neither declared nor overridden raises
UndeclaredAttributeError, which is also a KeyError so ``ctx.get`` works.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterator, Mapping

from ..errors import (
    UndeclaredAttributeError,
    UnresolvedDependencyError,
    UnsupportedAssociationError,
)
from .composer import ComposedFactory
from .definition import AssociationHelper

logger = logging.getLogger(__name__)


class AttributeContext(Mapping[str, Any]):
    """Read-only view of the record being built.

    Supports ``ctx["title"]``, ``ctx.title`` and ``ctx.get("title")``.
    ``model``, ``index``, ``seed``, ``locale`` and ``current`` describe the
    creation in progress.
    """

    def __init__(
        self,
        values: dict[str, Any],
        pending: set[str],
        *,
        model: str = "",
        index: int = 0,
        seed: int = 0,
        locale: str = "en_US",
    ):
        self._values = values
        self._pending = pending
        self.model = model
        self.index = index
        self.seed = seed
        self.locale = locale
        self.current: str | None = None

    def __getitem__(self, key: str) -> Any:
        if key in self._values:
            return self._values[key]
        if key in self._pending:
            raise UnresolvedDependencyError(key, requested_by=self.current)
        raise UndeclaredAttributeError(key, requested_by=self.current, model=self.model)

    def __contains__(self, key: object) -> bool:
        return key in self._values or key in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(
                f"'{self.model}' record has no attribute '{name}' yet"
            ) from None


def _copy_constant(value: Any) -> Any:
    # Containers are copied so records never share mutable defaults
    if isinstance(value, (dict, list, set)):
        return copy.deepcopy(value)
    return value


def resolve_attributes(
    composed: ComposedFactory,
    index: int,
    overrides: Mapping[str, Any] | None = None,
    *,
    seed: int = 0,
    locale: str = "en_US",
) -> dict[str, Any]:
    """Produce the concrete attribute dict for one record.

    Args:
        composed: Factory with traits already merged
        index: Creation index for the model (0-based, per model)
        overrides: Caller-supplied values; these are never evaluated
        seed: Base seed handed to attribute functions through the context
        locale: Locale handed to attribute functions through the context

    Returns:
        Attributes in declaration order, followed by override-only keys

    Raises:
        UnresolvedDependencyError: A function read a sibling declared later
        UnsupportedAssociationError: An association() helper reached the
            resolver without being synthesized by the graph builder
    """
    values: dict[str, Any] = dict(overrides or {})
    declared = [name for name in composed.attributes if name not in values]
    pending = set(declared)
    ctx = AttributeContext(
        values, pending, model=composed.model, index=index, seed=seed, locale=locale
    )

    for name in declared:
        spec = composed.attributes[name]
        ctx.current = name
        if isinstance(spec, AssociationHelper):
            raise UnsupportedAssociationError(
                f"{composed.model}.{name} uses association(); create it through the graph builder"
            )
        if callable(spec):
            value = spec(index, ctx)
        else:
            value = _copy_constant(spec)
        values[name] = value
        pending.discard(name)

    ordered = {name: values[name] for name in composed.attributes if name in values}
    for name, value in values.items():
        ordered.setdefault(name, value)
    return ordered
