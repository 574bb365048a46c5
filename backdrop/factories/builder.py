"""Graph builder: turns creation requests into wired records.

Per request:
1. compose the factory with the requested traits
2. create records for association() attributes the caller did not supply
3. resolve attributes (overrides first, then declaration order)
4. insert through the record store, which wires associations
5. run the post-creation hooks in order

Every request runs inside a CreationFrame on an explicit stack. Hooks that
create more records push further frames, and the stack depth is capped so
a hook that keeps re-creating its own type fails with RecursionLimitError
instead of exhausting the interpreter. max_depth is capped at
MAX_DEPTH_CEILING, and a stack overflow that still escapes a hook is
reported as RecursionLimitError as well. A failing step discards the frame's
remaining hooks. Records inserted before the failure stay in the store;
there is no rollback.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Sequence

from ..config import MAX_DEPTH_CEILING, get_config
from ..errors import RecursionLimitError, UnsupportedAssociationError, ValidationError
from ..store.db import RecordStore
from ..store.record import Record
from .composer import ComposedFactory, compose
from .definition import AssociationHelper, FactoryDefinition, Hook
from .resolver import resolve_attributes

logger = logging.getLogger(__name__)


@dataclass
class CreationFrame:
    """One in-progress creation request."""

    model: str
    index: int
    traits: tuple[str, ...] = ()
    pending_hooks: deque[Hook] = field(default_factory=deque)

    @property
    def label(self) -> str:
        traits = f"[{', '.join(self.traits)}]" if self.traits else ""
        return f"{self.model}#{self.index}{traits}"


def parse_creation_args(
    args: Sequence[Any], kwargs: Mapping[str, Any]
) -> tuple[list[str], dict[str, Any]]:
    """Split ``create`` varargs into trait names and merged overrides.

    Strings are trait names, mappings are overrides; keyword arguments are
    merged last.
    """
    traits: list[str] = []
    overrides: dict[str, Any] = {}
    for arg in args:
        if isinstance(arg, str):
            traits.append(arg)
        elif isinstance(arg, Mapping):
            overrides.update(arg)
        else:
            raise TypeError(
                f"Expected trait names or override dicts, got {type(arg).__name__}"
            )
    overrides.update(kwargs)
    return traits, overrides


class GraphBuilder:
    """Creates records (and their related records) from factories."""

    def __init__(
        self,
        store: RecordStore,
        factories: Mapping[str, FactoryDefinition] | None = None,
        *,
        handle: Any = None,
        max_depth: int | None = None,
        seed: int | None = None,
        locale: str | None = None,
    ):
        config = get_config()
        self.store = store
        self.factories: dict[str, FactoryDefinition] = dict(factories or {})
        self.handle = handle if handle is not None else self
        self.max_depth = max_depth if max_depth is not None else config.factories.max_depth
        self.seed = seed if seed is not None else config.factories.seed
        self.locale = locale or config.factories.locale
        self._stack: list[CreationFrame] = []
        self._deepest: list[str] = []

        if not 1 <= self.max_depth <= MAX_DEPTH_CEILING:
            raise ValidationError(
                f"max_depth must be between 1 and {MAX_DEPTH_CEILING}, got {self.max_depth}"
            )

        for model in self.factories:
            store.registry.require(model)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def chain(self) -> list[str]:
        return [frame.label for frame in self._stack]

    # ── Public API ──

    def create(self, model: str, *traits_and_overrides: Any, **overrides: Any) -> Record:
        """Create one record.

        Examples:
            builder.create("post")
            builder.create("post", "published", title="X")
            builder.create("post", "published", {"title": "X"})
        """
        traits, merged = parse_creation_args(traits_and_overrides, overrides)
        return self._enter(model, traits, merged)

    def create_list(
        self, model: str, count: int, *traits_and_overrides: Any, **overrides: Any
    ) -> list[Record]:
        """Create ``count`` records, running the full pipeline for each."""
        if count < 0:
            raise ValidationError(f"count must be >= 0, got {count}")
        traits, merged = parse_creation_args(traits_and_overrides, overrides)
        return [self._enter(model, traits, dict(merged)) for _ in range(count)]

    # ── Pipeline ──

    def _enter(
        self, model: str, traits: list[str], overrides: dict[str, Any]
    ) -> Record:
        """Run one request; at the top level a stack overflow becomes RecursionLimitError."""
        if self._stack:
            return self._build(model, traits, overrides)
        self._deepest = []
        try:
            return self._build(model, traits, overrides)
        except RecursionError as e:
            raise RecursionLimitError(self._deepest, self.max_depth) from e

    def _build(
        self, model: str, traits: list[str], overrides: dict[str, Any]
    ) -> Record:
        self.store.registry.require(model)
        composed = compose(model, self.factories.get(model), traits)

        if len(self._stack) >= self.max_depth:
            raise RecursionLimitError(self.chain + [model], self.max_depth)

        index = self.store.next_creation_index(model)
        frame = CreationFrame(model=model, index=index, traits=tuple(traits))
        self._stack.append(frame)
        if len(self._stack) > len(self._deepest):
            self._deepest = self.chain
        try:
            composed, overrides = self._synthesize_associations(composed, dict(overrides))
            attrs = resolve_attributes(
                composed, index, overrides, seed=self.seed, locale=self.locale
            )
            record = self.store.insert(model, attrs)
            logger.debug("Created %s:%s at depth %d", model, record.id, len(self._stack))

            frame.pending_hooks.extend(composed.hooks)
            while frame.pending_hooks:
                hook = frame.pending_hooks.popleft()
                current = self.store.find(model, record.id) or record
                logger.debug(
                    "Running hook %s for %s:%s",
                    getattr(hook, "__name__", repr(hook)), model, record.id,
                )
                hook(current, self.handle)

            return self.store.find(model, record.id) or record
        finally:
            self._stack.pop()

    def _synthesize_associations(
        self, composed: ComposedFactory, overrides: dict[str, Any]
    ) -> tuple[ComposedFactory, dict[str, Any]]:
        """Create related records for association() attributes not overridden.

        Helpers whose foreign key the caller supplied are dropped from the
        returned factory; the key itself is wired by the store.
        """
        model = composed.model
        associations = self.store.registry.associations(model)
        covered: set[str] = set()
        for name, value in composed.attributes.items():
            if not isinstance(value, AssociationHelper):
                continue
            spec = associations.get(name)
            if spec is None:
                raise UnsupportedAssociationError(
                    f"{model}.{name} uses association() but '{model}' declares no such association"
                )
            if not spec.is_singular:
                raise UnsupportedAssociationError(
                    f"{model}.{name} is a has_many association; create its members in an after_create hook"
                )
            if spec.polymorphic:
                raise UnsupportedAssociationError(
                    f"{model}.{name} is polymorphic; its type is unknown, create it in an after_create hook"
                )
            if name in overrides:
                continue
            if spec.foreign_key(name) in overrides:
                covered.add(name)
                continue
            overrides[name] = self._build(
                spec.model, list(value.traits), dict(value.overrides)
            )

        if covered:
            attributes = {
                k: v for k, v in composed.attributes.items() if k not in covered
            }
            composed = replace(composed, attributes=attributes)
        return composed, overrides
