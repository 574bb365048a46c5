"""Factory and trait definitions.

Definitions are plain composable values, not a class hierarchy:

    post = factory(
        title=lambda i, r: f"Post {i}",
        slug=lambda i, r: r["title"].lower().replace(" ", "-"),
        user=association(),
        published=trait(published_at="2024-01-01"),
        after_create=add_comments,
    )
    featured_post = post.extend(featured=True)

Attribute values are either constants, ``fn(index, ctx)`` callables, or
``association(...)`` helpers. Any ``TraitDefinition`` passed as a field
becomes a named trait.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from .resolver import AttributeContext
    from ..store.record import Record

AttributeFunction = Callable[[int, "AttributeContext"], Any]
Hook = Callable[["Record", Any], None]


@dataclass(frozen=True)
class AssociationHelper:
    """Marks a factory attribute whose value is a freshly created related record."""

    traits: tuple[str, ...] = ()
    overrides: Mapping[str, Any] = field(default_factory=dict)


def association(*traits: str, **overrides: Any) -> AssociationHelper:
    """Declare a belongs-to attribute that the builder fills with a new record.

    The related record is created with the given traits and overrides, unless
    the caller supplies the attribute (or its foreign key) explicitly.
    """
    return AssociationHelper(traits=tuple(traits), overrides=dict(overrides))


def sequence(template: str) -> AttributeFunction:
    """Attribute function formatting the creation index into ``template``.

    Example:
        email=sequence("user{}@example.com")
    """

    def generate(index: int, ctx: AttributeContext) -> str:
        return template.format(index)

    return generate


@dataclass(frozen=True)
class TraitDefinition:
    """A named, optional partial factory."""

    attributes: dict[str, Any] = field(default_factory=dict)
    after_create: Hook | None = None


@dataclass(frozen=True)
class FactoryDefinition:
    """Recipe for a model's attributes, with optional hook and traits."""

    attributes: dict[str, Any] = field(default_factory=dict)
    after_create: Hook | None = None
    traits: dict[str, TraitDefinition] = field(default_factory=dict)

    @property
    def trait_names(self) -> list[str]:
        return list(self.traits)

    def extend(
        self,
        extension: FactoryDefinition | None = None,
        /,
        *,
        after_create: Hook | None = None,
        **fields: Any,
    ) -> FactoryDefinition:
        """Return a new definition with ``extension`` (or ``fields``) merged on top."""
        if extension is None:
            extension = factory(after_create=after_create, **fields)
        elif fields or after_create is not None:
            raise TypeError("Pass either a FactoryDefinition or keyword fields, not both")
        return merge_definitions(self, extension)


def _split_fields(
    attributes: Mapping[str, Any] | None, fields: Mapping[str, Any]
) -> tuple[dict[str, Any], dict[str, TraitDefinition]]:
    merged = {**(attributes or {}), **fields}
    attrs: dict[str, Any] = {}
    traits: dict[str, TraitDefinition] = {}
    for name, value in merged.items():
        if isinstance(value, TraitDefinition):
            traits[name] = value
        else:
            attrs[name] = value
    return attrs, traits


def trait(
    attributes: Mapping[str, Any] | None = None,
    /,
    *,
    after_create: Hook | None = None,
    **fields: Any,
) -> TraitDefinition:
    """Build a trait from attribute fields and an optional hook.

    ``attributes`` accepts names that are not valid keywords.
    """
    attrs, nested = _split_fields(attributes, fields)
    if nested:
        raise TypeError(f"Traits cannot contain traits: {', '.join(nested)}")
    return TraitDefinition(attributes=attrs, after_create=after_create)


def factory(
    attributes: Mapping[str, Any] | None = None,
    /,
    *,
    after_create: Hook | None = None,
    **fields: Any,
) -> FactoryDefinition:
    """Build a factory; ``TraitDefinition`` fields become named traits."""
    attrs, traits = _split_fields(attributes, fields)
    return FactoryDefinition(attributes=attrs, after_create=after_create, traits=traits)


def merge_definitions(
    base: FactoryDefinition, extension: FactoryDefinition
) -> FactoryDefinition:
    """Merge two definitions; the extension wins on every conflict.

    Attributes keep the position of their first declaration. The extension's
    hook replaces the base hook only when it defines one.
    """
    return FactoryDefinition(
        attributes={**base.attributes, **extension.attributes},
        after_create=extension.after_create or base.after_create,
        traits={**base.traits, **extension.traits},
    )
