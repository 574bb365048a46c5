"""Factories, traits and the graph builder."""

from .definition import (
    AssociationHelper,
    FactoryDefinition,
    TraitDefinition,
    association,
    factory,
    merge_definitions,
    sequence,
    trait,
)
from .composer import ComposedFactory, compose
from .resolver import AttributeContext, resolve_attributes
from .builder import CreationFrame, GraphBuilder
from .fakes import fake

__all__ = [
    "AssociationHelper",
    "FactoryDefinition",
    "TraitDefinition",
    "association",
    "factory",
    "merge_definitions",
    "sequence",
    "trait",
    "ComposedFactory",
    "compose",
    "AttributeContext",
    "resolve_attributes",
    "CreationFrame",
    "GraphBuilder",
    "fake",
]
