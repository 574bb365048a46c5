"""All Pydantic models for Backdrop, organized by domain.

- schema.py: model and association declarations, SchemaRegistry
- server.py: declarative server files (factories, hooks, fixtures, seeds)
"""

# Schema declarations
from .schema import (
    AssociationSpec,
    ModelSpec,
    SchemaRegistry,
    belongs_to,
    has_many,
)

# Server files
from .server import (
    HookSpec,
    TraitSpec,
    FactorySpec,
    SeedSpec,
    ServerMeta,
    ServerSpec,
)

__all__ = [
    "AssociationSpec",
    "ModelSpec",
    "SchemaRegistry",
    "belongs_to",
    "has_many",
    "HookSpec",
    "TraitSpec",
    "FactorySpec",
    "SeedSpec",
    "ServerMeta",
    "ServerSpec",
]
