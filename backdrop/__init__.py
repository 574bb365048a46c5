"""Backdrop: an in-memory relational mock backend with factories and traits.

    from backdrop import Server, belongs_to, has_many, factory, trait, association

    server = Server(
        models={"user": {"posts": has_many()}, "post": {"user": belongs_to()}},
        factories={"post": factory(title=lambda i, r: f"Post {i}", user=association())},
    )
    post = server.create("post")
"""

__version__ = "0.1.0"

from .config import BackdropConfig, configure, get_config, reset_config
from .core.models import (
    AssociationSpec,
    ModelSpec,
    SchemaRegistry,
    ServerSpec,
    belongs_to,
    has_many,
)
from .errors import (
    BackdropError,
    DanglingReferenceError,
    FormulaError,
    NotFoundError,
    RecursionLimitError,
    SpecError,
    TypeMismatchError,
    UnknownTraitError,
    UndeclaredAttributeError,
    UnresolvedDependencyError,
    UnsupportedAssociationError,
    ValidationError,
)
from .factories import (
    FactoryDefinition,
    GraphBuilder,
    TraitDefinition,
    association,
    factory,
    fake,
    sequence,
    trait,
)
from .schema import ModelCollection, Schema
from .server import Server
from .store import Record, RecordStore, check_integrity

__all__ = [
    "__version__",
    # Config
    "BackdropConfig",
    "configure",
    "get_config",
    "reset_config",
    # Declarations
    "AssociationSpec",
    "ModelSpec",
    "SchemaRegistry",
    "ServerSpec",
    "belongs_to",
    "has_many",
    # Errors
    "BackdropError",
    "DanglingReferenceError",
    "FormulaError",
    "NotFoundError",
    "RecursionLimitError",
    "SpecError",
    "TypeMismatchError",
    "UnknownTraitError",
    "UndeclaredAttributeError",
    "UnresolvedDependencyError",
    "UnsupportedAssociationError",
    "ValidationError",
    # Factories
    "FactoryDefinition",
    "GraphBuilder",
    "TraitDefinition",
    "association",
    "factory",
    "fake",
    "sequence",
    "trait",
    # Store
    "ModelCollection",
    "Schema",
    "Server",
    "Record",
    "RecordStore",
    "check_integrity",
]
