"""
linkspine - relational semantics for a schema-less document store.

Declared parent/child and reference links between collections,
referential-integrity enforcement on delete, and denormalized "join"
retrieval.

- linkspine.core: errors, logging, settings, store protocol
- linkspine.relations: registry, cascading delete, graph population
- linkspine.stores: in-memory and MongoDB document stores
- linkspine.models: declarative models built on pydantic
"""

__version__ = "0.1.0"

from linkspine.connection import connect, create_store
from linkspine.core.errors import (
    CascadeCycleError,
    ConstraintViolation,
    LinkSpineError,
    RegistryUninitialized,
    StoreError,
)
from linkspine.models import (
    ForeignKey,
    Model,
    Reference,
    Unique,
    UniqueIfSame,
    build_registry,
    register,
)
from linkspine.relations import (
    CascadeDeleteEngine,
    CascadeReport,
    GraphPopulationEngine,
    OnDelete,
    RegistryBuilder,
    RelationLink,
    RelationshipRegistry,
    cascade_delete,
    get_registry,
    install_registry,
    populate,
)

__all__ = [
    "__version__",
    # Operations
    "cascade_delete",
    "populate",
    "register",
    "connect",
    "create_store",
    # Relations
    "OnDelete",
    "RelationLink",
    "RelationshipRegistry",
    "RegistryBuilder",
    "install_registry",
    "get_registry",
    "CascadeDeleteEngine",
    "CascadeReport",
    "GraphPopulationEngine",
    "build_registry",
    # Models
    "Model",
    "ForeignKey",
    "Reference",
    "Unique",
    "UniqueIfSame",
    # Errors
    "LinkSpineError",
    "StoreError",
    "RegistryUninitialized",
    "CascadeCycleError",
    "ConstraintViolation",
]
