"""Relationship engine -- registry, cascading delete and graph population.

Architecture::

    types.py       OnDelete policy enum + RelationLink edge
    registry.py    RelationshipRegistry (frozen) + RegistryBuilder + process install
    cascade.py     CascadeDeleteEngine (work-list, fail-stop) + cascade_delete()
    populate.py    GraphPopulationEngine (reverse then forward) + populate()

Tags:
    linkspine, relations, referential-integrity, denormalization

Doc-Types:
    package-overview, module-index
"""

from .cascade import CascadeDeleteEngine, CascadeReport, cascade_delete
from .populate import GraphPopulationEngine, populate
from .registry import (
    RegistryBuilder,
    RelationshipRegistry,
    get_registry,
    install_registry,
    is_registry_installed,
    reset_registry,
)
from .types import OnDelete, RelationLink

__all__ = [
    "OnDelete",
    "RelationLink",
    "RelationshipRegistry",
    "RegistryBuilder",
    "install_registry",
    "get_registry",
    "is_registry_installed",
    "reset_registry",
    "CascadeDeleteEngine",
    "CascadeReport",
    "cascade_delete",
    "GraphPopulationEngine",
    "populate",
]
