"""Document store registry and factory.

Manifesto:
    Consumers should never hard-code store class names. The registry maps
    store kinds to classes and ``get_store()`` creates an instance from
    keyword arguments.

Features:
    - ``StoreRegistry`` singleton with pre-registered defaults
    - ``register()`` for custom / third-party stores
    - ``get_store()`` factory: kind + kwargs → store instance

Tags:
    linkspine, document-store, registry, factory, singleton

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from linkspine.core.errors import ConfigError

from .memory import InMemoryDocumentStore
from .mongo import MongoDocumentStore


class StoreRegistry:
    """
    Registry for document store factories.

    Pre-registered stores:
    - ``memory``: :class:`InMemoryDocumentStore`
    - ``mongodb`` / ``mongo``: :class:`MongoDocumentStore`
    """

    def __init__(self):
        self._factories: dict[str, type] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._factories["memory"] = InMemoryDocumentStore
        self._factories["mongodb"] = MongoDocumentStore
        self._factories["mongo"] = MongoDocumentStore  # Alias

    def register(self, name: str, store_class: type) -> None:
        """Register a store factory."""
        self._factories[name.lower()] = store_class

    def create(self, name: str, **kwargs: Any) -> Any:
        """Create a store by name."""
        name = name.lower()
        if name not in self._factories:
            raise ConfigError(f"Unknown document store: {name}")
        return self._factories[name](**kwargs)

    def list_stores(self) -> list[str]:
        return sorted(self._factories.keys())


# Global registry
store_registry = StoreRegistry()


def get_store(kind: str, **kwargs: Any) -> Any:
    """
    Get a document store by kind.

    Usage:
        store = get_store("memory")
        store = get_store("mongodb", url="mongodb://localhost:27017", database="shop")
    """
    return store_registry.create(kind, **kwargs)


__all__ = [
    "StoreRegistry",
    "store_registry",
    "get_store",
]
