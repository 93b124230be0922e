"""Tests for document store registration and the get_store factory."""

from __future__ import annotations

import pytest

from linkspine.core.errors import ConfigError
from linkspine.stores.memory import InMemoryDocumentStore
from linkspine.stores.mongo import MongoDocumentStore
from linkspine.stores.registry import StoreRegistry, get_store, store_registry


class TestStoreRegistry:
    def test_defaults_registered(self) -> None:
        assert store_registry.list_stores() == ["memory", "mongo", "mongodb"]

    def test_memory(self) -> None:
        assert isinstance(get_store("memory"), InMemoryDocumentStore)

    def test_mongo_alias_and_kwargs(self) -> None:
        store = get_store("Mongo", url="mongodb://localhost:27017", database="shop")

        assert isinstance(store, MongoDocumentStore)
        assert store.database_name == "shop"

    def test_unknown_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown document store"):
            get_store("couchdb")

    def test_register_custom(self) -> None:
        class JournalOnlyStore(InMemoryDocumentStore):
            pass

        registry = StoreRegistry()
        registry.register("Journal", JournalOnlyStore)

        assert isinstance(registry.create("journal"), JournalOnlyStore)
        assert "journal" not in store_registry.list_stores()
