"""
Shared pytest fixtures and configuration for linkspine tests.

This module provides:
- Process-registry and settings cleanup for test isolation
- An in-memory document store
- The users / posts / comments schema used throughout the relation tests

Usage:
    Fixtures are auto-discovered by pytest:

    async def test_something(store, blog_registry):
        await cascade_delete(store, "users", 1, registry=blog_registry)
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure linkspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from linkspine.core.settings import reset_settings
from linkspine.relations.registry import (
    RegistryBuilder,
    RelationshipRegistry,
    reset_registry,
)
from linkspine.stores.memory import InMemoryDocumentStore


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests by location; skip integration tests without a MongoDB URL."""
    skip_mongo = pytest.mark.skip(reason="LINKSPINE_MONGO_URL not set")
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if "integration" in markers:
            if not os.environ.get("LINKSPINE_MONGO_URL"):
                item.add_marker(skip_mongo)
        elif "unit" not in markers:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_process_state() -> Generator[None, None, None]:
    """
    Uninstall the process registry and drop cached settings around each test.

    Nothing installed by one test may leak into the next.
    """
    reset_registry()
    reset_settings()
    yield
    reset_registry()
    reset_settings()


# =============================================================================
# Store and Schema Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


def blog_builder(post_policy: str | None = "cascade") -> RegistryBuilder:
    """
    users <- posts.author_id (post_policy) <- comments.post_id (cascade).
    """
    return (
        RegistryBuilder()
        .foreign_key("posts", "author_id", "users", on_delete=post_policy)
        .foreign_key("comments", "post_id", "posts", on_delete="cascade")
        .unique("users", "name")
    )


@pytest.fixture
def blog_registry() -> RelationshipRegistry:
    return blog_builder().build()


@pytest.fixture
def make_blog_registry():
    """Factory for the blog schema with a different ``posts.author_id`` policy."""

    def _make(post_policy: str | None = "cascade") -> RelationshipRegistry:
        return blog_builder(post_policy).build()

    return _make


@pytest_asyncio.fixture
async def blog_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """
    users/1 with posts/10 and comments/100.

    The journal is cleared after seeding so tests only see their own calls.
    """
    await store.insert_one("users", {"_id": 1, "name": "ada"})
    await store.insert_one("posts", {"_id": 10, "author_id": 1, "title": "hello"})
    await store.insert_one("comments", {"_id": 100, "post_id": 10, "body": "first"})
    store.journal.clear()
    return store
