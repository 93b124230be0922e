"""Tests for linkspine.relations.populate: reverse expansion and forward resolution."""

from __future__ import annotations

import copy

import pytest
from structlog.testing import capture_logs

from linkspine.core.errors import StoreError
from linkspine.relations.populate import GraphPopulationEngine, populate
from linkspine.relations.registry import RegistryBuilder
from linkspine.stores.memory import InMemoryDocumentStore


@pytest.fixture
def library_registry():
    """
    books.author_id -> authors (reverse and forward), books.tag_ids -> tags (forward),
    reviews.book_id -> books (reverse).
    """
    return (
        RegistryBuilder()
        .foreign_key("books", "author_id", "authors")
        .reference("books", "author_id", "authors")
        .reference("books", "tag_ids", "tags")
        .foreign_key("reviews", "book_id", "books")
        .build()
    )


class TestReverseExpansion:
    @pytest.mark.asyncio
    async def test_users_posts_comments_scenario(self, blog_store, blog_registry):
        user = await blog_store.find_one("users", {"_id": 1})

        result = await populate(blog_store, user, "users", registry=blog_registry)

        assert result["name"] == "ada"
        assert [p["_id"] for p in result["posts"]] == [10]
        post = result["posts"][0]
        assert [c["_id"] for c in post["comments"]] == [100]
        assert post["comments"][0]["body"] == "first"

    @pytest.mark.asyncio
    async def test_document_without_links_is_unchanged(self, store, blog_registry):
        doc = {"_id": "t1", "label": "python"}

        result = await populate(store, doc, "tags", registry=blog_registry)

        assert result == doc

    @pytest.mark.asyncio
    async def test_unsaved_document_is_not_expanded(self, blog_store, blog_registry):
        doc = {"name": "draft"}

        result = await populate(blog_store, doc, "users", registry=blog_registry)

        assert result == {"name": "draft"}

    @pytest.mark.asyncio
    async def test_no_matches_attaches_nothing(self, store, blog_registry):
        await store.insert_one("users", {"_id": 2, "name": "grace"})
        user = await store.find_one("users", {"_id": 2})

        result = await populate(store, user, "users", registry=blog_registry)

        assert "posts" not in result

    @pytest.mark.asyncio
    async def test_input_document_is_not_mutated(self, blog_store, blog_registry):
        user = await blog_store.find_one("users", {"_id": 1})
        before = copy.deepcopy(user)

        await populate(blog_store, user, "users", registry=blog_registry)

        assert user == before

    @pytest.mark.asyncio
    async def test_collection_expanded_once_per_call(self, store):
        """Once ``comments`` yields matches under posts/10 it is skipped under posts/11."""
        registry = (
            RegistryBuilder()
            .foreign_key("posts", "author_id", "users")
            .foreign_key("comments", "post_id", "posts")
            .build()
        )
        await store.insert_one("users", {"_id": 1})
        await store.insert_many("posts", [{"_id": 10, "author_id": 1}, {"_id": 11, "author_id": 1}])
        await store.insert_many("comments", [{"_id": 100, "post_id": 10}, {"_id": 110, "post_id": 11}])
        user = await store.find_one("users", {"_id": 1})

        result = await populate(store, user, "users", registry=registry)

        first, second = result["posts"]
        assert [c["_id"] for c in first["comments"]] == [100]
        assert "comments" not in second

    @pytest.mark.asyncio
    async def test_collection_without_matches_is_not_skipped(self, store):
        """A sibling with no matches does not add the collection to the skip-set."""
        registry = (
            RegistryBuilder()
            .foreign_key("posts", "author_id", "users")
            .foreign_key("comments", "post_id", "posts")
            .build()
        )
        await store.insert_one("users", {"_id": 1})
        await store.insert_many("posts", [{"_id": 10, "author_id": 1}, {"_id": 11, "author_id": 1}])
        await store.insert_one("comments", {"_id": 110, "post_id": 11})
        user = await store.find_one("users", {"_id": 1})

        result = await populate(store, user, "users", registry=registry)

        first, second = result["posts"]
        assert "comments" not in first
        assert [c["_id"] for c in second["comments"]] == [110]

    @pytest.mark.asyncio
    async def test_mutual_foreign_keys_stop_at_ancestor(self, store):
        registry = (
            RegistryBuilder()
            .foreign_key("b", "a_id", "a")
            .foreign_key("a", "b_id", "b")
            .build()
        )
        await store.insert_one("a", {"_id": "a1", "b_id": "b1"})
        await store.insert_one("b", {"_id": "b1", "a_id": "a1"})

        with capture_logs() as logs:
            result = await populate(store, {"_id": "a1", "b_id": "b1"}, "a", registry=registry)

        (b1,) = result["b"]
        assert b1["a"] == [{"_id": "a1", "b_id": "b1"}]
        assert "reverse_reference_cycle_skipped" in [e["event"] for e in logs]

    @pytest.mark.asyncio
    async def test_self_referencing_reply_cycle(self, store):
        registry = RegistryBuilder().foreign_key("comments", "parent_id", "comments").build()
        await store.insert_many(
            "comments",
            [{"_id": "c1", "parent_id": "c2"}, {"_id": "c2", "parent_id": "c1"}],
        )
        comment = await store.find_one("comments", {"_id": "c1"})

        result = await populate(store, comment, "comments", registry=registry)

        (reply,) = result["comments"]
        assert reply["_id"] == "c2"
        assert reply["comments"] == [{"_id": "c1", "parent_id": "c2"}]

    @pytest.mark.asyncio
    async def test_reverse_key_overwrites_same_named_field(self, blog_store, blog_registry):
        await blog_store.update_one("users", {"_id": 1}, {"posts": "legacy"})
        user = await blog_store.find_one("users", {"_id": 1})

        result = await populate(blog_store, user, "users", registry=blog_registry)

        assert isinstance(result["posts"], list)


class TestCollectionFilter:
    @pytest.mark.asyncio
    async def test_filter_excludes_outer_collection(self, blog_store, blog_registry):
        user = await blog_store.find_one("users", {"_id": 1})

        result = await populate(blog_store, user, "users", ["tags"], registry=blog_registry)

        assert "posts" not in result

    @pytest.mark.asyncio
    async def test_single_collection_name_as_filter(self, blog_store, blog_registry):
        user = await blog_store.find_one("users", {"_id": 1})

        result = await populate(blog_store, user, "users", "posts", registry=blog_registry)

        assert [p["_id"] for p in result["posts"]] == [10]

    @pytest.mark.asyncio
    async def test_filter_applies_to_outer_level_only(self, blog_store, blog_registry):
        """``comments`` is not in the filter but is still expanded under posts."""
        user = await blog_store.find_one("users", {"_id": 1})

        result = await populate(blog_store, user, "users", ["posts"], registry=blog_registry)

        assert [c["_id"] for c in result["posts"][0]["comments"]] == [100]

    @pytest.mark.asyncio
    async def test_filter_restricts_forward_links(self, store, library_registry):
        await store.insert_one("authors", {"_id": "a1", "name": "Le Guin"})
        await store.insert_one("tags", {"_id": "t1", "label": "sf"})
        await store.insert_one("books", {"_id": "b1", "author_id": "a1", "tag_ids": ["t1"]})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", ["authors"], registry=library_registry)

        assert result["author_id"]["name"] == "Le Guin"
        assert result["tag_ids"] == ["t1"]


class TestForwardResolution:
    @pytest.mark.asyncio
    async def test_reference_replaced_by_record(self, store, library_registry):
        await store.insert_one("authors", {"_id": "a1", "name": "Le Guin"})
        await store.insert_one("books", {"_id": "b1", "author_id": "a1"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=library_registry)

        assert result["author_id"] == {"_id": "a1", "name": "Le Guin"}

    @pytest.mark.asyncio
    async def test_missing_target_leaves_identity(self, store, library_registry):
        await store.insert_one("books", {"_id": "b1", "author_id": "gone"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=library_registry)

        assert result["author_id"] == "gone"

    @pytest.mark.asyncio
    async def test_absent_field_is_skipped(self, store, library_registry):
        await store.insert_one("books", {"_id": "b1"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=library_registry)

        assert "author_id" not in result
        assert "tag_ids" not in result

    @pytest.mark.asyncio
    async def test_list_of_references_resolved_elementwise(self, store, library_registry):
        await store.insert_many("tags", [{"_id": "t1", "label": "sf"}, {"_id": "t2", "label": "classic"}])
        await store.insert_one("books", {"_id": "b1", "tag_ids": ["t2", "missing", "t1"]})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=library_registry)

        assert result["tag_ids"][0]["label"] == "classic"
        assert result["tag_ids"][1] == "missing"
        assert result["tag_ids"][2]["label"] == "sf"

    @pytest.mark.asyncio
    async def test_reverse_matches_resolve_their_references(self, store):
        """Each review found under a book has its own forward links resolved."""
        registry = (
            RegistryBuilder()
            .foreign_key("reviews", "book_id", "books")
            .reference("reviews", "reviewer_id", "people")
            .build()
        )
        await store.insert_one("people", {"_id": "p1", "name": "Ursula"})
        await store.insert_one("books", {"_id": "b1"})
        await store.insert_one("reviews", {"_id": "r1", "book_id": "b1", "reviewer_id": "p1"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=registry)

        assert result["reviews"][0]["reviewer_id"]["name"] == "Ursula"

    @pytest.mark.asyncio
    async def test_nested_forward_chain(self, store):
        registry = (
            RegistryBuilder()
            .reference("books", "author_id", "authors")
            .reference("authors", "agent_id", "agents")
            .build()
        )
        await store.insert_one("agents", {"_id": "g1", "name": "agency"})
        await store.insert_one("authors", {"_id": "a1", "agent_id": "g1"})
        await store.insert_one("books", {"_id": "b1", "author_id": "a1"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=registry)

        assert result["author_id"]["agent_id"]["name"] == "agency"

    @pytest.mark.asyncio
    async def test_reference_cycle_keeps_identity(self, store):
        registry = (
            RegistryBuilder()
            .reference("people", "partner_id", "people")
            .build()
        )
        await store.insert_many(
            "people",
            [{"_id": "p1", "partner_id": "p2"}, {"_id": "p2", "partner_id": "p1"}],
        )
        person = await store.find_one("people", {"_id": "p1"})

        result = await populate(store, person, "people", registry=registry)

        assert result["partner_id"]["_id"] == "p2"
        assert result["partner_id"]["partner_id"] == "p1"

    @pytest.mark.asyncio
    async def test_max_depth_bounds_resolution(self, store):
        registry = (
            RegistryBuilder()
            .reference("books", "author_id", "authors")
            .reference("authors", "agent_id", "agents")
            .build()
        )
        await store.insert_one("agents", {"_id": "g1"})
        await store.insert_one("authors", {"_id": "a1", "agent_id": "g1"})
        await store.insert_one("books", {"_id": "b1", "author_id": "a1"})
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=registry, max_depth=1)

        assert result["author_id"]["_id"] == "a1"
        assert result["author_id"]["agent_id"] == "g1"

    @pytest.mark.asyncio
    async def test_max_depth_defaults_to_settings(self, store, monkeypatch):
        registry = RegistryBuilder().reference("books", "author_id", "authors").build()
        await store.insert_one("authors", {"_id": "a1"})
        await store.insert_one("books", {"_id": "b1", "author_id": "a1"})
        monkeypatch.setenv("LINKSPINE_POPULATE_MAX_DEPTH", "1")
        book = await store.find_one("books", {"_id": "b1"})

        result = await populate(store, book, "books", registry=registry)

        assert result["author_id"] == {"_id": "a1"}


class TestPopulationErrors:
    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, blog_registry):
        class BrokenStore(InMemoryDocumentStore):
            async def find_many(self, collection, filter, *, skip=None, limit=None):
                raise StoreError("boom")

        engine = GraphPopulationEngine(BrokenStore(), blog_registry)

        with pytest.raises(StoreError, match="boom"):
            await engine.populate({"_id": 1}, "users")
