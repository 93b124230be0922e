"""
Canonical protocol definitions for linkspine.

This module defines the contract between the relationship engines and the
document store. The engines only ever see a ``DocumentStore``; they never
import a driver.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** Engines depend on shape, not on pymongo
    - **Testability:** The in-memory store satisfies the same protocol
    - **Portability:** Any backend offering the primitives can host the engines

Architecture:
    ::

        DocumentStore (async)
        ┌────────────────────────────────────────────────────────────┐
        │ find_one(coll, filter)            → Document | None        │
        │ find_many(coll, filter)           → list[Document]         │
        │ update_many(coll, filter, values) → modified count ($set)  │
        │ delete_one(coll, id)              → bool                   │
        │ insert_one / insert_many / update_one   (save path)        │
        │ session()                         → async ctx → store      │
        └────────────────────────────────────────────────────────────┘

        Implementations:
        ┌────────────────────────────────────────────────────────────┐
        │ InMemoryDocumentStore  → dict-backed, tests and dev         │
        │ MongoDocumentStore     → pymongo.AsyncMongoClient           │
        └────────────────────────────────────────────────────────────┘

    Identity equality is the store's native ``==`` on identity values
    (``bson.ObjectId`` for both shipped stores).

Guardrails:
    ❌ DON'T: Raise driver exceptions from an implementation
    ✅ DO: Wrap them in ``StoreError`` with ``cause=``

    ❌ DON'T: Return live references to stored documents
    ✅ DO: Return documents the caller may mutate freely

Tags:
    protocol, document-store, async, linkspine, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable

Document = MutableMapping[str, Any]
"""A stored record: field name to value (nested documents, lists, identities, scalars)."""

Filter = Mapping[str, Any]


@runtime_checkable
class DocumentStore(Protocol):
    """
    Async document store interface consumed by the relationship engines.

    Every call suspends until the store responds and is independently
    atomic. No multi-document transaction primitive is required; ``session()``
    only groups calls into one logical session scope where the backend
    supports it.
    """

    async def find_one(self, collection: str, filter: Filter) -> Document | None:
        """Return the first record matching ``filter`` or None."""
        ...

    async def find_many(
        self,
        collection: str,
        filter: Filter,
        *,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """Return every record matching ``filter`` (finite)."""
        ...

    async def update_many(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        """Set ``values`` on every matching record, return the modified count."""
        ...

    async def delete_one(self, collection: str, document_id: Any) -> bool:
        """Delete the record with ``_id == document_id``, True if one was removed."""
        ...

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> Any:
        """Insert a record, return its identity."""
        ...

    async def insert_many(
        self, collection: str, documents: list[Mapping[str, Any]]
    ) -> list[Any]:
        """Insert records, return their identities in order."""
        ...

    async def update_one(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        """Set ``values`` on the first matching record, return the modified count."""
        ...

    def session(self) -> AbstractAsyncContextManager[DocumentStore]:
        """Open a session scope yielding a store bound to it."""
        ...


__all__ = [
    "Document",
    "Filter",
    "DocumentStore",
]
