"""In-memory document store.

A dict-backed :class:`~linkspine.core.protocols.DocumentStore` for tests and
development. Filters follow MongoDB equality semantics for the subset the
engines and the save path use:

- ``{field: value}`` matches when the field equals ``value`` or, for an
  array field, contains it; ``{field: None}`` also matches a missing field
- ``{field: {"$ne": value}}`` is the negation of the above

Every document handed in or out is deep-copied, so callers can mutate
results without touching stored state. Mutating calls are appended to
:attr:`InMemoryDocumentStore.journal` in the order they happen.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from bson import ObjectId

from linkspine.core.errors import StoreError
from linkspine.core.protocols import Document, Filter

_MISSING = object()


@dataclass(frozen=True)
class JournalEntry:
    """One mutating call: ``op`` is insert, update_one, update_many or delete."""

    op: str
    collection: str
    target: Any
    count: int = 1


def _equals(actual: Any, expected: Any) -> bool:
    if actual is _MISSING:
        return expected is None
    if actual == expected:
        return True
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return False


def matches(document: Mapping[str, Any], filter: Filter) -> bool:
    """True when ``document`` satisfies every clause of ``filter``."""
    for key, expected in filter.items():
        actual = document.get(key, _MISSING)
        if isinstance(expected, Mapping) and set(expected) == {"$ne"}:
            if _equals(actual, expected["$ne"]):
                return False
        elif not _equals(actual, expected):
            return False
    return True


class InMemoryDocumentStore:
    """Dict-backed document store, insertion ordered per collection."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[Any, Document]] = {}
        self.journal: list[JournalEntry] = []
        self.sessions_opened = 0

    def _collection(self, name: str) -> dict[Any, Document]:
        return self._collections.setdefault(name, {})

    def _select(self, collection: str, filter: Filter) -> list[Document]:
        return [doc for doc in self._collection(collection).values() if matches(doc, filter)]

    async def find_one(self, collection: str, filter: Filter) -> Document | None:
        selected = self._select(collection, filter)
        return copy.deepcopy(selected[0]) if selected else None

    async def find_many(
        self,
        collection: str,
        filter: Filter,
        *,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        selected = self._select(collection, filter)
        start = skip or 0
        end = start + limit if limit else None
        return [copy.deepcopy(doc) for doc in selected[start:end]]

    async def update_many(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        modified = 0
        for doc in self._select(collection, filter):
            if self._apply(doc, values):
                modified += 1
        self.journal.append(JournalEntry("update_many", collection, dict(filter), modified))
        return modified

    async def update_one(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        selected = self._select(collection, filter)
        modified = int(bool(selected) and self._apply(selected[0], values))
        self.journal.append(JournalEntry("update_one", collection, dict(filter), modified))
        return modified

    async def delete_one(self, collection: str, document_id: Any) -> bool:
        removed = self._collection(collection).pop(document_id, None) is not None
        self.journal.append(JournalEntry("delete", collection, document_id, int(removed)))
        return removed

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> Any:
        stored = copy.deepcopy(dict(document))
        if stored.get("_id") is None:
            stored["_id"] = ObjectId()
        docs = self._collection(collection)
        if stored["_id"] in docs:
            raise StoreError(
                f"Duplicate key: {collection}/{stored['_id']} already exists"
            ).with_context(operation="insert_one", collection=collection)
        docs[stored["_id"]] = stored
        self.journal.append(JournalEntry("insert", collection, stored["_id"]))
        return stored["_id"]

    async def insert_many(
        self, collection: str, documents: list[Mapping[str, Any]]
    ) -> list[Any]:
        return [await self.insert_one(collection, doc) for doc in documents]

    @asynccontextmanager
    async def session(self) -> AsyncIterator[InMemoryDocumentStore]:
        self.sessions_opened += 1
        yield self

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    def deleted(self) -> list[tuple[str, Any]]:
        """(collection, id) of every successful delete, in order."""
        return [(e.collection, e.target) for e in self.journal if e.op == "delete" and e.count]

    @staticmethod
    def _apply(doc: Document, values: Mapping[str, Any]) -> bool:
        changed = False
        for key, value in values.items():
            if doc.get(key, _MISSING) != value:
                doc[key] = copy.deepcopy(value)
                changed = True
        return changed


__all__ = [
    "InMemoryDocumentStore",
    "JournalEntry",
    "matches",
]
