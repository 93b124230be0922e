"""
Graph population: assemble one denormalized document tree from linked collections.

Manifesto:
    Records live in independent collections; readers usually want them
    joined. ``populate`` walks the relationship registry outward from one
    record and embeds what it finds:

    - **Reverse expansion:** records in other collections that point at
      this record are attached under the key of their collection name
    - **Forward resolution:** fields on this record that hold the id of a
      record elsewhere are replaced by that record

Architecture:
    ::

        populate(users/1, "users", filter)
            │
            ├─ expand_reverse(users/1, filter, skip={})
            │     for link in reverse_links["users"]:        (posts.author_id)
            │        matches = find_many(posts, author_id == 1)
            │        each match:
            │           expand_forward(match, filter)         resolve its references
            │           expand_reverse(match, None, skip)     nested levels unrestricted
            │        users/1["posts"] = matches ; skip += {"posts"}
            │
            └─ expand_forward(users/1, filter)
                  for link in forward_links["users"]:
                     users/1[field] = find_one(link.collection, _id == value)
                                      resolved recursively (unrestricted)

    The skip-set is shared by every reverse expansion of one ``populate``
    call: once a collection has produced matches under some parent it is
    never expanded again anywhere else in that call. ``collection_filter``
    restricts only the outermost level; every nested level expands fully.

Semantics:
    - Misses are not errors: a missing forward target, zero reverse
      matches or an absent field simply attach nothing.
    - Store errors propagate unchanged; nothing is caught or retried.
    - Documents are values: each level copies the document it was given
      and returns the expanded copy. The caller's document is untouched.
    - Reverse results are stored under the literal collection name. A real
      field with the same name is overwritten.
    - Forward resolution stops at a record that is already on its own
      resolution path (a reference cycle) and keeps the identity value.
      On acyclic data this never triggers.
    - Reverse expansion attaches a match that is already one of its own
      ancestors as the plain stored record, without expanding it again.

Guardrails:
    ❌ DON'T: Expand siblings concurrently
    ✅ DO: Keep sibling order; the skip-set is not safe to share across tasks

Tags:
    population, denormalization, join, graph-traversal, skip-set, linkspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from linkspine.core.logging import LogContext, get_logger
from linkspine.core.protocols import DocumentStore
from linkspine.core.settings import get_settings

from .registry import RelationshipRegistry, get_registry
from .types import RelationLink

logger = get_logger(__name__)

_Path = tuple[tuple[str, Any], ...]


class GraphPopulationEngine:
    """
    Recursively embeds related records into a document.

    Parameters:
        store: Any object satisfying :class:`DocumentStore`.
        registry: Link metadata. Defaults to the installed process registry.
        max_depth: Optional bound on forward-resolution hops. ``None`` is
            unbounded (cycle suppression still applies).
    """

    def __init__(
        self,
        store: DocumentStore,
        registry: RelationshipRegistry | None = None,
        max_depth: int | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._max_depth = max_depth

    @property
    def registry(self) -> RelationshipRegistry:
        return self._registry if self._registry is not None else get_registry()

    async def populate(
        self,
        document: Mapping[str, Any],
        collection: str,
        collection_filter: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        """Reverse-expand then forward-resolve ``document``, return the merged tree."""
        if isinstance(collection_filter, str):
            collection_filter = (collection_filter,)
        allowed = frozenset(collection_filter) if collection_filter is not None else None
        async with LogContext(populate_root=f"{collection}/{document.get('_id')}"):
            logger.debug(
                "populate_started",
                collection=collection,
                collection_filter=sorted(allowed) if allowed is not None else None,
            )
            populated = await self.expand_reverse(document, collection, allowed, set())
            return await self.expand_forward(populated, collection, allowed)

    async def expand_reverse(
        self,
        document: Mapping[str, Any],
        collection: str,
        collection_filter: frozenset[str] | None,
        skip: set[str],
        _path: _Path = (),
    ) -> dict[str, Any]:
        """Attach records of every collection that references ``document``."""
        result = dict(document)
        links = self.registry.lookup_reverse(collection)
        document_id = result.get("_id")
        if not links or document_id is None:
            return result
        _path = _path + ((collection, document_id),)

        for link in links:
            if link.collection in skip:
                continue
            if collection_filter is not None and link.collection not in collection_filter:
                continue

            matches = await self._store.find_many(
                link.collection, {link.field_name: document_id}
            )
            expanded = []
            for match in matches:
                if (link.collection, match.get("_id")) in _path:
                    logger.debug(
                        "reverse_reference_cycle_skipped",
                        collection=link.collection,
                        field=link.field_name,
                        document_id=str(match.get("_id")),
                    )
                    expanded.append(match)
                    continue
                match = await self.expand_forward(match, link.collection, collection_filter)
                match = await self.expand_reverse(match, link.collection, None, skip, _path)
                expanded.append(match)

            if expanded:
                result[link.collection] = expanded
                skip.add(link.collection)
                logger.debug(
                    "reverse_link_expanded",
                    parent=f"{collection}/{document_id}",
                    collection=link.collection,
                    field=link.field_name,
                    count=len(expanded),
                )
        return result

    async def expand_forward(
        self,
        document: Mapping[str, Any],
        collection: str,
        collection_filter: frozenset[str] | None,
        _path: _Path = (),
        _depth: int = 0,
    ) -> dict[str, Any]:
        """Replace reference fields of ``document`` by the records they point to."""
        result = dict(document)
        if self._max_depth is not None and _depth >= self._max_depth:
            return result
        if "_id" in result:
            _path = _path + ((collection, result["_id"]),)

        for link in self.registry.lookup_forward(collection):
            if collection_filter is not None and link.collection not in collection_filter:
                continue
            value = result.get(link.field_name)
            if value is None or isinstance(value, Mapping):
                continue
            if isinstance(value, list):
                result[link.field_name] = [
                    await self._resolve(item, link, _path, _depth) for item in value
                ]
            else:
                result[link.field_name] = await self._resolve(value, link, _path, _depth)
        return result

    async def _resolve(
        self, ref_id: Any, link: RelationLink, path: _Path, depth: int
    ) -> Any:
        if ref_id is None or isinstance(ref_id, Mapping):
            return ref_id
        if (link.collection, ref_id) in path:
            logger.debug(
                "forward_reference_cycle_skipped",
                collection=link.collection,
                field=link.field_name,
                document_id=str(ref_id),
            )
            return ref_id

        target = await self._store.find_one(link.collection, {"_id": ref_id})
        if target is None:
            return ref_id
        return await self.expand_forward(target, link.collection, None, path, depth + 1)


async def populate(
    store: DocumentStore,
    document: Mapping[str, Any],
    collection: str,
    collection_filter: Iterable[str] | None = None,
    *,
    registry: RelationshipRegistry | None = None,
    max_depth: int | None = None,
) -> dict[str, Any]:
    """
    Populate ``document`` from ``collection`` with every linked record.

    ``max_depth`` defaults to ``LinkSpineSettings.populate_max_depth``.
    """
    if max_depth is None:
        max_depth = get_settings().populate_max_depth
    engine = GraphPopulationEngine(store, registry, max_depth)
    return await engine.populate(document, collection, collection_filter)


__all__ = [
    "GraphPopulationEngine",
    "populate",
]
