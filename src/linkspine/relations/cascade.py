"""
Cascading delete: enforce on-delete policies before removing a record.

Manifesto:
    A document store has no foreign keys, so nothing stops a ``users``
    record from disappearing while ``posts`` still point at it. The
    cascade engine closes that gap. Before a record is removed, every
    collection that references it is visited and its declared policy is
    applied:

    - **NULL:** clear the referencing field, keep the referencing record
    - **CASCADE:** delete the referencing records first, recursively
    - **no policy:** leave the referencing records alone

Architecture:
    ::

        delete("users", 1)
            │
            ▼
        work-list (stack of frames, one per record being deleted)
        ┌───────────────────────────────────────────────────────────┐
        │ frame users/1    links: posts.author_id (CASCADE) ...     │
        │   pending: [posts/10]                                     │
        │ frame posts/10   links: comments.post_id (CASCADE)        │
        │   pending: [comments/100]                                 │
        │ frame comments/100   links: (none) → delete_one           │
        └───────────────────────────────────────────────────────────┘
            │
            ▼
        comments/100 deleted → posts/10 deleted → users/1 deleted

    Each frame walks the reverse links of its collection in declaration
    order. A CASCADE link queries its matches at the moment the link is
    reached and pushes one frame per match; the frame's own record is
    deleted only after all its links are exhausted. The order of store
    calls is exactly that of the natural recursive definition, without
    Python recursion depth limits.

Failure semantics:
    Fail-stop, not atomic. The first failing primitive aborts the whole
    cascade; nothing is rolled back. Before re-raising, the engine
    enriches the error with ``cascade_root``, the record it was working
    on, the progress made so far and ``state`` (``"indeterminate"`` once
    any mutating call was attempted, otherwise ``"unchanged"``), so a
    caller can tell that the root record's dependents may be half
    processed.

    A record reached again while its own cascade is still in progress
    (a real reference cycle in the data) raises :class:`CascadeCycleError`.
    A record reached again after it was already deleted is skipped.

Guardrails:
    ❌ DON'T: Fan out sibling deletes concurrently
    ✅ DO: Process siblings in order; the stack is the only ordering state

    ❌ DON'T: Swallow StoreError to "finish what we can"
    ✅ DO: Let it propagate with cascade context attached

Tags:
    cascade-delete, referential-integrity, work-list, fail-stop, linkspine

Doc-Types:
    - API Reference
    - Architecture Decision Record
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from linkspine.core.errors import CascadeCycleError, LinkSpineError
from linkspine.core.logging import LogContext, get_logger
from linkspine.core.protocols import DocumentStore

from .registry import RelationshipRegistry, get_registry
from .types import OnDelete, RelationLink

logger = get_logger(__name__)


@dataclass
class CascadeReport:
    """What one cascade delete did, in the order it did it."""

    collection: str
    document_id: Any
    deleted: list[tuple[str, Any]] = field(default_factory=list)
    cleared: list[tuple[str, str, int]] = field(default_factory=list)

    @property
    def records_deleted(self) -> int:
        return len(self.deleted)

    @property
    def fields_cleared(self) -> int:
        return sum(count for _, _, count in self.cleared)


@dataclass
class _Frame:
    collection: str
    document_id: Any
    nested: bool
    links: Iterator[RelationLink]
    child_collection: str | None = None
    pending: deque = field(default_factory=deque)


class CascadeDeleteEngine:
    """
    Applies on-delete policies for one record and everything referencing it.

    Parameters:
        store: Any object satisfying :class:`DocumentStore`. Pass a
            session-bound store to keep the whole cascade in one session.
        registry: Link metadata. Defaults to the installed process registry.
    """

    def __init__(
        self,
        store: DocumentStore,
        registry: RelationshipRegistry | None = None,
    ) -> None:
        self._store = store
        self._registry = registry

    @property
    def registry(self) -> RelationshipRegistry:
        return self._registry if self._registry is not None else get_registry()

    async def delete(
        self,
        collection: str,
        document_id: Any,
        is_nested_call: bool = False,
    ) -> CascadeReport:
        """
        Delete ``collection/document_id`` after applying every reverse link policy.

        ``is_nested_call`` only lowers the log level of the root record's
        events; behavior is identical.
        """
        registry = self.registry
        report = CascadeReport(collection, document_id)
        root = _Frame(collection, document_id, is_nested_call, iter(registry.lookup_reverse(collection)))
        stack = [root]
        in_progress = {(collection, document_id)}
        finished: set[tuple[str, Any]] = set()
        mutated = False

        async with LogContext(cascade_root=f"{collection}/{document_id}"):
            self._log(is_nested_call, "cascade_delete_started", collection=collection)
            try:
                while stack:
                    frame = stack[-1]

                    if frame.pending:
                        child_id = frame.pending.popleft()
                        key = (frame.child_collection, child_id)
                        if key in in_progress:
                            raise CascadeCycleError(
                                f"Cascade from {collection}/{document_id} reached "
                                f"{key[0]}/{child_id} again while deleting it"
                            ).with_context(collection=key[0], document_id=str(child_id))
                        if key in finished:
                            continue
                        in_progress.add(key)
                        stack.append(
                            _Frame(
                                frame.child_collection,
                                child_id,
                                True,
                                iter(registry.lookup_reverse(frame.child_collection)),
                            )
                        )
                        continue

                    link = next(frame.links, None)
                    if link is None:
                        mutated = True
                        await self._store.delete_one(frame.collection, frame.document_id)
                        stack.pop()
                        key = (frame.collection, frame.document_id)
                        in_progress.discard(key)
                        finished.add(key)
                        report.deleted.append(key)
                        self._log(
                            frame.nested,
                            "record_deleted",
                            collection=frame.collection,
                            document_id=str(frame.document_id),
                        )
                        continue

                    if link.on_delete is OnDelete.NULL:
                        mutated = True
                        modified = await self._store.update_many(
                            link.collection,
                            {link.field_name: frame.document_id},
                            {link.field_name: None},
                        )
                        report.cleared.append((link.collection, link.field_name, modified))
                        self._log(
                            frame.nested,
                            "null_policy_applied",
                            collection=link.collection,
                            field=link.field_name,
                            modified=modified,
                        )
                    elif link.on_delete is OnDelete.CASCADE:
                        matches = await self._store.find_many(
                            link.collection, {link.field_name: frame.document_id}
                        )
                        frame.child_collection = link.collection
                        frame.pending.extend(match["_id"] for match in matches)
                        logger.debug(
                            "cascade_children_found",
                            parent=f"{frame.collection}/{frame.document_id}",
                            collection=link.collection,
                            field=link.field_name,
                            count=len(matches),
                        )
            except LinkSpineError as exc:
                current = stack[-1] if stack else root
                exc.with_context(
                    operation=exc.context.operation or "cascade_delete",
                    cascade_root=f"{collection}/{document_id}",
                    failed_collection=current.collection,
                    failed_id=str(current.document_id),
                    records_deleted=report.records_deleted,
                    fields_cleared=report.fields_cleared,
                    state="indeterminate" if mutated else "unchanged",
                )
                logger.error("cascade_delete_failed", **exc.to_dict())
                raise

            self._log(
                is_nested_call,
                "cascade_delete_completed",
                collection=collection,
                records_deleted=report.records_deleted,
                fields_cleared=report.fields_cleared,
            )
        return report

    @staticmethod
    def _log(nested: bool, event: str, **kwargs: Any) -> None:
        if nested:
            logger.debug(event, **kwargs)
        else:
            logger.info(event, **kwargs)


async def cascade_delete(
    store: DocumentStore,
    collection: str,
    document_id: Any,
    *,
    registry: RelationshipRegistry | None = None,
) -> CascadeReport:
    """
    Delete a record and enforce referential integrity, inside one session scope.

    Raises:
        StoreError: a primitive failed; check ``error.indeterminate``.
        CascadeCycleError: the data contains a cascade reference cycle.
        RegistryUninitialized: no registry passed and none installed.
    """
    async with store.session() as scoped:
        engine = CascadeDeleteEngine(scoped, registry)
        return await engine.delete(collection, document_id)


__all__ = [
    "CascadeDeleteEngine",
    "CascadeReport",
    "cascade_delete",
]
