"""Relationship registry: which collections reference which.

Manifesto:
    Both traversal engines are driven entirely by link metadata. That
    metadata is collected once at startup by an explicit
    :class:`RegistryBuilder`, frozen into an immutable
    :class:`RelationshipRegistry` value and then shared read-only by every
    traversal in the process. No traversal ever mutates it, so concurrent
    readers need no synchronization.

Architecture::

    RegistryBuilder                         RelationshipRegistry (frozen)
    ├── foreign_key(coll, field, refs) ──►  reverse_links[refs]  += (field, coll, policy)
    ├── reference(coll, field, refs)   ──►  forward_links[coll]  += (field, refs, policy)
    ├── unique(coll, field)            ──►  unique_fields[coll]  += field
    ├── unique_if_same(coll, f, same)  ──►  scoped_unique[coll]  += (f, same)
    └── build()                        ──►  RelationshipRegistry

    install_registry(registry)   exactly once per process
    get_registry()               RegistryUninitialized before install

Examples:
    >>> builder = RegistryBuilder()
    >>> builder.foreign_key("posts", "author_id", "users", on_delete="cascade")
    RegistryBuilder(reverse=1, forward=0)
    >>> registry = builder.build()
    >>> registry.lookup_reverse("users")
    (RelationLink(field_name='author_id', collection='posts', on_delete=<OnDelete.CASCADE: 'cascade'>),)
    >>> registry.lookup_forward("users")
    ()

Tags:
    linkspine, registry, relationships, immutable, builder

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from linkspine.core.errors import (
    InvalidLinkError,
    RegistryAlreadyInitialized,
    RegistryUninitialized,
)
from linkspine.core.logging import get_logger

from .types import OnDelete, RelationLink

logger = get_logger(__name__)

LinkMap = Mapping[str, tuple[RelationLink, ...]]


def _freeze(source: dict[str, list[Any]]) -> Mapping[str, tuple[Any, ...]]:
    return MappingProxyType({key: tuple(values) for key, values in source.items()})


@dataclass(frozen=True)
class RelationshipRegistry:
    """
    Immutable link metadata, keyed by collection name.

    Every lookup returns an empty tuple (never an error) for a collection
    with no entries.

    Attributes:
        reverse_links: referenced collection -> links from collections pointing at it
        forward_links: owning collection -> its own fields pointing elsewhere
        unique_fields: collection -> fields unique within the collection
        scoped_unique_fields: collection -> (field, same_field) pairs unique per same_field value
    """

    reverse_links: LinkMap = field(default_factory=lambda: MappingProxyType({}))
    forward_links: LinkMap = field(default_factory=lambda: MappingProxyType({}))
    unique_fields: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    scoped_unique_fields: Mapping[str, tuple[tuple[str, str], ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def lookup_reverse(self, collection: str) -> tuple[RelationLink, ...]:
        return self.reverse_links.get(collection, ())

    def lookup_forward(self, collection: str) -> tuple[RelationLink, ...]:
        return self.forward_links.get(collection, ())

    def lookup_unique(self, collection: str) -> tuple[str, ...]:
        return self.unique_fields.get(collection, ())

    def lookup_scoped_unique(self, collection: str) -> tuple[tuple[str, str], ...]:
        return self.scoped_unique_fields.get(collection, ())

    def collections(self) -> list[str]:
        """Every collection named anywhere in the registry, sorted."""
        names: set[str] = set()
        for links_by_coll in (self.reverse_links, self.forward_links):
            for coll, links in links_by_coll.items():
                names.add(coll)
                names.update(link.collection for link in links)
        names.update(self.unique_fields)
        names.update(self.scoped_unique_fields)
        return sorted(names)

    def cascade_cycles(self) -> list[list[str]]:
        """
        Collection-level cycles in the cascade graph.

        An edge ``C -> D`` exists when deleting a C record cascades into D
        (``reverse_links[C]`` holds a CASCADE link from D). Each returned
        entry is one strongly connected component (sorted) that contains a
        cycle, including single collections that cascade into themselves.

        Self-referencing trees (``comments.parent_id -> comments``) show up
        here but are legal: the cascade engine only fails when an actual
        record is reached again while its own cascade is still running.
        """
        graph: dict[str, list[str]] = {}
        for coll, links in self.reverse_links.items():
            for link in links:
                if link.on_delete is OnDelete.CASCADE:
                    graph.setdefault(coll, []).append(link.collection)

        index: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        components: list[list[str]] = []

        def strongconnect(node: str) -> None:
            index[node] = lowlink[node] = len(index)
            stack.append(node)
            on_stack.add(node)
            for succ in graph.get(node, ()):
                if succ not in index:
                    strongconnect(succ)
                    lowlink[node] = min(lowlink[node], lowlink[succ])
                elif succ in on_stack:
                    lowlink[node] = min(lowlink[node], index[succ])
            if lowlink[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1 or node in graph.get(node, ()):
                    components.append(sorted(component))

        for node in sorted(graph):
            if node not in index:
                strongconnect(node)
        return sorted(components)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view for JSON output."""
        return {
            "reverse_links": {
                coll: [link.to_dict() for link in links]
                for coll, links in self.reverse_links.items()
            },
            "forward_links": {
                coll: [link.to_dict() for link in links]
                for coll, links in self.forward_links.items()
            },
            "unique_fields": {coll: list(f) for coll, f in self.unique_fields.items()},
            "scoped_unique_fields": {
                coll: [list(pair) for pair in pairs]
                for coll, pairs in self.scoped_unique_fields.items()
            },
        }


class RegistryBuilder:
    """
    Collects link declarations and produces a :class:`RelationshipRegistry`.

    Declaring the exact same link twice is a no-op, so a model may be added
    more than once. Declaring the same field twice with a different policy
    raises :class:`InvalidLinkError`.
    """

    def __init__(self) -> None:
        self._reverse: dict[str, list[RelationLink]] = {}
        self._forward: dict[str, list[RelationLink]] = {}
        self._unique: dict[str, list[str]] = {}
        self._scoped_unique: dict[str, list[tuple[str, str]]] = {}

    def foreign_key(
        self,
        collection: str,
        field_name: str,
        references: str,
        on_delete: OnDelete | str | None = None,
    ) -> RegistryBuilder:
        """
        ``collection.field_name`` holds the id of a ``references`` record.

        Recorded as a reverse link of ``references``: deleting a
        ``references`` record applies ``on_delete`` to ``collection``, and
        populating a ``references`` record embeds the matching
        ``collection`` records.
        """
        self._check_names(collection, field_name, references)
        link = RelationLink(field_name, collection, OnDelete.parse(on_delete))
        self._add_link(self._reverse, references, link)
        return self

    def reference(
        self,
        collection: str,
        field_name: str,
        references: str,
        on_delete: OnDelete | str | None = None,
    ) -> RegistryBuilder:
        """
        ``collection.field_name`` holds the id (or ids) of ``references`` records.

        Recorded as a forward link of ``collection``: populating a
        ``collection`` record replaces the id with the referenced record.
        """
        self._check_names(collection, field_name, references)
        link = RelationLink(field_name, references, OnDelete.parse(on_delete))
        self._add_link(self._forward, collection, link)
        return self

    def unique(self, collection: str, field_name: str) -> RegistryBuilder:
        self._check_names(collection, field_name)
        fields = self._unique.setdefault(collection, [])
        if field_name not in fields:
            fields.append(field_name)
        return self

    def unique_if_same(
        self, collection: str, field_name: str, same_field: str
    ) -> RegistryBuilder:
        """``field_name`` is unique among records sharing the same ``same_field`` value."""
        self._check_names(collection, field_name, same_field)
        pairs = self._scoped_unique.setdefault(collection, [])
        if (field_name, same_field) not in pairs:
            pairs.append((field_name, same_field))
        return self

    def add_model(self, model_cls: Any) -> RegistryBuilder:
        """Add every declaration of a :class:`linkspine.models.Model` subclass."""
        model_cls.declare_links(self)
        return self

    def build(self) -> RelationshipRegistry:
        registry = RelationshipRegistry(
            reverse_links=_freeze(self._reverse),
            forward_links=_freeze(self._forward),
            unique_fields=_freeze(self._unique),
            scoped_unique_fields=_freeze(self._scoped_unique),
        )
        logger.debug(
            "registry_built",
            collections=len(registry.collections()),
            reverse=sum(len(v) for v in registry.reverse_links.values()),
            forward=sum(len(v) for v in registry.forward_links.values()),
        )
        return registry

    @staticmethod
    def _check_names(*names: str) -> None:
        for name in names:
            if not isinstance(name, str) or not name:
                raise InvalidLinkError(
                    f"Collection and field names must be non-empty strings, got {name!r}"
                )

    @staticmethod
    def _add_link(
        target: dict[str, list[RelationLink]], key: str, link: RelationLink
    ) -> None:
        links = target.setdefault(key, [])
        for existing in links:
            if (existing.field_name, existing.collection) != (link.field_name, link.collection):
                continue
            if existing == link:
                return
            raise InvalidLinkError(
                f"Conflicting declarations for {link.collection}.{link.field_name}: "
                f"on_delete={existing.on_delete} vs {link.on_delete}"
            )
        links.append(link)

    def __repr__(self) -> str:
        return f"RegistryBuilder(reverse={len(self._reverse)}, forward={len(self._forward)})"


# =============================================================================
# Process registry
# =============================================================================

_registry: RelationshipRegistry | None = None


def install_registry(registry: RelationshipRegistry) -> RelationshipRegistry:
    """Install the process-wide registry. Must happen exactly once, before any traversal."""
    global _registry
    if _registry is not None:
        raise RegistryAlreadyInitialized("The relationship registry is already installed")
    _registry = registry
    logger.debug("registry_installed", collections=registry.collections())
    return registry


def get_registry() -> RelationshipRegistry:
    """Return the installed registry."""
    if _registry is None:
        raise RegistryUninitialized(
            "The relationship registry has not been installed; call linkspine.register() at startup"
        )
    return _registry


def is_registry_installed() -> bool:
    return _registry is not None


def reset_registry() -> None:
    """Uninstall the process registry (for testing)."""
    global _registry
    _registry = None


__all__ = [
    "RelationshipRegistry",
    "RegistryBuilder",
    "install_registry",
    "get_registry",
    "is_registry_installed",
    "reset_registry",
]
