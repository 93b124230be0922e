"""
Declarative models: schema declarations, single-document CRUD and uniqueness.

Manifesto:
    Link metadata should live next to the fields it describes. A model is
    a pydantic ``BaseModel`` whose fields carry linkspine markers through
    ``Annotated``; :func:`register` collects those markers into the
    relationship registry once at startup. CRUD is deliberately thin: the
    interesting work (cascades and population) is delegated to
    :mod:`linkspine.relations`.

Architecture:
    ::

        class Post(Model):
            collection_name: ClassVar[str] = "posts"
            title: Annotated[str, Unique()]
            author_id: Annotated[ObjectId | None, ForeignKey("users", on_delete="cascade")] = None
            tag_ids: Annotated[list[ObjectId], Reference("tags")] = []

        register()          ──► RegistryBuilder.add_model(...) for every declared model
                                 └► install_registry(builder.build())

        post.save(store)     ──► unique / unique-if-same checks → insert_one | update_one
        post.delete(store)   ──► cascade_delete(store, "posts", post.id)
        post.populate(store) ──► populate(store, post.to_doc(), "posts")

Markers:
    - ``ForeignKey(references, on_delete)``: this field holds the id of a
      ``references`` record; deleting it applies ``on_delete`` here and
      populating it embeds records of this collection
    - ``Reference(references)``: this field holds the id (or list of ids)
      of ``references`` records, resolved in place by population
    - ``Unique()`` / ``UniqueIfSame(same_field)``: checked by ``save``

Examples:
    >>> class User(Model):
    ...     collection_name: ClassVar[str] = "users"
    ...     name: Annotated[str, Unique()]
    >>> User.get_fields()
    ['id', 'created_at', 'updated_at', 'name']

Tags:
    models, pydantic, declarations, crud, uniqueness, linkspine

Doc-Types:
    - API Reference
    - Modeling Guide
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Self

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from linkspine.core.errors import (
    ConstraintViolation,
    DocumentNotFoundError,
    InvalidLinkError,
)
from linkspine.core.logging import get_logger
from linkspine.core.protocols import DocumentStore
from linkspine.relations.cascade import CascadeReport, cascade_delete
from linkspine.relations.populate import populate
from linkspine.relations.registry import (
    RegistryBuilder,
    RelationshipRegistry,
    get_registry,
    install_registry,
)
from linkspine.relations.types import OnDelete

logger = get_logger(__name__)


# =============================================================================
# Field markers
# =============================================================================


@dataclass(frozen=True)
class ForeignKey:
    references: str
    on_delete: OnDelete | str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "on_delete", OnDelete.parse(self.on_delete))


@dataclass(frozen=True)
class Reference:
    references: str
    on_delete: OnDelete | str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "on_delete", OnDelete.parse(self.on_delete))


@dataclass(frozen=True)
class Unique:
    pass


@dataclass(frozen=True)
class UniqueIfSame:
    same_field: str


# =============================================================================
# Model base
# =============================================================================

_declared: dict[str, type[Model]] = {}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Model(BaseModel):
    """
    Base class for documents stored in one collection.

    Subclasses set ``collection_name``. Every subclass that does is
    remembered (latest definition per collection wins) so :func:`register`
    can build the registry without an explicit model list.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        validate_assignment=True,
    )

    collection_name: ClassVar[str] = ""

    id: ObjectId | None = Field(default=None, alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        name = cls.__dict__.get("collection_name")
        if name:
            _declared[name] = cls

    # ── Declarations ─────────────────────────────────────────────

    @classmethod
    def declare_links(cls, builder: RegistryBuilder) -> None:
        """Feed this model's markers into ``builder``."""
        coll = cls.collection_name
        if not coll:
            raise InvalidLinkError(f"{cls.__name__} does not set collection_name")
        for name, info in cls.model_fields.items():
            stored_name = info.alias or name
            for marker in info.metadata:
                if isinstance(marker, ForeignKey):
                    builder.foreign_key(coll, stored_name, marker.references, marker.on_delete)
                elif isinstance(marker, Reference):
                    builder.reference(coll, stored_name, marker.references, marker.on_delete)
                elif isinstance(marker, Unique):
                    builder.unique(coll, stored_name)
                elif isinstance(marker, UniqueIfSame):
                    if marker.same_field not in cls.model_fields:
                        raise InvalidLinkError(
                            f"{cls.__name__}.{name}: unknown unique_if_same field "
                            f"{marker.same_field!r}"
                        )
                    builder.unique_if_same(coll, stored_name, marker.same_field)

    @classmethod
    def get_fields(cls) -> list[str]:
        return list(cls.model_fields)

    @classmethod
    def has_field(cls, name: str) -> bool:
        return name in cls.model_fields

    def set_field(self, name: str, value: Any) -> bool:
        """Validate and assign ``value``; False for unknown fields or invalid values."""
        if not self.has_field(name):
            return False
        try:
            setattr(self, name, value)
        except ValidationError:
            return False
        return True

    def to_doc(self) -> dict[str, Any]:
        doc = self.model_dump(by_alias=True)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc

    # ── CRUD ─────────────────────────────────────────────────────

    @classmethod
    async def find(
        cls,
        store: DocumentStore,
        filter: Mapping[str, Any] | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[Self]:
        """Load matching records. Records that fail validation are logged and skipped."""
        docs = await store.find_many(cls.collection_name, filter or {}, skip=skip, limit=limit)
        found = []
        for doc in docs:
            try:
                found.append(cls.model_validate(doc))
            except ValidationError as e:
                logger.warning(
                    "find_record_invalid",
                    collection=cls.collection_name,
                    document_id=str(doc.get("_id")),
                    errors=e.errors(include_url=False),
                )
        return found

    @classmethod
    async def find_one(cls, store: DocumentStore, filter: Mapping[str, Any]) -> Self:
        doc = await store.find_one(cls.collection_name, filter)
        if doc is None:
            raise DocumentNotFoundError(
                f"No matching item in {cls.collection_name} for {dict(filter)!r}"
            ).with_context(operation="find_one", collection=cls.collection_name)
        return cls.model_validate(doc)

    async def save(
        self, store: DocumentStore, *, registry: RelationshipRegistry | None = None
    ) -> None:
        """
        Insert or update this record; also sets ``id`` on insert.

        Raises:
            ConstraintViolation: a unique or unique-if-same field is taken.
        """
        registry = registry or get_registry()
        await self._check_unique(store, registry)

        now = _utcnow()
        self.updated_at = now
        if self.id is not None:
            values = self.to_doc()
            values.pop("_id", None)
            await store.update_one(self.collection_name, {"_id": self.id}, values)
        else:
            self.created_at = now
            self.id = await store.insert_one(self.collection_name, self.to_doc())
        logger.debug("record_saved", collection=self.collection_name, document_id=str(self.id))

    async def _check_unique(self, store: DocumentStore, registry: RelationshipRegistry) -> None:
        coll = self.collection_name
        values = self.to_doc()
        for field_name in registry.lookup_unique(coll):
            value = values.get(field_name)
            clash = await store.find_one(coll, {field_name: value, "_id": {"$ne": self.id}})
            if clash is not None:
                raise ConstraintViolation(
                    f"UNIQUE FIELD ERROR: another doc with {field_name} = {value!r} "
                    f"already exists in {coll} collection."
                ).with_context(operation="save", collection=coll, field=field_name)
        for field_name, same_field in registry.lookup_scoped_unique(coll):
            value, same_value = values.get(field_name), values.get(same_field)
            clash = await store.find_one(
                coll,
                {field_name: value, same_field: same_value, "_id": {"$ne": self.id}},
            )
            if clash is not None:
                raise ConstraintViolation(
                    f"UNIQUE FIELD ERROR: another doc with [{field_name} = {value!r}] and "
                    f"[{same_field} = {same_value!r}] already exists in {coll} collection."
                ).with_context(operation="save", collection=coll, field=field_name)

    @classmethod
    async def insert_many(cls, store: DocumentStore, items: list[Self]) -> list[Any]:
        """Insert ``items`` without uniqueness checks; assigns their ids."""
        ids = await store.insert_many(cls.collection_name, [item.to_doc() for item in items])
        for item, new_id in zip(items, ids, strict=True):
            item.id = new_id
        return ids

    async def delete(
        self, store: DocumentStore, *, registry: RelationshipRegistry | None = None
    ) -> CascadeReport | None:
        """Cascade-delete this record. Unsaved records are a no-op."""
        if self.id is None:
            return None
        return await cascade_delete(store, self.collection_name, self.id, registry=registry)

    async def populate(
        self,
        store: DocumentStore,
        collections: Iterable[str] | None = None,
        *,
        registry: RelationshipRegistry | None = None,
    ) -> dict[str, Any]:
        """This record as a document with every linked record embedded."""
        return await populate(
            store, self.to_doc(), self.collection_name, collections, registry=registry
        )


# =============================================================================
# Registration
# =============================================================================


def declared_models() -> list[type[Model]]:
    return list(_declared.values())


def build_registry(*models: type[Model]) -> RelationshipRegistry:
    """Build a registry from ``models`` (default: every declared model) without installing it."""
    builder = RegistryBuilder()
    for model in models or declared_models():
        builder.add_model(model)
    return builder.build()


def register(*models: type[Model]) -> RelationshipRegistry:
    """Build and install the process registry. Call once at startup."""
    return install_registry(build_registry(*models))


__all__ = [
    "ForeignKey",
    "Reference",
    "Unique",
    "UniqueIfSame",
    "Model",
    "declared_models",
    "build_registry",
    "register",
]
