"""MongoDB document store.

Wraps :class:`pymongo.AsyncMongoClient` behind the
:class:`~linkspine.core.protocols.DocumentStore` protocol. Every driver call
runs inside :meth:`MongoDocumentStore._errors`, which converts
``PyMongoError`` and BSON encoding errors into :class:`StoreConnectionError`
(network trouble, retryable) or :class:`StoreError` (everything else)
with the original exception chained as ``cause``.

``session()`` yields a copy of the store bound to one client session, so
all primitives issued by one cascade share that session. Each primitive
still commits on its own; no multi-document transaction is opened.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from linkspine.core.errors import ConfigError, StoreConnectionError, StoreError
from linkspine.core.logging import get_logger
from linkspine.core.protocols import Document, Filter
from linkspine.core.settings import LinkSpineSettings, get_settings

logger = get_logger(__name__)


def _without_empty_id(document: Mapping[str, Any]) -> dict[str, Any]:
    doc = dict(document)
    if "_id" in doc and doc["_id"] is None:
        del doc["_id"]
    return doc


class MongoDocumentStore:
    """
    Document store backed by one MongoDB database.

    Parameters:
        url: MongoDB connection string. Not needed when ``client`` is given.
        database: Database name.
        client: An existing ``AsyncMongoClient`` to reuse.
        **client_kwargs: Passed to ``AsyncMongoClient`` on :meth:`connect`.
    """

    def __init__(
        self,
        url: str | None = None,
        database: str = "linkspine",
        *,
        client: AsyncMongoClient | None = None,
        session: Any = None,
        **client_kwargs: Any,
    ) -> None:
        self._url = url
        self._database_name = database
        self._client = client
        self._session = session
        self._client_kwargs = client_kwargs

    @classmethod
    def from_settings(cls, settings: LinkSpineSettings | None = None) -> MongoDocumentStore:
        settings = settings or get_settings()
        return cls(settings.resolve_mongo_url(), settings.database)

    @property
    def database_name(self) -> str:
        return self._database_name

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> MongoDocumentStore:
        """Create the client and ping the server."""
        if self._client is None:
            if not self._url:
                raise ConfigError("MongoDocumentStore needs a url or a client")
            logger.info("mongo_connecting", database=self._database_name)
            self._client = AsyncMongoClient(self._url, **self._client_kwargs)
        with self._errors("connect", None):
            await self._client.admin.command("ping")
        return self

    async def close(self) -> None:
        if self._client is not None and self._session is None:
            await self._client.close()
            self._client = None

    # ── Primitives ───────────────────────────────────────────────

    async def find_one(self, collection: str, filter: Filter) -> Document | None:
        with self._errors("find_one", collection):
            return await self._coll(collection).find_one(dict(filter), session=self._session)

    async def find_many(
        self,
        collection: str,
        filter: Filter,
        *,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        with self._errors("find_many", collection):
            cursor = self._coll(collection).find(dict(filter), session=self._session)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(None)

    async def update_many(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        with self._errors("update_many", collection):
            result = await self._coll(collection).update_many(
                dict(filter), {"$set": dict(values)}, session=self._session
            )
            return result.modified_count

    async def update_one(
        self, collection: str, filter: Filter, values: Mapping[str, Any]
    ) -> int:
        with self._errors("update_one", collection):
            result = await self._coll(collection).update_one(
                dict(filter), {"$set": dict(values)}, session=self._session
            )
            return result.modified_count

    async def delete_one(self, collection: str, document_id: Any) -> bool:
        with self._errors("delete_one", collection):
            result = await self._coll(collection).delete_one(
                {"_id": document_id}, session=self._session
            )
            return result.deleted_count == 1

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> Any:
        with self._errors("insert_one", collection):
            result = await self._coll(collection).insert_one(
                _without_empty_id(document), session=self._session
            )
            return result.inserted_id

    async def insert_many(
        self, collection: str, documents: list[Mapping[str, Any]]
    ) -> list[Any]:
        if not documents:
            return []
        with self._errors("insert_many", collection):
            result = await self._coll(collection).insert_many(
                [_without_empty_id(doc) for doc in documents], session=self._session
            )
            return list(result.inserted_ids)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[MongoDocumentStore]:
        """Yield a store bound to a fresh client session."""
        if self._session is not None:
            yield self
            return
        client = self._require_client()
        try:
            async with client.start_session() as mongo_session:
                yield MongoDocumentStore(
                    database=self._database_name, client=client, session=mongo_session
                )
        except PyMongoError as e:
            raise StoreError(f"MongoDB session failed: {e}", cause=e) from e

    # ── Helpers ──────────────────────────────────────────────────

    def _require_client(self) -> AsyncMongoClient:
        if self._client is None:
            raise ConfigError("MongoDocumentStore is not connected; call connect() first")
        return self._client

    def _coll(self, name: str) -> Any:
        return self._require_client()[self._database_name][name]

    @contextmanager
    def _errors(self, operation: str, collection: str | None) -> Iterator[None]:
        try:
            yield
        except ConnectionFailure as e:  # includes AutoReconnect, timeouts
            raise StoreConnectionError(
                f"MongoDB {operation} failed: {e}", cause=e
            ).with_context(operation=operation, collection=collection) from e
        except PyMongoError as e:
            raise StoreError(
                f"MongoDB {operation} failed: {e}", cause=e
            ).with_context(operation=operation, collection=collection) from e
        except BSONError as e:
            raise StoreError(
                f"MongoDB {operation} could not encode document: {e}", cause=e
            ).with_context(operation=operation, collection=collection) from e


async def connect_store(
    url: str | None = None,
    database: str | None = None,
    *,
    settings: LinkSpineSettings | None = None,
) -> MongoDocumentStore:
    """Connect to MongoDB using explicit arguments, falling back to settings."""
    settings = settings or get_settings()
    store = MongoDocumentStore(
        url or settings.resolve_mongo_url(),
        database or settings.database,
    )
    return await store.connect()


__all__ = [
    "MongoDocumentStore",
    "connect_store",
]
