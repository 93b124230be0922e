"""Connection entry points -- turn a URL (or the environment) into a ready store.

Supported URL schemes
---------------------
==================  ===========================================  ==========
Scheme              Example                                      Store
==================  ===========================================  ==========
``memory``          ``memory`` or ``None``                       in-memory
``mongodb``         ``mongodb://user:pw@host:27017``             MongoDB
``mongodb+srv``     ``mongodb+srv://cluster.example.net``        MongoDB
==================  ===========================================  ==========

Usage
-----
::

    from linkspine.connection import connect, create_store

    store = await create_store("memory")
    store = await connect()          # MONGO_URL / LINKSPINE_MONGO_URL, registers models
"""

from __future__ import annotations

from linkspine.core.errors import ConfigError
from linkspine.core.logging import get_logger
from linkspine.core.protocols import DocumentStore
from linkspine.core.settings import LinkSpineSettings, get_settings
from linkspine.models import register
from linkspine.relations.registry import is_registry_installed
from linkspine.stores import InMemoryDocumentStore, MongoDocumentStore, connect_store

logger = get_logger(__name__)

_MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


async def create_store(
    url: str | None = None,
    database: str | None = None,
    *,
    settings: LinkSpineSettings | None = None,
) -> DocumentStore:
    """Create a connected store for ``url``."""
    if url is None or url in ("memory", ":memory:"):
        return InMemoryDocumentStore()
    if url.startswith(_MONGO_SCHEMES):
        settings = settings or get_settings()
        store = MongoDocumentStore(url, database or settings.database)
        return await store.connect()
    raise ConfigError(f"Unsupported store URL: {url!r}")


async def connect(
    url: str | None = None,
    database: str | None = None,
    *,
    settings: LinkSpineSettings | None = None,
) -> MongoDocumentStore:
    """
    Register declared models (unless a registry is installed) and connect to MongoDB.

    ``url`` and ``database`` default to the settings
    (``MONGO_URL`` or ``MONGO_URL_LOCAL`` when ``offline``).
    """
    if not is_registry_installed():
        register()
    return await connect_store(url, database, settings=settings)


__all__ = [
    "create_store",
    "connect",
]
