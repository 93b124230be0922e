"""Document stores -- implementations of the DocumentStore protocol.

Architecture::

    memory.py      InMemoryDocumentStore (dict-backed, tests and dev)
    mongo.py       MongoDocumentStore (pymongo AsyncMongoClient)
    registry.py    StoreRegistry singleton + get_store() factory

Tags:
    linkspine, document-store, adapters, mongodb
"""

from .memory import InMemoryDocumentStore, JournalEntry
from .mongo import MongoDocumentStore, connect_store
from .registry import StoreRegistry, get_store, store_registry

__all__ = [
    "InMemoryDocumentStore",
    "JournalEntry",
    "MongoDocumentStore",
    "connect_store",
    "StoreRegistry",
    "store_registry",
    "get_store",
]
