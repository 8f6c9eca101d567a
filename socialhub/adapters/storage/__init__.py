"""Document storage adapters."""

from socialhub.adapters.storage.base import AbstractCollection, Document, Filter
from socialhub.adapters.storage.in_memory import InMemoryCollection
from socialhub.adapters.storage.mongo import MongoCollection

__all__ = ["AbstractCollection", "Document", "Filter", "InMemoryCollection", "MongoCollection"]
