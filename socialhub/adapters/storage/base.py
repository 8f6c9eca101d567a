"""Document collection interface.

Services depend on this abstraction so the MongoDB collection used in
deployment and the in-process collection used in tests are interchangeable.
Filters use the MongoDB query subset the services need: equality, ``$gte``,
``$in`` and case-insensitive ``$regex``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]
Filter = dict[str, Any]


class AbstractCollection(ABC):
    """Async document collection keyed by ``_id``."""

    backend_name: str = "abstract"

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def insert_one(self, document: Document) -> Document:
        """Insert a document, assigning a string ``_id`` when missing.

        Raises:
            ValueError: If a document with the same ``_id`` exists.
            DatabaseUnavailable: If the database cannot be reached.
        """

    @abstractmethod
    async def upsert_one(self, document_id: str, document: Document) -> Document:
        """Insert or replace the document stored under ``document_id``."""

    @abstractmethod
    async def find_one(self, document_id: str) -> Document | None:
        """Return the document stored under ``document_id``, if any."""

    @abstractmethod
    async def find(
        self,
        query: Filter | None = None,
        *,
        sort_key: str | None = None,
        descending: bool = False,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Document]:
        """Return matching documents, optionally sorted and paginated."""

    @abstractmethod
    async def count(self, query: Filter | None = None) -> int:
        """Count matching documents."""

    @abstractmethod
    async def delete_one(self, document_id: str) -> bool:
        """Delete by id; returns False when nothing was stored under it."""

    @abstractmethod
    async def delete_many(self, query: Filter | None = None) -> int:
        """Delete matching documents and return how many were removed."""
