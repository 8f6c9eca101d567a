"""MongoDB-backed document collection.

Wraps a ``pymongo`` asyncio collection behind the collection interface.
Document ids are strings (a UUID hex when the caller supplies none), and the
client must be created with ``tz_aware=True`` so datetimes come back in UTC.
Driver errors surface as ``DatabaseUnavailable``.
"""

from __future__ import annotations

import logging
import uuid

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from socialhub.adapters.storage.base import AbstractCollection, Document, Filter
from socialhub.core.errors import DatabaseUnavailable

logger = logging.getLogger(__name__)


class MongoCollection(AbstractCollection):
    """Collection adapter over ``AsyncCollection``."""

    backend_name = "mongo"

    def __init__(self, collection: AsyncCollection) -> None:
        super().__init__(collection.name)
        self._collection = collection

    def _unavailable(self, operation: str, exc: PyMongoError) -> DatabaseUnavailable:
        logger.error(
            "database.operation_failed",
            extra={
                "collection": self.name,
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return DatabaseUnavailable(
            code="database_unavailable",
            message="Database is unreachable",
            details={"context": {"collection": self.name, "operation": operation}},
        )

    async def insert_one(self, document: Document) -> Document:
        stored = dict(document)
        stored.setdefault("_id", uuid.uuid4().hex)
        try:
            await self._collection.insert_one(stored)
        except DuplicateKeyError as exc:
            raise ValueError(f"duplicate _id {stored['_id']!r} in {self.name}") from exc
        except PyMongoError as exc:
            raise self._unavailable("insert_one", exc) from exc
        return stored

    async def upsert_one(self, document_id: str, document: Document) -> Document:
        stored = {**document, "_id": document_id}
        try:
            await self._collection.replace_one({"_id": document_id}, stored, upsert=True)
        except PyMongoError as exc:
            raise self._unavailable("upsert_one", exc) from exc
        return stored

    async def find_one(self, document_id: str) -> Document | None:
        try:
            return await self._collection.find_one({"_id": document_id})
        except PyMongoError as exc:
            raise self._unavailable("find_one", exc) from exc

    async def find(
        self,
        query: Filter | None = None,
        *,
        sort_key: str | None = None,
        descending: bool = False,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Document]:
        cursor = self._collection.find(query or {})
        if sort_key is not None:
            cursor = cursor.sort(sort_key, DESCENDING if descending else ASCENDING)
        if skip:
            cursor = cursor.skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)
        try:
            return await cursor.to_list(None)
        except PyMongoError as exc:
            raise self._unavailable("find", exc) from exc

    async def count(self, query: Filter | None = None) -> int:
        try:
            return await self._collection.count_documents(query or {})
        except PyMongoError as exc:
            raise self._unavailable("count", exc) from exc

    async def delete_one(self, document_id: str) -> bool:
        try:
            result = await self._collection.delete_one({"_id": document_id})
        except PyMongoError as exc:
            raise self._unavailable("delete_one", exc) from exc
        return result.deleted_count > 0

    async def delete_many(self, query: Filter | None = None) -> int:
        try:
            result = await self._collection.delete_many(query or {})
        except PyMongoError as exc:
            raise self._unavailable("delete_many", exc) from exc
        return result.deleted_count
