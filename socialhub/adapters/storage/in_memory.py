"""In-process document collection.

Implements the collection interface over a dict for development and tests.
Per-process only; deployments use the MongoDB collection.
"""

from __future__ import annotations

import copy
import re
import uuid
from typing import Any

from socialhub.adapters.storage.base import AbstractCollection, Document, Filter


def _matches_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return value == condition

    for operator, operand in condition.items():
        if operator == "$gte":
            if value is None or value < operand:
                return False
        elif operator == "$in":
            if value not in operand:
                return False
        elif operator == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or re.search(operand, value, flags) is None:
                return False
        elif operator == "$options":
            continue
        else:
            raise ValueError(f"unsupported query operator: {operator}")
    return True


def matches(document: Document, query: Filter | None) -> bool:
    """Whether ``document`` satisfies every field condition of ``query``."""
    return all(_matches_condition(document.get(field), cond) for field, cond in (query or {}).items())


class InMemoryCollection(AbstractCollection):
    """Minimal async document collection keyed by ``_id``.

    Documents are copied on the way in and out so callers can never mutate
    stored state by accident.
    """

    backend_name = "memory"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._documents: dict[str, Document] = {}

    async def insert_one(self, document: Document) -> Document:
        stored = copy.deepcopy(document)
        stored.setdefault("_id", uuid.uuid4().hex)
        if stored["_id"] in self._documents:
            raise ValueError(f"duplicate _id {stored['_id']!r} in {self.name}")
        self._documents[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def upsert_one(self, document_id: str, document: Document) -> Document:
        stored = copy.deepcopy(document)
        stored["_id"] = document_id
        self._documents[document_id] = stored
        return copy.deepcopy(stored)

    async def find_one(self, document_id: str) -> Document | None:
        document = self._documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(
        self,
        query: Filter | None = None,
        *,
        sort_key: str | None = None,
        descending: bool = False,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Document]:
        found = [d for d in self._documents.values() if matches(d, query)]
        if sort_key is not None:
            found.sort(key=lambda d: d.get(sort_key), reverse=descending)
        end = None if limit is None else skip + limit
        return [copy.deepcopy(d) for d in found[skip:end]]

    async def count(self, query: Filter | None = None) -> int:
        return sum(1 for d in self._documents.values() if matches(d, query))

    async def delete_one(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None

    async def delete_many(self, query: Filter | None = None) -> int:
        doomed = [k for k, d in self._documents.items() if matches(d, query)]
        for key in doomed:
            del self._documents[key]
        return len(doomed)
