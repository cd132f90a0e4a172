"""
Document store interface and an in-process implementation.

Generated services talk to a ``DocumentStore``; a production deployment
plugs a real database driver in behind the same interface.
``MemoryDocumentStore`` keeps documents in dictionaries and is what the
example project and the test-suite run against.

Documents are plain dicts. Each stored document gets a 24 hex character
``_id`` and, when the collection keeps timestamps, ``createdAt`` and
``updatedAt`` (ISO 8601, UTC).
"""

from __future__ import annotations

import copy
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger("waypoint.store")

Document = Dict[str, Any]
SortSpec = Union[Mapping[str, int], Sequence[Tuple[str, int]], None]


class DuplicateKeyError(Exception):
    """A write would violate a unique index."""

    code = 11000

    def __init__(self, collection: str, field: str, value: Any):
        super().__init__(f"E11000 duplicate key error collection: {collection} index: {field} dup key: {value!r}")
        self.collection = collection
        self.field = field
        self.value = value


def new_object_id() -> str:
    return secrets.token_hex(12)


def utc_now() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class Collection(ABC):
    """Async collection interface used by services."""

    name: str

    @abstractmethod
    async def insert_one(self, document: Mapping[str, Any]) -> Document:
        """Store a document; returns it with ``_id`` (and timestamps)."""

    @abstractmethod
    async def find(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: SortSpec = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Documents whose fields equal every value of ``filters``."""

    @abstractmethod
    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        ...

    @abstractmethod
    async def find_by_id(self, object_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def update_by_id(self, object_id: str, changes: Mapping[str, Any]) -> Optional[Document]:
        """Apply ``changes``; returns the updated document or None."""

    @abstractmethod
    async def delete_by_id(self, object_id: str) -> Optional[Document]:
        """Remove a document; returns it or None."""


class DocumentStore(ABC):
    """Named collections with optional unique indexes."""

    @abstractmethod
    def collection(self, name: str, *, unique: Iterable[str] = (), timestamps: bool = True) -> Collection:
        ...

    async def aclose(self) -> None:
        """Release connections (no-op by default)."""


# ============================================================================
# In-memory implementation
# ============================================================================

def _sort_key(field: str):
    def key(document: Document) -> Tuple[int, Any]:
        value = document.get(field)
        # None sorts first, like a missing field in a document database
        return (0, "") if value is None else (1, value)

    return key


class MemoryCollection(Collection):
    """Dict-backed collection."""

    def __init__(self, name: str, *, unique: Iterable[str] = (), timestamps: bool = True):
        self.name = name
        self.unique = set(unique)
        self.timestamps = timestamps
        self._documents: Dict[str, Document] = {}

    def add_unique(self, fields: Iterable[str]) -> None:
        self.unique.update(fields)

    def _check_unique(self, document: Mapping[str, Any], ignore_id: Optional[str] = None) -> None:
        for field in self.unique:
            value = document.get(field)
            if value is None:
                continue
            for other_id, other in self._documents.items():
                if other_id != ignore_id and other.get(field) == value:
                    raise DuplicateKeyError(self.name, field, value)

    @staticmethod
    def _matches(document: Document, filters: Mapping[str, Any]) -> bool:
        return all(document.get(field) == value for field, value in filters.items())

    async def insert_one(self, document: Mapping[str, Any]) -> Document:
        stored = copy.deepcopy(dict(document))
        stored.setdefault("_id", new_object_id())
        if stored["_id"] in self._documents:
            raise DuplicateKeyError(self.name, "_id", stored["_id"])
        self._check_unique(stored)
        if self.timestamps:
            stored["createdAt"] = stored["updatedAt"] = utc_now()
        self._documents[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def find(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: SortSpec = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        filters = filters or {}
        found = [doc for doc in self._documents.values() if self._matches(doc, filters)]

        order = list(sort.items()) if isinstance(sort, Mapping) else list(sort or [])
        # Stable sorts applied from the last key to the first
        for field, direction in reversed(order):
            found.sort(key=_sort_key(field), reverse=direction < 0)

        found = found[max(skip, 0):]
        if limit is not None:
            found = found[:max(limit, 0)]
        return [copy.deepcopy(doc) for doc in found]

    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        filters = filters or {}
        return sum(1 for doc in self._documents.values() if self._matches(doc, filters))

    async def find_by_id(self, object_id: str) -> Optional[Document]:
        document = self._documents.get(object_id)
        return copy.deepcopy(document) if document is not None else None

    async def update_by_id(self, object_id: str, changes: Mapping[str, Any]) -> Optional[Document]:
        current = self._documents.get(object_id)
        if current is None:
            return None
        updated = {**current, **copy.deepcopy(dict(changes))}
        updated["_id"] = object_id
        self._check_unique(updated, ignore_id=object_id)
        if self.timestamps:
            updated["updatedAt"] = utc_now()
        self._documents[object_id] = updated
        return copy.deepcopy(updated)

    async def delete_by_id(self, object_id: str) -> Optional[Document]:
        removed = self._documents.pop(object_id, None)
        return copy.deepcopy(removed) if removed is not None else None

    def __len__(self) -> int:
        return len(self._documents)


class MemoryDocumentStore(DocumentStore):
    """In-process document store."""

    def __init__(self) -> None:
        self._collections: Dict[str, MemoryCollection] = {}

    def collection(self, name: str, *, unique: Iterable[str] = (), timestamps: bool = True) -> MemoryCollection:
        existing = self._collections.get(name)
        if existing is not None:
            existing.add_unique(unique)
            return existing
        created = MemoryCollection(name, unique=unique, timestamps=timestamps)
        self._collections[name] = created
        logger.debug("Created collection %s (unique: %s)", name, sorted(created.unique) or "none")
        return created

    @property
    def collection_names(self) -> List[str]:
        return list(self._collections)

    async def aclose(self) -> None:
        self._collections.clear()
