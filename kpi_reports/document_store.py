"""Document store capability used by the report pipeline.

The pipeline only needs per-document create/read/update, equality queries
with a single ordering key, and server-assigned timestamps.
``InMemoryDocumentStore`` is the shipped implementation.
"""
import copy
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from kpi_reports.errors import StorageUnavailable


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the store's clock when a document is written
SERVER_TIMESTAMP = _ServerTimestamp()

# Field value that removes the field on update
DELETE_FIELD = object()

Document = Tuple[str, Dict[str, Any]]


class DocumentStore(ABC):

    @abstractmethod
    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create a document; fails if ``doc_id`` already exists."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the document, or None."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any],
               expected: Optional[Dict[str, Any]] = None) -> bool:
        """Update fields of an existing document.

        With ``expected``, the update is applied only if every expected field
        currently holds the given value (None matches a missing field).
        Returns whether the update was applied.
        """

    @abstractmethod
    def query(self, collection: str, where: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None) -> List[Document]:
        """Equality-filtered, optionally ordered and limited list of (id, data)."""


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe in-memory document store."""

    def __init__(self, clock: Callable[[], datetime] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _resolve(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = self._clock()
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if doc_id in docs:
                raise StorageUnavailable(f"Document {doc_id} already exists")
            docs[doc_id] = copy.deepcopy(self._resolve(data))

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any],
               expected: Optional[Dict[str, Any]] = None) -> bool:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            if doc is None:
                raise StorageUnavailable(f"Document {doc_id} does not exist")
            if expected and any(doc.get(k) != v for k, v in expected.items()):
                return False
            for key, value in self._resolve(fields).items():
                if value is DELETE_FIELD:
                    doc.pop(key, None)
                else:
                    doc[key] = copy.deepcopy(value)
            return True

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None) -> List[Document]:
        with self._lock:
            docs = list(self._collections.get(collection, {}).items())
            matches = [
                (doc_id, copy.deepcopy(data)) for doc_id, data in docs
                if all(data.get(k) == v for k, v in (where or {}).items())
            ]
        if order_by:
            # Documents missing the ordering field are excluded, as Firestore does
            matches = [m for m in matches if m[1].get(order_by) is not None]
            matches.sort(key=lambda m: m[1][order_by], reverse=descending)
        if limit is not None:
            matches = matches[:limit]
        return matches

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()
