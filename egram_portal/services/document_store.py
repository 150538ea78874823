# SPDX-License-Identifier: Apache-2.0

"""
Document store interface consumed by every service.

The application talks to persistence only through ``DocumentStore``. Adapters
(see ``services.mongodb``) translate these calls to a concrete database.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence


class _ServerTimestamp:
    """Placeholder replaced by the write time when a document is stored."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in")


@dataclass(frozen=True)
class Predicate:
    """Single field condition; ``field`` may be a dotted path such as ``context.userId``."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def matches(self, document: Dict[str, Any]) -> bool:
        """Evaluate the condition against a document held in memory."""
        found, actual = get_field_value(document, self.field)

        if self.op == "==":
            return found and actual == self.value
        if self.op == "!=":
            return not found or actual != self.value
        if self.op == "in":
            return found and actual in self.value
        if not found or actual is None:
            return False

        try:
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            return actual >= self.value
        except TypeError:
            return False


def get_field_value(document: Dict[str, Any], path: str):
    """Resolve a dotted path; returns ``(found, value)``."""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


def resolve_server_timestamps(value: Any, now: datetime) -> Any:
    """Copy of ``value`` with every ``SERVER_TIMESTAMP`` replaced by ``now``."""
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: resolve_server_timestamps(item, now) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_server_timestamps(item, now) for item in value]
    return value


@dataclass(frozen=True)
class BatchOperation:
    """Queued write inside a ``WriteBatch``."""
    kind: str
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


class WriteBatch(ABC):
    """
    Group of writes committed all-or-nothing.

    Writes are queued by ``set``, ``update`` and ``delete`` and applied by
    ``commit``. A batch can be committed once.
    """

    def __init__(self):
        self._operations: List[BatchOperation] = []
        self._committed = False

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        self._ensure_open()
        self._operations.append(BatchOperation("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> "WriteBatch":
        self._ensure_open()
        self._operations.append(BatchOperation("update", collection, doc_id, dict(partial)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._ensure_open()
        self._operations.append(BatchOperation("delete", collection, doc_id))
        return self

    @property
    def operations(self) -> List[BatchOperation]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def commit(self) -> None:
        """Apply every queued write atomically."""
        self._ensure_open()
        self._committed = True
        if self._operations:
            self._apply(list(self._operations))

    def _ensure_open(self) -> None:
        if self._committed:
            raise RuntimeError("Write batch has already been committed")

    @abstractmethod
    def _apply(self, operations: List[BatchOperation]) -> None:
        """Apply the operations atomically or raise without applying any."""


class DocumentStore(ABC):
    """
    Collection/document storage used by the portal.

    Documents are plain dicts. Returned documents carry their identifier under
    ``"id"``. Implementations raise ``StorageOperationException`` when the
    backend call fails and ``NotFoundException`` from ``update`` when the
    document does not exist.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by id, or None when absent."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or replace the document with the given id."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        """Merge fields into an existing document."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document; removing an absent document is not an error."""

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a document under a fresh id and return the id."""

    @abstractmethod
    def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Documents matching every predicate, optionally ordered and limited."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""

    def new_id(self) -> str:
        """Fresh document identifier."""
        return uuid.uuid4().hex

    def close(self) -> None:
        """Release backend resources."""

    def health_check(self) -> Dict[str, Any]:
        return {'status': 'healthy'}

    def create_indexes(self) -> None:
        """Create the indexes the portal queries rely on. No-op by default."""
