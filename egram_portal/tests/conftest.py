# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import copy
import logging
import os
import threading
import uuid
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from egram_portal.config import LoggerConfig, PortalConfig
from egram_portal.errors import NotFoundException, StorageOperationException
from egram_portal.models.entities import UserContext
from egram_portal.services.document_store import (
    BatchOperation,
    DocumentStore,
    Predicate,
    WriteBatch,
    get_field_value,
    resolve_server_timestamps
)

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

TEST_BCRYPT_ROUNDS = 4


class InMemoryWriteBatch(WriteBatch):
    """Batch applied to a copy of the store's data and swapped in on success."""

    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self._store = store

    def _apply(self, operations: List[BatchOperation]) -> None:
        self._store.commit_batch(operations)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store for tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.fail_operations = False
        self.fail_batches = 0
        self.committed_batches: List[List[BatchOperation]] = []
        self._lock = threading.RLock()
        self._now = start or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def clock(self) -> datetime:
        """Strictly increasing write time so ordering by timestamps is stable."""
        with self._lock:
            self._now += timedelta(milliseconds=1)
            return self._now

    def _check(self, operation: str, collection: str) -> None:
        if self.fail_operations:
            raise StorageOperationException(f"Storage {operation} failed: simulated outage",
                                            operation=operation, collection=collection)

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    def documents(self, collection: str) -> List[Dict[str, Any]]:
        """Stored documents of a collection, with their ids."""
        with self._lock:
            return [{**copy.deepcopy(data), 'id': doc_id} for doc_id, data in self._collection(collection).items()]

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._check("get", collection)
        with self._lock:
            data = self._collection(collection).get(doc_id)
            return None if data is None else {**copy.deepcopy(data), 'id': doc_id}

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._check("set", collection)
        with self._lock:
            stored = copy.deepcopy(resolve_server_timestamps(data, self.clock()))
            stored.pop('id', None)
            self._collection(collection)[doc_id] = stored

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        self._check("update", collection)
        with self._lock:
            existing = self._collection(collection).get(doc_id)
            if existing is None:
                raise NotFoundException(f"Document {doc_id} not found in {collection}")
            existing.update(copy.deepcopy(resolve_server_timestamps(partial, self.clock())))

    def delete(self, collection: str, doc_id: str) -> None:
        self._check("delete", collection)
        with self._lock:
            self._collection(collection).pop(doc_id, None)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = self.new_id()
        self.set(collection, doc_id, data)
        return doc_id

    def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        self._check("query", collection)
        results = [
            document for document in self.documents(collection)
            if all(predicate.matches(document) for predicate in predicates)
        ]

        if order_by:
            present = [d for d in results if get_field_value(d, order_by)[1] is not None]
            missing = [d for d in results if get_field_value(d, order_by)[1] is None]
            present.sort(key=lambda d: get_field_value(d, order_by)[1], reverse=descending)
            results = present + missing

        if limit:
            results = results[:limit]
        return results

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    def commit_batch(self, operations: List[BatchOperation]) -> None:
        with self._lock:
            if self.fail_operations or self.fail_batches > 0:
                self.fail_batches = max(0, self.fail_batches - 1)
                raise StorageOperationException("Storage batch_commit failed: simulated outage",
                                                operation="batch_commit")

            staged = copy.deepcopy(self.collections)
            now = self.clock()
            for op in operations:
                documents = staged.setdefault(op.collection, {})
                if op.kind == "set":
                    stored = copy.deepcopy(resolve_server_timestamps(op.data, now))
                    stored.pop('id', None)
                    documents[op.doc_id] = stored
                elif op.kind == "update":
                    if op.doc_id not in documents:
                        raise NotFoundException(f"Document {op.doc_id} not found in {op.collection}")
                    documents[op.doc_id].update(copy.deepcopy(resolve_server_timestamps(op.data, now)))
                else:
                    documents.pop(op.doc_id, None)

            self.collections = staged
            self.committed_batches.append(list(operations))


class RecordingHandler(logging.Handler):
    """Logging handler keeping every record for assertions."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def store():
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def sink():
    """Isolated logger capturing event log console output."""
    logger = logging.getLogger(f"egram_portal.events.test.{uuid.uuid4().hex}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = RecordingHandler()
    logger.addHandler(handler)
    logger.records = handler.records
    yield logger
    logger.removeHandler(handler)


@pytest.fixture
def logger_config():
    """Logger settings with a large buffer and a long interval, so nothing flushes on its own."""
    return LoggerConfig(max_buffer_size=1000, flush_interval=3600.0)


@pytest.fixture
def event_logger(store, logger_config, sink):
    from egram_portal.services.event_logger import EventLogger
    return EventLogger(store, logger_config, sink=sink)


@pytest.fixture(scope="session")
def jwt_keys():
    """RSA key pair shared by the whole run; generating one is slow."""
    from egram_portal.services.identity import generate_dev_key_pair
    return generate_dev_key_pair()


@pytest.fixture
def identity(store, jwt_keys):
    from egram_portal.services.identity import LocalIdentityProvider
    private_key, public_key = jwt_keys
    return LocalIdentityProvider(store, private_key, public_key, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def citizen():
    return UserContext(user_id="citizen-1", email="asha@example.com", name="Asha Patil", role="citizen")


@pytest.fixture
def other_citizen():
    return UserContext(user_id="citizen-2", email="ravi@example.com", name="Ravi Kumar", role="citizen")


@pytest.fixture
def staff():
    return UserContext(user_id="staff-1", email="clerk@example.com", name="Gram Sevak", role="staff")


@pytest.fixture
def admin():
    return UserContext(user_id="admin-1", email="sarpanch@example.com", name="Sarpanch", role="admin")


@pytest.fixture
def sample_service_data():
    """Valid service creation payload."""
    return {
        "name": "Birth Certificate",
        "description": "Issue a certified copy of a birth record",
        "category": "certificate",
        "requiredDocuments": "Hospital discharge slip, Parent ID proof",
        "processingTime": "5-7 days",
        "fees": 20
    }


@pytest.fixture
def sample_application_data():
    """Valid application payload, without the service id."""
    return {
        "applicantName": "Asha Patil",
        "applicantEmail": "asha@example.com",
        "applicantPhone": "+91 98765 43210",
        "applicantAddress": "Ward 3, Shirur",
        "formData": {"childName": "Meera", "dateOfBirth": "2023-11-02"}
    }


@pytest.fixture
def portal_config():
    """Application settings for HTTP tests."""
    return PortalConfig(
        environment="test",
        base_url="https://portal.example.org",
        otel_enabled=False,
        logger=LoggerConfig(max_buffer_size=1000, flush_interval=3600.0)
    )
