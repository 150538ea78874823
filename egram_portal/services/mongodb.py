# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB document store adapter with connection pooling.
"""

import os
import logging
from contextlib import contextmanager
from typing import List, Dict, Optional, Any, Sequence
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    PyMongoError
)

from ..errors import NotFoundException, StorageOperationException
from ..models.base import utcnow
from .document_store import (
    BatchOperation,
    DocumentStore,
    Predicate,
    WriteBatch,
    resolve_server_timestamps
)

logger = logging.getLogger(__name__)

MONGO_OPERATORS = {
    "==": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
    "in": "$in"
}


def build_filter(predicates: Sequence[Predicate]) -> Dict[str, Any]:
    """Translate predicates into a MongoDB filter document."""
    criteria: Dict[str, Dict[str, Any]] = {}
    for predicate in predicates:
        value = list(predicate.value) if predicate.op == "in" else predicate.value
        criteria.setdefault(predicate.field, {})[MONGO_OPERATORS[predicate.op]] = value
    return criteria


def to_document(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose Mongo's ``_id`` as ``id``."""
    if raw is None:
        return None
    document = dict(raw)
    if "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


def to_storage(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    document = {key: value for key, value in data.items() if key != "id"}
    document["_id"] = doc_id
    return document


@contextmanager
def storage_call(operation: str, collection: Optional[str] = None):
    """Wrap driver errors in ``StorageOperationException``."""
    try:
        yield
    except PyMongoError as e:
        logger.error(
            f"MongoDB {operation} failed on {collection}: {e}",
            extra={'operation': operation, 'collection': collection}
        )
        raise StorageOperationException(
            f"Storage {operation} failed: {e}", operation=operation, collection=collection
        ) from e


class MongoWriteBatch(WriteBatch):
    """Write batch committed inside a MongoDB multi-document transaction."""

    def __init__(self, store: "MongoDocumentStore"):
        super().__init__()
        self._store = store

    def _apply(self, operations: List[BatchOperation]) -> None:
        now = utcnow()
        with storage_call("batch_commit"):
            with self._store.client.start_session() as session:
                with session.start_transaction():
                    for op in operations:
                        collection_obj = self._store.get_collection(op.collection)
                        if op.kind == "set":
                            data = resolve_server_timestamps(op.data, now)
                            collection_obj.replace_one(
                                {"_id": op.doc_id}, to_storage(op.doc_id, data), upsert=True, session=session
                            )
                        elif op.kind == "update":
                            data = resolve_server_timestamps(op.data, now)
                            result = collection_obj.update_one({"_id": op.doc_id}, {"$set": data}, session=session)
                            if result.matched_count == 0:
                                # Raising inside the transaction block aborts it
                                raise NotFoundException(f"Document {op.doc_id} not found in {op.collection}")
                        else:
                            collection_obj.delete_one({"_id": op.doc_id}, session=session)

        logger.debug(f"Committed batch of {len(operations)} operations")


class MongoDocumentStore(DocumentStore):
    """MongoDB-backed document store with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize the store; the client connects lazily."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/egram_portal_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'egram_portal_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB document store initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                self._client = None
                raise StorageOperationException(f"Failed to connect to MongoDB: {e}", operation="connect") from e

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except (PyMongoError, StorageOperationException) as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Document operations

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with storage_call("get", collection):
            document = self.get_collection(collection).find_one({"_id": doc_id})
        return to_document(document)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        data = resolve_server_timestamps(data, utcnow())
        with storage_call("set", collection):
            self.get_collection(collection).replace_one({"_id": doc_id}, to_storage(doc_id, data), upsert=True)
        logger.debug(f"Set document {doc_id} in {collection}")

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        partial = resolve_server_timestamps(partial, utcnow())
        with storage_call("update", collection):
            result = self.get_collection(collection).update_one({"_id": doc_id}, {"$set": partial})

        if result.matched_count == 0:
            logger.warning(f"No document updated for {doc_id} in {collection}")
            raise NotFoundException(f"Document {doc_id} not found in {collection}")
        logger.debug(f"Updated document {doc_id} in {collection}")

    def delete(self, collection: str, doc_id: str) -> None:
        with storage_call("delete", collection):
            self.get_collection(collection).delete_one({"_id": doc_id})
        logger.debug(f"Deleted document {doc_id} in {collection}")

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = self.new_id()
        data = resolve_server_timestamps(data, utcnow())
        with storage_call("add", collection):
            self.get_collection(collection).insert_one(to_storage(doc_id, data))
        logger.info(f"Created document in {collection}: {doc_id}")
        return doc_id

    def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        with storage_call("query", collection):
            cursor = self.get_collection(collection).find(build_filter(predicates))
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            if limit:
                cursor = cursor.limit(limit)
            documents = [to_document(raw) for raw in cursor]

        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def batch(self) -> MongoWriteBatch:
        return MongoWriteBatch(self)

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for the portal collections."""
        logger.info("Creating MongoDB indexes...")
        with storage_call("create_indexes"):
            services = self.get_collection("services")
            services.create_index([("isActive", ASCENDING), ("category", ASCENDING), ("createdAt", DESCENDING)])

            applications = self.get_collection("applications")
            applications.create_index([("userId", ASCENDING), ("appliedAt", DESCENDING)])
            applications.create_index([("status", ASCENDING), ("appliedAt", DESCENDING)])
            applications.create_index("serviceId")
            applications.create_index("applicationId")

            notifications = self.get_collection("notifications")
            notifications.create_index([("userId", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)])

            users = self.get_collection("users")
            users.create_index("email", unique=True)
            users.create_index([("createdAt", DESCENDING)])

            credentials = self.get_collection("credentials")
            credentials.create_index("email", unique=True)

            logs = self.get_collection("logs")
            logs.create_index([("timestamp", DESCENDING)])
            logs.create_index([("level", ASCENDING), ("timestamp", DESCENDING)])
            logs.create_index([("context.userId", ASCENDING), ("timestamp", DESCENDING)])
            logs.create_index([("context.sessionId", ASCENDING), ("timestamp", DESCENDING)])

        logger.info("MongoDB indexes created successfully")
