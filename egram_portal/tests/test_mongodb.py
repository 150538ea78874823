# SPDX-License-Identifier: Apache-2.0

"""
Tests for the MongoDB document store adapter, with the driver mocked.
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from egram_portal.errors import NotFoundException, StorageOperationException
from egram_portal.services.document_store import Predicate, SERVER_TIMESTAMP
from egram_portal.services.mongodb import MongoDocumentStore, build_filter, to_document


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def mongo_store(collection):
    """Store whose client is a mock; every collection resolves to ``collection``."""
    store = MongoDocumentStore("mongodb://localhost:27017/test", "test")
    client = MagicMock()
    client.__getitem__.return_value.__getitem__.return_value = collection
    store._client = client
    return store


class TestHelpers:
    """Test filter and document translation."""

    def test_build_filter(self):
        """Predicates on one field merge; 'in' values become lists."""
        criteria = build_filter([
            Predicate("timestamp", ">=", "2024-01-01"),
            Predicate("timestamp", "<=", "2024-01-31"),
            Predicate("level", "in", ("ERROR", "WARN")),
            Predicate("context.userId", "==", "u1")
        ])

        assert criteria == {
            "timestamp": {"$gte": "2024-01-01", "$lte": "2024-01-31"},
            "level": {"$in": ["ERROR", "WARN"]},
            "context.userId": {"$eq": "u1"}
        }

    def test_to_document(self):
        """Mongo's _id is exposed as id."""
        assert to_document({"_id": "abc", "name": "x"}) == {"id": "abc", "name": "x"}
        assert to_document(None) is None


class TestDocumentOperations:
    """Test single-document calls."""

    def test_get(self, mongo_store, collection):
        collection.find_one.return_value = {"_id": "s1", "name": "Birth Certificate"}

        assert mongo_store.get("services", "s1") == {"id": "s1", "name": "Birth Certificate"}
        collection.find_one.assert_called_once_with({"_id": "s1"})

    def test_set_resolves_server_timestamps(self, mongo_store, collection):
        """Placeholders become the write time and id is stored as _id."""
        mongo_store.set("users", "u1", {"id": "ignored", "name": "Asha", "createdAt": SERVER_TIMESTAMP})

        args, kwargs = collection.replace_one.call_args
        assert args[0] == {"_id": "u1"}
        assert args[1]["_id"] == "u1"
        assert "id" not in args[1]
        assert isinstance(args[1]["createdAt"], datetime)
        assert kwargs == {"upsert": True}

    def test_update_missing_document(self, mongo_store, collection):
        """Updating an absent document raises NotFound."""
        collection.update_one.return_value.matched_count = 0

        with pytest.raises(NotFoundException):
            mongo_store.update("applications", "missing", {"status": "approved"})

    def test_add_returns_new_id(self, mongo_store, collection):
        doc_id = mongo_store.add("notifications", {"title": "Hello"})

        stored = collection.insert_one.call_args[0][0]
        assert stored == {"_id": doc_id, "title": "Hello"}

    def test_driver_errors_are_wrapped(self, mongo_store, collection):
        """Driver failures surface as StorageOperationException."""
        collection.find_one.side_effect = OperationFailure("not authorized")

        with pytest.raises(StorageOperationException) as exc_info:
            mongo_store.get("services", "s1")

        assert exc_info.value.operation == "get"
        assert exc_info.value.collection == "services"
        assert exc_info.value.status_code == 502

    def test_query(self, mongo_store, collection):
        """Queries translate predicates, ordering and limit."""
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": "a", "level": "ERROR"}])
        collection.find.return_value = cursor

        results = mongo_store.query("logs", [Predicate("level", "==", "ERROR")], order_by="timestamp",
                                    descending=True, limit=10)

        assert results == [{"id": "a", "level": "ERROR"}]
        collection.find.assert_called_once_with({"level": {"$eq": "ERROR"}})
        cursor.sort.assert_called_once_with("timestamp", DESCENDING)
        cursor.limit.assert_called_once_with(10)


class TestBatch:
    """Test transactional batches."""

    def test_commit_runs_in_transaction(self, mongo_store, collection):
        """Every queued write runs with the transaction's session."""
        session = mongo_store.client.start_session.return_value.__enter__.return_value
        collection.update_one.return_value.matched_count = 1

        batch = mongo_store.batch()
        batch.set("logs", "log_1", {"message": "a", "createdAt": SERVER_TIMESTAMP})
        batch.update("applications", "app_1", {"status": "approved"})
        batch.delete("logs", "log_0")
        batch.commit()

        session.start_transaction.assert_called_once()
        assert collection.replace_one.call_args.kwargs["session"] is session
        collection.update_one.assert_called_once_with(
            {"_id": "app_1"}, {"$set": {"status": "approved"}}, session=session
        )
        collection.delete_one.assert_called_once_with({"_id": "log_0"}, session=session)

    def test_missing_document_aborts_batch(self, mongo_store, collection):
        collection.update_one.return_value.matched_count = 0

        batch = mongo_store.batch()
        batch.update("applications", "missing", {"status": "approved"})

        with pytest.raises(NotFoundException):
            batch.commit()

    def test_batch_commits_once(self, mongo_store):
        batch = mongo_store.batch()
        batch.commit()

        with pytest.raises(RuntimeError):
            batch.commit()


class TestConnection:
    """Test connection handling."""

    def test_connection_failure(self):
        """An unreachable server raises StorageOperationException."""
        with patch("egram_portal.services.mongodb.MongoClient") as mock_client:
            mock_client.return_value.admin.command.side_effect = ServerSelectionTimeoutError("timeout")
            store = MongoDocumentStore("mongodb://unreachable:27017", "test")

            with pytest.raises(StorageOperationException):
                store.client

            assert store._client is None

    def test_health_check(self, mongo_store):
        mongo_store.client.admin.command.return_value = {"ok": 1}
        mongo_store.client.server_info.return_value = {"version": "7.0.4"}

        health = mongo_store.health_check()

        assert health["status"] == "healthy"
        assert health["version"] == "7.0.4"

    def test_health_check_unhealthy(self, mongo_store):
        mongo_store.client.admin.command.side_effect = OperationFailure("down")

        assert mongo_store.health_check()["status"] == "unhealthy"

    def test_create_indexes(self, mongo_store, collection):
        mongo_store.create_indexes()

        collection.create_index.assert_any_call("email", unique=True)
        collection.create_index.assert_any_call([("timestamp", DESCENDING)])
        collection.create_index.assert_any_call([("level", ASCENDING), ("timestamp", DESCENDING)])
