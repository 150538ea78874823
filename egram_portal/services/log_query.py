# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Query, statistics, retention and export over persisted event log entries.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union
from opentelemetry import trace

from ..domain.log_statistics import compute_log_statistics
from ..errors import StorageOperationException, StorageUnavailableException
from ..models.base import isoformat_utc, utcnow
from .document_store import DocumentStore, Predicate
from .event_logger import EventLogger

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

STATISTICS_SAMPLE_SIZE = 1000
DEFAULT_QUERY_LIMIT = 100
DEFAULT_EXPORT_LIMIT = 1000
DEFAULT_DAYS_TO_KEEP = 30

DateLike = Union[datetime, str]


def _as_timestamp(value: DateLike) -> str:
    return isoformat_utc(value) if isinstance(value, datetime) else value


class LogFilters:
    """Filters for event log queries."""

    def __init__(
        self,
        level: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None
    ):
        self.level = level
        self.user_id = user_id
        self.session_id = session_id
        self.start_date = start_date
        self.end_date = end_date

    def to_predicates(self) -> List[Predicate]:
        """Convert filters to store predicates."""
        predicates = []

        if self.level:
            predicates.append(Predicate("level", "==", self.level.upper()))

        if self.user_id:
            predicates.append(Predicate("context.userId", "==", self.user_id))

        if self.session_id:
            predicates.append(Predicate("context.sessionId", "==", self.session_id))

        # Timestamps are stored as ISO-8601 UTC strings, which sort chronologically
        if self.start_date:
            predicates.append(Predicate("timestamp", ">=", _as_timestamp(self.start_date)))
        if self.end_date:
            predicates.append(Predicate("timestamp", "<=", _as_timestamp(self.end_date)))

        return predicates


class LogQueryService:
    """Read-side access to the event log collection."""

    def __init__(
        self,
        store: Optional[DocumentStore],
        event_logger: Optional[EventLogger] = None,
        collection: str = "logs"
    ):
        self.store = store
        self.event_logger = event_logger
        self.collection = collection

    def _require_store(self) -> DocumentStore:
        if self.store is None:
            raise StorageUnavailableException("Log storage is not configured")
        return self.store

    def _record_failure(self, span, message: str, error: Exception) -> None:
        span.record_exception(error)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        logger.error(message, extra={"error": str(error)}, exc_info=True)
        if self.event_logger is not None:
            self.event_logger.error(message, {'error': str(error)})

    def query(self, filters: Optional[LogFilters] = None, limit: int = DEFAULT_QUERY_LIMIT) -> List[Dict[str, Any]]:
        """
        Retrieve log entries, most recent first.

        Args:
            filters: Optional level, user, session and date range filters
            limit: Maximum number of entries

        Returns:
            List of log entry documents

        Raises:
            StorageUnavailableException: If no store is configured
            StorageOperationException: If the store call fails
        """
        store = self._require_store()
        predicates = (filters or LogFilters()).to_predicates()

        with tracer.start_as_current_span("logs.query") as span:
            span.set_attributes({
                "logs.query.limit": limit,
                "logs.query.filters_count": len(predicates)
            })
            try:
                entries = store.query(
                    self.collection, predicates, order_by="timestamp", descending=True, limit=limit
                )
            except StorageOperationException as e:
                self._record_failure(span, "Failed to retrieve logs", e)
                raise

            logger.debug(f"Retrieved {len(entries)} log entries")
            return entries

    def statistics(self, filters: Optional[LogFilters] = None) -> Dict[str, Any]:
        """Statistics over the most recent matching entries."""
        with tracer.start_as_current_span("logs.statistics") as span:
            entries = self.query(filters, STATISTICS_SAMPLE_SIZE)
            span.set_attribute("logs.statistics.sample_size", len(entries))
            return compute_log_statistics(entries)

    def retention_sweep(self, days_to_keep: int = DEFAULT_DAYS_TO_KEEP) -> int:
        """
        Delete entries older than ``days_to_keep`` days in one atomic batch.

        Returns:
            Number of entries deleted
        """
        store = self._require_store()
        cutoff = isoformat_utc(utcnow() - timedelta(days=days_to_keep))

        with tracer.start_as_current_span("logs.retention_sweep") as span:
            span.set_attribute("logs.retention.days_to_keep", days_to_keep)
            try:
                expired = store.query(self.collection, [Predicate("timestamp", "<", cutoff)])
                if not expired:
                    return 0

                batch = store.batch()
                for entry in expired:
                    batch.delete(self.collection, entry["id"])
                batch.commit()
            except StorageOperationException as e:
                self._record_failure(span, "Failed to clear old logs", e)
                raise

            span.set_attribute("logs.retention.deleted", len(expired))
            if self.event_logger is not None:
                self.event_logger.info('Old logs cleared', {'deleteCount': len(expired), 'daysToKeep': days_to_keep})
            return len(expired)

    def export(self, filters: Optional[LogFilters] = None, limit: int = DEFAULT_EXPORT_LIMIT) -> str:
        """Matching entries as indented JSON."""
        with tracer.start_as_current_span("logs.export") as span:
            entries = self.query(filters, limit)
            span.set_attribute("logs.export.count", len(entries))
            return json.dumps(entries, indent=2, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return isoformat_utc(value)
    return str(value)
