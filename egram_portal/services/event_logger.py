# SPDX-License-Identifier: Apache-2.0

"""
Application event log with buffered persistence.

``EventLogger`` builds sanitized, immutable log entries, mirrors them to a
local ``logging`` sink and hands them to a ``LogBuffer``. The buffer writes
entries to the document store in atomic batches, either when it reaches
capacity, on a periodic timer, or on shutdown. A failed batch goes back to
the front of the buffer and is retried on the next flush.
"""

import atexit
import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import LoggerConfig
from ..domain.sanitizer import sanitize
from ..models.base import isoformat_utc, utcnow
from ..models.entities import LogEntry
from ..models.enums import LogLevel
from .document_store import DocumentStore, SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

EVENTS_LOGGER_NAME = "egram_portal.events"

# Only these levels take part in minimum-level filtering
FILTERABLE_LEVELS = [LogLevel.DEBUG.value, LogLevel.INFO.value, LogLevel.WARN.value, LogLevel.ERROR.value]

SINK_LEVELS = {
    LogLevel.DEBUG.value: logging.DEBUG,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.WARN.value: logging.WARNING,
    LogLevel.ERROR.value: logging.ERROR,
    LogLevel.SECURITY.value: logging.WARNING,
    LogLevel.PERFORMANCE.value: logging.INFO,
    LogLevel.USER_ACTION.value: logging.INFO
}

LogListener = Callable[[LogEntry], None]


class LogBuffer:
    """
    Buffer of log entry documents flushed to storage in batches.

    ``append`` never blocks on storage. Reaching ``max_buffer_size`` requests
    a flush that runs on the background flusher thread when it is running,
    otherwise on a one-shot daemon thread. Requests made while one is pending
    are coalesced. After a failed flush the entries wait for the next periodic
    tick or an explicit ``flush``; capacity does not trigger retries.
    """

    def __init__(
        self,
        store: Optional[DocumentStore],
        collection: str = "logs",
        max_buffer_size: int = 100,
        flush_interval: float = 30.0,
        sink: Optional[logging.Logger] = None
    ):
        self.store = store
        self.collection = collection
        self.max_buffer_size = max_buffer_size
        self.flush_interval = flush_interval
        self.sink = sink or logging.getLogger(EVENTS_LOGGER_NAME)

        self._buffer: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        # Held for the whole flush; append never takes it
        self._flush_lock = threading.Lock()
        self._flush_pending = False
        # Set by a failed flush; capacity no longer triggers flushes until one succeeds
        self._retry_deferred = False
        self._wake_event = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._atexit_registered = False

    @property
    def pending(self) -> int:
        """Number of entries waiting to be flushed."""
        with self._lock:
            return len(self._buffer)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def snapshot(self) -> List[Dict[str, Any]]:
        """Copy of the buffered entries, oldest first."""
        with self._lock:
            return list(self._buffer)

    def append(self, entry: Dict[str, Any]) -> None:
        """Add an entry; requests a flush once the buffer is at capacity."""
        with self._lock:
            self._buffer.append(entry)
            request = self._at_capacity() and not self._flush_pending
            if request:
                self._flush_pending = True

        if request:
            if self.is_running:
                self._wake_event.set()
            else:
                threading.Thread(
                    target=self._run_requested_flush, name="log-buffer-flush", daemon=True
                ).start()

    def flush(self) -> int:
        """
        Write every buffered entry to storage in one atomic batch.

        Returns:
            Number of entries persisted; 0 when there was nothing to write,
            no store is configured, or the write failed
        """
        if self.store is None:
            return 0

        with self._flush_lock:
            with self._lock:
                if not self._buffer:
                    return 0
                entries = self._buffer
                self._buffer = []

            try:
                batch = self.store.batch()
                for entry in entries:
                    doc_id = entry.get('id') or self.store.new_id()
                    batch.set(self.collection, doc_id, {**entry, 'createdAt': SERVER_TIMESTAMP})
                batch.commit()
            except Exception as e:
                # Only the failed batch goes back, ahead of anything appended meanwhile
                with self._lock:
                    self._buffer[:0] = entries
                    self._retry_deferred = True
                self.sink.error(
                    f"Failed to flush {len(entries)} log entries: {str(e)}",
                    extra={'collection': self.collection, 'entry_count': len(entries)}
                )
                return 0

        with self._lock:
            self._retry_deferred = False
        self.sink.debug(f"Flushed {len(entries)} log entries to {self.collection}")
        return len(entries)

    def start(self) -> None:
        """Start the periodic flusher thread. Safe to call more than once."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="log-buffer-flusher", daemon=True)
        self._thread.start()

        if not self._atexit_registered:
            atexit.register(self.flush)
            self._atexit_registered = True

        logger.debug(f"Log buffer flusher started (interval {self.flush_interval}s)")

    def stop(self, timeout: float = 5.0) -> int:
        """
        Stop the flusher thread and flush what is left.

        Returns:
            Number of entries written by the final flush
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

        if self._atexit_registered:
            atexit.unregister(self.flush)
            self._atexit_registered = False

        return self.flush()

    def _at_capacity(self) -> bool:
        return (
            self.store is not None
            and not self._retry_deferred
            and len(self._buffer) >= self.max_buffer_size
        )

    def _run_requested_flush(self) -> None:
        # The request stays pending until no capacity flush is owed
        while True:
            self.flush()
            with self._lock:
                if not self._at_capacity():
                    self._flush_pending = False
                    return

    def _run(self) -> None:
        """Background thread that flushes on an interval or when woken."""
        while not self._stop_event.is_set():
            self._wake_event.wait(timeout=self.flush_interval)
            self._wake_event.clear()
            if self._stop_event.is_set():
                break
            self._run_requested_flush()


class _ListenerRegistry:
    """Subscribers shared by a logger and its children."""

    def __init__(self):
        self._listeners: List[LogListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify(self, entry: LogEntry) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Log listener failed: {str(e)}", exc_info=True)


class EventLogger:
    """
    Structured application event logger.

    One instance is created by the process entry point and injected into the
    services. Entries carry a per-instance session id; ``child`` loggers share
    the session, the buffer and the listeners.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        config: Optional[LoggerConfig] = None,
        sink: Optional[logging.Logger] = None,
        default_context: Optional[Dict[str, Any]] = None,
        buffer: Optional[LogBuffer] = None,
        session_id: Optional[str] = None,
        listeners: Optional[_ListenerRegistry] = None
    ):
        self.config = config or LoggerConfig()
        self.store = store
        self.sink = sink or logging.getLogger(EVENTS_LOGGER_NAME)
        self.default_context = dict(default_context or {})
        self.session_id = session_id or f"session_{uuid.uuid4().hex}"
        self.buffer = buffer or LogBuffer(
            store,
            collection=self.config.collection,
            max_buffer_size=self.config.max_buffer_size,
            flush_interval=self.config.flush_interval,
            sink=self.sink
        )
        self._listeners = listeners or _ListenerRegistry()
        self._min_level_index: Optional[int] = None
        self._shut_down = False

        if self.config.min_level:
            self.set_log_level(self.config.min_level)

    @property
    def persistence_enabled(self) -> bool:
        return self.config.enable_persistence and self.store is not None

    # Level filtering

    def set_log_level(self, level: str) -> None:
        """Set the minimum DEBUG/INFO/WARN/ERROR level recorded; unknown names mean INFO."""
        name = str(level).upper()
        if name == "WARNING":
            name = LogLevel.WARN.value
        index = FILTERABLE_LEVELS.index(name) if name in FILTERABLE_LEVELS else 1
        self._min_level_index = index

    def should_log(self, level: str) -> bool:
        if self._min_level_index is None or level not in FILTERABLE_LEVELS:
            return True
        return FILTERABLE_LEVELS.index(level) >= self._min_level_index

    # Recording

    def record(
        self,
        level: Union[LogLevel, str],
        message: str,
        data: Any = None,
        context: Optional[Dict[str, Any]] = None
    ) -> Optional[LogEntry]:
        """
        Create a log entry, mirror it to the sink and buffer it for storage.

        Args:
            level: Log level name or enum
            message: Log message
            data: Structured payload; sensitive fields are redacted
            context: Extra context merged over the default context

        Returns:
            The created entry, or None when the level is filtered out
        """
        level_name = LogLevel(level.value if isinstance(level, LogLevel) else str(level).upper()).value
        if not self.should_log(level_name):
            return None

        entry = LogEntry(
            id=f"log_{uuid.uuid4().hex}",
            timestamp=isoformat_utc(utcnow()),
            level=level_name,
            message=message,
            data=sanitize(data) if data is not None else None,
            context={'sessionId': self.session_id, **self.default_context, **(context or {})}
        )

        if self.config.enable_console:
            self.sink.log(
                SINK_LEVELS[level_name],
                f"[{level_name}] {message}",
                extra={
                    'log_id': entry.id,
                    'event_level': level_name,
                    'event_data': entry.data,
                    'event_context': entry.context
                }
            )

        if self.persistence_enabled:
            self.buffer.append(entry.to_document())

        self._listeners.notify(entry)
        return entry

    def debug(self, message: str, data: Any = None, context: Optional[Dict[str, Any]] = None):
        return self.record(LogLevel.DEBUG, message, data, context)

    def info(self, message: str, data: Any = None, context: Optional[Dict[str, Any]] = None):
        return self.record(LogLevel.INFO, message, data, context)

    def warn(self, message: str, data: Any = None, context: Optional[Dict[str, Any]] = None):
        return self.record(LogLevel.WARN, message, data, context)

    def error(self, message: str, data: Any = None, context: Optional[Dict[str, Any]] = None):
        return self.record(LogLevel.ERROR, message, data, context)

    def security(self, message: str, data: Any = None, context: Optional[Dict[str, Any]] = None):
        """Record a security event; the context is tagged ``security: True``."""
        return self.record(LogLevel.SECURITY, message, data, {**(context or {}), 'security': True})

    def performance(self, operation: str, duration: float, data: Optional[Dict[str, Any]] = None):
        """Record how long an operation took, in milliseconds."""
        return self.record(
            LogLevel.PERFORMANCE,
            f"{operation} completed in {duration}ms",
            {'operation': operation, 'duration': duration, **(data or {})},
            {'performance': True}
        )

    def user_action(self, action: str, user_id: Optional[str], data: Any = None):
        return self.record(LogLevel.USER_ACTION, action, data, {'userId': user_id, 'userAction': True})

    def http_request(
        self,
        method: str,
        url: str,
        status: int,
        duration: float,
        data: Optional[Dict[str, Any]] = None
    ):
        """Record an HTTP exchange; 4xx/5xx are errors and 3xx warnings."""
        if status >= 400:
            level = LogLevel.ERROR
        elif status >= 300:
            level = LogLevel.WARN
        else:
            level = LogLevel.INFO

        return self.record(
            level,
            f"{method} {url} - {status}",
            {'method': method, 'url': url, 'status': status, 'duration': duration, **(data or {})},
            {'http': True}
        )

    def timer(self, operation: str) -> Callable[..., float]:
        """
        Start timing an operation.

        Returns:
            Callable that records a PERFORMANCE entry and returns the elapsed
            milliseconds
        """
        started = time.perf_counter()

        def stop(data: Optional[Dict[str, Any]] = None) -> float:
            duration = round((time.perf_counter() - started) * 1000, 2)
            self.performance(operation, duration, data)
            return duration

        return stop

    def child(self, context: Dict[str, Any]) -> "EventLogger":
        """Logger sharing this session and buffer with extra default context."""
        child = EventLogger(
            store=self.store,
            config=self.config,
            sink=self.sink,
            default_context={**self.default_context, **context},
            buffer=self.buffer,
            session_id=self.session_id,
            listeners=self._listeners
        )
        child._min_level_index = self._min_level_index
        return child

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Call ``listener`` with every recorded entry; returns an unsubscribe callable."""
        return self._listeners.subscribe(listener)

    # Lifecycle

    def start(self) -> None:
        """Start periodic flushing when persistence is enabled."""
        if self.persistence_enabled:
            self.buffer.start()

    def flush(self) -> int:
        return self.buffer.flush()

    def shutdown(self) -> None:
        """Record the shutdown, flush synchronously and stop the flusher."""
        if self._shut_down:
            return
        self._shut_down = True
        self.info("Logger shutting down")
        self.buffer.stop()

    def __enter__(self) -> "EventLogger":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
