# SPDX-License-Identifier: Apache-2.0

"""
Services package - storage adapters, identity and portal services.
"""

from .document_store import DocumentStore, WriteBatch, Predicate, SERVER_TIMESTAMP
from .mongodb import MongoDocumentStore
from .identity import IdentityProvider, LocalIdentityProvider
from .event_logger import EventLogger, LogBuffer
from .log_query import LogFilters, LogQueryService
from .notifications import NotificationService
from .catalog import ServiceCatalog
from .applications import ApplicationService, BulkUpdateResult
from .auth import AuthService

__all__ = [
    "DocumentStore",
    "WriteBatch",
    "Predicate",
    "SERVER_TIMESTAMP",
    "MongoDocumentStore",
    "IdentityProvider",
    "LocalIdentityProvider",
    "EventLogger",
    "LogBuffer",
    "LogFilters",
    "LogQueryService",
    "NotificationService",
    "ServiceCatalog",
    "ApplicationService",
    "BulkUpdateResult",
    "AuthService"
]
