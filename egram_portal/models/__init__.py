# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the E-Gram Panchayat portal.
"""

# Base models
from .base import BaseEntity, DocumentModel, generate_document_id, utcnow, isoformat_utc

# Enumerations
from .enums import (
    ServiceCategory,
    ApplicationStatus,
    ApplicationPriority,
    UserRole,
    LogLevel,
    NotificationType
)

# Core entities
from .entities import (
    Service,
    ApplicantDetails,
    StatusHistoryEntry,
    Application,
    Notification,
    UserProfile,
    LogEntry,
    Principal,
    UserContext
)

# Request models
from .requests import (
    LoginRequest,
    PasswordResetRequest,
    PasswordResetConfirmRequest,
    StatusUpdateRequest,
    BulkStatusUpdateRequest,
    CancelApplicationRequest,
    ApplicationFilters
)

__all__ = [
    # Base models
    "BaseEntity",
    "DocumentModel",
    "generate_document_id",
    "utcnow",
    "isoformat_utc",

    # Enumerations
    "ServiceCategory",
    "ApplicationStatus",
    "ApplicationPriority",
    "UserRole",
    "LogLevel",
    "NotificationType",

    # Core entities
    "Service",
    "ApplicantDetails",
    "StatusHistoryEntry",
    "Application",
    "Notification",
    "UserProfile",
    "LogEntry",
    "Principal",
    "UserContext",

    # Request models
    "LoginRequest",
    "PasswordResetRequest",
    "PasswordResetConfirmRequest",
    "StatusUpdateRequest",
    "BulkStatusUpdateRequest",
    "CancelApplicationRequest",
    "ApplicationFilters"
]
