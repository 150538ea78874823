# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the E-Gram Panchayat portal.
"""

from enum import Enum


class ServiceCategory(str, Enum):
    """Government service categories."""
    CERTIFICATE = "certificate"
    LICENSE = "license"
    WELFARE = "welfare"
    OTHER = "other"


class ApplicationStatus(str, Enum):
    """Application workflow status enumeration."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationPriority(str, Enum):
    """Application processing priority."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class UserRole(str, Enum):
    """Portal user roles."""
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"


class LogLevel(str, Enum):
    """Event log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    USER_ACTION = "USER_ACTION"


class NotificationType(str, Enum):
    """Notification kinds delivered to users."""
    STATUS_UPDATE = "status_update"
    GENERAL = "general"
