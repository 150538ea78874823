# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application exception taxonomy.

Every exception carries the HTTP status code and problem type used by the
error handler middleware, so domain and service code can raise them without
knowing about Flask.
"""

from typing import Any, Dict, List, Optional


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        code: str = "invalid_input"
    ):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []
        self.code = code


class MissingFieldsException(ValidationException):
    """Raised when one or more required fields are absent or empty."""

    def __init__(self, missing_fields: List[str]):
        super().__init__(
            f"Missing required fields: {', '.join(missing_fields)}",
            [{"field": field, "message": "Field is required"} for field in missing_fields],
            code="missing_required_fields"
        )
        self.missing_fields = list(missing_fields)


class AuthenticationException(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Exception for authorization errors."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictException(CustomException):
    """Exception for resource conflict errors."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class StorageUnavailableException(CustomException):
    """Raised when an operation needs storage but none is configured."""

    def __init__(self, message: str = "Storage is not configured"):
        super().__init__(message, 503, "storage-unavailable")


class StorageOperationException(CustomException):
    """Raised when a call to the storage backend fails."""

    def __init__(self, message: str, operation: Optional[str] = None, collection: Optional[str] = None):
        super().__init__(message, 502, "storage-operation-failed")
        self.operation = operation
        self.collection = collection
