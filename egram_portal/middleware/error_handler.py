# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware rendering RFC 7807 problem documents.

Client errors (4xx) say the request was invalid; server errors (5xx) say the
portal could not complete the action.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Any, Dict, List, Optional, Tuple
from opentelemetry import trace
import logging

from ..errors import CustomException, ValidationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_TITLES = {
    "validation-error": "Invalid Input",
    "authentication-required": "Authentication Required",
    "insufficient-permissions": "Insufficient Permissions",
    "resource-not-found": "Resource Not Found",
    "resource-conflict": "Resource Conflict",
    "storage-unavailable": "Service Unavailable",
    "storage-operation-failed": "Action Could Not Be Completed",
    "application-error": "Action Could Not Be Completed"
}

HTTP_ERROR_TYPES = {
    400: "bad-request",
    401: "authentication-required",
    403: "insufficient-permissions",
    404: "resource-not-found",
    405: "method-not-allowed",
    409: "resource-conflict",
    415: "unsupported-media-type",
    422: "validation-error"
}


def build_problem(
    base_url: str,
    error_type: str,
    title: str,
    status: int,
    detail: str,
    instance: str,
    errors: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """Build an RFC 7807 problem document."""
    problem = {
        'type': f"{base_url}/problems/{error_type}",
        'title': title,
        'status': status,
        'detail': detail,
        'instance': instance
    }

    if errors:
        problem['errors'] = errors

    return problem


class ErrorHandlerMiddleware:
    """Centralized error handling with problem document responses."""

    def __init__(self, app: Flask, base_url: str, is_production: bool = False):
        self.app = app
        self.base_url = base_url.rstrip('/')
        self.is_production = is_production
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(CustomException)
        def handle_custom_exception(error: CustomException):
            return self.handle_custom_exception(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            return self.handle_http_exception(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error: Exception):
            return self.handle_unexpected_error(error)

    def _request_extra(self) -> Dict[str, Any]:
        return {
            "path": request.path,
            "method": request.method,
            "user_agent": request.headers.get('User-Agent'),
            "ip_address": request.remote_addr
        }

    def handle_custom_exception(self, error: CustomException) -> Tuple[Any, int]:
        """Render an application exception with its own status and type."""
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            extra = {
                "error_type": error.error_type,
                "status_code": error.status_code,
                "detail": error.message,
                **self._request_extra()
            }
            if error.status_code >= 500:
                span.record_exception(error)
                logger.error(f"Server error: {error.error_type}", extra=extra, exc_info=True)
            else:
                logger.warning(f"Client error: {error.error_type}", extra=extra)

            errors = error.validation_errors if isinstance(error, ValidationException) else None
            problem = build_problem(
                self.base_url,
                error.error_type,
                PROBLEM_TITLES.get(error.error_type, "Action Could Not Be Completed"),
                error.status_code,
                error.message,
                request.path,
                errors
            )
            if isinstance(error, ValidationException):
                problem['code'] = error.code

            return jsonify(problem), error.status_code

    def handle_http_exception(self, error: HTTPException) -> Tuple[Any, int]:
        """Render werkzeug HTTP errors (unknown routes, wrong methods, bad JSON)."""
        status = error.code or 500
        error_type = HTTP_ERROR_TYPES.get(status, "http-error" if status < 500 else "internal-server-error")
        title = error.name
        detail = str(error.description) if error.description else title

        if status >= 500:
            logger.error(f"Server error: {title}", extra={"status_code": status, **self._request_extra()})
            if self.is_production:
                detail = "An internal server error occurred"
        else:
            logger.warning(f"Client error: {title}", extra={"status_code": status, **self._request_extra()})

        return jsonify(build_problem(self.base_url, error_type, title, status, detail, request.path)), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        The exception detail is hidden in production.
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    **self._request_extra()
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if not self.is_production:
                detail = f"{error.__class__.__name__}: {str(error)}"

            problem = build_problem(
                self.base_url, "internal-server-error", "Action Could Not Be Completed", 500, detail, request.path
            )
            return jsonify(problem), 500
