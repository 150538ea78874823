# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for session token validation and user context extraction.

Protected routes receive the caller's ``UserContext`` as their first argument;
it is also stored on ``flask.g.user_context`` for the duration of the request.
"""

from functools import wraps
from flask import request, g
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from ..domain.authorization import RoleSpec, check_role
from ..errors import AuthenticationException, AuthorizationException
from ..models.entities import UserContext

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    Session token middleware for Flask applications.

    Resolves the bearer token through ``AuthService.context_for_token`` and
    enriches the resulting context with request metadata.
    """

    def __init__(self, auth_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: Portal AuthService
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """Extract the session token from the Authorization header."""
        auth_header = request.headers.get('Authorization', '').strip()

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def get_request_info(self) -> Dict[str, Any]:
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', ''),
            "session_id": request.headers.get('X-Session-ID')
        }

    def authenticate(self) -> UserContext:
        """
        Resolve the current request's caller.

        Raises:
            AuthenticationException: If the token is missing or invalid
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token", extra={"path": request.path})
                raise AuthenticationException("Missing authorization token")

            try:
                context = self.auth_service.context_for_token(token)
            except AuthenticationException as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {e.message}", extra={"path": request.path})
                raise

            user_context = context.model_copy(update=self.get_request_info())
            g.user_context = user_context
            g.session_token = token

            span.set_attributes({"auth.result": "success", "user.id": user_context.user_id})
            logger.debug(
                "Authentication successful",
                extra={"user_id": user_context.user_id, "ip_address": user_context.ip_address}
            )
            return user_context


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require a valid session for Flask routes.

    Args:
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = auth_middleware.authenticate()
            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_role(roles: RoleSpec, auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require one of the given roles for Flask routes.

    Args:
        roles: Role or roles that grant access
        auth_middleware: Configured AuthMiddleware instance

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth(auth_middleware)
        def decorated_function(user_context, *args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.check_role") as span:
                span.set_attribute("user.id", user_context.user_id)
                result = check_role(user_context, roles)

                if not result.allowed:
                    span.set_attribute("auth.role_result", "denied")
                    logger.warning(
                        "Authorization failed: role not permitted",
                        extra={
                            "user_id": user_context.user_id,
                            "user_role": user_context.role,
                            "reason": result.reason
                        }
                    )
                    raise AuthorizationException("Insufficient permissions")

                span.set_attribute("auth.role_result", "granted")
                return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(auth_middleware: AuthMiddleware) -> Callable:
    """Decorator passing the caller's context when a valid token is present, else None."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = None
            if auth_middleware.extract_token_from_request():
                try:
                    user_context = auth_middleware.authenticate()
                except AuthenticationException:
                    user_context = None

            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator
