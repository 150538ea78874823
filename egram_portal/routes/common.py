# SPDX-License-Identifier: Apache-2.0

"""
Helpers shared by the route blueprints.
"""

from datetime import datetime
from functools import wraps
from typing import Any, Dict, Type, TypeVar
from flask import current_app, request
from pydantic import BaseModel, Field

from ..domain.validation import validate_model
from ..errors import ValidationException
from ..middleware.auth import require_auth, require_role
from ..models.base import isoformat_utc

ModelT = TypeVar("ModelT", bound=BaseModel)


class IdPath(BaseModel):
    """Path parameters for routes addressing one document."""
    id: str = Field(..., min_length=1, description="Document ID")


def serialize(value: Any) -> Any:
    """Convert stored documents to JSON-safe values."""
    if isinstance(value, datetime):
        return isoformat_utc(value)
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def json_body() -> Dict[str, Any]:
    """Request JSON object; an absent or non-object body is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationException("Missing request body")
    if not isinstance(data, dict):
        raise ValidationException("Request body must be a JSON object")
    return data


def parse_model(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """Validate a request body against a pydantic model."""
    return validate_model(model, data)


def require_jwt(f):
    """Require a valid session, resolved with the app's auth middleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def require_roles(roles):
    """Require a valid session holding one of the roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            return require_role(roles, current_app.auth_middleware)(f)(*args, **kwargs)
        return decorated_function
    return decorator
