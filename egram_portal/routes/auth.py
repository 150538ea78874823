# SPDX-License-Identifier: Apache-2.0

"""
Authentication, profile and user administration endpoints.
"""

from functools import wraps
from typing import Any, Dict
from flask import current_app, g, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.authorization import ADMIN_ROLES
from ..middleware.auth import optional_auth
from ..models.entities import UserContext
from ..models.requests import LoginRequest, PasswordResetConfirmRequest, PasswordResetRequest
from .common import IdPath, json_body, parse_model, require_jwt, require_roles, serialize

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

auth_tag = Tag(name="Authentication", description="Registration, login and profiles")
auth_bp = APIBlueprint('auth', __name__, url_prefix='/api/auth', abp_tags=[auth_tag])

users_tag = Tag(name="Users", description="User administration")
users_bp = APIBlueprint('users', __name__, url_prefix='/api/users', abp_tags=[users_tag])


def context_payload(user_context: UserContext) -> Dict[str, Any]:
    return {
        'userId': user_context.user_id,
        'email': user_context.email,
        'name': user_context.name,
        'role': user_context.role
    }


def with_optional_user(f):
    """Pass the caller's context when a valid token is present, else None."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return optional_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


@auth_bp.post('/register')
@with_optional_user
def register(user_context):
    """
    Register a new account.

    Citizens register themselves; staff and admin accounts must be created
    by a signed-in admin.
    """
    new_user, token = current_app.auth_service.register(json_body(), created_by=user_context)
    return jsonify({'user': context_payload(new_user), 'token': token}), 201


@auth_bp.post('/login')
def login():
    """Sign in as the selected role and return a session token."""
    credentials = parse_model(LoginRequest, json_body())
    user_context, token = current_app.auth_service.login(
        credentials.email, credentials.password, credentials.role
    )
    return jsonify({'user': context_payload(user_context), 'token': token})


@auth_bp.post('/logout')
@require_jwt
def logout(user_context):
    """End the current session."""
    current_app.auth_service.logout(user_context, g.get('session_token'))
    return jsonify({'success': True})


@auth_bp.post('/password-reset')
def request_password_reset():
    """
    Start a password reset.

    The response is the same whether or not the e-mail is registered.
    """
    reset_request = parse_model(PasswordResetRequest, json_body())
    current_app.auth_service.reset_password(reset_request.email)
    return jsonify({'success': True}), 202


@auth_bp.post('/password-reset/confirm')
def confirm_password_reset():
    """Set a new password with a reset token."""
    confirm_request = parse_model(PasswordResetConfirmRequest, json_body())
    current_app.auth_service.confirm_password_reset(confirm_request.token, confirm_request.new_password)
    return jsonify({'success': True})


@auth_bp.get('/profile')
@require_jwt
def get_profile(user_context):
    return jsonify(serialize(current_app.auth_service.get_profile(user_context)))


@auth_bp.patch('/profile')
@require_jwt
def update_profile(user_context):
    """Update the caller's name, phone or address."""
    profile = current_app.auth_service.update_profile(user_context, json_body())
    return jsonify(serialize(profile))


@users_bp.get('')
@require_roles(ADMIN_ROLES)
def list_users(user_context):
    users = current_app.auth_service.get_all_users(user_context)
    return jsonify({'items': serialize(users), 'count': len(users)})


@users_bp.post('/<id>/deactivate')
@require_roles(ADMIN_ROLES)
def deactivate_user(user_context, path: IdPath):
    """Deactivate a user account."""
    current_app.auth_service.deactivate_user(user_context, path.id)
    return jsonify({'success': True})
