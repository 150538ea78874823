# SPDX-License-Identifier: Apache-2.0

"""
User registration, login and profile management.

Credentials and sessions belong to the identity provider; this service keeps
the portal profile (role, contact details, active flag) in ``users`` and
enforces the portal's role rules on top of the provider.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from opentelemetry import trace

from ..domain.authorization import ADMIN_ROLES, RoleSpec, check_role
from ..domain.authorization import require_role as _require_role
from ..domain.validation import validate_registration_data
from ..errors import (
    AuthenticationException,
    AuthorizationException,
    NotFoundException,
    ValidationException
)
from ..models.entities import Principal, UserContext, UserProfile
from ..models.enums import UserRole
from .document_store import DocumentStore, SERVER_TIMESTAMP
from .event_logger import EventLogger
from .identity import IdentityProvider

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

# Profile fields a user may change on their own profile
SELF_EDITABLE_FIELDS = ('name', 'phone', 'address')

AuthStateCallback = Callable[[Optional[Tuple[Principal, Dict[str, Any]]]], None]


def build_user_context(profile: Dict[str, Any]) -> UserContext:
    """Caller identity for a stored user profile."""
    return UserContext(
        user_id=profile['id'],
        email=profile.get('email'),
        name=profile.get('name'),
        role=profile.get('role') or UserRole.CITIZEN.value
    )


class AuthService:
    """Portal authentication on top of an identity provider."""

    def __init__(self, store: DocumentStore, identity: IdentityProvider, event_logger: EventLogger):
        self.store = store
        self.identity = identity
        self.event_logger = event_logger

    def _load_profile(self, user_id: str) -> Dict[str, Any]:
        profile = self.store.get(USERS_COLLECTION, user_id)
        if profile is None:
            raise NotFoundException("User profile not found")
        return profile

    def register(
        self,
        user_data: Dict[str, Any],
        created_by: Optional[UserContext] = None
    ) -> Tuple[UserContext, str]:
        """
        Register a new account and its portal profile.

        Staff and admin accounts can only be created by an admin.

        Args:
            user_data: email, password, name and optional phone, address, role
            created_by: Admin creating the account, None for self-registration

        Returns:
            Tuple of the new user's context and session token

        Raises:
            ValidationException: If the registration data is invalid
            AuthorizationException: If a non-admin requests a staff or admin role
            ConflictException: If the e-mail is already registered
        """
        validate_registration_data(user_data)
        role = user_data.get('role') or UserRole.CITIZEN.value
        if role != UserRole.CITIZEN.value:
            _require_role(created_by, ADMIN_ROLES)

        with tracer.start_as_current_span("auth.register") as span:
            self.event_logger.info('Registration attempt started', {'email': user_data['email']})

            principal = self.identity.create_account(user_data['email'], user_data['password'])
            profile = UserProfile(
                id=principal.uid,
                name=user_data['name'],
                email=principal.email,
                phone=user_data.get('phone'),
                address=user_data.get('address'),
                role=role
            )
            document = profile.to_document()
            document.pop('id')
            document['createdAt'] = SERVER_TIMESTAMP
            self.store.set(USERS_COLLECTION, principal.uid, document)

            span.set_attribute("user.id", principal.uid)
            self.event_logger.info('Registration successful', {'userId': principal.uid})
            return build_user_context({**document, 'id': principal.uid}), principal.token

    def login(self, email: str, password: str, role: str) -> Tuple[UserContext, str]:
        """
        Sign in as the given role.

        Returns:
            Tuple of the caller's context and session token

        Raises:
            AuthenticationException: On bad credentials or a role mismatch
            NotFoundException: If the account has no portal profile
            AuthorizationException: If the account is deactivated
        """
        with tracer.start_as_current_span("auth.login") as span:
            span.set_attribute("auth.role", role)
            self.event_logger.info('Login attempt started', {'email': email, 'role': role})

            try:
                principal = self.identity.authenticate(email, password)
            except AuthenticationException as e:
                self.event_logger.security('Login failed', {'email': email, 'reason': e.message})
                raise

            profile = self.store.get(USERS_COLLECTION, principal.uid)
            if profile is None:
                self.identity.sign_out(principal)
                self.event_logger.security('Login failed', {'email': email, 'reason': 'User profile not found'})
                raise NotFoundException("User profile not found")

            if profile.get('role') != role:
                self.identity.sign_out(principal)
                self.event_logger.security('Login failed', {'userId': principal.uid, 'reason': 'Invalid role selected'})
                raise AuthenticationException("Invalid role selected")

            if not profile.get('isActive', True):
                self.identity.sign_out(principal)
                self.event_logger.security('Login failed', {'userId': principal.uid, 'reason': 'Account is deactivated'})
                raise AuthorizationException("Account is deactivated")

            self.store.update(USERS_COLLECTION, principal.uid, {'lastLogin': SERVER_TIMESTAMP})

            span.set_attribute("user.id", principal.uid)
            self.event_logger.info('Login successful', {'userId': principal.uid, 'role': role})
            return build_user_context(profile), principal.token

    def logout(self, user_context: UserContext, token: Optional[str]) -> None:
        """End the caller's session."""
        with tracer.start_as_current_span("auth.logout"):
            self.event_logger.info('User logout', {'userId': user_context.user_id})
            self.identity.sign_out(Principal(uid=user_context.user_id, email=user_context.email or "", token=token))
            self.event_logger.info('Logout successful')

    def context_for_token(self, token: str) -> UserContext:
        """
        Resolve a session token to the caller's context.

        Raises:
            AuthenticationException: If the session is invalid or the profile
                is missing or deactivated
        """
        principal = self.identity.verify_session(token)
        profile = self.store.get(USERS_COLLECTION, principal.uid)
        if profile is None or not profile.get('isActive', True):
            raise AuthenticationException("Invalid session")
        return build_user_context(profile)

    def get_profile(self, user_context: UserContext) -> Dict[str, Any]:
        return self._load_profile(user_context.user_id)

    def update_profile(self, user_context: UserContext, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the caller's own profile.

        Only name, phone and address can be changed; role, email and active
        flag are managed elsewhere.
        """
        forbidden = sorted(key for key in updates if key not in SELF_EDITABLE_FIELDS)
        if forbidden:
            raise ValidationException(
                f"Fields cannot be updated: {', '.join(forbidden)}",
                [{"field": key, "message": "Field is not editable"} for key in forbidden]
            )

        with tracer.start_as_current_span("auth.update_profile"):
            self._load_profile(user_context.user_id)
            self.store.update(USERS_COLLECTION, user_context.user_id, {**updates, 'updatedAt': SERVER_TIMESTAMP})
            self.event_logger.info('Profile updated successfully', {'userId': user_context.user_id})
            return self._load_profile(user_context.user_id)

    def reset_password(self, email: str) -> Optional[str]:
        """Start a password reset; returns the reset token, or None for an unknown e-mail."""
        with tracer.start_as_current_span("auth.reset_password"):
            token = self.identity.send_password_reset(email)
            self.event_logger.info('Password reset email sent', {'email': email})
            return token

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        with tracer.start_as_current_span("auth.confirm_password_reset"):
            self.identity.confirm_password_reset(token, new_password)
            self.event_logger.security('Password reset completed')

    def has_role(self, user_context: Optional[UserContext], roles: RoleSpec) -> bool:
        return check_role(user_context, roles).allowed

    def require_role(self, user_context: Optional[UserContext], roles: RoleSpec) -> None:
        _require_role(user_context, roles)

    def deactivate_user(self, user_context: UserContext, user_id: str) -> None:
        """Deactivate an account (admin only)."""
        _require_role(user_context, ADMIN_ROLES)

        with tracer.start_as_current_span("auth.deactivate_user") as span:
            span.set_attribute("user.id", user_id)
            self._load_profile(user_id)
            self.store.update(USERS_COLLECTION, user_id, {
                'isActive': False,
                'deactivatedAt': SERVER_TIMESTAMP,
                'deactivatedBy': user_context.user_id
            })
            self.event_logger.security('User account deactivated', {
                'userId': user_id,
                'deactivatedBy': user_context.user_id
            })

    def get_all_users(self, user_context: UserContext) -> List[Dict[str, Any]]:
        """Every user profile, newest first (admin only)."""
        _require_role(user_context, ADMIN_ROLES)
        return self.store.query(USERS_COLLECTION, order_by='createdAt', descending=True)

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        """
        Subscribe to sign-in and sign-out events.

        The callback receives ``(principal, profile)`` after a sign-in, or
        None after a sign-out or when the profile cannot be loaded.
        """
        def listener(principal: Optional[Principal]) -> None:
            if principal is None:
                callback(None)
                return

            profile = self.store.get(USERS_COLLECTION, principal.uid)
            callback((principal, profile) if profile is not None else None)

        return self.identity.subscribe(listener)
