# SPDX-License-Identifier: Apache-2.0

"""
Tests for registration, login and profile management.
"""

import pytest

from egram_portal.errors import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    MissingFieldsException,
    ValidationException
)
from egram_portal.services.auth import AuthService, USERS_COLLECTION


@pytest.fixture
def auth_service(store, identity, event_logger):
    return AuthService(store, identity, event_logger)


@pytest.fixture
def registration():
    return {
        "email": "asha@example.com",
        "password": "secret123",
        "name": "Asha Patil",
        "phone": "9876543210",
        "address": "Ward 3, Shirur"
    }


def security_events(event_logger):
    return [entry for entry in event_logger.buffer.snapshot() if entry["level"] == "SECURITY"]


class TestRegister:
    """Test account registration."""

    def test_citizen_registration(self, auth_service, store, registration):
        """Self-registration creates a citizen profile and a session."""
        user_context, token = auth_service.register(registration)

        assert user_context.role == "citizen"
        assert user_context.email == "asha@example.com"
        profile = store.get(USERS_COLLECTION, user_context.user_id)
        assert profile["name"] == "Asha Patil"
        assert profile["isActive"] is True
        assert "password" not in profile
        assert auth_service.context_for_token(token).user_id == user_context.user_id

    def test_validation_before_account_creation(self, auth_service, store):
        """Invalid payloads never reach the identity provider."""
        with pytest.raises(MissingFieldsException):
            auth_service.register({"email": "asha@example.com"})
        with pytest.raises(ValidationException):
            auth_service.register({"email": "asha@example.com", "password": "abc", "name": "Asha"})

        assert store.documents("credentials") == []

    def test_staff_requires_admin(self, auth_service, registration, citizen, admin):
        """Only admins can create staff and admin accounts."""
        with pytest.raises(AuthorizationException):
            auth_service.register({**registration, "role": "staff"})
        with pytest.raises(AuthorizationException):
            auth_service.register({**registration, "role": "admin"}, created_by=citizen)

        user_context, _ = auth_service.register({**registration, "role": "staff"}, created_by=admin)
        assert user_context.role == "staff"

    def test_duplicate_email(self, auth_service, registration):
        auth_service.register(registration)

        with pytest.raises(ConflictException):
            auth_service.register(registration)


class TestLogin:
    """Test role-aware login."""

    def test_login(self, auth_service, store, registration):
        """A matching role signs in and records the login time."""
        registered, _ = auth_service.register(registration)

        user_context, token = auth_service.login("asha@example.com", "secret123", "citizen")

        assert user_context.user_id == registered.user_id
        assert token
        assert store.get(USERS_COLLECTION, registered.user_id)["lastLogin"] is not None

    def test_bad_password_is_a_security_event(self, auth_service, event_logger, registration):
        auth_service.register(registration)

        with pytest.raises(AuthenticationException):
            auth_service.login("asha@example.com", "wrong-pass", "citizen")

        events = security_events(event_logger)
        assert [event["message"] for event in events] == ["Login failed"]
        assert events[0]["data"]["reason"] == "Invalid email or password"

    def test_role_mismatch(self, auth_service, event_logger, registration):
        """Signing in as a role the account does not hold is rejected."""
        auth_service.register(registration)

        with pytest.raises(AuthenticationException) as exc_info:
            auth_service.login("asha@example.com", "secret123", "admin")

        assert exc_info.value.message == "Invalid role selected"
        assert security_events(event_logger)[-1]["data"]["reason"] == "Invalid role selected"

    def test_deactivated_account(self, auth_service, registration, admin):
        """Deactivated accounts can neither sign in nor use old sessions."""
        user_context, token = auth_service.register(registration)
        auth_service.deactivate_user(admin, user_context.user_id)

        with pytest.raises(AuthorizationException):
            auth_service.login("asha@example.com", "secret123", "citizen")
        with pytest.raises(AuthenticationException):
            auth_service.context_for_token(token)

    def test_logout_revokes_session(self, auth_service, registration):
        user_context, token = auth_service.register(registration)

        auth_service.logout(user_context, token)

        with pytest.raises(AuthenticationException):
            auth_service.context_for_token(token)


class TestProfile:
    """Test profile reads and updates."""

    def test_update_profile(self, auth_service, registration):
        user_context, _ = auth_service.register(registration)

        profile = auth_service.update_profile(user_context, {"phone": "9123456780", "address": "Ward 5"})

        assert profile["phone"] == "9123456780"
        assert profile["address"] == "Ward 5"
        assert profile["updatedAt"] is not None

    def test_protected_fields(self, auth_service, registration):
        """Role, e-mail and active flag cannot be self-edited."""
        user_context, _ = auth_service.register(registration)

        with pytest.raises(ValidationException) as exc_info:
            auth_service.update_profile(user_context, {"role": "admin", "name": "Asha P"})

        assert exc_info.value.message == "Fields cannot be updated: role"
        assert auth_service.get_profile(user_context)["role"] == "citizen"


class TestAdministration:
    """Test admin-only user management."""

    def test_deactivate_requires_admin(self, auth_service, registration, staff):
        user_context, _ = auth_service.register(registration)

        with pytest.raises(AuthorizationException):
            auth_service.deactivate_user(staff, user_context.user_id)

    def test_deactivation_is_a_security_event(self, auth_service, event_logger, registration, admin):
        user_context, _ = auth_service.register(registration)

        auth_service.deactivate_user(admin, user_context.user_id)

        event = security_events(event_logger)[-1]
        assert event["message"] == "User account deactivated"
        assert event["data"] == {"userId": user_context.user_id, "deactivatedBy": "admin-1"}

    def test_list_users(self, auth_service, registration, admin, citizen):
        auth_service.register(registration)
        auth_service.register({**registration, "email": "ravi@example.com", "name": "Ravi Kumar"})

        assert [u["name"] for u in auth_service.get_all_users(admin)] == ["Ravi Kumar", "Asha Patil"]
        with pytest.raises(AuthorizationException):
            auth_service.get_all_users(citizen)

    def test_role_checks(self, auth_service, staff):
        assert auth_service.has_role(staff, ["staff", "admin"]) is True
        assert auth_service.has_role(None, "citizen") is False
        with pytest.raises(AuthorizationException):
            auth_service.require_role(staff, "admin")


class TestPasswordReset:
    """Test the password reset flow through the auth service."""

    def test_reset_and_confirm(self, auth_service, event_logger, registration):
        auth_service.register(registration)

        token = auth_service.reset_password("asha@example.com")
        auth_service.confirm_password_reset(token, "newsecret")

        user_context, _ = auth_service.login("asha@example.com", "newsecret", "citizen")
        assert user_context.email == "asha@example.com"
        assert "Password reset completed" in [e["message"] for e in security_events(event_logger)]

    def test_unknown_email(self, auth_service):
        assert auth_service.reset_password("nobody@example.com") is None


class TestAuthStateChanges:
    """Test auth state subscriptions."""

    def test_callback_receives_profile(self, auth_service, registration):
        """Sign-ins deliver the principal with its profile, sign-outs deliver None."""
        events = []
        unsubscribe = auth_service.on_auth_state_changed(events.append)

        auth_service.register(registration)
        user_context, token = auth_service.login("asha@example.com", "secret123", "citizen")
        auth_service.logout(user_context, token)
        unsubscribe()

        # registration signs in before the profile exists
        assert events[0] is None
        principal, profile = events[1]
        assert principal.uid == user_context.user_id
        assert profile["name"] == "Asha Patil"
        assert events[2] is None
        assert len(events) == 3
