# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the pydantic models.
"""

import pytest
from datetime import datetime, timezone, timedelta
from pydantic import ValidationError

from egram_portal.models import (
    Application,
    ApplicationFilters,
    LoginRequest,
    Service,
    StatusHistoryEntry,
    UserContext,
    UserRole,
    isoformat_utc
)


def application_data(**overrides):
    data = {
        "applicationId": "APP20240115ABCD1234",
        "serviceId": "s1",
        "userId": "citizen-1",
        "applicantDetails": {"name": "Asha", "email": "asha@example.com", "phone": "9876543210"},
        "status": "pending",
        "statusHistory": [{"status": "pending", "updatedBy": "citizen-1", "comments": "Application submitted"}]
    }
    data.update(overrides)
    return data


class TestApplication:
    """Test the application document model."""

    def test_camel_case_documents(self):
        """Documents round-trip through camelCase keys with enum values."""
        application = Application.from_document(application_data())

        document = application.to_document()
        assert document["applicantDetails"]["email"] == "asha@example.com"
        assert document["statusHistory"][0]["updatedBy"] == "citizen-1"
        assert document["status"] == "pending"

    def test_history_must_match_status(self):
        """The latest history entry has to describe the current status."""
        with pytest.raises(ValidationError):
            Application.from_document(application_data(status="approved"))

    def test_history_entries_are_frozen(self):
        entry = StatusHistoryEntry(status="pending")

        with pytest.raises(ValidationError):
            entry.comments = "edited"


class TestService:
    """Test the service model."""

    def test_defaults_and_name_strip(self):
        service = Service(name="  Trade License ", description="Shop permit", category="license")

        assert service.name == "Trade License"
        assert service.processing_time == "7-10 days"
        assert service.is_active is True

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            Service(name="   ", description="Shop permit", category="license")

    def test_update_timestamp(self):
        service = Service(name="Trade License", description="Shop permit", category="license")

        service.update_timestamp("admin-1")

        assert service.updated_by == "admin-1"
        assert service.updated_at is not None


class TestUserContext:
    """Test role helpers."""

    def test_roles(self):
        staff = UserContext(user_id="s1", role="staff")

        assert staff.has_role("staff")
        assert staff.has_role([UserRole.ADMIN, UserRole.STAFF])
        assert not staff.has_role(UserRole.ADMIN)
        assert staff.is_staff()
        assert not UserContext(user_id="c1").is_staff()


class TestRequests:
    """Test request models."""

    def test_login_normalizes_email(self):
        request = LoginRequest.model_validate({"email": " Asha@Example.COM ", "password": "x", "role": "staff"})

        assert request.email == "asha@example.com"
        assert request.role == "staff"

    def test_application_filters(self):
        """Only set filters become predicates, keyed by document field."""
        filters = ApplicationFilters.model_validate({"status": "pending", "serviceId": "s1"})

        assert filters.to_predicate_values() == {"status": "pending", "serviceId": "s1"}

    def test_invalid_filter(self):
        with pytest.raises(ValidationError):
            ApplicationFilters.model_validate({"priority": "asap"})


class TestIsoformat:
    """Test timestamp rendering."""

    def test_utc_with_milliseconds(self):
        value = datetime(2024, 1, 15, 14, 30, 5, 123456, tzinfo=timezone(timedelta(hours=5, minutes=30)))

        assert isoformat_utc(value) == "2024-01-15T09:00:05.123Z"

    def test_naive_is_utc(self):
        assert isoformat_utc(datetime(2024, 1, 15, 9, 0)) == "2024-01-15T09:00:00.000Z"
