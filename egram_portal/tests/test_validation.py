# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for domain input validators.
"""

import pytest
from datetime import datetime, timezone

from egram_portal.domain.validation import (
    estimate_completion_date,
    is_valid_email,
    is_valid_phone,
    parse_documents,
    parse_processing_time,
    validate_application_data,
    validate_category,
    validate_registration_data,
    validate_service_data,
    validate_review_status,
    validate_service_update,
    validate_status
)
from egram_portal.errors import MissingFieldsException, ValidationException


class TestApplicationValidation:
    """Test application submission validation."""

    def test_lists_every_missing_field(self):
        """Only a service id given: all applicant fields are reported missing."""
        with pytest.raises(MissingFieldsException) as exc_info:
            validate_application_data({"serviceId": "s1"})

        error = exc_info.value
        assert error.missing_fields == ["applicantName", "applicantEmail", "applicantPhone"]
        assert error.code == "missing_required_fields"
        assert error.status_code == 400
        assert [item["field"] for item in error.validation_errors] == error.missing_fields

    def test_empty_values_count_as_missing(self):
        """Empty strings are treated as missing."""
        with pytest.raises(MissingFieldsException) as exc_info:
            validate_application_data({
                "serviceId": "s1", "applicantName": "", "applicantEmail": "a@b.co", "applicantPhone": "9876543210"
            })

        assert exc_info.value.missing_fields == ["applicantName"]

    def test_invalid_email(self):
        """Malformed applicant email is rejected."""
        with pytest.raises(ValidationException) as exc_info:
            validate_application_data({
                "serviceId": "s1", "applicantName": "Asha",
                "applicantEmail": "not-an-email", "applicantPhone": "9876543210"
            })

        assert exc_info.value.code == "invalid_email"

    def test_invalid_phone(self):
        """Phone numbers need 10 to 15 digits."""
        with pytest.raises(ValidationException) as exc_info:
            validate_application_data({
                "serviceId": "s1", "applicantName": "Asha",
                "applicantEmail": "asha@example.com", "applicantPhone": "12345"
            })

        assert exc_info.value.code == "invalid_phone"

    def test_valid_submission(self):
        """A complete submission passes."""
        validate_application_data({
            "serviceId": "s1", "applicantName": "Asha",
            "applicantEmail": "asha@example.com", "applicantPhone": "+91 (987) 654-3210"
        })


class TestServiceValidation:
    """Test service payload validation."""

    def test_missing_fields(self):
        """Name, description and category are required."""
        with pytest.raises(MissingFieldsException) as exc_info:
            validate_service_data({"name": "Birth Certificate"})

        assert exc_info.value.missing_fields == ["description", "category"]

    def test_unknown_category(self):
        """Only the fixed categories are accepted."""
        with pytest.raises(ValidationException) as exc_info:
            validate_service_data({"name": "X", "description": "Y", "category": "tax"})

        assert exc_info.value.code == "invalid_category"

    def test_known_categories(self):
        """Every fixed category is accepted."""
        for category in ("certificate", "license", "welfare", "other"):
            validate_category(category)

    def test_update_rejects_empty_name(self):
        """A partial update cannot blank the name."""
        with pytest.raises(ValidationException) as exc_info:
            validate_service_update({"name": ""})

        assert exc_info.value.code == "empty_field"

    def test_update_checks_category_only_when_present(self):
        """Updates without a category skip the category check."""
        validate_service_update({"fees": 10})
        with pytest.raises(ValidationException):
            validate_service_update({"category": "unknown"})


class TestStatusAndRegistration:
    """Test status and registration validation."""

    def test_status(self):
        """Unknown statuses are rejected."""
        validate_status("under_review")
        with pytest.raises(ValidationException) as exc_info:
            validate_status("archived")

        assert exc_info.value.code == "invalid_status"

    def test_review_status_excludes_cancelled(self):
        """Staff may set any status except cancelled."""
        validate_review_status("completed")
        with pytest.raises(ValidationException) as exc_info:
            validate_review_status("cancelled")

        assert exc_info.value.code == "invalid_status"

    def test_registration_missing_fields(self):
        """Email, password and name are required."""
        with pytest.raises(MissingFieldsException) as exc_info:
            validate_registration_data({"email": "asha@example.com"})

        assert exc_info.value.missing_fields == ["password", "name"]

    @pytest.mark.parametrize("data,code", [
        ({"email": "bad", "password": "secret1", "name": "A"}, "invalid_email"),
        ({"email": "a@b.co", "password": "123", "name": "A"}, "invalid_password"),
        ({"email": "a@b.co", "password": "secret1", "name": "A", "phone": "12"}, "invalid_phone"),
        ({"email": "a@b.co", "password": "secret1", "name": "A", "role": "mayor"}, "invalid_role"),
    ])
    def test_registration_errors(self, data, code):
        """Each invalid registration field has its own code."""
        with pytest.raises(ValidationException) as exc_info:
            validate_registration_data(data)

        assert exc_info.value.code == code


class TestParsers:
    """Test value helpers."""

    def test_email_and_phone(self):
        """Email and phone shape checks."""
        assert is_valid_email("asha@example.com")
        assert not is_valid_email("asha@example")
        assert not is_valid_email(None)
        assert not is_valid_email("asha@example.com\n")
        assert is_valid_phone("98765 43210")
        assert not is_valid_phone("1234567890123456")

    def test_parse_documents(self):
        """Comma-separated strings and lists are normalized."""
        assert parse_documents("ID proof, Address proof ,, ") == ["ID proof", "Address proof"]
        assert parse_documents([" Photo ", ""]) == ["Photo"]
        assert parse_documents(None) == []

    def test_parse_processing_time(self):
        """The first number wins; no number means seven days."""
        assert parse_processing_time("7-10 days") == 7
        assert parse_processing_time("within 15 working days") == 15
        assert parse_processing_time("immediate") == 7
        assert parse_processing_time(None) == 7

    def test_estimate_completion_date(self):
        """Completion is estimated from the processing time."""
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)

        assert estimate_completion_date(start, "5-7 days") == datetime(2024, 3, 6, tzinfo=timezone.utc)
