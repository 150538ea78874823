# SPDX-License-Identifier: Apache-2.0

"""
Input validation for services, applications and registrations.

Pure functions with no side effects. Each raises from the exception taxonomy
before any storage call is made, so a rejected payload never causes a
partial write.
"""

import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationException, MissingFieldsException
from ..models.enums import ServiceCategory, ApplicationStatus, UserRole

SERVICE_REQUIRED_FIELDS = ('name', 'description', 'category')
APPLICATION_REQUIRED_FIELDS = ('serviceId', 'applicantName', 'applicantEmail', 'applicantPhone')
REGISTRATION_REQUIRED_FIELDS = ('email', 'password', 'name')

VALID_CATEGORIES = [category.value for category in ServiceCategory]
VALID_STATUSES = [status.value for status in ApplicationStatus]
VALID_ROLES = [role.value for role in UserRole]

EMAIL_PATTERN = re.compile(r'[^\s@]+@[^\s@]+\.[^\s@]+')
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
PASSWORD_MIN_LENGTH = 6

DEFAULT_PROCESSING_DAYS = 7

ModelT = TypeVar("ModelT", bound=BaseModel)


def find_missing_fields(data: Dict[str, Any], required: Iterable[str]) -> List[str]:
    """Required fields that are absent or empty, in declaration order."""
    return [field for field in required if not data.get(field)]


def is_valid_email(email: Any) -> bool:
    """Check a conventional local@domain.tld shape."""
    return isinstance(email, str) and EMAIL_PATTERN.fullmatch(email) is not None


def is_valid_phone(phone: Any) -> bool:
    """Check for 10-15 digits once punctuation and spaces are stripped."""
    digits = re.sub(r'\D', '', str(phone))
    return PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS


def validate_service_data(data: Dict[str, Any]) -> None:
    """
    Validate a new service payload.

    Args:
        data: Raw service data

    Raises:
        MissingFieldsException: If name, description or category is missing
        ValidationException: If the category is not a known category
    """
    missing = find_missing_fields(data, SERVICE_REQUIRED_FIELDS)
    if missing:
        raise MissingFieldsException(missing)

    validate_category(data['category'])


def validate_service_update(updates: Dict[str, Any]) -> None:
    """Validate the fields present in a partial service update."""
    for field in ('name', 'description'):
        if field in updates and not updates[field]:
            raise ValidationException(
                f"Field '{field}' cannot be empty",
                [{"field": field, "message": "Field cannot be empty"}],
                code="empty_field"
            )

    if 'category' in updates:
        validate_category(updates['category'])


def validate_category(category: Any) -> None:
    """Raise unless the category is one of the fixed service categories."""
    if category not in VALID_CATEGORIES:
        raise ValidationException(
            "Invalid service category",
            [{"field": "category", "message": f"Must be one of: {', '.join(VALID_CATEGORIES)}"}],
            code="invalid_category"
        )


def validate_application_data(data: Dict[str, Any]) -> None:
    """
    Validate an application submission payload.

    Args:
        data: Raw application data

    Raises:
        MissingFieldsException: If any required applicant field is missing
        ValidationException: If the email or phone number is malformed
    """
    missing = find_missing_fields(data, APPLICATION_REQUIRED_FIELDS)
    if missing:
        raise MissingFieldsException(missing)

    if not is_valid_email(data['applicantEmail']):
        raise ValidationException(
            "Invalid email format",
            [{"field": "applicantEmail", "message": "Invalid email format"}],
            code="invalid_email"
        )

    if not is_valid_phone(data['applicantPhone']):
        raise ValidationException(
            "Invalid phone number format",
            [{"field": "applicantPhone", "message": "Phone number must contain 10 to 15 digits"}],
            code="invalid_phone"
        )


def validate_status(status: Any) -> None:
    """Raise unless the status is one of the application statuses."""
    if status not in VALID_STATUSES:
        raise ValidationException(
            "Invalid status",
            [{"field": "status", "message": f"Must be one of: {', '.join(VALID_STATUSES)}"}],
            code="invalid_status"
        )


def validate_review_status(status: Any) -> None:
    """
    Raise unless staff may set the status.

    Cancellation is reserved to the applicant, through the cancellation flow.
    """
    validate_status(status)
    if status == ApplicationStatus.CANCELLED.value:
        raise ValidationException(
            "Applications can only be cancelled by their applicant",
            [{"field": "status", "message": "Use the cancellation flow to cancel an application"}],
            code="invalid_status"
        )


def validate_registration_data(data: Dict[str, Any]) -> None:
    """Validate a user registration payload."""
    missing = find_missing_fields(data, REGISTRATION_REQUIRED_FIELDS)
    if missing:
        raise MissingFieldsException(missing)

    if not is_valid_email(data['email']):
        raise ValidationException(
            "Invalid email format",
            [{"field": "email", "message": "Invalid email format"}],
            code="invalid_email"
        )

    if len(str(data['password'])) < PASSWORD_MIN_LENGTH:
        raise ValidationException(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            [{"field": "password", "message": "Password too short"}],
            code="invalid_password"
        )

    if data.get('phone') and not is_valid_phone(data['phone']):
        raise ValidationException(
            "Invalid phone number format",
            [{"field": "phone", "message": "Phone number must contain 10 to 15 digits"}],
            code="invalid_phone"
        )

    role = data.get('role') or UserRole.CITIZEN.value
    if role not in VALID_ROLES:
        raise ValidationException(
            "Invalid role",
            [{"field": "role", "message": f"Must be one of: {', '.join(VALID_ROLES)}"}],
            code="invalid_role"
        )


def parse_documents(documents: Union[str, List[str], None]) -> List[str]:
    """
    Normalize a required-documents value to a list of names.

    Accepts a comma-separated string or a list; blank names are dropped.
    """
    if not documents:
        return []
    if isinstance(documents, str):
        documents = documents.split(',')
    return [str(doc).strip() for doc in documents if str(doc).strip()]


def parse_processing_time(processing_time: Optional[str]) -> int:
    """Number of days from free text such as "7-10 days"; the first number wins."""
    if not processing_time:
        return DEFAULT_PROCESSING_DAYS

    match = re.search(r'(\d+)', str(processing_time))
    return int(match.group(1)) if match else DEFAULT_PROCESSING_DAYS


def estimate_completion_date(start: datetime, processing_time: Optional[str]) -> datetime:
    """Expected completion date for an application submitted at ``start``."""
    return start + timedelta(days=parse_processing_time(processing_time))


def validate_model(model: Type[ModelT], data: Dict[str, Any], message: str = "Request validation failed") -> ModelT:
    """
    Build a pydantic model, reporting failures as ``ValidationException``.

    Each pydantic error becomes one ``{"field", "message"}`` entry, with
    nested locations joined by dots.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationException(message, errors)
