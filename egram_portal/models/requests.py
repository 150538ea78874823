# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Application and service payloads are checked by the domain validators so the
caller gets the full list of missing fields; the models here cover the small
fixed-shape bodies.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from .enums import ApplicationStatus, ApplicationPriority, UserRole


class RequestModel(BaseModel):
    """Base for request bodies sent with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True
    )


class LoginRequest(RequestModel):
    """Request model for user login."""

    email: str = Field(..., min_length=3, description="User email address")
    password: str = Field(..., min_length=1, description="User password")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Role the user is signing in as")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.strip().lower()


class PasswordResetRequest(RequestModel):
    """Request model for sending a password reset."""

    email: str = Field(..., min_length=3, description="Account email address")


class PasswordResetConfirmRequest(RequestModel):
    """Request model for completing a password reset."""

    token: str = Field(..., min_length=1, description="Reset token")
    new_password: str = Field(..., min_length=1, description="New password")


class StatusUpdateRequest(RequestModel):
    """Request model for changing an application's status."""

    status: str = Field(..., min_length=1, description="New application status")
    comments: Optional[str] = Field(None, max_length=1000, description="Reason or note for the change")


class BulkStatusUpdateRequest(RequestModel):
    """Request model for changing the status of several applications."""

    application_ids: List[str] = Field(..., min_length=1, description="Application IDs to update")
    status: str = Field(..., min_length=1, description="New application status")
    comments: Optional[str] = Field(None, max_length=1000, description="Reason or note for the change")


class CancelApplicationRequest(RequestModel):
    """Request model for cancelling an application."""

    reason: Optional[str] = Field(None, max_length=1000, description="Cancellation reason")


class ApplicationFilters(RequestModel):
    """Filters for staff application listings."""

    status: Optional[ApplicationStatus] = Field(None, description="Filter by status")
    service_id: Optional[str] = Field(None, description="Filter by service")
    priority: Optional[ApplicationPriority] = Field(None, description="Filter by priority")

    def to_predicate_values(self) -> dict:
        """Non-empty filters keyed by document field name."""
        return self.model_dump(by_alias=True, exclude_none=True)
