# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the E-Gram Panchayat portal.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Union
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity, DocumentModel, generate_document_id, utcnow
from .enums import (
    ServiceCategory,
    ApplicationStatus,
    ApplicationPriority,
    UserRole,
    LogLevel,
    NotificationType
)


class Service(BaseEntity):
    """Government service offered to citizens."""

    name: str = Field(..., min_length=1, max_length=200, description="Service name")
    description: str = Field(..., min_length=1, description="Service description")
    category: ServiceCategory = Field(..., description="Service category")
    required_documents: List[str] = Field(default_factory=list, description="Documents the applicant must provide")
    eligibility_criteria: Union[List[str], str] = Field(default_factory=list, description="Eligibility criteria")
    processing_time: str = Field(default="7-10 days", description="Free-text processing time")
    fees: float = Field(default=0, ge=0, description="Service fee")
    is_active: bool = Field(default=True, description="False once the service is soft deleted")
    deleted_at: Optional[datetime] = Field(None, description="Soft delete timestamp")
    deleted_by: Optional[str] = Field(None, description="User ID who deleted the service")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate service name."""
        if not v.strip():
            raise ValueError('Service name cannot be empty')
        return v.strip()


class ApplicantDetails(DocumentModel):
    """Contact details captured with an application."""

    name: str = Field(..., min_length=1, description="Applicant full name")
    email: str = Field(..., description="Applicant email")
    phone: str = Field(..., description="Applicant phone number")
    address: Optional[str] = Field(None, description="Applicant postal address")


class StatusHistoryEntry(DocumentModel):
    """One immutable entry of an application's status audit trail."""

    model_config = ConfigDict(frozen=True)

    status: ApplicationStatus = Field(..., description="Status entered")
    timestamp: datetime = Field(default_factory=utcnow, description="When the status was entered")
    updated_by: Optional[str] = Field(None, description="User ID who changed the status")
    comments: str = Field(default="", description="Reason or note for the change")


class Application(DocumentModel):
    """Citizen application for a government service."""

    id: str = Field(default_factory=generate_document_id, description="Unique identifier")
    application_id: str = Field(..., description="Human-readable display reference")
    service_id: str = Field(..., description="Referenced service ID")
    service_name: Optional[str] = Field(None, description="Service name at submission time")
    user_id: str = Field(..., description="Owning applicant user ID")
    applicant_details: ApplicantDetails = Field(..., description="Applicant contact details")
    application_data: Dict[str, Any] = Field(default_factory=dict, description="Service-specific form data")
    documents: List[Any] = Field(default_factory=list, description="Uploaded document references")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, description="Workflow status")
    status_history: List[StatusHistoryEntry] = Field(default_factory=list, description="Status audit trail")
    priority: ApplicationPriority = Field(default=ApplicationPriority.NORMAL, description="Processing priority")
    applied_at: datetime = Field(default_factory=utcnow, description="Submission timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    last_updated_by: Optional[str] = Field(None, description="User ID of the last status change")
    estimated_completion_date: Optional[datetime] = Field(None, description="Expected completion date")
    completed_at: Optional[datetime] = Field(None, description="Approval or completion timestamp")

    @model_validator(mode='after')
    def validate_status_history(self):
        """The latest history entry must describe the current status."""
        if self.status_history and self.status_history[-1].status != self.status:
            raise ValueError('Last status history entry must match the current status')
        return self


class Notification(DocumentModel):
    """In-portal notification for a user."""

    id: str = Field(default_factory=generate_document_id, description="Unique identifier")
    user_id: str = Field(..., description="Recipient user ID")
    type: NotificationType = Field(default=NotificationType.GENERAL, description="Notification kind")
    title: str = Field(..., min_length=1, max_length=200, description="Notification title")
    message: str = Field(..., min_length=1, description="Notification body")
    application_id: Optional[str] = Field(None, description="Related application ID")
    data: Dict[str, Any] = Field(default_factory=dict, description="Structured payload")
    is_read: bool = Field(default=False, description="Read flag")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    read_at: Optional[datetime] = Field(None, description="When the notification was read")


class UserProfile(DocumentModel):
    """Portal user profile stored alongside the identity provider account."""

    id: str = Field(..., description="Identity provider user ID")
    name: str = Field(..., min_length=1, max_length=200, description="User full name")
    email: str = Field(..., description="User email address")
    phone: Optional[str] = Field(None, description="Phone number")
    address: Optional[str] = Field(None, description="Postal address")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Portal role")
    is_active: bool = Field(default=True, description="False once deactivated by an admin")
    created_at: datetime = Field(default_factory=utcnow, description="Registration timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last profile update")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")
    deactivated_at: Optional[datetime] = Field(None, description="Deactivation timestamp")
    deactivated_by: Optional[str] = Field(None, description="Admin who deactivated the account")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Store emails lower-cased."""
        return v.strip().lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate user name."""
        if not v.strip():
            raise ValueError('User name cannot be empty')
        return v.strip()


class LogEntry(DocumentModel):
    """Structured event log entry. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique log identifier")
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    level: LogLevel = Field(..., description="Log level")
    message: str = Field(..., description="Log message")
    data: Optional[Any] = Field(None, description="Sanitized structured payload")
    context: Dict[str, Any] = Field(default_factory=dict, description="Session and caller context")


class Principal(BaseModel):
    """Authenticated identity returned by the identity provider."""

    uid: str = Field(..., description="Identity provider user ID")
    email: str = Field(..., description="Account email")
    token: Optional[str] = Field(None, description="Session token")


class UserContext(BaseModel):
    """Caller identity threaded explicitly through every service call."""

    user_id: str = Field(..., description="Authenticated user ID")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Portal role")
    session_id: Optional[str] = Field(None, description="Session identifier")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, roles: Union[str, List[str]]) -> bool:
        """Check if the caller holds the role, or one of the roles."""
        if isinstance(roles, (list, tuple, set)):
            return self.role in [getattr(r, "value", r) for r in roles]
        return self.role == getattr(roles, "value", roles)

    def is_staff(self) -> bool:
        """Staff and admins may manage applications."""
        return self.has_role([UserRole.STAFF, UserRole.ADMIN])
