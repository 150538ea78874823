# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and serialization.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


def generate_document_id() -> str:
    """Generate a collision-resistant document identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Base for models persisted as camelCase documents."""

    model_config = ConfigDict(
        # Accept both snake_case field names and camelCase document keys
        alias_generator=to_camel,
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True
    )

    def to_document(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Serialize to the camelCase document stored in the database."""
        return self.model_dump(by_alias=True, exclude_none=exclude_none)

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build the model from a stored document."""
        return cls.model_validate(document)


class BaseEntity(DocumentModel):
    """Base entity with common fields for all domain objects."""

    id: str = Field(default_factory=generate_document_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    created_by: Optional[str] = Field(None, description="User ID who created this entity")
    updated_by: Optional[str] = Field(None, description="User ID who last updated this entity")

    def update_timestamp(self, updated_by: str) -> None:
        """Update the timestamp and updated_by fields."""
        self.updated_at = utcnow()
        self.updated_by = updated_by


def isoformat_utc(value: datetime) -> str:
    """Render a datetime as a millisecond ISO-8601 UTC string ending in ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
