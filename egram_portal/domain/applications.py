# SPDX-License-Identifier: Apache-2.0

"""
Application workflow domain logic.

This module contains pure functions for status transitions, cancellation
rules, status notifications, statistics and search over application
documents. Storage access lives in ``services.applications``.
"""

import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import AuthorizationException, ConflictException
from ..models.entities import UserContext
from ..models.enums import ApplicationStatus, ApplicationPriority, NotificationType

COMPLETION_STATUSES = (ApplicationStatus.APPROVED.value, ApplicationStatus.COMPLETED.value)
SUBMITTED_COMMENT = "Application submitted"
CANCELLED_COMMENT = "Cancelled by user"


def generate_application_reference(now: datetime) -> str:
    """
    Generate the human-readable application reference.

    The reference is for display only; the store-assigned document id is the
    authoritative identifier.

    Args:
        now: Submission time

    Returns:
        Reference of the form ``APP<YYYYMMDD><8 hex chars>``
    """
    return f"APP{now.strftime('%Y%m%d')}{uuid.uuid4().hex[:8].upper()}"


def build_initial_history(updated_by: str, now: datetime) -> List[Dict[str, Any]]:
    """Status history of a freshly submitted application."""
    return [{
        'status': ApplicationStatus.PENDING.value,
        'timestamp': now,
        'updatedBy': updated_by,
        'comments': SUBMITTED_COMMENT
    }]


def build_status_transition(
    application: Dict[str, Any],
    new_status: str,
    updated_by: str,
    comments: Optional[str],
    now: datetime,
    default_comment: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the partial update moving an application to a new status.

    The status and the appended history entry are returned together so they
    are always written in a single update. The stored history is copied, never
    mutated.

    Args:
        application: Current application document
        new_status: Status to move to
        updated_by: User ID performing the change
        comments: Reason or note; a default is used when empty
        now: Time of the change
        default_comment: Comment used when ``comments`` is empty

    Returns:
        Partial update document
    """
    history = list(application.get('statusHistory') or [])
    history.append({
        'status': new_status,
        'timestamp': now,
        'updatedBy': updated_by,
        'comments': comments or default_comment or f"Status changed to {new_status}"
    })

    update = {
        'status': new_status,
        'statusHistory': history,
        'updatedAt': now,
        'lastUpdatedBy': updated_by
    }

    if new_status in COMPLETION_STATUSES:
        update['completedAt'] = now

    return update


def check_cancellation(application: Dict[str, Any], user_context: UserContext) -> None:
    """
    Ensure the caller may cancel the application.

    Ownership is checked before status, so a non-owner never learns the
    application's state.

    Raises:
        AuthorizationException: If the caller does not own the application
        ConflictException: If the application is no longer pending
    """
    if application.get('userId') != user_context.user_id:
        raise AuthorizationException("Unauthorized to cancel this application")

    if application.get('status') != ApplicationStatus.PENDING.value:
        raise ConflictException("Application cannot be cancelled at this stage")


def can_view_application(application: Dict[str, Any], user_context: UserContext) -> bool:
    """Owners and staff may view an application."""
    return application.get('userId') == user_context.user_id or user_context.is_staff()


def build_status_notification(
    application: Dict[str, Any],
    application_id: str,
    new_status: str,
    comments: Optional[str]
) -> Dict[str, Any]:
    """Notification payload telling the owner their application changed status."""
    service_name = application.get('serviceName') or 'your service'
    return {
        'user_id': application.get('userId'),
        'type': NotificationType.STATUS_UPDATE.value,
        'title': 'Application Status Updated',
        'message': f"Your application for {service_name} has been {new_status}",
        'application_id': application_id,
        'data': {'newStatus': new_status, 'comments': comments or ''}
    }


def compute_application_statistics(applications: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Aggregate counts and processing times over application documents.

    Args:
        applications: Application documents

    Returns:
        Dictionary with total, byStatus, byService, byMonth,
        priorityDistribution and averageProcessingTime (days)
    """
    by_status = Counter()
    by_service = Counter()
    by_month = Counter()
    priorities = Counter()
    processing_days = []

    for app in applications:
        by_status[app.get('status')] += 1
        by_service[app.get('serviceName') or 'Unknown'] += 1
        priorities[app.get('priority') or ApplicationPriority.NORMAL.value] += 1

        applied_at = app.get('appliedAt')
        if isinstance(applied_at, datetime):
            by_month[applied_at.strftime('%Y-%m')] += 1

            completed_at = app.get('completedAt')
            if isinstance(completed_at, datetime):
                processing_days.append((completed_at - applied_at).total_seconds() / 86400)

    average = sum(processing_days) / len(processing_days) if processing_days else 0

    return {
        'total': len(applications),
        'byStatus': dict(by_status),
        'byService': dict(by_service),
        'byMonth': dict(by_month),
        'priorityDistribution': dict(priorities),
        'averageProcessingTime': average
    }


def search_applications(applications: List[Dict[str, Any]], term: Optional[str]) -> List[Dict[str, Any]]:
    """
    Search applications by reference, service name and applicant details.

    Args:
        applications: Application documents to search
        term: Case-insensitive search term; empty returns everything

    Returns:
        Matching applications in their original order
    """
    if not term:
        return list(applications)

    needle = term.lower()

    def matches(app: Dict[str, Any]) -> bool:
        applicant = app.get('applicantDetails') or {}
        haystack = (
            app.get('applicationId'),
            app.get('serviceName'),
            applicant.get('name'),
            applicant.get('email')
        )
        return any(needle in str(value).lower() for value in haystack if value)

    return [app for app in applications if matches(app)]
