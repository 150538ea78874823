# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application submission and status workflow.

Every status change writes the new status and its history entry in one
update. The owner notification that follows is best-effort and is not rolled
back into the status change when it fails.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from opentelemetry import trace

from ..domain import applications as workflow
from ..domain.authorization import STAFF_ROLES, require_role
from ..domain.validation import (
    estimate_completion_date,
    validate_application_data,
    validate_model,
    validate_review_status,
    validate_status
)
from ..errors import AuthorizationException, CustomException, NotFoundException, StorageOperationException
from ..models.base import utcnow
from ..models.entities import Application, UserContext
from ..models.enums import ApplicationPriority, ApplicationStatus
from ..models.requests import ApplicationFilters
from .document_store import DocumentStore, Predicate
from .event_logger import EventLogger
from .notifications import NotificationService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

APPLICATIONS_COLLECTION = "applications"
SERVICES_COLLECTION = "services"


@dataclass
class BulkUpdateResult:
    """Outcome of a bulk status update; each item succeeds or fails on its own."""
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    results: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'failed': self.failed,
            'errors': list(self.errors),
            'results': list(self.results)
        }


class ApplicationService:
    """Submit, track and update citizen applications."""

    def __init__(self, store: DocumentStore, event_logger: EventLogger, notifications: NotificationService):
        self.store = store
        self.event_logger = event_logger
        self.notifications = notifications

    def _fail(self, span, message: str, error: Exception, **data) -> None:
        span.record_exception(error)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        logger.error(message, extra={"error": str(error), **data}, exc_info=True)
        self.event_logger.error(message, {**data, 'error': str(error)})

    def _load(self, application_id: str) -> Dict[str, Any]:
        application = self.store.get(APPLICATIONS_COLLECTION, application_id)
        if application is None:
            raise NotFoundException("Application not found")
        return application

    def submit_application(self, user_context: UserContext, data: Dict[str, Any]) -> str:
        """
        Submit a new application for the caller.

        Args:
            user_context: Caller identity; becomes the application owner
            data: serviceId, applicant fields, optional formData, documents
                and priority

        Returns:
            Store-assigned application ID

        Raises:
            ValidationException: If the submission is malformed
            NotFoundException: If the service does not exist or is inactive
        """
        validate_application_data(data)

        with tracer.start_as_current_span("applications.submit") as span:
            span.set_attributes({"service.id": data['serviceId'], "user.id": user_context.user_id})

            service = self.store.get(SERVICES_COLLECTION, data['serviceId'])
            if service is None or not service.get('isActive', True):
                raise NotFoundException("Service not found")

            now = utcnow()
            reference = workflow.generate_application_reference(now)
            application = validate_model(Application, {
                'application_id': reference,
                'service_id': data['serviceId'],
                'service_name': service.get('name'),
                'user_id': user_context.user_id,
                'applicant_details': {
                    'name': data['applicantName'],
                    'email': data['applicantEmail'],
                    'phone': data['applicantPhone'],
                    'address': data.get('applicantAddress')
                },
                'application_data': data.get('formData') or {},
                'documents': data.get('documents') or [],
                'status': ApplicationStatus.PENDING.value,
                'priority': data.get('priority') or ApplicationPriority.NORMAL.value,
                'applied_at': now,
                'estimated_completion_date': estimate_completion_date(now, service.get('processingTime')),
                'status_history': workflow.build_initial_history(user_context.user_id, now)
            }, "Invalid application data")
            document = application.to_document()
            document.pop('id')

            try:
                application_id = self.store.add(APPLICATIONS_COLLECTION, document)
            except StorageOperationException as e:
                self._fail(span, 'Failed to submit application', e, serviceId=data['serviceId'])
                raise

            span.set_attribute("application.id", application_id)
            self.event_logger.info('Application submitted successfully', {
                'applicationId': application_id,
                'reference': reference,
                'serviceId': data['serviceId'],
                'userId': user_context.user_id
            })
            return application_id

    def transition(
        self,
        user_context: UserContext,
        application_id: str,
        new_status: str,
        comments: Optional[str] = None,
        default_comment: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Move an application to a new status and notify its owner.

        Callers are responsible for authorization; see
        ``update_application_status``. Cancelling goes through
        ``cancel_application`` only.

        Returns:
            The updated application document

        Raises:
            ValidationException: If the status is unknown or is ``cancelled``
        """
        validate_review_status(new_status)
        return self._apply_transition(user_context, application_id, new_status, comments, default_comment)

    def _apply_transition(
        self,
        user_context: UserContext,
        application_id: str,
        new_status: str,
        comments: Optional[str] = None,
        default_comment: Optional[str] = None
    ) -> Dict[str, Any]:
        validate_status(new_status)

        with tracer.start_as_current_span("applications.transition") as span:
            span.set_attributes({"application.id": application_id, "application.new_status": new_status})

            application = self._load(application_id)
            update = workflow.build_status_transition(
                application, new_status, user_context.user_id, comments, utcnow(), default_comment
            )

            try:
                self.store.update(APPLICATIONS_COLLECTION, application_id, update)
            except StorageOperationException as e:
                self._fail(span, 'Failed to update application status', e,
                           applicationId=application_id, newStatus=new_status)
                raise

            self.event_logger.info('Application status updated', {
                'applicationId': application_id,
                'oldStatus': application.get('status'),
                'newStatus': new_status,
                'updatedBy': user_context.user_id
            })

            self.notifications.create_notification(
                **workflow.build_status_notification(application, application_id, new_status, comments)
            )

            return {**application, **update}

    def update_application_status(
        self,
        user_context: UserContext,
        application_id: str,
        new_status: str,
        comments: Optional[str] = None
    ) -> Dict[str, Any]:
        """Change an application's status (staff and admin only)."""
        require_role(user_context, STAFF_ROLES)
        return self.transition(user_context, application_id, new_status, comments)

    def cancel_application(self, user_context: UserContext, application_id: str, reason: str = "") -> Dict[str, Any]:
        """
        Cancel one of the caller's pending applications.

        Raises:
            NotFoundException: If the application does not exist
            AuthorizationException: If the caller is not the owner
            ConflictException: If the application is no longer pending
        """
        with tracer.start_as_current_span("applications.cancel") as span:
            span.set_attribute("application.id", application_id)
            application = self._load(application_id)
            workflow.check_cancellation(application, user_context)

            updated = self._apply_transition(
                user_context,
                application_id,
                ApplicationStatus.CANCELLED.value,
                reason or workflow.CANCELLED_COMMENT
            )

            self.event_logger.info('Application cancelled by user', {
                'applicationId': application_id,
                'userId': user_context.user_id,
                'reason': reason
            })
            return updated

    def bulk_update_status(
        self,
        user_context: UserContext,
        application_ids: List[str],
        new_status: str,
        comments: str = ""
    ) -> BulkUpdateResult:
        """
        Change the status of several applications (staff and admin only).

        Each application is updated on its own; one failure does not stop or
        undo the others.
        """
        require_role(user_context, STAFF_ROLES)
        validate_review_status(new_status)

        result = BulkUpdateResult()
        with tracer.start_as_current_span("applications.bulk_update_status") as span:
            span.set_attributes({"applications.count": len(application_ids), "application.new_status": new_status})

            for application_id in application_ids:
                try:
                    self.transition(
                        user_context, application_id, new_status, comments,
                        default_comment=f"Bulk update to {new_status}"
                    )
                except CustomException as e:
                    result.failed += 1
                    result.errors.append(f"Failed to update {application_id}: {e.message}")
                    result.results.append({'applicationId': application_id, 'success': False, 'error': e.message})
                else:
                    result.success += 1
                    result.results.append({'applicationId': application_id, 'success': True})

            span.set_attributes({"applications.succeeded": result.success, "applications.failed": result.failed})

        self.event_logger.info('Bulk status update completed', {
            'totalProcessed': len(application_ids),
            'successful': result.success,
            'failed': result.failed
        })
        return result

    # Reads

    def get_application(self, user_context: UserContext, application_id: str) -> Dict[str, Any]:
        """Fetch an application visible to the caller (owner, staff or admin)."""
        application = self._load(application_id)
        if not workflow.can_view_application(application, user_context):
            raise AuthorizationException("Unauthorized to view this application")
        return application

    def get_user_applications(self, user_context: UserContext, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Caller's own applications, newest first."""
        predicates = [Predicate('userId', '==', user_context.user_id)]
        if status:
            validate_status(status)
            predicates.append(Predicate('status', '==', status))

        with tracer.start_as_current_span("applications.get_user_applications"):
            return self.store.query(APPLICATIONS_COLLECTION, predicates, order_by='appliedAt', descending=True)

    def get_all_applications(
        self,
        user_context: UserContext,
        filters: Optional[ApplicationFilters] = None
    ) -> List[Dict[str, Any]]:
        """All applications matching the filters, newest first (staff and admin only)."""
        require_role(user_context, STAFF_ROLES)
        values = filters.to_predicate_values() if filters else {}
        predicates = [Predicate(name, '==', value) for name, value in values.items()]

        with tracer.start_as_current_span("applications.get_all_applications") as span:
            span.set_attribute("applications.filters_count", len(predicates))
            return self.store.query(APPLICATIONS_COLLECTION, predicates, order_by='appliedAt', descending=True)

    def get_pending_applications(self, user_context: UserContext) -> List[Dict[str, Any]]:
        return self.get_all_applications(user_context, ApplicationFilters(status=ApplicationStatus.PENDING))

    def search_applications(
        self,
        user_context: UserContext,
        term: Optional[str],
        filters: Optional[ApplicationFilters] = None
    ) -> List[Dict[str, Any]]:
        """Search applications by reference, service name or applicant (staff and admin only)."""
        results = workflow.search_applications(self.get_all_applications(user_context, filters), term)
        self.event_logger.info('Applications searched', {'searchTerm': term, 'resultsCount': len(results)})
        return results

    def get_application_statistics(
        self,
        user_context: UserContext,
        filters: Optional[ApplicationFilters] = None
    ) -> Dict[str, Any]:
        """Status, service, month and priority breakdowns (staff and admin only)."""
        return workflow.compute_application_statistics(self.get_all_applications(user_context, filters))
