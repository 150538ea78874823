# SPDX-License-Identifier: Apache-2.0

"""
In-portal user notifications.
"""

import logging
from typing import Any, Dict, List, Optional
from opentelemetry import trace

from ..errors import AuthorizationException, NotFoundException, StorageOperationException
from ..models.entities import Notification, UserContext
from ..models.enums import NotificationType
from .document_store import DocumentStore, Predicate, SERVER_TIMESTAMP
from .event_logger import EventLogger

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

COLLECTION = "notifications"


class NotificationService:
    """Create, list and acknowledge notifications."""

    def __init__(self, store: DocumentStore, event_logger: EventLogger):
        self.store = store
        self.event_logger = event_logger

    def create_notification(
        self,
        user_id: str,
        type: str = NotificationType.GENERAL.value,
        title: str = "",
        message: str = "",
        application_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Store a notification for a user.

        Delivery is best-effort: a failure is logged and None is returned
        instead of raising, so it never undoes the action that triggered it.

        Returns:
            Notification ID, or None if it could not be stored
        """
        with tracer.start_as_current_span("notifications.create") as span:
            span.set_attributes({"notification.type": type, "user.id": user_id or ""})
            try:
                notification = Notification(
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    application_id=application_id,
                    data=data or {}
                )
                document = notification.to_document()
                document.pop('id')
                document['createdAt'] = SERVER_TIMESTAMP
                notification_id = self.store.add(COLLECTION, document)
            except (StorageOperationException, ValueError) as e:
                span.record_exception(e)
                logger.error(f"Failed to create notification: {str(e)}", extra={"user_id": user_id})
                self.event_logger.error('Failed to create notification', {'userId': user_id, 'error': str(e)})
                return None

            span.set_attribute("notification.id", notification_id)
            return notification_id

    def get_user_notifications(
        self,
        user_context: UserContext,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Caller's notifications, newest first."""
        predicates = [Predicate("userId", "==", user_context.user_id)]
        if unread_only:
            predicates.append(Predicate("isRead", "==", False))

        with tracer.start_as_current_span("notifications.list"):
            return self.store.query(COLLECTION, predicates, order_by="createdAt", descending=True, limit=limit)

    def unread_count(self, user_context: UserContext) -> int:
        return len(self.store.query(COLLECTION, [
            Predicate("userId", "==", user_context.user_id),
            Predicate("isRead", "==", False)
        ]))

    def mark_as_read(self, user_context: UserContext, notification_id: str) -> None:
        """
        Mark one of the caller's notifications as read.

        Raises:
            NotFoundException: If the notification does not exist
            AuthorizationException: If it belongs to another user
        """
        with tracer.start_as_current_span("notifications.mark_as_read"):
            notification = self.store.get(COLLECTION, notification_id)
            if notification is None:
                raise NotFoundException("Notification not found")
            if notification.get('userId') != user_context.user_id:
                raise AuthorizationException("Cannot modify another user's notification")

            self.store.update(COLLECTION, notification_id, {'isRead': True, 'readAt': SERVER_TIMESTAMP})

    def mark_all_as_read(self, user_context: UserContext) -> int:
        """Mark every unread notification of the caller as read in one batch."""
        with tracer.start_as_current_span("notifications.mark_all_as_read") as span:
            unread = self.get_user_notifications(user_context, unread_only=True, limit=None)
            if not unread:
                return 0

            batch = self.store.batch()
            for notification in unread:
                batch.update(COLLECTION, notification['id'], {'isRead': True, 'readAt': SERVER_TIMESTAMP})
            batch.commit()

            span.set_attribute("notifications.marked", len(unread))
            return len(unread)
