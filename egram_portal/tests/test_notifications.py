# SPDX-License-Identifier: Apache-2.0

"""
Tests for user notifications.
"""

import pytest

from egram_portal.errors import AuthorizationException, NotFoundException
from egram_portal.services.notifications import NotificationService


@pytest.fixture
def notifications(store, event_logger):
    return NotificationService(store, event_logger)


def notify(notifications, user_id, title="Reminder"):
    return notifications.create_notification(user_id, title=title, message=f"{title} body")


class TestNotificationService:
    """Test notification storage and acknowledgement."""

    def test_create_and_list(self, notifications, citizen):
        """Notifications are unread by default and listed newest first."""
        first = notify(notifications, "citizen-1", "First")
        second = notify(notifications, "citizen-1", "Second")
        notify(notifications, "citizen-2", "Other")

        inbox = notifications.get_user_notifications(citizen)

        assert [n["id"] for n in inbox] == [second, first]
        assert inbox[0]["type"] == "general"
        assert inbox[0]["isRead"] is False
        assert notifications.unread_count(citizen) == 2

    def test_limit(self, notifications, citizen):
        for i in range(3):
            notify(notifications, "citizen-1", f"N{i}")

        assert len(notifications.get_user_notifications(citizen, limit=2)) == 2

    def test_invalid_notification_returns_none(self, notifications, store):
        """A notification that cannot be built is logged, not raised."""
        assert notifications.create_notification("citizen-1", title="", message="") is None
        assert store.documents("notifications") == []

    def test_storage_failure_returns_none(self, notifications, store, event_logger):
        """Delivery failures never propagate to the caller."""
        store.fail_operations = True

        assert notify(notifications, "citizen-1") is None
        assert event_logger.buffer.snapshot()[-1]["message"] == "Failed to create notification"

    def test_mark_as_read(self, notifications, citizen):
        """Reading one notification sets the flag and the read time."""
        notification_id = notify(notifications, "citizen-1")

        notifications.mark_as_read(citizen, notification_id)

        stored = notifications.get_user_notifications(citizen)[0]
        assert stored["isRead"] is True
        assert stored["readAt"] is not None
        assert notifications.get_user_notifications(citizen, unread_only=True) == []

    def test_mark_as_read_checks_owner(self, notifications, other_citizen):
        """Users can only acknowledge their own notifications."""
        notification_id = notify(notifications, "citizen-1")

        with pytest.raises(AuthorizationException):
            notifications.mark_as_read(other_citizen, notification_id)
        with pytest.raises(NotFoundException):
            notifications.mark_as_read(other_citizen, "missing")

    def test_mark_all_as_read(self, notifications, store, citizen, other_citizen):
        """All unread notifications of the caller are updated in one batch."""
        notify(notifications, "citizen-1")
        notify(notifications, "citizen-1")
        notify(notifications, "citizen-2")

        assert notifications.mark_all_as_read(citizen) == 2

        assert len(store.committed_batches) == 1
        assert notifications.unread_count(citizen) == 0
        assert notifications.unread_count(other_citizen) == 1
        assert notifications.mark_all_as_read(citizen) == 0
