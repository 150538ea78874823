# SPDX-License-Identifier: Apache-2.0

"""
In-portal notification endpoints.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..errors import ValidationException
from .common import IdPath, require_jwt, serialize

logger = logging.getLogger(__name__)

notifications_tag = Tag(name="Notifications", description="Notifications for the signed-in user")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)

MAX_NOTIFICATIONS_LIMIT = 200


@notifications_bp.get('')
@require_jwt
def list_notifications(user_context):
    """
    List the caller's notifications, newest first.

    Query parameters: ``unread=true`` for unread only, ``limit`` (default 50).
    """
    unread_only = request.args.get('unread', 'false').lower() == 'true'
    try:
        limit = int(request.args.get('limit', 50))
    except ValueError:
        raise ValidationException("limit must be an integer", [{"field": "limit", "message": "Invalid integer"}])
    limit = max(1, min(limit, MAX_NOTIFICATIONS_LIMIT))

    service = current_app.notification_service
    notifications = service.get_user_notifications(user_context, unread_only, limit)
    return jsonify({
        'items': serialize(notifications),
        'count': len(notifications),
        'unreadCount': service.unread_count(user_context)
    })


@notifications_bp.post('/<id>/read')
@require_jwt
def mark_as_read(user_context, path: IdPath):
    current_app.notification_service.mark_as_read(user_context, path.id)
    return jsonify({'success': True})


@notifications_bp.post('/read-all')
@require_jwt
def mark_all_as_read(user_context):
    updated = current_app.notification_service.mark_all_as_read(user_context)
    return jsonify({'success': True, 'updated': updated})
