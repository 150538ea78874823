# SPDX-License-Identifier: Apache-2.0

"""
Event log query, statistics, export and retention endpoints (admin only).
"""

from flask import Response, current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..domain.authorization import ADMIN_ROLES
from ..errors import ValidationException
from ..services.log_query import DEFAULT_DAYS_TO_KEEP, DEFAULT_EXPORT_LIMIT, DEFAULT_QUERY_LIMIT, LogFilters
from .common import require_roles, serialize

logger = logging.getLogger(__name__)

logs_tag = Tag(name="Logs", description="Application event log")
logs_bp = APIBlueprint('logs', __name__, url_prefix='/api/logs', abp_tags=[logs_tag])


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValidationException(f"{name} must be an integer", [{"field": name, "message": "Invalid integer"}])
    if parsed < 1:
        raise ValidationException(f"{name} must be positive", [{"field": name, "message": "Must be positive"}])
    return parsed


def _filters_from_args() -> LogFilters:
    return LogFilters(
        level=request.args.get('level') or None,
        user_id=request.args.get('userId') or None,
        session_id=request.args.get('sessionId') or None,
        start_date=request.args.get('startDate') or None,
        end_date=request.args.get('endDate') or None
    )


@logs_bp.get('')
@require_roles(ADMIN_ROLES)
def list_logs(user_context):
    """
    Query event log entries, most recent first.

    Filters: ``level``, ``userId``, ``sessionId``, ``startDate`` and
    ``endDate`` (ISO-8601 UTC); ``limit`` defaults to 100.
    """
    entries = current_app.log_query_service.query(_filters_from_args(), _int_arg('limit', DEFAULT_QUERY_LIMIT))
    return jsonify({'items': serialize(entries), 'count': len(entries)})


@logs_bp.get('/statistics')
@require_roles(ADMIN_ROLES)
def log_statistics(user_context):
    return jsonify(serialize(current_app.log_query_service.statistics(_filters_from_args())))


@logs_bp.get('/export')
@require_roles(ADMIN_ROLES)
def export_logs(user_context):
    """Download matching entries as a JSON file."""
    body = current_app.log_query_service.export(_filters_from_args(), _int_arg('limit', DEFAULT_EXPORT_LIMIT))
    return Response(
        body,
        mimetype='application/json',
        headers={'Content-Disposition': 'attachment; filename=logs-export.json'}
    )


@logs_bp.post('/retention')
@require_roles(ADMIN_ROLES)
def run_retention(user_context):
    """Delete entries older than ``daysToKeep`` days (default 30)."""
    days_to_keep = _int_arg('daysToKeep', DEFAULT_DAYS_TO_KEEP)
    deleted = current_app.log_query_service.retention_sweep(days_to_keep)
    current_app.event_logger.security('Log retention sweep run', {
        'userId': user_context.user_id,
        'daysToKeep': days_to_keep,
        'deleted': deleted
    })
    return jsonify({'deleted': deleted, 'daysToKeep': days_to_keep})
