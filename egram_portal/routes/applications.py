# SPDX-License-Identifier: Apache-2.0

"""
Application submission and status workflow endpoints.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.authorization import STAFF_ROLES
from ..models.requests import (
    ApplicationFilters,
    BulkStatusUpdateRequest,
    CancelApplicationRequest,
    StatusUpdateRequest
)
from .common import IdPath, json_body, parse_model, require_jwt, require_roles, serialize

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

applications_tag = Tag(name="Applications", description="Citizen applications and their status")
applications_bp = APIBlueprint(
    'applications',
    __name__,
    url_prefix='/api/applications',
    abp_tags=[applications_tag]
)


def _filters_from_args() -> ApplicationFilters:
    args = {key: value for key, value in request.args.items() if key != 'search' and value}
    return parse_model(ApplicationFilters, args)


@applications_bp.post('')
@require_jwt
def submit_application(user_context):
    """Submit an application for a service on the caller's behalf."""
    service = current_app.application_service
    application_id = service.submit_application(user_context, json_body())
    return jsonify(serialize(service.get_application(user_context, application_id))), 201


@applications_bp.get('/mine')
@require_jwt
def list_my_applications(user_context):
    applications = current_app.application_service.get_user_applications(
        user_context, request.args.get('status') or None
    )
    return jsonify({'items': serialize(applications), 'count': len(applications)})


@applications_bp.get('')
@require_roles(STAFF_ROLES)
def list_applications(user_context):
    """
    List applications for staff review.

    Filters: ``status``, ``serviceId``, ``priority``; ``search`` matches the
    reference, service name and applicant details.
    """
    filters = _filters_from_args()
    term = request.args.get('search')

    service = current_app.application_service
    if term:
        applications = service.search_applications(user_context, term, filters)
    else:
        applications = service.get_all_applications(user_context, filters)
    return jsonify({'items': serialize(applications), 'count': len(applications)})


@applications_bp.get('/statistics')
@require_roles(STAFF_ROLES)
def application_statistics(user_context):
    statistics = current_app.application_service.get_application_statistics(user_context, _filters_from_args())
    return jsonify(serialize(statistics))


@applications_bp.post('/bulk-status')
@require_roles(STAFF_ROLES)
def bulk_update_status(user_context):
    """Change the status of several applications; failures are reported per item."""
    update = parse_model(BulkStatusUpdateRequest, json_body())
    result = current_app.application_service.bulk_update_status(
        user_context, update.application_ids, update.status, update.comments or ""
    )
    return jsonify(result.to_dict())


@applications_bp.get('/<id>')
@require_jwt
def get_application(user_context, path: IdPath):
    return jsonify(serialize(current_app.application_service.get_application(user_context, path.id)))


@applications_bp.post('/<id>/status')
@require_roles(STAFF_ROLES)
def update_status(user_context, path: IdPath):
    update = parse_model(StatusUpdateRequest, json_body())
    application = current_app.application_service.update_application_status(
        user_context, path.id, update.status, update.comments
    )
    return jsonify(serialize(application))


@applications_bp.post('/<id>/cancel')
@require_jwt
def cancel_application(user_context, path: IdPath):
    """Cancel one of the caller's pending applications."""
    cancel = parse_model(CancelApplicationRequest, request.get_json(silent=True) or {})
    application = current_app.application_service.cancel_application(user_context, path.id, cancel.reason or "")
    return jsonify(serialize(application))
