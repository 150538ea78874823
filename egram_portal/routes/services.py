# SPDX-License-Identifier: Apache-2.0

"""
Government service catalog endpoints.

Browsing is open to everyone; creating, changing and importing services is
limited to admins.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.authorization import ADMIN_ROLES
from ..errors import ValidationException
from .common import IdPath, json_body, require_roles, serialize

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

services_tag = Tag(name="Services", description="Government service catalog")
services_bp = APIBlueprint('services', __name__, url_prefix='/api/services', abp_tags=[services_tag])


@services_bp.get('')
def list_services():
    """
    List active services, newest first.

    ``category`` narrows the list; ``search`` matches name or description.
    """
    category = request.args.get('category') or None
    term = request.args.get('search')

    catalog = current_app.service_catalog
    services = catalog.search_services(term, category) if term else catalog.get_services(category)
    return jsonify({'items': serialize(services), 'count': len(services)})


@services_bp.post('')
@require_roles(ADMIN_ROLES)
def create_service(user_context):
    service_id = current_app.service_catalog.create_service(user_context, json_body())
    return jsonify(serialize(current_app.service_catalog.get_service(service_id))), 201


@services_bp.get('/categories')
def list_categories():
    return jsonify({'items': current_app.service_catalog.get_service_categories()})


@services_bp.get('/statistics')
@require_roles(ADMIN_ROLES)
def service_statistics(user_context):
    return jsonify(serialize(current_app.service_catalog.get_service_statistics(user_context)))


@services_bp.post('/import')
@require_roles(ADMIN_ROLES)
def import_services(user_context):
    """Create several services at once; an invalid item rejects the whole import."""
    items = json_body().get('services')
    if not isinstance(items, list) or not items:
        raise ValidationException(
            "services must be a non-empty list",
            [{"field": "services", "message": "Expected a non-empty list"}]
        )

    service_ids = current_app.service_catalog.bulk_import_services(user_context, items)
    return jsonify({'ids': service_ids, 'count': len(service_ids)}), 201


@services_bp.get('/<id>')
def get_service(path: IdPath):
    return jsonify(serialize(current_app.service_catalog.get_service(path.id)))


@services_bp.patch('/<id>')
@require_roles(ADMIN_ROLES)
def update_service(user_context, path: IdPath):
    service = current_app.service_catalog.update_service(user_context, path.id, json_body())
    return jsonify(serialize(service))


@services_bp.delete('/<id>')
@require_roles(ADMIN_ROLES)
def delete_service(user_context, path: IdPath):
    """Soft delete: the service stays stored but is no longer listed."""
    current_app.service_catalog.delete_service(user_context, path.id)
    return jsonify({'success': True})
