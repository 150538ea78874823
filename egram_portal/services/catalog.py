# SPDX-License-Identifier: Apache-2.0

"""
Government service catalog management.
"""

import logging
from typing import Any, Dict, List, Optional
from opentelemetry import trace

from ..domain import catalog
from ..domain.authorization import ADMIN_ROLES, require_role
from ..domain.validation import (
    parse_documents,
    validate_service_data,
    validate_model,
    validate_service_update
)
from ..errors import NotFoundException, StorageOperationException
from ..models.entities import Service, UserContext
from .document_store import DocumentStore, Predicate, SERVER_TIMESTAMP
from .event_logger import EventLogger

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SERVICES_COLLECTION = "services"
APPLICATIONS_COLLECTION = "applications"

# Fields an admin may change through update_service
UPDATABLE_FIELDS = (
    'name', 'description', 'category', 'requiredDocuments',
    'eligibilityCriteria', 'processingTime', 'fees'
)


def build_service_document(data: Dict[str, Any], created_by: Optional[str]) -> Dict[str, Any]:
    """New service document with defaults applied."""
    service = validate_model(Service, {
        'name': str(data['name']),
        'description': data['description'],
        'category': data['category'],
        'required_documents': parse_documents(data.get('requiredDocuments')),
        'eligibility_criteria': data.get('eligibilityCriteria') or [],
        'processing_time': data.get('processingTime') or catalog.DEFAULT_PROCESSING_TIME,
        'fees': data.get('fees') or 0,
        'created_by': created_by
    }, "Invalid service data")

    document = service.to_document()
    document.pop('id')
    document.update({'createdAt': SERVER_TIMESTAMP, 'updatedAt': SERVER_TIMESTAMP})
    return document


class ServiceCatalog:
    """CRUD, search and statistics for the service catalog."""

    def __init__(self, store: DocumentStore, event_logger: EventLogger):
        self.store = store
        self.event_logger = event_logger

    def _fail(self, span, message: str, error: Exception, **data) -> None:
        span.record_exception(error)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        logger.error(message, extra={"error": str(error), **data}, exc_info=True)
        self.event_logger.error(message, {**data, 'error': str(error)})

    def create_service(self, user_context: UserContext, data: Dict[str, Any]) -> str:
        """
        Create a service (admin only).

        Args:
            user_context: Caller identity
            data: Service fields

        Returns:
            ID of the new service
        """
        require_role(user_context, ADMIN_ROLES)
        validate_service_data(data)

        with tracer.start_as_current_span("catalog.create_service") as span:
            span.set_attribute("service.category", data['category'])
            try:
                service_id = self.store.add(SERVICES_COLLECTION, build_service_document(data, user_context.user_id))
            except StorageOperationException as e:
                self._fail(span, 'Failed to create service', e)
                raise

            self.event_logger.info('Service created successfully', {
                'serviceId': service_id,
                'serviceName': data['name']
            })
            return service_id

    def get_services(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active services, newest first, optionally of one category."""
        predicates = [Predicate('isActive', '==', True)]
        if category:
            predicates.append(Predicate('category', '==', category))

        with tracer.start_as_current_span("catalog.get_services") as span:
            try:
                services = self.store.query(SERVICES_COLLECTION, predicates, order_by='createdAt', descending=True)
            except StorageOperationException as e:
                self._fail(span, 'Failed to retrieve services', e)
                raise

            span.set_attribute("catalog.result_count", len(services))
            return services

    def get_service(self, service_id: str) -> Dict[str, Any]:
        """
        Fetch a service by ID, including soft-deleted ones.

        Raises:
            NotFoundException: If the service does not exist
        """
        with tracer.start_as_current_span("catalog.get_service"):
            service = self.store.get(SERVICES_COLLECTION, service_id)
            if service is None:
                raise NotFoundException("Service not found")
            return service

    def update_service(self, user_context: UserContext, service_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Update a service's catalog fields (admin only)."""
        require_role(user_context, ADMIN_ROLES)
        updates = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}
        validate_service_update(updates)

        if 'requiredDocuments' in updates:
            updates['requiredDocuments'] = parse_documents(updates['requiredDocuments'])

        with tracer.start_as_current_span("catalog.update_service") as span:
            span.set_attribute("service.id", service_id)
            self.get_service(service_id)
            try:
                self.store.update(SERVICES_COLLECTION, service_id, {
                    **updates,
                    'updatedAt': SERVER_TIMESTAMP,
                    'updatedBy': user_context.user_id
                })
            except StorageOperationException as e:
                self._fail(span, 'Failed to update service', e, serviceId=service_id)
                raise

            self.event_logger.info('Service updated successfully', {'serviceId': service_id})
            return self.get_service(service_id)

    def delete_service(self, user_context: UserContext, service_id: str) -> None:
        """Soft delete: the service is marked inactive, never removed."""
        require_role(user_context, ADMIN_ROLES)

        with tracer.start_as_current_span("catalog.delete_service") as span:
            span.set_attribute("service.id", service_id)
            self.get_service(service_id)
            try:
                self.store.update(SERVICES_COLLECTION, service_id, {
                    'isActive': False,
                    'deletedAt': SERVER_TIMESTAMP,
                    'deletedBy': user_context.user_id
                })
            except StorageOperationException as e:
                self._fail(span, 'Failed to delete service', e, serviceId=service_id)
                raise

            self.event_logger.info('Service deleted successfully', {'serviceId': service_id})

    def search_services(self, term: Optional[str], category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active services whose name or description contains the term."""
        results = catalog.search_services(self.get_services(category), term)
        if term:
            self.event_logger.info('Services searched', {
                'searchTerm': term,
                'category': category,
                'resultsCount': len(results)
            })
        return results

    def get_service_categories(self) -> List[Dict[str, Any]]:
        """Categories of active services with counts and display names."""
        return catalog.summarize_categories(self.get_services())

    def get_service_statistics(self, user_context: UserContext) -> Dict[str, Any]:
        """Catalog and popularity statistics (admin only)."""
        require_role(user_context, ADMIN_ROLES)

        with tracer.start_as_current_span("catalog.get_service_statistics"):
            services = self.get_services()
            applications = self.store.query(APPLICATIONS_COLLECTION)
            return catalog.compute_service_statistics(services, applications)

    def bulk_import_services(self, user_context: UserContext, items: List[Dict[str, Any]]) -> List[str]:
        """
        Create several services in one atomic batch (admin only).

        Every item is validated before anything is written, so one invalid
        item rejects the whole import.

        Returns:
            IDs of the created services, in input order
        """
        require_role(user_context, ADMIN_ROLES)
        for item in items:
            validate_service_data(item)

        with tracer.start_as_current_span("catalog.bulk_import_services") as span:
            span.set_attribute("catalog.import_count", len(items))
            batch = self.store.batch()
            service_ids = []
            for item in items:
                service_id = self.store.new_id()
                batch.set(SERVICES_COLLECTION, service_id, build_service_document(item, user_context.user_id))
                service_ids.append(service_id)

            try:
                batch.commit()
            except StorageOperationException as e:
                self._fail(span, 'Failed to bulk import services', e)
                raise

            self.event_logger.info('Services bulk imported', {'count': len(service_ids)})
            return service_ids
