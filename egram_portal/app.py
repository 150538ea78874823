# SPDX-License-Identifier: Apache-2.0

"""
E-Gram Panchayat portal - Flask application factory.

Builds the OpenAPI-enabled Flask app, wires the storage adapter, identity
provider, event logger and portal services through constructor injection,
and registers middleware, routes and CLI commands.
"""

import atexit
import logging
import time
from typing import Optional

import click
from flask import g, jsonify, request
from flask_openapi3 import Info, OpenAPI, Tag

from .config import PortalConfig
from .middleware.auth import AuthMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .models.base import isoformat_utc, utcnow
from .models.entities import UserContext
from .models.enums import UserRole
from .observability import add_observability_middleware, setup_observability
from .routes import applications_bp, auth_bp, logs_bp, notifications_bp, services_bp, users_bp
from .services.applications import ApplicationService
from .services.auth import AuthService
from .services.catalog import ServiceCatalog
from .services.document_store import DocumentStore
from .services.event_logger import EventLogger
from .services.identity import IdentityProvider, LocalIdentityProvider
from .services.log_query import LogQueryService
from .services.mongodb import MongoDocumentStore
from .services.notifications import NotificationService

logger = logging.getLogger(__name__)

SERVICE_NAME = "egram-portal"
SERVICE_VERSION = "1.0.0"

info = Info(
    title="E-Gram Panchayat Portal API",
    version=SERVICE_VERSION,
    description="Citizen services portal: service catalog, applications and status tracking"
)

tags = [
    Tag(name="Health", description="System health and status")
]

# Requests not mirrored into the event log
UNLOGGED_PATHS = ('/api/healthz',)


def create_app(
    config: Optional[PortalConfig] = None,
    store: Optional[DocumentStore] = None,
    identity: Optional[IdentityProvider] = None,
    event_logger: Optional[EventLogger] = None
) -> OpenAPI:
    """
    Create the Flask application.

    Collaborators that are not passed in are built from ``config``: a
    MongoDB store, a local identity provider and an event logger that is
    started here and shut down at interpreter exit.
    """
    config = config or PortalConfig.from_env()
    setup_observability(config.environment, config.otel_enabled)

    app = OpenAPI(__name__, info=info)
    app.config['ENVIRONMENT'] = config.environment
    app.config['DEBUG'] = config.environment == 'development'
    app.config['BASE_URL'] = config.base_url

    add_observability_middleware(app)

    owns_store = store is None
    if store is None:
        store = MongoDocumentStore(config.mongodb_uri, config.mongodb_database)

    if identity is None:
        identity = LocalIdentityProvider(store, config.jwt_private_key, config.jwt_public_key)

    owns_logger = event_logger is None
    if event_logger is None:
        event_logger = EventLogger(store, config.logger)
        event_logger.start()

    # atexit runs last-registered first: the logger flushes before the store closes
    if owns_store:
        atexit.register(store.close)
    if owns_logger:
        atexit.register(event_logger.shutdown)

    notification_service = NotificationService(store, event_logger)
    auth_service = AuthService(store, identity, event_logger)

    app.config_object = config
    app.store = store
    app.identity = identity
    app.event_logger = event_logger
    app.auth_service = auth_service
    app.notification_service = notification_service
    app.service_catalog = ServiceCatalog(store, event_logger)
    app.application_service = ApplicationService(store, event_logger, notification_service)
    app.log_query_service = LogQueryService(store, event_logger, config.logger.collection)
    app.auth_middleware = AuthMiddleware(auth_service)

    ErrorHandlerMiddleware(app, config.base_url, config.is_production)

    app.register_api(auth_bp)
    app.register_api(users_bp)
    app.register_api(services_bp)
    app.register_api(applications_bp)
    app.register_api(notifications_bp)
    app.register_api(logs_bp)

    @app.after_request
    def record_http_request(response):
        if request.path.startswith('/api/') and request.path not in UNLOGGED_PATHS:
            duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)
            user_context = g.get('user_context')
            app.event_logger.http_request(
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                {'userId': user_context.user_id if user_context else None}
            )
        return response

    @app.get('/api/healthz', tags=tags)
    def health_check():
        """Report service and storage health."""
        storage = app.store.health_check()
        healthy = storage.get('status') == 'healthy'
        body = {
            'status': 'healthy' if healthy else 'unhealthy',
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
            'environment': config.environment,
            'timestamp': isoformat_utc(utcnow()),
            'dependencies': {'storage': storage},
            'eventLog': {
                'persistence': app.event_logger.persistence_enabled,
                'pendingEntries': app.event_logger.buffer.pending
            }
        }
        return jsonify(body), 200 if healthy else 503

    register_cli_commands(app)

    logger.info(
        "Application created",
        extra={"environment": config.environment, "base_url": config.base_url}
    )
    return app


def register_cli_commands(app: OpenAPI) -> None:
    """Register ``flask`` CLI commands for operating the portal."""

    @app.cli.command("init-db")
    def init_db():
        """Create storage indexes."""
        app.store.create_indexes()
        click.echo("Indexes created")

    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--name", required=True)
    @click.password_option()
    def create_admin(email, name, password):
        """Create an admin account."""
        system = UserContext(user_id="system", name="System", role=UserRole.ADMIN)
        user_context, _ = app.auth_service.register(
            {'email': email, 'password': password, 'name': name, 'role': UserRole.ADMIN.value},
            created_by=system
        )
        click.echo(f"Admin created: {user_context.user_id}")

    @app.cli.command("purge-logs")
    @click.option("--days", default=30, show_default=True, type=int)
    def purge_logs(days):
        """Delete event log entries older than the given number of days."""
        deleted = app.log_query_service.retention_sweep(days)
        click.echo(f"Deleted {deleted} log entries")


def main():
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=app.config['DEBUG'])


if __name__ == '__main__':
    main()
