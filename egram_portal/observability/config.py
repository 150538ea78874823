# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry Configuration

Sets up distributed tracing and structured logging for the E-Gram Panchayat
portal. Sampling and exporters depend on the deployment environment.
"""

import os
import logging
from typing import Optional
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)

SERVICE_NAME = 'egram-portal'

SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5
}


def sampling_ratio(environment: str) -> float:
    """Fraction of traces kept: 10% in production, 50% in staging, all otherwise."""
    return SAMPLING_RATIOS.get(environment, 1.0)


def setup_observability(environment: Optional[str] = None, otel_enabled: Optional[bool] = None) -> Optional[TracerProvider]:
    """
    Initialize OpenTelemetry instrumentation based on environment configuration.

    Returns:
        The installed TracerProvider, or None when tracing is disabled
    """
    environment = environment or os.getenv('ENVIRONMENT', 'development')
    if otel_enabled is None:
        otel_enabled = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

    setup_structured_logging(environment)

    if not otel_enabled:
        logger.info("OpenTelemetry tracing disabled")
        return None

    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": os.getenv('SERVICE_VERSION', '1.0.0'),
        "deployment.environment": environment
    })

    tracer_provider = TracerProvider(
        sampler=TraceIdRatioBased(sampling_ratio(environment)),
        resource=resource
    )

    if environment in ('production', 'staging'):
        otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
        if otlp_endpoint:
            headers = None
            if os.getenv('OTEL_API_KEY'):
                headers = {"authorization": f"Bearer {os.getenv('OTEL_API_KEY')}"}
            tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers), max_export_batch_size=512)
            )
        else:
            logger.warning("OTEL_EXPORTER_OTLP_ENDPOINT not set, spans will not be exported")
    else:
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)
    logger.info("OpenTelemetry tracing configured", extra={"environment": environment})
    return tracer_provider


def setup_structured_logging(environment: str):
    """Configure root logging levels per environment."""
    log_level = {
        'production': logging.WARNING,
        'staging': logging.INFO,
        'development': logging.DEBUG
    }.get(environment, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
        handlers=[logging.StreamHandler()]
    )

    if environment == 'production':
        logging.getLogger('pymongo').setLevel(logging.WARNING)
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
    elif environment == 'development':
        logging.getLogger('egram_portal').setLevel(logging.DEBUG)
        logging.getLogger('pymongo').setLevel(logging.INFO)
