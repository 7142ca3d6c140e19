"""OpenTelemetry tracing configuration.

Sagas open a ``provisioning.saga`` span per run; this module only installs the
provider those spans are exported through.
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from provisioning.config import ObservabilitySettings


def build_tracer_provider(settings: ObservabilitySettings, environment: str = "") -> TracerProvider:
    """Provider with the service resource and a parent-based ratio sampler."""
    attributes = {
        ResourceAttributes.SERVICE_NAME: settings.service_name,
        ResourceAttributes.SERVICE_VERSION: "1.0.0",
    }
    if environment:
        attributes[ResourceAttributes.DEPLOYMENT_ENVIRONMENT] = environment

    provider = TracerProvider(
        resource=Resource.create(attributes),
        sampler=ParentBased(TraceIdRatioBased(settings.trace_sample_ratio)),
    )
    if settings.console_spans:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    if settings.otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )
    return provider


def setup_tracing(settings: ObservabilitySettings, environment: str = "") -> bool:
    """Install the global provider. Returns False when tracing is disabled."""
    if not settings.tracing_enabled:
        return False
    trace.set_tracer_provider(build_tracer_provider(settings, environment))
    return True
