"""
service-faults - OpenTelemetry Tracing Module

Patterns Applied:
- One-time configure_tracing() at startup
- Service name / version as resource attributes (cloud role name)
- Faults recorded on the active span by the fault boundary

Reference:
- Minimal manual instrumentation; auto-instrumentation is left to the host
"""

from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from service_faults.errors.models import ServiceException

# Module-level flag for one-time configuration
_configured: bool = False

# Service resource info
SERVICE_NAME = "service-faults"

# Span attribute keys
ATTR_FAULT_CODE = "service_fault.code"
ATTR_FAULT_CODE_NAME = "service_fault.code_name"
ATTR_CORRELATION_ID = "service_fault.correlation_id"


def configure_tracing(
    service_name: str = SERVICE_NAME,
    service_version: str = "0.1.0",
    console_export: bool = False,
) -> None:
    """Install the OpenTelemetry tracer provider for this service.

    Called once from the application lifespan when tracing is enabled.

    Args:
        service_name: Name of the service for trace attribution
        service_version: Version of the service for trace attribution
        console_export: Whether to export spans to console (for development)
    """
    global _configured

    if _configured:
        return

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": service_version,
        }
    )

    provider = TracerProvider(resource=resource)

    if console_export:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    _configured = True


def get_tracer(name: str) -> Any:
    """Tracer for spans around fault-prone work.

    Args:
        name: Tracer name (typically module name)

    Returns:
        OpenTelemetry Tracer instance
    """
    return trace.get_tracer(name)


def record_fault(fault: "ServiceException") -> bool:
    """Mark the active span as failed with the classified fault.

    The original cause (when present) is recorded as the span exception so
    its traceback reaches the exporter; the ServiceError code is attached as
    attributes.

    Args:
        fault: Classified fault to record

    Returns:
        True if a recording span was updated, False otherwise
    """
    span = trace.get_current_span()
    if not span.is_recording():
        return False

    error = fault.error
    attributes: dict[str, Any] = {
        ATTR_FAULT_CODE: int(error.code),
        ATTR_FAULT_CODE_NAME: error.code_name,
    }
    if error.correlation_id:
        attributes[ATTR_CORRELATION_ID] = error.correlation_id

    span.set_attributes(attributes)
    span.record_exception(fault.cause if fault.cause is not None else fault)
    span.set_status(Status(StatusCode.ERROR, error.code_name))
    return True


def reset_tracing() -> None:
    """Reset tracing configuration for testing."""
    global _configured
    _configured = False
