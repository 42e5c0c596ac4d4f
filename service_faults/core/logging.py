"""
service-faults - Structured Logging Module

JSON logs carrying the correlation headers of the current request.

Patterns Applied:
- One-time configure_logging() at startup
- structlog BoundLogger with JSON output
- structlog contextvars so values bound by the header middleware
  (session_id, transaction_id, channel_id, username) land on every entry

Anti-Patterns Avoided:
- structlog.configure() called per get_logger() - PREVENTED via _configured flag
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor

# Module-level flag for one-time configuration
_configured: bool = False

DEFAULT_SERVICE_NAME = "service-faults"


def service_info_processor(service_name: str) -> Processor:
    """Build a processor that stamps the service name on every log entry.

    Args:
        service_name: Value for the ``service`` key (cloud role name)

    Returns:
        structlog processor
    """

    def add_service_info(
        logger: logging.Logger,  # noqa: ARG001 - Required by structlog interface
        method_name: str,  # noqa: ARG001 - Required by structlog interface
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_info


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Configure structlog for fault and request logging.

    Called once by create_app(); embedding services call it at startup.
    Later calls are ignored until reset_logging() is called.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to use JSON renderer (True for production)
        service_name: Service name stamped on every entry
    """
    global _configured

    if _configured:
        return

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Route stdlib logging (uvicorn, httpx) to stdout at the same level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # JSON for log shippers, console for local development
    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            service_info_processor(service_name),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        structlog BoundLogger instance
    """
    return structlog.get_logger(name)


def bind_request_context(**values: str | None) -> None:
    """Bind request-scoped values into every subsequent log entry.

    None values are skipped so absent headers do not show up as nulls.
    """
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    )


def clear_request_context() -> None:
    """Drop all request-scoped log context."""
    structlog.contextvars.clear_contextvars()


def reset_logging() -> None:
    """Reset logging configuration for testing."""
    global _configured
    _configured = False
    structlog.reset_defaults()
