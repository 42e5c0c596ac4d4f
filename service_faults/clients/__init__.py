"""HTTP clients for services that answer with ServiceError bodies."""

from service_faults.clients.service_errors import (
    ServiceErrorClient,
    ServiceErrorClientProtocol,
    parse_service_error,
    raise_for_service_error,
    remote_fault,
)

__all__ = [
    "ServiceErrorClient",
    "ServiceErrorClientProtocol",
    "parse_service_error",
    "raise_for_service_error",
    "remote_fault",
]
