"""Request pipeline middleware.

Middleware chain (outermost first):
    Request -> [RequiredHeaders] -> [FaultBoundary] -> Route Handler

Header validation runs outermost so header values are bound into the log
context before the fault boundary logs anything.
"""

from fastapi import FastAPI

from service_faults.core.config import Settings
from service_faults.middleware.fault_boundary import (
    FaultBoundary,
    FaultBoundaryMiddleware,
    install_fault_boundary,
    status_code_for,
)
from service_faults.middleware.required_headers import (
    RequiredHeadersMiddleware,
    install_required_headers,
)

__all__ = [
    "FaultBoundary",
    "FaultBoundaryMiddleware",
    "RequiredHeadersMiddleware",
    "install_fault_boundary",
    "install_middleware",
    "install_required_headers",
    "status_code_for",
]


def install_middleware(app: FastAPI, settings: Settings) -> FaultBoundary:
    """Install the fault boundary and header validation in chain order.

    Starlette runs the last added middleware first, so the boundary is added
    before header validation.
    """
    boundary = install_fault_boundary(app, settings)
    install_required_headers(app, settings)
    return boundary
