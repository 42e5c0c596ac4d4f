"""
Fault boundary for FastAPI / Starlette applications.

Catches every unhandled exception of a request and answers with the
ServiceError wire body:

1. classify the fault, correlated with the transaction-id header
2. log the full fault, cause and traceback included
3. record it on the active OpenTelemetry span
4. strip details in production
5. write the JSON body and echo the transaction-id header

Status-code contract:
- protocol violations (432-435) and BadRequest (400): the code itself
- Timeout: 504, NotImplemented: 501
- every other classified fault: 500

Patterns Applied:
- BaseHTTPMiddleware around call_next so faults from any route are caught
- FastAPI exception handlers for ServiceException and request validation
  (the latter is raised before the route runs and is otherwise
  answered by FastAPI's default 422 handler)
- Classifier injected via constructor (FaultClassifierProtocol)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from service_faults.core.config import Settings
from service_faults.core.headers import TRANSACTION_ID_HEADER, get_transaction_id
from service_faults.core.logging import get_logger
from service_faults.core.tracing import record_fault
from service_faults.errors.classifier import (
    DEFAULT_RULES,
    FaultClassifier,
    FaultClassifierProtocol,
    FaultRule,
)
from service_faults.errors.codes import ErrorCode
from service_faults.errors.models import ServiceError, ServiceException

logger = get_logger(__name__)

# =============================================================================
# Status Codes
# =============================================================================

STATUS_INTERNAL_ERROR: Final[int] = 500

_STATUS_OVERRIDES: Final[dict[ErrorCode, int]] = {
    ErrorCode.TIMEOUT: 504,
    ErrorCode.NOT_IMPLEMENTED: 501,
}


def status_code_for(code: ErrorCode) -> int:
    """HTTP status for a ServiceError code."""
    if code.is_protocol_violation or code is ErrorCode.BAD_REQUEST:
        return int(code)
    return _STATUS_OVERRIDES.get(code, STATUS_INTERNAL_ERROR)


def error_response(error: ServiceError) -> JSONResponse:
    """JSON response carrying a ServiceError.

    The transaction-id header is echoed when the error is correlated.
    """
    headers = {TRANSACTION_ID_HEADER: error.correlation_id} if error.correlation_id else None
    return JSONResponse(
        content=error.to_dict(),
        status_code=status_code_for(error.code),
        headers=headers,
    )


# =============================================================================
# Request Validation Rule
# =============================================================================


def _request_validation(fault: Any) -> Mapping[str, Any]:
    errors = fault.errors()
    return {
        "ResultMemberNames": ", ".join(
            ".".join(str(part) for part in error.get("loc", ())) for error in errors
        ),
        "Errors": "; ".join(str(error.get("msg", "")) for error in errors),
    }


REQUEST_VALIDATION_RULE: Final[FaultRule] = FaultRule(
    "request-validation",
    (RequestValidationError,),
    ErrorCode.BAD_REQUEST,
    ("ResultMemberNames", "Errors"),
    _request_validation,
)


# =============================================================================
# Fault Boundary
# =============================================================================


class FaultBoundary:
    """Turns unhandled request faults into ServiceError responses."""

    def __init__(
        self,
        production: bool = False,
        classifier: FaultClassifierProtocol | None = None,
    ) -> None:
        """Initialize the boundary.

        Args:
            production: Strip details from responses
            classifier: Classifier to use; defaults to the standard rules
                plus request validation
        """
        self.production = production
        self._classifier = classifier or FaultClassifier(
            rules=(REQUEST_VALIDATION_RULE, *DEFAULT_RULES)
        )

    def handle(self, request: Request, exc: BaseException) -> JSONResponse:
        """Classify, log, trace and render a fault raised by a request."""
        correlation_id = get_transaction_id(request.headers)
        fault = self._classifier.classify(exc, correlation_id)

        logger.error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            code=int(fault.code),
            code_name=fault.code_name,
            correlation_id=fault.correlation_id or correlation_id,
            exc_info=fault,
        )
        record_fault(fault)

        return error_response(self.public_error(fault, correlation_id))

    def public_error(
        self,
        fault: ServiceException,
        correlation_id: str | None = None,
    ) -> ServiceError:
        """The ServiceError as the caller may see it.

        Details are removed in production; an uncorrelated error raised by
        application code picks up the request's correlation id.
        """
        error = fault.error
        if error.correlation_id is None and correlation_id:
            error = error.model_copy(update={"correlation_id": correlation_id})
        if self.production:
            error = error.without_details()
        return error


class FaultBoundaryMiddleware(BaseHTTPMiddleware):
    """Middleware catching every exception a route lets escape."""

    def __init__(self, app: ASGIApp, boundary: FaultBoundary | None = None) -> None:
        super().__init__(app)
        self.boundary = boundary or FaultBoundary()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self.boundary.handle(request, exc)


def install_fault_boundary(app: FastAPI, settings: Settings) -> FaultBoundary:
    """Wire the fault boundary into an application.

    Args:
        app: FastAPI application
        settings: Settings (environment decides detail stripping)

    Returns:
        The installed FaultBoundary
    """
    boundary = FaultBoundary(production=settings.is_production)

    async def handle_fault(request: Request, exc: Exception) -> Response:
        return boundary.handle(request, exc)

    app.add_exception_handler(ServiceException, handle_fault)
    app.add_exception_handler(RequestValidationError, handle_fault)
    app.add_middleware(FaultBoundaryMiddleware, boundary=boundary)
    return boundary
