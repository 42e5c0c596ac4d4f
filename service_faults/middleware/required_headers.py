"""
Required correlation headers middleware.

Rejects requests lacking any configured correlation header with the
header's reserved protocol-violation code (432-435) as both body code and
HTTP status, and binds the header values into the structlog context for
the rest of the request.

Exempt path prefixes (API docs by default) are passed in at construction
time from Settings.
"""

from __future__ import annotations

from collections.abc import Iterable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from service_faults.core.config import Settings
from service_faults.core.exceptions import ConfigurationError
from service_faults.core.headers import (
    get_channel_id,
    get_session_id,
    get_transaction_id,
    get_user_info_username,
    is_header_valid,
)
from service_faults.core.logging import bind_request_context, clear_request_context, get_logger
from service_faults.errors.models import HEADER_ERROR_CODES, ServiceException
from service_faults.middleware.fault_boundary import error_response

logger = get_logger(__name__)


class RequiredHeadersMiddleware(BaseHTTPMiddleware):
    """Validates that the correlation headers are on every request."""

    def __init__(
        self,
        app: ASGIApp,
        required_headers: Iterable[str] = (),
        exempt_paths: Iterable[str] = (),
    ) -> None:
        """Initialize the middleware.

        Args:
            app: Downstream ASGI application
            required_headers: Header names that must be present
            exempt_paths: Path prefixes that skip validation

        Raises:
            ConfigurationError: If a required header has no reserved code
        """
        super().__init__(app)
        self.required_headers = tuple(name.lower() for name in required_headers)
        self.exempt_paths = tuple(exempt_paths)

        unknown = [name for name in self.required_headers if name not in HEADER_ERROR_CODES]
        if unknown:
            raise ConfigurationError(
                "required_headers",
                f"no reserved error code for {', '.join(unknown)}",
            )

    def is_exempt(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.exempt_paths)

    def missing_header(self, request: Request) -> str | None:
        """First required header absent from the request, if any."""
        if self.is_exempt(request.url.path):
            return None
        return next(
            (name for name in self.required_headers if not is_header_valid(request.headers, name)),
            None,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        headers = request.headers
        bind_request_context(
            session_id=get_session_id(headers),
            transaction_id=get_transaction_id(headers),
            channel_id=get_channel_id(headers),
            username=get_user_info_username(headers),
        )
        try:
            header_name = self.missing_header(request)
            if header_name is not None:
                fault = ServiceException.missing_header(header_name, get_transaction_id(headers))
                logger.warning(
                    "required_header_missing",
                    header=header_name,
                    path=request.url.path,
                    code=int(fault.code),
                )
                return error_response(fault.error)
            return await call_next(request)
        finally:
            clear_request_context()


def install_required_headers(app: FastAPI, settings: Settings) -> None:
    """Wire header validation into an application (no-op when disabled)."""
    if not settings.header_validation_enabled:
        return
    app.add_middleware(
        RequiredHeadersMiddleware,
        required_headers=settings.required_headers,
        exempt_paths=settings.header_exempt_paths,
    )
