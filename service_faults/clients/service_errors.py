"""
ServiceError-aware HTTP client helpers.

Reads the error body another service wrote through its fault boundary and
turns it back into a ServiceException, or into the native fault it
describes for round-trip-safe codes.

Patterns Applied:
- Connection pooling (one httpx.AsyncClient per client instance)
- Protocol for duck typing so callers can swap in a fake client
- Correlation headers sent on every request (transaction-id generated
  when the caller has none)
"""

import uuid
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from service_faults.core.headers import (
    CHANNEL_ID_HEADER,
    SESSION_ID_HEADER,
    TRANSACTION_ID_HEADER,
)
from service_faults.core.logging import get_logger
from service_faults.errors.codes import ErrorCode
from service_faults.errors.models import ServiceError, ServiceException
from service_faults.errors.reconstructor import Reconstruction, reconstruct

logger = get_logger(__name__)

# =============================================================================
# Response Parsing
# =============================================================================


def parse_service_error(response: httpx.Response) -> ServiceError | None:
    """Parse a ServiceError from an error response body.

    Args:
        response: Response from a service using the fault boundary

    Returns:
        The ServiceError, or None for successful responses and bodies that
        are not ServiceErrors
    """
    if response.is_success:
        return None
    try:
        return ServiceError.from_json(response.content)
    except ValidationError:
        logger.debug(
            "response_not_service_error",
            status_code=response.status_code,
        )
        return None


def _fallback_error(response: httpx.Response) -> ServiceError:
    code = ErrorCode.BAD_REQUEST if response.status_code == 400 else ErrorCode.NONE
    return ServiceError(
        code=code,
        message=response.text or response.reason_phrase or None,
        details={"StatusCode": str(response.status_code)},
        correlation_id=response.headers.get(TRANSACTION_ID_HEADER),
    )


def raise_for_service_error(response: httpx.Response) -> None:
    """Raise a ServiceException for an error response.

    Bodies that are not ServiceErrors still raise: 400 becomes BadRequest,
    every other status becomes None, with the status in ``StatusCode``.

    Raises:
        ServiceException: If the response is not successful
    """
    if response.is_success:
        return
    error = parse_service_error(response) or _fallback_error(response)
    raise ServiceException(error)


def remote_fault(response: httpx.Response) -> Reconstruction | None:
    """Native fault described by an error response, if it carries one.

    Args:
        response: Response from a service using the fault boundary

    Returns:
        Reconstruction of the remote fault, or None when the response is
        successful or its body is not a ServiceError
    """
    error = parse_service_error(response)
    if error is None:
        return None
    return reconstruct(ServiceException(error))


# =============================================================================
# Protocol for Duck Typing
# =============================================================================


class ServiceErrorClientProtocol(Protocol):
    """Protocol for ServiceErrorClient duck typing."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        transaction_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request; raise ServiceException on an error response."""
        ...


# =============================================================================
# ServiceErrorClient Implementation
# =============================================================================


class ServiceErrorClient:
    """HTTP client for services answering with ServiceError bodies.

    Attributes:
        base_url: Base URL of the remote service
        channel_id: Value for the channel-id header
        session_id: Value for the session-id header, if any
    """

    def __init__(
        self,
        base_url: str,
        channel_id: str,
        session_id: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the remote service
            channel_id: Channel id sent on every request
            session_id: Session id sent on every request
            timeout: Request timeout in seconds
            transport: Custom transport (httpx.MockTransport in tests)
        """
        self.base_url = base_url
        self.channel_id = channel_id
        self.session_id = session_id

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def correlation_headers(self, transaction_id: str | None = None) -> dict[str, str]:
        """Correlation headers for one request.

        A transaction id is generated when none is given.
        """
        headers = {
            TRANSACTION_ID_HEADER: transaction_id or uuid.uuid4().hex,
            CHANNEL_ID_HEADER: self.channel_id,
        }
        if self.session_id:
            headers[SESSION_ID_HEADER] = self.session_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        transaction_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with correlation headers.

        Args:
            method: HTTP method
            path: Path relative to base_url
            transaction_id: Transaction id to send (generated if None)
            **kwargs: Passed to httpx.AsyncClient.request

        Returns:
            The successful response

        Raises:
            ServiceException: If the service answered with an error
        """
        headers = {**self.correlation_headers(transaction_id), **kwargs.pop("headers", {})}
        response = await self._client.request(method, path, headers=headers, **kwargs)
        if not response.is_success:
            logger.warning(
                "remote_service_error",
                method=method,
                path=path,
                status_code=response.status_code,
                transaction_id=headers[TRANSACTION_ID_HEADER],
            )
        raise_for_service_error(response)
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "ServiceErrorClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
