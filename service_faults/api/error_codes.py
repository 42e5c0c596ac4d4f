"""
service-faults - Error Code Catalogue Routes

GET /v1/error-codes                 every tag of the taxonomy
GET /v1/error-codes/{code_name}     one tag, by wire name or number

Lets clients discover what each ``code`` / ``codeName`` in a ServiceError
body means.

Patterns Applied:
- Pydantic response models with camelCase aliases matching the wire body
- Service class + module-level provider, as for the health routes
- HTTPException(404) for unknown tags
"""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from service_faults.core.logging import get_logger
from service_faults.errors.codes import ErrorCode

router = APIRouter(prefix="/v1", tags=["error-codes"])

logger = get_logger(__name__)


# =============================================================================
# Response Models
# =============================================================================


class ErrorCodeResponse(BaseModel):
    """One taxonomy tag."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    code: int
    code_name: str = Field(alias="codeName")
    description: str
    protocol_violation: bool = Field(alias="protocolViolation")

    @classmethod
    def from_code(cls, code: ErrorCode) -> "ErrorCodeResponse":
        return cls(
            code=int(code),
            code_name=code.code_name,
            description=code.description,
            protocol_violation=code.is_protocol_violation,
        )


class ErrorCodeListResponse(BaseModel):
    """The whole taxonomy, ordered by code."""

    count: int
    codes: list[ErrorCodeResponse]


# =============================================================================
# Catalogue Service
# =============================================================================


class ErrorCodeCatalogue:
    """Read-only view over ErrorCode for the HTTP API."""

    def __init__(self) -> None:
        self._entries = tuple(
            ErrorCodeResponse.from_code(code) for code in sorted(ErrorCode)
        )

    def list_codes(self) -> list[ErrorCodeResponse]:
        return list(self._entries)

    def lookup(self, key: str) -> ErrorCodeResponse | None:
        """Find a tag by wire name, or by number when ``key`` is numeric.

        Args:
            key: Path segment, e.g. "ArgumentOutOfRange" or "524"

        Returns:
            The matching entry, or None if no tag matches
        """
        try:
            code = ErrorCode(int(key)) if key.isdigit() else ErrorCode.from_name(key)
        except (KeyError, ValueError):
            return None
        return ErrorCodeResponse.from_code(code)


_catalogue: ErrorCodeCatalogue | None = None


def get_catalogue() -> ErrorCodeCatalogue:
    """Get the shared catalogue (built on first use)."""
    global _catalogue
    if _catalogue is None:
        _catalogue = ErrorCodeCatalogue()
    return _catalogue


# =============================================================================
# Routes
# =============================================================================


@router.get(
    "/error-codes",
    response_model=ErrorCodeListResponse,
    response_model_by_alias=True,
)
async def list_error_codes() -> ErrorCodeListResponse:
    """List every error code of the taxonomy."""
    codes = get_catalogue().list_codes()
    return ErrorCodeListResponse(count=len(codes), codes=codes)


@router.get(
    "/error-codes/{code_name}",
    response_model=ErrorCodeResponse,
    response_model_by_alias=True,
)
async def get_error_code(code_name: str) -> ErrorCodeResponse:
    """Look up one error code by name or number.

    Raises:
        HTTPException: 404 if no tag matches
    """
    entry = get_catalogue().lookup(code_name)
    if entry is None:
        logger.info("error_code_not_found", code_name=code_name)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown error code: {code_name}",
        )
    return entry
