"""
ServiceError value object and the ServiceException carrier.

Wire shape (HTTP error body)::

    {
        "code": 524,                       # required
        "codeName": "ArgumentOutOfRange",  # required, derived from code
        "message": "...",                  # omitted when null/empty
        "details": {"ParamName": "page"},  # omitted when null/empty
        "correlationId": "..."             # omitted when null/empty
    }

Patterns Applied:
- Frozen Pydantic model for the value object; derived fields as
  computed fields so they can never be set independently
- Namespaced carrier exception wrapping the value object plus its cause
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Final

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    computed_field,
    field_serializer,
    field_validator,
    model_serializer,
)

from service_faults.core.headers import (
    CHANNEL_ID_HEADER,
    SESSION_ID_HEADER,
    TRANSACTION_ID_HEADER,
    USER_INFO_HEADER,
)
from service_faults.errors.codes import ErrorCode
from service_faults.errors.faults import ArgumentOutOfRangeError

# Keys that stay in the serialized body even when empty
_REQUIRED_KEYS: Final[frozenset[str]] = frozenset({"code", "codeName", "code_name"})

HEADER_ERROR_CODES: Final[dict[str, ErrorCode]] = {
    SESSION_ID_HEADER: ErrorCode.SESSION_ID_HEADER_NOT_FOUND,
    TRANSACTION_ID_HEADER: ErrorCode.TRANSACTION_ID_HEADER_NOT_FOUND,
    CHANNEL_ID_HEADER: ErrorCode.CHANNEL_ID_HEADER_NOT_FOUND,
    USER_INFO_HEADER: ErrorCode.USER_INFO_HEADER_NOT_FOUND,
}


def utf8_safe(text: str) -> str:
    """Escape lone surrogates so the text always encodes as UTF-8."""
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


# =============================================================================
# ServiceError
# =============================================================================


class ServiceError(BaseModel):
    """Serializable description of a fault.

    Attributes:
        code: Taxonomy tag
        code_name: Wire name of ``code`` (computed, read-only)
        message: Human-readable message
        details: Read-only, string-keyed diagnostic details (type, stack
            trace, and the fields specific to the fault kind)
        correlation_id: Caller-supplied id relating the error to a request
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: ErrorCode = Field(description="Stable error code")
    message: str | None = Field(default=None, description="Error message")
    details: Mapping[str, str] | None = Field(
        default=None,
        description="Additional details about the error",
    )
    correlation_id: str | None = Field(
        default=None,
        serialization_alias="correlationId",
        validation_alias=AliasChoices("correlationId", "correlation_id", "transactionId"),
        description="Correlation (transaction) id of the failed request",
    )

    @field_validator("message", "correlation_id", mode="before")
    @classmethod
    def _safe_text(cls, value: Any) -> Any:
        return utf8_safe(value) if isinstance(value, str) else value

    @field_validator("details", mode="before")
    @classmethod
    def _safe_details(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {
            utf8_safe(k) if isinstance(k, str) else k: utf8_safe(v) if isinstance(v, str) else v
            for k, v in value.items()
        }

    @field_validator("details", mode="after")
    @classmethod
    def _freeze_details(cls, value: Mapping[str, str] | None) -> Mapping[str, str] | None:
        return MappingProxyType(dict(value)) if value is not None else None

    @field_serializer("details")
    def _serialize_details(self, value: Mapping[str, str] | None) -> dict[str, str] | None:
        return dict(value) if value is not None else None

    @computed_field(alias="codeName")  # type: ignore[prop-decorator]
    @property
    def code_name(self) -> str:
        """Wire name of the code."""
        return self.code.code_name

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data: dict[str, Any] = handler(self)
        return {
            key: value
            for key, value in data.items()
            if key in _REQUIRED_KEYS or value not in (None, "", {})
        }

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict in the wire shape."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        """Serialized wire body."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServiceError:
        """Parse a wire body already decoded from JSON.

        Raises:
            pydantic.ValidationError: If the body is not a ServiceError
        """
        return cls.model_validate(dict(data))

    @classmethod
    def from_json(cls, raw: str | bytes) -> ServiceError:
        """Parse a raw wire body.

        Raises:
            pydantic.ValidationError: If the body is not a ServiceError
        """
        return cls.model_validate_json(raw)

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    def without_details(self) -> ServiceError:
        """Copy of this error with details removed (production responses)."""
        if self.details is None:
            return self
        return self.model_copy(update={"details": None})

    def __str__(self) -> str:
        lines = [
            f"Error Code: {int(self.code)}",
            f"Error Code Name: {self.code_name}",
            f"Message: {self.message or ''}",
            "Error Details:",
        ]
        for key, value in (self.details or {}).items():
            lines.append(f"  {key}: {value}")
        lines.append(f"Correlation Id: {self.correlation_id or ''}")
        return "\n".join(lines)


# =============================================================================
# ServiceException
# =============================================================================


class ServiceException(Exception):
    """Fault carrying a ServiceError across the fault boundary.

    The cause is kept for local diagnostics only (logs, traces) and is also
    chained as ``__cause__`` so tracebacks show the original fault. It is
    never serialized.
    """

    def __init__(
        self,
        error: ServiceError | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with an error, defaulting to an unclassified one.

        Args:
            error: ServiceError describing the fault
            cause: Original fault that triggered this one
        """
        self._error = error if error is not None else ServiceError(code=ErrorCode.NONE)
        self._cause = cause
        super().__init__(self._error.message or self._error.code_name)
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        message: str | None = None,
        details: Mapping[str, str] | None = None,
        *,
        cause: BaseException | None = None,
        correlation_id: str | None = None,
    ) -> ServiceException:
        """Build a ServiceException from its parts.

        Args:
            code: Taxonomy tag
            message: Human-readable message
            details: Key-value pairs describing the fault
            cause: Original fault that triggered this one
            correlation_id: Correlation id of the failed request
        """
        error = ServiceError(
            code=code,
            message=message,
            details=dict(details) if details is not None else None,
            correlation_id=correlation_id,
        )
        return cls(error, cause)

    @classmethod
    def missing_header(
        cls,
        header_name: str,
        correlation_id: str | None = None,
    ) -> ServiceException:
        """Protocol violation for a missing correlation header.

        Args:
            header_name: One of the correlation headers (session-id,
                transaction-id, channel-id, user-info)
            correlation_id: Correlation id of the failed request, if known

        Raises:
            ArgumentOutOfRangeError: If header_name has no reserved code
        """
        code = HEADER_ERROR_CODES.get(header_name.lower())
        if code is None:
            raise ArgumentOutOfRangeError(
                f"No reserved error code for header '{header_name}'",
                param_name="header_name",
                actual_value=header_name,
            )
        return cls.from_code(
            code,
            f"{header_name} not found in request headers.",
            correlation_id=correlation_id,
        )

    @property
    def error(self) -> ServiceError:
        """The ServiceError for this exception."""
        return self._error

    @property
    def cause(self) -> BaseException | None:
        """Original fault that caused the error, if any."""
        return self._cause

    @property
    def code(self) -> ErrorCode:
        return self._error.code

    @property
    def code_name(self) -> str:
        return self._error.code_name

    @property
    def details(self) -> Mapping[str, str] | None:
        return self._error.details

    @property
    def correlation_id(self) -> str | None:
        return self._error.correlation_id

    def __str__(self) -> str:
        message = self._error.message
        return f"[{self.code_name}] {message}" if message else f"[{self.code_name}]"

    def __repr__(self) -> str:
        return (
            f"ServiceException(code={int(self.code)}, code_name={self.code_name!r}, "
            f"correlation_id={self.correlation_id!r})"
        )
