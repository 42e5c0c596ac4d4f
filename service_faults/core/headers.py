"""
service-faults - Correlation Headers

Accessors for the custom request headers every service call carries:
- session-id: stays constant throughout a session
- transaction-id: unique to each HTTP request (the correlation id of faults)
- channel-id: where a request is coming from
- user-info: JSON document describing the calling user

Accessors take any header mapping (Starlette ``Headers`` or a plain dict)
and return None when the mapping or the header is absent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_pascal

from service_faults.core.logging import get_logger

logger = get_logger(__name__)

# =============================================================================
# Header Names
# =============================================================================

SESSION_ID_HEADER: Final[str] = "session-id"
TRANSACTION_ID_HEADER: Final[str] = "transaction-id"
CHANNEL_ID_HEADER: Final[str] = "channel-id"
USER_INFO_HEADER: Final[str] = "user-info"

CORRELATION_HEADERS: Final[tuple[str, ...]] = (
    SESSION_ID_HEADER,
    TRANSACTION_ID_HEADER,
    CHANNEL_ID_HEADER,
    USER_INFO_HEADER,
)


# =============================================================================
# User Info Model
# =============================================================================


class UserInfo(BaseModel):
    """Calling user, as carried in the user-info header.

    The header is produced by services that serialize with PascalCase keys
    (``{"Username": "jdoe", "IsAuthenticated": true}``); snake_case keys are
    accepted as well.
    """

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        frozen=True,
    )

    username: str | None = None
    email: str | None = None
    user_id: str | None = None
    is_authenticated: bool = False

    @property
    def has_info(self) -> bool:
        """Whether any identifying field is populated."""
        return bool(self.username or self.email or self.user_id)


# =============================================================================
# Accessors
# =============================================================================


def _extract(headers: Mapping[str, str] | None, name: str) -> str | None:
    if headers is None:
        return None
    value = headers.get(name)
    if value is None:
        # Plain dicts are case-sensitive; Starlette Headers already are not.
        value = next(
            (v for k, v in headers.items() if k.lower() == name),
            None,
        )
    return value


def get_session_id(headers: Mapping[str, str] | None) -> str | None:
    """Get the session-id header value."""
    return _extract(headers, SESSION_ID_HEADER)


def get_transaction_id(headers: Mapping[str, str] | None) -> str | None:
    """Get the transaction-id header value (fault correlation id)."""
    return _extract(headers, TRANSACTION_ID_HEADER)


def get_channel_id(headers: Mapping[str, str] | None) -> str | None:
    """Get the channel-id header value."""
    return _extract(headers, CHANNEL_ID_HEADER)


def get_user_info(headers: Mapping[str, str] | None) -> UserInfo | None:
    """Parse the user-info header.

    Returns:
        UserInfo, or None when the header is absent, empty or not valid JSON
        for the model
    """
    raw = _extract(headers, USER_INFO_HEADER)
    if not raw:
        return None
    try:
        return UserInfo.model_validate_json(raw)
    except ValidationError:
        logger.debug("user_info_header_invalid", header=USER_INFO_HEADER)
        return None


def get_user_info_username(headers: Mapping[str, str] | None) -> str | None:
    """Get the username out of the user-info header."""
    user_info = get_user_info(headers)
    return user_info.username if user_info is not None else None


def is_header_valid(headers: Mapping[str, str] | None, name: str) -> bool:
    """Whether a header is present and non-empty.

    For user-info the header must also parse and carry some user info.
    """
    if name == USER_INFO_HEADER:
        user_info = get_user_info(headers)
        return user_info is not None and user_info.has_info
    return bool(_extract(headers, name))


def is_session_id_valid(headers: Mapping[str, str] | None) -> bool:
    """Whether session-id is present and non-empty."""
    return is_header_valid(headers, SESSION_ID_HEADER)


def is_transaction_id_valid(headers: Mapping[str, str] | None) -> bool:
    """Whether transaction-id is present and non-empty."""
    return is_header_valid(headers, TRANSACTION_ID_HEADER)


def is_channel_id_valid(headers: Mapping[str, str] | None) -> bool:
    """Whether channel-id is present and non-empty."""
    return is_header_valid(headers, CHANNEL_ID_HEADER)


def does_user_info_have_info(headers: Mapping[str, str] | None) -> bool:
    """Whether user-info parses and identifies a user."""
    return is_header_valid(headers, USER_INFO_HEADER)
