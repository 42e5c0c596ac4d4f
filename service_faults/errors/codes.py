"""
Error taxonomy: the closed set of ServiceError codes.

Numbering is part of the wire format. Consumers branch on the integer, so a
tag may be added but never removed or renumbered.

Families:
- 0: None, the catch-all for faults no rule recognizes
- 400: BadRequest, request-shape violations
- 432-435: this library's own protocol violations (missing correlation
  headers); always used verbatim as the HTTP status
- 520-578: classified runtime faults. Numbers follow the taxonomy shared
  with services on other runtimes; numbers of tags that have no Python
  counterpart (app domains, DLL entry points, marshalling, ...) stay
  unassigned.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


class ErrorCode(IntEnum):
    """Stable ServiceError code.

    Each member carries its integer code and its wire name (``code_name``),
    which is what clients see as ``codeName``.
    """

    code_name: str
    description: str

    def __new__(cls, value: int, code_name: str, description: str) -> ErrorCode:
        member = int.__new__(cls, value)
        member._value_ = value
        member.code_name = code_name
        member.description = description
        return member

    NONE = (0, "None", "No pre-defined error.")
    BAD_REQUEST = (
        400,
        "BadRequest",
        "Request was different than what the receiver expected.",
    )

    # 43x: Request header errors
    SESSION_ID_HEADER_NOT_FOUND = (
        432,
        "SessionIdHeaderNotFound",
        "session-id not found in request headers.",
    )
    TRANSACTION_ID_HEADER_NOT_FOUND = (
        433,
        "TransactionIdHeaderNotFound",
        "transaction-id not found in request headers.",
    )
    CHANNEL_ID_HEADER_NOT_FOUND = (
        434,
        "ChannelIdHeaderNotFound",
        "channel-id not found in request headers.",
    )
    USER_INFO_HEADER_NOT_FOUND = (
        435,
        "UserInfoHeaderNotFound",
        "user-info not found in request headers.",
    )

    # 52x-57x: Classified runtime faults
    AGGREGATE_FAILURE = (521, "AggregateFailure", "Multiple exceptions occurred.")
    ARGUMENT_NULL = (
        523,
        "ArgumentNull",
        "A None value was passed for an argument that does not accept it.",
    )
    ARGUMENT_OUT_OF_RANGE = (
        524,
        "ArgumentOutOfRange",
        "Value of an argument was outside the allowable range of values.",
    )
    ARGUMENT_INVALID = (
        525,
        "ArgumentInvalid",
        "One of the arguments provided to a function was not valid.",
    )
    ARITHMETIC_INVALID = (
        526,
        "ArithmeticInvalid",
        "Error during an arithmetic operation.",
    )
    DIRECTORY_NOT_FOUND = (
        534,
        "DirectoryNotFound",
        "A path component expected to be a directory was not one.",
    )
    DIVIDE_BY_ZERO = (535, "DivideByZero", "Attempted to divide by zero.")
    DLL_NOT_FOUND = (536, "DllNotFound", "Unable to find a module to import.")
    END_OF_STREAM = (538, "EndOfStream", "Attempted to read past the end of a stream.")
    FILE_NOT_FOUND = (
        541,
        "FileNotFound",
        "Attempted to access a file that does not exist.",
    )
    FORMAT_INVALID = (
        542,
        "FormatInvalid",
        "Text could not be encoded or decoded in the expected format.",
    )
    HTTP_IO_FAILURE = (543, "HttpIOFailure", "Failure while performing an HTTP request.")
    INDEX_OUT_OF_RANGE = (
        544,
        "IndexOutOfRange",
        "Attempted to access an element of a sequence outside of its bounds.",
    )
    INVALID_CAST = (
        547,
        "InvalidCast",
        "An operation was applied to an object of an inappropriate type.",
    )
    INVALID_DATA = (548, "InvalidData", "Invalid data stream format.")
    INVALID_OPERATION = (
        549,
        "InvalidOperation",
        "Invalid call for the object's current state.",
    )
    KEY_NOT_FOUND = (
        551,
        "KeyNotFound",
        "Attempted to access a mapping with a key it does not contain.",
    )
    MISSING_MEMBER = (
        556,
        "MissingMember",
        "Attempted to access an attribute that does not exist.",
    )
    NOT_IMPLEMENTED = (
        559,
        "NotImplemented",
        "Attempted to use an operation that is not implemented.",
    )
    NOT_SUPPORTED = (
        560,
        "NotSupported",
        "Attempted to read, seek, or write a stream that does not support it.",
    )
    OBJECT_DISPOSED = (562, "ObjectDisposed", "Operation was performed on a closed object.")
    OPERATION_CANCELED = (563, "OperationCanceled", "An operation was cancelled.")
    OUT_OF_MEMORY = (564, "OutOfMemory", "Not enough memory to continue execution.")
    OVERFLOW_FAILURE = (
        565,
        "OverflowFailure",
        "An overflow occurred during an arithmetic or conversion operation.",
    )
    PATH_TOO_LONG_FILE_NAME = (
        566,
        "PathTooLongFileName",
        "A path is longer than the system-defined maximum length.",
    )
    STACK_OVERFLOW = (569, "StackOverflow", "Maximum recursion depth was exceeded.")
    TIMEOUT = (570, "Timeout", "The time allotted for an operation has expired.")
    TIME_ZONE_NOT_FOUND = (571, "TimeZoneNotFound", "A time zone was not found.")
    TYPE_LOAD_FAILURE = (574, "TypeLoadFailure", "Failure while importing a module.")
    UNAUTHORIZED_ACCESS = (
        576,
        "UnauthorizedAccess",
        "The operating system denied access; not a 4xx authorization error.",
    )
    URI_FORMAT_EXCEPTION = (577, "UriFormatException", "Invalid URI detected.")
    VALIDATION_FAILURE = (578, "ValidationFailure", "Validation of a data field failed.")

    @classmethod
    def from_name(cls, code_name: str) -> ErrorCode:
        """Look up a tag by its wire name.

        Raises:
            KeyError: If no tag has that name
        """
        try:
            return _BY_CODE_NAME[code_name]
        except KeyError:
            raise KeyError(code_name) from None

    @property
    def is_protocol_violation(self) -> bool:
        """Whether this is one of the library's own header violations."""
        return self in PROTOCOL_VIOLATIONS


_BY_CODE_NAME: Final[dict[str, ErrorCode]] = {code.code_name: code for code in ErrorCode}

PROTOCOL_VIOLATIONS: Final[frozenset[ErrorCode]] = frozenset(
    {
        ErrorCode.SESSION_ID_HEADER_NOT_FOUND,
        ErrorCode.TRANSACTION_ID_HEADER_NOT_FOUND,
        ErrorCode.CHANNEL_ID_HEADER_NOT_FOUND,
        ErrorCode.USER_INFO_HEADER_NOT_FOUND,
    }
)
