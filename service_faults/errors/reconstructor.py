"""
Fault reconstructor: ServiceException -> best-effort native fault.

Used to re-raise an error received from another service as a native
exception, and to check classification round trips in tests. It is not a
true inverse of classification: some tags lose information on the way out
(an aggregate keeps only its members' type names, a JSON decode error loses
the document). Each result therefore says whether the rebuild is exact.

Round-trip-safe tags (``ROUND_TRIP_SAFE``) rebuild the same native type with
the same kind-specific fields, provided the ``Type`` detail and the detail
keys the kind needs survived the trip (they do not once details are
stripped in production). Values that are not strings (an out-of-range
value, a missing key) are restored from the type name recorded beside
them; a type outside RESTORABLE_TYPES makes the rebuild inexact.

The concrete class is chosen by matching the ``Type`` detail against a
per-tag whitelist; names from wire data are never imported.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import io
import json
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Final
from zoneinfo import ZoneInfoNotFoundError

import httpx
import pydantic
from pydantic_core import PydanticCustomError

from service_faults.core.logging import get_logger
from service_faults.errors.classifier import DETAIL_TYPE, qualified_name
from service_faults.errors.codes import ErrorCode
from service_faults.errors.faults import (
    ArgumentError,
    ArgumentNullError,
    ArgumentOutOfRangeError,
    ObjectDisposedError,
)
from service_faults.errors.models import ServiceException

logger = get_logger(__name__)

Builder = Callable[[type, str, Mapping[str, str]], BaseException]


@dataclass(frozen=True, slots=True)
class Reconstruction:
    """Result of a reconstruction.

    Attributes:
        fault: Rebuilt native fault
        exact: True when the fault is an equivalent of the original (same
            type, same kind-specific fields); False for best-effort rebuilds
    """

    fault: BaseException
    exact: bool


# =============================================================================
# Builders
# =============================================================================


def _optional(details: Mapping[str, str], key: str) -> str | None:
    return details.get(key) or None


# Type names the value details can be restored from without loss
RESTORABLE_TYPES: Final[frozenset[str]] = frozenset({"str", "int", "float", "bool", "NoneType"})


def _restore(text: str, type_name: str) -> Any:
    if type_name == "NoneType":
        return None
    if type_name == "bool":
        return text == "True"
    if type_name == "int":
        return int(text)
    if type_name == "float":
        return float(text)
    return text


def _typed(details: Mapping[str, str], key: str, type_key: str) -> Any:
    """Value detail restored to the type recorded beside it, if any."""
    type_name = details.get(type_key)
    if type_name is None:
        return _optional(details, key)
    return _restore(details.get(key, ""), type_name)


def _with_message(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    return cls(message)


def _argument(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    if issubclass(cls, ArgumentOutOfRangeError):
        return cls(
            message,
            param_name=_optional(details, "ParamName"),
            actual_value=_typed(details, "Value", "ValueType"),
        )
    if issubclass(cls, ArgumentError):
        return cls(message, param_name=_optional(details, "ParamName"))
    return cls(message)


def _object_disposed(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    return cls(message, object_name=_optional(details, "ObjectName"))


def _os_error(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    raw_errno = details.get("ErrorNumber", "")
    if not raw_errno.isdigit():
        return cls(message)
    code = int(raw_errno)
    return cls(code, os.strerror(code), _optional(details, "FileName"))


def _key(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    if "Key" not in details:
        return cls(message)
    return cls(_typed(details, "Key", "KeyType"))


def _named(cls: type, message: str, details: Mapping[str, str], key: str) -> BaseException:
    return cls(message, name=_optional(details, key))


def _module(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    return _named(cls, message, details, "ModuleName")


def _attribute(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    return _named(cls, message, details, "MemberName")


def _exception_group(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    names = [name for name in details.get("Exceptions", "").split(", ") if name]
    members = [Exception(name) for name in names] or [Exception(message)]
    return cls(message or "aggregate failure", members)


def _json_decode(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    # Synthesize a document whose end sits at the recorded line/column
    line = int(details.get("LineNumber") or 1)
    column = int(details.get("ColumnNumber") or 1)
    doc = "\n" * (line - 1) + " " * (column - 1)
    return cls(details.get("Reason") or message, doc, len(doc))


def _validation(cls: type, message: str, details: Mapping[str, str]) -> BaseException:
    members = [m for m in details.get("ResultMemberNames", "").split(", ") if m] or [""]
    line_errors = [
        {
            "type": PydanticCustomError(
                "service_error", "{reason}", {"reason": message or "validation failed"}
            ),
            "loc": tuple(member.split(".")) if member else (),
            "input": details.get("Value", ""),
        }
        for member in members
    ]
    return pydantic.ValidationError.from_exception_data(
        details.get("Title") or "ServiceError",
        line_errors,
    )


# =============================================================================
# Rebuild Table
# =============================================================================


@dataclass(frozen=True, slots=True)
class RebuildRule:
    """How to rebuild the native fault for one tag.

    Attributes:
        code: Tag handled by this rule
        types: Whitelisted native types; the first one is the default when
            the ``Type`` detail is missing or not whitelisted
        build: Constructs the fault from (class, message, details)
        lossless: Whether the tag is round-trip-safe
        required: Detail keys an exact rebuild needs
        typed: (value key, type key) pairs; an exact rebuild needs each type
            key to name one of RESTORABLE_TYPES
    """

    code: ErrorCode
    types: tuple[type[BaseException], ...]
    build: Builder = _with_message
    lossless: bool = True
    required: tuple[str, ...] = ()
    typed: tuple[tuple[str, str], ...] = ()

    def restorable(self, details: Mapping[str, str]) -> bool:
        """Whether every typed value detail can be restored exactly."""
        return all(details.get(type_key) in RESTORABLE_TYPES for _, type_key in self.typed)

    def resolve(self, type_name: str | None) -> type[BaseException] | None:
        """Whitelisted class whose qualified name is type_name."""
        if not type_name:
            return None
        return next((t for t in self.types if qualified_name(t) == type_name), None)


_OS_REQUIRED: Final[tuple[str, ...]] = ("ErrorNumber", "FileName")

REBUILD_RULES: Final[tuple[RebuildRule, ...]] = (
    RebuildRule(
        ErrorCode.ARGUMENT_NULL,
        (ArgumentNullError,),
        _argument,
        required=("ParamName",),
    ),
    RebuildRule(
        ErrorCode.ARGUMENT_OUT_OF_RANGE,
        (ArgumentOutOfRangeError,),
        _argument,
        required=("ParamName", "Value"),
        typed=(("Value", "ValueType"),),
    ),
    RebuildRule(
        ErrorCode.ARGUMENT_INVALID,
        (ArgumentError, ValueError),
        _argument,
        required=("ParamName",),
    ),
    RebuildRule(
        ErrorCode.OBJECT_DISPOSED,
        (ObjectDisposedError,),
        _object_disposed,
        required=("ObjectName",),
    ),
    RebuildRule(ErrorCode.DIVIDE_BY_ZERO, (ZeroDivisionError,)),
    RebuildRule(ErrorCode.OVERFLOW_FAILURE, (OverflowError,)),
    RebuildRule(ErrorCode.ARITHMETIC_INVALID, (ArithmeticError, FloatingPointError)),
    RebuildRule(ErrorCode.TIME_ZONE_NOT_FOUND, (ZoneInfoNotFoundError,)),
    RebuildRule(
        ErrorCode.KEY_NOT_FOUND,
        (KeyError,),
        _key,
        required=("Key",),
        typed=(("Key", "KeyType"),),
    ),
    RebuildRule(ErrorCode.INDEX_OUT_OF_RANGE, (IndexError,)),
    RebuildRule(
        ErrorCode.TIMEOUT,
        (
            TimeoutError,
            httpx.TimeoutException,
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.WriteTimeout,
            httpx.PoolTimeout,
        ),
    ),
    RebuildRule(
        ErrorCode.OPERATION_CANCELED,
        (asyncio.CancelledError, concurrent.futures.CancelledError),
    ),
    RebuildRule(ErrorCode.URI_FORMAT_EXCEPTION, (httpx.InvalidURL,)),
    RebuildRule(ErrorCode.FILE_NOT_FOUND, (FileNotFoundError,), _os_error, required=_OS_REQUIRED),
    RebuildRule(
        ErrorCode.DIRECTORY_NOT_FOUND,
        (NotADirectoryError,),
        _os_error,
        required=_OS_REQUIRED,
    ),
    RebuildRule(
        ErrorCode.UNAUTHORIZED_ACCESS,
        (PermissionError,),
        _os_error,
        required=_OS_REQUIRED,
    ),
    RebuildRule(
        ErrorCode.PATH_TOO_LONG_FILE_NAME,
        (OSError,),
        _os_error,
        required=_OS_REQUIRED,
    ),
    RebuildRule(ErrorCode.END_OF_STREAM, (EOFError,)),
    RebuildRule(ErrorCode.NOT_SUPPORTED, (io.UnsupportedOperation,)),
    RebuildRule(ErrorCode.STACK_OVERFLOW, (RecursionError,)),
    RebuildRule(ErrorCode.NOT_IMPLEMENTED, (NotImplementedError,)),
    RebuildRule(ErrorCode.INVALID_OPERATION, (RuntimeError,)),
    RebuildRule(ErrorCode.DLL_NOT_FOUND, (ModuleNotFoundError,), _module, required=("ModuleName",)),
    RebuildRule(ErrorCode.TYPE_LOAD_FAILURE, (ImportError,), _module, required=("ModuleName",)),
    RebuildRule(
        ErrorCode.MISSING_MEMBER,
        (AttributeError,),
        _attribute,
        required=("MemberName",),
    ),
    RebuildRule(ErrorCode.INVALID_CAST, (TypeError,)),
    RebuildRule(ErrorCode.OUT_OF_MEMORY, (MemoryError,)),
    # Lossy: best effort only
    RebuildRule(
        ErrorCode.AGGREGATE_FAILURE,
        (ExceptionGroup,),
        _exception_group,
        lossless=False,
    ),
    RebuildRule(
        ErrorCode.VALIDATION_FAILURE,
        (pydantic.ValidationError,),
        _validation,
        lossless=False,
    ),
    RebuildRule(ErrorCode.INVALID_DATA, (json.JSONDecodeError,), _json_decode, lossless=False),
    RebuildRule(ErrorCode.FORMAT_INVALID, (UnicodeError,), lossless=False),
    RebuildRule(
        ErrorCode.HTTP_IO_FAILURE,
        (
            httpx.HTTPError,
            httpx.RequestError,
            httpx.TransportError,
            httpx.NetworkError,
            httpx.ConnectError,
            httpx.ReadError,
            httpx.WriteError,
            httpx.CloseError,
            httpx.ProtocolError,
            httpx.RemoteProtocolError,
            httpx.LocalProtocolError,
            httpx.ProxyError,
            httpx.UnsupportedProtocol,
            httpx.DecodingError,
            httpx.TooManyRedirects,
        ),
        lossless=False,
    ),
)

ROUND_TRIP_SAFE: Final[frozenset[ErrorCode]] = frozenset(
    rule.code for rule in REBUILD_RULES if rule.lossless
)

# Codes whose native form is the ServiceException itself
NATIVE_CODES: Final[frozenset[ErrorCode]] = frozenset(
    {
        ErrorCode.BAD_REQUEST,
        ErrorCode.SESSION_ID_HEADER_NOT_FOUND,
        ErrorCode.TRANSACTION_ID_HEADER_NOT_FOUND,
        ErrorCode.CHANNEL_ID_HEADER_NOT_FOUND,
        ErrorCode.USER_INFO_HEADER_NOT_FOUND,
    }
)


# =============================================================================
# Main Implementation
# =============================================================================


class FaultReconstructor:
    """Rebuilds native faults from ServiceExceptions with a rule table."""

    __slots__ = ("_rules",)

    def __init__(self, rules: tuple[RebuildRule, ...] = REBUILD_RULES) -> None:
        self._rules: dict[ErrorCode, RebuildRule] = {rule.code: rule for rule in rules}

    def rule_for(self, code: ErrorCode) -> RebuildRule | None:
        return self._rules.get(code)

    def reconstruct(self, fault: ServiceException) -> Reconstruction:
        """Rebuild the native fault a ServiceException describes.

        Never raises: tags without a rule, and rebuilds that fail, fall back
        to a plain ``Exception`` carrying the message.

        Args:
            fault: ServiceException to rebuild from (only its ServiceError is
                read; the cause is ignored)

        Returns:
            Reconstruction with the rebuilt fault and whether it is exact
        """
        error = fault.error
        message = error.message or ""
        if error.code in NATIVE_CODES:
            return Reconstruction(fault, exact=True)

        rule = self._rules.get(error.code)
        if rule is None:
            return Reconstruction(Exception(message), exact=False)

        details = error.details or {}
        resolved = rule.resolve(details.get(DETAIL_TYPE))
        try:
            rebuilt = rule.build(resolved or rule.types[0], message, details)
        except Exception:
            logger.debug("fault_rebuild_failed", code_name=error.code_name, exc_info=True)
            return Reconstruction(Exception(message), exact=False)

        exact = (
            rule.lossless
            and resolved is not None
            and all(key in details for key in rule.required)
            and rule.restorable(details)
        )
        return Reconstruction(rebuilt, exact=exact)


_default_reconstructor = FaultReconstructor()


def get_reconstructor() -> FaultReconstructor:
    """Get the reconstructor built on REBUILD_RULES."""
    return _default_reconstructor


def reconstruct(fault: ServiceException) -> Reconstruction:
    """Rebuild a native fault with the default rebuild table.

    See FaultReconstructor.reconstruct.
    """
    return _default_reconstructor.reconstruct(fault)
