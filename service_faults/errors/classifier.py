"""
Fault classifier: native exception -> ServiceException.

Classification walks an ordered table of FaultRule entries and stops at the
first match. Python exceptions form a hierarchy, so a fault usually matches
several rules (an ``ArgumentOutOfRangeError`` is also an ``ArgumentError``
and a ``ValueError``); the table is therefore ordered most-specific first,
and ``find_shadowed_rules`` audits that no rule is made unreachable by an
earlier, more general one.

Every classified fault gets the generic detail snapshot (GENERIC_DETAIL_KEYS)
plus the detail keys its rule declares. Missing values become empty strings.
An extractor that raises loses its own keys only; classify itself never
raises.

Pattern: Chain of Responsibility expressed as data (rule table), with
dependency injection of the table for extension and testing.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import errno
import io
import json
import traceback
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import FrameType, TracebackType
from typing import Any, Final, Protocol, runtime_checkable
from zoneinfo import ZoneInfoNotFoundError

import httpx
import pydantic

from service_faults.core.logging import get_logger
from service_faults.errors.codes import ErrorCode
from service_faults.errors.faults import (
    ArgumentError,
    ArgumentNullError,
    ArgumentOutOfRangeError,
    ObjectDisposedError,
)
from service_faults.errors.models import ServiceError, ServiceException

logger = get_logger(__name__)

Extractor = Callable[[Any], Mapping[str, Any]]
Guard = Callable[[BaseException], bool]

# =============================================================================
# Detail Keys
# =============================================================================

DETAIL_TYPE: Final[str] = "Type"
DETAIL_BASE_MESSAGE: Final[str] = "BaseMessage"
DETAIL_SOURCE: Final[str] = "Source"
DETAIL_METHOD: Final[str] = "Method"
DETAIL_STACK_TRACE: Final[str] = "StackTrace"
DETAIL_HELP_LINK: Final[str] = "HelpLink"

GENERIC_DETAIL_KEYS: Final[tuple[str, ...]] = (
    DETAIL_TYPE,
    DETAIL_BASE_MESSAGE,
    DETAIL_SOURCE,
    DETAIL_METHOD,
    DETAIL_STACK_TRACE,
    DETAIL_HELP_LINK,
)


# =============================================================================
# Introspection Helpers
# =============================================================================


def qualified_name(cls: type) -> str:
    """Fully-qualified class name as written to the ``Type`` detail.

    Builtins are written bare (``ValueError``), everything else with its
    module (``httpx.ConnectError``).
    """
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def fault_message(fault: BaseException) -> str:
    """Human message of a fault.

    A ``message`` string attribute wins, then a single string argument (so
    ``KeyError("k")`` gives ``k``, not ``'k'``), then ``str(fault)``.
    """
    try:
        message = getattr(fault, "message", None)
        if isinstance(message, str):
            return message
        args = fault.args
        if len(args) == 1 and isinstance(args[0], str):
            return args[0]
        return str(fault)
    except Exception:
        return ""


def base_fault(fault: BaseException) -> BaseException:
    """Innermost fault of the ``__cause__`` / ``__context__`` chain."""
    seen = {id(fault)}
    current = fault
    while True:
        if current.__cause__ is not None:
            nxt = current.__cause__
        elif not current.__suppress_context__:
            nxt = current.__context__
        else:
            nxt = None
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


def _raising_frame(tb: TracebackType | None) -> FrameType | None:
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _type_name(value: Any) -> str:
    return qualified_name(type(value))


def _snapshot(fault: BaseException) -> dict[str, str]:
    """Generic details every classified fault carries."""
    frame = _raising_frame(fault.__traceback__)
    getters: tuple[tuple[str, Callable[[], Any]], ...] = (
        (DETAIL_TYPE, lambda: qualified_name(type(fault))),
        (DETAIL_BASE_MESSAGE, lambda: fault_message(base_fault(fault))),
        (DETAIL_SOURCE, lambda: frame.f_globals.get("__name__") if frame else None),
        (DETAIL_METHOD, lambda: frame.f_code.co_name if frame else None),
        (DETAIL_STACK_TRACE, lambda: "".join(traceback.format_tb(fault.__traceback__))),
        (DETAIL_HELP_LINK, lambda: getattr(fault, "help_link", None)),
    )
    details: dict[str, str] = {}
    for key, getter in getters:
        try:
            details[key] = _text(getter())
        except Exception:
            details[key] = ""
    return details


# =============================================================================
# Per-Kind Extractors
# =============================================================================


def _argument(fault: Any) -> Mapping[str, Any]:
    return {"ParamName": getattr(fault, "param_name", None)}


def _argument_out_of_range(fault: Any) -> Mapping[str, Any]:
    return {
        "ParamName": getattr(fault, "param_name", None),
        "Value": getattr(fault, "actual_value", None),
        "ValueType": _type_name(getattr(fault, "actual_value", None)),
    }


def _object_disposed(fault: Any) -> Mapping[str, Any]:
    return {"ObjectName": getattr(fault, "object_name", None)}


def _exception_group(fault: Any) -> Mapping[str, Any]:
    return {"Exceptions": ", ".join(type(inner).__name__ for inner in fault.exceptions)}


def _validation(fault: Any) -> Mapping[str, Any]:
    errors = fault.errors(include_url=False)
    return {
        "Value": errors[0].get("input") if errors else None,
        "ResultMemberNames": ", ".join(
            ".".join(str(part) for part in error.get("loc", ())) for error in errors
        ),
        "Title": fault.title,
    }


def _json_decode(fault: Any) -> Mapping[str, Any]:
    return {
        "Reason": getattr(fault, "msg", None),
        "LineNumber": getattr(fault, "lineno", None),
        "ColumnNumber": getattr(fault, "colno", None),
    }


def _unicode(fault: Any) -> Mapping[str, Any]:
    return {
        "Encoding": getattr(fault, "encoding", None),
        "Reason": getattr(fault, "reason", None),
    }


def _key(fault: Any) -> Mapping[str, Any]:
    key = fault.args[0] if fault.args else None
    return {"Key": key, "KeyType": _type_name(key)}


def _http_status(fault: Any) -> Mapping[str, Any]:
    return {
        "RequestMethod": fault.request.method,
        "RequestUrl": fault.request.url,
        "StatusCode": fault.response.status_code,
    }


def _http_request(fault: Any) -> Mapping[str, Any]:
    # httpx raises RuntimeError from .request when no request was attached
    return {
        "RequestMethod": fault.request.method,
        "RequestUrl": fault.request.url,
    }


def _os_path(fault: Any) -> Mapping[str, Any]:
    return {
        "ErrorNumber": getattr(fault, "errno", None),
        "FileName": getattr(fault, "filename", None),
    }


def _is_name_too_long(fault: BaseException) -> bool:
    return getattr(fault, "errno", None) == errno.ENAMETOOLONG


def _module(fault: Any) -> Mapping[str, Any]:
    return {"ModuleName": getattr(fault, "name", None)}


def _attribute(fault: Any) -> Mapping[str, Any]:
    return {"MemberName": getattr(fault, "name", None)}


# =============================================================================
# Rule Table
# =============================================================================


@dataclass(frozen=True, slots=True)
class FaultRule:
    """One classification rule.

    Attributes:
        kind: Short name of the fault kind (used in logs and audits)
        types: Native types the rule matches (isinstance test)
        code: Tag assigned on match
        detail_keys: Kind-specific detail keys this rule contributes
        extract: Reads the kind-specific values off the fault
        when: Extra guard evaluated after the type test
    """

    kind: str
    types: tuple[type[BaseException], ...]
    code: ErrorCode
    detail_keys: tuple[str, ...] = ()
    extract: Extractor | None = None
    when: Guard | None = None

    def matches(self, fault: BaseException) -> bool:
        """Whether this rule applies to the fault."""
        if not isinstance(fault, self.types):
            return False
        return self.when is None or self.when(fault)

    def details(self, fault: BaseException) -> dict[str, str]:
        """Kind-specific details, each declared key present."""
        if not self.detail_keys or self.extract is None:
            return {}
        values = self.extract(fault)
        return {key: _text(values.get(key)) for key in self.detail_keys}


# Ordering constraints (a rule must precede every rule for one of its bases):
#   ExceptionGroup                              first; classified as a whole
#   ArgumentNullError, ArgumentOutOfRangeError  < ArgumentError < ValueError
#   ObjectDisposedError                         < RuntimeError
#   pydantic.ValidationError, JSONDecodeError,
#   UnicodeError, io.UnsupportedOperation       < ValueError
#   io.UnsupportedOperation                     < OSError rules
#   ZeroDivisionError, OverflowError            < ArithmeticError
#   ZoneInfoNotFoundError                       < KeyError
#   httpx.TimeoutException                      < httpx.HTTPError
#   httpx.HTTPStatusError                       < httpx.HTTPError
#   TimeoutError, FileNotFoundError,
#   NotADirectoryError, PermissionError         < OSError (name-too-long guard)
#   RecursionError, NotImplementedError         < RuntimeError
#   ModuleNotFoundError                         < ImportError
DEFAULT_RULES: Final[tuple[FaultRule, ...]] = (
    FaultRule(
        "exception-group",
        (BaseExceptionGroup,),
        ErrorCode.AGGREGATE_FAILURE,
        ("Exceptions",),
        _exception_group,
    ),
    # Argument family
    FaultRule(
        "argument-null",
        (ArgumentNullError,),
        ErrorCode.ARGUMENT_NULL,
        ("ParamName",),
        _argument,
    ),
    FaultRule(
        "argument-out-of-range",
        (ArgumentOutOfRangeError,),
        ErrorCode.ARGUMENT_OUT_OF_RANGE,
        ("ParamName", "Value", "ValueType"),
        _argument_out_of_range,
    ),
    FaultRule(
        "argument",
        (ArgumentError,),
        ErrorCode.ARGUMENT_INVALID,
        ("ParamName",),
        _argument,
    ),
    FaultRule(
        "object-disposed",
        (ObjectDisposedError,),
        ErrorCode.OBJECT_DISPOSED,
        ("ObjectName",),
        _object_disposed,
    ),
    # ValueError refinements
    FaultRule(
        "validation",
        (pydantic.ValidationError,),
        ErrorCode.VALIDATION_FAILURE,
        ("Value", "ResultMemberNames", "Title"),
        _validation,
    ),
    FaultRule(
        "json-decode",
        (json.JSONDecodeError,),
        ErrorCode.INVALID_DATA,
        ("Reason", "LineNumber", "ColumnNumber"),
        _json_decode,
    ),
    FaultRule(
        "unicode",
        (UnicodeError,),
        ErrorCode.FORMAT_INVALID,
        ("Encoding", "Reason"),
        _unicode,
    ),
    FaultRule("unsupported-operation", (io.UnsupportedOperation,), ErrorCode.NOT_SUPPORTED),
    FaultRule("value", (ValueError,), ErrorCode.ARGUMENT_INVALID, ("ParamName",), _argument),
    # Arithmetic
    FaultRule("zero-division", (ZeroDivisionError,), ErrorCode.DIVIDE_BY_ZERO),
    FaultRule("overflow", (OverflowError,), ErrorCode.OVERFLOW_FAILURE),
    FaultRule("arithmetic", (ArithmeticError,), ErrorCode.ARITHMETIC_INVALID),
    # Lookup
    FaultRule("time-zone-not-found", (ZoneInfoNotFoundError,), ErrorCode.TIME_ZONE_NOT_FOUND),
    FaultRule("key", (KeyError,), ErrorCode.KEY_NOT_FOUND, ("Key", "KeyType"), _key),
    FaultRule("index", (IndexError,), ErrorCode.INDEX_OUT_OF_RANGE),
    # Timeouts and cancellation
    FaultRule("timeout", (TimeoutError, httpx.TimeoutException), ErrorCode.TIMEOUT),
    FaultRule(
        "cancelled",
        (asyncio.CancelledError, concurrent.futures.CancelledError),
        ErrorCode.OPERATION_CANCELED,
    ),
    # HTTP client
    FaultRule(
        "http-status",
        (httpx.HTTPStatusError,),
        ErrorCode.HTTP_IO_FAILURE,
        ("RequestMethod", "RequestUrl", "StatusCode"),
        _http_status,
    ),
    FaultRule(
        "http",
        (httpx.HTTPError,),
        ErrorCode.HTTP_IO_FAILURE,
        ("RequestMethod", "RequestUrl"),
        _http_request,
    ),
    FaultRule("invalid-url", (httpx.InvalidURL,), ErrorCode.URI_FORMAT_EXCEPTION),
    # File system
    FaultRule(
        "file-not-found",
        (FileNotFoundError,),
        ErrorCode.FILE_NOT_FOUND,
        ("ErrorNumber", "FileName"),
        _os_path,
    ),
    FaultRule(
        "not-a-directory",
        (NotADirectoryError,),
        ErrorCode.DIRECTORY_NOT_FOUND,
        ("ErrorNumber", "FileName"),
        _os_path,
    ),
    FaultRule(
        "permission",
        (PermissionError,),
        ErrorCode.UNAUTHORIZED_ACCESS,
        ("ErrorNumber", "FileName"),
        _os_path,
    ),
    FaultRule(
        "name-too-long",
        (OSError,),
        ErrorCode.PATH_TOO_LONG_FILE_NAME,
        ("ErrorNumber", "FileName"),
        _os_path,
        when=_is_name_too_long,
    ),
    FaultRule("end-of-stream", (EOFError,), ErrorCode.END_OF_STREAM),
    # Runtime
    FaultRule("recursion", (RecursionError,), ErrorCode.STACK_OVERFLOW),
    FaultRule("not-implemented", (NotImplementedError,), ErrorCode.NOT_IMPLEMENTED),
    FaultRule("runtime", (RuntimeError,), ErrorCode.INVALID_OPERATION),
    # Imports and attributes
    FaultRule(
        "module-not-found",
        (ModuleNotFoundError,),
        ErrorCode.DLL_NOT_FOUND,
        ("ModuleName",),
        _module,
    ),
    FaultRule("import", (ImportError,), ErrorCode.TYPE_LOAD_FAILURE, ("ModuleName",), _module),
    FaultRule(
        "attribute",
        (AttributeError,),
        ErrorCode.MISSING_MEMBER,
        ("MemberName",),
        _attribute,
    ),
    FaultRule("type", (TypeError,), ErrorCode.INVALID_CAST),
    FaultRule("memory", (MemoryError,), ErrorCode.OUT_OF_MEMORY),
)


def find_shadowed_rules(rules: Iterable[FaultRule]) -> list[tuple[str, str]]:
    """Find rules an earlier rule makes unreachable.

    A rule is shadowed when an earlier unguarded rule matches every one of
    its types (same type or a base class).

    Returns:
        (shadowed kind, shadowing kind) pairs, in table order
    """
    shadowed: list[tuple[str, str]] = []
    earlier: list[FaultRule] = []
    for rule in rules:
        for previous in earlier:
            if previous.when is not None:
                continue
            if all(issubclass(t, previous.types) for t in rule.types):
                shadowed.append((rule.kind, previous.kind))
                break
        earlier.append(rule)
    return shadowed


# =============================================================================
# Protocol Definition
# =============================================================================


@runtime_checkable
class FaultClassifierProtocol(Protocol):
    """Protocol for classifier implementations (fault boundary injection)."""

    def classify(
        self,
        fault: BaseException,
        correlation_id: str | None = None,
    ) -> ServiceException:
        """Classify a native fault."""
        ...


# =============================================================================
# Main Implementation
# =============================================================================


class FaultClassifier:
    """Classifies native faults with an ordered rule table.

    Example:
        classifier = FaultClassifier(rules=(my_rule, *DEFAULT_RULES))
        fault = classifier.classify(exc, correlation_id="txn-1")
    """

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[FaultRule] = DEFAULT_RULES) -> None:
        """Initialize with a rule table.

        Args:
            rules: Rules in evaluation order (most specific first)
        """
        self._rules: tuple[FaultRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[FaultRule, ...]:
        return self._rules

    def rule_for(self, fault: BaseException) -> FaultRule | None:
        """First rule matching the fault, or None for unclassified faults."""
        for rule in self._rules:
            try:
                if rule.matches(fault):
                    return rule
            except Exception:
                logger.debug("fault_rule_guard_failed", kind=rule.kind, exc_info=True)
        return None

    def classify(
        self,
        fault: BaseException,
        correlation_id: str | None = None,
    ) -> ServiceException:
        """Classify a native fault into a ServiceException.

        A ServiceException is returned unchanged. Anything else is wrapped,
        keeping the original fault as the cause; unmatched faults get
        ErrorCode.NONE.

        Args:
            fault: Fault to classify (not modified)
            correlation_id: Correlation id attached verbatim to the error

        Returns:
            ServiceException wrapping a ServiceError
        """
        if isinstance(fault, ServiceException):
            return fault

        rule = self.rule_for(fault)
        details = _snapshot(fault)
        if rule is not None:
            details.update(self._kind_details(rule, fault))

        error = ServiceError(
            code=rule.code if rule is not None else ErrorCode.NONE,
            message=fault_message(fault),
            details=details,
            correlation_id=correlation_id,
        )
        return ServiceException(error, fault)

    def _kind_details(self, rule: FaultRule, fault: BaseException) -> dict[str, str]:
        try:
            return rule.details(fault)
        except Exception:
            logger.debug("fault_detail_extraction_failed", kind=rule.kind, exc_info=True)
            return {}


_default_classifier = FaultClassifier()


def get_classifier() -> FaultClassifier:
    """Get the classifier built on DEFAULT_RULES."""
    return _default_classifier


def classify(fault: BaseException, correlation_id: str | None = None) -> ServiceException:
    """Classify a fault with the default rule table.

    See FaultClassifier.classify.
    """
    return _default_classifier.classify(fault, correlation_id)
