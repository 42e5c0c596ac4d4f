"""
Tests for the fault reconstructor.

Covers:
- Round trip classify -> reconstruct on round-trip-safe kinds
- Lossy kinds rebuild best-effort faults marked inexact
- Native codes, the catch-all tag and fallbacks never raise
"""

import asyncio
import errno
import json
import os
from typing import Any

import httpx
import pydantic
import pytest

from service_faults.errors.faults import ArgumentOutOfRangeError


def _caught(fault: BaseException) -> BaseException:
    try:
        raise fault
    except BaseException as exc:  # noqa: BLE001 - test helper
        return exc


def _safe_faults() -> list[tuple[str, Any]]:
    from zoneinfo import ZoneInfoNotFoundError

    from service_faults.errors.faults import (
        ArgumentError,
        ArgumentNullError,
        ArgumentOutOfRangeError,
        ObjectDisposedError,
    )

    return [
        ("argument-null", lambda: ArgumentNullError("customer required", param_name="customer")),
        (
            "argument-out-of-range",
            lambda: ArgumentOutOfRangeError("page", param_name="page", actual_value="-1"),
        ),
        (
            "argument-out-of-range-int",
            lambda: ArgumentOutOfRangeError("page", param_name="page", actual_value=-1),
        ),
        (
            "argument-out-of-range-float",
            lambda: ArgumentOutOfRangeError("ratio", param_name="ratio", actual_value=1.5),
        ),
        (
            "argument-out-of-range-bool",
            lambda: ArgumentOutOfRangeError("flag", param_name="flag", actual_value=False),
        ),
        (
            "argument-out-of-range-none",
            lambda: ArgumentOutOfRangeError("page", param_name="page"),
        ),
        ("argument", lambda: ArgumentError("bad sort", param_name="sort")),
        ("value", lambda: ValueError("bad value")),
        ("object-disposed", lambda: ObjectDisposedError("closed", object_name="pool")),
        ("zero-division", lambda: ZeroDivisionError("division by zero")),
        ("overflow", lambda: OverflowError("too big")),
        ("arithmetic", lambda: FloatingPointError("fp")),
        ("time-zone", lambda: ZoneInfoNotFoundError("Mars/Base")),
        ("key", lambda: KeyError("sku-1")),
        ("key-int", lambda: KeyError(42)),
        ("index", lambda: IndexError("list index out of range")),
        ("timeout", lambda: TimeoutError("upstream slow")),
        ("httpx-timeout", lambda: httpx.ReadTimeout("read timed out")),
        ("cancelled", lambda: asyncio.CancelledError("shutdown")),
        ("invalid-url", lambda: httpx.InvalidURL("bad url")),
        (
            "file-not-found",
            lambda: FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), "/srv/missing"),
        ),
        (
            "permission",
            lambda: PermissionError(errno.EACCES, os.strerror(errno.EACCES), "/root"),
        ),
        (
            "name-too-long",
            lambda: OSError(errno.ENAMETOOLONG, os.strerror(errno.ENAMETOOLONG), "a" * 300),
        ),
        ("end-of-stream", lambda: EOFError("eof")),
        ("recursion", lambda: RecursionError("deep")),
        ("not-implemented", lambda: NotImplementedError("later")),
        ("runtime", lambda: RuntimeError("bad state")),
        ("module-not-found", lambda: ModuleNotFoundError("no plugins", name="plugins")),
        ("import", lambda: ImportError("cannot import", name="pkg")),
        ("attribute", lambda: AttributeError("no total", name="total")),
        ("type", lambda: TypeError("not a str")),
        ("memory", lambda: MemoryError("exhausted")),
    ]


SAFE_FAULTS = _safe_faults()

KIND_FIELDS = ("param_name", "actual_value", "object_name", "errno", "filename", "name")


# =============================================================================
# Round Trip
# =============================================================================


class TestRoundTrip:
    """classify -> reconstruct on round-trip-safe kinds."""

    @pytest.mark.parametrize(
        "make_fault",
        [case[1] for case in SAFE_FAULTS],
        ids=[case[0] for case in SAFE_FAULTS],
    )
    def test_rebuilds_same_type_and_fields(self, make_fault: Any) -> None:
        """Same type, same message, same kind-specific fields, exact."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import ROUND_TRIP_SAFE, reconstruct

        original = _caught(make_fault())

        classified = classify(original)
        result = reconstruct(classified)

        assert classified.code in ROUND_TRIP_SAFE
        assert result.exact is True
        assert type(result.fault) is type(original)
        assert str(result.fault) == str(original)
        assert result.fault.args == original.args
        for field in KIND_FIELDS:
            rebuilt_value = getattr(result.fault, field, None)
            original_value = getattr(original, field, None)
            assert rebuilt_value == original_value
            assert type(rebuilt_value) is type(original_value)

    def test_round_trip_survives_the_wire(self) -> None:
        """Rebuilding from a parsed wire body is still exact."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.models import ServiceError, ServiceException
        from service_faults.errors.reconstructor import reconstruct

        body = classify(_caught(KeyError("sku-1")), correlation_id="txn-1").error.to_json()

        result = reconstruct(ServiceException(ServiceError.from_json(body)))

        assert result.exact is True
        assert isinstance(result.fault, KeyError)
        assert result.fault.args == ("sku-1",)

    def test_stripped_details_are_inexact(self) -> None:
        """Without the Type detail the default class is used, inexact."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        classified = classify(_caught(httpx.ReadTimeout("read timed out")))

        result = reconstruct(ServiceException(classified.error.without_details()))

        assert result.exact is False
        assert type(result.fault) is TimeoutError
        assert str(result.fault) == "read timed out"

    def test_type_outside_whitelist_is_not_used(self) -> None:
        """Type names from wire data never select arbitrary classes."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.from_code(
            ErrorCode.TIMEOUT,
            "slow",
            {"Type": "subprocess.CalledProcessError"},
        )

        result = reconstruct(fault)

        assert type(result.fault) is TimeoutError
        assert result.exact is False

    @pytest.mark.parametrize(
        "make_fault",
        [
            lambda: KeyError(("sku-1", "eu")),
            lambda: ArgumentOutOfRangeError("range", param_name="span", actual_value=[1, 2]),
        ],
        ids=["tuple-key", "list-value"],
    )
    def test_unrestorable_value_type_is_inexact(self, make_fault: Any) -> None:
        """Values of a type that cannot be rebuilt from text are never exact."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import reconstruct

        result = reconstruct(classify(_caught(make_fault())))

        assert result.exact is False

    def test_value_without_recorded_type_is_inexact(self) -> None:
        """A value whose type detail was lost comes back as text, inexact."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.from_code(
            ErrorCode.KEY_NOT_FOUND,
            "42",
            {"Type": "KeyError", "Key": "42"},
        )

        result = reconstruct(fault)

        assert result.fault.args == ("42",)
        assert result.exact is False

    def test_missing_required_detail_is_inexact(self) -> None:
        """A kind-specific key lost on the way makes the rebuild inexact."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.faults import ArgumentNullError
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.from_code(
            ErrorCode.ARGUMENT_NULL,
            "customer required",
            {"Type": "service_faults.errors.faults.ArgumentNullError"},
        )

        result = reconstruct(fault)

        assert isinstance(result.fault, ArgumentNullError)
        assert result.exact is False


# =============================================================================
# Lossy Kinds
# =============================================================================


class TestLossyKinds:
    """Kinds rebuilt best-effort."""

    def test_exception_group_keeps_member_type_names(self) -> None:
        """Members are rebuilt as plain exceptions named after the originals."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import reconstruct

        group = ExceptionGroup("batch failed", [ValueError("a"), KeyError("b")])

        result = reconstruct(classify(_caught(group)))

        assert result.exact is False
        assert isinstance(result.fault, ExceptionGroup)
        assert result.fault.message == "batch failed"
        assert [str(member) for member in result.fault.exceptions] == ["ValueError", "KeyError"]

    def test_json_decode_keeps_position(self) -> None:
        """Reason, line and column survive; the document does not."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import reconstruct

        try:
            json.loads('{\n  "a": }')
        except json.JSONDecodeError as exc:
            original = exc

        result = reconstruct(classify(original))

        assert result.exact is False
        assert isinstance(result.fault, json.JSONDecodeError)
        assert result.fault.msg == original.msg
        assert result.fault.lineno == original.lineno
        assert result.fault.colno == original.colno

    def test_validation_error_is_rebuilt(self) -> None:
        """A pydantic ValidationError with the original title and location."""
        from pydantic import BaseModel

        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import reconstruct

        class Order(BaseModel):
            quantity: int

        try:
            Order(quantity="many")  # type: ignore[arg-type]
        except pydantic.ValidationError as exc:
            original = exc

        result = reconstruct(classify(original))

        assert result.exact is False
        assert isinstance(result.fault, pydantic.ValidationError)
        assert result.fault.title == "Order"
        assert result.fault.errors()[0]["loc"] == ("quantity",)

    def test_http_failure_is_rebuilt_without_request(self) -> None:
        """httpx errors come back with their type but no request."""
        from service_faults.errors.classifier import classify
        from service_faults.errors.reconstructor import reconstruct

        request = httpx.Request("GET", "https://orders.example.test/")

        result = reconstruct(classify(httpx.ConnectError("refused", request=request)))

        assert result.exact is False
        assert type(result.fault) is httpx.ConnectError

    def test_lossy_codes_are_not_round_trip_safe(self) -> None:
        """Lossy tags are excluded from ROUND_TRIP_SAFE."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.reconstructor import ROUND_TRIP_SAFE

        lossy = {
            ErrorCode.AGGREGATE_FAILURE,
            ErrorCode.VALIDATION_FAILURE,
            ErrorCode.INVALID_DATA,
            ErrorCode.FORMAT_INVALID,
            ErrorCode.HTTP_IO_FAILURE,
        }

        assert not lossy & ROUND_TRIP_SAFE


# =============================================================================
# Native Codes and Fallbacks
# =============================================================================


class TestFallbacks:
    """Codes without a native fault and failed rebuilds."""

    def test_protocol_violation_rebuilds_itself(self) -> None:
        """Header violations are already native."""
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.missing_header("channel-id")

        result = reconstruct(fault)

        assert result.fault is fault
        assert result.exact is True

    def test_bad_request_rebuilds_itself(self) -> None:
        """BadRequest is native to the library."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.from_code(ErrorCode.BAD_REQUEST, "bad")

        assert reconstruct(fault).fault is fault

    def test_unclassified_rebuilds_plain_exception(self) -> None:
        """ErrorCode.NONE gives a generic Exception carrying the message."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        result = reconstruct(ServiceException.from_code(ErrorCode.NONE, "unknown"))

        assert type(result.fault) is Exception
        assert str(result.fault) == "unknown"
        assert result.exact is False

    def test_unmapped_tag_rebuilds_plain_exception(self) -> None:
        """Tags without a rebuild rule fall back to Exception."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import FaultReconstructor

        reconstructor = FaultReconstructor(rules=())

        result = reconstructor.reconstruct(ServiceException.from_code(ErrorCode.TIMEOUT, "slow"))

        assert type(result.fault) is Exception
        assert result.exact is False

    def test_failed_rebuild_falls_back(self) -> None:
        """Corrupt details never make reconstruct raise."""
        from service_faults.errors.codes import ErrorCode
        from service_faults.errors.models import ServiceException
        from service_faults.errors.reconstructor import reconstruct

        fault = ServiceException.from_code(
            ErrorCode.INVALID_DATA,
            "bad json",
            {"Type": "json.decoder.JSONDecodeError", "LineNumber": "not-a-number"},
        )

        result = reconstruct(fault)

        assert type(result.fault) is Exception
        assert str(result.fault) == "bad json"
        assert result.exact is False
