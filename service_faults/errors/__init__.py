"""Fault classification and reconstruction engine.

- codes: ErrorCode taxonomy
- models: ServiceError value object, ServiceException carrier
- faults: native fault kinds Python does not ship (argument errors, ...)
- classifier: native fault -> ServiceException
- reconstructor: ServiceException -> best-effort native fault
"""

from service_faults.errors.classifier import (
    DEFAULT_RULES,
    GENERIC_DETAIL_KEYS,
    FaultClassifier,
    FaultRule,
    classify,
    find_shadowed_rules,
)
from service_faults.errors.codes import PROTOCOL_VIOLATIONS, ErrorCode
from service_faults.errors.faults import (
    ArgumentError,
    ArgumentNullError,
    ArgumentOutOfRangeError,
    ObjectDisposedError,
)
from service_faults.errors.models import HEADER_ERROR_CODES, ServiceError, ServiceException
from service_faults.errors.reconstructor import (
    ROUND_TRIP_SAFE,
    FaultReconstructor,
    Reconstruction,
    reconstruct,
)

__all__ = [
    "DEFAULT_RULES",
    "GENERIC_DETAIL_KEYS",
    "HEADER_ERROR_CODES",
    "PROTOCOL_VIOLATIONS",
    "ROUND_TRIP_SAFE",
    "ArgumentError",
    "ArgumentNullError",
    "ArgumentOutOfRangeError",
    "ErrorCode",
    "FaultClassifier",
    "FaultReconstructor",
    "FaultRule",
    "ObjectDisposedError",
    "Reconstruction",
    "ServiceError",
    "ServiceException",
    "classify",
    "find_shadowed_rules",
    "reconstruct",
]
