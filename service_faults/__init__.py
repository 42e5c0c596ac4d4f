"""service-faults: fault classification for FastAPI microservices.

This package turns any exception raised while handling a request into a
stable, serializable ``ServiceError`` and back:
- Classification of native faults into the ``ErrorCode`` taxonomy
- Best-effort reconstruction of native faults from a ``ServiceError``
- Fault boundary and correlation-header middleware for FastAPI
"""

from service_faults.errors import (
    ErrorCode,
    Reconstruction,
    ServiceError,
    ServiceException,
    classify,
    reconstruct,
)

__version__ = "0.1.0"
__all__ = [
    "ErrorCode",
    "Reconstruction",
    "ServiceError",
    "ServiceException",
    "__version__",
    "classify",
    "reconstruct",
]
