"""
Native fault kinds Python does not ship.

Application code raises these where the builtins are too coarse: a
``ValueError`` cannot say which parameter was wrong, a closed resource has no
dedicated exception. Each kind keeps the builtin it refines as a base class,
so ``except ValueError`` / ``except RuntimeError`` still catch them.

Hierarchy::

    ValueError
    └── ArgumentError             (param_name)
        ├── ArgumentNullError
        └── ArgumentOutOfRangeError   (actual_value)
    RuntimeError
    └── ObjectDisposedError       (object_name)
"""

from __future__ import annotations

from typing import Any


class ArgumentError(ValueError):
    """One of the arguments provided to a function is not valid.

    Attributes:
        message: Human-readable error description.
        param_name: Name of the offending parameter, if known.
    """

    def __init__(self, message: str = "", param_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.param_name = param_name

    def __str__(self) -> str:
        return self.message


class ArgumentNullError(ArgumentError):
    """None was passed for an argument that does not accept it."""


class ArgumentOutOfRangeError(ArgumentError):
    """An argument is outside the range of values the function accepts.

    Attributes:
        actual_value: The rejected value, if known.
    """

    def __init__(
        self,
        message: str = "",
        param_name: str | None = None,
        actual_value: Any = None,
    ) -> None:
        super().__init__(message, param_name)
        self.actual_value = actual_value


class ObjectDisposedError(RuntimeError):
    """An operation was attempted on a closed or released object.

    Attributes:
        message: Human-readable error description.
        object_name: Name of the closed object, if known.
    """

    def __init__(self, message: str = "", object_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.object_name = object_name

    def __str__(self) -> str:
        return self.message
