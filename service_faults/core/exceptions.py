"""
service-faults - Library Exceptions

Errors raised by the library itself (misconfiguration), as opposed to the
faults it classifies. Application faults are carried by
``service_faults.errors.ServiceException``.

Anti-Patterns Avoided:
- Exception Shadowing: namespaced exceptions, ServiceFaultsError instead of
  builtins like ValueError
"""


class ServiceFaultsError(Exception):
    """Base exception for service-faults.

    All library exceptions inherit from this base class.
    """
    pass


class ConfigurationError(ServiceFaultsError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, setting: str, message: str) -> None:
        """Initialize ConfigurationError with the offending setting.

        Args:
            setting: Name of the invalid setting
            message: Error description
        """
        self.setting = setting
        self.message = message
        super().__init__(f"Invalid setting '{setting}': {message}")
