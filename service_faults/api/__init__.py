"""HTTP routes exposed by service-faults."""

from service_faults.api.error_codes import router as error_codes_router

__all__ = ["error_codes_router"]
