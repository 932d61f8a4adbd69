"""
Error taxonomy of the stores.

Routes never translate these by hand; main.py registers one handler per class.
"""


class StoreError(Exception):
    status_code = 500
    error_code = "STORE_ERROR"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.error_code)
        self.message = message or self.error_code
        self.details = details

    def to_dict(self) -> dict:
        out = {"error_code": self.error_code, "message": self.message}
        if self.details:
            out.update(self.details)
        return out


class ValidationError(StoreError):
    """Malformed, missing or out-of-enum field. Not retryable."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFound(StoreError):
    status_code = 404
    error_code = "NOT_FOUND"


class Forbidden(NotFound):
    """Tenant-scope violation. Reported exactly like NotFound so foreign rows stay invisible."""

    error_code = "NOT_FOUND"


class Conflict(StoreError):
    status_code = 409
    error_code = "CONFLICT"


class Unavailable(StoreError):
    status_code = 503
    error_code = "UNAVAILABLE"
    retry_after_s = 1


class ChannelOverflow(StoreError):
    """A subscriber fell behind and must resync. Delivered as a stream event, never raised to writers."""

    status_code = 409
    error_code = "RESYNC_REQUIRED"
