"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        """Initialize exception with message, status code and error code."""
        self.message = message
        self.status_code = status_code
        self.code = code or self.default_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", code: str | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, code=code)


class BadRequestException(AppException):
    """Bad request exception."""

    default_code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request", code: str | None = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, code=code)


class InvalidStatusException(BadRequestException):
    """Operation attempted from a state that forbids it."""

    default_code = "INVALID_STATUS"

    def __init__(self, message: str = "Invalid status for this operation"):
        """Initialize with 400 status code."""
        super().__init__(message)


class ConflictException(AppException):
    """Conflict exception (resource contention lost)."""

    default_code = "CONFLICT"

    def __init__(self, message: str = "Conflict", code: str | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, code=code)


class SequenceExhaustedException(AppException):
    """Atomic sequence increment unavailable; the operation is rejected."""

    default_code = "SEQUENCE_EXHAUSTION"

    def __init__(self, message: str = "Sequence generator unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class TransientStoreException(AppException):
    """Unexpected store failure inside an atomic unit; safe to retry."""

    default_code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Temporary storage failure, please retry"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
