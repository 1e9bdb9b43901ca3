class ServiceError(Exception):
    """Base exception for service layer failures."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class NotFoundError(ServiceError):
    """Raised when a tenant, service, professional or booking reference is unknown."""


class ValidationError(ServiceError):
    """Raised when a request is malformed; nothing has been written."""


class ConflictError(ServiceError):
    """Raised when the requested time range is no longer free."""

    def __init__(
        self,
        message: str = "slot unavailable",
        *,
        conflicting_booking_id: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.conflicting_booking_id = conflicting_booking_id


class DependencyFailure(ServiceError):
    """Raised when a side effect (email, notification) fails after a commit."""


class DownstreamServiceError(DependencyFailure):
    """Raised when an external service returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code
