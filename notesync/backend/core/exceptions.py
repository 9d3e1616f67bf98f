"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

The last group is the sync taxonomy used by the offline client:
network-class errors are recovered inside the orchestrator, the rest
propagate to the caller.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class ExternalServiceError(ApplicationError):
    """Raised when an external service call fails."""

    def __init__(self, message: str = "External service error") -> None:
        super().__init__(message, code="SYS_EXTERNAL_SERVICE_ERROR")


class DatabaseError(ApplicationError):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")


# =============================================================================
# Sync taxonomy
# =============================================================================


class NetworkUnreachableError(ApplicationError):
    """
    The backend could not be reached or could not answer.

    Covers transport failures (connect errors, timeouts) and 5xx responses.
    Triggers local fallback; never shown to the user as an error.
    """

    def __init__(self, message: str = "Network unreachable", status: int | None = None) -> None:
        self.status = status
        super().__init__(message, code="NET_UNREACHABLE")


class ApplicationRejectedError(ApplicationError):
    """
    The backend answered and refused the request (404, 400, 409, 422, ...).

    Carries the HTTP status and the error code from the response envelope.
    """

    def __init__(
        self,
        message: str = "Request rejected",
        status: int = 400,
        code: str = "REQ_REJECTED",
        details: dict | None = None,
    ) -> None:
        self.status = status
        self.details = details or {}
        super().__init__(message, code=code)


class LocalStoreInconsistencyError(ApplicationError):
    """A local mutation targeted a note or tag that is not in the local store."""

    def __init__(self, message: str = "Local store is inconsistent") -> None:
        super().__init__(message, code="LOCAL_INCONSISTENT")


class CloudBackupError(ApplicationError):
    """Pushing or pulling a cloud snapshot failed."""

    def __init__(self, message: str = "Cloud backup failed") -> None:
        super().__init__(message, code="BACKUP_FAILED")
