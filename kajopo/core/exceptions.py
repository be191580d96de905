"""Custom exceptions for the application."""


class BaseAPIException(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = None,
        details: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(BaseAPIException):
    """Wrong credentials or missing session."""

    def __init__(self, message: str = "Authentication failed", details: dict = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details=details
        )


class AccountLockedError(BaseAPIException):
    """Too many failed login attempts for an email."""

    def __init__(self, message: str = "Account temporarily locked", details: dict = None):
        super().__init__(
            message=message,
            status_code=423,
            error_code="ACCOUNT_LOCKED",
            details=details
        )


class AuthorizationError(BaseAPIException):
    """Authorization error."""

    def __init__(self, message: str = "Insufficient permissions", details: dict = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHORIZATION_ERROR",
            details=details
        )


class ValidationError(BaseAPIException):
    """Missing or malformed input, never sent to the backend."""

    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )


class NotFoundError(BaseAPIException):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND_ERROR",
            details=details
        )


class ConflictError(BaseAPIException):
    """Resource conflict error."""

    def __init__(self, message: str = "Resource conflict", details: dict = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT_ERROR",
            details=details
        )


class BackendUnavailableError(BaseAPIException):
    """The hosted backend could not be reached or initialized."""

    def __init__(
        self,
        message: str = "Service is temporarily unavailable. Please try again.",
        details: dict = None
    ):
        super().__init__(
            message=message,
            status_code=503,
            error_code="BACKEND_UNAVAILABLE",
            details=details
        )


class ExternalServiceError(BaseAPIException):
    """The backend answered with an error."""

    def __init__(self, message: str = "External service error", details: dict = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            details=details
        )


class StorageCorruptionError(BaseAPIException):
    """Persisted state could not be decoded."""

    def __init__(self, message: str = "Stored data is corrupted", details: dict = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="STORAGE_CORRUPTION",
            details=details
        )


class ConfigurationError(BaseAPIException):
    """Configuration error."""

    def __init__(self, message: str = "Configuration error", details: dict = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details=details
        )
