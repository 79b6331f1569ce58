"""
StudyShare Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the error scenarios of the API.
Why:   Custom exceptions let global handlers pick the HTTP status code and
       a client-safe message without try/except blocks in every route.
How:   Each exception carries a message and an optional context dict.
       Handlers registered in main.py turn them into structured JSON.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    StudyShareError (base)
    ├── ValidationError          → 400 Bad Request
    │   └── UploadRejectedError  → 400 (unsupported type / oversize upload)
    ├── UnauthorizedError        → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DataUnavailableError     → 503 Service Unavailable (read path, retryable)
    ├── DatabaseError            → 500 Internal Server Error (write path)
    ├── FileStorageError         → 500 Internal Server Error
    └── EmailDeliveryError       → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class StudyShareError(Exception):
    """
    Base exception for all StudyShare application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only some handlers return it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StudyShareError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level problems are still reported by
    FastAPI itself with 422.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UploadRejectedError(ValidationError):
    """
    Raised when an uploaded file cannot be accepted.

    When: Unsupported content type, empty file, or file larger than
          settings.max_file_size.
    """

    def __init__(
        self,
        message: str = "The uploaded file was rejected",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field="file", context=context)


class UnauthorizedError(StudyShareError):
    """Missing, invalid or expired credentials. HTTP 401."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(StudyShareError):
    """Authenticated, but not allowed to touch this object (e.g. not the owner). HTTP 403."""

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(StudyShareError):
    """
    Raised when a requested object does not exist.

    SQLAlchemy returns None for missing rows; the service layer converts
    that into NotFoundError so routes stay free of None checks.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(StudyShareError):
    """The request collides with existing state (e.g. email already registered). HTTP 409."""

    def __init__(
        self,
        message: str = "The request conflicts with existing data",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DataUnavailableError(StudyShareError):
    """
    Raised when the backing store cannot answer a read query.

    What:    Connection lost, query failed, database unreachable.
    HTTP:    503 Service Unavailable with Retry-After.
    Retry:   Never retried inside the service; the client may retry.
    Partial: No partial results are ever returned with this error.
    """

    def __init__(
        self,
        message: str = "Resource data is temporarily unavailable. Please try again shortly.",
        retry_after: int = 5,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.retry_after = retry_after


class DatabaseError(StudyShareError):
    """
    Raised when a database write fails unexpectedly.

    Security Note:
        The message returned to the client is always generic. Constraint
        names, SQL text and driver messages are only logged.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(StudyShareError):
    """Local disk or S3 operation failed. HTTP 500, details logged only."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmailDeliveryError(StudyShareError):
    """SMTP delivery failed after all retries. HTTP 503."""

    def __init__(
        self,
        message: str = "Could not send email right now. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StudyShareError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    Response includes a Retry-After header for HTTP-compliant clients.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
