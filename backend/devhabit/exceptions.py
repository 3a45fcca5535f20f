"""
DevHabit Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the different error categories.
Why:   Services raise domain errors; global handlers in main.py translate them
       into problem+json responses with the right HTTP status code.
How:   Each exception carries a message (safe to return) and a context dict
       (logged, never returned).

Exception Hierarchy:
    DevHabitError (base)
    ├── ValidationError            → 400 Bad Request (client can fix the input)
    ├── UnauthorizedError          → 401 Unauthorized
    ├── NotFoundError              → 404 Not Found
    ├── NotAcceptableError         → 406 Not Acceptable
    ├── ConflictError              → 409 Conflict
    ├── PreconditionFailedError    → 412 Precondition Failed (stale ETag)
    ├── IdempotencyKeyReuseError   → 422 Unprocessable Entity
    ├── ConfigurationError         → 500 (programming error, fail loudly)
    │   ├── SortMappingNotFoundError
    │   └── LinkGenerationError
    └── DatabaseError              → 500 Internal Server Error

Error categories:
    Client input errors are recoverable by resubmitting corrected input.
    Configuration errors indicate a code defect and are never silently degraded.
    Malformed pagination cursors are NOT errors at all: they decode to "no cursor".
"""

from typing import Any, Dict, Optional


class DevHabitError(Exception):
    """
    Base exception for all DevHabit application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(DevHabitError):
    """
    Raised when client input fails validation or a business rule.

    When:    Unknown sort or shape field, malformed idempotency key,
             tag limit reached, unknown habit referenced by an entry.
    HTTP:    400 Bad Request
    """

    status_code = 400
    title = "Bad Request"

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


class UnauthorizedError(DevHabitError):
    """Missing, expired or otherwise invalid bearer token. HTTP 401."""

    status_code = 401
    title = "Unauthorized"

    def __init__(self, message: str = "Authentication is required", context=None):
        super().__init__(message=message, context=context)


class NotFoundError(DevHabitError):
    """
    Raised when a requested resource does not exist for the current user.

    Why a custom exception:
        SQLAlchemy returns None for missing records. Services convert that
        into NotFoundError so routes stay free of status-code plumbing.
    HTTP:    404 Not Found
    """

    status_code = 404
    title = "Not Found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx.update({"resource": resource, "resource_id": resource_id})
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class NotAcceptableError(DevHabitError):
    """The Accept header names no media type this API can produce. HTTP 406."""

    status_code = 406
    title = "Not Acceptable"

    def __init__(self, accept: str, supported: Optional[list] = None):
        super().__init__(
            message=f"The media type '{accept}' is not supported",
            context={"accept": accept, "supported": supported or []},
        )
        self.accept = accept


class ConflictError(DevHabitError):
    """A unique business key already exists (e.g. tag name). HTTP 409."""

    status_code = 409
    title = "Conflict"


class PreconditionFailedError(DevHabitError):
    """
    Raised when an If-Match precondition does not match the stored ETag.

    The client wrote against a stale representation; re-fetch and retry.
    HTTP:    412 Precondition Failed
    """

    status_code = 412
    title = "Precondition Failed"


class IdempotencyKeyReuseError(DevHabitError):
    """
    Raised when an Idempotency-Key is replayed with a different request body.

    HTTP:    422 Unprocessable Entity
    """

    status_code = 422
    title = "Unprocessable Entity"


class ConfigurationError(DevHabitError):
    """
    A programming error detected at runtime.

    These must fail loudly: they point at a broken definition in code, not
    at bad client input. The handler logs the stack trace and returns 500.
    """

    status_code = 500
    title = "Internal Server Error"


class SortMappingNotFoundError(ConfigurationError):
    """No sort mapping is registered for a (DTO, entity) pair."""

    def __init__(self, dto_type: type, entity_type: type):
        super().__init__(
            message=(
                f"Cannot find exact property mapping between "
                f"'{dto_type.__name__}' and '{entity_type.__name__}'"
            ),
            context={"dto": dto_type.__name__, "entity": entity_type.__name__},
        )


class LinkGenerationError(ConfigurationError):
    """An endpoint name could not be resolved to a URL."""

    def __init__(self, endpoint_name: str, controller: Optional[str] = None):
        target = f"{controller}.{endpoint_name}" if controller else endpoint_name
        super().__init__(
            message=f"Could not generate a link for endpoint '{target}'",
            context={"endpoint": endpoint_name, "controller": controller},
        )


class DatabaseError(DevHabitError):
    """
    Raised when a database operation fails unexpectedly.

    Security: The message returned to the client is always generic. The
    original error type is kept in context for server-side logs.
    HTTP:    500 Internal Server Error
    """

    status_code = 500
    title = "Internal Server Error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
