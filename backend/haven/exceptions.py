"""
Handcrafted Haven Backend — Custom Exception Hierarchy
======================================================

What:  The errors services raise when a marketplace request cannot proceed.
Why:   Each exception maps to one HTTP status and carries a message that is
       safe to show to shoppers and artisans as-is.
How:   Every class holds `message` plus a `context` dict. The handlers in
       main.py turn them into {"error", "message", "details", "request_id"}
       bodies; context is only echoed back on 4xx responses.
Who:   Raised by services, dependencies and middleware.
When:  Bad form input, missing sessions, ownership checks, missing rows,
       duplicates, throttling, and storage or database failures.

Exception Hierarchy:
    HavenError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error (storage_error)
    └── DatabaseError            → 500 Internal Server Error (server_error)
"""

from typing import Any, Dict, Optional


class HavenError(Exception):
    """
    Base exception for all Handcrafted Haven application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(HavenError):
    """
    Raised when client input fails a business rule.

    When:    Missing required fields, bad email shape, rating out of range,
             unsupported image type, oversized upload.
    HTTP:    400 Bad Request

    FastAPI's own schema validation still answers with 422; this error is
    for the friendlier checks done in the service layer.
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


class AuthenticationError(HavenError):
    """
    Raised when credentials or a bearer token are missing, wrong or expired.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Please sign in to continue.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(HavenError):
    """
    Raised when a signed-in user acts on something they do not own.

    When:    Editing another artisan's product, deleting someone else's
             review, buyer trying to list a product.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(HavenError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; the service layer converts
    that into this error so routes stay free of status-code logic.
    HTTP:    404 Not Found

    A caller may pass `message` to override the generated text when the
    storefront has a specific wording (e.g. "Product not found.").
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(HavenError):
    """
    Raised when a write collides with existing data.

    When:    Email already registered, second review by the same user.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "This record already exists.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(HavenError):
    """
    Raised when image storage operations fail.

    When:    Disk full, permission denied, directory not writable, I/O error.
    HTTP:    500 Internal Server Error

    Recovery:
        - Log the error with full file path and OS error for debugging
        - Return a friendly message to the client (never the file system path)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(HavenError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Detailed error info (SQL, constraint names) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(HavenError):
    """
    Raised when a client (or a single account's sign-in attempts) exceeds a limit.

    HTTP:    429 Too Many Requests

    Response includes:
        - retry_after: Seconds until the window frees a slot
        - Retry-After header for HTTP-compliant clients
    """

    def __init__(
        self,
        retry_after: int = 60,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = (
                f"Rate limit exceeded. Please wait {retry_after} seconds "
                f"before making more requests."
            )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
