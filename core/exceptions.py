"""
Custom exceptions for the Table Order engine.

Exception Hierarchy:
    OrderEngineError (base)
    ├── ValidationError            - 400, malformed or missing input
    ├── UnauthorizedError          - 401, payment callback failed authenticity check
    ├── NotFoundError              - 404, order / menu / print job does not exist
    │   └── ProviderNotConfiguredError - payment provider has no credentials
    ├── ConflictError              - 409, lost an optimistic-concurrency race
    ├── GoneError                  - 410, menu item no longer available
    ├── UnprocessableEntityError   - 422, unknown item/option/choice or price mismatch
    └── InternalError              - 500, invariant broken in stored data

    ConditionFailedError   - store-level compare-and-swap failure (not an HTTP error)
    PrinterError           - printer transport failure (retried by the dispatcher)

Usage:
    Services raise the HTTP-mapped errors; the Flask error handler renders
    them with to_problem(). ConditionFailedError is raised by the store and
    translated by each caller: into ConflictError on direct request paths,
    or swallowed as a benign outcome by background work.
"""

from typing import Optional, Dict, Any


class OrderEngineError(Exception):
    """
    Base exception for all Table Order engine errors.

    Subclasses set status_code and title; the problem type identifier is
    derived from the status code so that it stays stable across releases.
    """

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message (used as problem detail)
            details: Optional dictionary with additional context for logging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    @property
    def problem_type(self) -> str:
        return f"https://httpstatuses.com/{self.status_code}"

    def to_problem(self) -> Dict[str, Any]:
        """Render as a problem document: type, title, status, detail."""
        return {
            "type": self.problem_type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.message,
        }


# =============================================================================
# REQUEST ERRORS - raised before any mutation
# =============================================================================

class ValidationError(OrderEngineError):
    """Request is malformed, incomplete, or violates a business rule."""

    status_code = 400
    title = "Bad Request"


class UnauthorizedError(OrderEngineError):
    """
    A payment callback could not be authenticated.

    Raised before the order is looked up, so a forged callback never
    touches stored state.
    """

    status_code = 401
    title = "Unauthorized"

    def __init__(self, provider: str, message: str = "Invalid payment callback signature"):
        super().__init__(message, {"provider": provider})
        self.provider = provider


class NotFoundError(OrderEngineError):
    """The requested order, menu, or print job does not exist."""

    status_code = 404
    title = "Not Found"


class ProviderNotConfiguredError(NotFoundError):
    """
    A payment provider was named that has no credentials configured.

    Providers are resolved once from configuration at startup; a callback
    or payment request for any other name ends here instead of in an
    undefined lookup.
    """

    def __init__(self, provider: str):
        super().__init__(
            f"Payment provider {provider} not configured",
            {"provider": provider},
        )
        self.provider = provider


class ConflictError(OrderEngineError):
    """
    The order changed underneath the request.

    Surfaced on direct request paths (cancel, reconcile, status changes)
    when the conditional write's status guard fails. Never auto-retried.
    """

    status_code = 409
    title = "Conflict"


class GoneError(OrderEngineError):
    """A requested menu item exists in the snapshot but is not available."""

    status_code = 410
    title = "Gone"


class UnprocessableEntityError(OrderEngineError):
    """Unknown item/option/choice, or a client price that does not match the menu."""

    status_code = 422
    title = "Unprocessable Entity"


class InternalError(OrderEngineError):
    """Stored data violates an invariant the engine relies on."""

    status_code = 500
    title = "Internal Server Error"


# =============================================================================
# COLLABORATOR ERRORS - never rendered directly
# =============================================================================

class ConditionFailedError(Exception):
    """
    A conditional write was rejected because its predicate did not hold.

    The store raises this atomically: when it is raised, nothing was written.
    """

    def __init__(self, table: str, key: Dict[str, Any], condition: Any = None):
        super().__init__(f"Condition {condition!r} failed for {table} {key}")
        self.table = table
        self.key = key
        self.condition = condition


class PrinterError(Exception):
    """The printer endpoint rejected or could not receive a payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
