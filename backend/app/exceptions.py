"""Domain error hierarchy shared by services and the HTTP layer.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to, so callers can tell a duplicate apart from a validation failure without
parsing messages.
"""


class ServiceError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code = 500
    default_code = "INTERNAL_ERROR"
    default_message = "Internal error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class NotFoundError(ServiceError):
    """Row absent, or hidden by an active/access predicate."""

    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    """Uniqueness or duplicate-action violation."""

    status_code = 409
    default_code = "CONFLICT"
    default_message = "Resource already exists"


class ForbiddenError(ServiceError):
    """Caller does not own the resource, or the target refuses the action."""

    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Not allowed"


class InvalidInputError(ServiceError):
    """Malformed identifier, disallowed update field or rejected transition."""

    status_code = 400
    default_code = "INVALID_INPUT"
    default_message = "Invalid input"


class AuthenticationError(ServiceError):
    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class StoreUnavailableError(ServiceError):
    """The primary store could not be reached. Never confused with NotFound."""

    status_code = 503
    default_code = "STORE_UNAVAILABLE"
    default_message = "Data store unavailable"
