"""
Domain exceptions for the duplicate detector backend.

Services raise these unchanged; the handlers registered in main.py turn
them into the `{success: false, error: {code, message}}` envelope with the
status code carried by each class.
"""


class DuplicateDetectorError(Exception):
    """Base exception for all duplicate detector errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DuplicateDetectorError):
    """Raised when input is malformed: bad ranges, missing required fields."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors: list = None):
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(DuplicateDetectorError):
    """Raised when an entity is absent or not owned by the caller."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} '{identifier}' not found")


class ConflictError(DuplicateDetectorError):
    """Raised when a uniqueness constraint would be violated."""

    code = "CONFLICT"
    status_code = 409


class SessionExpiredOrMissing(DuplicateDetectorError):
    """Raised at the auth boundary when a session is unknown or expired."""

    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Session expired or missing"):
        super().__init__(message)
