"""
Typed errors raised by the domain services.

Routes never inspect messages; ``create_app`` maps each class to an HTTP
status through ``status_code``.
"""
from typing import Optional


class LabourHubError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "LABOURHUB_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(LabourHubError):
    """Input rejected before any store mutation."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(LabourHubError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id=None):
        message = f"{entity} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = str(entity_id) if entity_id is not None else None


class ConflictError(LabourHubError):
    """A true conflict, as opposed to an idempotent repeat."""

    status_code = 409
    code = "CONFLICT"


class PermissionDeniedError(LabourHubError):
    status_code = 403
    code = "FORBIDDEN"
