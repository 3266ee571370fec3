"""
PawPath Errors

Domain error taxonomy shared by the services and the HTTP layer.

Services raise these before any mutation when a check fails. Inside an
atomic section, store failures are reported as TransientStoreError so the
caller can retry the whole operation.
"""

from typing import Any, Dict, Optional


class PawPathError(Exception):
    """Base class for every error the core raises on purpose."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(PawPathError):
    """Malformed or out-of-range input. Not retryable."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(PawPathError):
    """Caller lacks the role or ownership the operation requires."""

    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "You are not allowed to perform this action"):
        # No details: authorization failures never describe the resource
        super().__init__(message)


class NotFoundError(PawPathError):
    """Referenced entity does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        super().__init__(f"{entity} not found", entity=entity, id=entity_id)


class ConflictError(PawPathError):
    """The operation would violate a state invariant."""

    status_code = 409
    code = "conflict"


class TransientStoreError(PawPathError):
    """Store contention or timeout. Safe to retry the whole operation."""

    status_code = 503
    code = "store_unavailable"

    def __init__(self, message: str = "The store is busy, please retry"):
        super().__init__(message, retryable=True)
