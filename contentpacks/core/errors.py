"""
Error taxonomy for the content pack service.

Every domain error carries a machine-readable code and the HTTP status the
API boundary maps it to. Validation rule violations are never raised; they
are returned inside a ValidationResult.
"""
from dataclasses import dataclass
from typing import List, Optional


class ContentPackError(Exception):
    """Base class for errors surfaced to API callers."""
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class BadRequestError(ContentPackError):
    code = "BAD_REQUEST"
    status_code = 400


@dataclass
class SchemaIssue:
    """A single structural violation at a JSON path."""
    path: str
    message: str
    code: str = "SCHEMA_ERROR"


class SchemaError(ContentPackError):
    """Uploaded document does not match the content pack schema."""
    code = "SCHEMA_ERROR"
    status_code = 400

    def __init__(self, issues: List[SchemaIssue]):
        self.issues = issues
        summary = ", ".join(f"{issue.path}: {issue.message}" for issue in issues)
        super().__init__(f"Schema validation failed: {summary}")


class SecurityViolation(ContentPackError):
    code = "SECURITY_VIOLATION"
    status_code = 400


class NotFoundError(ContentPackError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidPackError(ContentPackError):
    """Activation attempted on a pack whose status is not valid."""
    code = "INVALID_PACK"
    status_code = 400

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class ActivationConflictError(ContentPackError):
    """A concurrent activation won the race for the active slot."""
    code = "CONFLICT"
    status_code = 409


class RepositoryUnavailable(ContentPackError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str = "Content pack storage unavailable"):
        super().__init__(message)


class IdempotencyStoreUnavailable(ContentPackError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str = "Idempotency store unavailable"):
        super().__init__(message)


class ActivePackConflictError(ContentPackError):
    """Storage reports more than one active pack."""
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, active_ids: List[str]):
        self.active_ids = active_ids
        super().__init__(f"Inconsistent state: {len(active_ids)} active content packs")


class InternalError(ContentPackError):
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
