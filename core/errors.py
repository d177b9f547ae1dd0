"""
core/errors.py -- Error taxonomy shared by the store, the domain layer and the API.

Every failure a caller can observe falls into one of five kinds. Each kind
carries the name of the offending input field so the API layer can render
the uniform {field, message} envelope without knowing which operation failed.

The store raises StoreError directly with a kind and a field. Nothing in the
codebase infers meaning from driver exception text.

HTTP status is owned by the API layer (see api/models.py STATUS_BY_KIND),
not by the errors themselves. The domain layer does not know it is being
served over HTTP.

Layer rule: core/ is the kernel. No imports from api/, auth/, or storage/.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """High-level failure categories."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_FAILED = "validation_failed"
    CONSTRAINT_VIOLATION = "constraint_violation"
    UNKNOWN = "unknown"


class DomainError(Exception):
    """Base exception for every expected failure in Inkwell."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, field: str, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict:
        return {"code": self.kind.value, "field": self.field, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, field={self.field!r}, message={self.message!r})"


class NotFound(DomainError):
    """A referenced id does not exist."""

    kind = ErrorKind.NOT_FOUND


class Unauthorized(DomainError):
    """The actor is not allowed to perform the operation."""

    kind = ErrorKind.UNAUTHORIZED


class ValidationFailed(DomainError):
    """Input failed a structural rule before reaching the store."""

    kind = ErrorKind.VALIDATION_FAILED


class ConstraintViolation(DomainError):
    """The store refused a write because of a uniqueness or reference rule."""

    kind = ErrorKind.CONSTRAINT_VIOLATION


class StoreError(DomainError):
    """Raised by storage/store.py. The kind is chosen by the store, not parsed later."""

    def __init__(self, kind: ErrorKind, field: str, message: str) -> None:
        super().__init__(field, message, kind=kind)
