"""Domain error taxonomy.

Every failure the core can report is one of the kinds below. Handlers and
repositories raise these exceptions; only the protocol error mapper turns
them into JSON-RPC error objects, so domain errors never reach the wire raw.
"""

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    """Closed set of domain error kinds."""

    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    INVALID_STATUS = "invalid_status"
    INVALID_TRANSITION = "invalid_transition"
    VALIDATION_FAILED = "validation_failed"
    CONFLICT = "conflict"
    TRANSACTION_FAILED = "transaction_failed"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    PARSE_ERROR = "parse_error"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN_METHOD = "unknown_method"
    INTERNAL = "internal"


class DomainError(Exception):
    """Base class for all domain errors.

    Attributes:
        kind: The taxonomy entry this error belongs to
        message: Human readable message, safe to surface to clients
        details: Structured context surfaced in the JSON-RPC ``data`` field
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class NotFoundError(DomainError):
    """Lookup by id or reference id failed."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_kind: str, identifier: str | None = None):
        label = entity_kind.replace("_", " ").capitalize()
        message = f"{label} not found" if identifier is None else f"{label} not found: {identifier}"
        details: dict[str, Any] = {"entity_kind": entity_kind}
        if identifier is not None:
            details["identifier"] = identifier
        super().__init__(message, details)
        self.entity_kind = entity_kind


class InvalidArgumentsError(DomainError):
    """Schema or shape violation in a request."""

    kind = ErrorKind.INVALID_ARGUMENTS

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        merged = dict(details or {})
        if field is not None:
            merged.setdefault("field", field)
        super().__init__(message, merged)
        self.field = field


class InvalidStatusError(DomainError):
    kind = ErrorKind.INVALID_STATUS

    def __init__(self, entity_kind: str, status: str, valid_statuses: list[str] | None = None):
        message = f"Invalid status '{status}' for {entity_kind.replace('_', ' ')}"
        if valid_statuses:
            message += f". Valid statuses: {', '.join(valid_statuses)}"
        super().__init__(
            message,
            {
                "error_code": "INVALID_STATUS",
                "entity_kind": entity_kind,
                "status": status,
                "valid_statuses": list(valid_statuses or []),
            },
        )


class InvalidTransitionError(DomainError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, entity_kind: str, from_status: str, to_status: str):
        super().__init__(
            f"Transition from '{from_status}' to '{to_status}' is not allowed "
            f"for {entity_kind.replace('_', ' ')}",
            {
                "error_code": "INVALID_TRANSITION",
                "entity_kind": entity_kind,
                "from_status": from_status,
                "to_status": to_status,
            },
        )


class ValidationFailedError(DomainError):
    """A domain rule was broken (priority bounds, duplicate name, ...)."""

    kind = ErrorKind.VALIDATION_FAILED
    error_code = "VALIDATION_FAILED"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        merged = {"error_code": self.error_code}
        merged.update(details or {})
        super().__init__(message, merged)


class DeletionBlockedError(ValidationFailedError):
    """Dependencies exist and force was not requested."""

    error_code = "DELETION_BLOCKED"


class MinCardinalityError(ValidationFailedError):
    """Deleting would leave a user story without acceptance criteria."""

    error_code = "MIN_CARDINALITY"


class ConflictError(DomainError):
    """Dependency or uniqueness conflict in the store."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, hint: str | None = None, details: dict[str, Any] | None = None):
        merged = dict(details or {})
        if hint:
            merged["hint"] = hint
        super().__init__(message, merged)


class TypeInUseError(ConflictError):
    """A requirement or relationship type is still referenced."""

    def __init__(self, type_kind: str, name: str, usage_count: int):
        super().__init__(
            f"{type_kind.replace('_', ' ').capitalize()} '{name}' is referenced by "
            f"{usage_count} item(s) and cannot be deleted",
            hint="Reassign or delete the referencing items first",
            details={"error_code": "TYPE_IN_USE", "type_kind": type_kind, "usage_count": usage_count},
        )


class TransactionFailedError(DomainError):
    """The store aborted a transaction.

    ``cause`` is ``"conflict"`` for integrity violations and ``"internal"``
    for everything else; the mapper uses it to pick the protocol code.
    """

    kind = ErrorKind.TRANSACTION_FAILED

    def __init__(self, message: str, cause: str = "internal", details: dict[str, Any] | None = None):
        merged = {"error_code": "TRANSACTION_FAILED", "cause": cause}
        merged.update(details or {})
        super().__init__(message, merged)
        self.cause = cause


class UnauthorizedError(DomainError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ParseError(DomainError):
    kind = ErrorKind.PARSE_ERROR


class InvalidRequestError(DomainError):
    kind = ErrorKind.INVALID_REQUEST


class UnknownMethodError(DomainError):
    kind = ErrorKind.UNKNOWN_METHOD

    def __init__(self, message: str, method: str | None = None):
        super().__init__(message, {"method": method} if method else None)


class InternalError(DomainError):
    kind = ErrorKind.INTERNAL
