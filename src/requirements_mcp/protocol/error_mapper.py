"""
Map domain errors to JSON-RPC error objects.

This is the only place that produces ``{"code", "message", "data"}`` error
objects. Every error's ``data`` carries the request's correlation id.
Anything that is not a domain error is reported as an internal error with
its details stripped.
"""

import logging
from typing import Any

from pydantic import ValidationError

from ..errors import DomainError, ErrorKind, TransactionFailedError
from ..observability.mcp_logger import get_correlation_id, new_correlation_id

logger = logging.getLogger(__name__)

# Standard JSON-RPC codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Application codes
RESOURCE_NOT_FOUND = -32002
UNAUTHORIZED = -32003
FORBIDDEN = -32004
CONFLICT = -32009
VALIDATION_FAILED = -32010

ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: RESOURCE_NOT_FOUND,
    ErrorKind.INVALID_ARGUMENTS: INVALID_PARAMS,
    ErrorKind.INVALID_STATUS: VALIDATION_FAILED,
    ErrorKind.INVALID_TRANSITION: VALIDATION_FAILED,
    ErrorKind.VALIDATION_FAILED: VALIDATION_FAILED,
    ErrorKind.CONFLICT: CONFLICT,
    ErrorKind.TRANSACTION_FAILED: INTERNAL_ERROR,
    ErrorKind.UNAUTHORIZED: UNAUTHORIZED,
    ErrorKind.FORBIDDEN: FORBIDDEN,
    ErrorKind.PARSE_ERROR: PARSE_ERROR,
    ErrorKind.INVALID_REQUEST: INVALID_REQUEST,
    ErrorKind.UNKNOWN_METHOD: METHOD_NOT_FOUND,
    ErrorKind.INTERNAL: INTERNAL_ERROR,
}


def error_code_for(error: DomainError) -> int:
    if isinstance(error, TransactionFailedError) and error.cause == "conflict":
        return CONFLICT
    return ERROR_CODES[error.kind]


def map_error(error: BaseException, correlation_id: str | None = None) -> dict[str, Any]:
    """Build the JSON-RPC error object for ``error``."""
    correlation_id = correlation_id or get_correlation_id() or new_correlation_id()

    if isinstance(error, DomainError):
        code = error_code_for(error)
        data = dict(error.details)
        if code == INTERNAL_ERROR:
            # Internal detail stays in the logs
            data = {"error_code": data["error_code"]} if "error_code" in data else {}
            message = "Internal error" if error.kind is ErrorKind.INTERNAL else error.message
        else:
            message = error.message
        data["correlation_id"] = correlation_id
        return {"code": code, "message": message, "data": data}

    if isinstance(error, ValidationError):
        first = error.errors()[0]
        path = ".".join(str(part) for part in first["loc"])
        return {
            "code": INVALID_PARAMS,
            "message": f"Invalid params: {first['msg']}",
            "data": {"field": path, "correlation_id": correlation_id},
        }

    logger.error(
        "Unhandled %s mapped to internal error (correlation_id=%s)",
        type(error).__name__,
        correlation_id,
        exc_info=error,
    )
    return {
        "code": INTERNAL_ERROR,
        "message": "Internal error",
        "data": {"correlation_id": correlation_id},
    }
