"""Structured MCP logging with correlation ids and secret redaction.

Every record produced here is a flat mapping attached to the ``LogRecord`` as
``structured`` and rendered as one JSON line by ``StructuredFormatter``.
Records always carry ``correlation_id``, ``component``, ``operation`` and a
UTC ``timestamp``; when an actor is known they also carry ``user_id``,
``username`` and ``user_role``.

Redaction runs over the whole value tree before anything is emitted:

- map keys that look sensitive (``token``, ``password``, ``authorization``, ...)
  have their value replaced by ``[REDACTED]`` whatever its type
- strings are scrubbed of bearer tokens, personal access tokens and
  ``key=value`` style secrets
"""

import contextvars
import json
import logging
import re
import uuid
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from ..auth import Actor

REDACTED = "[REDACTED]"
PAT_PREFIX = "mcp_pat_"

SENSITIVE_KEY_PARTS = (
    "token",
    "password",
    "secret",
    "key",
    "authorization",
    "auth",
    "credential",
    "pat",
    "jwt",
    "bearer",
)

# Applied in this order; later patterns must not re-open earlier redactions
_BEARER_PAT = re.compile(r"Bearer\s+mcp_pat_[A-Za-z0-9_-]+")
_BEARER_OTHER = re.compile(r"Bearer\s+[A-Za-z0-9._-]+")
_STANDALONE_PAT = re.compile(r"\bmcp_pat_[A-Za-z0-9_-]+")
_KEY_VALUE_SECRET = re.compile(r"(?i)(token|key|secret|password)\s*[:=]\s*[^\s,}]+")

COMPONENT_HANDLER = "mcp_handler"
COMPONENT_AUDIT = "mcp_audit"
COMPONENT_SECURITY = "mcp_security"
COMPONENT_PERFORMANCE = "mcp_performance"


# =============================================================================
# REDACTION
# =============================================================================


def redact_string(value: str) -> str:
    """Scrub token-shaped substrings from free text."""
    value = _BEARER_PAT.sub(f"Bearer {PAT_PREFIX}{REDACTED}", value)
    value = _BEARER_OTHER.sub(
        lambda m: m.group(0) if PAT_PREFIX in m.group(0) else f"Bearer {REDACTED}", value
    )
    value = _STANDALONE_PAT.sub(f"{PAT_PREFIX}{REDACTED}", value)
    return _KEY_VALUE_SECRET.sub(lambda m: f"{m.group(1)}: {REDACTED}", value)


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact(value: Any) -> Any:
    """Return a redacted copy of a logged value tree."""
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, BaseModel):
        return redact(value.model_dump(mode="json"))
    if isinstance(value, Mapping):
        return {
            key: REDACTED if is_sensitive_key(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact(item) for item in value]
    return value


# =============================================================================
# CORRELATION IDS
# =============================================================================

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mcp_correlation_id", default=None
)

# Incoming ids are kept verbatim when they look like ids
_ACCEPTABLE_INCOMING_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def new_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:16]}"


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def normalize_correlation_id(candidate: str | None) -> str | None:
    """Accept a caller-supplied id as-is, or ``None`` if it is unusable."""
    if candidate and _ACCEPTABLE_INCOMING_ID.match(candidate):
        return candidate
    return None


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Generator[str, None, None]:
    """
    Bind a correlation id for the duration of a request.

    An explicit id wins, then the id already bound to the current context,
    then a freshly generated one.
    """
    current = correlation_id or _correlation_id.get() or new_correlation_id()
    token = _correlation_id.set(current)
    try:
        yield current
    finally:
        _correlation_id.reset(token)


# =============================================================================
# FORMATTER
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Render records carrying a ``structured`` mapping as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        structured = getattr(record, "structured", None)
        if structured is None:
            return super().format(record)
        payload = {"level": record.levelname, "message": record.getMessage(), **structured}
        return json.dumps(payload, default=str, sort_keys=True)


# =============================================================================
# LOGGER
# =============================================================================


class MCPLogger:
    """
    Write-only handle for MCP request, audit, security and performance records.

    All methods are safe to call from concurrent requests; the correlation id
    comes from the current context, never from instance state.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("requirements_mcp.mcp")

    @staticmethod
    def _fields(component: str, operation: str, actor: Actor | None) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "correlation_id": get_correlation_id() or new_correlation_id(),
            "component": component,
            "operation": operation,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if actor is not None:
            fields["user_id"] = actor.id
            fields["username"] = actor.username
            fields["user_role"] = actor.role.value
        return fields

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        self.logger.log(level, message, extra={"structured": fields})

    def log_request(self, method: str, params: Any = None, actor: Actor | None = None) -> None:
        fields = self._fields(COMPONENT_HANDLER, "request", actor)
        fields["method"] = method
        if params is not None:
            fields["params"] = redact(params)
        self._emit(logging.INFO, "Processing MCP request", fields)

    def log_response(
        self, method: str, success: bool, duration_ms: float, actor: Actor | None = None
    ) -> None:
        fields = self._fields(COMPONENT_HANDLER, "response", actor)
        fields.update(method=method, success=success, duration_ms=int(duration_ms))
        if success:
            self._emit(logging.INFO, "MCP request completed", fields)
        else:
            self._emit(logging.WARNING, "MCP request failed", fields)

    def log_error(
        self,
        method: str,
        error: BaseException | str,
        actor: Actor | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        fields = self._fields(COMPONENT_HANDLER, "error", actor)
        fields.update(method=method, error=redact_string(str(error)))
        if isinstance(error, BaseException):
            fields["error_type"] = type(error).__name__
        if details:
            fields["details"] = redact(dict(details))
        self._emit(logging.ERROR, "MCP request error", fields)

    def log_audit(
        self,
        action: str,
        resource_kind: str,
        resource_id: str,
        actor: Actor | None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        """Record a data-mutating operation."""
        fields = self._fields(COMPONENT_AUDIT, "audit", actor)
        fields.update(
            action=action,
            resource_type=resource_kind,
            resource_id=resource_id,
            actor_id=actor.id if actor else None,
        )
        if details:
            fields["details"] = redact(dict(details))
        self._emit(logging.INFO, "MCP audit event", fields)

    def log_security(self, event: str, details: Mapping[str, Any] | None = None) -> None:
        fields = self._fields(COMPONENT_SECURITY, "security", None)
        fields["event"] = event
        if details:
            fields["details"] = redact(dict(details))
        self._emit(logging.WARNING, "MCP security event", fields)

    def log_performance(
        self,
        method: str,
        duration_ms: float,
        actor: Actor | None = None,
        metrics: Mapping[str, Any] | None = None,
    ) -> None:
        fields = self._fields(COMPONENT_PERFORMANCE, "performance", actor)
        fields.update(method=method, duration_ms=int(duration_ms))
        if metrics:
            fields.update(redact(dict(metrics)))
        self._emit(logging.INFO, "MCP performance metrics", fields)


_mcp_logger: MCPLogger | None = None


def get_mcp_logger() -> MCPLogger:
    global _mcp_logger  # noqa: PLW0603
    if _mcp_logger is None:
        _mcp_logger = MCPLogger()
    return _mcp_logger
