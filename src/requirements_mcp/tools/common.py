"""
Shared plumbing for MCP tools.

MCP TOOL STRUCTURE:
Each tool is a dict with:
- ``name`` / ``title`` / ``description``: metadata returned by tools/list
- ``inputSchema``: JSON Schema derived from the tool's Pydantic input model
- ``input_model``: the Pydantic model arguments are validated against
- ``handler``: ``async (params, context) -> response``
- ``mutating``: whether the tool changes data (audited, refused to commenters)

Tool responses carry a human readable text item and the structured data:

    {"content": [{"type": "text", "text": ...}, {"type": "data", "data": ...}]}
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ..auth import Actor
from ..database.session import DatabaseManager
from ..errors import InvalidArgumentsError
from ..observability import MCPLogger, get_mcp_logger

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# =============================================================================
# EXECUTION CONTEXT
# =============================================================================


@dataclass
class ToolContext:
    """Per-call context: who is calling and where data lives."""

    actor: Actor
    db_manager: DatabaseManager
    mcp_logger: MCPLogger = field(default_factory=get_mcp_logger)

    def audit(
        self,
        action: str,
        resource_kind: str,
        resource_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.mcp_logger.log_audit(action, resource_kind, resource_id, self.actor, details)


# =============================================================================
# INPUT VALIDATION
# =============================================================================


def validate_arguments(model: type[M], arguments: dict[str, Any]) -> M:
    """
    Validate raw tool arguments against the tool's input model.

    Raises:
        InvalidArgumentsError: With the path of the first offending field
    """
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(part) for part in first["loc"]) or None
        message = f"Invalid argument '{path}': {first['msg']}" if path else first["msg"]
        raise InvalidArgumentsError(
            message,
            field=path,
            details={
                "errors": e.errors(include_url=False, include_context=False, include_input=False)
            },
        ) from e


_JSON_TYPE_KEYS = ("type", "enum", "format", "pattern", "minimum", "maximum", "minLength",
                   "maxLength", "items", "default", "examples")


def _resolve(schema: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    ref = schema.get("$ref")
    if ref:
        resolved = dict(defs[ref.rsplit("/", 1)[-1]])
        resolved.update({k: v for k, v in schema.items() if k != "$ref"})
        return resolved
    return schema


def _normalize_property(name: str, schema: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    schema = _resolve(schema, defs)
    normalized: dict[str, Any] = {}

    # Optional fields come out of Pydantic as anyOf [X, null]
    variants = [_resolve(v, defs) for v in schema.get("anyOf", [])]
    concrete = [v for v in variants if v.get("type") != "null"]
    base = concrete[0] if concrete else schema

    for key in _JSON_TYPE_KEYS:
        if key in base:
            normalized[key] = copy.deepcopy(base[key])
        elif key in schema and key != "type":
            normalized[key] = copy.deepcopy(schema[key])

    if "items" in normalized:
        normalized["items"] = _resolve(normalized["items"], defs)
        normalized["items"].pop("title", None)
    if "type" not in normalized:
        normalized["type"] = "string" if "enum" in normalized else "object"
    normalized["description"] = (
        schema.get("description") or base.get("description") or name.replace("_", " ")
    )
    return normalized


def normalize_input_schema(model: type[BaseModel]) -> dict[str, Any]:
    """
    Publishable inputSchema for a tool input model.

    ``$ref``s are inlined and every property has ``type`` and ``description``.
    """
    raw = model.model_json_schema()
    defs = raw.get("$defs", {})
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            name: _normalize_property(name, prop, defs)
            for name, prop in raw.get("properties", {}).items()
        },
    }
    if raw.get("required"):
        schema["required"] = list(raw["required"])
    return schema


def define_tool(
    name: str,
    title: str,
    description: str,
    input_model: type[BaseModel],
    handler,
    mutating: bool,
) -> dict[str, Any]:
    return {
        "name": name,
        "title": title,
        "description": description,
        "inputSchema": normalize_input_schema(input_model),
        "input_model": input_model,
        "handler": handler,
        "mutating": mutating,
    }


# =============================================================================
# TOOL RESPONSE FORMATTING
# =============================================================================


def tool_response(message: str, data: Any) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return {
        "content": [
            {"type": "text", "text": message},
            {"type": "data", "data": data},
        ]
    }
