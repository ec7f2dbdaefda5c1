"""Decorators and span helpers for tracing MCP components."""

import functools
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import logfire
from pydantic import BaseModel

from .mcp_logger import get_correlation_id, redact
from .metrics import record_resource_read, record_tool_call


def trace_tool(tool_name: str):
    """Decorator to trace MCP tool execution.

    The wrapped handler takes its validated input model (or a raw arguments
    mapping) first; scalar inputs are attached to the span after redaction.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"tool.execution.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
                correlation_id=get_correlation_id(),
            ) as span:
                start_time = datetime.now()

                if args and isinstance(args[0], dict | BaseModel):
                    _add_attributes(span, "input", redact(args[0]))

                try:
                    result = await func(*args, **kwargs)

                    span.set_attribute("tool.success", True)
                    span.set_attribute(
                        "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                    )
                    record_tool_call(tool_name, True)
                    return result

                except Exception as e:
                    span.set_attribute("tool.success", False)
                    span.set_attribute("tool.error", str(e))
                    record_tool_call(tool_name, False)
                    raise

        return wrapper

    return decorator


def trace_resource(resource_type: str):
    """Lightweight decorator for resource reader methods taking ``(self, uri)``."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, uri: str, *args, **kwargs):
            scheme = uri.partition("://")[0] if isinstance(uri, str) else ""
            with logfire.span(
                f"resource.read.{resource_type}",
                resource_uri=uri,
                resource_type=resource_type,
                resource_scheme=scheme,
            ) as span:
                result = await func(self, uri, *args, **kwargs)

                record_resource_read(scheme)
                if isinstance(result, dict):
                    span.set_attribute("result.content_count", len(result.get("contents", [])))

                return result

        return wrapper

    return decorator


@contextmanager
def trace_method(method: str) -> Generator[Any, None, None]:
    """Span around one JSON-RPC method dispatch."""
    operation_type = _get_operation_type(method)
    with logfire.span(
        f"mcp.{operation_type}.{method}",
        _span_name=f"MCP {method}",
        mcp_method=method,
        mcp_operation_type=operation_type,
        correlation_id=get_correlation_id(),
    ) as span:
        try:
            yield span
            span.set_attribute("mcp.status", "success")
        except Exception as e:
            span.set_attribute("mcp.status", "error")
            span.set_attribute("error.type", type(e).__name__)
            raise


def _get_operation_type(method: str) -> str:
    """Categorize MCP method into operation type."""
    if method.startswith("resources/"):
        return "resource"
    if method.startswith("tools/"):
        return "tool"
    if method.startswith("prompts/"):
        return "prompt"
    return "system"


def _categorize_tool(tool_name: str) -> str:
    if tool_name.startswith("search"):
        return "search"
    if "steering" in tool_name:
        return "steering"
    if "prompt" in tool_name:
        return "prompt"
    return "hierarchy"


def _add_attributes(span, prefix: str, data: dict):
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
