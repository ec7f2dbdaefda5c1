"""Custom metrics for the Product Requirements MCP Server."""

import logfire

# MCP Protocol Metrics
mcp_request_counter = logfire.metric_counter(
    "mcp.requests.total", description="Total MCP requests by method"
)

mcp_request_duration = logfire.metric_histogram(
    "mcp.request.duration_ms", unit="milliseconds", description="MCP request duration by method"
)

mcp_error_counter = logfire.metric_counter(
    "mcp.errors.total", description="MCP error responses by JSON-RPC code"
)

# Tool and resource metrics
tool_call_counter = logfire.metric_counter(
    "mcp.tool.calls", description="Tool invocations by tool name and outcome"
)

resource_read_counter = logfire.metric_counter(
    "mcp.resource.reads", description="Resource reads by scheme"
)

# Requirements business metrics
entity_deletions = logfire.metric_counter(
    "requirements.entities.deleted", description="Entities removed by the deletion engine"
)


def record_request(method: str, duration_ms: float, success: bool) -> None:
    attributes = {"method": method, "success": str(success).lower()}
    mcp_request_counter.add(1, attributes)
    mcp_request_duration.record(duration_ms, {"method": method})


def record_error(code: int, method: str | None) -> None:
    mcp_error_counter.add(1, {"code": str(code), "method": method or "unknown"})


def record_tool_call(tool_name: str, success: bool) -> None:
    tool_call_counter.add(1, {"tool": tool_name, "success": str(success).lower()})


def record_resource_read(scheme: str) -> None:
    resource_read_counter.add(1, {"scheme": scheme})


def record_deletion(entity_kind: str, cascade_count: int) -> None:
    """Count the target plus everything removed with it."""
    entity_deletions.add(1 + cascade_count, {"entity_kind": entity_kind})
