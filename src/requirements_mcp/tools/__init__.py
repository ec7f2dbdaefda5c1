"""
MCP tools for the Product Requirements server.

Tools are the state-changing surface: they create and update the
requirements hierarchy, delete entities through the deletion engine, search,
manage steering documents and manage stored prompts. Each tool is a dict with
metadata, a Pydantic input model and an async handler (see ``common``).
"""

from .common import ToolContext, define_tool, normalize_input_schema, tool_response
from .dispatcher import ALL_TOOLS, ToolDispatcher

__all__ = [
    "ALL_TOOLS",
    "ToolContext",
    "ToolDispatcher",
    "define_tool",
    "normalize_input_schema",
    "tool_response",
]
