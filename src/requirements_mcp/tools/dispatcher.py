"""
Tool dispatcher: the closed tool catalog behind tools/list and tools/call.

Call flow:
1. Look up the tool by name
2. Refuse mutating tools to actors that cannot mutate
3. Validate the arguments against the tool's input model
4. Run the handler with a ToolContext for the calling actor
"""

import logging
from typing import Any

from ..auth import Actor
from ..config import get_config
from ..database.session import DatabaseManager, get_db_manager
from ..errors import ForbiddenError, InvalidArgumentsError
from ..observability import MCPLogger, get_mcp_logger
from .common import ToolContext, validate_arguments
from .deletion import deletion_tools
from .hierarchy import hierarchy_tools
from .prompts import prompt_tools
from .search import search_tools
from .steering import steering_tools

logger = logging.getLogger(__name__)

ALL_TOOLS: list[dict[str, Any]] = [
    *hierarchy_tools,
    *deletion_tools,
    *search_tools,
    *steering_tools,
    *prompt_tools,
]

_PUBLISHED_FIELDS = ("name", "title", "description", "inputSchema")


class ToolDispatcher:
    """Serve tools/list and tools/call over a fixed tool catalog."""

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        tools: list[dict[str, Any]] | None = None,
        mcp_logger: MCPLogger | None = None,
    ):
        self.db_manager = db_manager or get_db_manager()
        self.mcp_logger = mcp_logger or get_mcp_logger()
        catalog = ALL_TOOLS if tools is None else tools
        self._tools = {tool["name"]: tool for tool in catalog}
        if len(self._tools) != len(catalog):
            raise ValueError("Tool names must be unique")

    @property
    def supports_list_changed(self) -> bool:
        return get_config().enable_tools_list_changed

    def has_tools(self) -> bool:
        return bool(self._tools)

    def list_tools(self) -> dict[str, Any]:
        return {
            "tools": [
                {field: tool[field] for field in _PUBLISHED_FIELDS}
                for tool in self._tools.values()
            ]
        }

    async def call_tool(
        self, name: Any, arguments: Any, actor: Actor
    ) -> dict[str, Any]:
        """
        Run one tool for ``actor``.

        Raises:
            InvalidArgumentsError: Unknown tool or arguments failing validation
            ForbiddenError: A mutating tool called by a commenter
            DomainError: Whatever the handler raises
        """
        if not isinstance(name, str) or not name:
            raise InvalidArgumentsError("Tool name is required", field="name")
        tool = self._tools.get(name)
        if tool is None:
            raise InvalidArgumentsError(f"Unknown tool: {name}", field="name")

        if tool["mutating"] and not actor.can_mutate:
            self.mcp_logger.log_security(
                "forbidden_tool_call",
                {"tool": name, "actor_id": actor.id, "role": actor.role.value},
            )
            raise ForbiddenError(f"Role {actor.role.value} may not call {name}")

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError("Tool arguments must be an object", field="arguments")

        params = validate_arguments(tool["input_model"], arguments)
        context = ToolContext(actor=actor, db_manager=self.db_manager, mcp_logger=self.mcp_logger)
        logger.debug("Calling tool %s for %s", name, actor.username)
        return await tool["handler"](params, context)
