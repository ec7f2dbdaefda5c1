"""
MCP protocol processor.

Turns one channel payload (a frame or a batch) into the payload to send
back. Per frame:

1. Validate the frame; malformed frames get Invalid Request
2. Refuse everything when the request carries no authenticated actor
3. Drop notifications; every registered method is request-only
4. Route to the method handler, logging the request and response and
   recording span and metrics
5. Map any raised error to a JSON-RPC error object

Batch responses keep request order; notifications leave no slot.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..auth import Actor
from ..config import ServerConfig, get_config
from ..database.session import DatabaseManager, get_db_manager
from ..errors import DomainError, InvalidArgumentsError, ParseError, UnauthorizedError, UnknownMethodError
from ..observability import MCPLogger, correlation_scope, get_mcp_logger, trace_method
from ..observability.metrics import record_error, record_request
from ..prompts import PromptProvider
from ..resources import ResourceCatalog, ResourceReader
from ..tools import ToolDispatcher
from .capabilities import CapabilitiesManager
from .error_mapper import map_error
from .jsonrpc import (
    FrameError,
    decode_payload,
    error_response,
    parse_frame,
    split_batch,
    success_response,
)
from .lifecycle import build_initialize_result

logger = logging.getLogger(__name__)

MethodHandler = Callable[[dict[str, Any], Actor], Awaitable[Any]]


class MCPProcessor:
    """Route JSON-RPC frames to the MCP method handlers."""

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        tools: ToolDispatcher | None = None,
        reader: ResourceReader | None = None,
        catalog: ResourceCatalog | None = None,
        prompts: PromptProvider | None = None,
        mcp_logger: MCPLogger | None = None,
        config: ServerConfig | None = None,
    ):
        self.config = config or get_config()
        self.db_manager = db_manager or get_db_manager()
        self.mcp_logger = mcp_logger or get_mcp_logger()
        self.tools = tools or ToolDispatcher(self.db_manager, mcp_logger=self.mcp_logger)
        self.reader = reader or ResourceReader(self.db_manager)
        self.catalog = catalog or ResourceCatalog(self.db_manager)
        self.prompts = prompts or PromptProvider(self.db_manager)
        self.capabilities = CapabilitiesManager(tools=self.tools, prompts=self.prompts)

        self._methods: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    # =========================================================================
    # PAYLOAD HANDLING
    # =========================================================================

    async def handle_raw(
        self, raw: str | bytes, actor: Actor | None, correlation_id: str | None = None
    ) -> Any | None:
        """Decode and process a raw payload; ``None`` means nothing to send."""
        with correlation_scope(correlation_id):
            try:
                payload = decode_payload(raw)
            except ParseError as e:
                record_error(-32700, None)
                return error_response(None, map_error(e))
            return await self.handle_payload(payload, actor)

    async def handle_payload(self, payload: Any, actor: Actor | None) -> Any | None:
        """Process decoded JSON: a single frame or a batch."""
        with correlation_scope():
            try:
                frames, is_batch = split_batch(payload)
            except DomainError as e:
                return error_response(None, map_error(e))

            responses = []
            for frame in frames:
                response = await self._handle_frame(frame, actor)
                if response is not None:
                    responses.append(response)

            if not responses:
                return None
            return responses if is_batch else responses[0]

    async def _handle_frame(self, frame: Any, actor: Actor | None) -> dict[str, Any] | None:
        parsed = parse_frame(frame)
        method = None if isinstance(parsed, FrameError) else parsed.method

        if actor is None:
            self.mcp_logger.log_security("unauthenticated_request", {"method": method})
            if parsed.is_notification:
                return None
            error = map_error(UnauthorizedError())
            record_error(error["code"], method)
            return error_response(parsed.id, error)

        if isinstance(parsed, FrameError):
            if parsed.is_notification:
                logger.debug("Dropping malformed notification: %s", parsed.error.message)
                return None
            record_error(-32600, None)
            return error_response(parsed.id, map_error(parsed.error))

        if parsed.is_notification:
            logger.debug("Notification %s acknowledged without response", parsed.method)
            return None

        handler = self._methods.get(parsed.method)
        if handler is None:
            error = map_error(
                UnknownMethodError(f"Method not found: {parsed.method}", method=parsed.method)
            )
            record_error(error["code"], parsed.method)
            return error_response(parsed.id, error)

        return await self._dispatch(handler, parsed.method, parsed.params, parsed.id, actor)

    async def _dispatch(
        self,
        handler: MethodHandler,
        method: str,
        params: dict[str, Any],
        request_id: Any,
        actor: Actor,
    ) -> dict[str, Any]:
        self.mcp_logger.log_request(method, params, actor)
        start = time.perf_counter()
        try:
            with trace_method(method):
                result = await handler(params, actor)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            error = map_error(e)
            self.mcp_logger.log_error(method, e, actor, {"code": error["code"]})
            self.mcp_logger.log_response(method, False, duration_ms, actor)
            record_request(method, duration_ms, False)
            record_error(error["code"], method)
            return error_response(request_id, error)

        duration_ms = (time.perf_counter() - start) * 1000
        self.mcp_logger.log_response(method, True, duration_ms, actor)
        record_request(method, duration_ms, True)
        if duration_ms >= self.config.slow_operation_threshold_ms:
            self.mcp_logger.log_performance(method, duration_ms, actor, {"slow": True})
        return success_response(request_id, result)

    # =========================================================================
    # METHOD HANDLERS
    # =========================================================================

    async def _initialize(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return build_initialize_result(
            params,
            self.capabilities.build(),
            self.prompts.active_instructions(),
            self.config,
        )

    async def _ping(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return {}

    async def _tools_list(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return self.tools.list_tools()

    async def _tools_call(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:
        return await self.tools.call_tool(params.get("name"), params.get("arguments"), actor)

    async def _resources_list(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return await self.catalog.list_resources()

    async def _resources_read(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise InvalidArgumentsError("uri parameter is required", field="uri")
        return await self.reader.read(uri)

    async def _prompts_list(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return await self.prompts.list_prompts()

    async def _prompts_get(self, params: dict[str, Any], actor: Actor) -> dict[str, Any]:  # noqa: ARG002
        return await self.prompts.get_prompt(params)
