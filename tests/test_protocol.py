"""MCP protocol compliance tests: framing, errors, lifecycle and capabilities."""

import json

import pytest
from pydantic import BaseModel, ValidationError

from requirements_mcp.database import PromptCreateSchema, PromptRepository
from requirements_mcp.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidArgumentsError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    TransactionFailedError,
    UnauthorizedError,
    ValidationFailedError,
)
from requirements_mcp.observability import MCPLogger, correlation_scope
from requirements_mcp.protocol import (
    CapabilitiesManager,
    JsonRpcRequest,
    MCPProcessor,
    map_error,
    negotiate_protocol_version,
    parse_frame,
)
from requirements_mcp.protocol.jsonrpc import FrameError

pytestmark = pytest.mark.mcp_protocol


@pytest.fixture
def processor(db_manager, test_config):
    return MCPProcessor(db_manager=db_manager, mcp_logger=MCPLogger(), config=test_config)


def frame(method, params=None, id=1):
    message = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestParseFrame:
    def test_request(self):
        parsed = parse_frame(frame("ping", {"a": 1}, id="abc"))
        assert parsed == JsonRpcRequest(method="ping", params={"a": 1}, id="abc")

    def test_notification(self):
        parsed = parse_frame({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert parsed.is_notification
        assert parsed.id is None

    def test_null_id_is_a_request(self):
        parsed = parse_frame({"jsonrpc": "2.0", "id": None, "method": "ping"})
        assert isinstance(parsed, JsonRpcRequest)
        assert not parsed.is_notification

    @pytest.mark.parametrize(
        "bad",
        [
            {"jsonrpc": "1.0", "id": 1, "method": "ping"},
            {"id": 1, "method": "ping"},
            {"jsonrpc": "2.0", "id": 1},
            {"jsonrpc": "2.0", "id": 1, "method": ""},
            {"jsonrpc": "2.0", "id": 1, "method": "ping", "params": [1, 2]},
            {"jsonrpc": "2.0", "id": True, "method": "ping"},
            {"jsonrpc": "2.0", "id": {"x": 1}, "method": "ping"},
            "ping",
        ],
    )
    def test_invalid_frames(self, bad):
        assert isinstance(parse_frame(bad), FrameError)


class TestErrorMapper:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (NotFoundError("epic", "EP-9"), -32002),
            (InvalidArgumentsError("bad", field="title"), -32602),
            (InvalidStatusError("epic", "Shipped", ["Backlog"]), -32010),
            (InvalidTransitionError("epic", "Backlog", "Done"), -32010),
            (ValidationFailedError("nope"), -32010),
            (ConflictError("dup"), -32009),
            (TransactionFailedError("boom"), -32603),
            (TransactionFailedError("race", cause="conflict"), -32009),
            (UnauthorizedError(), -32003),
            (ForbiddenError(), -32004),
        ],
    )
    def test_codes(self, error, code):
        assert map_error(error, "corr-1")["code"] == code

    def test_data_carries_details_and_correlation_id(self):
        error = map_error(NotFoundError("epic", "EP-9"), "corr-1")

        assert error["message"] == "Epic not found: EP-9"
        assert error["data"] == {"entity_kind": "epic", "identifier": "EP-9", "correlation_id": "corr-1"}

    def test_correlation_id_from_scope(self):
        with correlation_scope("req-7"):
            assert map_error(ConflictError("dup"))["data"]["correlation_id"] == "req-7"

    def test_internal_details_stripped(self):
        error = map_error(InternalError("db password leaked", {"dsn": "sqlite:///x"}), "c")
        assert error["message"] == "Internal error"
        assert error["data"] == {"correlation_id": "c"}

    def test_unexpected_exception(self):
        error = map_error(RuntimeError("secret stack detail"), "c")
        assert error == {"code": -32603, "message": "Internal error", "data": {"correlation_id": "c"}}

    def test_pydantic_validation_error(self):
        class Model(BaseModel):
            priority: int

        with pytest.raises(ValidationError) as exc_info:
            Model(priority="high")

        error = map_error(exc_info.value, "c")
        assert error["code"] == -32602
        assert error["data"]["field"] == "priority"


class _Provider:
    def __init__(self, has, supports):
        self._has = has
        self.supports_list_changed = supports

    def has_tools(self):
        return self._has

    def has_prompts(self):
        return self._has


class TestCapabilities:
    def test_resources_always_advertised(self):
        assert CapabilitiesManager().build() == {
            "tools": {"listChanged": False},
            "prompts": {"listChanged": False},
            "resources": {"listChanged": True, "subscribe": True},
        }

    def test_list_changed_requires_content_and_support(self):
        manager = CapabilitiesManager(tools=_Provider(True, True), prompts=_Provider(False, True))
        capabilities = manager.build()

        assert capabilities["tools"]["listChanged"] is True
        assert capabilities["prompts"]["listChanged"] is False
        assert manager.build() == capabilities


class TestVersionNegotiation:
    def test_supported_version_echoed(self, test_config):
        assert negotiate_protocol_version("2025-03-26", test_config) == "2025-03-26"

    def test_unsupported_version_replaced(self, test_config):
        assert negotiate_protocol_version("1999-01-01", test_config) == test_config.protocol_version
        assert negotiate_protocol_version(None, test_config) == test_config.protocol_version


@pytest.mark.asyncio
class TestProcessor:
    async def test_ping(self, processor, admin_actor):
        response = await processor.handle_payload(frame("ping", {"anything": 1}), admin_actor)
        assert response == {"jsonrpc": "2.0", "id": 1, "result": {}}

    async def test_unknown_method(self, processor, admin_actor):
        response = await processor.handle_payload(frame("nope"), admin_actor)

        assert response["jsonrpc"] == "2.0"
        assert response["id"] == 1
        assert response["error"]["code"] == -32601
        assert response["error"]["data"]["method"] == "nope"

    async def test_initialize(self, processor, admin_actor, db_manager, test_config):
        with db_manager.session_scope() as session:
            repository = PromptRepository(session)
            repository.create(
                PromptCreateSchema(name="analyst", title="Analyst", content="Be precise."),
                creator_id="user-admin",
            )
            repository.activate("analyst")

        response = await processor.handle_payload(
            frame(
                "initialize",
                {"protocolVersion": "2025-03-26", "clientInfo": {"name": "test", "version": "1"}},
            ),
            admin_actor,
        )

        result = response["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["serverInfo"]["name"] == test_config.server_name
        assert result["instructions"] == "Be precise."
        assert result["capabilities"]["resources"] == {"listChanged": True, "subscribe": True}
        assert result["capabilities"]["tools"]["listChanged"] is test_config.enable_tools_list_changed

    async def test_initialize_without_active_prompt(self, processor, admin_actor):
        response = await processor.handle_payload(frame("initialize", {}), admin_actor)
        assert response["result"]["instructions"] == ""

    async def test_batch_keeps_order_and_skips_notifications(self, processor, admin_actor):
        payload = [
            frame("ping", id="a"),
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            frame("nope", id="b"),
            frame("ping", id="c"),
        ]

        responses = await processor.handle_payload(payload, admin_actor)

        assert [r["id"] for r in responses] == ["a", "b", "c"]
        assert "result" in responses[0]
        assert responses[1]["error"]["code"] == -32601

    async def test_registered_method_as_notification_gets_no_response(self, processor, admin_actor):
        response = await processor.handle_payload({"jsonrpc": "2.0", "method": "ping"}, admin_actor)
        assert response is None

    async def test_all_notification_batch(self, processor, admin_actor):
        payload = [{"jsonrpc": "2.0", "method": "ping"}, {"jsonrpc": "2.0", "method": "x"}]
        assert await processor.handle_payload(payload, admin_actor) is None

    async def test_empty_batch(self, processor, admin_actor):
        response = await processor.handle_payload([], admin_actor)
        assert response["id"] is None
        assert response["error"]["code"] == -32600

    async def test_invalid_frame_in_batch(self, processor, admin_actor):
        responses = await processor.handle_payload([1, frame("ping", id=2)], admin_actor)

        assert responses[0]["error"]["code"] == -32600
        assert responses[0]["id"] is None
        assert responses[1]["result"] == {}

    async def test_parse_error(self, processor, admin_actor):
        response = await processor.handle_raw("{not json", admin_actor, correlation_id="corr-x")

        assert response["id"] is None
        assert response["error"]["code"] == -32700
        assert response["error"]["data"]["correlation_id"] == "corr-x"

    async def test_raw_round_trip(self, processor, admin_actor):
        response = await processor.handle_raw(json.dumps(frame("ping", id=9)).encode(), admin_actor)
        assert response == {"jsonrpc": "2.0", "id": 9, "result": {}}

    async def test_unauthenticated(self, processor):
        response = await processor.handle_payload(frame("tools/list"), None)
        assert response["error"]["code"] == -32003

    async def test_unauthenticated_batch_refuses_every_frame(self, processor):
        responses = await processor.handle_payload(
            [
                1,
                {"jsonrpc": "1.0", "id": 3, "method": "ping"},
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
                frame("ping", id=4),
            ],
            None,
        )

        assert [r["id"] for r in responses] == [None, 3, 4]
        assert {r["error"]["code"] for r in responses} == {-32003}

    async def test_unauthenticated_notifications_get_nothing(self, processor):
        payload = [{"jsonrpc": "2.0", "method": "notifications/initialized"}, {"method": "x"}]
        assert await processor.handle_payload(payload, None) is None

    async def test_resources_read_requires_uri(self, processor, admin_actor):
        response = await processor.handle_payload(frame("resources/read", {}), admin_actor)

        assert response["error"]["code"] == -32602
        assert response["error"]["data"]["field"] == "uri"

    async def test_resources_read(self, processor, admin_actor, sample_hierarchy):
        response = await processor.handle_payload(
            frame("resources/read", {"uri": "epic://EP-001/hierarchy"}), admin_actor
        )

        payload = json.loads(response["result"]["contents"][0]["text"])
        assert payload["user_stories"][0]["reference_id"] == "US-001"

    async def test_resources_read_not_found(self, processor, admin_actor):
        response = await processor.handle_payload(
            frame("resources/read", {"uri": "epic://EP-404"}), admin_actor
        )
        assert response["error"]["code"] == -32002

    async def test_tools_list(self, processor, admin_actor):
        response = await processor.handle_payload(frame("tools/list"), admin_actor)
        assert len(response["result"]["tools"]) == 22

    async def test_tools_call(self, processor, user_actor):
        response = await processor.handle_payload(
            frame("tools/call", {"name": "create_epic", "arguments": {"title": "Billing", "priority": 2}}),
            user_actor,
        )
        assert "EP-001" in response["result"]["content"][0]["text"]

    async def test_tools_call_forbidden_for_commenter(self, processor, commenter_actor):
        response = await processor.handle_payload(
            frame("tools/call", {"name": "create_epic", "arguments": {"title": "x", "priority": 1}}),
            commenter_actor,
        )
        assert response["error"]["code"] == -32004

    async def test_prompts_methods(self, processor, admin_actor):
        listed = await processor.handle_payload(frame("prompts/list"), admin_actor)
        missing = await processor.handle_payload(frame("prompts/get", {"name": "nope"}, id=2), admin_actor)

        assert listed["result"] == {"prompts": []}
        assert missing["error"]["code"] == -32002

    async def test_unexpected_handler_failure(self, db_manager, test_config, admin_actor):
        class BrokenCatalog:
            async def list_resources(self):
                raise RuntimeError("disk on fire")

        processor = MCPProcessor(
            db_manager=db_manager, catalog=BrokenCatalog(), mcp_logger=MCPLogger(), config=test_config
        )

        response = await processor.handle_payload(frame("resources/list"), admin_actor)

        assert response["error"]["code"] == -32603
        assert response["error"]["message"] == "Internal error"
        assert "disk on fire" not in json.dumps(response)


class TestMethodRegistry:
    def test_registered_methods(self, processor):
        assert processor.methods == [
            "initialize",
            "ping",
            "tools/list",
            "tools/call",
            "resources/list",
            "resources/read",
            "prompts/list",
            "prompts/get",
        ]
