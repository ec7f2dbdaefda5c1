"""Tests for the tool catalog and the tools/call dispatch path."""

from unittest.mock import Mock

import pytest
from pydantic import BaseModel, Field

from requirements_mcp.errors import ForbiddenError, InvalidArgumentsError
from requirements_mcp.tools import ALL_TOOLS, ToolDispatcher, define_tool, normalize_input_schema

EXPECTED_TOOLS = {
    "create_epic",
    "update_epic",
    "create_user_story",
    "update_user_story",
    "create_requirement",
    "update_requirement",
    "create_relationship",
    "create_acceptance_criteria",
    "delete_entity",
    "search_global",
    "search_requirements",
    "list_steering_documents",
    "create_steering_document",
    "get_steering_document",
    "update_steering_document",
    "link_steering_to_epic",
    "unlink_steering_from_epic",
    "create_prompt",
    "update_prompt",
    "activate_prompt",
    "delete_prompt",
    "get_active_prompt",
}

READ_ONLY_TOOLS = {
    "search_global",
    "search_requirements",
    "list_steering_documents",
    "get_steering_document",
    "get_active_prompt",
}


@pytest.fixture
def dispatcher(db_manager):
    return ToolDispatcher(db_manager=db_manager, mcp_logger=Mock())


class TestToolCatalog:
    def test_exact_tool_set(self, dispatcher):
        names = [tool["name"] for tool in dispatcher.list_tools()["tools"]]

        assert len(names) == 22
        assert set(names) == EXPECTED_TOOLS

    def test_published_fields(self, dispatcher):
        for tool in dispatcher.list_tools()["tools"]:
            assert set(tool) == {"name", "title", "description", "inputSchema"}
            assert tool["description"]
            assert tool["inputSchema"]["type"] == "object"

    def test_every_property_has_type_and_description(self):
        for tool in ALL_TOOLS:
            for name, prop in tool["inputSchema"]["properties"].items():
                assert "type" in prop, f"{tool['name']}.{name} has no type"
                assert prop["description"], f"{tool['name']}.{name} has no description"
                assert "$ref" not in prop
                assert "anyOf" not in prop

    def test_mutating_flags(self):
        read_only = {tool["name"] for tool in ALL_TOOLS if not tool["mutating"]}
        assert read_only == READ_ONLY_TOOLS

    def test_required_fields_published(self):
        schemas = {tool["name"]: tool["inputSchema"] for tool in ALL_TOOLS}

        assert schemas["create_epic"]["required"] == ["title", "priority"]
        assert "required" not in schemas["get_active_prompt"]
        assert schemas["delete_entity"]["properties"]["entity_type"]["enum"] == [
            "epic",
            "user_story",
            "acceptance_criteria",
            "requirement",
        ]

    def test_duplicate_tool_names_rejected(self, db_manager):
        with pytest.raises(ValueError):
            ToolDispatcher(db_manager=db_manager, tools=[ALL_TOOLS[0], ALL_TOOLS[0]])


class TestSchemaNormalization:
    def test_optional_and_nested_fields(self):
        class Sample(BaseModel):
            tags: list[str] | None = None
            limit: int = Field(default=10, ge=1, description="Page size")

        schema = normalize_input_schema(Sample)

        assert schema["properties"]["tags"]["type"] == "array"
        assert schema["properties"]["tags"]["description"] == "tags"
        assert schema["properties"]["limit"] == {
            "type": "integer",
            "minimum": 1,
            "default": 10,
            "description": "Page size",
        }
        assert "required" not in schema


@pytest.mark.asyncio
class TestCallTool:
    async def test_call_creates_entity(self, dispatcher, user_actor):
        response = await dispatcher.call_tool(
            "create_epic", {"title": "Reporting", "priority": 2}, user_actor
        )
        assert response["content"][0]["text"] == "Successfully created epic EP-001: Reporting"

    async def test_unknown_tool(self, dispatcher, admin_actor):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await dispatcher.call_tool("drop_database", {}, admin_actor)
        assert exc_info.value.field == "name"

    async def test_missing_tool_name(self, dispatcher, admin_actor):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await dispatcher.call_tool(None, {}, admin_actor)
        assert exc_info.value.field == "name"

    async def test_commenter_refused_mutating_tool(self, dispatcher, commenter_actor):
        with pytest.raises(ForbiddenError):
            await dispatcher.call_tool("create_epic", {"title": "x", "priority": 1}, commenter_actor)

        event, details = dispatcher.mcp_logger.log_security.call_args.args
        assert event == "forbidden_tool_call"
        assert details["role"] == "Commenter"

    async def test_commenter_refused_even_on_dry_run(self, dispatcher, commenter_actor, sample_hierarchy):
        with pytest.raises(ForbiddenError):
            await dispatcher.call_tool(
                "delete_entity",
                {"entity_type": "epic", "id": "EP-001", "dry_run": True},
                commenter_actor,
            )

    async def test_commenter_may_read(self, dispatcher, commenter_actor, sample_hierarchy):
        response = await dispatcher.call_tool("search_global", {"query": "login"}, commenter_actor)
        assert response["content"][1]["data"]["total"] == 1

    async def test_none_arguments_mean_empty(self, dispatcher, commenter_actor):
        response = await dispatcher.call_tool("get_active_prompt", None, commenter_actor)
        assert response["content"][1]["data"]["active"] is False

    async def test_non_object_arguments(self, dispatcher, admin_actor):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await dispatcher.call_tool("search_global", ["login"], admin_actor)
        assert exc_info.value.field == "arguments"

    async def test_invalid_arguments(self, dispatcher, admin_actor):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await dispatcher.call_tool("create_epic", {"title": "x", "priority": "high"}, admin_actor)
        assert exc_info.value.field == "priority"

    async def test_custom_catalog(self, db_manager, admin_actor):
        class EchoInput(BaseModel):
            text: str = Field(..., description="Text to echo")

        async def echo(params, context):
            return {"content": [{"type": "text", "text": f"{context.actor.username}: {params.text}"}]}

        dispatcher = ToolDispatcher(
            db_manager=db_manager,
            tools=[define_tool("echo", "Echo", "Echo text back.", EchoInput, echo, mutating=False)],
            mcp_logger=Mock(),
        )

        response = await dispatcher.call_tool("echo", {"text": "hi"}, admin_actor)

        assert response["content"][0]["text"] == "admin: hi"
        assert dispatcher.has_tools()
