"""
Tests for the search tools.

Covers free text and reference id lookups, filtering, ordering and paging
across the hierarchy, and the requirement-only search.
"""

import pytest

from requirements_mcp.errors import InvalidArgumentsError
from requirements_mcp.tools.common import validate_arguments
from requirements_mcp.tools.search import (
    SearchGlobalInput,
    SearchRequirementsInput,
    search_global_handler,
    search_requirements_handler,
)


def data_of(response):
    return response["content"][1]["data"]


class TestSearchInputValidation:
    def test_limit_bounds(self):
        for limit in (0, 101):
            with pytest.raises(InvalidArgumentsError) as exc_info:
                validate_arguments(SearchGlobalInput, {"query": "x", "limit": limit})
            assert exc_info.value.field == "limit"

    def test_unknown_entity_type(self):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            validate_arguments(SearchGlobalInput, {"entity_types": ["task"]})
        assert exc_info.value.field.startswith("entity_types")

    def test_requirement_query_required(self):
        with pytest.raises(InvalidArgumentsError):
            validate_arguments(SearchRequirementsInput, {"query": ""})

    def test_defaults(self):
        params = validate_arguments(SearchGlobalInput, {})
        assert params.query == ""
        assert params.limit == 50
        assert params.descending is True


@pytest.mark.asyncio
class TestSearchGlobal:
    async def test_free_text(self, tool_context, sample_hierarchy):
        response = await search_global_handler(SearchGlobalInput(query="LOGIN"), tool_context)

        data = data_of(response)
        assert response["content"][0]["text"] == "Found 1 result(s); showing 1"
        assert data["results"][0]["reference_id"] == "US-001"
        assert data["results"][0]["type"] == "user_story"
        assert data["query"] == "LOGIN"

    async def test_reference_id_lookup(self, tool_context, sample_hierarchy):
        response = await search_global_handler(SearchGlobalInput(query="ac-001"), tool_context)

        results = data_of(response)["results"]
        assert [r["reference_id"] for r in results] == ["AC-001"]
        assert results[0]["relevance"] == 3.0

    async def test_entity_type_restriction(self, tool_context, sample_hierarchy):
        response = await search_global_handler(
            SearchGlobalInput(query="credentials", entity_types=["requirement"]), tool_context
        )
        assert [r["reference_id"] for r in data_of(response)["results"]] == ["REQ-001"]

    async def test_priority_filter_skips_kinds_without_priority(self, tool_context, sample_hierarchy):
        response = await search_global_handler(
            SearchGlobalInput(priority=1, sort_by="title", descending=False), tool_context
        )
        assert [r["reference_id"] for r in data_of(response)["results"]] == ["EP-001", "REQ-001"]

    async def test_paging(self, tool_context, sample_hierarchy):
        response = await search_global_handler(
            SearchGlobalInput(sort_by="title", descending=False, limit=2, offset=1), tool_context
        )

        data = data_of(response)
        assert data["total"] == 4
        assert len(data["results"]) == 2
        assert response["content"][0]["text"] == "Found 4 result(s); showing 2"

    async def test_no_matches(self, tool_context, sample_hierarchy):
        response = await search_global_handler(SearchGlobalInput(query="payroll"), tool_context)
        assert data_of(response)["results"] == []


@pytest.mark.asyncio
class TestSearchRequirements:
    async def test_text_match(self, tool_context, sample_hierarchy):
        response = await search_requirements_handler(
            SearchRequirementsInput(query="credentials"), tool_context
        )

        data = data_of(response)
        assert data["count"] == 1
        assert data["requirements"][0]["reference_id"] == "REQ-001"
        assert response["content"][0]["text"] == "Found 1 requirement(s) matching 'credentials'"

    async def test_filters(self, tool_context, sample_hierarchy):
        story_id = sample_hierarchy["user_story"].id

        matching = await search_requirements_handler(
            SearchRequirementsInput(query="validate", status="draft", user_story_id=story_id),
            tool_context,
        )
        filtered_out = await search_requirements_handler(
            SearchRequirementsInput(query="validate", status="Active"), tool_context
        )

        assert data_of(matching)["count"] == 1
        assert data_of(filtered_out)["count"] == 0
