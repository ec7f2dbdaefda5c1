"""
Search tools.

Both tools are read-only and delegate to the search repository.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..database.search_repository import (
    MAX_SEARCH_LIMIT,
    SearchFilters,
    SearchRepository,
    SearchSortOptions,
)
from ..models.common import EntityKind
from ..observability import trace_tool
from .common import ToolContext, define_tool, tool_response

logger = logging.getLogger(__name__)


class SearchGlobalInput(BaseModel):
    query: str = Field(
        default="",
        max_length=500,
        description="Free text or a reference id; empty searches by filters only",
    )
    entity_types: list[EntityKind] | None = Field(
        default=None, description="Entity kinds to search; all kinds when omitted"
    )
    status: str | None = Field(default=None, description="Only items in this status")
    priority: int | None = Field(default=None, ge=1, le=4, description="Only items with this priority")
    assignee_id: str | None = Field(default=None, description="Only items assigned to this user")
    sort_by: SearchSortOptions = Field(
        default=SearchSortOptions.CREATED_AT, description="Result ordering"
    )
    descending: bool = Field(default=True, description="Sort descending")
    limit: int = Field(default=50, ge=1, le=MAX_SEARCH_LIMIT, description="Page size")
    offset: int = Field(default=0, ge=0, description="Results to skip")


class SearchRequirementsInput(BaseModel):
    query: str = Field(..., min_length=1, max_length=500, description="Text or reference id")
    status: str | None = Field(default=None, description="Only requirements in this status")
    priority: int | None = Field(default=None, ge=1, le=4, description="Only this priority")
    user_story_id: str | None = Field(default=None, description="Only requirements of this user story (UUID)")
    requirement_type_id: str | None = Field(default=None, description="Requirement type UUID")


@trace_tool("search_global")
async def search_global_handler(params: SearchGlobalInput, context: ToolContext) -> dict[str, Any]:
    filters = SearchFilters(
        status=params.status, priority=params.priority, assignee_id=params.assignee_id
    )
    with context.db_manager.session_scope() as session:
        response = SearchRepository(session).search(
            params.query,
            entity_types=params.entity_types,
            filters=filters,
            sort_by=params.sort_by,
            descending=params.descending,
            limit=params.limit,
            offset=params.offset,
        )

    logger.debug("search_global %r matched %d item(s)", params.query, response.total)
    return tool_response(
        f"Found {response.total} result(s); showing {len(response.results)}", response
    )


@trace_tool("search_requirements")
async def search_requirements_handler(
    params: SearchRequirementsInput, context: ToolContext
) -> dict[str, Any]:
    filters = SearchFilters(**params.model_dump(exclude={"query"}))
    with context.db_manager.session_scope() as session:
        requirements = SearchRepository(session).search_requirements(params.query, filters)

    return tool_response(
        f"Found {len(requirements)} requirement(s) matching '{params.query}'",
        {
            "requirements": [requirement.model_dump(mode="json") for requirement in requirements],
            "count": len(requirements),
        },
    )


search_tools = [
    define_tool(
        "search_global",
        "Search Everything",
        "Search epics, user stories, acceptance criteria and requirements by text or "
        "reference id, with optional filters, ordering and paging.",
        SearchGlobalInput,
        search_global_handler,
        mutating=False,
    ),
    define_tool(
        "search_requirements",
        "Search Requirements",
        "Search requirements by text or reference id with optional filters.",
        SearchRequirementsInput,
        search_requirements_handler,
        mutating=False,
    ),
]
