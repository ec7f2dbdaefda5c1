"""
Prompt tools: create, edit, activate and delete stored system prompts.

The active prompt is served as the server instructions on ``initialize``,
so every mutation here drops the instructions cache.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..database.prompt_repository import PromptCreateSchema, PromptRepository, PromptUpdateSchema
from ..models.prompt import PromptRole
from ..observability import trace_tool
from ..prompts import invalidate_instructions
from .common import ToolContext, define_tool, tool_response

logger = logging.getLogger(__name__)

RESOURCE_KIND = "prompt"
PROMPT_ID = "Prompt UUID, reference id (PROMPT-001) or name"


class CreatePromptInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Unique prompt name")
    title: str = Field(..., min_length=1, max_length=500, description="Display title")
    description: str | None = Field(default=None, max_length=50000, description="What the prompt is for")
    content: str = Field(..., min_length=1, max_length=50000, description="Prompt text")
    role: PromptRole = Field(default=PromptRole.ASSISTANT, description="Message role when rendered")


class UpdatePromptInput(BaseModel):
    prompt_id: str = Field(..., min_length=1, description=PROMPT_ID)
    name: str | None = Field(default=None, min_length=1, max_length=255, description="New name")
    title: str | None = Field(default=None, min_length=1, max_length=500, description="New title")
    description: str | None = Field(default=None, max_length=50000, description="New description")
    content: str | None = Field(default=None, min_length=1, max_length=50000, description="New text")
    role: PromptRole | None = Field(default=None, description="New message role")


class PromptIdInput(BaseModel):
    prompt_id: str = Field(..., min_length=1, description=PROMPT_ID)


class GetActivePromptInput(BaseModel):
    pass


def _resolve_prompt_id(repository: PromptRepository, identifier: str) -> str:
    by_name = repository.get_by_name(identifier)
    return by_name.id if by_name else identifier


@trace_tool("create_prompt")
async def create_prompt_handler(params: CreatePromptInput, context: ToolContext) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        prompt = PromptRepository(session).create(
            PromptCreateSchema(**params.model_dump()), creator_id=context.actor.id
        )

    invalidate_instructions()
    context.audit("create", RESOURCE_KIND, prompt.id, {"reference_id": prompt.reference_id})
    return tool_response(f"Successfully created prompt {prompt.reference_id}: {prompt.name}", prompt)


@trace_tool("update_prompt")
async def update_prompt_handler(params: UpdatePromptInput, context: ToolContext) -> dict[str, Any]:
    changes = {
        field: value
        for field, value in params.model_dump(exclude_unset=True, exclude={"prompt_id"}).items()
        if value is not None or field == "description"
    }
    with context.db_manager.session_scope() as session:
        repository = PromptRepository(session)
        prompt = repository.update(
            _resolve_prompt_id(repository, params.prompt_id), PromptUpdateSchema(**changes)
        )

    invalidate_instructions()
    context.audit("update", RESOURCE_KIND, prompt.id, {"fields": sorted(changes)})
    return tool_response(f"Successfully updated prompt {prompt.reference_id}: {prompt.name}", prompt)


@trace_tool("activate_prompt")
async def activate_prompt_handler(params: PromptIdInput, context: ToolContext) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = PromptRepository(session)
        prompt = repository.activate(_resolve_prompt_id(repository, params.prompt_id))

    invalidate_instructions()
    context.audit("activate", RESOURCE_KIND, prompt.id, {"reference_id": prompt.reference_id})
    return tool_response(f"Prompt {prompt.reference_id} ({prompt.name}) is now active", prompt)


@trace_tool("delete_prompt")
async def delete_prompt_handler(params: PromptIdInput, context: ToolContext) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = PromptRepository(session)
        prompt = repository.delete(_resolve_prompt_id(repository, params.prompt_id))

    invalidate_instructions()
    context.audit("delete", RESOURCE_KIND, prompt.id, {"reference_id": prompt.reference_id})
    return tool_response(f"Successfully deleted prompt {prompt.reference_id}: {prompt.name}", prompt)


@trace_tool("get_active_prompt")
async def get_active_prompt_handler(
    params: GetActivePromptInput, context: ToolContext  # noqa: ARG001
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        prompt = PromptRepository(session).get_active()

    if prompt is None:
        return tool_response("No prompt is active", {"active": False, "prompt": None})
    return tool_response(
        f"Active prompt is {prompt.reference_id} ({prompt.name})",
        {"active": True, "prompt": prompt.model_dump(mode="json")},
    )


prompt_tools = [
    define_tool(
        "create_prompt",
        "Create Prompt",
        "Store a new system prompt. New prompts start inactive.",
        CreatePromptInput,
        create_prompt_handler,
        mutating=True,
    ),
    define_tool(
        "update_prompt",
        "Update Prompt",
        "Edit a stored prompt.",
        UpdatePromptInput,
        update_prompt_handler,
        mutating=True,
    ),
    define_tool(
        "activate_prompt",
        "Activate Prompt",
        "Make a prompt the active prompt; any other active prompt is deactivated.",
        PromptIdInput,
        activate_prompt_handler,
        mutating=True,
    ),
    define_tool(
        "delete_prompt",
        "Delete Prompt",
        "Delete a stored prompt.",
        PromptIdInput,
        delete_prompt_handler,
        mutating=True,
    ),
    define_tool(
        "get_active_prompt",
        "Get Active Prompt",
        "Return the active prompt, if any.",
        GetActivePromptInput,
        get_active_prompt_handler,
        mutating=False,
    ),
]
