"""
Steering document tools.

Steering documents hold standing guidance (architecture notes, conventions)
and can be linked to any number of epics.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..database.repository import PaginationParams
from ..database.steering_repository import (
    SteeringDocumentCreateSchema,
    SteeringDocumentRepository,
    SteeringDocumentUpdateSchema,
)
from ..observability import trace_tool
from .common import ToolContext, define_tool, tool_response

logger = logging.getLogger(__name__)

RESOURCE_KIND = "steering_document"
DOCUMENT_ID = "Steering document UUID or reference id (STD-001)"
EPIC_ID = "Epic UUID or reference id"


class ListSteeringDocumentsInput(BaseModel):
    epic_id: str | None = Field(default=None, description=f"Only documents linked to this epic ({EPIC_ID})")
    limit: int = Field(default=50, ge=1, le=1000, description="Page size")
    offset: int = Field(default=0, ge=0, description="Items to skip")


class CreateSteeringDocumentInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Document title")
    description: str | None = Field(default=None, max_length=50000, description="Document body")


class GetSteeringDocumentInput(BaseModel):
    steering_document_id: str = Field(..., min_length=1, description=DOCUMENT_ID)


class UpdateSteeringDocumentInput(BaseModel):
    steering_document_id: str = Field(..., min_length=1, description=DOCUMENT_ID)
    title: str | None = Field(default=None, min_length=1, max_length=500, description="New title")
    description: str | None = Field(default=None, max_length=50000, description="New body")


class SteeringLinkInput(BaseModel):
    steering_document_id: str = Field(..., min_length=1, description=DOCUMENT_ID)
    epic_id: str = Field(..., min_length=1, description=EPIC_ID)


@trace_tool("list_steering_documents")
async def list_steering_documents_handler(
    params: ListSteeringDocumentsInput, context: ToolContext
) -> dict[str, Any]:
    pagination = PaginationParams(limit=params.limit, offset=params.offset)
    with context.db_manager.session_scope() as session:
        repository = SteeringDocumentRepository(session)
        if params.epic_id:
            page = repository.list_by_epic(params.epic_id, pagination)
        else:
            page = repository.list(pagination=pagination)

    return tool_response(
        f"Found {page.total} steering document(s)",
        {
            "steering_documents": [item.model_dump(mode="json") for item in page.items],
            "total": page.total,
            "limit": page.limit,
            "offset": page.offset,
        },
    )


@trace_tool("create_steering_document")
async def create_steering_document_handler(
    params: CreateSteeringDocumentInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        document = SteeringDocumentRepository(session).create(
            SteeringDocumentCreateSchema(**params.model_dump()), creator_id=context.actor.id
        )

    context.audit("create", RESOURCE_KIND, document.id, {"reference_id": document.reference_id})
    return tool_response(
        f"Successfully created steering document {document.reference_id}: {document.title}",
        document,
    )


@trace_tool("get_steering_document")
async def get_steering_document_handler(
    params: GetSteeringDocumentInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        document = SteeringDocumentRepository(session).resolve(params.steering_document_id)
    return tool_response(f"Steering document {document.reference_id}: {document.title}", document)


@trace_tool("update_steering_document")
async def update_steering_document_handler(
    params: UpdateSteeringDocumentInput, context: ToolContext
) -> dict[str, Any]:
    changes = params.model_dump(exclude_unset=True, exclude={"steering_document_id"})
    if changes.get("title", "") is None:
        del changes["title"]

    with context.db_manager.session_scope() as session:
        document = SteeringDocumentRepository(session).update(
            params.steering_document_id, SteeringDocumentUpdateSchema(**changes)
        )

    context.audit("update", RESOURCE_KIND, document.id, {"fields": sorted(changes)})
    return tool_response(
        f"Successfully updated steering document {document.reference_id}: {document.title}",
        document,
    )


@trace_tool("link_steering_to_epic")
async def link_steering_to_epic_handler(
    params: SteeringLinkInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        epic_ref, document_ref = SteeringDocumentRepository(session).link_to_epic(
            params.steering_document_id, params.epic_id
        )

    context.audit("link", RESOURCE_KIND, document_ref, {"epic": epic_ref})
    return tool_response(
        f"Successfully linked steering document {document_ref} to epic {epic_ref}",
        {"epic_id": epic_ref, "steering_document_id": document_ref, "linked": True},
    )


@trace_tool("unlink_steering_from_epic")
async def unlink_steering_from_epic_handler(
    params: SteeringLinkInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        epic_ref, document_ref = SteeringDocumentRepository(session).unlink_from_epic(
            params.steering_document_id, params.epic_id
        )

    context.audit("unlink", RESOURCE_KIND, document_ref, {"epic": epic_ref})
    return tool_response(
        f"Successfully unlinked steering document {document_ref} from epic {epic_ref}",
        {"epic_id": epic_ref, "steering_document_id": document_ref, "linked": False},
    )


steering_tools = [
    define_tool(
        "list_steering_documents",
        "List Steering Documents",
        "List steering documents, optionally only those linked to one epic.",
        ListSteeringDocumentsInput,
        list_steering_documents_handler,
        mutating=False,
    ),
    define_tool(
        "create_steering_document",
        "Create Steering Document",
        "Create a steering document with standing guidance for epics.",
        CreateSteeringDocumentInput,
        create_steering_document_handler,
        mutating=True,
    ),
    define_tool(
        "get_steering_document",
        "Get Steering Document",
        "Fetch one steering document by UUID or reference id.",
        GetSteeringDocumentInput,
        get_steering_document_handler,
        mutating=False,
    ),
    define_tool(
        "update_steering_document",
        "Update Steering Document",
        "Update the title or body of a steering document.",
        UpdateSteeringDocumentInput,
        update_steering_document_handler,
        mutating=True,
    ),
    define_tool(
        "link_steering_to_epic",
        "Link Steering Document",
        "Link a steering document to an epic.",
        SteeringLinkInput,
        link_steering_to_epic_handler,
        mutating=True,
    ),
    define_tool(
        "unlink_steering_from_epic",
        "Unlink Steering Document",
        "Remove the link between a steering document and an epic.",
        SteeringLinkInput,
        unlink_steering_from_epic_handler,
        mutating=True,
    ),
]
