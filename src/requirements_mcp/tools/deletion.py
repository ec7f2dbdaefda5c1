"""
Deletion tool.

``delete_entity`` removes an epic, user story, acceptance criterion or
requirement through the deletion engine. With ``dry_run`` it only reports
the dependency graph; with ``force`` dependent children are deleted too.
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..models.common import parse_entity_kind
from ..observability import trace_tool
from ..observability.metrics import record_deletion
from ..services.deletion import DeletionService
from .common import ToolContext, define_tool, tool_response

logger = logging.getLogger(__name__)

DeletableKind = Literal["epic", "user_story", "acceptance_criteria", "requirement"]


class DeleteEntityInput(BaseModel):
    entity_type: DeletableKind = Field(..., description="Kind of entity to delete")
    id: str = Field(..., min_length=1, description="UUID or reference id of the entity")
    force: bool = Field(
        default=False, description="Delete dependent children and override the criteria floor"
    )
    dry_run: bool = Field(
        default=False, description="Only report dependencies; nothing is deleted"
    )


@trace_tool("delete_entity")
async def delete_entity_handler(params: DeleteEntityInput, context: ToolContext) -> dict[str, Any]:
    service = DeletionService(context.db_manager)

    if params.dry_run:
        info = service.confirm(params.entity_type, params.id)
        if info.dependencies:
            message = (
                f"{info.reference_id} has {len(info.dependencies)} dependent item(s); "
                f"deleting with force would remove {info.cascade_delete_count} more"
            )
        else:
            message = f"{info.reference_id} can be deleted without side effects"
        return tool_response(message, info)

    kind = parse_entity_kind(params.entity_type)
    result = service.delete(kind, params.id, actor_id=context.actor.id, force=params.force)

    record_deletion(kind.value, len(result.cascade_deleted))
    context.audit(
        "delete",
        kind.value,
        result.entity_id,
        {
            "reference_id": result.reference_id,
            "force": params.force,
            "cascade_deleted": [item.reference_id for item in result.cascade_deleted],
            "transaction_id": result.transaction_id,
        },
    )

    message = f"Successfully deleted {kind.label} {result.reference_id}"
    if result.cascade_deleted:
        message += f" and {len(result.cascade_deleted)} dependent item(s)"
    return tool_response(message, result)


deletion_tools = [
    define_tool(
        "delete_entity",
        "Delete Entity",
        "Delete an epic, user story, acceptance criterion or requirement. Blocked while "
        "dependents exist unless force is set; dry_run reports the dependency graph.",
        DeleteEntityInput,
        delete_entity_handler,
        mutating=True,
    ),
]
