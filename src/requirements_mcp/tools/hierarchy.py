"""
Hierarchy tools: create and update epics, user stories and requirements,
add acceptance criteria and link requirements.

Entity arguments accept either a UUID or a reference id (``EP-001``). The
authenticated actor becomes the creator (or author) of new entities.

Status rules:
- a new entity starts in its kind's initial status unless a valid status is
  supplied
- an update that changes ``status`` must follow a transition of the kind's
  default status model; repeating the current status is a self-transition
  and legal only when the model lists it
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database.acceptance_criteria_repository import (
    AcceptanceCriteriaCreateSchema,
    AcceptanceCriteriaRepository,
)
from ..database.epic_repository import EpicCreateSchema, EpicRepository, EpicUpdateSchema
from ..database.requirement_repository import (
    RelationshipCreateSchema,
    RequirementCreateSchema,
    RequirementRepository,
    RequirementUpdateSchema,
)
from ..database.user_story_repository import (
    UserStoryCreateSchema,
    UserStoryRepository,
    UserStoryUpdateSchema,
)
from ..models.common import EntityKind
from ..observability import trace_tool
from ..services.status_workflow import StatusWorkflowEngine
from .common import ToolContext, define_tool, tool_response

logger = logging.getLogger(__name__)

ENTITY_ID = "UUID or reference id"
PRIORITY = "Priority from 1 (critical) to 4 (low)"


# =============================================================================
# INPUT VALIDATION SCHEMAS
# =============================================================================


class CreateEpicInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Epic title")
    description: str | None = Field(default=None, max_length=50000, description="Epic description")
    priority: int = Field(..., ge=1, le=4, description=PRIORITY)
    status: str | None = Field(default=None, description="Initial status; defaults to Backlog")
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class UpdateEpicInput(BaseModel):
    epic_id: str = Field(..., min_length=1, description=f"Epic {ENTITY_ID}")
    title: str | None = Field(default=None, min_length=1, max_length=500, description="New title")
    description: str | None = Field(default=None, max_length=50000, description="New description")
    priority: int | None = Field(default=None, ge=1, le=4, description=PRIORITY)
    status: str | None = Field(default=None, description="Target status")
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class CreateUserStoryInput(BaseModel):
    epic_id: str = Field(..., min_length=1, description=f"Parent epic {ENTITY_ID}")
    title: str = Field(..., min_length=1, max_length=500, description="User story title")
    description: str | None = Field(
        default=None,
        max_length=50000,
        description="Story text, typically 'As a <role>, I want <goal>, so that <benefit>'",
    )
    priority: int = Field(..., ge=1, le=4, description=PRIORITY)
    status: str | None = Field(default=None, description="Initial status; defaults to Backlog")
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class UpdateUserStoryInput(BaseModel):
    user_story_id: str = Field(..., min_length=1, description=f"User story {ENTITY_ID}")
    title: str | None = Field(default=None, min_length=1, max_length=500, description="New title")
    description: str | None = Field(default=None, max_length=50000, description="New description")
    priority: int | None = Field(default=None, ge=1, le=4, description=PRIORITY)
    status: str | None = Field(default=None, description="Target status")
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class CreateRequirementInput(BaseModel):
    user_story_id: str = Field(..., min_length=1, description=f"Parent user story {ENTITY_ID}")
    type_id: str = Field(..., min_length=1, description="Requirement type UUID or name")
    title: str = Field(..., min_length=1, max_length=500, description="Requirement title")
    description: str | None = Field(default=None, max_length=50000, description="Details")
    priority: int = Field(..., ge=1, le=4, description=PRIORITY)
    acceptance_criteria_id: str | None = Field(
        default=None, description=f"Acceptance criteria {ENTITY_ID} of the same user story"
    )
    status: str | None = Field(default=None, description="Initial status; defaults to Draft")
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class UpdateRequirementInput(BaseModel):
    requirement_id: str = Field(..., min_length=1, description=f"Requirement {ENTITY_ID}")
    title: str | None = Field(default=None, min_length=1, max_length=500, description="New title")
    description: str | None = Field(default=None, max_length=50000, description="New description")
    priority: int | None = Field(default=None, ge=1, le=4, description=PRIORITY)
    status: str | None = Field(default=None, description="Target status")
    type_id: str | None = Field(default=None, description="Requirement type UUID or name")
    acceptance_criteria_id: str | None = Field(
        default=None, description=f"Acceptance criteria {ENTITY_ID} of the same user story"
    )
    assignee_id: str | None = Field(default=None, description="Assignee user id")


class CreateRelationshipInput(BaseModel):
    source_requirement_id: str = Field(..., min_length=1, description=f"Source {ENTITY_ID}")
    target_requirement_id: str = Field(..., min_length=1, description=f"Target {ENTITY_ID}")
    relationship_type_id: str = Field(
        ..., min_length=1, description="Relationship type UUID or name (e.g. depends_on)"
    )


class CreateAcceptanceCriteriaInput(BaseModel):
    user_story_id: str = Field(..., min_length=1, description=f"Parent user story {ENTITY_ID}")
    description: str = Field(
        ...,
        min_length=1,
        max_length=50000,
        description="Testable condition, e.g. 'WHEN ... THEN ...'",
    )


# =============================================================================
# HELPERS
# =============================================================================

# Columns that cannot be cleared by passing null
_REQUIRED_COLUMNS = frozenset({"title", "priority", "status", "type_id"})


def _changes(params: BaseModel, id_field: str) -> dict[str, Any]:
    changes = params.model_dump(exclude_unset=True, exclude={id_field})
    return {
        field: value
        for field, value in changes.items()
        if value is not None or field not in _REQUIRED_COLUMNS
    }


def _apply_status_change(
    session: Session, kind: EntityKind, current: str, changes: dict[str, Any]
) -> None:
    """Replace ``changes['status']`` with the validated target status."""
    requested = changes.get("status")
    if requested is None:
        return
    changes["status"] = StatusWorkflowEngine(session).validate_transition(kind, current, requested)


# =============================================================================
# TOOL HANDLERS
# =============================================================================


@trace_tool("create_epic")
async def create_epic_handler(params: CreateEpicInput, context: ToolContext) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        status = StatusWorkflowEngine(session).status_for_create(EntityKind.EPIC, params.status)
        data = EpicCreateSchema(**params.model_dump(exclude={"status"}), status=status)
        epic = EpicRepository(session).create(data, creator_id=context.actor.id)

    context.audit("create", EntityKind.EPIC.value, epic.id, {"reference_id": epic.reference_id})
    return tool_response(f"Successfully created epic {epic.reference_id}: {epic.title}", epic)


@trace_tool("update_epic")
async def update_epic_handler(params: UpdateEpicInput, context: ToolContext) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = EpicRepository(session)
        current = repository.resolve(params.epic_id)
        changes = _changes(params, "epic_id")
        _apply_status_change(session, EntityKind.EPIC, current.status, changes)
        epic = repository.update(current.id, EpicUpdateSchema(**changes))

    context.audit("update", EntityKind.EPIC.value, epic.id, {"fields": sorted(changes)})
    return tool_response(f"Successfully updated epic {epic.reference_id}: {epic.title}", epic)


@trace_tool("create_user_story")
async def create_user_story_handler(
    params: CreateUserStoryInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        status = StatusWorkflowEngine(session).status_for_create(
            EntityKind.USER_STORY, params.status
        )
        data = UserStoryCreateSchema(**params.model_dump(exclude={"status"}), status=status)
        story = UserStoryRepository(session).create(data, creator_id=context.actor.id)

    context.audit(
        "create", EntityKind.USER_STORY.value, story.id, {"reference_id": story.reference_id}
    )
    return tool_response(
        f"Successfully created user story {story.reference_id}: {story.title}", story
    )


@trace_tool("update_user_story")
async def update_user_story_handler(
    params: UpdateUserStoryInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = UserStoryRepository(session)
        current = repository.resolve(params.user_story_id)
        changes = _changes(params, "user_story_id")
        _apply_status_change(session, EntityKind.USER_STORY, current.status, changes)
        story = repository.update(current.id, UserStoryUpdateSchema(**changes))

    context.audit("update", EntityKind.USER_STORY.value, story.id, {"fields": sorted(changes)})
    return tool_response(
        f"Successfully updated user story {story.reference_id}: {story.title}", story
    )


@trace_tool("create_requirement")
async def create_requirement_handler(
    params: CreateRequirementInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        status = StatusWorkflowEngine(session).status_for_create(
            EntityKind.REQUIREMENT, params.status
        )
        data = RequirementCreateSchema(**params.model_dump(exclude={"status"}), status=status)
        requirement = RequirementRepository(session).create(data, creator_id=context.actor.id)

    context.audit(
        "create",
        EntityKind.REQUIREMENT.value,
        requirement.id,
        {"reference_id": requirement.reference_id},
    )
    return tool_response(
        f"Successfully created requirement {requirement.reference_id}: {requirement.title}",
        requirement,
    )


@trace_tool("update_requirement")
async def update_requirement_handler(
    params: UpdateRequirementInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = RequirementRepository(session)
        current = repository.resolve(params.requirement_id)
        changes = _changes(params, "requirement_id")
        _apply_status_change(session, EntityKind.REQUIREMENT, current.status, changes)
        requirement = repository.update(current.id, RequirementUpdateSchema(**changes))

    context.audit(
        "update", EntityKind.REQUIREMENT.value, requirement.id, {"fields": sorted(changes)}
    )
    return tool_response(
        f"Successfully updated requirement {requirement.reference_id}: {requirement.title}",
        requirement,
    )


@trace_tool("create_relationship")
async def create_relationship_handler(
    params: CreateRelationshipInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        repository = RequirementRepository(session)
        relationship = repository.create_relationship(
            RelationshipCreateSchema(**params.model_dump()), created_by=context.actor.id
        )
        source = repository.resolve(relationship.source_requirement_id)
        target = repository.resolve(relationship.target_requirement_id)

    context.audit(
        "create",
        "requirement_relationship",
        relationship.id,
        {"source": source.reference_id, "target": target.reference_id},
    )
    return tool_response(
        f"Successfully created relationship {source.reference_id} -> {target.reference_id}",
        relationship,
    )


@trace_tool("create_acceptance_criteria")
async def create_acceptance_criteria_handler(
    params: CreateAcceptanceCriteriaInput, context: ToolContext
) -> dict[str, Any]:
    with context.db_manager.session_scope() as session:
        criteria = AcceptanceCriteriaRepository(session).create(
            AcceptanceCriteriaCreateSchema(**params.model_dump()), author_id=context.actor.id
        )

    context.audit(
        "create",
        EntityKind.ACCEPTANCE_CRITERIA.value,
        criteria.id,
        {"reference_id": criteria.reference_id},
    )
    return tool_response(
        f"Successfully created acceptance criteria {criteria.reference_id}", criteria
    )


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

hierarchy_tools = [
    define_tool(
        "create_epic",
        "Create Epic",
        "Create a new epic. Starts in the initial status unless a valid status is given.",
        CreateEpicInput,
        create_epic_handler,
        mutating=True,
    ),
    define_tool(
        "update_epic",
        "Update Epic",
        "Update an epic. Status changes must follow the epic status workflow.",
        UpdateEpicInput,
        update_epic_handler,
        mutating=True,
    ),
    define_tool(
        "create_user_story",
        "Create User Story",
        "Create a user story inside an epic.",
        CreateUserStoryInput,
        create_user_story_handler,
        mutating=True,
    ),
    define_tool(
        "update_user_story",
        "Update User Story",
        "Update a user story. Status changes must follow the user story status workflow.",
        UpdateUserStoryInput,
        update_user_story_handler,
        mutating=True,
    ),
    define_tool(
        "create_requirement",
        "Create Requirement",
        "Create a requirement for a user story, optionally tied to one of its acceptance criteria.",
        CreateRequirementInput,
        create_requirement_handler,
        mutating=True,
    ),
    define_tool(
        "update_requirement",
        "Update Requirement",
        "Update a requirement. Status changes must follow the requirement status workflow.",
        UpdateRequirementInput,
        update_requirement_handler,
        mutating=True,
    ),
    define_tool(
        "create_relationship",
        "Create Relationship",
        "Create a typed relationship between two different requirements.",
        CreateRelationshipInput,
        create_relationship_handler,
        mutating=True,
    ),
    define_tool(
        "create_acceptance_criteria",
        "Create Acceptance Criteria",
        "Add an acceptance criterion to a user story.",
        CreateAcceptanceCriteriaInput,
        create_acceptance_criteria_handler,
        mutating=True,
    ),
]
