"""
Tests for the hierarchy tools (epics, user stories, requirements, criteria).

These tests cover:
1. Input validation
2. Success scenarios and response shape
3. Status workflow enforcement on create and update
4. Reference id and UUID addressing
"""

import pytest

from requirements_mcp.database import EpicRepository, RequirementRepository, RequirementTypeRepository
from requirements_mcp.errors import (
    ConflictError,
    InvalidArgumentsError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from requirements_mcp.models.common import EntityKind
from requirements_mcp.services.status_workflow import StatusModelAdmin
from requirements_mcp.tools.common import validate_arguments
from requirements_mcp.tools.hierarchy import (
    CreateAcceptanceCriteriaInput,
    CreateEpicInput,
    CreateRelationshipInput,
    CreateRequirementInput,
    CreateUserStoryInput,
    UpdateEpicInput,
    UpdateRequirementInput,
    UpdateUserStoryInput,
    create_acceptance_criteria_handler,
    create_epic_handler,
    create_relationship_handler,
    create_requirement_handler,
    create_user_story_handler,
    update_epic_handler,
    update_requirement_handler,
    update_user_story_handler,
)


def unpack(response):
    text, data = response["content"]
    assert text["type"] == "text"
    assert data["type"] == "data"
    return text["text"], data["data"]


class TestHierarchyInputValidation:
    """Validation happens before any handler runs."""

    def test_epic_priority_bounds(self):
        for priority in (0, 5):
            with pytest.raises(InvalidArgumentsError) as exc_info:
                validate_arguments(CreateEpicInput, {"title": "X", "priority": priority})
            assert exc_info.value.field == "priority"

    def test_missing_title(self):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            validate_arguments(CreateEpicInput, {"priority": 1})
        assert exc_info.value.field == "title"
        assert exc_info.value.details["errors"][0]["type"] == "missing"

    def test_empty_acceptance_criteria_rejected(self):
        with pytest.raises(InvalidArgumentsError):
            validate_arguments(
                CreateAcceptanceCriteriaInput, {"user_story_id": "US-001", "description": ""}
            )


@pytest.mark.asyncio
class TestEpicTools:
    async def test_create_epic_defaults_to_backlog(self, tool_context):
        response = await create_epic_handler(
            CreateEpicInput(title="Billing", description="Invoices and payments", priority=2),
            tool_context,
        )

        message, epic = unpack(response)
        assert message == "Successfully created epic EP-001: Billing"
        assert epic["reference_id"] == "EP-001"
        assert epic["status"] == "Backlog"
        assert epic["creator_id"] == tool_context.actor.id

    async def test_create_epic_with_explicit_status(self, tool_context):
        response = await create_epic_handler(
            CreateEpicInput(title="Billing", priority=2, status="in_progress"), tool_context
        )
        assert unpack(response)[1]["status"] == "In Progress"

    async def test_create_epic_unknown_status(self, tool_context):
        with pytest.raises(InvalidStatusError):
            await create_epic_handler(
                CreateEpicInput(title="Billing", priority=2, status="Shipped"), tool_context
            )

    async def test_reference_ids_increment(self, tool_context):
        for title in ("One", "Two", "Three"):
            await create_epic_handler(CreateEpicInput(title=title, priority=3), tool_context)

        with tool_context.db_manager.session_scope() as session:
            assert EpicRepository(session).resolve("EP-003").title == "Three"

    async def test_update_epic_fields(self, tool_context, sample_hierarchy):
        response = await update_epic_handler(
            UpdateEpicInput(epic_id="EP-001", title="Identity", priority=3), tool_context
        )

        message, epic = unpack(response)
        assert message == "Successfully updated epic EP-001: Identity"
        assert epic["priority"] == 3
        assert epic["status"] == "Backlog"

    async def test_update_epic_by_uuid(self, tool_context, sample_hierarchy):
        epic_id = sample_hierarchy["epic"].id
        response = await update_epic_handler(
            UpdateEpicInput(epic_id=epic_id, description="Sign in and out"), tool_context
        )
        assert unpack(response)[1]["description"] == "Sign in and out"

    async def test_legal_transition(self, tool_context, sample_hierarchy):
        response = await update_epic_handler(
            UpdateEpicInput(epic_id="EP-001", status="In Progress"), tool_context
        )
        assert unpack(response)[1]["status"] == "In Progress"

    async def test_illegal_transition_leaves_status_unchanged(self, tool_context, sample_hierarchy):
        with pytest.raises(InvalidTransitionError) as exc_info:
            await update_epic_handler(UpdateEpicInput(epic_id="EP-001", status="Done"), tool_context)

        assert exc_info.value.details["from_status"] == "Backlog"
        with tool_context.db_manager.session_scope() as session:
            assert EpicRepository(session).resolve("EP-001").status == "Backlog"

    async def test_unlisted_self_transition_rejected(self, tool_context, sample_hierarchy):
        with pytest.raises(InvalidTransitionError) as exc_info:
            await update_epic_handler(
                UpdateEpicInput(epic_id="EP-001", status="backlog", title="Renamed"), tool_context
            )

        assert exc_info.value.details["to_status"] == "Backlog"
        with tool_context.db_manager.session_scope() as session:
            epic = EpicRepository(session).resolve("EP-001")
        assert epic.status == "Backlog"
        assert epic.title == "Authentication"

    async def test_null_title_is_ignored(self, tool_context, sample_hierarchy):
        response = await update_epic_handler(
            UpdateEpicInput(epic_id="EP-001", title=None, assignee_id="user-bob"), tool_context
        )

        epic = unpack(response)[1]
        assert epic["title"] == "Authentication"
        assert epic["assignee_id"] == "user-bob"

    async def test_update_missing_epic(self, tool_context):
        with pytest.raises(NotFoundError):
            await update_epic_handler(UpdateEpicInput(epic_id="EP-404", title="x"), tool_context)


@pytest.mark.asyncio
class TestUserStoryTools:
    async def test_create_user_story(self, tool_context, sample_hierarchy):
        response = await create_user_story_handler(
            CreateUserStoryInput(
                epic_id="EP-001",
                title="Logout",
                description="As a user, I want to log out, so that my session ends",
                priority=3,
            ),
            tool_context,
        )

        message, story = unpack(response)
        assert message == "Successfully created user story US-002: Logout"
        assert story["epic_id"] == sample_hierarchy["epic"].id
        assert story["status"] == "Backlog"

    async def test_create_user_story_unknown_epic(self, tool_context):
        with pytest.raises(NotFoundError) as exc_info:
            await create_user_story_handler(
                CreateUserStoryInput(epic_id="EP-404", title="Orphan", priority=1), tool_context
            )
        assert exc_info.value.entity_kind == "epic"

    async def test_update_user_story_transition(self, tool_context, sample_hierarchy):
        response = await update_user_story_handler(
            UpdateUserStoryInput(user_story_id="US-001", status="Draft"), tool_context
        )
        assert unpack(response)[1]["status"] == "Draft"

        with pytest.raises(InvalidTransitionError):
            await update_user_story_handler(
                UpdateUserStoryInput(user_story_id="US-001", status="Done"), tool_context
            )

    async def test_listed_self_transition_accepted(self, tool_context, sample_hierarchy):
        with tool_context.db_manager.session_scope() as session:
            admin = StatusModelAdmin(session)
            model = admin.create_model(EntityKind.USER_STORY, "Refinement", is_default=True)
            admin.add_status(model.id, "Backlog", is_initial=True)
            admin.add_status(model.id, "Done", is_final=True)
            admin.add_transition(model.id, "Backlog", "Backlog")

        response = await update_user_story_handler(
            UpdateUserStoryInput(user_story_id="US-001", status="backlog", priority=4), tool_context
        )

        story = unpack(response)[1]
        assert story["status"] == "Backlog"
        assert story["priority"] == 4


@pytest.mark.asyncio
class TestRequirementTools:
    async def test_create_requirement(self, tool_context, sample_hierarchy):
        response = await create_requirement_handler(
            CreateRequirementInput(
                user_story_id="US-001",
                type_id="non-functional",
                title="Login completes within two seconds",
                priority=2,
                acceptance_criteria_id="AC-001",
            ),
            tool_context,
        )

        message, requirement = unpack(response)
        assert message == "Successfully created requirement REQ-002: Login completes within two seconds"
        assert requirement["status"] == "Draft"
        assert requirement["acceptance_criteria_id"] == sample_hierarchy["acceptance_criteria"].id
        with tool_context.db_manager.session_scope() as session:
            expected_type = RequirementTypeRepository(session).resolve("Non-Functional")
        assert requirement["type_id"] == expected_type.id

    async def test_requirement_rejects_hierarchy_status(self, tool_context, sample_hierarchy):
        with pytest.raises(InvalidStatusError):
            await create_requirement_handler(
                CreateRequirementInput(
                    user_story_id="US-001",
                    type_id="Functional",
                    title="Bad status",
                    priority=1,
                    status="Backlog",
                ),
                tool_context,
            )

    async def test_criteria_from_another_story(self, tool_context, sample_hierarchy):
        story = await create_user_story_handler(
            CreateUserStoryInput(epic_id="EP-001", title="Other", priority=2), tool_context
        )

        with pytest.raises(ValidationFailedError) as exc_info:
            await create_requirement_handler(
                CreateRequirementInput(
                    user_story_id=unpack(story)[1]["reference_id"],
                    type_id="Functional",
                    title="Mismatched criteria",
                    priority=2,
                    acceptance_criteria_id="AC-001",
                ),
                tool_context,
            )
        assert exc_info.value.details["field"] == "acceptance_criteria_id"

    async def test_unknown_requirement_type(self, tool_context, sample_hierarchy):
        with pytest.raises(NotFoundError):
            await create_requirement_handler(
                CreateRequirementInput(
                    user_story_id="US-001", type_id="Aesthetic", title="Pretty", priority=4
                ),
                tool_context,
            )

    async def test_update_requirement_status_path(self, tool_context, sample_hierarchy):
        response = await update_requirement_handler(
            UpdateRequirementInput(requirement_id="REQ-001", status="Active"), tool_context
        )
        assert unpack(response)[1]["status"] == "Active"

        response = await update_requirement_handler(
            UpdateRequirementInput(requirement_id="REQ-001", status="Obsolete"), tool_context
        )
        assert unpack(response)[1]["status"] == "Obsolete"

    async def test_update_requirement_illegal_status(self, tool_context, sample_hierarchy):
        with pytest.raises(InvalidStatusError):
            await update_requirement_handler(
                UpdateRequirementInput(requirement_id="REQ-001", status="Done"), tool_context
            )

    async def test_clear_acceptance_criteria_link(self, tool_context, sample_hierarchy):
        response = await update_requirement_handler(
            UpdateRequirementInput(requirement_id="REQ-001", acceptance_criteria_id=None),
            tool_context,
        )
        assert unpack(response)[1]["acceptance_criteria_id"] is None


async def _second_requirement(tool_context):
    response = await create_requirement_handler(
        CreateRequirementInput(
            user_story_id="US-001", type_id="Data", title="Store password hashes", priority=1
        ),
        tool_context,
    )
    return unpack(response)[1]


@pytest.mark.asyncio
class TestRelationshipAndCriteriaTools:
    async def test_create_relationship(self, tool_context, sample_hierarchy):
        second_requirement = await _second_requirement(tool_context)
        response = await create_relationship_handler(
            CreateRelationshipInput(
                source_requirement_id="REQ-001",
                target_requirement_id="REQ-002",
                relationship_type_id="depends_on",
            ),
            tool_context,
        )

        message, relationship = unpack(response)
        assert message == "Successfully created relationship REQ-001 -> REQ-002"
        assert relationship["target_requirement_id"] == second_requirement["id"]
        assert relationship["created_by"] == tool_context.actor.id

        with tool_context.db_manager.session_scope() as session:
            relationships = RequirementRepository(session).list_relationships(
                sample_hierarchy["requirement"].id
            )
        assert len(relationships) == 1

    async def test_duplicate_relationship(self, tool_context, sample_hierarchy):
        await _second_requirement(tool_context)
        params = CreateRelationshipInput(
            source_requirement_id="REQ-001",
            target_requirement_id="REQ-002",
            relationship_type_id="blocks",
        )
        await create_relationship_handler(params, tool_context)

        with pytest.raises(ConflictError):
            await create_relationship_handler(params, tool_context)

    async def test_self_relationship(self, tool_context, sample_hierarchy):
        with pytest.raises(ValidationFailedError):
            await create_relationship_handler(
                CreateRelationshipInput(
                    source_requirement_id="REQ-001",
                    target_requirement_id="REQ-001",
                    relationship_type_id="relates_to",
                ),
                tool_context,
            )

    async def test_create_acceptance_criteria(self, tool_context, sample_hierarchy):
        response = await create_acceptance_criteria_handler(
            CreateAcceptanceCriteriaInput(
                user_story_id="US-001",
                description="WHEN the password is wrong THEN an error is shown",
            ),
            tool_context,
        )

        message, criteria = unpack(response)
        assert message == "Successfully created acceptance criteria AC-002"
        assert criteria["author_id"] == tool_context.actor.id
        assert criteria["user_story_id"] == sample_hierarchy["user_story"].id
