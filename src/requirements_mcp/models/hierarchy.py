"""
Hierarchy models for the Product Requirements MCP Server.

Epic -> User Story -> Acceptance Criteria / Requirement, plus the
associative Requirement Relationship and the two type catalogs. These are
the whitelisted views the server emits; store internals never leave the
repositories.

Children carry a back-reference to their parent by id, never by object.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _EntityView(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Epic(_EntityView):
    """Top-level planning artifact owning zero or more user stories."""

    id: str = Field(..., description="Opaque UUID")
    reference_id: str = Field(..., description="Human readable id (EP-<n>)", pattern=r"^EP-\d+$")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    status: str = Field(..., description="Status name from the epic status model")
    priority: int = Field(..., ge=1, le=4, description="1 (critical) .. 4 (low)")
    creator_id: str
    assignee_id: str | None = None
    created_at: datetime
    updated_at: datetime


class UserStory(_EntityView):
    """A user story inside an epic."""

    id: str
    reference_id: str = Field(..., pattern=r"^US-\d+$")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    status: str
    priority: int = Field(..., ge=1, le=4)
    epic_id: str
    creator_id: str
    assignee_id: str | None = None
    created_at: datetime
    updated_at: datetime


class AcceptanceCriteria(_EntityView):
    """A testable condition attached to a user story."""

    id: str
    reference_id: str = Field(..., pattern=r"^AC-\d+$")
    description: str = Field(..., min_length=1, max_length=50000)
    user_story_id: str
    author_id: str
    created_at: datetime
    updated_at: datetime


class Requirement(_EntityView):
    """A detailed requirement derived from a user story."""

    id: str
    reference_id: str = Field(..., pattern=r"^REQ-\d+$")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    status: str
    priority: int = Field(..., ge=1, le=4)
    user_story_id: str
    acceptance_criteria_id: str | None = None
    type_id: str
    creator_id: str
    assignee_id: str | None = None
    created_at: datetime
    updated_at: datetime


class RequirementRelationship(_EntityView):
    """Directed link between two requirements."""

    id: str
    source_requirement_id: str
    target_requirement_id: str
    relationship_type_id: str
    created_by: str
    created_at: datetime


class RequirementWithRelationships(Requirement):
    """Requirement view used by ``requirement://REQ-n/relationships``."""

    source_relationships: list[RequirementRelationship] = Field(default_factory=list)
    target_relationships: list[RequirementRelationship] = Field(default_factory=list)


class EpicHierarchy(Epic):
    """Epic view used by ``epic://EP-n/hierarchy``."""

    user_stories: list[UserStory] = Field(default_factory=list)


class RequirementType(_EntityView):
    id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    created_at: datetime


class RelationshipType(_EntityView):
    id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    created_at: datetime
