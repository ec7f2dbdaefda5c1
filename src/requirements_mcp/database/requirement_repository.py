"""
Requirement repository implementation.

Requirements belong to a user story, may point at one of that story's
acceptance criteria, and carry a requirement type. Relationships between
requirements are managed here as well since they never exist on their own.
"""

from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from ..errors import ConflictError, ValidationFailedError
from ..models.common import ReferencePrefix
from ..models.hierarchy import Requirement as RequirementModel
from ..models.hierarchy import RequirementRelationship as RequirementRelationshipModel
from ..models.hierarchy import RequirementWithRelationships
from .acceptance_criteria_repository import AcceptanceCriteriaRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Requirement as RequirementDB
from .schema import RequirementRelationship as RequirementRelationshipDB
from .session import mcp_safe_commit, mcp_safe_query
from .type_repository import RelationshipTypeRepository, RequirementTypeRepository
from .user_story_repository import UserStoryRepository


class RequirementCreateSchema(BaseModel):
    user_story_id: str = Field(..., description="Parent user story UUID or reference id")
    acceptance_criteria_id: str | None = None
    type_id: str = Field(..., description="Requirement type UUID or name")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int = Field(..., ge=1, le=4)
    status: str
    assignee_id: str | None = None


class RequirementUpdateSchema(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int | None = Field(default=None, ge=1, le=4)
    status: str | None = None
    assignee_id: str | None = None
    type_id: str | None = None
    acceptance_criteria_id: str | None = None


class RelationshipCreateSchema(BaseModel):
    source_requirement_id: str
    target_requirement_id: str
    relationship_type_id: str = Field(..., description="Relationship type UUID or name")


class RequirementRepository(BaseRepository[RequirementDB, RequirementModel]):
    entity_kind = "requirement"
    reference_prefix = ReferencePrefix.REQUIREMENT.value

    @property
    def model_class(self):
        return RequirementDB

    @property
    def response_schema(self):
        return RequirementModel

    def _resolve_acceptance_criteria(self, identifier: str, user_story_id: str) -> str:
        criteria = AcceptanceCriteriaRepository(self.session).resolve(identifier)
        if criteria.user_story_id != user_story_id:
            raise ValidationFailedError(
                f"Acceptance criteria {criteria.reference_id} belongs to a different user story",
                {"field": "acceptance_criteria_id"},
            )
        return criteria.id

    def create(self, data: RequirementCreateSchema, creator_id: str) -> RequirementModel:
        user_story = UserStoryRepository(self.session).resolve(data.user_story_id)
        fields = data.model_dump()
        fields["user_story_id"] = user_story.id
        fields["type_id"] = RequirementTypeRepository(self.session).resolve(data.type_id).id
        if data.acceptance_criteria_id:
            fields["acceptance_criteria_id"] = self._resolve_acceptance_criteria(
                data.acceptance_criteria_id, user_story.id
            )
        db_obj = RequirementDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            creator_id=creator_id,
            **fields,
        )
        return self._save(db_obj, "create requirement")

    def update(self, identifier: str, data: RequirementUpdateSchema) -> RequirementModel:
        db_obj = self._resolve_db(identifier)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("type_id"):
            changes["type_id"] = RequirementTypeRepository(self.session).resolve(changes["type_id"]).id
        if changes.get("acceptance_criteria_id"):
            changes["acceptance_criteria_id"] = self._resolve_acceptance_criteria(
                changes["acceptance_criteria_id"], db_obj.user_story_id
            )
        return self._apply_changes(db_obj, changes, "update requirement")

    def list_by_user_story(
        self, user_story_id: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[RequirementModel]:
        return self.list({"user_story_id": user_story_id}, pagination)

    def get_with_relationships(self, identifier: str) -> RequirementWithRelationships:
        requirement_id = self._resolve_db(identifier).id
        query = (
            select(RequirementDB)
            .where(RequirementDB.id == requirement_id)
            .options(
                selectinload(RequirementDB.source_relationships),
                selectinload(RequirementDB.target_relationships),
            )
            .execution_options(populate_existing=True)
        )
        db_obj = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one(),
            "Failed to load requirement relationships",
        )
        return RequirementWithRelationships.model_validate(db_obj, from_attributes=True)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def list_relationships(self, requirement_id: str) -> list[RequirementRelationshipModel]:
        """Relationships where the requirement is either source or target."""
        query = (
            select(RequirementRelationshipDB)
            .where(
                or_(
                    RequirementRelationshipDB.source_requirement_id == requirement_id,
                    RequirementRelationshipDB.target_requirement_id == requirement_id,
                )
            )
            .order_by(RequirementRelationshipDB.created_at, RequirementRelationshipDB.id)
        )
        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to list requirement relationships",
        )
        return [RequirementRelationshipModel.model_validate(row, from_attributes=True) for row in rows]

    def create_relationship(
        self, data: RelationshipCreateSchema, created_by: str
    ) -> RequirementRelationshipModel:
        source = self._resolve_db(data.source_requirement_id)
        target = self._resolve_db(data.target_requirement_id)
        if source.id == target.id:
            raise ValidationFailedError(
                "A requirement cannot have a relationship with itself",
                {"field": "target_requirement_id"},
            )
        relationship_type = RelationshipTypeRepository(self.session).resolve(
            data.relationship_type_id
        )

        duplicate_query = select(RequirementRelationshipDB.id).where(
            RequirementRelationshipDB.source_requirement_id == source.id,
            RequirementRelationshipDB.target_requirement_id == target.id,
            RequirementRelationshipDB.relationship_type_id == relationship_type.id,
        )
        duplicate = mcp_safe_query(
            self.session,
            lambda s: s.execute(duplicate_query).first(),
            "Failed to check for duplicate relationship",
        )
        if duplicate is not None:
            raise ConflictError(
                f"Relationship '{relationship_type.name}' from {source.reference_id} "
                f"to {target.reference_id} already exists",
                hint="Use the existing relationship",
            )

        db_obj = RequirementRelationshipDB(
            id=self._new_id(),
            source_requirement_id=source.id,
            target_requirement_id=target.id,
            relationship_type_id=relationship_type.id,
            created_by=created_by,
        )
        self.session.add(db_obj)
        mcp_safe_commit(self.session, "create relationship")
        self.session.refresh(db_obj)
        return RequirementRelationshipModel.model_validate(db_obj, from_attributes=True)
