"""
Epic repository implementation for the Product Requirements MCP Server.

Epics sit at the top of the hierarchy. Besides the base lookups this
repository builds the ``epic://EP-n/hierarchy`` view (epic plus its user
stories) used by the resource reader.
"""

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..models.common import ReferencePrefix
from ..models.hierarchy import Epic as EpicModel
from ..models.hierarchy import EpicHierarchy
from .repository import BaseRepository
from .schema import Epic as EpicDB
from .session import mcp_safe_query


class EpicCreateSchema(BaseModel):
    """Fields accepted when creating an epic; ``status`` is already validated."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int = Field(..., ge=1, le=4)
    status: str
    assignee_id: str | None = None


class EpicUpdateSchema(BaseModel):
    """Schema for updating an epic - all fields optional."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int | None = Field(default=None, ge=1, le=4)
    status: str | None = None
    assignee_id: str | None = None


class EpicRepository(BaseRepository[EpicDB, EpicModel]):
    entity_kind = "epic"
    reference_prefix = ReferencePrefix.EPIC.value

    @property
    def model_class(self):
        return EpicDB

    @property
    def response_schema(self):
        return EpicModel

    def create(self, data: EpicCreateSchema, creator_id: str) -> EpicModel:
        db_obj = EpicDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            creator_id=creator_id,
            **data.model_dump(),
        )
        return self._save(db_obj, "create epic")

    def update(self, identifier: str, data: EpicUpdateSchema) -> EpicModel:
        db_obj = self._resolve_db(identifier)
        return self._apply_changes(db_obj, data.model_dump(exclude_unset=True), "update epic")

    def get_hierarchy(self, identifier: str) -> EpicHierarchy:
        """Epic with its user stories nested, in reference id order."""
        epic_id = self._resolve_db(identifier).id
        query = (
            select(EpicDB)
            .where(EpicDB.id == epic_id)
            .options(selectinload(EpicDB.user_stories))
            .execution_options(populate_existing=True)
        )
        db_obj = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one(),
            "Failed to load epic hierarchy",
        )
        return EpicHierarchy.model_validate(db_obj, from_attributes=True)
