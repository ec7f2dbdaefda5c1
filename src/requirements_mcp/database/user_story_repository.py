"""
User story repository implementation.

User stories always belong to an epic; the parent can be given by UUID or
reference id and is resolved before insert.
"""

from pydantic import BaseModel, Field

from ..models.common import ReferencePrefix
from ..models.hierarchy import UserStory as UserStoryModel
from .epic_repository import EpicRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import UserStory as UserStoryDB


class UserStoryCreateSchema(BaseModel):
    epic_id: str = Field(..., description="Parent epic UUID or reference id")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int = Field(..., ge=1, le=4)
    status: str
    assignee_id: str | None = None


class UserStoryUpdateSchema(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    priority: int | None = Field(default=None, ge=1, le=4)
    status: str | None = None
    assignee_id: str | None = None


class UserStoryRepository(BaseRepository[UserStoryDB, UserStoryModel]):
    entity_kind = "user_story"
    reference_prefix = ReferencePrefix.USER_STORY.value

    @property
    def model_class(self):
        return UserStoryDB

    @property
    def response_schema(self):
        return UserStoryModel

    def create(self, data: UserStoryCreateSchema, creator_id: str) -> UserStoryModel:
        epic = EpicRepository(self.session).resolve(data.epic_id)
        fields = data.model_dump()
        fields["epic_id"] = epic.id
        db_obj = UserStoryDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            creator_id=creator_id,
            **fields,
        )
        return self._save(db_obj, "create user story")

    def update(self, identifier: str, data: UserStoryUpdateSchema) -> UserStoryModel:
        db_obj = self._resolve_db(identifier)
        return self._apply_changes(db_obj, data.model_dump(exclude_unset=True), "update user story")

    def list_by_epic(
        self, epic_id: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[UserStoryModel]:
        return self.list({"epic_id": epic_id}, pagination)
