"""
Acceptance criteria repository implementation.
"""

from pydantic import BaseModel, Field

from ..models.common import ReferencePrefix
from ..models.hierarchy import AcceptanceCriteria as AcceptanceCriteriaModel
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import AcceptanceCriteria as AcceptanceCriteriaDB
from .user_story_repository import UserStoryRepository


class AcceptanceCriteriaCreateSchema(BaseModel):
    user_story_id: str = Field(..., description="Parent user story UUID or reference id")
    description: str = Field(..., min_length=1, max_length=50000)


class AcceptanceCriteriaRepository(BaseRepository[AcceptanceCriteriaDB, AcceptanceCriteriaModel]):
    entity_kind = "acceptance_criteria"
    reference_prefix = ReferencePrefix.ACCEPTANCE_CRITERIA.value

    @property
    def model_class(self):
        return AcceptanceCriteriaDB

    @property
    def response_schema(self):
        return AcceptanceCriteriaModel

    def create(self, data: AcceptanceCriteriaCreateSchema, author_id: str) -> AcceptanceCriteriaModel:
        user_story = UserStoryRepository(self.session).resolve(data.user_story_id)
        db_obj = AcceptanceCriteriaDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            user_story_id=user_story.id,
            description=data.description,
            author_id=author_id,
        )
        return self._save(db_obj, "create acceptance criteria")

    def list_by_user_story(
        self, user_story_id: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[AcceptanceCriteriaModel]:
        return self.list({"user_story_id": user_story_id}, pagination)

    def count_by_user_story(self, user_story_id: str) -> int:
        return self.count({"user_story_id": user_story_id})
