"""
Prompt repository implementation.

Prompts are user managed system prompts. Names are unique and at most one
prompt is active; activation flips every other prompt off in the same
transaction. New prompts start inactive.
"""

from pydantic import BaseModel, Field
from sqlalchemy import func, select, update

from ..errors import NotFoundError, ValidationFailedError
from ..models.common import ReferencePrefix, is_uuid
from ..models.prompt import Prompt as PromptModel
from ..models.prompt import PromptRole
from .repository import BaseRepository
from .schema import Prompt as PromptDB
from .schema import PromptRoleEnum
from .session import mcp_safe_commit, mcp_safe_query


class PromptCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    content: str = Field(..., min_length=1, max_length=50000)
    role: PromptRole = PromptRole.ASSISTANT


class PromptUpdateSchema(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    content: str | None = Field(default=None, min_length=1, max_length=50000)
    role: PromptRole | None = None


class PromptRepository(BaseRepository[PromptDB, PromptModel]):
    entity_kind = "prompt"
    reference_prefix = ReferencePrefix.PROMPT.value

    @property
    def model_class(self):
        return PromptDB

    @property
    def response_schema(self):
        return PromptModel

    def _get_db_by_name(self, name: str) -> PromptDB | None:
        query = select(PromptDB).where(PromptDB.name == name)
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get prompt by name",
        )

    def _ensure_unique_name(self, name: str, exclude_id: str | None = None) -> None:
        existing = self._get_db_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise ValidationFailedError(
                f"Prompt with name '{name}' already exists", {"field": "name"}
            )

    def _resolve_db(self, identifier: str) -> PromptDB:
        """Prompts additionally resolve by their unique name."""
        identifier = str(identifier).strip()
        if is_uuid(identifier) or identifier.upper().startswith(f"{self.reference_prefix}-"):
            return super()._resolve_db(identifier)
        db_obj = self._get_db_by_name(identifier)
        if db_obj is None:
            raise NotFoundError(self.entity_kind, identifier)
        return db_obj

    def get_by_name(self, name: str) -> PromptModel | None:
        db_obj = self._get_db_by_name(name)
        return None if db_obj is None else self._to_response_model(db_obj)

    def get_active(self) -> PromptModel | None:
        query = select(PromptDB).where(PromptDB.is_active.is_(True))
        db_obj = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().first(),
            "Failed to get active prompt",
        )
        return None if db_obj is None else self._to_response_model(db_obj)

    def count_active(self) -> int:
        query = select(func.count()).select_from(PromptDB).where(PromptDB.is_active.is_(True))
        return mcp_safe_query(self.session, lambda s: s.execute(query).scalar(), "Failed to count") or 0

    def create(self, data: PromptCreateSchema, creator_id: str) -> PromptModel:
        self._ensure_unique_name(data.name)
        db_obj = PromptDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            name=data.name,
            title=data.title,
            description=data.description,
            content=data.content,
            role=PromptRoleEnum(data.role.value),
            is_active=False,
            creator_id=creator_id,
        )
        return self._save(db_obj, "create prompt")

    def update(self, identifier: str, data: PromptUpdateSchema) -> PromptModel:
        db_obj = self._resolve_db(identifier)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            self._ensure_unique_name(changes["name"], exclude_id=db_obj.id)
        if changes.get("role") is not None:
            changes["role"] = PromptRoleEnum(changes["role"].value)
        return self._apply_changes(db_obj, changes, "update prompt")

    def activate(self, identifier: str) -> PromptModel:
        """Make one prompt the active prompt, deactivating all others."""
        db_obj = self._resolve_db(identifier)
        self.session.execute(
            update(PromptDB)
            .where(PromptDB.is_active.is_(True), PromptDB.id != db_obj.id)
            .values(is_active=False)
        )
        # The partial unique index needs the old row cleared first
        self.session.flush()
        self.session.execute(
            update(PromptDB).where(PromptDB.id == db_obj.id).values(is_active=True)
        )
        mcp_safe_commit(self.session, "activate prompt")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def delete(self, identifier: str) -> PromptModel:
        db_obj = self._resolve_db(identifier)
        deleted = self._to_response_model(db_obj)
        self.session.delete(db_obj)
        mcp_safe_commit(self.session, "delete prompt")
        return deleted
