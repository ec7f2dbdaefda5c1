"""
Requirement type and relationship type catalogs.

Types are addressed by UUID or by their unique name. A type that is still
referenced cannot be deleted; there is no force override for types.
"""

from pydantic import BaseModel, Field
from sqlalchemy import func, select

from ..errors import NotFoundError, TypeInUseError, ValidationFailedError
from ..models.common import is_uuid
from ..models.hierarchy import RelationshipType as RelationshipTypeModel
from ..models.hierarchy import RequirementType as RequirementTypeModel
from .repository import BaseRepository
from .schema import RelationshipType as RelationshipTypeDB
from .schema import Requirement as RequirementDB
from .schema import RequirementRelationship as RequirementRelationshipDB
from .schema import RequirementType as RequirementTypeDB
from .session import mcp_safe_commit, mcp_safe_query


class TypeCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class _TypeRepository(BaseRepository):
    """Shared behaviour of the two type catalogs."""

    # Column on the referencing table that points at this catalog
    usage_column = None

    def _default_ordering(self) -> list:
        return [self.model_class.name]

    def _get_db_by_name(self, name: str):
        query = select(self.model_class).where(func.lower(self.model_class.name) == name.lower())
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_kind} by name",
        )

    def _resolve_db(self, identifier: str):
        identifier = str(identifier).strip()
        db_obj = self._get_db(identifier) if is_uuid(identifier) else self._get_db_by_name(identifier)
        if db_obj is None:
            raise NotFoundError(self.entity_kind, identifier)
        return db_obj

    def create(self, data: TypeCreateSchema):
        if self._get_db_by_name(data.name) is not None:
            raise ValidationFailedError(
                f"{self.entity_kind.replace('_', ' ').capitalize()} '{data.name}' already exists",
                {"field": "name"},
            )
        db_obj = self.model_class(id=self._new_id(), name=data.name, description=data.description)
        return self._save(db_obj, f"create {self.entity_kind}")

    def usage_count(self, type_id: str) -> int:
        column = self.usage_column
        query = select(func.count()).where(column == type_id)
        return (
            mcp_safe_query(
                self.session, lambda s: s.execute(query).scalar(), "Failed to count type usage"
            )
            or 0
        )

    def delete(self, identifier: str, force: bool = False) -> None:  # noqa: ARG002
        """
        Delete a type.

        ``force`` is accepted for symmetry with the hierarchy but has no
        effect: a referenced type always raises ``TypeInUseError``.
        """
        db_obj = self._resolve_db(identifier)
        usage = self.usage_count(db_obj.id)
        if usage:
            raise TypeInUseError(self.entity_kind, db_obj.name, usage)
        self.session.delete(db_obj)
        mcp_safe_commit(self.session, f"delete {self.entity_kind}")


class RequirementTypeRepository(_TypeRepository):
    entity_kind = "requirement_type"
    usage_column = RequirementDB.type_id

    @property
    def model_class(self):
        return RequirementTypeDB

    @property
    def response_schema(self):
        return RequirementTypeModel


class RelationshipTypeRepository(_TypeRepository):
    entity_kind = "relationship_type"
    usage_column = RequirementRelationshipDB.relationship_type_id

    @property
    def model_class(self):
        return RelationshipTypeDB

    @property
    def response_schema(self):
        return RelationshipTypeModel
