"""
Steering document repository implementation.

Steering documents carry free-form guidance and are linked to epics through
the ``epic_steering_documents`` table.
"""

from pydantic import BaseModel, Field
from sqlalchemy import delete, func, select

from ..errors import ConflictError, NotFoundError
from ..models.common import ReferencePrefix
from ..models.prompt import SteeringDocument as SteeringDocumentModel
from .epic_repository import EpicRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import EpicSteeringDocument as EpicSteeringDocumentDB
from .schema import SteeringDocument as SteeringDocumentDB
from .session import mcp_safe_commit, mcp_safe_query


class SteeringDocumentCreateSchema(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)


class SteeringDocumentUpdateSchema(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)


class SteeringDocumentRepository(BaseRepository[SteeringDocumentDB, SteeringDocumentModel]):
    entity_kind = "steering_document"
    reference_prefix = ReferencePrefix.STEERING_DOCUMENT.value

    @property
    def model_class(self):
        return SteeringDocumentDB

    @property
    def response_schema(self):
        return SteeringDocumentModel

    def create(self, data: SteeringDocumentCreateSchema, creator_id: str) -> SteeringDocumentModel:
        db_obj = SteeringDocumentDB(
            id=self._new_id(),
            reference_id=self._next_reference_id(),
            creator_id=creator_id,
            **data.model_dump(),
        )
        return self._save(db_obj, "create steering document")

    def update(self, identifier: str, data: SteeringDocumentUpdateSchema) -> SteeringDocumentModel:
        db_obj = self._resolve_db(identifier)
        return self._apply_changes(
            db_obj, data.model_dump(exclude_unset=True), "update steering document"
        )

    def list_by_epic(
        self, epic_identifier: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[SteeringDocumentModel]:
        """Steering documents linked to one epic."""
        pagination = pagination or PaginationParams()
        pagination.validate_params()
        epic = EpicRepository(self.session).resolve(epic_identifier)

        linked = (
            select(SteeringDocumentDB)
            .join(
                EpicSteeringDocumentDB,
                EpicSteeringDocumentDB.steering_document_id == SteeringDocumentDB.id,
            )
            .where(EpicSteeringDocumentDB.epic_id == epic.id)
        )
        count_query = select(func.count()).select_from(linked.subquery())
        page_query = (
            linked.order_by(*self._default_ordering())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        total = mcp_safe_query(
            self.session, lambda s: s.execute(count_query).scalar(), "Failed to count links"
        )
        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(page_query).scalars().all(),
            "Failed to list epic steering documents",
        )
        return PaginatedResponse(
            items=[self._to_response_model(row) for row in rows],
            total=total or 0,
            limit=pagination.limit,
            offset=pagination.offset,
        )

    def _link_exists(self, epic_id: str, document_id: str) -> bool:
        query = select(EpicSteeringDocumentDB).where(
            EpicSteeringDocumentDB.epic_id == epic_id,
            EpicSteeringDocumentDB.steering_document_id == document_id,
        )
        row = mcp_safe_query(
            self.session, lambda s: s.execute(query).first(), "Failed to check epic link"
        )
        return row is not None

    def link_to_epic(self, document_identifier: str, epic_identifier: str) -> tuple[str, str]:
        """Link a document to an epic; returns the (epic, document) reference ids."""
        document = self._resolve_db(document_identifier)
        epic = EpicRepository(self.session).resolve(epic_identifier)
        if self._link_exists(epic.id, document.id):
            raise ConflictError(
                f"Steering document {document.reference_id} is already linked to {epic.reference_id}",
                hint="The link already exists",
            )
        self.session.add(EpicSteeringDocumentDB(epic_id=epic.id, steering_document_id=document.id))
        mcp_safe_commit(self.session, "link steering document")
        return epic.reference_id, document.reference_id

    def unlink_from_epic(self, document_identifier: str, epic_identifier: str) -> tuple[str, str]:
        document = self._resolve_db(document_identifier)
        epic = EpicRepository(self.session).resolve(epic_identifier)
        if not self._link_exists(epic.id, document.id):
            raise NotFoundError(
                "steering_document_link", f"{document.reference_id} -> {epic.reference_id}"
            )
        self.session.execute(
            delete(EpicSteeringDocumentDB).where(
                EpicSteeringDocumentDB.epic_id == epic.id,
                EpicSteeringDocumentDB.steering_document_id == document.id,
            )
        )
        mcp_safe_commit(self.session, "unlink steering document")
        return epic.reference_id, document.reference_id
