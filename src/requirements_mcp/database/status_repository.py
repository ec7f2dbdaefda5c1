"""
Status model repository.

Plain persistence for status models, statuses and transitions. The rules
around them (default model per kind, uniqueness, referenced statuses) live
in the workflow services.
"""

from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload

from ..errors import NotFoundError
from ..models.status import Status as StatusView
from ..models.status import StatusModel as StatusModelView
from ..models.status import StatusTransition as StatusTransitionView
from .repository import BaseRepository
from .schema import Epic, Requirement, UserStory
from .schema import Status as StatusDB
from .schema import StatusEntityTypeEnum
from .schema import StatusModel as StatusModelDB
from .schema import StatusTransition as StatusTransitionDB
from .session import mcp_safe_commit, mcp_safe_query

# Tables whose rows carry a status governed by a model of that entity type
STATUS_BEARING_TABLES = {
    StatusEntityTypeEnum.EPIC: Epic,
    StatusEntityTypeEnum.USER_STORY: UserStory,
    StatusEntityTypeEnum.REQUIREMENT: Requirement,
}


class StatusModelRepository(BaseRepository[StatusModelDB, StatusModelView]):
    entity_kind = "status_model"

    @property
    def model_class(self):
        return StatusModelDB

    @property
    def response_schema(self):
        return StatusModelView

    def _model_query(self):
        return (
            select(StatusModelDB)
            .options(
                selectinload(StatusModelDB.statuses), selectinload(StatusModelDB.transitions)
            )
            .execution_options(populate_existing=True)
        )

    def get_default_model(self, entity_type: StatusEntityTypeEnum) -> StatusModelView | None:
        query = self._model_query().where(
            StatusModelDB.entity_type == entity_type, StatusModelDB.is_default.is_(True)
        )
        db_obj = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().first(),
            "Failed to load default status model",
        )
        return None if db_obj is None else self._to_response_model(db_obj)

    def list_models(self, entity_type: StatusEntityTypeEnum | None = None) -> list[StatusModelView]:
        query = self._model_query().order_by(StatusModelDB.entity_type, StatusModelDB.name)
        if entity_type is not None:
            query = query.where(StatusModelDB.entity_type == entity_type)
        rows = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to list status models"
        )
        return [self._to_response_model(row) for row in rows]

    def get_by_name(self, entity_type: StatusEntityTypeEnum, name: str) -> StatusModelDB | None:
        query = select(StatusModelDB).where(
            StatusModelDB.entity_type == entity_type, func.lower(StatusModelDB.name) == name.lower()
        )
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get status model by name",
        )

    def get_model_db(self, model_id: str) -> StatusModelDB:
        query = self._model_query().where(StatusModelDB.id == str(model_id))
        db_obj = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get status model",
        )
        if db_obj is None:
            raise NotFoundError(self.entity_kind, model_id)
        return db_obj

    def get_status_db(self, status_id: str) -> StatusDB:
        db_obj = self.session.get(StatusDB, status_id)
        if db_obj is None:
            raise NotFoundError("status", status_id)
        return db_obj

    def get_transition_db(self, transition_id: str) -> StatusTransitionDB:
        db_obj = self.session.get(StatusTransitionDB, transition_id)
        if db_obj is None:
            raise NotFoundError("status_transition", transition_id)
        return db_obj

    def clear_default(self, entity_type: StatusEntityTypeEnum, keep_id: str | None = None) -> None:
        statement = update(StatusModelDB).where(
            StatusModelDB.entity_type == entity_type, StatusModelDB.is_default.is_(True)
        )
        if keep_id is not None:
            statement = statement.where(StatusModelDB.id != keep_id)
        self.session.execute(statement.values(is_default=False))

    def create_model(
        self,
        entity_type: StatusEntityTypeEnum,
        name: str,
        description: str | None = None,
        is_default: bool = False,
    ) -> StatusModelView:
        db_obj = StatusModelDB(
            id=self._new_id(),
            entity_type=entity_type,
            name=name,
            description=description,
            is_default=is_default,
        )
        return self._save(db_obj, "create status model")

    def update_model(self, model_id: str, changes: dict) -> StatusModelView:
        return self._apply_changes(self.get_model_db(model_id), changes, "update status model")

    def delete_model(self, model_id: str) -> None:
        self.session.delete(self.get_model_db(model_id))
        mcp_safe_commit(self.session, "delete status model")

    def add_status(self, model_id: str, **fields) -> StatusView:
        db_obj = StatusDB(id=self._new_id(), status_model_id=model_id, **fields)
        self.session.add(db_obj)
        mcp_safe_commit(self.session, "add status")
        self.session.refresh(db_obj)
        return StatusView.model_validate(db_obj, from_attributes=True)

    def remove_status(self, status_id: str) -> None:
        self.session.delete(self.get_status_db(status_id))
        mcp_safe_commit(self.session, "remove status")

    def add_transition(
        self, model_id: str, from_status_id: str, to_status_id: str, name: str | None = None
    ) -> StatusTransitionView:
        db_obj = StatusTransitionDB(
            id=self._new_id(),
            status_model_id=model_id,
            from_status_id=from_status_id,
            to_status_id=to_status_id,
            name=name,
        )
        self.session.add(db_obj)
        mcp_safe_commit(self.session, "add status transition")
        self.session.refresh(db_obj)
        return StatusTransitionView.model_validate(db_obj, from_attributes=True)

    def remove_transition(self, transition_id: str) -> None:
        self.session.delete(self.get_transition_db(transition_id))
        mcp_safe_commit(self.session, "remove status transition")

    def count_entities_with_status(self, entity_type: StatusEntityTypeEnum, status_name: str) -> int:
        table = STATUS_BEARING_TABLES.get(entity_type)
        if table is None:
            return 0
        query = select(func.count()).select_from(table).where(
            func.lower(table.status) == status_name.lower()
        )
        return (
            mcp_safe_query(self.session, lambda s: s.execute(query).scalar(), "Failed to count")
            or 0
        )
