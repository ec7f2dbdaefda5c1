"""
Repository pattern implementation for the Product Requirements MCP Server.

Repositories are the entity services the protocol layer talks to. They keep
SQLAlchemy out of the resource reader and tool dispatcher:

1. **Protocol Separation**: handlers deal in Pydantic views, never ORM rows
2. **Consistency**: every entity can be fetched by UUID or reference id
3. **Error Semantics**: lookups that fail raise ``NotFoundError`` with the
   entity kind; store failures surface as domain errors

The base repository provides lookups, listing and reference id allocation;
the specialised repositories add create/update and hierarchy navigation.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import asc, desc, func, select
from sqlalchemy.orm import Session

from ..errors import InvalidArgumentsError, NotFoundError
from ..models.common import format_reference_id, is_uuid
from .schema import Base, ReferenceCounter
from .session import mcp_safe_commit, mcp_safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

MAX_PAGE_SIZE = 1000


class PaginationParams(BaseModel):
    """Limit/offset pagination shared by list operations."""

    limit: int = Field(default=50)
    offset: int = Field(default=0)

    def validate_params(self) -> None:
        if self.limit < 1 or self.limit > MAX_PAGE_SIZE:
            raise InvalidArgumentsError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )
        if self.offset < 0:
            raise InvalidArgumentsError("offset must be >= 0", field="offset")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """
    Standard list result: one page of items plus the unpaginated total.
    """

    items: list[ResponseSchemaType]
    total: int
    limit: int
    offset: int

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.items) < self.total


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository providing lookups and listing.

    Subclasses name the ORM model, the response view, the entity kind used
    in not-found messages and, for hierarchy entities, the reference id
    prefix.
    """

    entity_kind: ClassVar[str] = "entity"
    reference_prefix: ClassVar[str | None] = None

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_db(self, id: str) -> ModelType | None:
        query = select(self.model_class).where(self.model_class.id == str(id))
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_kind} by ID",
        )

    def _get_db_by_reference(self, reference_id: str) -> ModelType | None:
        query = select(self.model_class).where(self.model_class.reference_id == reference_id)
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_kind} by reference ID",
        )

    def _resolve_db(self, identifier: str) -> ModelType:
        """Load a row by UUID or reference id, raising NotFound when absent."""
        identifier = str(identifier).strip()
        db_obj = None
        if is_uuid(identifier):
            db_obj = self._get_db(identifier)
        elif self.reference_prefix is not None:
            db_obj = self._get_db_by_reference(identifier.upper())
        if db_obj is None:
            raise NotFoundError(self.entity_kind, identifier)
        return db_obj

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        db_obj = self._get_db(id)
        return None if db_obj is None else self._to_response_model(db_obj)

    def get_by_reference_id(self, reference_id: str) -> ResponseSchemaType | None:
        db_obj = self._get_db_by_reference(reference_id)
        return None if db_obj is None else self._to_response_model(db_obj)

    def resolve(self, identifier: str) -> ResponseSchemaType:
        """
        Get an entity by UUID or reference id.

        Raises:
            NotFoundError: If no entity matches
        """
        return self._to_response_model(self._resolve_db(identifier))

    def exists(self, id: str) -> bool:
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == str(id))
        )
        count = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return bool(count)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _apply_filters(self, query, filters: dict[str, Any] | None):
        for field, value in (filters or {}).items():
            if value is None:
                continue
            column = getattr(self.model_class, field, None)
            if column is None:
                raise InvalidArgumentsError(f"Unknown filter '{field}'", field=field)
            if field == "status":
                query = query.where(func.lower(column) == str(value).lower())
            else:
                query = query.where(column == value)
        return query

    def _default_ordering(self) -> list:
        if self.reference_prefix is not None:
            # Numeric order for zero-padded ids that outgrow their padding
            ref = self.model_class.reference_id
            return [asc(func.length(ref)), asc(ref)]
        return [asc(self.model_class.created_at), asc(self.model_class.id)]

    def list(
        self,
        filters: dict[str, Any] | None = None,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> PaginatedResponse[ResponseSchemaType]:
        """
        List entities matching equality ``filters``.

        Args:
            filters: Column name -> value; ``None`` values are ignored and
                ``status`` compares case-insensitively
            pagination: Limit/offset, defaults to the first 50
            order_by: Column to order by instead of the reference id order
            order_desc: Whether to order descending

        Returns:
            One page of items plus the total number of matches
        """
        pagination = pagination or PaginationParams()
        pagination.validate_params()

        query = self._apply_filters(select(self.model_class), filters)
        count_query = self._apply_filters(
            select(func.count()).select_from(self.model_class), filters
        )

        if order_by:
            order_field = getattr(self.model_class, order_by, None)
            if order_field is None:
                raise InvalidArgumentsError(f"Cannot order by '{order_by}'", field="order_by")
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))
        else:
            query = query.order_by(*self._default_ordering())

        total = (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                f"Failed to count {self.entity_kind} items",
            )
            or 0
        )
        query = query.offset(pagination.offset).limit(pagination.limit)
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            f"Failed to list {self.entity_kind} items",
        )

        return PaginatedResponse(
            items=[self._to_response_model(item) for item in results],
            total=total,
            limit=pagination.limit,
            offset=pagination.offset,
        )

    def count(self, filters: dict[str, Any] | None = None) -> int:
        query = self._apply_filters(select(func.count()).select_from(self.model_class), filters)
        return (
            mcp_safe_query(
                self.session, lambda s: s.execute(query).scalar(), f"Failed to count {self.entity_kind}"
            )
            or 0
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def _next_reference_id(self) -> str:
        """
        Allocate the next ``<PREFIX>-<n>`` and advance the prefix counter.

        Numbers come from the counter so an id is never handed out twice.
        Rows inserted without the counter (demo data) still push it forward.
        """
        if self.reference_prefix is None:
            raise TypeError(f"{type(self).__name__} does not allocate reference ids")
        query = select(self.model_class.reference_id)

        def allocate(s: Session) -> int:
            highest = 0
            for reference_id in s.execute(query).scalars():
                _, _, digits = reference_id.partition("-")
                if digits.isdigit():
                    highest = max(highest, int(digits))
            counter = s.get(ReferenceCounter, self.reference_prefix)
            if counter is None:
                counter = ReferenceCounter(prefix=self.reference_prefix, last_number=0)
                s.add(counter)
            counter.last_number = max(counter.last_number or 0, highest) + 1
            return counter.last_number

        number = mcp_safe_query(
            self.session, allocate, f"Failed to allocate {self.entity_kind} reference ID"
        )
        return format_reference_id(self.reference_prefix, number)

    def _save(self, db_obj: ModelType, operation: str) -> ResponseSchemaType:
        self.session.add(db_obj)
        mcp_safe_commit(self.session, operation)
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def _apply_changes(
        self, db_obj: ModelType, changes: dict[str, Any], operation: str
    ) -> ResponseSchemaType:
        for field, value in changes.items():
            setattr(db_obj, field, value)
        return self._save(db_obj, operation)
