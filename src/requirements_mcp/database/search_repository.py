"""
Search across the requirements hierarchy.

Matches are case-insensitive substring matches on title and description
(acceptance criteria only have a description). A query shaped like a
reference id short-circuits to an exact lookup.
"""

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..errors import InvalidArgumentsError
from ..models.common import REFERENCE_ID_PATTERN, EntityKind
from ..models.hierarchy import Requirement as RequirementModel
from .schema import AcceptanceCriteria, Epic, Requirement, UserStory
from .session import mcp_safe_query

MAX_SEARCH_LIMIT = 100
MAX_SUGGESTION_LIMIT = 50


class SearchSortOptions(str, enum.Enum):
    RELEVANCE = "relevance"
    PRIORITY = "priority"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"


class SearchFilters(BaseModel):
    """Optional filters; each applies only to kinds that have the column."""

    status: str | None = None
    priority: int | None = Field(default=None, ge=1, le=4)
    creator_id: str | None = None
    assignee_id: str | None = None
    epic_id: str | None = None
    user_story_id: str | None = None
    requirement_type_id: str | None = None


class SearchResult(BaseModel):
    id: str
    reference_id: str
    type: EntityKind
    title: str
    description: str | None = None
    priority: int | None = None
    status: str | None = None
    created_at: datetime
    updated_at: datetime
    relevance: float = 0.0


class SearchResponse(BaseModel):
    results: list[SearchResult]
    total: int
    limit: int
    offset: int
    query: str


class SearchSuggestions(BaseModel):
    titles: list[str] = Field(default_factory=list)
    reference_ids: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)


# Searchable tables and the filter -> column mapping each supports
_SEARCH_TARGETS: dict[EntityKind, tuple[Any, dict[str, str]]] = {
    EntityKind.EPIC: (
        Epic,
        {"status": "status", "priority": "priority", "creator_id": "creator_id",
         "assignee_id": "assignee_id"},
    ),
    EntityKind.USER_STORY: (
        UserStory,
        {"status": "status", "priority": "priority", "creator_id": "creator_id",
         "assignee_id": "assignee_id", "epic_id": "epic_id"},
    ),
    EntityKind.ACCEPTANCE_CRITERIA: (
        AcceptanceCriteria,
        {"creator_id": "author_id", "user_story_id": "user_story_id"},
    ),
    EntityKind.REQUIREMENT: (
        Requirement,
        {"status": "status", "priority": "priority", "creator_id": "creator_id",
         "assignee_id": "assignee_id", "user_story_id": "user_story_id",
         "requirement_type_id": "type_id"},
    ),
}


class SearchRepository:
    """Read-only search service over the four hierarchy tables."""

    def __init__(self, session: Session):
        self.session = session

    def _query_kind(
        self, kind: EntityKind, query: str, filters: SearchFilters
    ) -> list[SearchResult] | None:
        table, filter_columns = _SEARCH_TARGETS[kind]
        statement = select(table)

        for name, value in filters.model_dump(exclude_none=True).items():
            column_name = filter_columns.get(name)
            if column_name is None:
                # Kind cannot satisfy this filter
                return None
            column = getattr(table, column_name)
            if name == "status":
                statement = statement.where(func.lower(column) == value.lower())
            else:
                statement = statement.where(column == value)

        needle = query.strip().lower()
        if needle:
            if REFERENCE_ID_PATTERN.match(query.strip().upper()):
                statement = statement.where(table.reference_id == query.strip().upper())
            else:
                pattern = f"%{needle}%"
                conditions = [func.lower(table.description).like(pattern)]
                if hasattr(table, "title"):
                    conditions.append(func.lower(table.title).like(pattern))
                statement = statement.where(or_(*conditions))

        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(statement).scalars().all(),
            f"Failed to search {kind.label} items",
        )
        return [self._to_result(kind, row, needle) for row in rows]

    @staticmethod
    def _to_result(kind: EntityKind, row, needle: str) -> SearchResult:
        title = getattr(row, "title", None) or (row.description or "")[:100]
        relevance = 0.0
        if needle:
            if row.reference_id.lower() == needle:
                relevance = 3.0
            elif needle in title.lower():
                relevance = 2.0
            elif needle in (row.description or "").lower():
                relevance = 1.0
        return SearchResult(
            id=row.id,
            reference_id=row.reference_id,
            type=kind,
            title=title,
            description=row.description,
            priority=getattr(row, "priority", None),
            status=getattr(row, "status", None),
            created_at=row.created_at,
            updated_at=row.updated_at,
            relevance=relevance,
        )

    @staticmethod
    def _sort(results: list[SearchResult], sort_by: SearchSortOptions, descending: bool) -> None:
        if sort_by is SearchSortOptions.RELEVANCE:
            results.sort(key=lambda r: (r.relevance, r.created_at), reverse=True)
            return
        if sort_by is SearchSortOptions.PRIORITY:
            results.sort(key=lambda r: r.priority if r.priority is not None else 5, reverse=descending)
        elif sort_by is SearchSortOptions.TITLE:
            results.sort(key=lambda r: r.title.lower(), reverse=descending)
        else:
            results.sort(key=lambda r: getattr(r, sort_by.value), reverse=descending)

    def search(
        self,
        query: str,
        entity_types: list[EntityKind] | None = None,
        filters: SearchFilters | None = None,
        sort_by: SearchSortOptions = SearchSortOptions.CREATED_AT,
        descending: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResponse:
        """
        Search the hierarchy.

        Args:
            query: Free text or a reference id; empty means filter-only
            entity_types: Kinds to search, all four when empty
            filters: Column filters; kinds lacking a filtered column are skipped
            sort_by: Result ordering
            descending: Sort direction (relevance is always descending)
            limit: Page size, 1..100
            offset: Results to skip

        Returns:
            One page of results plus the total match count
        """
        if limit < 1 or limit > MAX_SEARCH_LIMIT:
            raise InvalidArgumentsError(
                f"limit must be between 1 and {MAX_SEARCH_LIMIT}", field="limit"
            )
        if offset < 0:
            raise InvalidArgumentsError("offset must be >= 0", field="offset")

        filters = filters or SearchFilters()
        results: list[SearchResult] = []
        for kind in entity_types or list(EntityKind):
            found = self._query_kind(kind, query, filters)
            if found:
                results.extend(found)

        self._sort(results, sort_by, descending)
        return SearchResponse(
            results=results[offset : offset + limit],
            total=len(results),
            limit=limit,
            offset=offset,
            query=query,
        )

    def search_requirements(
        self, query: str, filters: SearchFilters | None = None
    ) -> list[RequirementModel]:
        """Requirements whose reference id, title or description match."""
        needle = query.strip()
        if not needle:
            raise InvalidArgumentsError("query must not be empty", field="query")

        statement = select(Requirement)
        for name, value in (filters or SearchFilters()).model_dump(exclude_none=True).items():
            column_name = _SEARCH_TARGETS[EntityKind.REQUIREMENT][1].get(name)
            if column_name is None:
                raise InvalidArgumentsError(
                    f"Filter '{name}' does not apply to requirements", field=name
                )
            column = getattr(Requirement, column_name)
            statement = statement.where(
                func.lower(column) == value.lower() if name == "status" else column == value
            )

        pattern = f"%{needle.lower()}%"
        statement = statement.where(
            or_(
                func.lower(Requirement.reference_id) == needle.lower(),
                func.lower(Requirement.title).like(pattern),
                func.lower(Requirement.description).like(pattern),
            )
        ).order_by(func.length(Requirement.reference_id), Requirement.reference_id)

        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(statement).scalars().all(),
            "Failed to search requirements",
        )
        return [RequirementModel.model_validate(row, from_attributes=True) for row in rows]

    def suggest(self, query: str, limit: int = 10) -> SearchSuggestions:
        """
        Completions for a partial query, grouped by category.

        Titles contain the query, reference ids start with it and statuses
        are the stored status values containing it. Each category is
        distinct, sorted and capped at ``limit``.
        """
        needle = query.strip().lower()
        if not needle:
            raise InvalidArgumentsError("query must not be empty", field="query")
        if limit < 1 or limit > MAX_SUGGESTION_LIMIT:
            raise InvalidArgumentsError(
                f"limit must be between 1 and {MAX_SUGGESTION_LIMIT}", field="limit"
            )

        def collect(s: Session) -> SearchSuggestions:
            titles: set[str] = set()
            reference_ids: set[str] = set()
            statuses: set[str] = set()
            for table, filter_columns in _SEARCH_TARGETS.values():
                reference_ids.update(
                    s.execute(
                        select(table.reference_id).where(
                            func.lower(table.reference_id).like(f"{needle}%")
                        )
                    ).scalars()
                )
                if hasattr(table, "title"):
                    titles.update(
                        s.execute(
                            select(table.title).where(func.lower(table.title).like(f"%{needle}%"))
                        ).scalars()
                    )
                if "status" in filter_columns:
                    statuses.update(
                        s.execute(
                            select(table.status)
                            .where(func.lower(table.status).like(f"%{needle}%"))
                            .distinct()
                        ).scalars()
                    )
            return SearchSuggestions(
                titles=sorted(titles, key=str.lower)[:limit],
                reference_ids=sorted(reference_ids, key=lambda r: (len(r), r))[:limit],
                statuses=sorted(statuses)[:limit],
            )

        return mcp_safe_query(self.session, collect, "Failed to build search suggestions")
