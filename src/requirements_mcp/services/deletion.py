"""
Deletion-with-dependencies engine.

For the four hierarchy kinds this module reports what depends on an entity,
refuses deletions that would orphan dependents unless forced, and executes
cascading deletions in a single transaction.

Cascade rules are data: ``HIERARCHY_CHILDREN`` says which kinds hang below
which, and ``CASCADE_ORDER`` says in which order kinds are removed (deepest
dependents first). Requirement relationships are pruned before requirements.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from ..database.schema import AcceptanceCriteria, Epic, Requirement, RequirementRelationship, UserStory
from ..database.session import DatabaseManager, get_db_manager
from ..errors import (
    DeletionBlockedError,
    InvalidArgumentsError,
    MinCardinalityError,
    NotFoundError,
)
from ..models.common import EntityKind, is_uuid, parse_entity_kind
from ..models.deletion import (
    DeletedEntity,
    DeletionResult,
    DependencyInfo,
    DependencyItem,
    DependencyReason,
)

logger = logging.getLogger(__name__)

ENTITY_TABLES = {
    EntityKind.EPIC: Epic,
    EntityKind.USER_STORY: UserStory,
    EntityKind.ACCEPTANCE_CRITERIA: AcceptanceCriteria,
    EntityKind.REQUIREMENT: Requirement,
}

# kind -> [(child kind, child column referencing the parent)]
HIERARCHY_CHILDREN = {
    EntityKind.EPIC: [(EntityKind.USER_STORY, UserStory.epic_id)],
    EntityKind.USER_STORY: [
        (EntityKind.ACCEPTANCE_CRITERIA, AcceptanceCriteria.user_story_id),
        (EntityKind.REQUIREMENT, Requirement.user_story_id),
    ],
    EntityKind.ACCEPTANCE_CRITERIA: [],
    EntityKind.REQUIREMENT: [],
}

CASCADE_ORDER = (
    EntityKind.REQUIREMENT,
    EntityKind.ACCEPTANCE_CRITERIA,
    EntityKind.USER_STORY,
    EntityKind.EPIC,
)


MIN_ACCEPTANCE_CRITERIA_PER_STORY = 1


@dataclass(frozen=True)
class _Row:
    kind: EntityKind
    id: str
    reference_id: str


@dataclass
class _DependencyGraph:
    target: _Row
    dependencies: list[DependencyItem] = field(default_factory=list)
    descendants: list[_Row] = field(default_factory=list)

    def to_info(self) -> DependencyInfo:
        reasons = {item.reason for item in self.dependencies}
        return DependencyInfo(
            entity_kind=self.target.kind,
            entity_id=self.target.id,
            reference_id=self.target.reference_id,
            # force overrides every dependency reason
            can_delete=True,
            dependencies=self.dependencies,
            cascade_delete_count=len(self.descendants),
            requires_confirmation=bool(self.descendants)
            or DependencyReason.MIN_CARDINALITY in reasons,
        )


def new_transaction_id() -> str:
    return f"del_{int(time.time())}_{uuid.uuid4().hex[:8]}"


class DeletionService:
    """
    Dependency reporting and cascading deletion for hierarchy entities.

    Every operation opens its own session; ``delete`` computes the cascade
    inside the same transaction that removes the rows.
    """

    def __init__(self, db_manager: DatabaseManager | None = None):
        self.db_manager = db_manager or get_db_manager()

    # ------------------------------------------------------------------
    # Graph building
    # ------------------------------------------------------------------

    @staticmethod
    def _load_target(session: Session, kind: EntityKind, identifier: str) -> _Row:
        table = ENTITY_TABLES[kind]
        identifier = str(identifier).strip()
        column = table.id if is_uuid(identifier) else table.reference_id
        lookup = identifier if is_uuid(identifier) else identifier.upper()
        row = session.execute(
            select(table.id, table.reference_id).where(column == lookup)
        ).first()
        if row is None:
            raise NotFoundError(kind.value, identifier)
        return _Row(kind, row.id, row.reference_id)

    @staticmethod
    def _children(session: Session, parent: _Row) -> list[_Row]:
        children = []
        for child_kind, parent_column in HIERARCHY_CHILDREN[parent.kind]:
            table = ENTITY_TABLES[child_kind]
            rows = session.execute(
                select(table.id, table.reference_id)
                .where(parent_column == parent.id)
                .order_by(table.reference_id)
            ).all()
            children.extend(_Row(child_kind, row.id, row.reference_id) for row in rows)
        return children

    def _descendants(self, session: Session, target: _Row) -> list[_Row]:
        found: list[_Row] = []
        frontier = [target]
        while frontier:
            parent = frontier.pop(0)
            children = self._children(session, parent)
            found.extend(children)
            frontier.extend(children)
        return found

    @staticmethod
    def _relationship_dependencies(session: Session, requirement: _Row) -> list[DependencyItem]:
        rows = session.execute(
            select(
                RequirementRelationship.source_requirement_id,
                RequirementRelationship.target_requirement_id,
            ).where(
                or_(
                    RequirementRelationship.source_requirement_id == requirement.id,
                    RequirementRelationship.target_requirement_id == requirement.id,
                )
            )
        ).all()
        pairs = {
            (row.target_requirement_id, DependencyReason.RELATIONSHIP_SOURCE)
            if row.source_requirement_id == requirement.id
            else (row.source_requirement_id, DependencyReason.RELATIONSHIP_TARGET)
            for row in rows
        }
        if not pairs:
            return []
        references = dict(
            session.execute(
                select(Requirement.id, Requirement.reference_id).where(
                    Requirement.id.in_({counterpart_id for counterpart_id, _ in pairs})
                )
            ).all()
        )
        return [
            DependencyItem(
                entity_kind=EntityKind.REQUIREMENT,
                entity_id=counterpart_id,
                reference_id=references.get(counterpart_id, ""),
                reason=reason,
            )
            for counterpart_id, reason in sorted(
                pairs, key=lambda pair: (references.get(pair[0], ""), pair[1].value)
            )
        ]

    @staticmethod
    def _min_cardinality_dependency(session: Session, criteria: _Row) -> list[DependencyItem]:
        user_story_id = session.execute(
            select(AcceptanceCriteria.user_story_id).where(AcceptanceCriteria.id == criteria.id)
        ).scalar_one()
        remaining = session.execute(
            select(func.count())
            .select_from(AcceptanceCriteria)
            .where(AcceptanceCriteria.user_story_id == user_story_id)
        ).scalar_one()
        if remaining - 1 >= MIN_ACCEPTANCE_CRITERIA_PER_STORY:
            return []
        story_reference = session.execute(
            select(UserStory.reference_id).where(UserStory.id == user_story_id)
        ).scalar_one()
        return [
            DependencyItem(
                entity_kind=EntityKind.USER_STORY,
                entity_id=user_story_id,
                reference_id=story_reference,
                reason=DependencyReason.MIN_CARDINALITY,
            )
        ]

    def _build_graph(self, session: Session, kind: EntityKind, identifier: str) -> _DependencyGraph:
        target = self._load_target(session, kind, identifier)
        graph = _DependencyGraph(target=target, descendants=self._descendants(session, target))

        graph.dependencies.extend(
            DependencyItem(
                entity_kind=child.kind,
                entity_id=child.id,
                reference_id=child.reference_id,
                reason=DependencyReason.CHILD_EXISTS,
            )
            for child in self._children(session, target)
        )
        if kind is EntityKind.ACCEPTANCE_CRITERIA:
            graph.dependencies.extend(self._min_cardinality_dependency(session, target))
        elif kind is EntityKind.REQUIREMENT:
            graph.dependencies.extend(self._relationship_dependencies(session, target))
        return graph

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def describe_dependencies(self, kind: EntityKind, identifier: str) -> DependencyInfo:
        """
        Report what depends on an entity. Pure read.

        Raises:
            NotFoundError: If the entity does not exist
        """
        with self.db_manager.session_scope() as session:
            return self._build_graph(session, kind, identifier).to_info()

    def confirm(self, kind_name: str, identifier: str) -> DependencyInfo:
        """
        Dependency report for a wire kind name (``epic``, ``user_story``, ...).

        Raises:
            InvalidArgumentsError: If the kind name is unknown
        """
        try:
            kind = parse_entity_kind(kind_name)
        except ValueError as e:
            raise InvalidArgumentsError(str(e), field="entity_type") from e
        return self.describe_dependencies(kind, identifier)

    def delete(
        self, kind: EntityKind, identifier: str, actor_id: str, force: bool = False
    ) -> DeletionResult:
        """
        Delete an entity and, when forced, everything below it.

        Args:
            kind: Entity kind of the target
            identifier: UUID or reference id of the target
            actor_id: Id recorded as ``deleted_by``
            force: Override dependency and cardinality gates

        Raises:
            NotFoundError: If the target does not exist
            MinCardinalityError: If removing the last acceptance criterion
                of a user story without force
            DeletionBlockedError: If other dependencies exist without force
            TransactionFailedError: If the store aborts; nothing is removed
        """

        def run(session: Session) -> DeletionResult:
            graph = self._build_graph(session, kind, identifier)
            if graph.dependencies and not force:
                self._raise_blocked(graph)
            return self._execute(session, graph, actor_id)

        result = self.db_manager.within_transaction(run)
        logger.info(
            "Deleted %s %s (cascade=%d, relationships=%d, transaction=%s)",
            result.entity_kind.value,
            result.reference_id,
            len(result.cascade_deleted),
            result.relationships_pruned,
            result.transaction_id,
        )
        return result

    @staticmethod
    def _raise_blocked(graph: _DependencyGraph) -> None:
        reasons = sorted({item.reason.value for item in graph.dependencies})
        details = {
            "entity_kind": graph.target.kind.value,
            "reference_id": graph.target.reference_id,
            "reasons": reasons,
            "dependencies": [item.model_dump(mode="json") for item in graph.dependencies],
        }
        if DependencyReason.MIN_CARDINALITY.value in reasons:
            raise MinCardinalityError(
                f"Cannot delete {graph.target.reference_id}: the user story must keep at least "
                f"{MIN_ACCEPTANCE_CRITERIA_PER_STORY} acceptance criterion",
                {**details, "reason": DependencyReason.MIN_CARDINALITY.value},
            )
        raise DeletionBlockedError(
            f"Cannot delete {graph.target.reference_id}: {len(graph.dependencies)} "
            "dependent item(s) exist; use force to delete with dependencies",
            {**details, "reason": reasons[0]},
        )

    @staticmethod
    def _execute(session: Session, graph: _DependencyGraph, actor_id: str) -> DeletionResult:
        doomed: dict[EntityKind, list[str]] = {kind: [] for kind in CASCADE_ORDER}
        for row in [*graph.descendants, graph.target]:
            doomed[row.kind].append(row.id)

        relationships_pruned = 0
        requirement_ids = doomed[EntityKind.REQUIREMENT]
        if requirement_ids:
            pruned = session.execute(
                delete(RequirementRelationship).where(
                    or_(
                        RequirementRelationship.source_requirement_id.in_(requirement_ids),
                        RequirementRelationship.target_requirement_id.in_(requirement_ids),
                    )
                )
            )
            relationships_pruned = pruned.rowcount or 0

        for kind in CASCADE_ORDER:
            ids = doomed[kind]
            if ids:
                table = ENTITY_TABLES[kind]
                session.execute(delete(table).where(table.id.in_(ids)))

        return DeletionResult(
            entity_kind=graph.target.kind,
            entity_id=graph.target.id,
            reference_id=graph.target.reference_id,
            deleted_by=actor_id,
            cascade_deleted=[
                DeletedEntity(entity_kind=row.kind, entity_id=row.id, reference_id=row.reference_id)
                for row in graph.descendants
            ],
            relationships_pruned=relationships_pruned,
            transaction_id=new_transaction_id(),
            deleted_at=datetime.now(UTC),
        )
