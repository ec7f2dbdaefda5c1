"""
Deletion engine result models.

DependencyInfo describes what stands in the way of deleting an entity;
DeletionResult records what a (possibly cascading) deletion removed.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from .common import EntityKind


class DependencyReason(str, enum.Enum):
    CHILD_EXISTS = "child_exists"
    RELATIONSHIP_SOURCE = "relationship_source"
    RELATIONSHIP_TARGET = "relationship_target"
    MIN_CARDINALITY = "min_cardinality"


class DependencyItem(BaseModel):
    entity_kind: EntityKind
    entity_id: str
    reference_id: str
    reason: DependencyReason


class DependencyInfo(BaseModel):
    """Dependency report for a deletion target.

    ``can_delete`` is always true since ``force`` overrides every dependency
    reason. ``requires_confirmation`` flags deletions that cascade or break
    the acceptance-criteria floor.
    """

    entity_kind: EntityKind
    entity_id: str
    reference_id: str
    can_delete: bool
    dependencies: list[DependencyItem] = Field(default_factory=list)
    cascade_delete_count: int = Field(default=0, ge=0)
    requires_confirmation: bool = False


class DeletedEntity(BaseModel):
    entity_kind: EntityKind
    entity_id: str
    reference_id: str


class DeletionResult(BaseModel):
    entity_kind: EntityKind
    entity_id: str
    reference_id: str
    deleted_by: str
    cascade_deleted: list[DeletedEntity] = Field(default_factory=list)
    relationships_pruned: int = Field(default=0, ge=0)
    transaction_id: str
    deleted_at: datetime
