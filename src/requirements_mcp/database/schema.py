"""
SQLAlchemy database schema for the Product Requirements MCP Server.

The tables back both the resource reader (read-only URIs) and the tool
dispatcher (operations with side effects):

1. The hierarchy: epics -> user_stories -> acceptance_criteria / requirements
2. Requirement relationships and the requirement/relationship type catalogs
3. Status models with their statuses and transitions
4. Prompts, steering documents and the epic <-> steering document link
5. Per-prefix reference id counters

Parent foreign keys cascade at the database level; the deletion engine still
removes children explicitly so it can report what it removed.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class StatusEntityTypeEnum(str, enum.Enum):
    """Entity kinds a status model can be bound to."""

    EPIC = "epic"
    USER_STORY = "user_story"
    ACCEPTANCE_CRITERIA = "acceptance_criteria"
    REQUIREMENT = "requirement"


class PromptRoleEnum(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Epic(Base):
    """
    Epics table - top of the requirements hierarchy.

    MCP Usage:
    - Resource: epic://EP-001, epic://EP-001/hierarchy, requirements://epics
    - Tools: create_epic, update_epic, delete_entity
    """

    __tablename__ = "epics"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(20), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(100), nullable=False)
    priority = Column(Integer, nullable=False)
    creator_id = Column(String(100), nullable=False)
    assignee_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    user_stories = relationship(
        "UserStory",
        back_populates="epic",
        order_by="UserStory.reference_id",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_epic_status", "status"),
        Index("idx_epic_creator", "creator_id"),
        CheckConstraint("priority BETWEEN 1 AND 4", name="check_epic_priority"),
    )


class UserStory(Base):
    """
    User stories table.

    MCP Usage:
    - Resource: user-story://US-001, user-story://US-001/requirements
    - Tools: create_user_story, update_user_story, delete_entity
    """

    __tablename__ = "user_stories"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(20), nullable=False, unique=True)
    epic_id = Column(String(36), ForeignKey("epics.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(100), nullable=False)
    priority = Column(Integer, nullable=False)
    creator_id = Column(String(100), nullable=False)
    assignee_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    epic = relationship("Epic", back_populates="user_stories")

    __table_args__ = (
        Index("idx_user_story_epic", "epic_id"),
        Index("idx_user_story_status", "status"),
        CheckConstraint("priority BETWEEN 1 AND 4", name="check_user_story_priority"),
    )


class AcceptanceCriteria(Base):
    """Acceptance criteria table - testable conditions of a user story."""

    __tablename__ = "acceptance_criteria"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(20), nullable=False, unique=True)
    user_story_id = Column(
        String(36), ForeignKey("user_stories.id", ondelete="CASCADE"), nullable=False
    )
    description = Column(Text, nullable=False)
    author_id = Column(String(100), nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_acceptance_criteria_user_story", "user_story_id"),)


class RequirementType(Base):
    __tablename__ = "requirement_types"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())


class RelationshipType(Base):
    __tablename__ = "relationship_types"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())


class Requirement(Base):
    """
    Requirements table.

    Deleting the linked acceptance criterion detaches the requirement
    (``ON DELETE SET NULL``); types are restricted while referenced.
    """

    __tablename__ = "requirements"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(20), nullable=False, unique=True)
    user_story_id = Column(
        String(36), ForeignKey("user_stories.id", ondelete="CASCADE"), nullable=False
    )
    acceptance_criteria_id = Column(
        String(36), ForeignKey("acceptance_criteria.id", ondelete="SET NULL"), nullable=True
    )
    type_id = Column(
        String(36), ForeignKey("requirement_types.id", ondelete="RESTRICT"), nullable=False
    )
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(100), nullable=False)
    priority = Column(Integer, nullable=False)
    creator_id = Column(String(100), nullable=False)
    assignee_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    source_relationships = relationship(
        "RequirementRelationship",
        foreign_keys="RequirementRelationship.source_requirement_id",
        passive_deletes=True,
        viewonly=True,
    )
    target_relationships = relationship(
        "RequirementRelationship",
        foreign_keys="RequirementRelationship.target_requirement_id",
        passive_deletes=True,
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_requirement_user_story", "user_story_id"),
        Index("idx_requirement_acceptance_criteria", "acceptance_criteria_id"),
        Index("idx_requirement_type", "type_id"),
        Index("idx_requirement_status", "status"),
        CheckConstraint("priority BETWEEN 1 AND 4", name="check_requirement_priority"),
    )


class RequirementRelationship(Base):
    """Directed, typed link between two requirements."""

    __tablename__ = "requirement_relationships"

    id = Column(String(36), primary_key=True)
    source_requirement_id = Column(
        String(36), ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False
    )
    target_requirement_id = Column(
        String(36), ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type_id = Column(
        String(36), ForeignKey("relationship_types.id", ondelete="RESTRICT"), nullable=False
    )
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (
        Index("idx_relationship_source", "source_requirement_id"),
        Index("idx_relationship_target", "target_requirement_id"),
        UniqueConstraint(
            "source_requirement_id",
            "target_requirement_id",
            "relationship_type_id",
            name="unique_requirement_relationship",
        ),
        CheckConstraint(
            "source_requirement_id <> target_requirement_id", name="check_no_self_relationship"
        ),
    )


class StatusModel(Base):
    """
    Status models table.

    Exactly one model per entity type carries ``is_default``; only that model
    is consulted by the workflow engine.
    """

    __tablename__ = "status_models"

    id = Column(String(36), primary_key=True)
    entity_type = Column(Enum(StatusEntityTypeEnum), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    statuses = relationship(
        "Status",
        order_by="Status.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    transitions = relationship(
        "StatusTransition",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("entity_type", "name", name="unique_status_model_name"),
        Index("idx_status_model_default", "entity_type", "is_default"),
    )


class Status(Base):
    __tablename__ = "statuses"

    id = Column(String(36), primary_key=True)
    status_model_id = Column(
        String(36), ForeignKey("status_models.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=True)
    is_initial = Column(Boolean, nullable=False, default=False)
    is_final = Column(Boolean, nullable=False, default=False)
    order = Column("sort_order", Integer, nullable=False, default=0)

    __table_args__ = (UniqueConstraint("status_model_id", "name", name="unique_status_name"),)


class StatusTransition(Base):
    __tablename__ = "status_transitions"

    id = Column(String(36), primary_key=True)
    status_model_id = Column(
        String(36), ForeignKey("status_models.id", ondelete="CASCADE"), nullable=False
    )
    from_status_id = Column(String(36), ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False)
    to_status_id = Column(String(36), ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "status_model_id", "from_status_id", "to_status_id", name="unique_status_transition"
        ),
    )


class Prompt(Base):
    """
    Prompts table - user managed system prompts.

    The partial unique index keeps at most one row active.
    """

    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    role = Column(Enum(PromptRoleEnum), nullable=False, default=PromptRoleEnum.ASSISTANT)
    is_active = Column(Boolean, nullable=False, default=False)
    creator_id = Column(String(100), nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "idx_prompts_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active = true"),
        ),
    )


class SteeringDocument(Base):
    __tablename__ = "steering_documents"

    id = Column(String(36), primary_key=True)
    reference_id = Column(String(50), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    creator_id = Column(String(100), nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())


class EpicSteeringDocument(Base):
    """Link table between epics and steering documents."""

    __tablename__ = "epic_steering_documents"

    epic_id = Column(String(36), ForeignKey("epics.id", ondelete="CASCADE"), primary_key=True)
    steering_document_id = Column(
        String(36), ForeignKey("steering_documents.id", ondelete="CASCADE"), primary_key=True
    )
    created_at = Column(DateTime, nullable=False, default=func.now())


class ReferenceCounter(Base):
    """
    Highest number ever handed out per reference prefix.

    Reference ids are never reused, even after the entity holding one is deleted.
    """

    __tablename__ = "reference_counters"

    prefix = Column(String(10), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)
