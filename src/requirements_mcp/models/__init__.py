"""
Pydantic models for the Product Requirements MCP Server.

These are the whitelisted entity views emitted by resources and tools.
"""

from .common import EntityKind, ReferencePrefix
from .deletion import (
    DeletedEntity,
    DeletionResult,
    DependencyInfo,
    DependencyItem,
    DependencyReason,
)
from .hierarchy import (
    AcceptanceCriteria,
    Epic,
    EpicHierarchy,
    RelationshipType,
    Requirement,
    RequirementRelationship,
    RequirementType,
    RequirementWithRelationships,
    UserStory,
)
from .prompt import Prompt, PromptRole, SteeringDocument
from .status import Status, StatusEntityKind, StatusModel, StatusTransition

__all__ = [
    "AcceptanceCriteria",
    "DeletedEntity",
    "DeletionResult",
    "DependencyInfo",
    "DependencyItem",
    "DependencyReason",
    "EntityKind",
    "Epic",
    "EpicHierarchy",
    "Prompt",
    "PromptRole",
    "ReferencePrefix",
    "RelationshipType",
    "Requirement",
    "RequirementRelationship",
    "RequirementType",
    "RequirementWithRelationships",
    "Status",
    "StatusEntityKind",
    "StatusModel",
    "StatusTransition",
    "SteeringDocument",
    "UserStory",
]
