"""
Database package for the Product Requirements MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and transactions (session.py)
- Repositories acting as the entity services (``*_repository.py``)
- Default reference data and demo data (seed.py)
"""

from .acceptance_criteria_repository import (
    AcceptanceCriteriaCreateSchema,
    AcceptanceCriteriaRepository,
)
from .epic_repository import EpicCreateSchema, EpicRepository, EpicUpdateSchema
from .prompt_repository import PromptCreateSchema, PromptRepository, PromptUpdateSchema
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .requirement_repository import (
    RelationshipCreateSchema,
    RequirementCreateSchema,
    RequirementRepository,
    RequirementUpdateSchema,
)
from .schema import Base
from .search_repository import SearchFilters, SearchRepository, SearchSortOptions, SearchSuggestions
from .session import (
    DatabaseManager,
    get_db_manager,
    mcp_safe_commit,
    mcp_safe_query,
    reset_db_manager,
    session_scope,
    within_transaction,
)
from .status_repository import StatusModelRepository
from .steering_repository import (
    SteeringDocumentCreateSchema,
    SteeringDocumentRepository,
    SteeringDocumentUpdateSchema,
)
from .type_repository import (
    RelationshipTypeRepository,
    RequirementTypeRepository,
    TypeCreateSchema,
)
from .user_story_repository import (
    UserStoryCreateSchema,
    UserStoryRepository,
    UserStoryUpdateSchema,
)

__all__ = [
    "AcceptanceCriteriaCreateSchema",
    "AcceptanceCriteriaRepository",
    "Base",
    "BaseRepository",
    "DatabaseManager",
    "EpicCreateSchema",
    "EpicRepository",
    "EpicUpdateSchema",
    "PaginatedResponse",
    "PaginationParams",
    "PromptCreateSchema",
    "PromptRepository",
    "PromptUpdateSchema",
    "RelationshipCreateSchema",
    "RelationshipTypeRepository",
    "RequirementCreateSchema",
    "RequirementRepository",
    "RequirementTypeRepository",
    "RequirementUpdateSchema",
    "SearchFilters",
    "SearchRepository",
    "SearchSortOptions",
    "SearchSuggestions",
    "StatusModelRepository",
    "SteeringDocumentCreateSchema",
    "SteeringDocumentRepository",
    "SteeringDocumentUpdateSchema",
    "TypeCreateSchema",
    "UserStoryCreateSchema",
    "UserStoryRepository",
    "UserStoryUpdateSchema",
    "get_db_manager",
    "mcp_safe_commit",
    "mcp_safe_query",
    "reset_db_manager",
    "session_scope",
    "within_transaction",
]
