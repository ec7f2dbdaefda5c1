"""Test configuration and fixtures for the Product Requirements MCP Server.

Every test that touches the store gets its own SQLite file under
``tmp_path`` with the default status models and type catalogs seeded.
Global singletons (configuration, database manager, instructions cache) are
reset around each test.
"""

from collections.abc import Generator
from pathlib import Path

import logfire
import pytest

from requirements_mcp.auth import Actor, Role
from requirements_mcp.config import ServerConfig, reset_config, set_config
from requirements_mcp.database import (
    AcceptanceCriteriaCreateSchema,
    AcceptanceCriteriaRepository,
    DatabaseManager,
    EpicCreateSchema,
    EpicRepository,
    RequirementCreateSchema,
    RequirementRepository,
    UserStoryCreateSchema,
    UserStoryRepository,
    get_db_manager,
    reset_db_manager,
)
from requirements_mcp.database.seed import seed_defaults
from requirements_mcp.observability import MCPLogger
from requirements_mcp.prompts import reset_instructions_cache
from requirements_mcp.tools import ToolContext

ADMIN_TOKEN = "admin-test-token"
USER_TOKEN = "user-test-token"
COMMENTER_TOKEN = "commenter-test-token"

API_TOKENS = {
    ADMIN_TOKEN: {"id": "user-admin", "username": "admin", "role": "Administrator"},
    USER_TOKEN: {"id": "user-alice", "username": "alice", "role": "User"},
    COMMENTER_TOKEN: {"id": "user-carol", "username": "carol", "role": "Commenter"},
}


def pytest_configure(config):
    """Keep logfire local: no export, no console output."""
    logfire.configure(send_to_logfire=False, console=False)
    config.addinivalue_line("markers", "mcp_protocol: mark test as testing MCP protocol compliance")


# === Configuration Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_requirements.db"


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Install an isolated configuration as the global configuration."""
    reset_config()
    config = ServerConfig(
        server_name="test-requirements",
        server_version="1.0.0",
        database_path=test_db_path,
        api_tokens=API_TOKENS,
        stdio_token=ADMIN_TOKEN,
        debug=True,
        log_level="DEBUG",
    )
    set_config(config)

    yield config

    reset_config()


# === Database Fixtures ===


@pytest.fixture
def db_manager(test_config: ServerConfig) -> Generator[DatabaseManager, None, None]:
    """Global database manager bound to a fresh, seeded database."""
    reset_db_manager()
    reset_instructions_cache()
    manager = get_db_manager(test_config.get_database_url())
    manager.init_database()
    with manager.session_scope() as session:
        seed_defaults(session)

    yield manager

    reset_db_manager()
    reset_instructions_cache()


@pytest.fixture
def db_session(db_manager: DatabaseManager):
    with db_manager.session_scope() as session:
        yield session


# === Actor Fixtures ===


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(id="user-admin", username="admin", role=Role.ADMINISTRATOR)


@pytest.fixture
def user_actor() -> Actor:
    return Actor(id="user-alice", username="alice", role=Role.USER)


@pytest.fixture
def commenter_actor() -> Actor:
    return Actor(id="user-carol", username="carol", role=Role.COMMENTER)


@pytest.fixture
def tool_context(db_manager: DatabaseManager, user_actor: Actor) -> ToolContext:
    return ToolContext(actor=user_actor, db_manager=db_manager, mcp_logger=MCPLogger())


# === Sample Data ===


@pytest.fixture
def sample_hierarchy(db_manager: DatabaseManager) -> dict:
    """EP-001 owning US-001, which owns AC-001 and REQ-001."""
    with db_manager.session_scope() as session:
        epic = EpicRepository(session).create(
            EpicCreateSchema(title="Authentication", priority=1, status="Backlog"),
            creator_id="user-alice",
        )
        story = UserStoryRepository(session).create(
            UserStoryCreateSchema(
                epic_id=epic.id,
                title="Login",
                description="As a user, I want to log in, so that I can see my data",
                priority=2,
                status="Backlog",
            ),
            creator_id="user-alice",
        )
        criteria = AcceptanceCriteriaRepository(session).create(
            AcceptanceCriteriaCreateSchema(
                user_story_id=story.id,
                description="WHEN valid credentials are entered THEN the dashboard is shown",
            ),
            author_id="user-alice",
        )
        requirement = RequirementRepository(session).create(
            RequirementCreateSchema(
                user_story_id=story.id,
                acceptance_criteria_id=criteria.id,
                type_id="Functional",
                title="Validate credentials",
                priority=1,
                status="Draft",
            ),
            creator_id="user-alice",
        )
    return {
        "epic": epic,
        "user_story": story,
        "acceptance_criteria": criteria,
        "requirement": requirement,
    }
