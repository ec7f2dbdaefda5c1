"""Tests for resources/read and resources/list."""

import json

import pytest

from requirements_mcp.database import (
    EpicCreateSchema,
    EpicRepository,
    PromptCreateSchema,
    PromptRepository,
    UserStoryCreateSchema,
    UserStoryRepository,
)
from requirements_mcp.errors import InvalidArgumentsError, NotFoundError
from requirements_mcp.resources import ResourceCatalog, ResourceReader


@pytest.fixture
def reader(db_manager):
    return ResourceReader(db_manager)


@pytest.fixture
def catalog(db_manager):
    return ResourceCatalog(db_manager)


@pytest.fixture
def epic_with_story(db_manager):
    with db_manager.session_scope() as session:
        epic = EpicRepository(session).create(
            EpicCreateSchema(title="Accounts", priority=1, status="Backlog"), creator_id="user-alice"
        )
        UserStoryRepository(session).create(
            UserStoryCreateSchema(epic_id=epic.id, title="Login", priority=1, status="Backlog"),
            creator_id="user-alice",
        )
    return epic


async def read_payload(reader, uri):
    result = await reader.read(uri)
    (content,) = result["contents"]
    assert content["mimeType"] == "application/json"
    return content["uri"], json.loads(content["text"])


@pytest.mark.asyncio
class TestTypedResources:
    async def test_epic_hierarchy(self, reader, epic_with_story):
        uri, payload = await read_payload(reader, "epic://EP-001/hierarchy")

        assert uri == "epic://EP-001/hierarchy"
        assert payload["reference_id"] == "EP-001"
        assert [story["reference_id"] for story in payload["user_stories"]] == ["US-001"]
        assert payload["user_stories"][0]["title"] == "Login"

    async def test_plain_entity(self, reader, sample_hierarchy):
        _, payload = await read_payload(reader, "requirement://REQ-001")

        assert payload["id"] == sample_hierarchy["requirement"].id
        assert payload["title"] == "Validate credentials"
        assert payload["status"] == "Draft"

    async def test_user_story_children(self, reader, sample_hierarchy):
        _, requirements = await read_payload(reader, "user-story://US-001/requirements")
        _, criteria = await read_payload(reader, "user-story://US-001/acceptance-criteria")

        assert requirements["count"] == 1
        assert requirements["requirements"][0]["reference_id"] == "REQ-001"
        assert [c["reference_id"] for c in criteria["acceptance_criteria"]] == ["AC-001"]

    async def test_epic_user_stories(self, reader, sample_hierarchy):
        _, payload = await read_payload(reader, "epic://EP-001/user-stories")
        assert [s["reference_id"] for s in payload["user_stories"]] == ["US-001"]

    async def test_requirement_relationships(self, reader, sample_hierarchy):
        _, payload = await read_payload(reader, "requirement://REQ-001/relationships")

        assert payload["reference_id"] == "REQ-001"
        assert payload["source_relationships"] == []
        assert payload["target_relationships"] == []

    async def test_query_parameters_canonicalized(self, reader, epic_with_story):
        uri, _ = await read_payload(reader, "epic://EP-001/user-stories?z=1&a=2")
        assert uri == "epic://EP-001/user-stories?a=2&z=1"

    async def test_missing_entity(self, reader, sample_hierarchy):
        with pytest.raises(NotFoundError, match="EP-002"):
            await reader.read("epic://EP-002")

    async def test_invalid_uri(self, reader):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            await reader.read("epic://US-001")
        assert exc_info.value.details["field"] == "uri"

    async def test_non_string_uri(self, reader):
        with pytest.raises(InvalidArgumentsError):
            await reader.read(42)


@pytest.mark.asyncio
class TestNavigationResources:
    async def test_collection(self, reader, sample_hierarchy):
        uri, payload = await read_payload(reader, "requirements://acceptance-criteria")

        assert uri == "requirements://acceptance-criteria"
        assert payload["count"] == 1
        assert payload["acceptance_criteria"][0]["reference_id"] == "AC-001"

    async def test_item_by_uuid_rewritten_to_typed_uri(self, reader, sample_hierarchy):
        story_id = sample_hierarchy["user_story"].id

        uri, payload = await read_payload(reader, f"requirements://user-stories/{story_id}")

        assert uri == "user-story://US-001"
        assert payload["id"] == story_id

    async def test_item_by_reference(self, reader, sample_hierarchy):
        uri, _ = await read_payload(reader, "requirements://epics/ep-001")
        assert uri == "epic://EP-001"

    async def test_no_active_prompt(self, reader, db_manager):
        _, payload = await read_payload(reader, "requirements://prompts/active")

        assert payload["active"] is False
        assert payload["prompt"] is None

    async def test_active_prompt(self, reader, db_manager):
        with db_manager.session_scope() as session:
            repository = PromptRepository(session)
            repository.create(
                PromptCreateSchema(name="analyst", title="Analyst", content="Be precise."),
                creator_id="user-admin",
            )
            repository.activate("analyst")

        _, payload = await read_payload(reader, "requirements://prompts/active")

        assert payload["active"] is True
        assert payload["prompt"]["content"] == "Be precise."
        assert payload["description"] == "Currently active system prompt: Analyst"


@pytest.mark.asyncio
class TestResourceCatalog:
    async def test_empty_store_lists_collections(self, catalog):
        result = await catalog.list_resources()

        uris = [descriptor["uri"] for descriptor in result["resources"]]
        assert uris == sorted(uris)
        assert "requirements://epics" in uris
        assert "requirements://prompts/active" in uris
        assert len(uris) == 6

    async def test_items_get_handles(self, catalog, sample_hierarchy):
        result = await catalog.list_resources()

        by_uri = {descriptor["uri"]: descriptor for descriptor in result["resources"]}
        assert by_uri["requirements://epics/EP-001"]["name"] == "EP-001: Authentication"
        assert "requirements://requirements/REQ-001" in by_uri
        assert "requirements://acceptance-criteria/AC-001" in by_uri
        assert all(d["mimeType"] == "application/json" for d in result["resources"])

    async def test_collection_limit(self, catalog, db_manager, test_config):
        test_config.collection_limit = 2
        with db_manager.session_scope() as session:
            for index in range(3):
                EpicRepository(session).create(
                    EpicCreateSchema(title=f"Epic {index}", priority=2, status="Backlog"),
                    creator_id="user-alice",
                )

        result = await catalog.list_resources()

        epic_items = [d for d in result["resources"] if d["uri"].startswith("requirements://epics/")]
        assert len(epic_items) == 2
