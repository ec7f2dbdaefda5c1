"""Resource reader - resources/read

Turns a resource URI into a fetch against the repositories and wraps the
result in the MCP ``contents`` envelope. Every payload is a JSON object:

- ``epic://EP-n`` and the other typed URIs without a sub-path emit the
  entity's whitelisted fields
- sub-paths emit derived views (``epic://EP-n/hierarchy`` nests the user
  stories, ``user-story://US-n/requirements`` lists requirements, ...)
- ``requirements://<collection>`` emits ``{<collection>: [...], "count": n}``
- ``requirements://<collection>/<uuid-or-ref>`` is answered as the typed URI
  of the item it names
- ``requirements://prompts/active`` reports the active prompt, if any
"""

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import get_config
from ..database.acceptance_criteria_repository import AcceptanceCriteriaRepository
from ..database.epic_repository import EpicRepository
from ..database.prompt_repository import PromptRepository
from ..database.repository import MAX_PAGE_SIZE, BaseRepository, PaginationParams
from ..database.requirement_repository import RequirementRepository
from ..database.session import DatabaseManager, get_db_manager
from ..database.user_story_repository import UserStoryRepository
from ..errors import InvalidArgumentsError
from ..observability import trace_resource
from .uri_utils import (
    ActivePromptURI,
    CollectionKind,
    CollectionURI,
    NavigationItemURI,
    ParsedURI,
    ResourceScheme,
    URIParseError,
    parse_resource_uri,
)

logger = logging.getLogger(__name__)

MIME_TYPE = "application/json"

# user-story://US-n/acceptance-criteria returns the first page only
ACCEPTANCE_CRITERIA_PAGE = PaginationParams(limit=100, offset=0)

REPOSITORIES: dict[ResourceScheme, type[BaseRepository]] = {
    ResourceScheme.EPIC: EpicRepository,
    ResourceScheme.USER_STORY: UserStoryRepository,
    ResourceScheme.REQUIREMENT: RequirementRepository,
    ResourceScheme.ACCEPTANCE_CRITERIA: AcceptanceCriteriaRepository,
    ResourceScheme.PROMPT: PromptRepository,
}


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def _listing(key: str, items: list[BaseModel]) -> dict[str, Any]:
    return {key: [_dump(item) for item in items], "count": len(items)}


def _collection_page() -> PaginationParams:
    return PaginationParams(limit=min(get_config().collection_limit, MAX_PAGE_SIZE), offset=0)


# =============================================================================
# TYPED URI VIEWS
# =============================================================================
# Each view takes the session and the parsed URI and returns the payload.


def _entity(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    repository = REPOSITORIES[parsed.scheme](session)
    return _dump(repository.resolve(parsed.reference_id))


def _epic_hierarchy(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    return _dump(EpicRepository(session).get_hierarchy(parsed.reference_id))


def _epic_user_stories(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    epic = EpicRepository(session).resolve(parsed.reference_id)
    page = UserStoryRepository(session).list_by_epic(epic.id, _collection_page())
    return _listing("user_stories", page.items)


def _user_story_requirements(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    story = UserStoryRepository(session).resolve(parsed.reference_id)
    page = RequirementRepository(session).list_by_user_story(story.id, _collection_page())
    return _listing("requirements", page.items)


def _user_story_acceptance_criteria(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    story = UserStoryRepository(session).resolve(parsed.reference_id)
    page = AcceptanceCriteriaRepository(session).list_by_user_story(
        story.id, ACCEPTANCE_CRITERIA_PAGE.model_copy()
    )
    return _listing("acceptance_criteria", page.items)


def _requirement_relationships(session: Session, parsed: ParsedURI) -> dict[str, Any]:
    return _dump(RequirementRepository(session).get_with_relationships(parsed.reference_id))


VIEWS: dict[tuple[ResourceScheme, str], Callable[[Session, ParsedURI], dict[str, Any]]] = {
    (ResourceScheme.EPIC, ""): _entity,
    (ResourceScheme.EPIC, "hierarchy"): _epic_hierarchy,
    (ResourceScheme.EPIC, "user-stories"): _epic_user_stories,
    (ResourceScheme.USER_STORY, ""): _entity,
    (ResourceScheme.USER_STORY, "requirements"): _user_story_requirements,
    (ResourceScheme.USER_STORY, "acceptance-criteria"): _user_story_acceptance_criteria,
    (ResourceScheme.REQUIREMENT, ""): _entity,
    (ResourceScheme.REQUIREMENT, "relationships"): _requirement_relationships,
    (ResourceScheme.ACCEPTANCE_CRITERIA, ""): _entity,
    (ResourceScheme.PROMPT, ""): _entity,
}


# =============================================================================
# READER
# =============================================================================


class ResourceReader:
    """Answer ``resources/read`` for every supported URI form."""

    def __init__(self, db_manager: DatabaseManager | None = None):
        self.db_manager = db_manager or get_db_manager()

    @trace_resource("requirements")
    async def read(self, uri: str) -> dict[str, Any]:
        """
        Read one resource.

        Returns:
            ``{"contents": [{"uri", "mimeType", "text"}]}`` with ``text``
            holding the JSON payload

        Raises:
            InvalidArgumentsError: If the URI does not parse
            NotFoundError: If the named entity does not exist
        """
        if not isinstance(uri, str):
            raise InvalidArgumentsError("uri must be a string", field="uri")
        try:
            target = parse_resource_uri(uri)
        except URIParseError as e:
            raise InvalidArgumentsError(f"Invalid resource URI: {e}", field="uri") from e

        logger.debug("MCP Resource Request - %s", uri)

        with self.db_manager.session_scope() as session:
            if isinstance(target, CollectionURI):
                canonical, payload = target.uri, self._collection(session, target.kind)
            elif isinstance(target, ActivePromptURI):
                canonical, payload = target.uri, self._active_prompt(session)
            else:
                if isinstance(target, NavigationItemURI):
                    target = self._rewrite(session, target)
                canonical = target.uri
                payload = VIEWS[(target.scheme, target.sub_path)](session, target)

        return {
            "contents": [
                {
                    "uri": canonical,
                    "mimeType": MIME_TYPE,
                    "text": json.dumps(payload),
                }
            ]
        }

    @staticmethod
    def _rewrite(session: Session, item: NavigationItemURI) -> ParsedURI:
        """Resolve a UUID or reference id to the item's typed URI."""
        repository = REPOSITORIES[item.kind.scheme](session)
        entity = repository.resolve(item.identifier)
        return item.rewrite(entity.reference_id)

    @staticmethod
    def _collection(session: Session, kind: CollectionKind) -> dict[str, Any]:
        repository = REPOSITORIES[kind.scheme](session)
        page = repository.list(pagination=_collection_page())
        if page.total > len(page.items):
            logger.info(
                "Collection %s truncated to %d of %d items", kind.value, len(page.items), page.total
            )
        return _listing(kind.result_key, page.items)

    @staticmethod
    def _active_prompt(session: Session) -> dict[str, Any]:
        prompt = PromptRepository(session).get_active()
        if prompt is None:
            return {
                "type": "active_prompt",
                "active": False,
                "prompt": None,
                "description": "No active system prompt found",
            }
        return {
            "type": "active_prompt",
            "active": True,
            "prompt": _dump(prompt),
            "description": f"Currently active system prompt: {prompt.title}",
        }
