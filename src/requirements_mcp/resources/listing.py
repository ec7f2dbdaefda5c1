"""Resource catalog - resources/list

Advertises the navigation collections, the active prompt handle and one
``requirements://<collection>/<reference-id>`` handle per stored item.
"""

import logging
from typing import Any

from ..config import get_config
from ..database.repository import MAX_PAGE_SIZE, PaginationParams
from ..database.session import DatabaseManager, get_db_manager
from .reader import MIME_TYPE, REPOSITORIES
from .uri_utils import ActivePromptURI, CollectionKind, CollectionURI

logger = logging.getLogger(__name__)

COLLECTION_DESCRIPTIONS = {
    CollectionKind.EPICS: "All epics",
    CollectionKind.USER_STORIES: "All user stories",
    CollectionKind.REQUIREMENTS: "All requirements",
    CollectionKind.ACCEPTANCE_CRITERIA: "All acceptance criteria",
    CollectionKind.PROMPTS: "All system prompts",
}


def _descriptor(uri: str, name: str, description: str) -> dict[str, Any]:
    return {"uri": uri, "name": name, "description": description, "mimeType": MIME_TYPE}


class ResourceCatalog:
    def __init__(self, db_manager: DatabaseManager | None = None):
        self.db_manager = db_manager or get_db_manager()

    async def list_resources(self) -> dict[str, Any]:
        """
        Build the resources/list result.

        Item handles are capped at ``collection_limit`` per collection.
        Descriptors are sorted by URI.
        """
        resources = [
            _descriptor(
                CollectionURI(kind).uri,
                kind.value.replace("-", " ").title(),
                COLLECTION_DESCRIPTIONS[kind],
            )
            for kind in CollectionKind
        ]
        resources.append(
            _descriptor(
                ActivePromptURI().uri,
                "Active Prompt",
                "The system prompt currently returned as server instructions",
            )
        )

        limit = min(get_config().collection_limit, MAX_PAGE_SIZE)
        with self.db_manager.session_scope() as session:
            for kind in CollectionKind:
                page = REPOSITORIES[kind.scheme](session).list(
                    pagination=PaginationParams(limit=limit, offset=0)
                )
                for item in page.items:
                    name = getattr(item, "title", None) or item.reference_id
                    resources.append(
                        _descriptor(
                            f"{CollectionURI(kind).uri}/{item.reference_id}",
                            f"{item.reference_id}: {name}",
                            f"{kind.scheme.value.replace('-', ' ').capitalize()} {item.reference_id}",
                        )
                    )

        resources.sort(key=lambda descriptor: descriptor["uri"])
        logger.debug("Listing %d resources", len(resources))
        return {"resources": resources}
