"""System prompts - prompts/list, prompts/get and server instructions.

Stored prompts double as MCP prompts: each one is listed by name and
rendered as a single message whose role is the prompt's role. The active
prompt's content is also returned as ``instructions`` from ``initialize``;
that lookup is cached for ``instructions_cache_ttl`` seconds and dropped
whenever a prompt is created, changed, activated or deleted.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from ..config import get_config
from ..database.prompt_repository import PromptRepository
from ..database.repository import MAX_PAGE_SIZE, PaginationParams
from ..database.session import DatabaseManager, get_db_manager
from ..errors import InvalidArgumentsError

logger = logging.getLogger(__name__)


# =============================================================================
# INSTRUCTIONS CACHE
# =============================================================================


class InstructionsCache:
    """Time-bounded cache of the active prompt's content."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = get_config().instructions_cache_ttl if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: str | None = None
        self._loaded_at = 0.0

    def get(self, loader: Callable[[], str]) -> str:
        with self._lock:
            now = self._clock()
            if self._value is not None and now - self._loaded_at < self.ttl_seconds:
                return self._value
            self._value = loader()
            self._loaded_at = now
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None


_instructions_cache: InstructionsCache | None = None


def get_instructions_cache() -> InstructionsCache:
    global _instructions_cache  # noqa: PLW0603
    if _instructions_cache is None:
        _instructions_cache = InstructionsCache()
    return _instructions_cache


def invalidate_instructions() -> None:
    """Drop the cached instructions; called after every prompt mutation."""
    if _instructions_cache is not None:
        _instructions_cache.invalidate()
        logger.debug("Instructions cache invalidated")


def reset_instructions_cache() -> None:
    global _instructions_cache  # noqa: PLW0603
    _instructions_cache = None


# =============================================================================
# PROMPT PROVIDER
# =============================================================================


class PromptProvider:
    """Serve stored prompts through the MCP prompts methods."""

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        cache: InstructionsCache | None = None,
    ):
        self.db_manager = db_manager or get_db_manager()
        self.cache = cache or get_instructions_cache()

    @property
    def supports_list_changed(self) -> bool:
        return get_config().enable_prompts_list_changed

    def has_prompts(self) -> bool:
        """Prompts are a standing capability even while none are stored."""
        return True

    async def list_prompts(self) -> dict[str, Any]:
        with self.db_manager.session_scope() as session:
            page = PromptRepository(session).list(
                pagination=PaginationParams(limit=MAX_PAGE_SIZE, offset=0)
            )
        return {
            "prompts": [
                {
                    "name": prompt.name,
                    "title": prompt.title,
                    "description": prompt.description or "",
                    "arguments": [],
                }
                for prompt in page.items
            ]
        }

    async def get_prompt(self, params: dict[str, Any] | None) -> dict[str, Any]:
        """
        Render one prompt by name.

        Raises:
            InvalidArgumentsError: If ``name`` is missing or not a string
            NotFoundError: If no prompt has that name
        """
        name = (params or {}).get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentsError("name parameter is required", field="name")

        with self.db_manager.session_scope() as session:
            repository = PromptRepository(session)
            prompt = repository.get_by_name(name)
            if prompt is None:
                # Fall back to reference id or UUID; raises NotFound when absent
                prompt = repository.resolve(name)

        return {
            "description": prompt.description or prompt.title,
            "messages": [
                {
                    "role": prompt.role.value,
                    "content": {"type": "text", "text": prompt.content},
                }
            ],
        }

    def _load_instructions(self) -> str:
        with self.db_manager.session_scope() as session:
            prompt = PromptRepository(session).get_active()
        return prompt.content if prompt else ""

    def active_instructions(self) -> str:
        """Content of the active prompt, or an empty string when none is active."""
        return self.cache.get(self._load_instructions)
