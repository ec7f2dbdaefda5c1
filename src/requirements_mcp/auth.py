"""Authentication context for MCP requests.

Credential issuance lives elsewhere; the server only validates opaque bearer
tokens and attaches the resulting actor to the request scope.
"""

import enum
import hmac
import logging
from typing import Any

from pydantic import BaseModel, Field

from .config import ServerConfig, get_config

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    ADMINISTRATOR = "Administrator"
    USER = "User"
    COMMENTER = "Commenter"


class Actor(BaseModel):
    """The authenticated caller of a request."""

    id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    role: Role = Role.USER

    @property
    def can_mutate(self) -> bool:
        """Commenters have read-only access."""
        return self.role is not Role.COMMENTER


class StaticTokenValidator:
    """
    Resolve bearer tokens against the ``api_tokens`` table from configuration.

    Tokens are compared in constant time. Unknown or malformed tokens resolve
    to ``None``; the caller decides how to report that.
    """

    def __init__(self, tokens: dict[str, dict[str, Any]] | None = None):
        if tokens is None:
            tokens = get_config().api_tokens
        self._actors = [(token, Actor.model_validate(actor)) for token, actor in tokens.items()]

    @classmethod
    def from_config(cls, config: ServerConfig) -> "StaticTokenValidator":
        return cls(config.api_tokens)

    def validate(self, token: str | None) -> Actor | None:
        if not token:
            return None
        for candidate, actor in self._actors:
            if hmac.compare_digest(candidate.encode(), token.encode()):
                return actor
        logger.debug("Rejected bearer token")
        return None


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
