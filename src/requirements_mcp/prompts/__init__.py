"""Stored system prompts exposed through the MCP prompts methods."""

from .system_prompts import (
    InstructionsCache,
    PromptProvider,
    get_instructions_cache,
    invalidate_instructions,
    reset_instructions_cache,
)

__all__ = [
    "InstructionsCache",
    "PromptProvider",
    "get_instructions_cache",
    "invalidate_instructions",
    "reset_instructions_cache",
]
