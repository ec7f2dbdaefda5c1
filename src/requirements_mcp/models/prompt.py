"""
Prompt and steering document models.

Prompts are system prompts managed by users; at most one is active and its
content becomes the ``instructions`` returned from ``initialize``. Steering
documents are free-form guidance that can be linked to epics.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PromptRole(str, enum.Enum):
    """Message role used when a prompt is rendered through prompts/get."""

    USER = "user"
    ASSISTANT = "assistant"


class Prompt(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_id: str = Field(..., pattern=r"^PROMPT-\d+$")
    name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    content: str = Field(..., min_length=1, max_length=50000)
    role: PromptRole = PromptRole.ASSISTANT
    is_active: bool = False
    creator_id: str
    created_at: datetime
    updated_at: datetime


class SteeringDocument(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_id: str = Field(..., pattern=r"^STD-\d+$")
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=50000)
    creator_id: str
    created_at: datetime
    updated_at: datetime
