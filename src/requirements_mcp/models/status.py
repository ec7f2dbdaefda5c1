"""Status model views.

A status model belongs to one entity kind and owns an ordered set of
statuses plus the legal (from, to) transitions between them. Exactly one
model per kind is the default, and only the default is enforced.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StatusEntityKind(str, enum.Enum):
    EPIC = "epic"
    USER_STORY = "user_story"
    ACCEPTANCE_CRITERIA = "acceptance_criteria"
    REQUIREMENT = "requirement"


class Status(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status_model_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    is_initial: bool = False
    is_final: bool = False
    order: int = 0


class StatusTransition(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status_model_id: str
    from_status_id: str
    to_status_id: str
    name: str | None = None


class StatusModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    entity_type: StatusEntityKind
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_default: bool = False
    statuses: list[Status] = Field(default_factory=list)
    transitions: list[StatusTransition] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def status_names(self) -> list[str]:
        return [status.name for status in sorted(self.statuses, key=lambda s: s.order)]

    def edge_set(self) -> set[tuple[str, str]]:
        """Legal transitions as (from-name, to-name) pairs."""
        names = {status.id: status.name for status in self.statuses}
        return {
            (names[transition.from_status_id], names[transition.to_status_id])
            for transition in self.transitions
            if transition.from_status_id in names and transition.to_status_id in names
        }
