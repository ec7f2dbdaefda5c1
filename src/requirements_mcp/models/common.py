"""Shared identifiers for the requirements hierarchy.

Entity kinds and reference-id prefixes are closed sets; their string forms
only matter at the wire boundary.
"""

import enum
import re


class EntityKind(str, enum.Enum):
    """Kinds of entity managed by the hierarchy and the deletion engine."""

    EPIC = "epic"
    USER_STORY = "user_story"
    ACCEPTANCE_CRITERIA = "acceptance_criteria"
    REQUIREMENT = "requirement"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @property
    def prefix(self) -> str:
        return REFERENCE_PREFIXES[self]


class ReferencePrefix(str, enum.Enum):
    EPIC = "EP"
    USER_STORY = "US"
    ACCEPTANCE_CRITERIA = "AC"
    REQUIREMENT = "REQ"
    PROMPT = "PROMPT"
    STEERING_DOCUMENT = "STD"


REFERENCE_PREFIXES: dict[EntityKind, str] = {
    EntityKind.EPIC: ReferencePrefix.EPIC.value,
    EntityKind.USER_STORY: ReferencePrefix.USER_STORY.value,
    EntityKind.ACCEPTANCE_CRITERIA: ReferencePrefix.ACCEPTANCE_CRITERIA.value,
    EntityKind.REQUIREMENT: ReferencePrefix.REQUIREMENT.value,
}

# Reference ids addressable through resource URIs
REFERENCE_ID_PATTERN = re.compile(r"^(EP|US|REQ|AC|PROMPT)-\d+$")

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def is_uuid(value: str) -> bool:
    return bool(UUID_PATTERN.match(value))


def is_reference_id(value: str, prefix: str) -> bool:
    """Check ``value`` is ``<prefix>-<digits>``."""
    head, sep, digits = value.partition("-")
    return bool(sep) and head == prefix and digits.isdigit() and digits.isascii()


def format_reference_id(prefix: str, number: int) -> str:
    return f"{prefix}-{number:03d}"


def parse_entity_kind(name: str) -> EntityKind:
    """Parse a wire kind name (``epic``, ``user_story``, ...).

    Raises:
        ValueError: If the name is not one of the four hierarchy kinds
    """
    try:
        return EntityKind(name)
    except ValueError:
        valid = ", ".join(kind.value for kind in EntityKind)
        raise ValueError(f"Unknown entity kind '{name}'. Expected one of: {valid}") from None
