"""
Database seeding for the Product Requirements MCP Server.

``seed_defaults`` installs the reference data every deployment needs and is
safe to run repeatedly:
- default status models for epics, user stories and requirements
- the requirement type and relationship type catalogs

``generate_demo_data`` fills an empty database with a realistic hierarchy
(epics, user stories, acceptance criteria, requirements, relationships)
using Faker, for local exploration of the resources and tools.
"""

import logging
import random
import uuid

from faker import Faker
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.common import ReferencePrefix, format_reference_id
from .schema import (
    AcceptanceCriteria,
    Epic,
    RelationshipType,
    Requirement,
    RequirementRelationship,
    RequirementType,
    Status,
    StatusEntityTypeEnum,
    StatusModel,
    StatusTransition,
    UserStory,
)

logger = logging.getLogger(__name__)

# (name, is_initial, is_final) in display order
HIERARCHY_STATUSES = [
    ("Backlog", True, False),
    ("Draft", False, False),
    ("In Progress", False, False),
    ("Done", False, True),
    ("Cancelled", False, True),
]

HIERARCHY_TRANSITIONS = [
    ("Backlog", "Draft"),
    ("Backlog", "In Progress"),
    ("Backlog", "Cancelled"),
    ("Draft", "Backlog"),
    ("Draft", "In Progress"),
    ("Draft", "Cancelled"),
    ("In Progress", "Done"),
    ("In Progress", "Cancelled"),
    ("Done", "In Progress"),
    ("Cancelled", "Backlog"),
]

REQUIREMENT_STATUSES = [
    ("Draft", True, False),
    ("Active", False, False),
    ("Obsolete", False, True),
]

REQUIREMENT_TRANSITIONS = [
    ("Draft", "Active"),
    ("Draft", "Obsolete"),
    ("Active", "Obsolete"),
    ("Obsolete", "Active"),
]

DEFAULT_STATUS_MODELS = {
    StatusEntityTypeEnum.EPIC: ("Default Epic Workflow", HIERARCHY_STATUSES, HIERARCHY_TRANSITIONS),
    StatusEntityTypeEnum.USER_STORY: (
        "Default User Story Workflow",
        HIERARCHY_STATUSES,
        HIERARCHY_TRANSITIONS,
    ),
    StatusEntityTypeEnum.REQUIREMENT: (
        "Default Requirement Workflow",
        REQUIREMENT_STATUSES,
        REQUIREMENT_TRANSITIONS,
    ),
}

DEFAULT_REQUIREMENT_TYPES = [
    ("Functional", "System functions and behaviour"),
    ("Non-Functional", "Quality attributes such as performance and security"),
    ("Business Rule", "Policies and constraints of the business domain"),
    ("Interface", "Interactions with users and external systems"),
    ("Data", "Data structures, retention and integrity"),
]

DEFAULT_RELATIONSHIP_TYPES = [
    ("depends_on", "Source cannot be completed without the target"),
    ("blocks", "Source prevents progress on the target"),
    ("relates_to", "General association"),
    ("conflicts_with", "Source and target cannot both be satisfied"),
    ("derives_from", "Source is derived from the target"),
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _seed_status_model(
    session: Session,
    entity_type: StatusEntityTypeEnum,
    name: str,
    statuses: list[tuple[str, bool, bool]],
    transitions: list[tuple[str, str]],
) -> bool:
    existing = session.execute(
        select(StatusModel.id).where(
            StatusModel.entity_type == entity_type, StatusModel.is_default.is_(True)
        )
    ).first()
    if existing is not None:
        return False

    model = StatusModel(
        id=_new_id(),
        entity_type=entity_type,
        name=name,
        description=f"Default workflow for {entity_type.value.replace('_', ' ')} items",
        is_default=True,
    )
    session.add(model)

    by_name: dict[str, Status] = {}
    for order, (status_name, is_initial, is_final) in enumerate(statuses):
        status = Status(
            id=_new_id(),
            status_model_id=model.id,
            name=status_name,
            is_initial=is_initial,
            is_final=is_final,
            order=order,
        )
        by_name[status_name] = status
        session.add(status)

    for from_name, to_name in transitions:
        session.add(
            StatusTransition(
                id=_new_id(),
                status_model_id=model.id,
                from_status_id=by_name[from_name].id,
                to_status_id=by_name[to_name].id,
            )
        )
    return True


def _seed_catalog(session: Session, table, entries: list[tuple[str, str]]) -> int:
    existing = set(session.execute(select(table.name)).scalars().all())
    added = 0
    for name, description in entries:
        if name not in existing:
            session.add(table(id=_new_id(), name=name, description=description))
            added += 1
    return added


def seed_defaults(session: Session) -> None:
    """Install default status models and type catalogs; existing rows are kept."""
    for entity_type, (name, statuses, transitions) in DEFAULT_STATUS_MODELS.items():
        if _seed_status_model(session, entity_type, name, statuses, transitions):
            logger.info("Seeded default status model for %s", entity_type.value)

    added_types = _seed_catalog(session, RequirementType, DEFAULT_REQUIREMENT_TYPES)
    added_relationships = _seed_catalog(session, RelationshipType, DEFAULT_RELATIONSHIP_TYPES)
    session.commit()
    logger.info(
        "Seeded %d requirement types and %d relationship types", added_types, added_relationships
    )


# =============================================================================
# DEMO DATA
# =============================================================================

EPIC_THEMES = [
    "User Authentication",
    "Reporting Dashboard",
    "Notification Center",
    "Billing and Invoicing",
    "Search and Discovery",
    "Audit Trail",
    "Data Import",
    "Team Management",
]

PERSONAS = ["administrator", "project manager", "analyst", "developer", "customer"]


def _user_story_description(fake: Faker) -> str:
    return (
        f"As a {random.choice(PERSONAS)}, I want to {fake.bs()}, "
        f"so that {fake.catch_phrase().lower()}"
    )


def generate_demo_data(
    session: Session,
    num_epics: int = 5,
    stories_per_epic: int = 3,
    creator_id: str = "demo-user",
    seed: int = 42,
) -> dict[str, int]:
    """
    Generate a sample hierarchy in an empty database.

    Every user story gets at least one acceptance criterion. Requires
    ``seed_defaults`` to have run so that types exist.

    Returns:
        Number of rows created per entity kind
    """
    fake = Faker()
    Faker.seed(seed)
    random.seed(seed)

    if session.execute(select(func.count()).select_from(Epic)).scalar():
        logger.warning("Database already contains epics; skipping demo data")
        return {}

    requirement_types = session.execute(select(RequirementType)).scalars().all()
    relationship_types = session.execute(select(RelationshipType)).scalars().all()
    if not requirement_types or not relationship_types:
        raise RuntimeError("Default types are missing; run seed_defaults first")

    counts = {"epics": 0, "user_stories": 0, "acceptance_criteria": 0, "requirements": 0,
              "relationships": 0}
    requirement_ids: list[str] = []

    for epic_index in range(num_epics):
        theme = EPIC_THEMES[epic_index % len(EPIC_THEMES)]
        epic = Epic(
            id=_new_id(),
            reference_id=format_reference_id(ReferencePrefix.EPIC.value, epic_index + 1),
            title=theme,
            description=fake.paragraph(nb_sentences=3),
            status=random.choice(["Backlog", "Draft", "In Progress"]),
            priority=random.randint(1, 4),
            creator_id=creator_id,
        )
        session.add(epic)
        counts["epics"] += 1

        for _ in range(stories_per_epic):
            counts["user_stories"] += 1
            story = UserStory(
                id=_new_id(),
                reference_id=format_reference_id(
                    ReferencePrefix.USER_STORY.value, counts["user_stories"]
                ),
                epic_id=epic.id,
                title=f"{theme}: {fake.catch_phrase()}",
                description=_user_story_description(fake),
                status="Backlog",
                priority=random.randint(1, 4),
                creator_id=creator_id,
            )
            session.add(story)

            criteria_ids = []
            for _ in range(random.randint(1, 3)):
                counts["acceptance_criteria"] += 1
                criteria = AcceptanceCriteria(
                    id=_new_id(),
                    reference_id=format_reference_id(
                        ReferencePrefix.ACCEPTANCE_CRITERIA.value, counts["acceptance_criteria"]
                    ),
                    user_story_id=story.id,
                    description=f"WHEN {fake.sentence().lower()} THEN {fake.sentence().lower()}",
                    author_id=creator_id,
                )
                session.add(criteria)
                criteria_ids.append(criteria.id)

            for _ in range(random.randint(1, 2)):
                counts["requirements"] += 1
                requirement = Requirement(
                    id=_new_id(),
                    reference_id=format_reference_id(
                        ReferencePrefix.REQUIREMENT.value, counts["requirements"]
                    ),
                    user_story_id=story.id,
                    acceptance_criteria_id=random.choice(criteria_ids),
                    type_id=random.choice(requirement_types).id,
                    title=fake.sentence(nb_words=6).rstrip("."),
                    description=fake.paragraph(nb_sentences=2),
                    status=random.choice(["Draft", "Active"]),
                    priority=random.randint(1, 4),
                    creator_id=creator_id,
                )
                session.add(requirement)
                requirement_ids.append(requirement.id)

    session.flush()
    for source_id, target_id in zip(requirement_ids, requirement_ids[1:], strict=False):
        if random.random() < 0.3:
            session.add(
                RequirementRelationship(
                    id=_new_id(),
                    source_requirement_id=source_id,
                    target_requirement_id=target_id,
                    relationship_type_id=random.choice(relationship_types).id,
                    created_by=creator_id,
                )
            )
            counts["relationships"] += 1

    session.commit()
    logger.info("Generated demo data: %s", counts)
    return counts
