"""
Status workflow engine.

Each entity kind has one default status model: a named set of statuses and
the legal (from, to) transitions between them. The engine validates status
names and transitions against that default model; non-default models are
configuration only and never enforced.

Status input is matched case-insensitively, with ``_`` and ``-`` treated as
spaces, so ``in_progress`` resolves to ``In Progress``.
"""

import logging
import re

from sqlalchemy.orm import Session

from ..database.schema import StatusEntityTypeEnum
from ..database.status_repository import StatusModelRepository
from ..errors import (
    ConflictError,
    InvalidStatusError,
    InvalidTransitionError,
    ValidationFailedError,
)
from ..models.common import EntityKind
from ..models.status import Status, StatusModel, StatusTransition

logger = logging.getLogger(__name__)

# Spellings accepted in place of the canonical status key
_STATUS_ALIASES = {
    "canceled": "cancelled",
    "inprogress": "in progress",
}


def status_key(name: str) -> str:
    """Fold a status name for comparison: lowercase, separators to single spaces."""
    folded = re.sub(r"[\s_-]+", " ", name.strip().lower())
    return _STATUS_ALIASES.get(folded, folded)


def _entity_type(kind: EntityKind | str) -> StatusEntityTypeEnum:
    return StatusEntityTypeEnum(kind.value if isinstance(kind, EntityKind) else kind)


class StatusWorkflowEngine:
    """
    Validates statuses and transitions against the default status models.

    An engine is bound to one session and caches the default model per kind
    for its lifetime, which is a single request.
    """

    def __init__(self, session: Session):
        self.repository = StatusModelRepository(session)
        self._models: dict[StatusEntityTypeEnum, StatusModel | None] = {}

    def default_model(self, kind: EntityKind | str) -> StatusModel | None:
        entity_type = _entity_type(kind)
        if entity_type not in self._models:
            self._models[entity_type] = self.repository.get_default_model(entity_type)
        return self._models[entity_type]

    def _find(self, kind: EntityKind | str, name: str) -> str | None:
        model = self.default_model(kind)
        if model is None:
            return None
        wanted = status_key(name)
        for candidate in model.status_names():
            if status_key(candidate) == wanted:
                return candidate
        return None

    def _valid_names(self, kind: EntityKind | str) -> list[str]:
        model = self.default_model(kind)
        return model.status_names() if model else []

    def validate_status(self, kind: EntityKind | str, name: str) -> str:
        """
        Check ``name`` belongs to the kind's default model.

        Returns:
            The canonical status name

        Raises:
            InvalidStatusError: If the kind has no such status
        """
        canonical = self._find(kind, name)
        if canonical is None:
            raise InvalidStatusError(_entity_type(kind).value, name, self._valid_names(kind))
        return canonical

    def validate_transition(self, kind: EntityKind | str, from_status: str, to_status: str) -> str:
        """
        Check ``from_status -> to_status`` is an edge of the default model.

        A self-transition is legal only when the pair is listed explicitly.

        Returns:
            The canonical target status name

        Raises:
            InvalidStatusError: If either status is unknown to the model
            InvalidTransitionError: If the pair is not a legal transition
        """
        current = self.validate_status(kind, from_status)
        target = self.validate_status(kind, to_status)
        model = self.default_model(kind)
        if (current, target) not in model.edge_set():
            raise InvalidTransitionError(_entity_type(kind).value, current, target)
        return target

    def initial_status(self, kind: EntityKind | str) -> str:
        model = self.default_model(kind)
        if model is None or not model.statuses:
            raise InvalidStatusError(_entity_type(kind).value, "<initial>", [])
        for status in sorted(model.statuses, key=lambda s: s.order):
            if status.is_initial:
                return status.name
        return model.status_names()[0]

    def status_for_create(self, kind: EntityKind | str, requested: str | None) -> str:
        """Status a new entity starts in: the requested one if valid, else the initial one."""
        if requested is None:
            return self.initial_status(kind)
        return self.validate_status(kind, requested)

    def allowed_transitions(self, kind: EntityKind | str, from_status: str) -> list[str]:
        current = self.validate_status(kind, from_status)
        model = self.default_model(kind)
        return sorted(target for source, target in model.edge_set() if source == current)


class StatusModelAdmin:
    """
    Administrative edits of status models.

    Enforces name uniqueness per kind and per model, keeps exactly one
    default model per kind, and refuses to remove a default model or a
    status that entities currently hold.
    """

    def __init__(self, session: Session):
        self.repository = StatusModelRepository(session)

    def list_models(self, kind: EntityKind | str | None = None) -> list[StatusModel]:
        return self.repository.list_models(None if kind is None else _entity_type(kind))

    def create_model(
        self,
        kind: EntityKind | str,
        name: str,
        description: str | None = None,
        is_default: bool = False,
    ) -> StatusModel:
        entity_type = _entity_type(kind)
        if self.repository.get_by_name(entity_type, name) is not None:
            raise ValidationFailedError(
                f"Status model '{name}' already exists for {entity_type.value}", {"field": "name"}
            )
        if self.repository.get_default_model(entity_type) is None:
            is_default = True
        if is_default:
            self.repository.clear_default(entity_type)
        model = self.repository.create_model(entity_type, name, description, is_default)
        logger.info("Created status model %s for %s", model.id, entity_type.value)
        return model

    def update_model(
        self,
        model_id: str,
        name: str | None = None,
        description: str | None = None,
        is_default: bool | None = None,
    ) -> StatusModel:
        db_obj = self.repository.get_model_db(model_id)
        changes: dict = {}
        if name is not None and name != db_obj.name:
            existing = self.repository.get_by_name(db_obj.entity_type, name)
            if existing is not None and existing.id != db_obj.id:
                raise ValidationFailedError(
                    f"Status model '{name}' already exists for {db_obj.entity_type.value}",
                    {"field": "name"},
                )
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if is_default is True and not db_obj.is_default:
            self.repository.clear_default(db_obj.entity_type, keep_id=db_obj.id)
            changes["is_default"] = True
        elif is_default is False and db_obj.is_default:
            raise ValidationFailedError(
                "Cannot unset the default status model; make another model the default instead",
                {"field": "is_default"},
            )
        return self.repository.update_model(model_id, changes)

    def delete_model(self, model_id: str) -> None:
        db_obj = self.repository.get_model_db(model_id)
        if db_obj.is_default:
            raise ConflictError(
                f"Status model '{db_obj.name}' is the default for {db_obj.entity_type.value}",
                hint="Make another model the default before deleting this one",
            )
        self.repository.delete_model(model_id)

    def add_status(
        self,
        model_id: str,
        name: str,
        description: str | None = None,
        color: str | None = None,
        is_initial: bool = False,
        is_final: bool = False,
        order: int | None = None,
    ) -> Status:
        db_obj = self.repository.get_model_db(model_id)
        if any(status_key(s.name) == status_key(name) for s in db_obj.statuses):
            raise ValidationFailedError(
                f"Status '{name}' already exists in model '{db_obj.name}'", {"field": "name"}
            )
        if is_initial:
            for status in db_obj.statuses:
                status.is_initial = False
        if order is None:
            order = max((s.order for s in db_obj.statuses), default=-1) + 1
        return self.repository.add_status(
            model_id,
            name=name,
            description=description,
            color=color,
            is_initial=is_initial,
            is_final=is_final,
            order=order,
        )

    def remove_status(self, status_id: str) -> None:
        status = self.repository.get_status_db(status_id)
        model = self.repository.get_model_db(status.status_model_id)
        if model.is_default:
            in_use = self.repository.count_entities_with_status(model.entity_type, status.name)
            if in_use:
                raise ConflictError(
                    f"Status '{status.name}' is held by {in_use} {model.entity_type.value} item(s)",
                    hint="Move those items to another status first",
                    details={"usage_count": in_use},
                )
        self.repository.remove_status(status_id)

    def add_transition(
        self, model_id: str, from_status: str, to_status: str, name: str | None = None
    ) -> StatusTransition:
        """Add a transition; statuses may be given by id or by name."""
        db_obj = self.repository.get_model_db(model_id)

        def lookup(value: str) -> str:
            for status in db_obj.statuses:
                if status.id == value or status_key(status.name) == status_key(value):
                    return status.id
            raise ValidationFailedError(
                f"Status '{value}' does not belong to model '{db_obj.name}'",
                {"field": "status"},
            )

        from_id, to_id = lookup(from_status), lookup(to_status)
        if any(t.from_status_id == from_id and t.to_status_id == to_id for t in db_obj.transitions):
            raise ValidationFailedError(
                f"Transition '{from_status}' -> '{to_status}' already exists",
                {"field": "transition"},
            )
        return self.repository.add_transition(model_id, from_id, to_id, name)

    def remove_transition(self, transition_id: str) -> None:
        self.repository.remove_transition(transition_id)
