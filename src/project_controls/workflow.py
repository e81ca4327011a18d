from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from .project_models import TransitionRecord, TransitionRule, WorkflowDefinition, WorkflowInstance

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an action is not legal from the current stage or the role may not take it."""

    def __init__(self, stage: str, action: str, role: str | None = None, reason: str | None = None):
        msg = f"Invalid transition from '{stage}' with action '{action}'"
        if role is not None:
            msg += f" for role '{role}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.stage = stage
        self.action = action
        self.role = role
        self.reason = reason


class UnknownWorkflowError(KeyError):
    """Raised when no workflow definition is registered for an entity type."""

    def __str__(self) -> str:
        return f"No workflow registered for entity type '{self.args[0]}'"


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow definition references undeclared stages."""


class TransitionCheck(str, Enum):
    """Outcome of checking whether a role may take an action from a stage."""

    ALLOWED = "allowed"
    UNKNOWN_STAGE = "unknown_stage"
    NO_TRANSITION = "no_transition"
    ROLE_NOT_PERMITTED = "role_not_permitted"


def build_definition(
    entity_type: str,
    initial_stage: str,
    transitions: Mapping[tuple[str, str], tuple[str, Iterable[str] | None]],
    stages: Iterable[str] | None = None,
    stage_names: Mapping[str, str] | None = None,
) -> WorkflowDefinition:
    """
    Build a validated WorkflowDefinition.

    `transitions` maps (stage, action) to (target, allowed_roles); allowed_roles
    of None leaves the transition open to every role. When `stages` is omitted
    the stage set is inferred from the initial stage and transition endpoints.
    """

    rules = {
        (_plain(stage), _plain(action)): TransitionRule(
            target=_plain(target),
            allowed_roles=None if roles is None else frozenset(_plain(role) for role in roles),
        )
        for (stage, action), (target, roles) in transitions.items()
    }

    if stages is None:
        declared = {_plain(initial_stage)}
        for (stage, _), rule in rules.items():
            declared.update((stage, rule.target))
    else:
        declared = {_plain(stage) for stage in stages}

    if _plain(initial_stage) not in declared:
        raise WorkflowDefinitionError(f"{entity_type}: initial stage '{initial_stage}' is not a declared stage")
    for (stage, action), rule in rules.items():
        if stage not in declared:
            raise WorkflowDefinitionError(f"{entity_type}: transition ({stage}, {action}) starts at undeclared stage")
        if rule.target not in declared:
            raise WorkflowDefinitionError(
                f"{entity_type}: transition ({stage}, {action}) targets undeclared stage '{rule.target}'"
            )

    names = {_plain(stage): name for stage, name in (stage_names or {}).items()}
    unknown_names = sorted(set(names) - declared)
    if unknown_names:
        raise WorkflowDefinitionError(f"{entity_type}: names given for undeclared stages {unknown_names}")

    sources = {stage for stage, _ in rules}
    if not declared - sources:
        raise WorkflowDefinitionError(f"{entity_type}: every stage has outgoing transitions; no terminal stage")

    return WorkflowDefinition(
        entity_type=_plain(entity_type),
        stages=frozenset(declared),
        initial_stage=_plain(initial_stage),
        transitions=rules,
        stage_names=names,
    )


class WorkflowEngine:
    """
    Registry of workflow definitions keyed by entity type plus the operations over them.

    The registry is fixed at construction and exposed read-only, so one engine
    can be shared across threads; every operation returns new objects.
    """

    def __init__(self, definitions: Iterable[WorkflowDefinition]):
        registry: dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            if definition.entity_type in registry:
                raise WorkflowDefinitionError(f"Duplicate workflow for entity type '{definition.entity_type}'")
            registry[definition.entity_type] = definition
        self._workflows = MappingProxyType(registry)

    @property
    def workflows(self) -> Mapping[str, WorkflowDefinition]:
        return self._workflows

    def with_definitions(self, definitions: Iterable[WorkflowDefinition]) -> "WorkflowEngine":
        """New engine holding this registry plus `definitions` (which replace same-type entries)."""
        merged = dict(self._workflows)
        for definition in definitions:
            merged[definition.entity_type] = definition
        return WorkflowEngine(merged.values())

    def get_workflow(self, entity_type: str) -> WorkflowDefinition | None:
        return self._workflows.get(entity_type)

    def require_workflow(self, entity_type: str) -> WorkflowDefinition:
        definition = self.get_workflow(entity_type)
        if definition is None:
            raise UnknownWorkflowError(entity_type)
        return definition

    @staticmethod
    def check_action(definition: WorkflowDefinition, stage: str, action: str, role: str) -> TransitionCheck:
        if stage not in definition.stages:
            return TransitionCheck.UNKNOWN_STAGE
        rule = definition.rule(stage, action)
        if rule is None:
            return TransitionCheck.NO_TRANSITION
        if not rule.permits(role):
            return TransitionCheck.ROLE_NOT_PERMITTED
        return TransitionCheck.ALLOWED

    def can_perform_action(self, definition: WorkflowDefinition, stage: str, action: str, role: str) -> bool:
        return self.check_action(definition, stage, action, role) is TransitionCheck.ALLOWED

    @staticmethod
    def available_actions(definition: WorkflowDefinition, stage: str, role: str) -> list[str]:
        """Actions the role may take from `stage`, in declaration order."""
        return [action for action, rule in definition.actions_from(stage).items() if rule.permits(role)]

    @staticmethod
    def is_workflow_complete(definition: WorkflowDefinition, stage: str) -> bool:
        return stage in definition.terminal_stages

    def start_workflow(
        self,
        entity_type: str,
        entity_id: str,
        *,
        instance_id: str | None = None,
        now: datetime | None = None,
    ) -> WorkflowInstance:
        """Open a new instance at the definition's initial stage with an empty history."""

        definition = self.require_workflow(entity_type)
        timestamp = now or _utcnow()
        return WorkflowInstance(
            id=instance_id or f"wf_{uuid.uuid4().hex}",
            entity_type=entity_type,
            entity_id=entity_id,
            current_stage=definition.initial_stage,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def transition_workflow(
        self,
        instance: WorkflowInstance,
        action: str,
        actor_id: str,
        actor_name: str,
        role: str,
        *,
        comment: str | None = None,
        now: datetime | None = None,
    ) -> WorkflowInstance:
        """
        Apply `action` to `instance` and return the advanced copy.

        Raises InvalidTransitionError when the stage has no such action or the
        role is not permitted. The given instance is left untouched.
        """

        definition = self.require_workflow(instance.entity_type)
        stage = instance.current_stage
        action = _plain(action)
        check = self.check_action(definition, stage, action, role)
        if check is not TransitionCheck.ALLOWED:
            raise InvalidTransitionError(stage, action, role, reason=check.value)

        target = definition.transitions[(stage, action)].target
        timestamp = now or _utcnow()
        record = TransitionRecord(
            actor_id=actor_id,
            actor_name=actor_name,
            role=role,
            action=action,
            from_stage=stage,
            to_stage=target,
            timestamp=timestamp,
            comment=comment,
        )
        logger.debug("%s %s: %s --%s--> %s by %s", instance.entity_type, instance.id, stage, action, target, actor_id)
        return WorkflowInstance(
            id=instance.id,
            entity_type=instance.entity_type,
            entity_id=instance.entity_id,
            current_stage=target,
            created_at=instance.created_at,
            updated_at=timestamp,
            history=instance.history + (record,),
        )

    def awaiting_role(self, instances: Iterable[WorkflowInstance], role: str) -> list[WorkflowInstance]:
        """Instances whose current stage offers at least one action the role may take."""

        pending: list[WorkflowInstance] = []
        for instance in instances:
            definition = self.get_workflow(instance.entity_type)
            if definition is None:
                continue
            if self.available_actions(definition, instance.current_stage, role):
                pending.append(instance)
        return pending


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: str | Enum) -> str:
    # Enum-valued stages and actions are stored by value so lookups accept plain strings.
    return value.value if isinstance(value, Enum) else value
