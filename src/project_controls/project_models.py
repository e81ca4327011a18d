from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union

Number = Union[int, float]

NodeKind = Literal["bar", "milestone"]
"""Allowed render node types: bar (task with duration) and milestone (zero duration)."""


@dataclass(frozen=True)
class Task:
    """Schedulable activity; computed fields stay None until a schedule is computed."""

    id: str
    duration: Number
    dependencies: tuple[str, ...] = ()
    name: str | None = None
    meta: Mapping[str, Any] | None = None
    early_start: Number | None = None
    early_finish: Number | None = None
    late_start: Number | None = None
    late_finish: Number | None = None
    float: Number | None = None
    is_critical: bool | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of ids from callers but store an immutable tuple.
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    @property
    def is_scheduled(self) -> bool:
        """True once forward and backward passes have populated every computed field."""
        return self.float is not None

    @property
    def is_milestone(self) -> bool:
        return self.duration == 0


@dataclass(frozen=True)
class EVMSnapshot:
    """Cost position of a project at one point in time."""

    budget_at_completion: Number
    planned_value: Number
    earned_value: Number
    actual_cost: Number


@dataclass(frozen=True)
class EVMMetrics:
    """Variances, indices and forecasts derived from an EVMSnapshot."""

    schedule_variance: Number
    cost_variance: Number
    schedule_performance_index: Number
    cost_performance_index: Number
    estimate_at_completion: Number
    estimate_to_complete: Number
    variance_at_completion: Number
    to_complete_performance_index: Number


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


@dataclass(frozen=True)
class RiskAssessment:
    likelihood: int
    impact: int
    score: int
    level: RiskLevel


@dataclass(frozen=True)
class TransitionRule:
    """Target stage of a (stage, action) pair and the roles allowed to take it (None = anyone)."""

    target: str
    allowed_roles: frozenset[str] | None = None

    def permits(self, role: str) -> bool:
        return self.allowed_roles is None or role in self.allowed_roles


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Lifecycle of one entity type as a table of (stage, action) -> TransitionRule.

    Build through workflow.build_definition so stage references are validated;
    the transition table is exposed read-only.
    """

    entity_type: str
    stages: frozenset[str]
    initial_stage: str
    transitions: Mapping[tuple[str, str], TransitionRule]
    stage_names: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transitions", MappingProxyType(dict(self.transitions)))
        object.__setattr__(self, "stage_names", MappingProxyType(dict(self.stage_names)))

    @property
    def terminal_stages(self) -> frozenset[str]:
        """Stages without outgoing transitions."""
        sources = {stage for stage, _ in self.transitions}
        return frozenset(self.stages - sources)

    def rule(self, stage: str, action: str) -> TransitionRule | None:
        return self.transitions.get((stage, action))

    def actions_from(self, stage: str) -> dict[str, TransitionRule]:
        """Outgoing transitions of a stage keyed by action, in declaration order."""
        return {action: rule for (source, action), rule in self.transitions.items() if source == stage}

    def display_name(self, stage: str) -> str:
        return self.stage_names.get(stage, stage)


@dataclass(frozen=True)
class TransitionRecord:
    """One append-only history entry of a workflow instance."""

    actor_id: str
    actor_name: str
    role: str
    action: str
    from_stage: str
    to_stage: str
    timestamp: datetime
    comment: str | None = None


@dataclass(frozen=True)
class WorkflowInstance:
    id: str
    entity_type: str
    entity_id: str
    current_stage: str
    created_at: datetime
    updated_at: datetime
    history: tuple[TransitionRecord, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "history", tuple(self.history))

    @property
    def last_transition(self) -> TransitionRecord | None:
        return self.history[-1] if self.history else None


@dataclass
class FlatRenderRow:
    """
    Flattened view of a computed schedule used by the Gantt renderer.

    Positions are expressed in project time units counted from zero; the slack
    window runs from early_finish to late_finish.
    """

    order: int
    node_type: NodeKind
    node_id: str
    name: str
    early_start: Number
    early_finish: Number
    late_finish: Number
    is_critical: bool
    depends_on: list[str] = field(default_factory=list)
