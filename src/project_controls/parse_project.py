from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import yaml

from .project_models import EVMSnapshot, Task, WorkflowDefinition
from .scheduling import ProjectValidationError
from .workflow import WorkflowDefinitionError, build_definition

# Wire (camelCase) name -> model field for EVM snapshots.
EVM_FIELDS: dict[str, str] = {
    "budgetAtCompletion": "budget_at_completion",
    "plannedValue": "planned_value",
    "earnedValue": "earned_value",
    "actualCost": "actual_cost",
}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable document path strings like tasks[0].dependencies[1]."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def _read(path: str) -> Any:
    # JSON is a subset of YAML, so one loader covers both formats.
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_tasks(path: str) -> list[Task]:
    """Load a task list from a YAML or JSON file (no scheduling)."""

    return parse_tasks(_read(path))


def parse_tasks(data: Any) -> list[Task]:
    """Accept either a bare list of task mappings or a mapping with a 'tasks' list."""

    path = _Path()
    if isinstance(data, dict):
        _assert_allowed_keys(data, {"tasks", "name", "meta"}, path)
        data = _require_value(data, "tasks", path)
    if not isinstance(data, list):
        raise ProjectValidationError(f"{path.child('tasks')}: expected list of tasks")

    ids: set[str] = set()
    return [_parse_task(raw, path.child(f"tasks[{idx}]"), ids) for idx, raw in enumerate(data)]


def _parse_task(data: Any, path: _Path, ids: set[str]) -> Task:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for task")

    _assert_allowed_keys(data, {"id", "name", "duration", "dependencies", "meta"}, path)
    task_id = _require_str(data, "id", path)
    if task_id in ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate task id '{task_id}'")
    ids.add(task_id)

    duration = _require_value(data, "duration", path)
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ProjectValidationError(f"{path.child('duration')}: expected number")
    if not math.isfinite(duration):
        raise ProjectValidationError(f"{path.child('duration')}: expected finite number")
    if duration < 0:
        raise ProjectValidationError(f"{path.child('duration')}: expected non-negative number")

    dependencies_raw = data.get("dependencies") or []
    if not isinstance(dependencies_raw, list):
        raise ProjectValidationError(f"{path}.dependencies: expected list of task ids")
    dependencies: list[str] = []
    for idx, dep in enumerate(dependencies_raw):
        if not isinstance(dep, str):
            raise ProjectValidationError(f"{path}.dependencies[{idx}]: expected string task id")
        dependencies.append(dep)

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise ProjectValidationError(f"{path.child('name')}: expected string")

    return Task(
        id=task_id,
        duration=duration,
        dependencies=tuple(dependencies),
        name=name,
        meta=_parse_meta(data.get("meta"), path.child("meta")),
    )


def load_evm_snapshot(path: str) -> EVMSnapshot:
    return parse_evm_snapshot(_read(path))


def parse_evm_snapshot(data: Any) -> EVMSnapshot:
    """
    Build an EVMSnapshot from camelCase or snake_case keys.

    Every one of the four inputs must be present; the error lists all missing ones.
    """

    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping with EVM parameters")

    values: dict[str, Any] = {}
    missing: list[str] = []
    for wire_name, field_name in EVM_FIELDS.items():
        if wire_name in data:
            value = data[wire_name]
        elif field_name in data:
            value = data[field_name]
        else:
            missing.append(wire_name)
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ProjectValidationError(f"{path.child(wire_name)}: expected number")
        values[field_name] = value

    if missing:
        raise ProjectValidationError(f"Missing required EVM parameters: {', '.join(missing)}")
    return EVMSnapshot(**values)


def load_workflows(path: str) -> list[WorkflowDefinition]:
    """Load extra workflow definitions from a YAML file."""

    return parse_workflows(_read(path))


def parse_workflows(data: Any) -> list[WorkflowDefinition]:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"workflows"}, path)
    workflows_raw = _require_value(data, "workflows", path)
    if not isinstance(workflows_raw, list):
        raise ProjectValidationError(f"{path}.workflows: expected list")

    return [_parse_workflow(raw, path.child(f"workflows[{idx}]")) for idx, raw in enumerate(workflows_raw)]


def _parse_workflow(data: Any, path: _Path) -> WorkflowDefinition:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for workflow")

    _assert_allowed_keys(data, {"entity_type", "initial_stage", "stages", "stage_names", "transitions"}, path)
    entity_type = _require_str(data, "entity_type", path)
    initial_stage = _require_str(data, "initial_stage", path)

    stages = data.get("stages")
    if stages is not None and (not isinstance(stages, list) or not all(isinstance(s, str) for s in stages)):
        raise ProjectValidationError(f"{path}.stages: expected list of stage names")

    stage_names = data.get("stage_names") or {}
    if not isinstance(stage_names, dict):
        raise ProjectValidationError(f"{path}.stage_names: expected mapping")

    transitions_raw = _require_value(data, "transitions", path)
    if not isinstance(transitions_raw, list):
        raise ProjectValidationError(f"{path}.transitions: expected list")

    transitions: dict[tuple[str, str], tuple[str, list[str] | None]] = {}
    for idx, raw in enumerate(transitions_raw):
        item_path = path.child(f"transitions[{idx}]")
        if not isinstance(raw, dict):
            raise ProjectValidationError(f"{item_path}: expected mapping for transition")
        _assert_allowed_keys(raw, {"from", "action", "to", "roles"}, item_path)
        key = (_require_str(raw, "from", item_path), _require_str(raw, "action", item_path))
        if key in transitions:
            raise ProjectValidationError(f"{item_path}: duplicate transition {key}")
        roles = raw.get("roles")
        if roles is not None and (not isinstance(roles, list) or not all(isinstance(r, str) for r in roles)):
            raise ProjectValidationError(f"{item_path}.roles: expected list of role names")
        transitions[key] = (_require_str(raw, "to", item_path), roles)

    try:
        return build_definition(
            entity_type=entity_type,
            initial_stage=initial_stage,
            transitions=transitions,
            stages=stages,
            stage_names=stage_names,
        )
    except WorkflowDefinitionError as exc:
        raise ProjectValidationError(f"{path}: {exc}") from exc


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_meta(value: Any, path: _Path) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ProjectValidationError(f"{path}: expected mapping for meta")
    return value
