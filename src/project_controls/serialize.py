"""camelCase wire shapes for engine results, as consumed by the HTTP layer."""

from __future__ import annotations

import datetime as dt
from typing import Any, Mapping, Sequence

from .project_models import EVMMetrics, RiskAssessment, Task, TransitionRecord, WorkflowDefinition, WorkflowInstance
from .scheduling import critical_path, project_duration


def task_to_wire(task: Task) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": task.id,
        "duration": task.duration,
        "dependencies": list(task.dependencies),
    }
    if task.name is not None:
        payload["name"] = task.name
    if task.meta is not None:
        payload["meta"] = _json_safe(task.meta)
    if task.is_scheduled:
        payload.update(
            earlyStart=task.early_start,
            earlyFinish=task.early_finish,
            lateStart=task.late_start,
            lateFinish=task.late_finish,
            float=task.float,
            isCritical=task.is_critical,
        )
    return payload


def schedule_to_wire(tasks: Sequence[Task]) -> dict[str, Any]:
    """Computed schedule plus its duration (0 when empty) and critical path."""

    return {
        "tasks": [task_to_wire(task) for task in tasks],
        "projectDuration": project_duration(tasks) or 0,
        "criticalPath": critical_path(tasks),
    }


def metrics_to_wire(metrics: EVMMetrics) -> dict[str, Any]:
    return {
        "scheduleVariance": metrics.schedule_variance,
        "costVariance": metrics.cost_variance,
        "schedulePerformanceIndex": metrics.schedule_performance_index,
        "costPerformanceIndex": metrics.cost_performance_index,
        "estimateAtCompletion": metrics.estimate_at_completion,
        "estimateToComplete": metrics.estimate_to_complete,
        "varianceAtCompletion": metrics.variance_at_completion,
        "toCompletePerformanceIndex": metrics.to_complete_performance_index,
    }


def risk_to_wire(assessment: RiskAssessment) -> dict[str, Any]:
    return {"score": assessment.score, "level": assessment.level.value}


def definition_to_wire(definition: WorkflowDefinition) -> dict[str, Any]:
    return {
        "entityType": definition.entity_type,
        "initialStage": definition.initial_stage,
        "stages": sorted(definition.stages),
        "terminalStages": sorted(definition.terminal_stages),
        "transitions": [
            {
                "from": stage,
                "action": action,
                "to": rule.target,
                "allowedRoles": None if rule.allowed_roles is None else sorted(rule.allowed_roles),
            }
            for (stage, action), rule in definition.transitions.items()
        ],
    }


def record_to_wire(record: TransitionRecord) -> dict[str, Any]:
    payload = {
        "actorId": record.actor_id,
        "actorName": record.actor_name,
        "role": record.role,
        "action": record.action,
        "fromStage": record.from_stage,
        "toStage": record.to_stage,
        "timestamp": record.timestamp.isoformat(),
    }
    if record.comment is not None:
        payload["comment"] = record.comment
    return payload


def instance_to_wire(instance: WorkflowInstance) -> dict[str, Any]:
    return {
        "id": instance.id,
        "entityType": instance.entity_type,
        "entityId": instance.entity_id,
        "currentStage": instance.current_stage,
        "history": [record_to_wire(record) for record in instance.history],
        "createdAt": instance.created_at.isoformat(),
        "updatedAt": instance.updated_at.isoformat(),
    }


def _json_safe(value: Any) -> Any:
    # Task meta comes straight from YAML, which yields date/datetime for unquoted ISO dates.
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
