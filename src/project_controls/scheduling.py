from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Sequence

from .project_models import Number, Task

logger = logging.getLogger(__name__)


class ProjectValidationError(ValueError):
    """Raised when the task set is invalid (duplicate ids, unknown refs, bad durations)."""


class CyclicDependencyError(ProjectValidationError):
    """Raised when the dependency graph contains a cycle or the passes fail to converge."""


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


def compute_schedule(tasks: Sequence[Task]) -> list[Task]:
    """
    Run the critical path method over `tasks` and return annotated copies.

    - Validates ids, dependency references and durations, then rejects cycles.
    - Forward pass relaxes early dates until a full scan changes nothing.
    - Backward pass relaxes late dates against the project duration.
    - Float is late_start - early_start; a task is critical when float == 0.

    Input order is preserved and the given tasks are never modified.
    """

    task_list = list(tasks)
    if not task_list:
        return []

    lookup = _validate_unique_ids(task_list)
    _validate_dependencies_exist(task_list, lookup)
    _validate_durations(task_list)
    _assert_no_cycles(task_list)

    early = _forward_pass(task_list)
    duration = max(finish for _, finish in early.values())
    late = _backward_pass(task_list, duration)

    scheduled: list[Task] = []
    for task in task_list:
        early_start, early_finish = early[task.id]
        late_start, late_finish = late[task.id]
        slack = late_start - early_start
        scheduled.append(
            replace(
                task,
                early_start=early_start,
                early_finish=early_finish,
                late_start=late_start,
                late_finish=late_finish,
                float=slack,
                is_critical=slack == 0,
            )
        )

    logger.debug("Scheduled %d tasks, project duration %s", len(scheduled), duration)
    return scheduled


def project_duration(tasks: Iterable[Task]) -> Number | None:
    """Maximum early finish of a computed schedule; None when there are no tasks."""

    finishes = [task.early_finish for task in tasks if task.early_finish is not None]
    return max(finishes) if finishes else None


def critical_path(tasks: Sequence[Task]) -> list[str]:
    """Ids of the critical tasks of a computed schedule, ordered by early start."""

    ranked = [
        (task.early_start, position, task.id)
        for position, task in enumerate(tasks)
        if task.is_critical
    ]
    return [task_id for _, _, task_id in sorted(ranked)]


def _validate_unique_ids(tasks: list[Task]) -> dict[str, Task]:
    lookup: dict[str, Task] = {}
    for task in tasks:
        if task.id in lookup:
            raise ProjectValidationError(f"Duplicate task id '{task.id}'")
        lookup[task.id] = task
    return lookup


def _validate_dependencies_exist(tasks: list[Task], lookup: dict[str, Task]) -> None:
    for task in tasks:
        for dep_id in task.dependencies:
            if dep_id not in lookup:
                raise ProjectValidationError(f"Task '{task.id}' depends on unknown task '{dep_id}'")


def _validate_durations(tasks: list[Task]) -> None:
    for task in tasks:
        if isinstance(task.duration, bool) or not isinstance(task.duration, (int, float)):
            raise ProjectValidationError(f"Task '{task.id}' has non-numeric duration {task.duration!r}")
        if not math.isfinite(task.duration):
            raise ProjectValidationError(f"Task '{task.id}' has non-finite duration={task.duration}")
        if task.duration < 0:
            raise ProjectValidationError(f"Task '{task.id}' has negative duration={task.duration}")


def _assert_no_cycles(tasks: list[Task]) -> None:
    order = [task.id for task in tasks]
    dependencies: dict[str, list[str]] = {task.id: list(task.dependencies) for task in tasks}
    cycle = _find_cycle(order, dependencies)
    if cycle:
        raise CyclicDependencyError(f"Dependency cycle detected: {cycle}")


def _find_cycle(order: list[str], dependencies: dict[str, list[str]]) -> Cycle | None:
    state: dict[str, str] = {}
    stack: list[str] = []
    positions: dict[str, int] = {}

    for root_id in order:
        if state.get(root_id) is not None:
            continue

        # Explicit frames keep deep chains clear of the interpreter recursion limit.
        state[root_id] = "visiting"
        positions[root_id] = 0
        stack.append(root_id)
        frames: list[tuple[str, Iterator[str]]] = [(root_id, iter(dependencies.get(root_id, [])))]

        while frames:
            node_id, pending = frames[-1]
            dep_id = next(pending, None)
            if dep_id is None:
                frames.pop()
                stack.pop()
                positions.pop(node_id, None)
                state[node_id] = "done"
                continue

            dep_state = state.get(dep_id)
            if dep_state == "visiting":
                return Cycle(stack[positions[dep_id] :] + [dep_id])
            if dep_state is None:
                state[dep_id] = "visiting"
                positions[dep_id] = len(stack)
                stack.append(dep_id)
                frames.append((dep_id, iter(dependencies.get(dep_id, []))))
    return None


def _forward_pass(tasks: list[Task]) -> dict[str, tuple[Number, Number]]:
    early: dict[str, tuple[Number, Number]] = {task.id: (0, task.duration) for task in tasks}
    max_scans = len(tasks) + 1

    for scan in range(1, max_scans + 1):
        changed = False
        for task in tasks:
            start = max((early[dep_id][1] for dep_id in task.dependencies), default=0)
            if start != early[task.id][0]:
                early[task.id] = (start, start + task.duration)
                changed = True
        if not changed:
            logger.debug("Forward pass converged after %d scans", scan)
            return early

    raise CyclicDependencyError(f"Forward pass did not converge within {max_scans} scans")


def _backward_pass(tasks: list[Task], duration: Number) -> dict[str, tuple[Number, Number]]:
    successors: dict[str, list[str]] = {task.id: [] for task in tasks}
    for task in tasks:
        for dep_id in task.dependencies:
            successors[dep_id].append(task.id)

    late: dict[str, tuple[Number, Number]] = {task.id: (duration - task.duration, duration) for task in tasks}
    max_scans = len(tasks) + 1

    for scan in range(1, max_scans + 1):
        changed = False
        for task in tasks:
            finish = min((late[succ_id][0] for succ_id in successors[task.id]), default=duration)
            if finish != late[task.id][1]:
                late[task.id] = (finish - task.duration, finish)
                changed = True
        if not changed:
            logger.debug("Backward pass converged after %d scans", scan)
            return late

    raise CyclicDependencyError(f"Backward pass did not converge within {max_scans} scans")
