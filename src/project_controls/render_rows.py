from __future__ import annotations

from typing import List, Sequence

from .project_models import FlatRenderRow, Task


def to_render_rows(tasks: Sequence[Task]) -> list[FlatRenderRow]:
    """
    Convert a computed schedule into flat render rows.

    Rows are ordered by early start, ties keeping input order. Zero-duration
    tasks become milestones; everything else renders as a bar.
    """

    for task in tasks:
        if not task.is_scheduled:
            raise ValueError(f"Task '{task.id}' has no computed schedule; run compute_schedule first")

    ranked = sorted(enumerate(tasks), key=lambda pair: (pair[1].early_start, pair[0]))

    rows: List[FlatRenderRow] = []
    for order, (_, task) in enumerate(ranked):
        rows.append(
            FlatRenderRow(
                order=order,
                node_type="milestone" if task.is_milestone else "bar",
                node_id=task.id,
                name=task.name or task.id,
                early_start=task.early_start,
                early_finish=task.early_finish,
                late_finish=task.late_finish,
                is_critical=bool(task.is_critical),
                depends_on=list(task.dependencies),
            )
        )
    return rows
