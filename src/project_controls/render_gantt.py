from __future__ import annotations

from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch, Polygon

from .project_models import FlatRenderRow

CRITICAL_COLOR = "#c0392b"
NORMAL_COLOR = "#2e86c1"
FLOAT_COLOR = "#d5d8dc"
MILESTONE_HALF_WIDTH = 0.3
ROW_HEIGHT = 0.6
TITLE_FONT = 14
LABEL_FONT = 10
TICK_FONT = 9


def render_gantt(rows: list[FlatRenderRow], out_path: str, title: str, time_unit: str = "days") -> None:
    """
    Render a static SVG Gantt chart of a computed schedule to `out_path`.

    - Bars span early start to early finish; critical tasks are drawn in red.
    - The float window (early finish to late finish) is shaded behind each bar.
    - Dependency arrows run from a predecessor's finish to its successor's start.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    horizon = max(max(row.late_finish, row.early_finish) for row in rows)
    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig, ax = plt.subplots(figsize=(12.0, fig_height))

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(-0.5, horizon + 1)
    ax.xaxis.tick_top()
    ax.grid(True, axis="x", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelsize=TICK_FONT)
    ax.set_yticks(range(len(rows)))
    ax.set_yticklabels([row.name for row in rows], fontsize=LABEL_FONT)
    ax.set_xlabel(time_unit, fontsize=LABEL_FONT)
    ax.xaxis.set_label_position("top")
    fig.suptitle(title, fontsize=TITLE_FONT)

    positions: dict[str, tuple[float, float, int]] = {}  # id -> (start, finish, y)
    for y, row in enumerate(rows):
        color = CRITICAL_COLOR if row.is_critical else NORMAL_COLOR
        if row.late_finish > row.early_finish:
            ax.barh(
                y,
                width=row.late_finish - row.early_finish,
                left=row.early_finish,
                height=ROW_HEIGHT / 2,
                color=FLOAT_COLOR,
                zorder=1,
            )

        if row.node_type == "bar":
            ax.barh(
                y,
                width=row.early_finish - row.early_start,
                left=row.early_start,
                height=ROW_HEIGHT,
                color=color,
                edgecolor="black",
                linewidth=0.5,
                zorder=2,
            )
        else:
            half_height = ROW_HEIGHT / 1.5
            diamond = [
                (row.early_start - MILESTONE_HALF_WIDTH, y),
                (row.early_start, y - half_height),
                (row.early_start + MILESTONE_HALF_WIDTH, y),
                (row.early_start, y + half_height),
            ]
            ax.add_patch(Polygon(diamond, closed=True, facecolor=color, edgecolor="black", zorder=2))
        positions[row.node_id] = (row.early_start, row.early_finish, y)

    _draw_dependencies(ax, rows, positions)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _draw_dependencies(
    ax: plt.Axes,
    rows: Iterable[FlatRenderRow],
    positions: dict[str, tuple[float, float, int]],
) -> None:
    for row in rows:
        target = positions.get(row.node_id)
        if target is None:
            continue
        for dep_id in row.depends_on:
            source = positions.get(dep_id)
            if source is None:
                continue
            arrow = FancyArrowPatch(
                (source[1], source[2]),
                (target[0], target[2]),
                arrowstyle="-|>",
                mutation_scale=8,
                connectionstyle="angle,angleA=0,angleB=90,rad=0",
                color="#444444",
                linewidth=0.8,
                zorder=3,
            )
            ax.add_patch(arrow)
