from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from .earned_value import compute_evm, cost_status, schedule_status
from .ncr import get_next_possible_states, transition
from .parse_project import load_evm_snapshot, load_tasks, load_workflows, parse_evm_snapshot
from .render_gantt import render_gantt
from .render_rows import to_render_rows
from .risk_matrix import InvalidRiskInputError, compute_risk
from .scheduling import ProjectValidationError, compute_schedule
from .serialize import definition_to_wire, metrics_to_wire, risk_to_wire, schedule_to_wire
from .workflow import InvalidTransitionError, WorkflowEngine
from .workflow_catalog import workflow_engine

logger = logging.getLogger("project_controls")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project_controls",
        description="Project control engines: CPM scheduling, earned value, risk matrix and workflows",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument("--workflows", help="YAML file with extra workflow definitions")
    sub = parser.add_subparsers(dest="command", required=True)

    schedule = sub.add_parser("schedule", help="Compute the critical path of a task list")
    schedule.add_argument("tasks", help="Path to task list (YAML or JSON)")
    schedule.add_argument("--out", help="Also render an SVG Gantt chart to this path")
    schedule.add_argument("--title", default="Project schedule", help="Chart title")

    evm = sub.add_parser("evm", help="Compute earned value metrics")
    evm.add_argument("--file", help="YAML/JSON file holding the four EVM inputs")
    evm.add_argument("--bac", type=float, help="Budget at completion")
    evm.add_argument("--pv", type=float, help="Planned value")
    evm.add_argument("--ev", type=float, help="Earned value")
    evm.add_argument("--ac", type=float, help="Actual cost")

    risk = sub.add_parser("risk", help="Score a risk on the 5x5 matrix")
    risk.add_argument("likelihood", type=int, help="Likelihood 1-5")
    risk.add_argument("impact", type=int, help="Impact 1-5")

    ncr = sub.add_parser("ncr", help="Next NCR status, or the reachable statuses when no action is given")
    ncr.add_argument("status", help="Current NCR status, e.g. DRAFT")
    ncr.add_argument("action", nargs="?", help="Action to apply, e.g. ISSUE")

    workflow = sub.add_parser("workflow", help="Show a workflow definition or the actions open to a role")
    workflow.add_argument("entity_type", help="Entity type, e.g. document")
    workflow.add_argument("--stage", help="Current stage")
    workflow.add_argument("--role", help="Role of the acting user")
    return parser


def _run_schedule(args: argparse.Namespace) -> Any:
    tasks = compute_schedule(load_tasks(args.tasks))
    if args.out and tasks:
        render_gantt(to_render_rows(tasks), out_path=args.out, title=args.title)
        logger.info("Gantt chart written to %s", args.out)
    return schedule_to_wire(tasks)


def _run_evm(args: argparse.Namespace) -> Any:
    if args.file:
        snapshot = load_evm_snapshot(args.file)
    else:
        raw = {"budgetAtCompletion": args.bac, "plannedValue": args.pv, "earnedValue": args.ev, "actualCost": args.ac}
        snapshot = parse_evm_snapshot({key: value for key, value in raw.items() if value is not None})
    metrics = compute_evm(snapshot)
    payload = metrics_to_wire(metrics)
    payload["costStatus"] = cost_status(metrics)
    payload["scheduleStatus"] = schedule_status(metrics)
    return payload


def _run_ncr(args: argparse.Namespace) -> Any:
    if args.action:
        return {"status": transition(args.status.upper(), args.action.upper()).value}
    states = get_next_possible_states(args.status.upper())
    return {"nextStates": sorted(state.value for state in states)}


def _run_workflow(args: argparse.Namespace, engine: WorkflowEngine) -> Any:
    definition = engine.get_workflow(args.entity_type)
    if definition is None:
        raise ProjectValidationError(
            f"No workflow for entity type '{args.entity_type}' (known: {', '.join(sorted(engine.workflows))})"
        )
    if args.stage is None:
        return definition_to_wire(definition)
    if args.stage not in definition.stages:
        raise ProjectValidationError(f"Unknown stage '{args.stage}' for workflow '{args.entity_type}'")
    if args.role is None:
        actions = list(definition.actions_from(args.stage))
    else:
        actions = engine.available_actions(definition, args.stage, args.role)
    return {
        "stage": args.stage,
        "stageName": definition.display_name(args.stage),
        "actions": actions,
        "complete": engine.is_workflow_complete(definition, args.stage),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        engine = workflow_engine
        if args.workflows:
            engine = engine.with_definitions(load_workflows(args.workflows))

        if args.command == "schedule":
            result = _run_schedule(args)
        elif args.command == "evm":
            result = _run_evm(args)
        elif args.command == "risk":
            result = risk_to_wire(compute_risk(args.likelihood, args.impact))
        elif args.command == "ncr":
            result = _run_ncr(args)
        else:
            result = _run_workflow(args, engine)
    except (yaml.YAMLError, ProjectValidationError, InvalidRiskInputError, InvalidTransitionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: file not found: {Path(exc.filename or '')}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
