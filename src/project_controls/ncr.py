"""Non-conformance report lifecycle, registered as the `ncr` workflow."""

from __future__ import annotations

from enum import Enum

from .project_models import WorkflowDefinition
from .workflow import InvalidTransitionError, build_definition

NCR_ENTITY_TYPE = "ncr"

QUALITY_ROLES = ("qa_manager", "quality_control")
SITE_ROLES = ("site_engineer", "project_manager")


class NCRStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    PROPOSED_ACTION = "PROPOSED_ACTION"
    ACTION_APPROVED = "ACTION_APPROVED"
    ACTION_REJECTED = "ACTION_REJECTED"
    ACTION_COMPLETED = "ACTION_COMPLETED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"


class NCRAction(str, Enum):
    ISSUE = "ISSUE"
    ACKNOWLEDGE = "ACKNOWLEDGE"
    PROPOSE = "PROPOSE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    COMPLETE = "COMPLETE"
    VERIFY = "VERIFY"
    CLOSE = "CLOSE"


NCR_WORKFLOW: WorkflowDefinition = build_definition(
    entity_type=NCR_ENTITY_TYPE,
    initial_stage=NCRStatus.DRAFT,
    stages=list(NCRStatus),
    transitions={
        (NCRStatus.DRAFT, NCRAction.ISSUE): (NCRStatus.ISSUED, QUALITY_ROLES),
        (NCRStatus.ISSUED, NCRAction.ACKNOWLEDGE): (NCRStatus.ACKNOWLEDGED, SITE_ROLES),
        (NCRStatus.ACKNOWLEDGED, NCRAction.PROPOSE): (NCRStatus.PROPOSED_ACTION, SITE_ROLES),
        (NCRStatus.PROPOSED_ACTION, NCRAction.APPROVE): (NCRStatus.ACTION_APPROVED, QUALITY_ROLES),
        (NCRStatus.PROPOSED_ACTION, NCRAction.REJECT): (NCRStatus.ACTION_REJECTED, QUALITY_ROLES),
        (NCRStatus.ACTION_REJECTED, NCRAction.PROPOSE): (NCRStatus.PROPOSED_ACTION, SITE_ROLES),
        (NCRStatus.ACTION_APPROVED, NCRAction.COMPLETE): (NCRStatus.ACTION_COMPLETED, SITE_ROLES),
        (NCRStatus.ACTION_COMPLETED, NCRAction.VERIFY): (NCRStatus.VERIFIED, QUALITY_ROLES),
        # Corrective action judged incomplete: send it back to be redone.
        (NCRStatus.ACTION_COMPLETED, NCRAction.REJECT): (NCRStatus.ACTION_APPROVED, QUALITY_ROLES),
        (NCRStatus.VERIFIED, NCRAction.CLOSE): (NCRStatus.CLOSED, QUALITY_ROLES),
    },
    stage_names={
        NCRStatus.DRAFT: "Draft",
        NCRStatus.ISSUED: "Issued",
        NCRStatus.ACKNOWLEDGED: "Acknowledged",
        NCRStatus.PROPOSED_ACTION: "Corrective Action Proposed",
        NCRStatus.ACTION_APPROVED: "Corrective Action Approved",
        NCRStatus.ACTION_REJECTED: "Corrective Action Rejected",
        NCRStatus.ACTION_COMPLETED: "Corrective Action Completed",
        NCRStatus.VERIFIED: "Verified",
        NCRStatus.CLOSED: "Closed",
    },
)


def transition(current_status: NCRStatus | str, action: NCRAction | str) -> NCRStatus:
    """Next status for `action`; role gates are enforced only by the workflow engine."""

    status = _coerce(NCRStatus, current_status, current_status, action)
    ncr_action = _coerce(NCRAction, action, current_status, action)
    rule = NCR_WORKFLOW.rule(status.value, ncr_action.value)
    if rule is None:
        raise InvalidTransitionError(status.value, ncr_action.value)
    return NCRStatus(rule.target)


def get_next_possible_states(current_status: NCRStatus | str) -> frozenset[NCRStatus]:
    status = _coerce(NCRStatus, current_status, current_status, "")
    return frozenset(NCRStatus(rule.target) for rule in NCR_WORKFLOW.actions_from(status.value).values())


def _coerce(enum_type, value, stage, action):
    try:
        return enum_type(value)
    except ValueError as exc:
        raise InvalidTransitionError(_plain(stage), _plain(action), reason=f"unknown {enum_type.__name__} value") from exc


def _plain(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)
