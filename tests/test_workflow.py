import datetime as dt

import pytest

from project_controls.ncr import NCRAction, NCRStatus
from project_controls.workflow import (
    InvalidTransitionError,
    TransitionCheck,
    UnknownWorkflowError,
    WorkflowDefinitionError,
    WorkflowEngine,
    build_definition,
)
from project_controls.workflow_catalog import BUILTIN_WORKFLOWS, workflow_engine

NOW = dt.datetime(2024, 3, 1, 9, 30, tzinfo=dt.timezone.utc)
LATER = NOW + dt.timedelta(hours=2)


def _document(engine=workflow_engine):
    return engine.start_workflow("document", "doc-1", instance_id="wf-1", now=NOW)


def test_registry_holds_builtin_workflows():
    assert set(workflow_engine.workflows) == {"document", "expense", "ncr"}
    assert workflow_engine.get_workflow("rfi") is None


def test_document_submit_from_draft_is_allowed():
    workflow = workflow_engine.get_workflow("document")

    assert workflow_engine.can_perform_action(workflow, "draft", "submit", "site_engineer")


@pytest.mark.parametrize("role", ["site_engineer", "project_manager", "admin", "super_admin", "qa_manager"])
def test_document_approve_from_draft_is_rejected_for_every_role(role):
    workflow = workflow_engine.get_workflow("document")

    assert not workflow_engine.can_perform_action(workflow, "draft", "approve", role)


def test_check_action_reasons():
    workflow = workflow_engine.get_workflow("document")

    assert workflow_engine.check_action(workflow, "draft", "submit", "site_engineer") is TransitionCheck.ALLOWED
    assert workflow_engine.check_action(workflow, "draft", "approve", "admin") is TransitionCheck.NO_TRANSITION
    assert workflow_engine.check_action(workflow, "draft", "submit", "client") is TransitionCheck.ROLE_NOT_PERMITTED
    assert workflow_engine.check_action(workflow, "nowhere", "submit", "admin") is TransitionCheck.UNKNOWN_STAGE


def test_document_follows_review_sequence():
    draft = _document()

    review = workflow_engine.transition_workflow(draft, "submit", "user-1", "User", "site_engineer", now=NOW)
    approval = workflow_engine.transition_workflow(
        review, "approve", "manager-1", "Manager", "project_manager", comment="Looks good", now=LATER
    )

    assert review.current_stage == "review"
    assert approval.current_stage == "approval"
    assert approval.updated_at == LATER
    assert approval.created_at == NOW
    assert [record.to_stage for record in approval.history] == ["review", "approval"]
    last = approval.last_transition
    assert (last.actor_id, last.actor_name, last.role, last.action) == ("manager-1", "Manager", "project_manager", "approve")
    assert (last.from_stage, last.comment, last.timestamp) == ("review", "Looks good", LATER)


def test_transition_does_not_mutate_instance():
    draft = _document()

    workflow_engine.transition_workflow(draft, "submit", "user-1", "User", "site_engineer", now=NOW)

    assert draft.current_stage == "draft"
    assert draft.history == ()


def test_transition_is_repeatable_with_fixed_clock():
    draft = _document()

    first = workflow_engine.transition_workflow(draft, "submit", "user-1", "User", "site_engineer", now=LATER)
    second = workflow_engine.transition_workflow(draft, "submit", "user-1", "User", "site_engineer", now=LATER)

    assert first == second


def test_illegal_action_names_stage_action_and_role():
    with pytest.raises(InvalidTransitionError) as excinfo:
        workflow_engine.transition_workflow(_document(), "approve", "user-1", "User", "site_engineer")

    assert excinfo.value.stage == "draft"
    assert excinfo.value.action == "approve"
    assert excinfo.value.role == "site_engineer"
    assert "draft" in str(excinfo.value)


def test_role_not_permitted_is_rejected():
    with pytest.raises(InvalidTransitionError, match="role_not_permitted"):
        workflow_engine.transition_workflow(_document(), "submit", "user-9", "Client", "client")


def test_terminal_stage_has_no_transitions():
    expense = workflow_engine.start_workflow("expense", "exp-1", now=NOW)
    steps = [
        ("submit", "site_engineer"),
        ("approve", "project_manager"),
        ("approve", "accountant"),
    ]
    for action, role in steps:
        expense = workflow_engine.transition_workflow(expense, action, "u", "U", role, now=NOW)

    definition = workflow_engine.get_workflow("expense")
    assert expense.current_stage == "paid"
    assert workflow_engine.is_workflow_complete(definition, "paid")
    assert not workflow_engine.is_workflow_complete(definition, "pending")
    with pytest.raises(InvalidTransitionError):
        workflow_engine.transition_workflow(expense, "approve", "u", "U", "admin")


def test_terminal_stages_of_builtin_workflows():
    terminals = {definition.entity_type: definition.terminal_stages for definition in BUILTIN_WORKFLOWS}

    assert terminals["document"] == {"published", "rejected"}
    assert terminals["expense"] == {"paid", "rejected"}
    assert terminals["ncr"] == {NCRStatus.CLOSED.value}


def test_history_invariant_matches_current_stage():
    instance = _document()
    for action, role in [("submit", "site_engineer"), ("request_changes", "qa_manager"), ("submit", "project_manager")]:
        instance = workflow_engine.transition_workflow(instance, action, "u", "U", role, now=NOW)
        assert instance.current_stage == instance.history[-1].to_stage


def test_ncr_driven_through_generic_engine_enforces_roles():
    ncr = workflow_engine.start_workflow("ncr", "ncr-7", now=NOW)

    assert ncr.current_stage == "DRAFT"
    with pytest.raises(InvalidTransitionError):
        workflow_engine.transition_workflow(ncr, NCRAction.ISSUE, "u", "U", "site_engineer")

    issued = workflow_engine.transition_workflow(ncr, NCRAction.ISSUE, "qa-1", "QA", "qa_manager", now=NOW)
    assert issued.current_stage == NCRStatus.ISSUED
    assert issued.history[-1].action == "ISSUE"


def test_available_actions_and_awaiting_role():
    definition = workflow_engine.get_workflow("document")
    draft = _document()
    review = workflow_engine.transition_workflow(draft, "submit", "u", "U", "site_engineer", now=NOW)

    assert workflow_engine.available_actions(definition, "review", "qa_manager") == ["approve", "request_changes"]
    assert workflow_engine.available_actions(definition, "review", "site_engineer") == []
    assert workflow_engine.awaiting_role([draft, review], "qa_manager") == [review]
    assert workflow_engine.awaiting_role([draft, review], "site_engineer") == [draft]


def test_unknown_entity_type_raises():
    with pytest.raises(UnknownWorkflowError):
        workflow_engine.start_workflow("rfi", "rfi-1")


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        workflow_engine.workflows["rfi"] = None


def test_with_definitions_extends_registry_without_mutating_base_engine():
    rfi = build_definition(
        entity_type="rfi",
        initial_stage="open",
        transitions={("open", "answer"): ("answered", None)},
    )

    extended = workflow_engine.with_definitions([rfi])

    assert extended.get_workflow("rfi") is rfi
    assert workflow_engine.get_workflow("rfi") is None
    assert extended.can_perform_action(rfi, "open", "answer", "anyone")


def test_duplicate_entity_types_are_rejected():
    with pytest.raises(WorkflowDefinitionError):
        WorkflowEngine(list(BUILTIN_WORKFLOWS) + [BUILTIN_WORKFLOWS[0]])


def test_definition_with_undeclared_target_is_rejected():
    with pytest.raises(WorkflowDefinitionError):
        build_definition(
            entity_type="broken",
            initial_stage="a",
            stages=["a"],
            transitions={("a", "go"): ("b", None)},
        )


def test_definition_without_terminal_stage_is_rejected():
    with pytest.raises(WorkflowDefinitionError, match="no terminal stage"):
        build_definition("loop", "a", {("a", "go"): ("b", None), ("b", "back"): ("a", None)})
