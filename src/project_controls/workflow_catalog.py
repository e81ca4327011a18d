"""Built-in workflow definitions and the process-wide engine built from them."""

from __future__ import annotations

from .ncr import NCR_WORKFLOW
from .project_models import WorkflowDefinition
from .workflow import WorkflowEngine, build_definition

# Document: draft -> review -> approval -> published
DOCUMENT_WORKFLOW: WorkflowDefinition = build_definition(
    entity_type="document",
    initial_stage="draft",
    stages=["draft", "review", "approval", "published", "rejected"],
    transitions={
        ("draft", "submit"): ("review", ["site_engineer", "project_manager"]),
        ("review", "approve"): ("approval", ["project_manager", "qa_manager"]),
        ("review", "request_changes"): ("draft", ["project_manager", "qa_manager"]),
        ("approval", "approve"): ("published", ["admin", "super_admin"]),
        ("approval", "reject"): ("rejected", ["admin", "super_admin"]),
        ("approval", "request_changes"): ("review", ["admin", "super_admin"]),
    },
    stage_names={
        "draft": "Draft",
        "review": "Under Review",
        "approval": "Pending Approval",
        "published": "Published",
        "rejected": "Rejected",
    },
)

# Expense: pending -> manager approval -> finance approval -> paid
EXPENSE_WORKFLOW: WorkflowDefinition = build_definition(
    entity_type="expense",
    initial_stage="pending",
    stages=["pending", "manager_approval", "finance_approval", "paid", "rejected"],
    transitions={
        ("pending", "submit"): ("manager_approval", ["site_engineer", "project_manager"]),
        ("manager_approval", "approve"): ("finance_approval", ["project_manager"]),
        ("manager_approval", "reject"): ("rejected", ["project_manager"]),
        ("finance_approval", "approve"): ("paid", ["accountant", "admin"]),
        ("finance_approval", "request_changes"): ("manager_approval", ["accountant", "admin"]),
    },
    stage_names={
        "pending": "Pending",
        "manager_approval": "Manager Approval",
        "finance_approval": "Finance Approval",
        "paid": "Paid",
        "rejected": "Rejected",
    },
)

BUILTIN_WORKFLOWS: tuple[WorkflowDefinition, ...] = (DOCUMENT_WORKFLOW, EXPENSE_WORKFLOW, NCR_WORKFLOW)

workflow_engine = WorkflowEngine(BUILTIN_WORKFLOWS)
