import datetime as dt

from project_controls.earned_value import compute_evm
from project_controls.project_models import EVMSnapshot, Task
from project_controls.scheduling import compute_schedule
from project_controls.serialize import instance_to_wire, metrics_to_wire, schedule_to_wire, task_to_wire
from project_controls.workflow_catalog import workflow_engine

NOW = dt.datetime(2024, 3, 1, 9, 30, tzinfo=dt.timezone.utc)


def test_unscheduled_task_has_input_fields_only():
    assert task_to_wire(Task(id="A", duration=3, dependencies=["B"])) == {
        "id": "A",
        "duration": 3,
        "dependencies": ["B"],
    }


def test_schedule_wire_shape():
    tasks = compute_schedule([Task(id="A", duration=3, name="Excavate"), Task(id="B", duration=2, dependencies=["A"])])

    payload = schedule_to_wire(tasks)

    assert payload["projectDuration"] == 5
    assert payload["criticalPath"] == ["A", "B"]
    assert payload["tasks"][1] == {
        "id": "B",
        "duration": 2,
        "dependencies": ["A"],
        "earlyStart": 3,
        "earlyFinish": 5,
        "lateStart": 3,
        "lateFinish": 5,
        "float": 0,
        "isCritical": True,
    }
    assert payload["tasks"][0]["name"] == "Excavate"


def test_empty_schedule_reports_zero_duration():
    assert schedule_to_wire([]) == {"tasks": [], "projectDuration": 0, "criticalPath": []}


def test_metrics_wire_names():
    payload = metrics_to_wire(compute_evm(EVMSnapshot(100000, 50000, 40000, 45000)))

    assert set(payload) == {
        "scheduleVariance",
        "costVariance",
        "schedulePerformanceIndex",
        "costPerformanceIndex",
        "estimateAtCompletion",
        "estimateToComplete",
        "varianceAtCompletion",
        "toCompletePerformanceIndex",
    }


def test_instance_wire_shape():
    instance = workflow_engine.start_workflow("expense", "exp-1", instance_id="wf-9", now=NOW)
    instance = workflow_engine.transition_workflow(
        instance, "submit", "u-1", "Site Eng", "site_engineer", comment="Fuel receipts", now=NOW
    )

    payload = instance_to_wire(instance)

    assert payload["currentStage"] == "manager_approval"
    assert payload["createdAt"] == "2024-03-01T09:30:00+00:00"
    assert payload["history"] == [
        {
            "actorId": "u-1",
            "actorName": "Site Eng",
            "role": "site_engineer",
            "action": "submit",
            "fromStage": "pending",
            "toStage": "manager_approval",
            "timestamp": "2024-03-01T09:30:00+00:00",
            "comment": "Fuel receipts",
        }
    ]


def test_task_meta_dates_become_iso_strings():
    task = Task(id="A", duration=1, meta={"due": dt.date(2024, 3, 1), "crew": ["north", "south"], "shift": 2})

    assert task_to_wire(task)["meta"] == {"due": "2024-03-01", "crew": ["north", "south"], "shift": 2}
