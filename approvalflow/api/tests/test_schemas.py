import pytest
from pydantic import ValidationError

from approvalflow.api.models.approval_request import ApprovalRequest
from approvalflow.api.models.workflow import WorkflowTemplate
from approvalflow.api.schemas.approval_request import RequestCreate
from approvalflow.api.schemas.common import Pagination
from approvalflow.api.schemas.workflow import StepDefinition, WorkflowCreate, load_steps


def test_step_definition_accepts_camel_and_snake_case():
    camel = StepDefinition.model_validate({"stepName": "Review", "approverRole": "Manager", "order": 1})
    snake = StepDefinition(step_name="Review", approver_role="Manager", order=1)
    assert camel == snake
    assert camel.model_dump(by_alias=True) == {"stepName": "Review", "approverRole": "Manager", "order": 1}


@pytest.mark.parametrize("role", ["", " Manager", "Manager ", "x" * 101])
def test_step_definition_rejects_bad_roles(role):
    with pytest.raises(ValidationError):
        StepDefinition(step_name="Review", approver_role=role, order=1)


def test_load_steps_orders_by_order():
    steps = load_steps([
        {"stepName": "Second", "approverRole": "Director", "order": 2},
        {"stepName": "First", "approverRole": "Manager", "order": 1},
    ])
    assert [s.step_name for s in steps] == ["First", "Second"]


def test_workflow_create_accepts_name_alias_for_steps():
    payload = WorkflowCreate.model_validate({
        "name": "Purchase",
        "steps": [{"name": "Review", "approverRole": "Manager", "order": 1}],
        "maxDuration": 24,
    })
    assert payload.steps[0].step_name == "Review"
    assert payload.max_duration == 24
    assert payload.workflow_type == "general"


def test_request_create_metadata_alias():
    payload = RequestCreate.model_validate({
        "workflowId": "6f1f7a0e-8d5e-4a83-9c1f-8a4a4b7d2f11",
        "title": "Laptop",
        "metadata": {"cost": 1200},
    })
    assert payload.request_metadata == {"cost": 1200}
    assert payload.priority.value == "medium"


def test_pagination_pages():
    assert Pagination.build(page=1, limit=20, total=41).pages == 3
    assert Pagination.build(page=1, limit=20, total=0).pages == 0


def test_tables_have_expected_columns():
    request_columns = [c.name for c in ApprovalRequest.__table__.columns]
    assert "metadata" in request_columns
    assert "version" in request_columns
    assert "completed_at" in request_columns

    workflow_columns = [c.name for c in WorkflowTemplate.__table__.columns]
    assert "max_duration_hours" in workflow_columns
