"""
Workflow template schemas (Pydantic).
"""
import uuid
from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, AfterValidator, Field, TypeAdapter

from approvalflow.api.core.security import validate_role_name
from approvalflow.api.schemas.common import CamelModel

# Role names are authorization keys: validated, then compared exactly.
RoleName = Annotated[str, AfterValidator(validate_role_name)]


class StepDefinition(CamelModel):
    """One validated approval step as stored on templates and snapshots."""

    step_name: str
    approver_role: RoleName
    order: int = Field(..., ge=1)


class StepIn(CamelModel):
    """
    Step as submitted by a client.

    All parts optional here; the catalog reports missing or blank parts
    as field-level 400 errors rather than a 422.
    """

    step_name: Optional[str] = Field(None, validation_alias=AliasChoices("stepName", "step_name", "name"))
    approver_role: Optional[str] = None
    order: Optional[int] = None


_steps_adapter = TypeAdapter(List[StepDefinition])


def load_steps(raw: Optional[List[Any]]) -> List[StepDefinition]:
    """Validate stored step JSON and return it ordered by step order."""
    steps = _steps_adapter.validate_python(raw or [])
    return sorted(steps, key=lambda s: s.order)


def dump_steps(steps: List[StepDefinition]) -> List[dict]:
    return [step.model_dump(by_alias=True) for step in steps]


class WorkflowCreate(CamelModel):
    name: str
    description: Optional[str] = None
    workflow_type: str = "general"
    steps: List[StepIn] = []
    is_active: bool = True
    auto_approve: bool = False
    max_duration: Optional[int] = Field(None, ge=1)  # hours


class WorkflowUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    workflow_type: Optional[str] = None
    steps: Optional[List[StepIn]] = None
    is_active: Optional[bool] = None
    auto_approve: Optional[bool] = None
    max_duration: Optional[int] = Field(None, ge=1)


class WorkflowResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    workflow_type: str
    steps: List[StepDefinition]
    is_active: bool
    auto_approve: bool
    max_duration: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("max_duration_hours", "maxDuration"),
        serialization_alias="maxDuration",
    )
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
