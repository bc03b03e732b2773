"""
Approval request schemas (Pydantic).
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field

from approvalflow.api.models.approval_request import Priority, RequestStatus
from approvalflow.api.schemas.common import CamelModel
from approvalflow.api.schemas.workflow import StepDefinition

# The ORM attribute is request_metadata ("metadata" is taken on declarative models)
_metadata_field = dict(
    validation_alias=AliasChoices("request_metadata", "metadata"),
    serialization_alias="metadata",
)


class RequestCreate(CamelModel):
    workflow_id: uuid.UUID
    title: str
    description: Optional[str] = None
    request_type: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    request_metadata: Optional[Dict[str, Any]] = Field(None, **_metadata_field)


class RequestUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    request_metadata: Optional[Dict[str, Any]] = Field(None, **_metadata_field)


class ActionBody(CamelModel):
    """Body for approve / reject / return / cancel."""

    comments: Optional[str] = None


class TransitionResult(CamelModel):
    id: uuid.UUID
    status: RequestStatus
    current_step: Optional[int]
    current_approver_role: Optional[str]


class HistoryEntryResponse(CamelModel):
    id: uuid.UUID
    request_id: uuid.UUID
    actor_id: str
    actor_role: str
    on_behalf_of: Optional[str]
    action: str
    comments: Optional[str]
    step_number: int
    created_at: datetime


class RequestResponse(CamelModel):
    id: uuid.UUID
    workflow_id: Optional[uuid.UUID]
    requester_id: str
    title: str
    description: Optional[str]
    request_type: str
    workflow_type: str
    priority: Priority
    due_date: Optional[datetime]
    request_metadata: Optional[Dict[str, Any]] = Field(None, **_metadata_field)
    status: RequestStatus
    current_step: Optional[int]
    current_approver_role: Optional[str]
    total_steps: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]


class RequestDetail(RequestResponse):
    steps_snapshot: List[StepDefinition]
    history: List[HistoryEntryResponse]


class StatisticsPeriod(CamelModel):
    start_date: Optional[date]
    end_date: Optional[date]


class StatisticsResponse(CamelModel):
    total: int
    by_status: Dict[str, int]
    by_request_type: Dict[str, int]
    by_priority: Dict[str, int]
    average_processing_hours: float
    period: StatisticsPeriod
