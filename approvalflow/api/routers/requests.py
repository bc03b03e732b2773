"""
Approval request endpoints.

Scoped list routes (/pending, /assigned, /created, /stats) are declared
before /{request_id} so they are not captured as ids.
"""
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvalflow.api.core.config import settings
from approvalflow.api.core.security import Actor, get_current_actor
from approvalflow.api.db.session import get_db
from approvalflow.api.models.approval_request import ApprovalRequest, Priority, RequestStatus
from approvalflow.api.schemas.approval_request import (
    ActionBody,
    RequestCreate,
    RequestDetail,
    RequestResponse,
    RequestUpdate,
    StatisticsResponse,
    TransitionResult,
)
from approvalflow.api.schemas.common import Page
from approvalflow.api.services.request_store import RequestStore
from approvalflow.api.services.transition_engine import TransitionEngine

router = APIRouter(prefix=f"{settings.API_PREFIX}/requests", tags=["requests"])


def _transition_result(request: ApprovalRequest) -> TransitionResult:
    return TransitionResult.model_validate(request)


@router.post("", response_model=RequestResponse, status_code=201)
def create_request(
    request_data: RequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Create an approval request from a workflow template."""
    return TransitionEngine(db).create_request(
        workflow_id=request_data.workflow_id,
        requester_id=actor.id,
        title=request_data.title,
        description=request_data.description,
        request_type=request_data.request_type,
        priority=request_data.priority,
        due_date=request_data.due_date,
        metadata=request_data.request_metadata,
    )


@router.get("", response_model=Page[RequestResponse])
def list_requests(
    status: Optional[RequestStatus] = None,
    request_type: Optional[str] = Query(None, alias="requestType"),
    priority: Optional[Priority] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    workflow_id: Optional[uuid.UUID] = Query(None, alias="workflowId"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """List requests with optional filters, newest first."""
    result = RequestStore(db).list_requests(
        status=status,
        request_type=request_type,
        priority=priority,
        start_date=start_date,
        end_date=end_date,
        workflow_id=workflow_id,
        page=page,
        page_size=limit,
    )
    return Page[RequestResponse].from_result(result)


@router.get("/pending", response_model=Page[RequestResponse])
def list_pending_requests(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Requests currently waiting on the caller's role."""
    result = RequestStore(db).list_pending(actor.role, page=page, page_size=limit)
    return Page[RequestResponse].from_result(result)


@router.get("/assigned", response_model=Page[RequestResponse])
def list_assigned_requests(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Requests the caller can act on, including through delegations."""
    result = RequestStore(db).list_assigned(actor, page=page, page_size=limit)
    return Page[RequestResponse].from_result(result)


@router.get("/created", response_model=Page[RequestResponse])
def list_created_requests(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Requests submitted by the caller, any status."""
    result = RequestStore(db).list_created_by(actor.id, page=page, page_size=limit)
    return Page[RequestResponse].from_result(result)


@router.get("/stats", response_model=StatisticsResponse)
def get_request_statistics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Counts and average processing time over an optional creation window."""
    return RequestStore(db).get_statistics(start_date=start_date, end_date=end_date)


@router.get("/{request_id}", response_model=RequestDetail)
def get_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Get a request with its full history."""
    return RequestStore(db).get_request(request_id)


@router.put("/{request_id}", response_model=RequestResponse)
def update_request(
    request_id: uuid.UUID,
    request_data: RequestUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Edit a pending request nobody has acted on yet (requester only)."""
    fields = {key: getattr(request_data, key) for key in request_data.model_fields_set}
    return RequestStore(db).update_request(request_id, actor, fields)


@router.post("/{request_id}/approve", response_model=TransitionResult)
def approve_request(
    request_id: uuid.UUID,
    body: Optional[ActionBody] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Approve the current step."""
    comments = body.comments if body else None
    return _transition_result(TransitionEngine(db).approve(request_id, actor, comments))


@router.post("/{request_id}/reject", response_model=TransitionResult)
def reject_request(
    request_id: uuid.UUID,
    body: Optional[ActionBody] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Reject the request. Comments are required."""
    comments = body.comments if body else None
    return _transition_result(TransitionEngine(db).reject(request_id, actor, comments))


@router.post("/{request_id}/return", response_model=TransitionResult)
def return_request(
    request_id: uuid.UUID,
    body: Optional[ActionBody] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Return the request to its requester for revision. Comments are required."""
    comments = body.comments if body else None
    return _transition_result(TransitionEngine(db).return_for_revision(request_id, actor, comments))


@router.post("/{request_id}/cancel", response_model=TransitionResult)
def cancel_request(
    request_id: uuid.UUID,
    body: Optional[ActionBody] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Cancel the request (requester only)."""
    comments = body.comments if body else None
    return _transition_result(TransitionEngine(db).cancel(request_id, actor, comments))
