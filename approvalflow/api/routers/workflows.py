"""
Workflow template endpoints.

Reads are open to any identified caller; writes require the admin role.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvalflow.api.core.config import settings
from approvalflow.api.core.security import Actor, get_current_actor, require_admin
from approvalflow.api.db.session import get_db
from approvalflow.api.schemas.common import Page
from approvalflow.api.schemas.workflow import WorkflowCreate, WorkflowResponse, WorkflowUpdate
from approvalflow.api.services.workflow_catalog import WorkflowCatalog

router = APIRouter(prefix=f"{settings.API_PREFIX}/workflows", tags=["workflows"])


@router.post("", response_model=WorkflowResponse, status_code=201)
def create_workflow(
    workflow_data: WorkflowCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a workflow template."""
    return WorkflowCatalog(db).create_template(
        name=workflow_data.name,
        description=workflow_data.description,
        workflow_type=workflow_data.workflow_type,
        steps=workflow_data.steps,
        is_active=workflow_data.is_active,
        auto_approve=workflow_data.auto_approve,
        max_duration=workflow_data.max_duration,
        created_by=actor.id,
    )


@router.get("", response_model=Page[WorkflowResponse])
def list_workflows(
    active_only: bool = Query(False, alias="activeOnly"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """List workflow templates, newest first."""
    result = WorkflowCatalog(db).list_templates(active_only=active_only, page=page, page_size=limit)
    return Page[WorkflowResponse].from_result(result)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
def get_workflow(
    workflow_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Get workflow template by ID."""
    return WorkflowCatalog(db).get_template(workflow_id)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
def update_workflow(
    workflow_id: uuid.UUID,
    workflow_data: WorkflowUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update a workflow template. Only fields present in the body are changed."""
    fields = {
        key: getattr(workflow_data, key)
        for key in workflow_data.model_fields_set
    }
    return WorkflowCatalog(db).update_template(workflow_id, fields)


@router.delete("/{workflow_id}", status_code=204)
def delete_workflow(
    workflow_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a workflow template with no open requests."""
    WorkflowCatalog(db).delete_template(workflow_id)
