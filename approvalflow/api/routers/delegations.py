"""
Delegation endpoints.

Any identified caller may delegate their own role. Admins may create and
manage delegations for anyone.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvalflow.api.core.config import settings
from approvalflow.api.core.errors import ForbiddenError
from approvalflow.api.core.security import Actor, get_current_actor
from approvalflow.api.db.session import get_db
from approvalflow.api.schemas.common import Page
from approvalflow.api.schemas.delegation import DelegationCreate, DelegationResponse, DelegationUpdate
from approvalflow.api.services.delegation_registry import DelegationRegistry

router = APIRouter(prefix=f"{settings.API_PREFIX}/delegations", tags=["delegations"])


@router.post("", response_model=DelegationResponse, status_code=201)
def create_delegation(
    delegation_data: DelegationCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Delegate approver authority. Non-admins can only delegate themselves."""
    delegator_id = delegation_data.delegator_id or actor.id
    delegator_role = delegation_data.delegator_role or actor.role

    if not actor.is_admin and (delegator_id != actor.id or delegator_role != actor.role):
        raise ForbiddenError("Only an admin can create delegations on behalf of another identity or role")

    return DelegationRegistry(db).create_delegation(
        delegator_id=delegator_id,
        delegator_role=delegator_role,
        delegate_id=delegation_data.delegate_id,
        workflow_type=delegation_data.workflow_type,
        start_date=delegation_data.start_date,
        end_date=delegation_data.end_date,
    )


@router.get("", response_model=Page[DelegationResponse])
def list_delegations(
    delegator_id: Optional[str] = Query(None, alias="delegatorId"),
    delegate_id: Optional[str] = Query(None, alias="delegateId"),
    active_only: bool = Query(False, alias="activeOnly"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    List delegations.

    Admins see all; other callers see only delegations they give or receive.
    """
    registry = DelegationRegistry(db)
    if actor.is_admin or delegator_id == actor.id or delegate_id == actor.id:
        result = registry.list_delegations(
            delegator_id=delegator_id,
            delegate_id=delegate_id,
            active_only=active_only,
            page=page,
            page_size=limit,
        )
    else:
        result = registry.list_involving(actor.id, page=page, page_size=limit)
    return Page[DelegationResponse].from_result(result)


@router.get("/{delegation_id}", response_model=DelegationResponse)
def get_delegation(
    delegation_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Get delegation by ID."""
    delegation = DelegationRegistry(db).get_delegation(delegation_id)
    if not (actor.is_admin or actor.id in (delegation.delegator_id, delegation.delegate_id)):
        raise ForbiddenError("Not allowed to view this delegation")
    return delegation


@router.put("/{delegation_id}", response_model=DelegationResponse)
def update_delegation(
    delegation_id: uuid.UUID,
    delegation_data: DelegationUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Update a delegation (admin or delegator)."""
    registry = DelegationRegistry(db)
    registry.ensure_can_manage(registry.get_delegation(delegation_id), actor)
    fields = {key: getattr(delegation_data, key) for key in delegation_data.model_fields_set}
    return registry.update_delegation(delegation_id, fields)


@router.delete("/{delegation_id}", status_code=204)
def delete_delegation(
    delegation_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Delete a delegation (admin or delegator). History entries are unaffected."""
    registry = DelegationRegistry(db)
    registry.ensure_can_manage(registry.get_delegation(delegation_id), actor)
    registry.delete_delegation(delegation_id)
