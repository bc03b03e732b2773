"""
Delegation schemas (Pydantic).
"""
import uuid
from datetime import date, datetime
from typing import Optional

from approvalflow.api.schemas.common import CamelModel
from approvalflow.api.schemas.workflow import RoleName


class DelegationCreate(CamelModel):
    # Default to the caller when omitted
    delegator_id: Optional[str] = None
    delegator_role: Optional[RoleName] = None
    delegate_id: str
    workflow_type: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None


class DelegationUpdate(CamelModel):
    delegate_id: Optional[str] = None
    workflow_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class DelegationResponse(CamelModel):
    id: uuid.UUID
    delegator_id: str
    delegator_role: str
    delegate_id: str
    workflow_type: Optional[str]
    start_date: date
    end_date: Optional[date]
    is_active: bool
    created_at: datetime
    updated_at: datetime
