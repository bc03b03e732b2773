"""
Delegation registry.

Records that one identity temporarily hands its approver authority to
another. The transition engine reads delegations when deciding who may act
on a step; nothing here drives request transitions, and changing or
deleting a delegation never touches existing history entries.
"""
import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from approvalflow.api.core.errors import ForbiddenError, NotFoundError, ValidationError
from approvalflow.api.core.security import Actor, validate_role_name
from approvalflow.api.models.delegation import Delegation
from approvalflow.api.services.pagination import PageResult, paginate

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("delegate_id", "workflow_type", "start_date", "end_date", "is_active")
NULLABLE_FIELDS = ("workflow_type", "end_date")


def _validate_window(start_date: date, end_date: Optional[date]) -> None:
    if end_date is not None and end_date < start_date:
        raise ValidationError.for_field("endDate", "End date must not precede start date")


class DelegationRegistry:
    """CRUD and lookup over approval delegations."""

    def __init__(self, db: Session):
        self.db = db

    def create_delegation(
        self,
        delegator_id: str,
        delegator_role: str,
        delegate_id: str,
        start_date: date,
        end_date: Optional[date] = None,
        workflow_type: Optional[str] = None,
    ) -> Delegation:
        """
        Create a delegation.

        Raises:
            ValidationError: blank ids, self-delegation, bad role or window
        """
        if not delegator_id or not delegator_id.strip():
            raise ValidationError.for_field("delegatorId", "Delegator is required")
        if not delegate_id or not delegate_id.strip():
            raise ValidationError.for_field("delegateId", "Delegate is required")
        if delegator_id == delegate_id:
            raise ValidationError.for_field("delegateId", "An identity cannot delegate to itself")
        try:
            validate_role_name(delegator_role)
        except ValueError as exc:
            raise ValidationError.for_field("delegatorRole", str(exc))
        _validate_window(start_date, end_date)

        delegation = Delegation(
            delegator_id=delegator_id,
            delegator_role=delegator_role,
            delegate_id=delegate_id,
            workflow_type=workflow_type or None,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
        )
        self.db.add(delegation)
        self.db.commit()
        self.db.refresh(delegation)

        logger.info(
            "Delegation %s created: %s (%s) -> %s, type=%s, %s..%s",
            delegation.id, delegator_id, delegator_role, delegate_id,
            workflow_type or "*", start_date, end_date or "open",
        )
        return delegation

    def get_delegation(self, delegation_id: uuid.UUID) -> Delegation:
        delegation = self.db.query(Delegation).filter(Delegation.id == delegation_id).first()
        if not delegation:
            raise NotFoundError("Delegation not found")
        return delegation

    def list_delegations(
        self,
        delegator_id: Optional[str] = None,
        delegate_id: Optional[str] = None,
        active_only: bool = False,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PageResult:
        query = self.db.query(Delegation)

        if delegator_id:
            query = query.filter(Delegation.delegator_id == delegator_id)
        if delegate_id:
            query = query.filter(Delegation.delegate_id == delegate_id)
        if active_only:
            query = query.filter(Delegation.is_active.is_(True))

        query = query.order_by(Delegation.created_at.desc(), Delegation.id)
        return paginate(query, page, page_size)

    def list_involving(self, identity_id: str, page: int = 1, page_size: Optional[int] = None) -> PageResult:
        """Delegations where identity_id is either delegator or delegate."""
        query = self.db.query(Delegation).filter(
            or_(Delegation.delegator_id == identity_id, Delegation.delegate_id == identity_id)
        ).order_by(Delegation.created_at.desc(), Delegation.id)
        return paginate(query, page, page_size)

    def update_delegation(self, delegation_id: uuid.UUID, fields: Dict[str, Any]) -> Delegation:
        """
        Update delegation fields; the date window is re-validated.

        Raises:
            NotFoundError: unknown id
            ValidationError: nothing to update, self-delegation or bad window
        """
        fields = {
            key: value
            for key, value in fields.items()
            if key in UPDATABLE_FIELDS and (value is not None or key in NULLABLE_FIELDS)
        }
        if not fields:
            raise ValidationError("No fields to update")

        delegation = self.get_delegation(delegation_id)

        if "delegate_id" in fields:
            if not fields["delegate_id"].strip():
                raise ValidationError.for_field("delegateId", "Delegate is required")
            if fields["delegate_id"] == delegation.delegator_id:
                raise ValidationError.for_field("delegateId", "An identity cannot delegate to itself")

        _validate_window(
            fields.get("start_date", delegation.start_date),
            fields["end_date"] if "end_date" in fields else delegation.end_date,
        )

        for key, value in fields.items():
            if key == "workflow_type":
                value = value or None
            setattr(delegation, key, value)

        self.db.commit()
        self.db.refresh(delegation)

        logger.info("Delegation %s updated: %s", delegation.id, sorted(fields))
        return delegation

    def delete_delegation(self, delegation_id: uuid.UUID) -> None:
        delegation = self.get_delegation(delegation_id)
        self.db.delete(delegation)
        self.db.commit()
        logger.info("Delegation %s deleted", delegation_id)

    @staticmethod
    def ensure_can_manage(delegation: Delegation, actor: Actor) -> None:
        """Only an admin or the delegator may change a delegation."""
        if actor.is_admin or delegation.delegator_id == actor.id:
            return
        raise ForbiddenError("Only the delegator or an admin can manage this delegation")

    def find_active_for(
        self,
        delegate_id: str,
        delegator_role: str,
        workflow_type: Optional[str],
        on_date: date,
    ) -> Optional[Delegation]:
        """
        Find a delegation letting delegate_id act for delegator_role.

        The delegation must be active, scoped to workflow_type (or unscoped)
        and on_date must fall inside [start_date, end_date].
        """
        query = self.db.query(Delegation).filter(
            Delegation.delegate_id == delegate_id,
            Delegation.delegator_role == delegator_role,
            Delegation.is_active.is_(True),
            Delegation.start_date <= on_date,
            or_(Delegation.end_date.is_(None), Delegation.end_date >= on_date),
        )
        if workflow_type is None:
            query = query.filter(Delegation.workflow_type.is_(None))
        else:
            query = query.filter(
                or_(Delegation.workflow_type.is_(None), Delegation.workflow_type == workflow_type)
            )
        return query.order_by(Delegation.created_at).first()

    def active_for_delegate(self, delegate_id: str, on_date: date) -> List[Delegation]:
        """All delegations delegate_id can currently act under."""
        return [
            delegation
            for delegation in self.db.query(Delegation).filter(
                Delegation.delegate_id == delegate_id,
                Delegation.is_active.is_(True),
            ).order_by(Delegation.created_at).all()
            if delegation.covers(delegation.workflow_type, on_date)
        ]
