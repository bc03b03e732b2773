"""
Delegation model - time-bounded grant of one identity's approver authority
to another identity.
"""
from sqlalchemy import Column, String, DateTime, Date, Boolean, Uuid
from datetime import datetime
import uuid
from approvalflow.api.db.base import Base


class Delegation(Base):
    __tablename__ = "approval_delegations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    delegator_id = Column(String(255), nullable=False, index=True)
    delegator_role = Column(String(100), nullable=False)
    delegate_id = Column(String(255), nullable=False, index=True)

    workflow_type = Column(String(100), nullable=True)  # NULL = all workflow types
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # NULL = open-ended

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def covers(self, workflow_type, on_date) -> bool:
        """True if this delegation applies to workflow_type on on_date."""
        if not self.is_active:
            return False
        if self.workflow_type is not None and self.workflow_type != workflow_type:
            return False
        if on_date < self.start_date:
            return False
        return self.end_date is None or on_date <= self.end_date
