"""
Approval history model - append-only audit trail of request transitions.

Rows are inserted by the transition engine only and never updated or
deleted through the API.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from approvalflow.api.db.base import Base


class HistoryAction(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class ApprovalHistoryEntry(Base):
    __tablename__ = "approval_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id = Column(Uuid, ForeignKey("approval_requests.id", ondelete="CASCADE"), nullable=False, index=True)

    actor_id = Column(String(255), nullable=False, index=True)
    actor_role = Column(String(100), nullable=False)
    on_behalf_of = Column(String(255), nullable=True)  # delegator id when acting as a delegate

    action = Column(String(20), nullable=False)
    comments = Column(Text, nullable=True)
    step_number = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    request = relationship("ApprovalRequest", back_populates="history")
