"""
Approval request model - one concrete instance of a workflow template.

The request carries its own immutable copy of the template steps
(steps_snapshot). Status, current_step and current_approver_role are only
ever written by the transition engine.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, JSON, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from approvalflow.api.db.base import Base
from approvalflow.api.schemas.workflow import load_steps
from approvalflow.api.models.workflow import WorkflowTemplate  # noqa: F401
from approvalflow.api.models.approval_history import ApprovalHistoryEntry


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


ACTIONABLE_STATUSES = (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)
TERMINAL_STATUSES = (
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
    RequestStatus.RETURNED,
    RequestStatus.CANCELLED,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    workflow_id = Column(Uuid, ForeignKey("approval_workflows.id", ondelete="SET NULL"), nullable=True, index=True)
    requester_id = Column(String(255), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    request_type = Column(String(100), nullable=False, index=True)
    # Copied from the template at creation; scopes delegations for this request
    workflow_type = Column(String(100), nullable=False, default="general", index=True)
    priority = Column(
        SQLEnum(Priority, name="approvalpriority", values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=Priority.MEDIUM,
        index=True,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    request_metadata = Column("metadata", JSON, nullable=True)

    steps_snapshot = Column(JSON, nullable=False, default=list)

    status = Column(
        SQLEnum(RequestStatus, name="approvalstatus", values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )
    current_step = Column(Integer, nullable=True)
    current_approver_role = Column(String(100), nullable=True, index=True)

    # Bumped on every transition; part of the conditional update key
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    workflow = relationship("WorkflowTemplate", back_populates="requests")
    history = relationship(
        "ApprovalHistoryEntry",
        back_populates="request",
        # step_number only grows within a request, so it breaks created_at ties
        order_by=[ApprovalHistoryEntry.created_at, ApprovalHistoryEntry.step_number],
        cascade="all, delete-orphan",
    )

    @property
    def total_steps(self) -> int:
        return len(self.steps_snapshot or [])

    @property
    def is_actionable(self) -> bool:
        return self.status in ACTIONABLE_STATUSES

    def snapshot_steps(self):
        """Step snapshot parsed and validated into StepDefinition objects."""
        return load_steps(self.steps_snapshot)
