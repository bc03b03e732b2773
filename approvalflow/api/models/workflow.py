"""
Workflow template model - a reusable, ordered approval step sequence.
"""
from sqlalchemy import Column, String, DateTime, Text, Boolean, Integer, JSON, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from approvalflow.api.db.base import Base
from approvalflow.api.schemas.workflow import load_steps


class WorkflowTemplate(Base):
    __tablename__ = "approval_workflows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    workflow_type = Column(String(100), nullable=False, default="general", index=True)

    # Ordered [{stepName, approverRole, order}], order 1..N
    steps = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    auto_approve = Column(Boolean, nullable=False, default=False)
    max_duration_hours = Column(Integer, nullable=True)  # stored only, never enforced

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Requests keep their own step snapshot, so they outlive the template
    requests = relationship("ApprovalRequest", back_populates="workflow")

    def step_definitions(self):
        """Steps parsed and validated into StepDefinition objects."""
        return load_steps(self.steps)
