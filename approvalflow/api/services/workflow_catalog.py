"""
Workflow catalog - stores and validates workflow templates.

A template's steps must be ordered 1..N with no gaps or repeats. Templates
with no steps are only usable when auto_approve is set.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from approvalflow.api.core.errors import ConflictError, NotFoundError, ValidationError
from approvalflow.api.models.approval_request import ACTIONABLE_STATUSES, ApprovalRequest
from approvalflow.api.models.workflow import WorkflowTemplate
from approvalflow.api.schemas.workflow import StepDefinition, dump_steps
from approvalflow.api.services.pagination import PageResult, paginate

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name", "description", "workflow_type", "steps", "is_active", "auto_approve", "max_duration",
)
NULLABLE_FIELDS = ("description", "max_duration")


def _step_value(step: Any, *names: str) -> Any:
    """Read a step field from a StepIn, a dict (camel or snake) or anything attribute-like."""
    for name in names:
        if isinstance(step, dict):
            if name in step:
                return step[name]
        elif getattr(step, name, None) is not None:
            return getattr(step, name)
    return None


def validate_steps(raw_steps: Optional[List[Any]], auto_approve: bool) -> List[StepDefinition]:
    """
    Validate submitted steps and return them sorted by order.

    Raises:
        ValidationError: with one field error per problem found
    """
    errors: List[Dict[str, str]] = []
    steps: List[StepDefinition] = []

    for i, raw in enumerate(raw_steps or []):
        step_name = _step_value(raw, "step_name", "stepName", "name")
        approver_role = _step_value(raw, "approver_role", "approverRole")
        order = _step_value(raw, "order")

        if not isinstance(step_name, str) or not step_name.strip():
            errors.append({"field": f"steps[{i}].stepName", "message": "Step name is required"})
        if not isinstance(approver_role, str) or not approver_role.strip():
            errors.append({"field": f"steps[{i}].approverRole", "message": "Approver role is required"})
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            errors.append({"field": f"steps[{i}].order", "message": "Order must be a positive integer"})

        if errors:
            continue

        try:
            steps.append(StepDefinition(step_name=step_name, approver_role=approver_role, order=order))
        except PydanticValidationError as exc:
            for err in exc.errors():
                location = ".".join(str(part) for part in err["loc"])
                errors.append({"field": f"steps[{i}].{location}", "message": err["msg"]})

    if errors:
        raise ValidationError("Invalid workflow steps", errors=errors)

    steps.sort(key=lambda s: s.order)
    orders = [s.order for s in steps]
    if orders != list(range(1, len(steps) + 1)):
        raise ValidationError.for_field(
            "steps",
            f"Step orders must be exactly 1..{len(steps)} with no gaps or repeats, got {orders}",
        )

    if not steps and not auto_approve:
        raise ValidationError.for_field("steps", "A workflow without steps must have autoApprove enabled")

    return steps


def _validate_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        raise ValidationError.for_field("name", "Name is required")
    return name.strip()


class WorkflowCatalog:
    """CRUD over workflow templates."""

    def __init__(self, db: Session):
        self.db = db

    def create_template(
        self,
        name: str,
        steps: Optional[List[Any]] = None,
        description: Optional[str] = None,
        workflow_type: str = "general",
        is_active: bool = True,
        auto_approve: bool = False,
        max_duration: Optional[int] = None,
        created_by: Optional[str] = None,
    ) -> WorkflowTemplate:
        """
        Create a workflow template.

        Args:
            name: Display name
            steps: Step definitions (any order, validated to 1..N)
            auto_approve: Requests on a step-less template approve immediately
            max_duration: Hours; stored for reporting only
            created_by: Identity of the admin creating it

        Returns:
            Persisted WorkflowTemplate

        Raises:
            ValidationError: bad name or steps
        """
        name = _validate_name(name)
        validated = validate_steps(steps, auto_approve)

        template = WorkflowTemplate(
            name=name,
            description=description,
            workflow_type=(workflow_type or "general").strip() or "general",
            steps=dump_steps(validated),
            is_active=is_active,
            auto_approve=auto_approve,
            max_duration_hours=max_duration,
            created_by=created_by,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)

        logger.info(
            "Workflow template %s created: name=%r, type=%s, steps=%d, auto_approve=%s",
            template.id, name, template.workflow_type, len(validated), auto_approve,
        )
        return template

    def get_template(self, workflow_id: uuid.UUID) -> WorkflowTemplate:
        template = self.db.query(WorkflowTemplate).filter(WorkflowTemplate.id == workflow_id).first()
        if not template:
            raise NotFoundError("Workflow not found")
        return template

    def list_templates(
        self,
        active_only: bool = False,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PageResult:
        query = self.db.query(WorkflowTemplate)
        if active_only:
            query = query.filter(WorkflowTemplate.is_active.is_(True))
        query = query.order_by(WorkflowTemplate.created_at.desc(), WorkflowTemplate.id)
        return paginate(query, page, page_size)

    def has_open_requests(self, workflow_id: uuid.UUID) -> bool:
        """True if any pending or in_progress request references the template."""
        return self.db.query(ApprovalRequest.id).filter(
            ApprovalRequest.workflow_id == workflow_id,
            ApprovalRequest.status.in_(ACTIONABLE_STATUSES),
        ).first() is not None

    def update_template(self, workflow_id: uuid.UUID, fields: Dict[str, Any]) -> WorkflowTemplate:
        """
        Update template fields.

        Omitted and null fields are left alone, except description and
        max_duration which may be cleared. Replacing steps is blocked while
        requests on the template are still open, since those requests were
        snapshotted from the current step list.

        Raises:
            NotFoundError: unknown template
            ValidationError: nothing to update, bad name or steps
            ConflictError: step change with open requests
        """
        fields = {
            key: value
            for key, value in fields.items()
            if key in UPDATABLE_FIELDS and (value is not None or key in NULLABLE_FIELDS)
        }
        if not fields:
            raise ValidationError("No fields to update")

        template = self.get_template(workflow_id)

        if "name" in fields:
            fields["name"] = _validate_name(fields["name"])
        if "workflow_type" in fields:
            fields["workflow_type"] = fields["workflow_type"].strip() or "general"

        auto_approve = fields.get("auto_approve", template.auto_approve)
        if "steps" in fields:
            validated = validate_steps(fields["steps"], auto_approve)
            new_steps = dump_steps(validated)
            if new_steps != dump_steps(template.step_definitions()):
                if self.has_open_requests(template.id):
                    raise ConflictError(
                        "Cannot change steps while requests on this workflow are pending or in progress"
                    )
            fields["steps"] = new_steps
        elif not template.steps and not auto_approve:
            raise ValidationError.for_field("autoApprove", "A workflow without steps must have autoApprove enabled")

        for key, value in fields.items():
            if key == "max_duration":
                template.max_duration_hours = value
            else:
                setattr(template, key, value)
        template.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(template)

        logger.info("Workflow template %s updated: %s", template.id, sorted(fields))
        return template

    def delete_template(self, workflow_id: uuid.UUID) -> None:
        """
        Delete a template.

        Requests already in a terminal state keep their snapshot and
        history; their workflow_id is nulled.

        Raises:
            NotFoundError: unknown template
            ConflictError: open requests reference the template
        """
        template = self.get_template(workflow_id)

        if self.has_open_requests(template.id):
            raise ConflictError("Cannot delete workflow with pending or in-progress requests")

        self.db.delete(template)
        self.db.commit()

        logger.info("Workflow template %s deleted", workflow_id)
