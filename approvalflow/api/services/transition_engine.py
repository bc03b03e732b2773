"""
Transition engine - the only writer of request status.

Every transition is a single conditional UPDATE keyed on the request's
(id, status, current_step, version) as read, committed together with its
history entry. If another transition committed first the UPDATE matches
no row, the session is rolled back and InvalidStateError is raised; the
caller re-fetches and retries.
"""
import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, NamedTuple, Optional

from sqlalchemy.orm import Session

from approvalflow.api.core.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidWorkflowError,
    NotFoundError,
    ValidationError,
)
from approvalflow.api.core.security import Actor
from approvalflow.api.models.approval_history import ApprovalHistoryEntry, HistoryAction
from approvalflow.api.models.approval_request import (
    TERMINAL_STATUSES,
    ApprovalRequest,
    Priority,
    RequestStatus,
)
from approvalflow.api.models.delegation import Delegation
from approvalflow.api.models.workflow import WorkflowTemplate
from approvalflow.api.schemas.workflow import dump_steps
from approvalflow.api.services.delegation_registry import DelegationRegistry
from approvalflow.api.services.status_fsm import validate_request_transition
from approvalflow.observability import metrics

logger = logging.getLogger(__name__)


class Authorization(NamedTuple):
    """How an actor is allowed to act on a step."""

    on_behalf_of: Optional[str] = None
    delegation: Optional[Delegation] = None

    @property
    def is_delegated(self) -> bool:
        return self.delegation is not None


def _require_comments(comments: Optional[str], action: str) -> str:
    if not comments or not comments.strip():
        raise ValidationError.for_field("comments", f"Comments are required to {action} a request")
    return comments


class TransitionEngine:
    """Creates requests and moves them through their step sequence."""

    def __init__(self, db: Session, delegations: Optional[DelegationRegistry] = None):
        self.db = db
        self.delegations = delegations or DelegationRegistry(db)

    def create_request(
        self,
        workflow_id: uuid.UUID,
        requester_id: str,
        title: str,
        description: Optional[str] = None,
        request_type: Optional[str] = None,
        priority: Priority = Priority.MEDIUM,
        due_date: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ApprovalRequest:
        """
        Instantiate a template as a new request.

        The template's steps are copied onto the request; later template
        edits never affect it. A step-less auto-approve template yields an
        already approved request with no history.

        Raises:
            ValidationError: blank title
            InvalidWorkflowError: template missing, inactive or step-less without auto_approve
        """
        if not title or not title.strip():
            raise ValidationError.for_field("title", "Title is required")

        template = self.db.query(WorkflowTemplate).filter(WorkflowTemplate.id == workflow_id).first()
        if not template or not template.is_active:
            raise InvalidWorkflowError("Workflow not found or inactive")

        steps = template.step_definitions()
        if not steps and not template.auto_approve:
            raise InvalidWorkflowError("Workflow has no steps and auto-approve is disabled")

        now = datetime.utcnow()
        request = ApprovalRequest(
            workflow_id=template.id,
            requester_id=requester_id,
            title=title.strip(),
            description=description,
            request_type=request_type or template.workflow_type,
            workflow_type=template.workflow_type,
            priority=priority or Priority.MEDIUM,
            due_date=due_date,
            request_metadata=metadata,
            steps_snapshot=dump_steps(steps),
            version=1,
            created_at=now,
            updated_at=now,
        )

        if steps:
            request.status = RequestStatus.PENDING
            request.current_step = 1
            request.current_approver_role = steps[0].approver_role
        else:
            request.status = RequestStatus.APPROVED
            request.current_step = None
            request.current_approver_role = None
            request.completed_at = now

        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        logger.info(
            "Request %s created by %s on workflow %s: status=%s, steps=%d",
            request.id, requester_id, template.id, request.status.value, len(steps),
        )
        return request

    def resolve_authorized(
        self,
        actor: Actor,
        approver_role: str,
        workflow_type: Optional[str],
        today: Optional[date] = None,
    ) -> Authorization:
        """
        Decide whether actor may act on a step owned by approver_role.

        Direct when the actor's role matches exactly; otherwise the actor
        must be the delegate of an active delegation for that role whose
        scope and date window cover this request.

        Raises:
            ForbiddenError: neither direct nor delegated authority
        """
        if actor.role == approver_role:
            return Authorization()

        delegation = self.delegations.find_active_for(
            delegate_id=actor.id,
            delegator_role=approver_role,
            workflow_type=workflow_type,
            on_date=today or datetime.utcnow().date(),
        )
        if delegation is not None:
            return Authorization(on_behalf_of=delegation.delegator_id, delegation=delegation)

        raise ForbiddenError(
            f"Role {actor.role!r} is not authorized for this step (requires {approver_role!r})"
        )

    def approve(self, request_id: uuid.UUID, actor: Actor, comments: Optional[str] = None) -> ApprovalRequest:
        """
        Approve the current step.

        On the last step the request becomes approved; otherwise it moves
        to in_progress on the next step.

        Raises:
            NotFoundError, InvalidStateError, ForbiddenError
        """
        request = self._get_request(request_id)
        self._ensure_actionable(request, "approve")
        authorization = self._authorize(request, actor)

        steps = request.snapshot_steps()
        if request.current_step >= len(steps):
            return self._apply(
                request, actor, authorization, HistoryAction.APPROVED, comments,
                new_status=RequestStatus.APPROVED,
            )

        next_step = steps[request.current_step]
        return self._apply(
            request, actor, authorization, HistoryAction.APPROVED, comments,
            new_status=RequestStatus.IN_PROGRESS,
            next_step=next_step.order,
            next_role=next_step.approver_role,
        )

    def reject(self, request_id: uuid.UUID, actor: Actor, comments: Optional[str]) -> ApprovalRequest:
        """Reject the request outright. Comments are mandatory."""
        comments = _require_comments(comments, "reject")
        request = self._get_request(request_id)
        self._ensure_actionable(request, "reject")
        authorization = self._authorize(request, actor)
        return self._apply(
            request, actor, authorization, HistoryAction.REJECTED, comments,
            new_status=RequestStatus.REJECTED,
        )

    def return_for_revision(self, request_id: uuid.UUID, actor: Actor, comments: Optional[str]) -> ApprovalRequest:
        """Send the request back to its requester. Comments are mandatory."""
        comments = _require_comments(comments, "return")
        request = self._get_request(request_id)
        self._ensure_actionable(request, "return")
        authorization = self._authorize(request, actor)
        return self._apply(
            request, actor, authorization, HistoryAction.RETURNED, comments,
            new_status=RequestStatus.RETURNED,
        )

    def cancel(self, request_id: uuid.UUID, actor: Actor, comments: Optional[str] = None) -> ApprovalRequest:
        """
        Withdraw a request. Only its requester may cancel, and only while
        it is still pending or in progress.
        """
        request = self._get_request(request_id)
        self._ensure_actionable(request, "cancel")
        if request.requester_id != actor.id:
            logger.warning("Cancel of request %s refused for %s: not the requester", request.id, actor.id)
            raise ForbiddenError("Only the requester can cancel this request")
        return self._apply(
            request, actor, Authorization(), HistoryAction.CANCELLED, comments,
            new_status=RequestStatus.CANCELLED,
        )

    def _get_request(self, request_id: uuid.UUID) -> ApprovalRequest:
        request = self.db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first()
        if not request:
            raise NotFoundError("Approval request not found")
        return request

    def _ensure_actionable(self, request: ApprovalRequest, action: str) -> None:
        if not request.is_actionable:
            logger.warning("Refused to %s request %s in status %s", action, request.id, request.status.value)
            raise InvalidStateError(
                f"Request {request.id} is {request.status.value} and can no longer be acted on"
            )

    def _authorize(self, request: ApprovalRequest, actor: Actor) -> Authorization:
        try:
            return self.resolve_authorized(actor, request.current_approver_role, request.workflow_type)
        except ForbiddenError:
            logger.warning(
                "Actor %s (%s) refused on request %s step %s (requires %s)",
                actor.id, actor.role, request.id, request.current_step, request.current_approver_role,
            )
            raise

    def _apply(
        self,
        request: ApprovalRequest,
        actor: Actor,
        authorization: Authorization,
        action: HistoryAction,
        comments: Optional[str],
        new_status: RequestStatus,
        next_step: Optional[int] = None,
        next_role: Optional[str] = None,
    ) -> ApprovalRequest:
        """Conditionally write the transition and its history entry in one commit."""
        validate_request_transition(request.status, new_status, str(request.id))

        now = datetime.utcnow()
        step_number = request.current_step
        values = {
            ApprovalRequest.status: new_status,
            ApprovalRequest.current_step: next_step,
            ApprovalRequest.current_approver_role: next_role,
            ApprovalRequest.version: request.version + 1,
            ApprovalRequest.updated_at: now,
        }
        if new_status in TERMINAL_STATUSES:
            values[ApprovalRequest.completed_at] = now

        matched = self.db.query(ApprovalRequest).filter(
            ApprovalRequest.id == request.id,
            ApprovalRequest.status == request.status,
            ApprovalRequest.current_step == step_number,
            ApprovalRequest.version == request.version,
        ).update(values, synchronize_session=False)

        if matched != 1:
            self.db.rollback()
            metrics.record_race_conflict()
            logger.warning(
                "Concurrent modification of request %s: %s by %s lost the race",
                request.id, action.value, actor.id,
            )
            raise InvalidStateError(
                f"Request {request.id} was modified concurrently; re-fetch and retry"
            )

        self.db.add(ApprovalHistoryEntry(
            request_id=request.id,
            actor_id=actor.id,
            actor_role=actor.role,
            on_behalf_of=authorization.on_behalf_of,
            action=action.value,
            comments=comments,
            step_number=step_number,
            created_at=now,
        ))
        self.db.commit()

        self.db.refresh(request)

        metrics.record_transition(action.value)
        if new_status in TERMINAL_STATUSES:
            metrics.record_decision_latency(request.created_at, now)

        logger.info(
            "Request %s: %s at step %s by %s%s -> %s",
            request.id, action.value, step_number, actor.id,
            f" on behalf of {authorization.on_behalf_of}" if authorization.is_delegated else "",
            new_status.value,
        )
        return request
