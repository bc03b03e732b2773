"""
Request store - reads over approval requests and their history, the one
requester edit allowed before any approver has acted, and statistics.

Status fields are never written here; see transition_engine.
"""
import logging
import uuid
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from approvalflow.api.core.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from approvalflow.api.core.security import Actor
from approvalflow.api.models.approval_history import ApprovalHistoryEntry
from approvalflow.api.models.approval_request import (
    ACTIONABLE_STATUSES,
    TERMINAL_STATUSES,
    ApprovalRequest,
    Priority,
    RequestStatus,
)
from approvalflow.api.services.delegation_registry import DelegationRegistry
from approvalflow.api.services.pagination import PageResult, paginate

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "priority", "due_date", "request_metadata")
NULLABLE_FIELDS = ("description", "due_date", "request_metadata")


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min)


def _filter_created_between(query: Query, start_date: Optional[date], end_date: Optional[date]) -> Query:
    """Both bounds are whole days, inclusive."""
    if start_date is not None:
        query = query.filter(ApprovalRequest.created_at >= _day_start(start_date))
    if end_date is not None:
        query = query.filter(ApprovalRequest.created_at < _day_start(end_date + timedelta(days=1)))
    return query


class RequestStore:
    """Queries and requester edits over approval requests."""

    def __init__(self, db: Session):
        self.db = db

    def get_request(self, request_id: uuid.UUID) -> ApprovalRequest:
        """Request with its history (ordered oldest first)."""
        request = self.db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first()
        if not request:
            raise NotFoundError("Approval request not found")
        return request

    def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        request_type: Optional[str] = None,
        priority: Optional[Priority] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        workflow_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PageResult:
        """All set filters are ANDed; newest first."""
        query = self.db.query(ApprovalRequest)

        if status is not None:
            query = query.filter(ApprovalRequest.status == status)
        if request_type:
            query = query.filter(ApprovalRequest.request_type == request_type)
        if priority is not None:
            query = query.filter(ApprovalRequest.priority == priority)
        if workflow_id is not None:
            query = query.filter(ApprovalRequest.workflow_id == workflow_id)
        query = _filter_created_between(query, start_date, end_date)

        return paginate(self._newest_first(query), page, page_size)

    def list_pending(self, role: str, page: int = 1, page_size: Optional[int] = None) -> PageResult:
        """Requests currently waiting on role."""
        query = self.db.query(ApprovalRequest).filter(
            ApprovalRequest.current_approver_role == role,
            ApprovalRequest.status.in_(ACTIONABLE_STATUSES),
        )
        return paginate(self._newest_first(query), page, page_size)

    def list_assigned(
        self,
        actor: Actor,
        page: int = 1,
        page_size: Optional[int] = None,
        today: Optional[date] = None,
    ) -> PageResult:
        """
        Requests the actor can act on right now: those waiting on the
        actor's own role plus those waiting on a role delegated to the actor.
        """
        today = today or datetime.utcnow().date()
        clauses = [ApprovalRequest.current_approver_role == actor.role]
        for delegation in DelegationRegistry(self.db).active_for_delegate(actor.id, today):
            clause = ApprovalRequest.current_approver_role == delegation.delegator_role
            if delegation.workflow_type is not None:
                clause = and_(clause, ApprovalRequest.workflow_type == delegation.workflow_type)
            clauses.append(clause)

        query = self.db.query(ApprovalRequest).filter(
            ApprovalRequest.status.in_(ACTIONABLE_STATUSES),
            or_(*clauses),
        )
        return paginate(self._newest_first(query), page, page_size)

    def list_created_by(self, requester_id: str, page: int = 1, page_size: Optional[int] = None) -> PageResult:
        query = self.db.query(ApprovalRequest).filter(ApprovalRequest.requester_id == requester_id)
        return paginate(self._newest_first(query), page, page_size)

    def update_request(self, request_id: uuid.UUID, actor: Actor, fields: Dict[str, Any]) -> ApprovalRequest:
        """
        Requester edit of an untouched request.

        Only title, description, priority, due_date and metadata can change,
        and only while the request is pending with no history. The step
        snapshot is never editable.

        Raises:
            ValidationError: nothing to update or blank title
            NotFoundError: unknown request
            ForbiddenError: actor is not the requester
            InvalidStateError: request already acted on
        """
        if "metadata" in fields and "request_metadata" not in fields:
            fields = dict(fields, request_metadata=fields["metadata"])
        fields = {
            key: value
            for key, value in fields.items()
            if key in EDITABLE_FIELDS and (value is not None or key in NULLABLE_FIELDS)
        }
        if not fields:
            raise ValidationError("No fields to update")
        if "title" in fields:
            if not fields["title"].strip():
                raise ValidationError.for_field("title", "Title is required")
            fields["title"] = fields["title"].strip()

        request = self.get_request(request_id)

        if request.requester_id != actor.id:
            raise ForbiddenError("Only the requester can edit this request")

        has_history = self.db.query(ApprovalHistoryEntry.id).filter(
            ApprovalHistoryEntry.request_id == request.id
        ).first() is not None
        if request.status != RequestStatus.PENDING or has_history:
            raise InvalidStateError("Request can only be edited while pending and before any approver has acted")

        values = {getattr(ApprovalRequest, key): value for key, value in fields.items()}
        values[ApprovalRequest.version] = request.version + 1
        values[ApprovalRequest.updated_at] = datetime.utcnow()

        matched = self.db.query(ApprovalRequest).filter(
            ApprovalRequest.id == request.id,
            ApprovalRequest.status == RequestStatus.PENDING,
            ApprovalRequest.version == request.version,
        ).update(values, synchronize_session=False)
        if matched != 1:
            self.db.rollback()
            raise InvalidStateError(f"Request {request.id} was modified concurrently; re-fetch and retry")

        self.db.commit()
        self.db.refresh(request)

        logger.info("Request %s edited by %s: %s", request.id, actor.id, sorted(fields))
        return request

    def get_statistics(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, Any]:
        """
        Aggregate counts and mean processing time over a created_at window.

        average_processing_hours is the mean of (updated_at - created_at)
        over requests in a terminal state, 0 when there are none.
        """
        base = _filter_created_between(self.db.query(ApprovalRequest), start_date, end_date)

        total = base.count()

        by_status = {status.value: 0 for status in RequestStatus}
        for status, count in base.with_entities(ApprovalRequest.status, func.count()).group_by(ApprovalRequest.status):
            by_status[RequestStatus(status).value] = count

        by_priority = {priority.value: 0 for priority in Priority}
        for priority, count in base.with_entities(ApprovalRequest.priority, func.count()).group_by(ApprovalRequest.priority):
            by_priority[Priority(priority).value] = count

        by_request_type = Counter()
        for request_type, count in base.with_entities(ApprovalRequest.request_type, func.count()).group_by(
            ApprovalRequest.request_type
        ):
            by_request_type[request_type] = count

        durations = [
            (updated_at - created_at).total_seconds() / 3600.0
            for created_at, updated_at in base.with_entities(
                ApprovalRequest.created_at, ApprovalRequest.updated_at
            ).filter(ApprovalRequest.status.in_(TERMINAL_STATUSES))
        ]
        average = sum(durations) / len(durations) if durations else 0.0

        return {
            "total": total,
            "by_status": by_status,
            "by_request_type": dict(by_request_type),
            "by_priority": by_priority,
            "average_processing_hours": round(average, 2),
            "period": {"start_date": start_date, "end_date": end_date},
        }

    @staticmethod
    def _newest_first(query: Query) -> Query:
        return query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id)
