"""
Status finite state machine for approval requests.

Terminal states (approved, rejected, returned, cancelled) have no
outgoing transitions. Invalid transitions raise InvalidStateError.
"""
from typing import Dict, List
from approvalflow.api.core.errors import InvalidStateError
from approvalflow.api.models.approval_request import RequestStatus


class StatusTransitions:
    """Allowed request status transitions."""

    REQUEST_ALLOWED: Dict[RequestStatus, List[RequestStatus]] = {
        RequestStatus.PENDING: [
            RequestStatus.IN_PROGRESS,
            RequestStatus.APPROVED,
            RequestStatus.REJECTED,
            RequestStatus.RETURNED,
            RequestStatus.CANCELLED,
        ],
        # in_progress -> in_progress is an approval of a middle step
        RequestStatus.IN_PROGRESS: [
            RequestStatus.IN_PROGRESS,
            RequestStatus.APPROVED,
            RequestStatus.REJECTED,
            RequestStatus.RETURNED,
            RequestStatus.CANCELLED,
        ],
    }


def allowed_transitions(current: RequestStatus) -> List[RequestStatus]:
    return StatusTransitions.REQUEST_ALLOWED.get(current, [])


def validate_request_transition(
    current: RequestStatus,
    new: RequestStatus,
    request_id: str
) -> None:
    """
    Validate approval request status transition.

    Args:
        current: Current status
        new: Desired new status
        request_id: Request ID for error message

    Raises:
        InvalidStateError: If transition is invalid
    """
    allowed = allowed_transitions(current)

    if new not in allowed:
        raise InvalidStateError(
            f"Invalid state transition for request {request_id}: "
            f"{current.value} → {new.value} not allowed. "
            f"Allowed transitions from {current.value}: {[s.value for s in allowed]}"
        )
