"""
Approval error taxonomy.

Each error is an HTTPException so services can raise it directly and the
router layer renders it without translation.
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class ApprovalError(HTTPException):
    """Base class for all approval domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: Optional[Any] = None):
        self.message = message
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else message,
        )


class ValidationError(ApprovalError):
    """
    Malformed input.

    Carries field-level detail: ``{"message": ..., "errors": [{"field", "message"}]}``.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        self.errors = errors or []
        super().__init__(message, detail={"message": message, "errors": self.errors})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class NotFoundError(ApprovalError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidWorkflowError(ApprovalError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(ApprovalError):
    """Request is not actionable; safe to retry after re-fetching."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(ApprovalError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ApprovalError):
    status_code = status.HTTP_409_CONFLICT


class AuthenticationError(ApprovalError):
    status_code = status.HTTP_401_UNAUTHORIZED
