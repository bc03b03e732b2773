"""
Caller identity and coarse RBAC.

Credential verification happens upstream: the gateway authenticates the
caller and forwards the verified identity as X-User-ID / X-User-Role.
This module only turns those headers into an Actor and makes role
decisions; it never inspects credentials.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from approvalflow.api.core.config import settings
from approvalflow.api.core.errors import AuthenticationError, ForbiddenError, ValidationError

ROLE_MAX_LENGTH = 100


def validate_role_name(value: str) -> str:
    """
    Validate a role string used as an authorization key.

    Roles are compared with case-sensitive exact match, so a role with
    surrounding whitespace could never match anything. Reject it instead
    of silently normalizing it.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("role must be a non-empty string")
    if value != value.strip():
        raise ValueError("role must not have leading or trailing whitespace")
    if len(value) > ROLE_MAX_LENGTH:
        raise ValueError(f"role must be at most {ROLE_MAX_LENGTH} characters")
    return value


@dataclass(frozen=True)
class Actor:
    """Authenticated caller: identity id plus its role claim."""

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE


def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Build the Actor from gateway-supplied identity headers.

    Raises:
        AuthenticationError(401): identity headers missing
        ValidationError(400): role claim malformed
    """
    x_user_id = (x_user_id or "").strip()
    if not x_user_id or not x_user_role:
        raise AuthenticationError("X-User-ID and X-User-Role headers are required")

    try:
        role = validate_role_name(x_user_role)
    except ValueError as exc:
        raise ValidationError.for_field("X-User-Role", str(exc))

    return Actor(id=x_user_id, role=role)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for admin-only endpoints."""
    if not actor.is_admin:
        raise ForbiddenError("Insufficient permissions: admin role required")
    return actor


def get_client_ip(request: Request) -> Optional[str]:
    """
    Get client IP address from request.

    Args:
        request: FastAPI request

    Returns:
        IP address string or None
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
