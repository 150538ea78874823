# SPDX-License-Identifier: Apache-2.0

"""
Role-based authorization checks.

The portal has three fixed roles. Checks take the caller's ``UserContext``
explicitly and return or raise without touching storage.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..errors import AuthorizationException
from ..models.entities import UserContext
from ..models.enums import UserRole

STAFF_ROLES = (UserRole.STAFF, UserRole.ADMIN)
ADMIN_ROLES = (UserRole.ADMIN,)

RoleSpec = Union[UserRole, str, Sequence[Union[UserRole, str]]]


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def _role_values(roles: RoleSpec) -> List[str]:
    if isinstance(roles, (str, UserRole)):
        roles = [roles]
    return [getattr(role, "value", role) for role in roles]


def check_role(user_context: Optional[UserContext], roles: RoleSpec) -> AuthorizationResult:
    """
    Check if the caller holds one of the roles.

    Args:
        user_context: Caller identity, or None for an anonymous caller
        roles: Role or roles that grant access

    Returns:
        AuthorizationResult indicating if access is granted
    """
    if user_context is None:
        return AuthorizationResult(allowed=False, reason="Authentication required")

    allowed = _role_values(roles)
    if user_context.role in allowed:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Requires one of roles: {', '.join(allowed)}"
    )


def require_role(user_context: Optional[UserContext], roles: RoleSpec) -> None:
    """Raise ``AuthorizationException`` unless the caller holds one of the roles."""
    result = check_role(user_context, roles)
    if not result.allowed:
        raise AuthorizationException("Insufficient permissions")
