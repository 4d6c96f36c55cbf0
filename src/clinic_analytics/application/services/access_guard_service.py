"""Role-gate rules for analytics operations."""

from __future__ import annotations

from typing import Final

from clinic_analytics.domain.auth.roles import Role


class RoleNotAuthorizedError(PermissionError):
    """Raised when an authenticated role may not invoke one operation."""

    category = "authorization_error"

    def __init__(self) -> None:
        super().__init__("access denied")


class UnknownRoleAuthorizationError(PermissionError):
    """Raised when a principal carries a role outside the closed role set."""

    category = "authorization_error"

    def __init__(self) -> None:
        super().__init__("access denied")


ANY_AUTHENTICATED: Final = frozenset(Role)
ANALYTICS_READERS: Final = frozenset({Role.ADMIN, Role.DOCTOR, Role.DENTIST})
AUDIT_READERS: Final = frozenset({Role.ADMIN, Role.DOCTOR})
SERVICE_USAGE_READERS: Final = frozenset({Role.ADMIN, Role.DOCTOR, Role.DENTIST, Role.NURSE})
REVENUE_READERS: Final = frozenset({Role.ADMIN})
REPORT_RECIPIENT_ROLES: Final = frozenset({Role.ADMIN, Role.DOCTOR, Role.DENTIST})


class AccessGuardService:
    """Check one principal role against the role set an operation permits."""

    def require_any(self, *, role: Role | str, allowed: frozenset[Role]) -> Role:
        """Return the normalized role when permitted; raise otherwise without detail."""

        try:
            resolved = Role(role)
        except ValueError as error:
            raise UnknownRoleAuthorizationError() from error
        if resolved not in allowed:
            raise RoleNotAuthorizedError()
        return resolved
