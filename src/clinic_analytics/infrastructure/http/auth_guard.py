"""Bearer-token resolution and role gating for analytics endpoints."""

from __future__ import annotations

from clinic_analytics.application.ports.principal_repository_port import (
    Principal,
    PrincipalRepositoryPort,
)
from clinic_analytics.application.services.access_guard_service import AccessGuardService
from clinic_analytics.domain.auth.roles import Role
from clinic_analytics.infrastructure.security.token_service import OpaqueTokenService


class MissingAuthTokenError(PermissionError):
    """Raised when a bearer token is required but not provided."""

    category = "authentication_error"


class InvalidAuthTokenError(PermissionError):
    """Raised when the bearer token header or persisted token is invalid."""

    category = "authentication_error"


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract opaque token from standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise MissingAuthTokenError("missing bearer token")

    scheme, _, token = authorization_header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise InvalidAuthTokenError("invalid bearer token header")
    return token


class AnalyticsAuthGuard:
    """Resolve the calling principal and enforce per-operation role sets."""

    def __init__(
        self,
        *,
        token_service: OpaqueTokenService,
        principals: PrincipalRepositoryPort,
        access_guard: AccessGuardService | None = None,
    ) -> None:
        self._token_service = token_service
        self._principals = principals
        self._access_guard = access_guard or AccessGuardService()

    async def require_roles(
        self,
        *,
        authorization_header: str | None,
        allowed: frozenset[Role],
    ) -> Principal:
        """Return the active principal when its role is in `allowed`."""

        token = extract_bearer_token(authorization_header)
        principal = await self._principals.get_active_by_token_hash(
            token_hash=self._token_service.hash_token(token)
        )
        if principal is None:
            raise InvalidAuthTokenError("invalid or expired auth token")

        self._access_guard.require_any(role=principal.role, allowed=allowed)
        return principal
