"""Port for resolving authenticated principals from opaque token hashes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from clinic_analytics.domain.auth.roles import Role


@dataclass(frozen=True)
class Principal:
    """Authenticated caller resolved from an active token."""

    user_id: int
    username: str
    role: Role


class PrincipalRepositoryPort(Protocol):
    """Principal lookup contract."""

    async def get_active_by_token_hash(self, *, token_hash: str) -> Principal | None:
        """Return the active user owning a non-revoked, non-expired token hash."""
