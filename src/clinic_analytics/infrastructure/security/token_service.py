"""Opaque bearer-token hashing used to look up persisted sessions."""

from __future__ import annotations

import hashlib
import secrets


class OpaqueTokenService:
    """Issue random opaque tokens and derive the hash stored in `auth_tokens`."""

    def __init__(self, *, token_bytes: int = 32) -> None:
        self._token_bytes = token_bytes

    def issue_token(self) -> str:
        return secrets.token_urlsafe(self._token_bytes)

    def hash_token(self, token: str) -> str:
        """Return the hex SHA-256 digest persisted in place of the raw token."""

        return hashlib.sha256(token.encode("utf-8")).hexdigest()
