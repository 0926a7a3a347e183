"""Session models for the OAuth flow state and the signed user session."""

import time
from typing import Any

from pydantic import BaseModel, Field


class AuthSession(BaseModel):
    """Temporary session for the OAuth authorization flow."""

    id: str = Field(description="Session identifier")
    pkce_verifier: str = Field(description="PKCE code verifier")
    state: str = Field(description="CSRF state parameter")
    nonce: str = Field(description="OIDC nonce for replay protection")
    provider: str = Field(description="OAuth provider identifier")
    return_to: str = Field(description="Sanitized post-auth redirect URL")
    client_fingerprint_hash: str = Field(description="Client context fingerprint")
    created_at: int = Field(description="Creation timestamp")
    expires_at: int = Field(description="Expiration timestamp")
    used: bool = Field(default=False, description="Whether session has been used")

    @classmethod
    def create(
        cls,
        session_id: str,
        pkce_verifier: str,
        state: str,
        nonce: str,
        provider: str,
        return_to: str,
        client_fingerprint_hash: str,
        ttl_seconds: int = 600,
    ) -> "AuthSession":
        """Create a new auth session with timestamps."""
        now = int(time.time())
        return cls(
            id=session_id,
            pkce_verifier=pkce_verifier,
            state=state,
            nonce=nonce,
            provider=provider,
            return_to=return_to,
            client_fingerprint_hash=client_fingerprint_hash,
            created_at=now,
            expires_at=now + ttl_seconds,
        )

    def is_expired(self) -> bool:
        """Check if session is expired."""
        return time.time() > self.expires_at

    def mark_used(self) -> None:
        """Mark session as used (for single-use enforcement)."""
        self.used = True


class SessionClaims(BaseModel):
    """Decoded payload of a signed session token."""

    user_id: str = Field(description="Internal user ID (sub)")
    name: str | None = Field(default=None, description="Display name")
    email: str | None = Field(default=None, description="Email address")
    image: str | None = Field(default=None, description="Avatar URL")
    issued_at: int = Field(description="Issued at (iat)")
    expires_at: int = Field(description="Expiration time (exp)")
    jti: str = Field(description="Unique token identifier")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SessionClaims":
        return cls(
            user_id=payload["sub"],
            name=payload.get("name"),
            email=payload.get("email"),
            image=payload.get("picture"),
            issued_at=payload["iat"],
            expires_at=payload["exp"],
            jti=payload["jti"],
        )

    def is_expired(self, clock_skew: int = 0) -> bool:
        return time.time() > self.expires_at + clock_skew
