"""Verified identity claims."""

from typing import Any

from pydantic import BaseModel, Field


def _as_bool(value: Any) -> bool:
    # Some providers serialize email_verified as the string "true"
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class IdentityClaims(BaseModel):
    """Claims extracted from a verified identity token.

    Exists only for the duration of one authorization call and is never
    persisted as-is.
    """

    subject_id: str = Field(description="Provider-scoped unique subject id (sub)")
    issuer: str | None = Field(default=None, description="Token issuer (iss)")
    email: str | None = Field(default=None, description="Email address")
    email_verified: bool = Field(default=False, description="Email verification status")
    name: str | None = Field(default=None, description="Full name")
    given_name: str | None = Field(default=None, description="First name")
    family_name: str | None = Field(default=None, description="Last name")
    picture_url: str | None = Field(default=None, description="Avatar URL")
    nonce: str | None = Field(default=None, description="Nonce for replay protection")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IdentityClaims":
        """Map a verified JWT (or userinfo) payload onto identity claims."""
        return cls(
            subject_id=str(payload["sub"]),
            issuer=payload.get("iss"),
            email=payload.get("email") or None,
            email_verified=_as_bool(payload.get("email_verified", False)),
            name=payload.get("name"),
            given_name=payload.get("given_name"),
            family_name=payload.get("family_name"),
            picture_url=payload.get("picture"),
            nonce=payload.get("nonce"),
        )

    @property
    def display_name(self) -> str | None:
        """Full name, assembled from the name parts when absent."""
        if self.name:
            return self.name
        parts = [p for p in (self.given_name, self.family_name) if p]
        return " ".join(parts) or None
