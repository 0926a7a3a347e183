"""User domain entity."""

from datetime import datetime
from typing import Any

from pydantic import Field

from src.signin.entities.core._base import Entity


class User(Entity):
    """User entity representing a person who can sign in.

    Users are provisioned by an operator or by a first OAuth sign-in; the
    One Tap credential flow only ever finds and refreshes existing users.
    """

    email: str | None = Field(default=None, description="User's email address")
    email_verified_at: datetime | None = Field(
        default=None, description="When the email address was last verified"
    )
    name: str | None = Field(default=None, description="User's display name")
    image: str | None = Field(default=None, description="User's avatar URL")

    def __eq__(self, other: Any) -> bool:
        """Compare users by business attributes, ignoring timestamps."""
        if not isinstance(other, User):
            return False

        return (
            self.id == other.id
            and self.email == other.email
            and self.name == other.name
            and self.image == other.image
        )

    def __hash__(self) -> int:
        """Hash based on business attributes, ignoring timestamps."""
        return hash((self.id, self.email, self.name, self.image))
