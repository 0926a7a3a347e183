"""User database table model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field

from src.signin.entities.core._base import EntityTable


class UserTable(EntityTable, table=True):
    """Database persistence model for users."""

    email: str | None = Field(
        default=None, sa_column=Column(String(320), nullable=True, unique=True, index=True)
    )
    email_verified_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    name: str | None = None
    image: str | None = None
