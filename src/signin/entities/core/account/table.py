"""Linked account database table model."""

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint
from sqlmodel import Field

from src.signin.entities.core._base import EntityTable


class LinkedAccountTable(EntityTable, table=True):
    """Database persistence model for linked provider accounts."""

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_account_id", name="uq_account_provider_account"
        ),
    )

    user_id: str = Field(
        sa_column=Column(
            String, ForeignKey("usertable.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    provider: str = Field(sa_column=Column(String(128), nullable=False, index=True))
    provider_account_id: str = Field(
        sa_column=Column(String(512), nullable=False, index=True)
    )
    type: str = Field(sa_column=Column(String(32), nullable=False))
    access_token: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    refresh_token: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    expires_at: int | None = None
    token_type: str | None = None
    scope: str | None = None
    id_token: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
