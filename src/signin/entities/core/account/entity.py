"""Linked account domain entity."""

from pydantic import Field

from src.signin.entities.core._base import Entity


class LinkedAccount(Entity):
    """Association between a local user and an external provider account.

    At most one linked account exists per ``(provider, provider_account_id)``
    pair; a user may hold several across providers.
    """

    user_id: str = Field(description="Internal user ID this account maps to")
    provider: str = Field(description="Provider name, e.g. 'google' or 'slack'")
    provider_account_id: str = Field(description="Subject id at the provider")
    type: str = Field(description="Account type: 'credentials' or 'oauth'")
    access_token: str | None = Field(default=None, description="OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    expires_at: int | None = Field(default=None, description="Access token expiry")
    token_type: str | None = Field(default=None, description="OAuth token type")
    scope: str | None = Field(default=None, description="Granted OAuth scopes")
    id_token: str | None = Field(default=None, description="OIDC ID token")
