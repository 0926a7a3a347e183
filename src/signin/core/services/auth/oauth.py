"""OAuth authorization code flow with PKCE for delegated providers."""

import base64
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from src.signin.core.errors import OAuthAccountNotLinked, OAuthSignInError
from src.signin.core.models.claims import IdentityClaims
from src.signin.core.services.jwt.jwt_verify import IdentityTokenVerifier
from src.signin.core.services.user.directory import UserDirectoryAdapter
from src.signin.entities.core._base import utc_now
from src.signin.entities.core.user import User
from src.signin.runtime.config.config_data import OIDCProviderConfig


class TokenResponse(BaseModel):
    """Token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None  # Lifetime in seconds of the access token
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None

    @property
    def expires_at(self) -> int | None:
        """Absolute expiry timestamp, if the provider sent a lifetime."""
        if self.expires_in is None:
            return None
        return int(time.time()) + self.expires_in

    def account_tokens(self) -> dict[str, Any]:
        """Token fields stored on a linked account."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "scope": self.scope,
            "id_token": self.id_token,
        }


class OAuthProviderClient:
    """Talks to one provider's authorization, token and userinfo endpoints."""

    def __init__(
        self,
        provider_id: str,
        provider_cfg: OIDCProviderConfig,
        verifier: IdentityTokenVerifier,
        timeout: float = 10.0,
    ):
        self.provider_id = provider_id
        self.config = provider_cfg
        self._verifier = verifier
        self._timeout = timeout

    def build_authorization_url(self, state: str, nonce: str, code_challenge: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "redirect_uri": self.config.redirect_uri,
            "state": state,
            "nonce": nonce,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.config.authorization_endpoint}?{urlencode(params)}"

    def _token_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        # Add client authentication if client secret is configured
        if self.config.client_secret:
            credentials = f"{self.config.client_id}:{self.config.client_secret}"
            encoded_credentials = base64.b64encode(credentials.encode()).decode()
            headers["Authorization"] = f"Basic {encoded_credentials}"

        return headers

    async def exchange_code_for_tokens(self, code: str, pkce_verifier: str) -> TokenResponse:
        """Exchange authorization code for tokens using PKCE.

        Raises:
            OAuthSignInError: If the token endpoint rejects the exchange
        """
        token_data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "code_verifier": pkce_verifier,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self.config.token_endpoint, data=token_data, headers=self._token_headers()
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OAuthSignInError(f"Token exchange with {self.provider_id} failed: {e}") from e

        # Slack reports errors in the body of a 200 response
        if payload.get("ok") is False or "error" in payload:
            raise OAuthSignInError(
                f"Token exchange with {self.provider_id} failed: {payload.get('error')}"
            )

        try:
            return TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise OAuthSignInError(f"Malformed token response from {self.provider_id}") from e

    async def fetch_userinfo(self, access_token: str) -> dict[str, Any]:
        """Fetch profile claims from the userinfo endpoint.

        Raises:
            OAuthSignInError: If the endpoint is missing or the call fails
        """
        if not self.config.userinfo_endpoint:
            raise OAuthSignInError(f"Provider {self.provider_id} has no userinfo endpoint")

        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self.config.userinfo_endpoint, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OAuthSignInError(f"Userinfo request to {self.provider_id} failed: {e}") from e

        if payload.get("ok") is False or not payload.get("sub"):
            raise OAuthSignInError(f"Userinfo from {self.provider_id} carries no subject")
        return payload

    async def get_user_claims(self, tokens: TokenResponse, nonce: str) -> IdentityClaims:
        """Get user claims from the ID token, or the userinfo endpoint without one."""
        if tokens.id_token:
            return await self._verifier.verify(tokens.id_token, expected_nonce=nonce)

        logger.debug("No ID token from {}, falling back to userinfo", self.provider_id)
        payload = await self.fetch_userinfo(tokens.access_token)
        return IdentityClaims.from_payload(payload)


class OAuthAccountReconciler:
    """Maps a provider identity onto a local user, creating one when needed."""

    def __init__(
        self,
        directory: UserDirectoryAdapter,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._directory = directory
        self._clock = clock

    def reconcile(
        self,
        provider: str,
        claims: IdentityClaims,
        tokens: TokenResponse,
        *,
        allow_email_linking: bool = False,
    ) -> User:
        """Return the user for ``claims``, linking or creating as needed.

        Raises:
            OAuthAccountNotLinked: If the email belongs to another user and
                email linking is not allowed for the provider
        """
        user = self._directory.get_user_by_account(provider, claims.subject_id)
        if user is not None:
            logger.debug("Existing {} link for user {}", provider, user.id)
            return user

        if claims.email:
            existing = self._directory.get_user_by_email(claims.email)
            if existing is not None:
                if not (allow_email_linking and claims.email_verified):
                    raise OAuthAccountNotLinked(
                        f"User {existing.id} has not linked {provider}"
                    )
                self._link(existing, provider, claims, tokens)
                return existing

        user = self._directory.create_user(
            email=claims.email,
            name=claims.display_name,
            image=claims.picture_url,
            email_verified_at=self._clock() if claims.email and claims.email_verified else None,
        )
        self._link(user, provider, claims, tokens)
        return user

    def _link(
        self, user: User, provider: str, claims: IdentityClaims, tokens: TokenResponse
    ) -> None:
        self._directory.link_account(
            user_id=user.id,
            provider=provider,
            provider_account_id=claims.subject_id,
            type="oauth",
            **tokens.account_tokens(),
        )
