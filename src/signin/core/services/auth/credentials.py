"""Google One Tap credential authorization."""

from collections.abc import Callable
from datetime import datetime

from loguru import logger

from src.signin.core.errors import (
    EmailNotVerified,
    EmailUnavailable,
    MissingCredential,
    UserNotProvisioned,
)
from src.signin.core.services.jwt.jwt_verify import IdentityTokenVerifier
from src.signin.core.services.user.directory import UserDirectoryAdapter
from src.signin.entities.core._base import utc_now
from src.signin.entities.core.user import User
from src.signin.runtime.config.config_data import GoogleOneTapConfig


class CredentialAuthorizationFlow:
    """Turns a One Tap ID token into an existing user.

    Only users that already exist, matched by verified email, can sign in
    through this path; unknown emails are rejected rather than provisioned.
    """

    def __init__(
        self,
        verifier: IdentityTokenVerifier,
        directory: UserDirectoryAdapter,
        *,
        provider: str = "google",
        account_type: str = "credentials",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._verifier = verifier
        self._directory = directory
        self._provider = provider
        self._account_type = account_type
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        one_tap: GoogleOneTapConfig,
        verifier: IdentityTokenVerifier,
        directory: UserDirectoryAdapter,
    ) -> "CredentialAuthorizationFlow":
        return cls(
            verifier,
            directory,
            provider=one_tap.account_provider,
            account_type=one_tap.account_type,
        )

    async def authorize(self, credential: str | None) -> User:
        """Authorize a sign-in attempt.

        Args:
            credential: The identity token produced by the provider SDK

        Returns:
            The signed-in user

        Raises:
            MissingCredential: If no token was submitted
            InvalidToken: If verification fails (CannotExtractPayload when
                the verified token has no payload)
            EmailUnavailable: If the claims carry no email
            EmailNotVerified: If the provider does not vouch for the email
            UserNotProvisioned: If no user exists for the email
        """
        if not credential:
            raise MissingCredential("no token")

        claims = await self._verifier.verify(credential)

        if not claims.email:
            raise EmailUnavailable("Email not available")

        if not claims.email_verified:
            raise EmailNotVerified("Email not verified")

        user = self._directory.get_user_by_email(claims.email)
        logger.debug("One Tap sign-in lookup for {} found {}", claims.email, user)

        if user is None:
            raise UserNotProvisioned("The user is not available")

        user = self._directory.update_user(user.id, email_verified_at=self._clock())

        linked = self._directory.get_user_by_account(self._provider, claims.subject_id)
        if linked is None:
            self._directory.link_account(
                user_id=user.id,
                provider=self._provider,
                provider_account_id=claims.subject_id,
                type=self._account_type,
            )

        logger.info("One Tap sign-in succeeded for user {}", user.id)
        return user
