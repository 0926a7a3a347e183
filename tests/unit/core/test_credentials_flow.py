"""Tests for the One Tap credential authorization flow."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from authlib.jose import JsonWebKey
from sqlmodel import Session, select

from src.signin.core.errors import (
    CannotExtractPayload,
    EmailNotVerified,
    EmailUnavailable,
    InvalidToken,
    MissingCredential,
    UserNotProvisioned,
)
from src.signin.core.models.claims import IdentityClaims
from src.signin.core.services import (
    CredentialAuthorizationFlow,
    IdentityTokenVerifier,
    UserDirectoryAdapter,
)
from src.signin.entities.core.account import LinkedAccountTable
from src.signin.entities.core.user import User, UserRepository
from tests.fixtures.core import DROP, KID


def _aware(value: datetime) -> datetime:
    # SQLite drops the timezone on round-trip
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _links(db_session: Session) -> list[LinkedAccountTable]:
    return list(db_session.exec(select(LinkedAccountTable)))


@pytest.fixture
def existing_user(db_session: Session) -> User:
    user = UserRepository(db_session).create(
        User(id="u1", email="alice@example.com", name="Alice Example")
    )
    db_session.commit()
    return user


@pytest.fixture
def guarded_directory() -> Mock:
    """Directory double that fails the test if any capability is touched."""
    return Mock(spec=UserDirectoryAdapter)


class TestCredentialAuthorizationFlowRejections:
    """Failures stop the flow before the directory is read or written."""

    @pytest.mark.asyncio
    async def test_empty_token_fails_before_any_external_call(self, guarded_directory):
        verifier = Mock(spec=IdentityTokenVerifier)
        verifier.verify = AsyncMock()
        flow = CredentialAuthorizationFlow(verifier, guarded_directory)

        with pytest.raises(MissingCredential):
            await flow.authorize("")
        with pytest.raises(MissingCredential):
            await flow.authorize(None)

        verifier.verify.assert_not_called()
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_bad_signature_never_reaches_directory(
        self, google_verifier, guarded_directory, id_token_factory
    ):
        other_key = JsonWebKey.generate_key("RSA", 2048, is_private=True, options={"kid": KID})
        token = id_token_factory(key=other_key)
        flow = CredentialAuthorizationFlow(google_verifier, guarded_directory)

        with pytest.raises(InvalidToken):
            await flow.authorize(token)
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_wrong_audience_never_reaches_directory(
        self, google_verifier, guarded_directory, id_token_factory
    ):
        flow = CredentialAuthorizationFlow(google_verifier, guarded_directory)

        with pytest.raises(InvalidToken):
            await flow.authorize(id_token_factory(aud="someone-else.apps.googleusercontent.com"))
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_missing_email_is_rejected(
        self, google_verifier, guarded_directory, id_token_factory
    ):
        flow = CredentialAuthorizationFlow(google_verifier, guarded_directory)

        with pytest.raises(EmailUnavailable):
            await flow.authorize(id_token_factory(email=DROP))
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_unverified_email_is_rejected_without_directory_access(
        self, google_verifier, guarded_directory, id_token_factory
    ):
        flow = CredentialAuthorizationFlow(google_verifier, guarded_directory)

        with pytest.raises(EmailNotVerified):
            await flow.authorize(id_token_factory(email_verified=False))
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_payload_without_subject_cannot_be_extracted(
        self, google_verifier, guarded_directory, id_token_factory
    ):
        flow = CredentialAuthorizationFlow(google_verifier, guarded_directory)

        with pytest.raises(CannotExtractPayload):
            await flow.authorize(id_token_factory(sub=DROP))
        assert guarded_directory.mock_calls == []

    @pytest.mark.asyncio
    async def test_unknown_email_is_not_provisioned_and_nothing_is_written(
        self, credential_flow, db_session, id_token_factory
    ):
        token = id_token_factory(email="a@x.com", email_verified=True, sub="g-1")

        with pytest.raises(UserNotProvisioned):
            await credential_flow.authorize(token)

        assert UserRepository(db_session).list_all() == []
        assert _links(db_session) == []


class TestCredentialAuthorizationFlowSuccess:
    """Sign-in for provisioned users."""

    @pytest.mark.asyncio
    async def test_first_sign_in_links_account_and_refreshes_verification(
        self, credential_flow, existing_user, db_session, id_token_factory
    ):
        before = datetime.now(UTC)

        user = await credential_flow.authorize(
            id_token_factory(email="alice@example.com", sub="g-1")
        )

        assert user.id == "u1"
        assert user.email_verified_at is not None
        assert before - timedelta(seconds=1) <= _aware(user.email_verified_at)
        assert _aware(user.email_verified_at) <= datetime.now(UTC) + timedelta(seconds=1)

        links = _links(db_session)
        assert len(links) == 1
        assert links[0].provider == "google"
        assert links[0].provider_account_id == "g-1"
        assert links[0].user_id == "u1"
        assert links[0].type == "credentials"

    @pytest.mark.asyncio
    async def test_repeat_sign_in_updates_verification_without_duplicate_link(
        self, credential_flow, existing_user, db_session, id_token_factory
    ):
        token = id_token_factory(sub="g-1")
        ticks = iter(
            [datetime(2026, 1, 1, tzinfo=UTC), datetime(2026, 1, 2, tzinfo=UTC)]
        )
        credential_flow._clock = lambda: next(ticks)

        first = await credential_flow.authorize(token)
        second = await credential_flow.authorize(token)

        assert first.id == second.id == "u1"
        assert _aware(first.email_verified_at) == datetime(2026, 1, 1, tzinfo=UTC)
        assert _aware(second.email_verified_at) == datetime(2026, 1, 2, tzinfo=UTC)
        assert len(_links(db_session)) == 1

    @pytest.mark.asyncio
    async def test_existing_link_is_not_recreated(self, existing_user):
        verifier = Mock(spec=IdentityTokenVerifier)
        verifier.verify = AsyncMock(
            return_value=IdentityClaims(
                subject_id="g-1", email="alice@example.com", email_verified=True
            )
        )
        directory = Mock(spec=UserDirectoryAdapter)
        directory.get_user_by_email.return_value = existing_user
        directory.update_user.return_value = existing_user
        directory.get_user_by_account.return_value = existing_user

        flow = CredentialAuthorizationFlow(verifier, directory)
        user = await flow.authorize("opaque-token")

        assert user is existing_user
        directory.update_user.assert_called_once()
        directory.get_user_by_account.assert_called_once_with("google", "g-1")
        directory.link_account.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_and_type_follow_configuration(self, app_config, existing_user):
        verifier = Mock(spec=IdentityTokenVerifier)
        verifier.verify = AsyncMock(
            return_value=IdentityClaims(
                subject_id="g-9", email="alice@example.com", email_verified=True
            )
        )
        directory = Mock(spec=UserDirectoryAdapter)
        directory.get_user_by_email.return_value = existing_user
        directory.update_user.return_value = existing_user
        directory.get_user_by_account.return_value = None

        one_tap = app_config.google_one_tap.model_copy(
            update={"account_provider": "google-onetap", "account_type": "oauth"}
        )
        flow = CredentialAuthorizationFlow.from_config(one_tap, verifier, directory)
        await flow.authorize("opaque-token")

        directory.link_account.assert_called_once_with(
            user_id="u1",
            provider="google-onetap",
            provider_account_id="g-9",
            type="oauth",
        )

