import time

import pytest
from authlib.jose import jwt

from src.signin.core.services import SessionTokenService
from src.signin.entities.core.user import User
from src.signin.runtime.config.config_data import AppConfig
from tests.fixtures.core import SESSION_SECRET


@pytest.fixture
def user() -> User:
    return User(
        id="u1",
        email="alice@example.com",
        name="Alice Example",
        image="https://example.com/alice.png",
    )


class TestSessionTokenService:
    def test_issue_and_decode(self, session_token_service: SessionTokenService, user):
        token, issued = session_token_service.issue(user)

        decoded = session_token_service.decode(token)

        assert decoded == issued
        assert decoded.user_id == "u1"
        assert decoded.email == "alice@example.com"
        assert decoded.name == "Alice Example"
        assert decoded.image == "https://example.com/alice.png"
        assert decoded.expires_at - decoded.issued_at == session_token_service.max_age

    def test_each_session_has_its_own_jti(self, session_token_service, user):
        _, first = session_token_service.issue(user)
        _, second = session_token_service.issue(user)
        assert first.jti != second.jti

    def test_token_is_hs256_with_session_issuer(self, session_token_service, user, app_config):
        token, _ = session_token_service.issue(user)
        claims = jwt.decode(token, SESSION_SECRET)

        assert claims.header["alg"] == "HS256"
        assert claims["iss"] == app_config.jwt.session_issuer
        assert claims["sub"] == "u1"

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
    def test_unusable_tokens_mean_no_session(self, session_token_service, token):
        assert session_token_service.decode(token) is None

    def test_token_signed_with_another_secret_is_rejected(self, app_config, user):
        other = SessionTokenService(
            app_config.model_copy(
                update={"app": app_config.app.model_copy(update={"session_signing_secret": "x" * 40})}
            )
        )
        token, _ = other.issue(user)

        assert SessionTokenService(app_config).decode(token) is None

    def test_expired_token_is_rejected(self, session_token_service, user, app_config):
        now = int(time.time())
        payload = {
            "iss": app_config.jwt.session_issuer,
            "sub": user.id,
            "iat": now - 7200,
            "exp": now - 3600,
            "jti": "old",
        }
        token = jwt.encode({"alg": "HS256"}, payload, SESSION_SECRET).decode()

        assert session_token_service.decode(token) is None

    def test_foreign_issuer_is_rejected(self, session_token_service):
        now = int(time.time())
        payload = {"iss": "someone-else", "sub": "u1", "iat": now, "exp": now + 60, "jti": "j"}
        token = jwt.encode({"alg": "HS256"}, payload, SESSION_SECRET).decode()

        assert session_token_service.decode(token) is None

    def test_missing_secret_is_fatal_in_production(self, app_config):
        config = app_config.model_copy(
            update={"app": AppConfig(environment="production", session_signing_secret=None)}
        )
        with pytest.raises(RuntimeError):
            SessionTokenService(config)

    def test_missing_secret_outside_production_uses_ephemeral_secret(self, app_config, user):
        config = app_config.model_copy(
            update={"app": AppConfig(environment="development", session_signing_secret=None)}
        )
        service = SessionTokenService(config)

        token, _ = service.issue(user)
        assert service.decode(token) is not None
        assert SessionTokenService(config).decode(token) is None
