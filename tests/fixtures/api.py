"""HTTP fixtures: the application wired with fake external services."""

from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import httpx
import pytest
from fastapi.testclient import TestClient

from src.signin.api.http.app import create_app
from src.signin.api.http.app_data import ApplicationDependencies
from src.signin.core.services import (
    AuthSessionService,
    DbSessionService,
    IdentityTokenVerifier,
    OAuthProviderClient,
    SessionTokenService,
)
from src.signin.core.services.jwt import JWKSCacheInMemory
from src.signin.core.storage import InMemorySessionStorage
from src.signin.runtime.config.config_data import ConfigData
from src.signin.runtime.context import AppContext


@pytest.fixture
def app_dependencies(
    app_config: ConfigData,
    db_service: DbSessionService,
    jwks_service_fake,
    slack_client: OAuthProviderClient,
) -> ApplicationDependencies:
    storage = InMemorySessionStorage()
    return ApplicationDependencies(
        config=app_config,
        jwks_cache=JWKSCacheInMemory(),
        jwks_service=jwks_service_fake,
        google_verifier=IdentityTokenVerifier.for_google(app_config, jwks_service_fake),
        session_token_service=SessionTokenService(app_config),
        session_storage=storage,
        auth_session_service=AuthSessionService(storage, app_config),
        oauth_clients={"slack": slack_client},
        database_service=db_service,
    )


@pytest.fixture
def app(app_config: ConfigData, app_dependencies: ApplicationDependencies):
    return create_app(AppContext(config=app_config), app_dependencies)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def mock_http_response_factory() -> Callable[..., Mock]:
    """Factory for creating mock HTTP responses."""

    def create_response(json_data: dict[str, Any], status_code: int = 200) -> Mock:
        mock_response = Mock()
        mock_response.json.return_value = json_data
        mock_response.status_code = status_code

        def raise_for_status():
            if status_code >= 400:
                raise httpx.HTTPStatusError(
                    f"HTTP {status_code}",
                    request=Mock(spec=httpx.Request),
                    response=Mock(spec=httpx.Response, status_code=status_code),
                )

        mock_response.raise_for_status = raise_for_status
        return mock_response

    return create_response
