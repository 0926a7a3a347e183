from dataclasses import dataclass

from src.signin.core.services import (
    AuthSessionService,
    DbSessionService,
    IdentityTokenVerifier,
    JwksService,
    OAuthProviderClient,
    SessionTokenService,
)
from src.signin.core.services.jwt import JWKSCacheInMemory
from src.signin.core.storage import InMemorySessionStorage, SessionStorage
from src.signin.runtime.config.config_data import ConfigData


@dataclass
class ApplicationDependencies:
    config: ConfigData
    jwks_cache: JWKSCacheInMemory
    jwks_service: JwksService
    google_verifier: IdentityTokenVerifier
    session_token_service: SessionTokenService
    session_storage: SessionStorage
    auth_session_service: AuthSessionService
    oauth_clients: dict[str, OAuthProviderClient]
    database_service: DbSessionService


def build_dependencies(config: ConfigData) -> ApplicationDependencies:
    """Wire the application-wide services for ``config``.

    Auth sessions start in memory; the application lifespan swaps in Redis
    storage when it is enabled and reachable.
    """
    jwks_cache = JWKSCacheInMemory()
    jwks_service = JwksService(jwks_cache)
    session_storage = InMemorySessionStorage()

    oauth_clients = {
        provider_id: OAuthProviderClient(
            provider_id,
            provider_cfg,
            IdentityTokenVerifier.for_provider(provider_cfg, config, jwks_service),
        )
        for provider_id, provider_cfg in config.oidc.providers.items()
    }

    return ApplicationDependencies(
        config=config,
        jwks_cache=jwks_cache,
        jwks_service=jwks_service,
        google_verifier=IdentityTokenVerifier.for_google(config, jwks_service),
        session_token_service=SessionTokenService(config),
        session_storage=session_storage,
        auth_session_service=AuthSessionService(session_storage, config),
        oauth_clients=oauth_clients,
        database_service=DbSessionService(config),
    )
