"""Core services."""

from .auth.credentials import CredentialAuthorizationFlow
from .auth.oauth import OAuthAccountReconciler, OAuthProviderClient, TokenResponse
from .database.db_session import DbSessionService
from .jwt import IdentityTokenVerifier, JwksService, SessionTokenService
from .prompt import OneTapPromptTrigger
from .session.auth_session import AuthSessionService
from .user.directory import UserDirectoryAdapter

__all__ = [
    "AuthSessionService",
    "CredentialAuthorizationFlow",
    "DbSessionService",
    "IdentityTokenVerifier",
    "JwksService",
    "OAuthAccountReconciler",
    "OAuthProviderClient",
    "OneTapPromptTrigger",
    "SessionTokenService",
    "TokenResponse",
    "UserDirectoryAdapter",
]
