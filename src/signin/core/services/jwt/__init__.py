"""JWT service package."""

from .jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt_utils import preview_jwt
from .jwt_verify import IdentityTokenVerifier
from .session_token import SessionTokenService

__all__ = [
    "IdentityTokenVerifier",
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksService",
    "SessionTokenService",
    "preview_jwt",
]
