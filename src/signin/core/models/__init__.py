from .claims import IdentityClaims
from .session import AuthSession, SessionClaims

__all__ = ["AuthSession", "IdentityClaims", "SessionClaims"]
