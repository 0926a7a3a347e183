import secrets

from loguru import logger

from src.signin.core.models.session import AuthSession
from src.signin.core.security import sanitize_return_url
from src.signin.core.storage.session_storage import SessionStorage
from src.signin.runtime.config.config_data import ConfigData


class AuthSessionService:
    """Single-use OAuth flow state keyed by an opaque session id."""

    def __init__(self, session_storage: SessionStorage, config: ConfigData) -> None:
        self._storage = session_storage
        self._ttl = config.security.auth_session_ttl_seconds
        self._allowed_hosts = config.oidc.allowed_redirect_hosts

    @staticmethod
    def _key(session_id: str) -> str:
        return f"auth:{session_id}"

    async def create_auth_session(
        self,
        pkce_verifier: str,
        state: str,
        nonce: str,
        provider: str,
        return_to: str | None,
        client_fingerprint_hash: str,
    ) -> str:
        """Create auth session for the OAuth flow.

        Args:
            pkce_verifier: PKCE code verifier
            state: CSRF state parameter
            nonce: OIDC nonce parameter
            provider: OAuth provider identifier
            return_to: Post-auth redirect URI (sanitized here)
            client_fingerprint_hash: Client browser fingerprint hash

        Returns:
            Session ID
        """
        auth_session = AuthSession.create(
            session_id=secrets.token_urlsafe(32),
            pkce_verifier=pkce_verifier,
            state=state,
            nonce=nonce,
            provider=provider,
            return_to=sanitize_return_url(return_to, allowed_hosts=self._allowed_hosts),
            client_fingerprint_hash=client_fingerprint_hash,
            ttl_seconds=self._ttl,
        )

        await self._storage.set(self._key(auth_session.id), auth_session, self._ttl)
        return auth_session.id

    async def get_auth_session(self, session_id: str) -> AuthSession | None:
        """Get auth session by ID; used or expired sessions are dropped."""
        auth_session = await self._storage.get(self._key(session_id), AuthSession)

        if not auth_session:
            return None

        if auth_session.used or auth_session.is_expired():
            await self._storage.delete(self._key(session_id))
            return None

        return auth_session

    async def delete_auth_session(self, session_id: str) -> None:
        await self._storage.delete(self._key(session_id))

    async def validate_auth_session(
        self,
        session_id: str | None,
        state: str | None,
        client_fingerprint_hash: str | None,
    ) -> AuthSession | None:
        """Validate auth session against the callback parameters.

        Args:
            session_id: Session identifier from the flow cookie
            state: State parameter returned by the provider
            client_fingerprint_hash: Client fingerprint, or None to skip binding

        Returns:
            Valid auth session or None if validation fails
        """
        if not session_id or not state:
            return None

        auth_session = await self.get_auth_session(session_id)
        if not auth_session:
            return None

        if not secrets.compare_digest(state, auth_session.state):
            logger.warning("OAuth state mismatch for provider {}", auth_session.provider)
            await self.delete_auth_session(session_id)
            return None

        if (
            client_fingerprint_hash is not None
            and client_fingerprint_hash != auth_session.client_fingerprint_hash
        ):
            logger.warning("OAuth client fingerprint mismatch for provider {}", auth_session.provider)
            await self.delete_auth_session(session_id)
            return None

        return auth_session

    async def mark_auth_session_used(self, session_id: str) -> None:
        """Mark auth session as used to prevent replay."""
        auth_session = await self._storage.get(self._key(session_id), AuthSession)

        if auth_session:
            auth_session.mark_used()
            await self._storage.set(self._key(auth_session.id), auth_session, self._ttl)

    async def list_auth_sessions(self) -> list[AuthSession]:
        return await self._storage.list_sessions("auth:*", AuthSession)

    async def purge_expired(self) -> int:
        return await self._storage.cleanup_expired()
