"""Stateless signed session tokens."""

import time

from authlib.common.security import generate_token
from authlib.jose import JoseError, jwt
from loguru import logger

from src.signin.core.errors import InvalidToken
from src.signin.core.models.session import SessionClaims
from src.signin.core.services.jwt.jwt_utils import preview_jwt
from src.signin.entities.core.user import User
from src.signin.runtime.config.config_data import ConfigData


class SessionTokenService:
    """Issues and validates the application session.

    The whole session lives in an HS256 JWT held by the client; there is no
    server-side session store.
    """

    def __init__(self, config: ConfigData):
        secret = config.app.session_signing_secret
        if not secret:
            if config.app.environment == "production":
                raise RuntimeError("Session signing secret not configured")
            logger.warning(
                "Session signing secret not configured; using an ephemeral "
                "per-process secret. Sessions will not survive a restart."
            )
            secret = generate_token(48)
        self._secret = secret
        self._algorithm = config.jwt.session_algorithm
        self._issuer = config.jwt.session_issuer
        self._max_age = config.app.session_max_age
        self._clock_skew = config.jwt.clock_skew

    @property
    def max_age(self) -> int:
        return self._max_age

    @property
    def secret(self) -> str:
        return self._secret

    def issue(self, user: User) -> tuple[str, SessionClaims]:
        """Sign a session token for ``user``.

        Returns:
            The compact JWT and the claims it carries
        """
        now = int(time.time())
        payload = {
            "iss": self._issuer,
            "sub": user.id,
            "name": user.name,
            "email": user.email,
            "picture": user.image,
            "iat": now,
            "exp": now + self._max_age,
            "jti": generate_token(16),
        }
        header = {"alg": self._algorithm, "typ": "JWT"}
        token = jwt.encode(header, payload, self._secret)
        # authlib returns bytes, decode to string
        token = token.decode() if isinstance(token, bytes) else token
        return token, SessionClaims.from_payload(payload)

    def decode(self, token: str | None) -> SessionClaims | None:
        """Validate a session token; ``None`` means there is no session."""
        if not token:
            return None

        try:
            pv = preview_jwt(token)
        except InvalidToken as exc:
            logger.debug("Rejected malformed session token: {}", exc)
            return None
        if pv.alg != self._algorithm:
            logger.debug("Rejected session token signed with {}", pv.alg)
            return None

        claims_options = {
            "iss": {"essential": True, "value": self._issuer},
            "sub": {"essential": True},
            "exp": {"essential": True},
            "jti": {"essential": True},
        }
        try:
            claims = jwt.decode(token, self._secret, claims_options=claims_options)
            claims.validate(leeway=self._clock_skew)
        except (JoseError, ValueError) as exc:
            logger.debug("Rejected session token: {}", exc)
            return None

        return SessionClaims.from_payload(dict(claims))
