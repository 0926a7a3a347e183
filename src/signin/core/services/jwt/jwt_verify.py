"""Identity token verification."""

import time

from authlib.jose import JoseError, JsonWebKey, jwt
from loguru import logger

from src.signin.core.errors import CannotExtractPayload, InvalidToken
from src.signin.core.models.claims import IdentityClaims
from src.signin.core.services.jwt.jwks import JwksService
from src.signin.core.services.jwt.jwt_utils import as_list, preview_jwt, select_key_set
from src.signin.runtime.config.config_data import ConfigData, OIDCProviderConfig


class IdentityTokenVerifier:
    """Verifies provider-issued ID tokens against the provider's JWKS.

    Checks the algorithm allowlist, signature, issuer, audience and the
    registered time claims, then extracts :class:`IdentityClaims`. The
    expected audience is the application's own client id.
    """

    def __init__(
        self,
        jwks_service: JwksService,
        *,
        issuers: list[str],
        audience: str,
        jwks_uri: str,
        allowed_algorithms: list[str],
        clock_skew: int = 60,
    ):
        self._jwks_service = jwks_service
        self._issuers = [iss.rstrip("/") for iss in issuers]
        self._audience = audience
        self._jwks_uri = jwks_uri
        self._allowed_algorithms = list(allowed_algorithms)
        self._clock_skew = clock_skew

    @classmethod
    def for_google(cls, config: ConfigData, jwks_service: JwksService) -> "IdentityTokenVerifier":
        one_tap = config.google_one_tap
        return cls(
            jwks_service,
            issuers=one_tap.issuers,
            audience=one_tap.client_id,
            jwks_uri=one_tap.jwks_uri,
            allowed_algorithms=config.jwt.allowed_algorithms,
            clock_skew=config.jwt.clock_skew,
        )

    @classmethod
    def for_provider(
        cls,
        provider_cfg: OIDCProviderConfig,
        config: ConfigData,
        jwks_service: JwksService,
    ) -> "IdentityTokenVerifier":
        return cls(
            jwks_service,
            issuers=[provider_cfg.issuer],
            audience=provider_cfg.client_id,
            jwks_uri=provider_cfg.jwks_uri,
            allowed_algorithms=config.jwt.allowed_algorithms,
            clock_skew=config.jwt.clock_skew,
        )

    @property
    def audience(self) -> str:
        return self._audience

    async def verify(self, token: str, *, expected_nonce: str | None = None) -> IdentityClaims:
        """Verify ``token`` and return its claims.

        Raises:
            InvalidToken: If any verification check fails
            CannotExtractPayload: If the verified token carries no subject
            KeySetUnavailable: If the provider keys cannot be fetched
        """
        if not token:
            raise InvalidToken("Empty identity token")
        if not self._audience:
            raise InvalidToken("No expected audience configured")

        pv = preview_jwt(token)

        # alg allowlist
        if pv.alg not in self._allowed_algorithms:
            raise InvalidToken(f"Disallowed JWT algorithm: {pv.alg}")

        if not pv.iss or pv.iss not in self._issuers:
            raise InvalidToken(f"Invalid issuer: {pv.iss}")

        jwks = await self._jwks_service.fetch_jwks(self._jwks_uri)
        key_set = JsonWebKey.import_key_set(select_key_set(jwks, pv.kid))

        claims_options = {
            # pv.iss is normalized; the signed claim must carry the same raw value
            "iss": {"essential": True, "values": [pv.claims["iss"]]},
            "aud": {"essential": True, "values": [self._audience]},
            "exp": {"essential": True},
        }

        # verify signature + registered claims
        try:
            logger.debug(
                "Verifying identity token from issuer {} for audience {}",
                pv.iss,
                self._audience,
            )
            claims = jwt.decode(token, key_set, claims_options=claims_options)
            claims.validate(leeway=self._clock_skew)
        except (JoseError, ValueError) as exc:
            raise InvalidToken(f"JWT error: {exc}") from exc

        # extra temporal sanity
        now = int(time.time())
        iat = claims.get("iat")
        if iat is not None and int(iat) > now + self._clock_skew:
            raise InvalidToken("Invalid iat with skew")

        # azp must name us when the token is issued to several audiences
        aud_list = as_list(claims.get("aud"))
        azp = claims.get("azp")
        if len(aud_list) > 1 and azp != self._audience:
            raise InvalidToken("Invalid azp for multi-audience token")

        if expected_nonce is not None and claims.get("nonce") != expected_nonce:
            raise InvalidToken("Invalid/missing nonce")

        if not claims or not claims.get("sub"):
            raise CannotExtractPayload("Cannot extract payload from sign-in token")

        return IdentityClaims.from_payload(dict(claims))
