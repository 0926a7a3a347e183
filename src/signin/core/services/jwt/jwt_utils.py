import base64
import json
from dataclasses import dataclass
from typing import Any, Final

from src.signin.core.errors import InvalidToken

# ---------------- tunables ----------------
MAX_JWT_CHARS: Final = 8192
MAX_SEGMENT_CHARS: Final = 8192
MAX_HEADER_BYTES: Final = 8 * 1024
MAX_PAYLOAD_BYTES: Final = 64 * 1024
_ALLOWED: Final = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_."
)  # no '='


# --------------- one-pass prefilter ---------------
def _prefilter_compact_jwt(token: str) -> tuple[str, str, str]:
    if not token or len(token) > MAX_JWT_CHARS:
        raise InvalidToken("Invalid JWT size")
    first = second = -1
    for i, ch in enumerate(token):
        if ch not in _ALLOWED:
            raise InvalidToken("Invalid JWT characters")
        if ch == ".":
            if first < 0:
                first = i
            elif second < 0:
                second = i
            else:  # third dot
                raise InvalidToken("Invalid JWT format")
    # require exactly two dots and non-empty segments
    if first <= 0 or second - first <= 1 or second >= len(token) - 1:
        raise InvalidToken("Invalid JWT format")
    h, p, s = token[:first], token[first + 1 : second], token[second + 1 :]
    if (
        len(h) > MAX_SEGMENT_CHARS
        or len(p) > MAX_SEGMENT_CHARS
        or len(s) > MAX_SEGMENT_CHARS
    ):
        raise InvalidToken("Invalid JWT segment size")
    return h, p, s


def _b64url_decode_unpadded(seg: str, what: str, max_bytes: int) -> bytes:
    pad = (-len(seg)) % 4
    try:
        raw = base64.urlsafe_b64decode((seg + "=" * pad).encode("ascii"))
    except ValueError as e:
        raise InvalidToken(f"Invalid base64url in {what}") from e
    if len(raw) > max_bytes:
        raise InvalidToken(f"{what} too large")
    return raw


def _decode_json_object(raw: bytes, what: str) -> dict[str, Any]:
    try:
        obj = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise InvalidToken(f"Non-UTF8 {what}") from e
    except json.JSONDecodeError as e:
        raise InvalidToken(f"Invalid JSON in {what}") from e
    if not isinstance(obj, dict):
        raise InvalidToken(f"{what} must be a JSON object")
    return obj


@dataclass(frozen=True)
class JwtPreview:
    header: dict[str, Any]
    claims: dict[str, Any]
    alg: str | None
    kid: str | None
    iss: str | None


def preview_jwt(token: str) -> JwtPreview:
    """Split and decode header+payload exactly once, without verifying."""
    h_seg, p_seg, _ = _prefilter_compact_jwt(token)
    h_raw = _b64url_decode_unpadded(h_seg, "JWT header", MAX_HEADER_BYTES)
    p_raw = _b64url_decode_unpadded(p_seg, "JWT payload", MAX_PAYLOAD_BYTES)
    header = _decode_json_object(h_raw, "JWT header")
    claims = _decode_json_object(p_raw, "JWT payload")
    iss = claims.get("iss")
    if iss and isinstance(iss, str):
        iss = iss.rstrip("/")  # normalize
    else:
        iss = None

    return JwtPreview(
        header=header,
        claims=claims,
        alg=header.get("alg"),
        kid=header.get("kid"),
        iss=iss,
    )


def as_list(v: Any) -> list[Any]:
    return [v] if isinstance(v, str) else list(v or ())


def select_key_set(jwks: dict[str, Any], kid: str | None) -> dict[str, Any]:
    """Narrow a key set to the key named by ``kid``.

    Raises:
        InvalidToken: If ``kid`` is given and no key matches it
    """
    if not kid:
        return jwks
    keys = [k for k in jwks.get("keys", []) if k.get("kid") == kid]
    if not keys:
        raise InvalidToken(f"No JWK matches kid={kid}")
    return {"keys": keys}
