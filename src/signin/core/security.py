"""Security utilities for the sign-in flows."""

import base64
import hashlib
import hmac
import secrets
import time
from urllib.parse import urlparse

from fastapi import Request


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token.

    Args:
        length: Number of random bytes to generate (default 32)

    Returns:
        URL-safe base64 encoded token
    """
    return (
        base64.urlsafe_b64encode(secrets.token_bytes(length))
        .decode("utf-8")
        .rstrip("=")
    )


def generate_nonce() -> str:
    """Generate a cryptographically secure nonce for the OIDC flow."""
    return generate_secure_token(32)


def generate_state() -> str:
    """Generate a cryptographically secure state parameter for CSRF protection."""
    return generate_secure_token(32)


def generate_pkce_pair() -> tuple[str, str]:
    """Generate PKCE code verifier and challenge pair.

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    code_verifier = generate_secure_token(32)

    challenge_bytes = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    code_challenge = (
        base64.urlsafe_b64encode(challenge_bytes).decode("utf-8").rstrip("=")
    )

    return code_verifier, code_challenge


def generate_csrf_token(secret: str, session_id: str, timestamp: int | None = None) -> str:
    """Generate CSRF token bound to a session and time.

    Args:
        secret: HMAC key (the session signing secret)
        session_id: Session identifier to bind the token to (the session jti)
        timestamp: Optional timestamp (defaults to current hour)

    Returns:
        HMAC-based CSRF token
    """
    if timestamp is None:
        timestamp = int(time.time() // 3600)

    message = f"{session_id}:{timestamp}"
    csrf_token = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()

    # Include timestamp for verification
    return f"{timestamp}:{csrf_token}"


def validate_csrf_token(
    secret: str, session_id: str, csrf_token: str | None, max_age_hours: int = 12
) -> bool:
    """Validate CSRF token for session.

    Returns:
        True if valid, False otherwise
    """
    if not csrf_token:
        return False

    try:
        token_timestamp, token_value = csrf_token.split(":", 1)
        timestamp = int(token_timestamp)
    except ValueError:
        return False

    current_hour = int(time.time() // 3600)
    if current_hour - timestamp > max_age_hours:
        return False

    expected_value = generate_csrf_token(secret, session_id, timestamp).split(":", 1)[1]

    # Constant-time comparison
    return hmac.compare_digest(expected_value, token_value)


def sanitize_return_url(
    return_to: str | None, allowed_hosts: list[str] | None = None
) -> str:
    """Sanitize return URL to prevent open redirects.

    Args:
        return_to: User-provided return URL
        allowed_hosts: Optional list of allowed hosts for absolute URLs

    Returns:
        Sanitized return URL (relative path or allowed absolute URL)
    """
    if not return_to:
        return "/"

    return_to = return_to.strip()

    # Allow relative paths starting with /
    if return_to.startswith("/") and not return_to.startswith("//"):
        if all(ord(c) >= 32 for c in return_to) and "\\" not in return_to:
            return return_to

    # Check absolute URLs against allowlist
    if allowed_hosts and return_to.startswith(("http://", "https://")):
        parsed = urlparse(return_to)
        if parsed.hostname in allowed_hosts:
            return return_to

    return "/"


def hash_client_fingerprint(
    user_agent: str | None, client_ip: str | None = None
) -> str:
    """Create a stable fingerprint for client context binding.

    Returns:
        SHA256 hash of client characteristics
    """
    components = []

    if user_agent:
        components.append(user_agent.strip())

    if client_ip:
        components.append(client_ip.strip())

    if not components:
        components.append("unknown-client")

    fingerprint_data = "|".join(components)
    return hashlib.sha256(fingerprint_data.encode("utf-8")).hexdigest()


def extract_client_fingerprint(request: Request) -> str:
    """Extract and hash client fingerprint from a FastAPI request."""
    user_agent = request.headers.get("user-agent")

    client_ip = None
    # Check for forwarded headers (in order of preference)
    for header in ("x-forwarded-for", "x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            # Take first IP if comma-separated list
            client_ip = value.split(",")[0].strip()
            break

    if not client_ip and request.client:
        client_ip = request.client.host

    return hash_client_fingerprint(user_agent, client_ip)
