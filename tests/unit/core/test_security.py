"""Tests for security utilities."""

import base64
import hashlib
import time

import pytest

from src.signin.core.security import (
    extract_client_fingerprint,
    generate_csrf_token,
    generate_nonce,
    generate_pkce_pair,
    generate_state,
    hash_client_fingerprint,
    sanitize_return_url,
    validate_csrf_token,
)

SECRET = "csrf-secret"


class TestTokenGeneration:
    def test_pkce_challenge_is_s256_of_verifier(self):
        verifier, challenge = generate_pkce_pair()

        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
            .decode()
            .rstrip("=")
        )
        assert challenge == expected
        assert 43 <= len(verifier) <= 128

    def test_state_and_nonce_are_unique(self):
        assert generate_state() != generate_state()
        assert generate_nonce() != generate_nonce()


class TestCSRF:
    def test_token_validates_for_its_session(self):
        token = generate_csrf_token(SECRET, "jti-1")
        assert validate_csrf_token(SECRET, "jti-1", token)

    def test_token_is_bound_to_session(self):
        token = generate_csrf_token(SECRET, "jti-1")
        assert not validate_csrf_token(SECRET, "jti-2", token)

    def test_token_is_bound_to_secret(self):
        token = generate_csrf_token(SECRET, "jti-1")
        assert not validate_csrf_token("other-secret", "jti-1", token)

    @pytest.mark.parametrize("token", [None, "", "no-colon", "abc:def", "123:"])
    def test_malformed_tokens_are_rejected(self, token):
        assert not validate_csrf_token(SECRET, "jti-1", token)

    def test_old_tokens_expire(self):
        old_hour = int(time.time() // 3600) - 13
        token = generate_csrf_token(SECRET, "jti-1", timestamp=old_hour)

        assert not validate_csrf_token(SECRET, "jti-1", token, max_age_hours=12)
        assert validate_csrf_token(SECRET, "jti-1", token, max_age_hours=24)


class TestSanitizeReturnUrl:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "/"),
            ("", "/"),
            ("/dashboard?tab=1", "/dashboard?tab=1"),
            ("//evil.example.com", "/"),
            ("/\\evil.example.com", "/"),
            ("https://evil.example.com/", "/"),
            ("javascript:alert(1)", "/"),
        ],
    )
    def test_only_relative_paths_without_allowlist(self, value, expected):
        assert sanitize_return_url(value) == expected

    def test_allowlisted_absolute_url(self):
        url = "https://app.example.com/home"
        assert sanitize_return_url(url, allowed_hosts=["app.example.com"]) == url
        assert sanitize_return_url(url, allowed_hosts=["other.example.com"]) == "/"


class TestClientFingerprint:
    def test_stable_for_same_client(self):
        assert hash_client_fingerprint("UA", "1.2.3.4") == hash_client_fingerprint("UA", "1.2.3.4")
        assert hash_client_fingerprint("UA", "1.2.3.4") != hash_client_fingerprint("UA", "5.6.7.8")

    def test_forwarded_header_wins(self, request_factory):
        request = request_factory(
            {"user-agent": "UA", "x-forwarded-for": "9.9.9.9, 10.0.0.1"}
        )
        assert extract_client_fingerprint(request) == hash_client_fingerprint("UA", "9.9.9.9")

    def test_unknown_client(self):
        expected = hashlib.sha256(b"unknown-client").hexdigest()
        assert hash_client_fingerprint(None, None) == expected
