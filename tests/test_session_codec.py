from __future__ import annotations

import base64
import json

import pytest

from core.auth import sign_session, verify_session


NOW = 1_700_000_000


def test_round_trip_returns_subject():
    tok = sign_session("s3cret", "user-1", ttl_days=7, now=NOW)
    payload = verify_session("s3cret", tok, now=NOW + 10)
    assert payload["sub"] == "user-1"
    assert payload["exp"] == NOW + 7 * 86400


def test_wrong_secret_or_missing_secret_fails_closed():
    tok = sign_session("s3cret", "user-1", now=NOW)
    assert verify_session("other", tok, now=NOW) is None
    assert verify_session("", tok, now=NOW) is None
    assert verify_session(None, tok, now=NOW) is None


def test_expired_token_rejected():
    tok = sign_session("s3cret", "user-1", ttl_days=1, now=NOW)
    assert verify_session("s3cret", tok, now=NOW + 86400) is not None
    assert verify_session("s3cret", tok, now=NOW + 86401) is None


def test_sign_without_secret_raises():
    with pytest.raises(RuntimeError):
        sign_session("", "user-1")


@pytest.mark.parametrize("token", [None, "", "abc", "a.b.c", "!!!.???", "eyJ9.", ".sig"])
def test_malformed_tokens_rejected(token):
    assert verify_session("s3cret", token, now=NOW) is None


def test_tampered_payload_rejected():
    tok = sign_session("s3cret", "user-1", now=NOW)
    _, sig = tok.split(".")
    forged = base64.urlsafe_b64encode(
        json.dumps({"sub": "admin", "iat": NOW, "exp": NOW + 999999}).encode()
    ).decode().rstrip("=")
    assert verify_session("s3cret", f"{forged}.{sig}", now=NOW) is None


def test_signed_payload_missing_subject_rejected():
    import hmac
    from hashlib import sha256

    body = base64.urlsafe_b64encode(json.dumps({"exp": NOW + 100}).encode()).decode().rstrip("=")
    mac = base64.urlsafe_b64encode(hmac.new(b"s3cret", body.encode(), sha256).digest()).decode().rstrip("=")
    assert verify_session("s3cret", f"{body}.{mac}", now=NOW) is None
