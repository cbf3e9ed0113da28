"""Stateless session tokens for the ``ps_session`` cookie.

Format: ``b64url(json payload) + "." + b64url(HMAC-SHA256(payload_b64, secret))``.
The MAC covers the encoded payload string, not the raw JSON bytes.
"""
from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from hashlib import sha256
from typing import Any, Optional

SESSION_COOKIE_NAME = "ps_session"
DEFAULT_TTL_DAYS = 7


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip('=')


def _b64url_decode(data: str) -> bytes:
    s = data + '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(s.encode())


def _mac(secret: str, payload_b64: str) -> bytes:
    return hmac.new(secret.encode(), payload_b64.encode(), sha256).digest()


def sign_session(secret: Optional[str], user_id: str, *, ttl_days: int = DEFAULT_TTL_DAYS, now: Optional[int] = None) -> str:
    if not secret:
        raise RuntimeError("SESSION_SECRET is not configured")
    issued = int(time.time()) if now is None else int(now)
    payload = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + int(ttl_days) * 24 * 60 * 60,
    }
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
    payload_b64 = _b64url(body)
    return f"{payload_b64}.{_b64url(_mac(secret, payload_b64))}"


def verify_session(secret: Optional[str], token: Optional[str], *, now: Optional[int] = None) -> dict[str, Any] | None:
    """Return the payload for a valid, unexpired token, otherwise None."""
    if not secret or not token or not isinstance(token, str):
        return None
    parts = token.split('.')
    if len(parts) != 2:
        return None
    payload_b64, part_sig = parts
    try:
        got_sig = _b64url_decode(part_sig)
    except (binascii.Error, ValueError):
        return None
    if not hmac.compare_digest(_mac(secret, payload_b64), got_sig):
        return None
    try:
        payload = json.loads(_b64url_decode(payload_b64).decode())
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    if not payload.get("sub") or payload.get("exp") in (None, ""):
        return None
    try:
        exp = int(payload["exp"])
    except (TypeError, ValueError):
        return None
    current = int(time.time()) if now is None else int(now)
    if exp < current:
        return None
    return payload
