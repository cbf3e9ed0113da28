from __future__ import annotations

import os
from typing import Any, Optional

from .auth import SESSION_COOKIE_NAME

_REDACTED_HEADERS = {"authorization", "cookie", "set-cookie"}


def _before_send(event: dict[str, Any], hint: dict[str, Any] | None) -> dict[str, Any] | None:
    # Session cookies and login bodies never leave the process
    req = event.get("request") or {}
    hdrs = req.get("headers") or {}
    for k in list(hdrs.keys()):
        if str(k).lower() in _REDACTED_HEADERS:
            hdrs[k] = "[redacted]"
    req["headers"] = hdrs
    cookies = req.get("cookies")
    if isinstance(cookies, dict) and SESSION_COOKIE_NAME in cookies:
        cookies[SESSION_COOKIE_NAME] = "[redacted]"
    data = req.get("data")
    if isinstance(data, dict):
        for key in ("password", "current_password", "new_password", "signup_password"):
            if key in data:
                data[key] = "[redacted]"
    event["request"] = req
    return event


def init_sentry() -> Optional[object]:
    """Initialize Sentry if SENTRY_DSN is set and sentry_sdk is installed.

    Returns the sentry SDK module when initialized, otherwise None.
    """
    dsn = (os.environ.get("SENTRY_DSN") or "").strip()
    if not dsn:
        return None
    try:
        import sentry_sdk  # type: ignore
        from sentry_sdk.integrations.starlette import StarletteIntegration  # type: ignore
    except ImportError:
        return None

    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.0") or 0.0),
        environment=os.environ.get("SENTRY_ENV") or os.environ.get("ENV") or "dev",
        integrations=[StarletteIntegration()],
        before_send=_before_send,
    )
    return sentry_sdk
