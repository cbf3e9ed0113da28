from __future__ import annotations

from typing import Generator, Optional

from dotenv import load_dotenv
from fastapi import Cookie, Depends, Request
from sqlalchemy.orm import Session

from core.auth import SESSION_COOKIE_NAME
from core.db import fastapi_session
from core.errors import Unauthenticated
from core.rate_limit import client_ip
from core.services.auth import AuthContext, resolve_auth_context

# Load .env (개발 편의)
load_dotenv()


def get_db() -> Generator[Session, None, None]:
    yield from fastapi_session()


def require_auth(
    db: Session = Depends(get_db),
    session_cookie: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> AuthContext:
    """The only identity source is the signed session cookie."""
    auth = resolve_auth_context(db, session_cookie)
    if auth is None:
        raise Unauthenticated("Unauthorized")
    return auth


def request_meta(request: Request) -> dict[str, str]:
    """ip/ua pair for audit events."""
    return {"ip": client_ip(request), "ua": request.headers.get("user-agent", "")}
