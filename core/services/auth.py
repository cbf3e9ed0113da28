from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from core.auth import sign_session, verify_session
from core.errors import ServiceUnavailable, Unauthenticated
from core.models import ROLES, Profile
from core.repositories import profiles as profiles_repo
from core.settings import get_settings


@dataclass(frozen=True)
class AuthContext:
    """Who is asking. Built per request, never cached across requests."""

    id: str
    role: str
    shop_id: Optional[str]
    store_group_id: Optional[str]
    name: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "shop_id": self.shop_id,
            "store_group_id": self.store_group_id,
            "name": self.name,
        }


def context_for(profile: Profile) -> AuthContext | None:
    if profile is None or not profile.role or profile.role not in ROLES:
        return None
    return AuthContext(
        id=profile.id,
        role=profile.role,
        shop_id=profile.shop_id,
        store_group_id=profile.managed_store_group_id,
        name=profile.name or "",
    )


def resolve_auth_context(session: Session, token: Optional[str]) -> AuthContext | None:
    """Session cookie → AuthContext, or None when anything is off."""
    payload = verify_session(get_settings().session_secret, token)
    if not payload:
        return None
    profile = profiles_repo.get_by_id(session, str(payload["sub"]))
    if profile is None:
        return None
    return context_for(profile)


def authenticate(session: Session, login_id: str, password: str) -> Profile:
    login = (login_id or "").strip()
    if not login or not password:
        raise Unauthenticated("Invalid credentials", code="invalid_credentials")
    profile = profiles_repo.get_by_login_id(session, login)
    if profile is None or not check_password_hash(profile.password_hash, password):
        raise Unauthenticated("Invalid credentials", code="invalid_credentials")
    return profile


def issue_session(profile: Profile) -> str:
    settings = get_settings()
    if not settings.session_secret:
        raise ServiceUnavailable("SESSION_SECRET is not configured", code="session_not_configured")
    return sign_session(settings.session_secret, profile.id, ttl_days=settings.session_ttl_days)
