"""Account lifecycle: signup, invites, password change and reset."""
from __future__ import annotations

import datetime as dt
import hmac
import logging
import re
import secrets
from typing import Any, Optional

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from core.errors import Conflict, Forbidden, NotFound, ServiceUnavailable, Unauthenticated, ValidationFailed
from core.models import ROLES, Invite, PasswordResetToken, Profile, Shop, StoreGroup, utc_now
from core.repositories import profiles as profiles_repo
from core.repositories import shops as shops_repo
from core.services import scope
from core.services.auth import AuthContext
from core.settings import get_settings

logger = logging.getLogger("shopdesk.accounts")

INVITE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_LENGTH = 6
INVITE_TTL = dt.timedelta(days=7)
RESET_TOKEN_BYTES = 32
RESET_TTL = dt.timedelta(hours=1)
MIN_PASSWORD_LENGTH = 8
RESET_ISSUERS = ("super_admin", "region_manager", "tenant_admin")
ROLE_RANK = {"staff": 0, "tenant_admin": 1, "region_manager": 2, "super_admin": 3}

_SPECIAL = re.compile(r"[^A-Za-z0-9\s]")


def as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # SQLite hands timestamps back naive
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value


def check_password_rule(password: Any) -> str:
    pw = password if isinstance(password, str) else ""
    if len(pw) < MIN_PASSWORD_LENGTH or not _SPECIAL.search(pw):
        raise ValidationFailed(
            "Password must be at least 8 characters and include a special character", code="weak_password"
        )
    return pw


def _check_signup_secret(configured: str, supplied: Any, label: str) -> None:
    if not configured:
        logger.error("%s signup attempted but no signup password is configured", label)
        raise ServiceUnavailable(f"{label} signup is not configured", code="signup_not_configured")
    if not hmac.compare_digest(str(supplied or "").encode(), configured.encode()):
        raise Forbidden(f"Invalid {label} signup password")


def _consume_invite(session: Session, code: Any, now: dt.datetime) -> Invite:
    text = str(code or "").strip().upper()
    if not text:
        raise ValidationFailed("shop_code is required for staff signup")
    invite = session.get(Invite, text)
    if invite is None or invite.used_at is not None or as_utc(invite.expires_at) < now:
        raise ValidationFailed("Invalid or expired invite code", code="invalid_invite")
    invite.used_at = now
    return invite


def signup(session: Session, data: dict[str, Any]) -> Profile:
    login_id = str(data.get("login_id") or "").strip()
    name = str(data.get("name") or "").strip()
    role = str(data.get("role") or "").strip().lower()
    password = data.get("password")
    if not login_id or not password or not name or not role:
        raise ValidationFailed("login_id, password, name, role are required")
    if role not in ROLES:
        raise ValidationFailed("Invalid role")
    check_password_rule(password)

    settings = get_settings()
    if role == "super_admin":
        _check_signup_secret(settings.super_admin_signup_password, data.get("super_admin_signup_password"), "Super admin")
    elif role == "region_manager":
        _check_signup_secret(
            settings.region_manager_signup_password, data.get("region_manager_signup_password"), "Region manager"
        )

    if profiles_repo.login_id_taken(session, login_id):
        raise Conflict("login_id already exists", code="login_id_taken")

    now = utc_now()
    profile = Profile(login_id=login_id, name=name, role=role, password_hash=generate_password_hash(password))
    if role == "tenant_admin":
        shop_name = str(data.get("shop_name") or "").strip()
        if not shop_name:
            raise ValidationFailed("shop_name is required for tenant_admin signup")
        shop = Shop(name=shop_name)
        session.add(shop)
        session.flush()
        profile.shop_id = shop.id
    elif role == "region_manager":
        group_id = str(data.get("managed_store_group_id") or "").strip()
        if not group_id:
            group_name = str(data.get("store_group_name") or "").strip()
            if not group_name:
                raise ValidationFailed("store_group_name is required for region_manager signup")
            group = StoreGroup(name=group_name)
            session.add(group)
            session.flush()
            group_id = group.id
        elif shops_repo.get_store_group(session, group_id) is None:
            raise ValidationFailed("managed_store_group_id does not exist", code="unknown_store_group")
        profile.managed_store_group_id = group_id
    elif role == "staff":
        profile.shop_id = _consume_invite(session, data.get("shop_code"), now).shop_id

    session.add(profile)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise Conflict("login_id already exists", code="login_id_taken") from exc
    logger.info("signup %s as %s", profile.id, role)
    return profile


def change_password(session: Session, auth: AuthContext, current_password: Any, new_password: Any) -> None:
    if not current_password or not new_password:
        raise ValidationFailed("current_password and new_password are required")
    profile = profiles_repo.get_by_id(session, auth.id)
    if profile is None or not check_password_hash(profile.password_hash, str(current_password)):
        raise Unauthenticated("Invalid credentials", code="invalid_credentials")
    profile.password_hash = generate_password_hash(check_password_rule(new_password))
    session.commit()


def reset_link(token: str) -> str:
    return f"{get_settings().app_url}/login?tab=reset_password&token={token}"


def deliver_reset_link(profile: Profile, link: str) -> bool:
    """Post the link to PASSWORD_RESET_WEBHOOK_URL (mailer, messenger bot). Never raises."""
    settings = get_settings()
    url = settings.password_reset_webhook_url
    if not url:
        logger.warning("password reset for %s not delivered: no delivery webhook configured", profile.id)
        return False
    payload = {
        "profile_id": profile.id,
        "login_id": profile.login_id,
        "name": profile.name,
        "reset_link": link,
        "expires_in_hours": int(RESET_TTL.total_seconds() // 3600),
    }
    try:
        resp = httpx.post(url, json=payload, timeout=settings.sheets_fetch_timeout)
        resp.raise_for_status()
    except httpx.HTTPError:
        logger.exception("password reset delivery failed for %s", profile.id)
        return False
    return True


def _issue_reset_link(session: Session, profile: Profile) -> str:
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    session.add(PasswordResetToken(token=token, profile_id=profile.id, expires_at=utc_now() + RESET_TTL))
    session.commit()
    return reset_link(token)


def request_password_reset(session: Session, login_id: Any) -> None:
    """Anonymous "forgot password".

    The link only travels out-of-band through ``deliver_reset_link``; the caller
    learns nothing, not even whether the login id exists.
    """
    if not login_id or not isinstance(login_id, str):
        raise ValidationFailed("login_id is required")
    profile = profiles_repo.get_by_login_id(session, login_id.strip())
    if profile is None:
        logger.info("password reset requested for an unknown login id")
        return
    deliver_reset_link(profile, _issue_reset_link(session, profile))


def issue_reset_link(session: Session, auth: AuthContext, login_id: Any) -> tuple[Profile, str]:
    """Reset link an admin hands over in person.

    Non super admins may only reset accounts ranked below them in a shop they can
    act on; anything else is reported as missing.
    """
    scope.require_role(auth, *RESET_ISSUERS)
    if not login_id or not isinstance(login_id, str):
        raise ValidationFailed("login_id is required")
    profile = profiles_repo.get_by_login_id(session, login_id.strip())
    if profile is None:
        raise NotFound("account not found")
    if not auth.is_super_admin:
        outranked = ROLE_RANK.get(profile.role or "", len(ROLE_RANK)) < ROLE_RANK[auth.role]
        if not outranked or not profile.shop_id:
            raise NotFound("account not found")
        scope.ensure_row_visible(session, auth, profile.shop_id, "account not found")
    return profile, _issue_reset_link(session, profile)


def reset_password(session: Session, token: Any, new_password: Any) -> None:
    if not token or not new_password:
        raise ValidationFailed("token and new_password are required")
    row = session.get(PasswordResetToken, str(token).strip())
    if row is None:
        raise ValidationFailed("유효하지 않거나 만료된 링크입니다.", code="invalid_token")
    if as_utc(row.expires_at) < utc_now():
        session.delete(row)
        session.commit()
        raise ValidationFailed("재설정 링크가 만료되었습니다. 비밀번호 찾기를 다시 시도하세요.", code="expired_token")
    pw = check_password_rule(new_password)
    profile = profiles_repo.get_by_id(session, row.profile_id)
    if profile is None:
        raise ValidationFailed("유효하지 않거나 만료된 링크입니다.", code="invalid_token")
    profile.password_hash = generate_password_hash(pw)
    session.delete(row)
    session.commit()


# --- invites ----------------------------------------------------------------


def _new_code() -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(INVITE_LENGTH))


def serialize_invite(invite: Invite) -> dict[str, Any]:
    return {
        "code": invite.code,
        "shop_id": invite.shop_id,
        "role": invite.role,
        "created_at": invite.created_at.isoformat() if invite.created_at else None,
        "expires_at": invite.expires_at.isoformat() if invite.expires_at else None,
        "used_at": invite.used_at.isoformat() if invite.used_at else None,
    }


def create_invite(session: Session, auth: AuthContext, shop_id: Optional[str]) -> Invite:
    scope.require_role(auth, "super_admin", "tenant_admin")
    target = scope.require_shop(session, auth, shop_id)
    now = utc_now()
    for _ in range(5):
        code = _new_code()
        if session.get(Invite, code) is None:
            break
    else:
        raise Conflict("could not allocate an invite code", code="invite_collision")
    invite = Invite(code=code, shop_id=target, role="staff", created_at=now, expires_at=now + INVITE_TTL)
    session.add(invite)
    session.commit()
    return invite


def list_invites(session: Session, auth: AuthContext, shop_id: Optional[str]) -> list[Invite]:
    scope.require_role(auth, "super_admin", "tenant_admin")
    target = scope.require_shop(session, auth, shop_id)
    return session.query(Invite).filter(Invite.shop_id == target).order_by(Invite.created_at.desc()).all()
