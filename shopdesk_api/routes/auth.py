from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import SESSION_COOKIE_NAME
from core.errors import TooManyRequests, Unauthenticated
from core.rate_limit import client_ip, get_login_rate_limiter
from core.services import accounts
from core.services.audit import record_event
from core.services.auth import AuthContext, authenticate, context_for, issue_session
from core.settings import get_settings

from ..deps import get_db, request_meta, require_auth
from ..schemas import (
    AuthContextResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    PasswordChangeRequest,
    ResetLinkRequest,
    ResetLinkResponse,
    ResetPasswordRequest,
    SignupRequest,
    SimpleOkResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("shopdesk.api.auth")


@router.post("/login")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    settings = get_settings()
    limiter = get_login_rate_limiter()
    key = f"login:{client_ip(request)}"
    window = settings.login_rate_limit_window
    if limiter.is_blocked(key, window, settings.login_rate_limit_max):
        raise TooManyRequests("too many attempts")
    try:
        profile = authenticate(db, payload.login_id, payload.password)
    except Unauthenticated:
        limiter.hit(key, window)
        record_event(db, actor=payload.login_id or "unknown", action="login", result="denied", **request_meta(request))
        raise
    auth = context_for(profile)
    if auth is None:
        # account exists but has no usable role yet
        raise Unauthenticated("Invalid credentials", code="invalid_credentials")
    token = issue_session(profile)
    limiter.reset(key)
    record_event(db, actor=profile.id, action="login", shop_id=profile.shop_id, **request_meta(request))

    response = JSONResponse({"ok": True, "user": auth.as_dict()})
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        max_age=settings.session_ttl_days * 24 * 3600,
        path="/",
    )
    return response


@router.post("/logout", response_model=SimpleOkResponse)
def logout():
    response = JSONResponse({"ok": True})
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/me", response_model=AuthContextResponse)
def me(auth: AuthContext = Depends(require_auth)):
    return auth.as_dict()


@router.post("/signup", status_code=201)
def signup(request: Request, payload: SignupRequest, db: Session = Depends(get_db)):
    profile = accounts.signup(db, payload.model_dump())
    record_event(
        db,
        actor=profile.id,
        action="signup",
        shop_id=profile.shop_id,
        meta={"role": profile.role},
        **request_meta(request),
    )
    return {
        "id": profile.id,
        "name": profile.name,
        "role": profile.role,
        "shop_id": profile.shop_id,
        "store_group_id": profile.managed_store_group_id,
    }


@router.patch("/password", response_model=SimpleOkResponse)
def change_password(
    payload: PasswordChangeRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    accounts.change_password(db, auth, payload.current_password, payload.new_password)
    return SimpleOkResponse()


FORGOT_PASSWORD_MESSAGE = "등록된 계정이라면 비밀번호 재설정 안내가 전달됩니다."


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    settings = get_settings()
    limiter = get_login_rate_limiter()
    key = f"forgot:{client_ip(request)}"
    window = settings.login_rate_limit_window
    if limiter.is_blocked(key, window, settings.login_rate_limit_max):
        raise TooManyRequests("too many attempts")
    limiter.hit(key, window)
    accounts.request_password_reset(db, payload.login_id)
    return {"ok": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-links", response_model=ResetLinkResponse, status_code=201)
def issue_reset_link(
    request: Request,
    payload: ResetLinkRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    profile, link = accounts.issue_reset_link(db, auth, payload.login_id)
    record_event(
        db,
        actor=auth.id,
        action="reset_link",
        resource=f"profile:{profile.id}",
        shop_id=profile.shop_id,
        **request_meta(request),
    )
    return {"login_id": profile.login_id, "reset_link": link, "expires_in_hours": 1}


@router.post("/reset-password", response_model=SimpleOkResponse)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    accounts.reset_password(db, payload.token, payload.new_password)
    return SimpleOkResponse()
