from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.db import init_database
from core.errors import ServiceError, StoreFailure
from core.logging_utils import get_request_id, maybe_enable_json_logging
from core.observability import init_sentry
from core.settings import get_settings

from .deps import get_db
from .routes.auth import router as auth_router
from .routes.calendar import router as calendar_router
from .routes.crm import router as crm_router
from .routes.notices import router as notices_router
from .routes.policies import router as policies_router
from .routes.reports import router as reports_router
from .routes.settings import router as settings_router
from .routes.shops import router as shops_router
from .routes.stats import router as stats_router
from .schemas import HealthResponse, MetaResponse

logger = logging.getLogger("shopdesk.api")


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    if not settings.auto_apply_ddl:
        logger.info("SHOPDESK_AUTO_APPLY_DDL=0: skipping automatic DDL. Ensure Alembic migrations have been applied.")
    if not settings.session_secret:
        logger.warning("SESSION_SECRET is not set; logins will be refused until it is configured.")
    init_database()
    yield


router = APIRouter()
router.include_router(auth_router)
router.include_router(crm_router)
router.include_router(reports_router)
router.include_router(settings_router)
router.include_router(shops_router)
router.include_router(notices_router)
router.include_router(calendar_router)
router.include_router(stats_router)
router.include_router(policies_router)


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or get_request_id() or ""


def _format_error_payload(detail: object, code: Optional[str] = None) -> dict:
    if isinstance(detail, dict):
        message = detail.get("error") or detail.get("detail") or str(detail)
        code = code or detail.get("code")
    else:
        message = str(detail or "")
    payload = {"ok": False, "error": message or "error"}
    if code:
        payload["code"] = str(code)
    return payload


def register_exception_handlers(target) -> None:
    def _wants_problem_json(request: Request) -> bool:
        accept = (request.headers.get("accept") or "").lower()
        return "application/problem+json" in accept

    def _problem_payload(request: Request, status: int, detail: str | dict | list | None = None, code: Optional[str] = None):
        try:
            title = HTTPStatus(status).phrase
        except ValueError:
            title = "Error"
        if isinstance(detail, dict):
            det = detail.get("detail") or detail.get("error") or detail
        else:
            det = detail or ""
        content = {
            "type": "about:blank",
            "title": title,
            "status": status,
            "detail": det,
            "instance": str(request.url.path),
            "request_id": _request_id(request),
        }
        if code:
            content["code"] = code
        return content

    def _render(request: Request, status: int, payload: dict, problem_detail: object = None) -> JSONResponse:
        if _wants_problem_json(request):
            content = _problem_payload(request, status, problem_detail or payload.get("error"), payload.get("code"))
            return JSONResponse(status_code=status, content=content, media_type="application/problem+json")
        payload["request_id"] = _request_id(request)
        return JSONResponse(status_code=status, content=payload)

    async def service_error_handler(request: Request, exc: ServiceError):
        if isinstance(exc, StoreFailure):
            logger.error("store failure on %s: %s", request.url.path, exc.message)
        return _render(request, exc.status_code, _format_error_payload(exc.message, exc.code))

    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _render(request, exc.status_code, _format_error_payload(exc.detail), exc.detail)

    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        payload = {
            "ok": False,
            "error": "validation_error",
            "code": "validation_error",
            "details": exc.errors(),
        }
        return _render(request, 422, payload, {"detail": exc.errors()})

    async def sa_integrity_error_handler(request: Request, exc: IntegrityError):
        payload = {"ok": False, "error": "constraint_violation", "code": "constraint_violation"}
        return _render(request, 400, payload)

    async def sa_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("database error on %s", request.url.path)
        payload = {"ok": False, "error": "database error", "code": "store_failure"}
        return _render(request, 500, payload)

    target.add_exception_handler(ServiceError, service_error_handler)
    target.add_exception_handler(StarletteHTTPException, http_exception_handler)
    target.add_exception_handler(RequestValidationError, validation_exception_handler)
    target.add_exception_handler(IntegrityError, sa_integrity_error_handler)
    target.add_exception_handler(SQLAlchemyError, sa_error_handler)


@router.get("/healthz", response_model=HealthResponse)
def healthz(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("healthz failed: %s", e)
        return JSONResponse(status_code=503, content={"ok": False, "status": "unhealthy", "error": str(e)})
    return {"ok": True, "status": "healthy"}


@router.get("/meta", response_model=MetaResponse)
def meta():
    settings = get_settings()
    return {
        "app_version": settings.app_version,
        "git_sha": settings.git_sha or "",
        "build_ts": settings.build_ts or "",
    }


def create_app() -> FastAPI:
    """Bare API application, without the host middleware stack."""
    maybe_enable_json_logging()
    init_sentry()
    application = FastAPI(title="Shopdesk API", lifespan=lifespan)
    application.include_router(router)
    register_exception_handlers(application)
    return application
