from __future__ import annotations

import os
import time
import uuid
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from core.auth import SESSION_COOKIE_NAME
from core.logging_utils import get_request_id, maybe_enable_json_logging, set_request_id
from core.metrics import request_metrics
from core.observability import init_sentry
from core.settings import get_settings
from shopdesk_api.main import lifespan as api_lifespan, router as api_router
from shopdesk_api.main import register_exception_handlers as register_api_exception_handlers


def _resolve_cors_origins() -> list[str]:
    origins_env = (os.environ.get("API_CORS_ORIGINS") or "").strip()
    if origins_env:
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    api_base = (os.environ.get("API_BASE_URL") or "").strip()
    if api_base:
        return [api_base.rstrip("/")]
    origins = [
        "http://localhost:5000",
        "http://127.0.0.1:5000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]
    app_url = get_settings().app_url
    if app_url not in origins:
        origins.append(app_url)
    return origins


def _same_origin(value: str, request: Request) -> bool:
    parsed = urlparse(value)
    return parsed.scheme == request.url.scheme and parsed.netloc == request.url.netloc


def create_app() -> FastAPI:
    # Optional observability wiring (no-op if not configured)
    maybe_enable_json_logging()
    init_sentry()
    application = FastAPI(title="Shopdesk", lifespan=api_lifespan)
    cors_origins = _resolve_cors_origins()

    # Session cookie travels cross-origin from the SPA, so credentials are allowed.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(api_router, prefix="/api")
    register_api_exception_handlers(application)

    @application.get("/", include_in_schema=False)
    def root_redirect():
        return RedirectResponse(url="/docs", status_code=307)

    @application.middleware("http")
    async def _origin_guard(request: Request, call_next):
        # cookie-authenticated writes must come from this host or a configured CORS origin
        unsafe = request.method.upper() in {"POST", "PUT", "PATCH", "DELETE"}
        path = request.url.path or ""
        if unsafe and path.startswith("/api") and request.cookies.get(SESSION_COOKIE_NAME):
            source = (request.headers.get("origin") or request.headers.get("referer") or "").strip()
            if source and not _same_origin(source, request):
                parsed = urlparse(source)
                if f"{parsed.scheme}://{parsed.netloc}" not in cors_origins:
                    return JSONResponse(
                        status_code=403,
                        content={
                            "ok": False,
                            "error": "invalid origin",
                            "code": "forbidden",
                            "request_id": get_request_id() or "",
                        },
                    )
        return await call_next(request)

    @application.middleware("http")
    async def security_headers(request, call_next):
        resp = await call_next(request)
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        resp.headers["Cross-Origin-Resource-Policy"] = "same-site"
        resp.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        resp.headers.setdefault(
            "Permissions-Policy",
            "geolocation=(), microphone=(), camera=(), usb=(), payment=()",
        )
        if "Content-Security-Policy-Report-Only" not in resp.headers:
            resp.headers["Content-Security-Policy-Report-Only"] = "default-src 'self'; frame-ancestors 'none'"
        # HSTS only when the request is over HTTPS (direct or via proxy header)
        xf_proto = request.headers.get("x-forwarded-proto", "").split(",")[0].strip().lower()
        scheme = (request.url.scheme or "").lower()
        if (scheme == "https" or xf_proto == "https") and "strict-transport-security" not in resp.headers:
            resp.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return resp

    @application.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            # label by route template; unmatched paths share one series
            route = getattr(request.scope.get("route"), "path", None) or "unmatched"
            request_metrics.observe(route, request.method, status, time.perf_counter() - started)

    @application.get("/metrics", include_in_schema=False)
    def metrics():
        return PlainTextResponse(request_metrics.export(), media_type="text/plain; version=0.0.4; charset=utf-8")

    # Registered last so it runs outermost and the id is set before the guards above.
    @application.middleware("http")
    async def request_id_middleware(request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        set_request_id(rid)
        resp = await call_next(request)
        resp.headers["X-Request-ID"] = rid
        return resp

    def custom_openapi():
        if application.openapi_schema:
            return application.openapi_schema
        openapi_schema = get_openapi(
            title=application.title,
            version=get_settings().app_version,
            description="Shop chain back office API (session cookie auth, problem+json errors).",
            routes=application.routes,
        )
        comps = openapi_schema.setdefault("components", {})
        security = comps.setdefault("securitySchemes", {})
        security.setdefault(
            "SessionCookie",
            {"type": "apiKey", "in": "cookie", "name": SESSION_COOKIE_NAME},
        )
        params = comps.setdefault("parameters", {})
        params.setdefault(
            "IdempotencyKey",
            {
                "name": "Idempotency-Key",
                "in": "header",
                "required": False,
                "schema": {"type": "string"},
                "description": "Provide to make POST /api/reports idempotent.",
            },
        )
        schemas = comps.setdefault("schemas", {})
        schemas.setdefault(
            "ProblemDetails",
            {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "title": {"type": "string"},
                    "status": {"type": "integer"},
                    "detail": {"type": "string"},
                    "instance": {"type": "string"},
                    "code": {"type": "string"},
                    "request_id": {"type": "string"},
                },
                "example": {
                    "type": "about:blank",
                    "title": "Conflict",
                    "status": 409,
                    "detail": "Already moved to report",
                    "instance": "/api/crm/consultations/c1/move-to-report",
                    "code": "already_moved",
                    "request_id": "c7f2d9e2a1b34f7f8a90d1",
                },
            },
        )
        paths = openapi_schema.get("paths", {})
        for path, ops in paths.items():
            for method, op in ops.items():
                if method.lower() not in {"post", "put", "patch", "delete"}:
                    continue
                if path == "/api/reports" and method.lower() == "post":
                    params_list = op.setdefault("parameters", [])
                    params_list.append({"$ref": "#/components/parameters/IdempotencyKey"})
                responses = op.setdefault("responses", {})
                for code in ("400", "401", "403", "404", "409"):
                    responses.setdefault(
                        code,
                        {
                            "description": "Error",
                            "content": {
                                "application/problem+json": {
                                    "schema": {"$ref": "#/components/schemas/ProblemDetails"}
                                }
                            },
                        },
                    )
        if "/api/quotes/settlement" in paths and "post" in paths["/api/quotes/settlement"]:
            op = paths["/api/quotes/settlement"]["post"]
            rb = op.setdefault("requestBody", {}).setdefault("content", {}).setdefault("application/json", {})
            rb.setdefault(
                "example",
                {"factory_price": 1200000, "subsidy": 500000, "rebate": 650000, "add_on_prices": [30000]},
            )

        application.openapi_schema = openapi_schema
        return application.openapi_schema

    application.openapi = custom_openapi

    return application


app = create_app()
