from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from werkzeug.security import generate_password_hash

# Ensure project root is importable as a module path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.auth import SESSION_COOKIE_NAME, sign_session
from core.db import get_sessionmaker, init_database, reset_engine
from core.models import Profile, Shop, StoreGroup
from core.rate_limit import reset_login_rate_limiter
from core.settings import reset_settings_cache

TEST_SECRET = "test-session-secret"
PASSWORD = "pass-word!1"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Fresh in-memory database and settings for every test."""
    monkeypatch.setenv("SESSION_SECRET", TEST_SECRET)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SHOPDESK_AUTO_APPLY_DDL", "1")
    monkeypatch.setenv("SHOPDESK_ENFORCE_ALEMBIC", "0")
    monkeypatch.setenv("LOGIN_RATE_LIMIT_BACKEND", "memory")
    monkeypatch.delenv("API_CORS_ORIGINS", raising=False)
    reset_settings_cache()
    reset_engine()
    reset_login_rate_limiter()
    init_database(auto_apply_ddl=True)
    yield
    reset_engine()
    reset_settings_cache()
    reset_login_rate_limiter()


@pytest.fixture()
def session():
    SessionLocal = get_sessionmaker()
    with SessionLocal() as s:
        yield s


@pytest.fixture()
def world(session):
    """Two store groups, three shops and one profile per role.

    g1 holds shops a and b, g2 holds shop c.
    """
    g1 = StoreGroup(name="강남권역")
    g2 = StoreGroup(name="부산권역")
    session.add_all([g1, g2])
    session.flush()
    a = Shop(name="A매장", store_group_id=g1.id)
    b = Shop(name="B매장", store_group_id=g1.id)
    c = Shop(name="C매장", store_group_id=g2.id)
    session.add_all([a, b, c])
    session.flush()

    def profile(login_id, name, role, shop=None, group=None):
        p = Profile(
            login_id=login_id,
            name=name,
            role=role,
            shop_id=shop.id if shop else None,
            managed_store_group_id=group.id if group else None,
            password_hash=generate_password_hash(PASSWORD),
        )
        session.add(p)
        return p

    people = SimpleNamespace(
        admin=profile("admin", "관리자", "super_admin"),
        region=profile("region", "권역장", "region_manager", group=g1),
        owner_a=profile("owner-a", "점장A", "tenant_admin", shop=a),
        staff_a=profile("staff-a", "김직원", "staff", shop=a),
        owner_c=profile("owner-c", "점장C", "tenant_admin", shop=c),
    )
    session.commit()
    return SimpleNamespace(g1=g1, g2=g2, a=a, b=b, c=c, **vars(people))


@pytest.fixture()
def app():
    from app.main import create_app

    return create_app()


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def client_for(app):
    """TestClient carrying a valid session cookie for the given profile."""

    def make(profile):
        c = TestClient(app)
        c.cookies.set(SESSION_COOKIE_NAME, sign_session(TEST_SECRET, profile.id))
        return c

    return make
