from __future__ import annotations

import argparse
import subprocess
import sys

from sqlalchemy import text
from werkzeug.security import generate_password_hash

from core.db import init_database, session_scope
from core.models import Consultation, IdempotencyRecord, Profile, ReportEntry, SalarySnapshot, Shop, StoreGroup
from core.repositories import profiles as profiles_repo
from core.services import idempotency
from core.services.accounts import check_password_rule
from core.services.auth import issue_session
from core.errors import ServiceError


def _run(cmd: list[str]) -> int:
    print("$", " ".join(cmd))
    return subprocess.call(cmd)


def cmd_migrate(_: argparse.Namespace) -> int:
    return _run(["alembic", "upgrade", "head"])


def cmd_downgrade(args: argparse.Namespace) -> int:
    target = args.to or "base"
    return _run(["alembic", "downgrade", target])


def cmd_seed_demo(_: argparse.Namespace) -> int:
    from scripts import dev_seed

    dev_seed.main()
    return 0


def cmd_db_check(_: argparse.Namespace) -> int:
    engine = init_database()
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    print("DB OK")
    return 0


def cmd_verify_migrations(_: argparse.Namespace) -> int:
    from core.alembic_utils import ensure_up_to_date
    from core.db import get_engine

    try:
        ensure_up_to_date(get_engine())
    except RuntimeError as e:
        print(f"Alembic status: FAIL ({e})", file=sys.stderr)
        return 1
    print("Alembic status: OK (DB at head)")
    return 0


def cmd_create_super_admin(args: argparse.Namespace) -> int:
    try:
        check_password_rule(args.password)
    except ServiceError as e:
        print(e.message, file=sys.stderr)
        return 2
    init_database()
    with session_scope() as session:
        if profiles_repo.login_id_taken(session, args.login_id):
            print("login_id already exists", file=sys.stderr)
            return 1
        profile = Profile(
            login_id=args.login_id,
            name=args.name,
            role="super_admin",
            password_hash=generate_password_hash(args.password),
        )
        session.add(profile)
        session.commit()
        print(f"Created super_admin: id={profile.id} login_id={profile.login_id}")
    return 0


def cmd_issue_session(args: argparse.Namespace) -> int:
    with session_scope() as session:
        profile = profiles_repo.get_by_login_id(session, args.login_id)
        if profile is None:
            print("Profile not found", file=sys.stderr)
            return 1
        try:
            print(issue_session(profile))
        except ServiceError as e:
            print(e.message, file=sys.stderr)
            return 1
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    import httpx

    url = f"http://{args.host}:{args.port}/api/healthz"
    try:
        resp = httpx.get(url, timeout=3)
    except httpx.HTTPError as e:
        print("HEALTH: ERROR", e)
        return 1
    ok = resp.status_code == 200 and bool(resp.json().get("ok"))
    print("HEALTH:", "OK" if ok else "FAIL", url)
    return 0 if ok else 1


def cmd_stats(_: argparse.Namespace) -> int:
    init_database()
    with session_scope() as session:
        stats = {
            "store_groups": session.query(StoreGroup).count(),
            "shops": session.query(Shop).count(),
            "profiles": session.query(Profile).count(),
            "consultations": session.query(Consultation).count(),
            "reports": session.query(ReportEntry).count(),
            "salary_snapshots": session.query(SalarySnapshot).count(),
            "idempotency_records": session.query(IdempotencyRecord).count(),
        }
        for k, v in stats.items():
            print(f"{k}: {v}")
    return 0


def cmd_list_shops(_: argparse.Namespace) -> int:
    init_database()
    with session_scope() as session:
        rows = session.query(Shop).order_by(Shop.created_at.desc()).all()
        for s in rows:
            print(f"{s.id}\t{s.store_group_id or '-'}\t{s.name}\t{s.created_at}")
    return 0


def cmd_prune_idempotency(args: argparse.Namespace) -> int:
    import datetime as dt

    with session_scope() as session:
        n = idempotency.prune(session, older_than=dt.timedelta(days=int(args.days)))
        print(f"Pruned {n} idempotency records older than {args.days}d")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="manage", description="Shopdesk management CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("migrate", help="Upgrade DB to head").set_defaults(func=cmd_migrate)

    p_down = sub.add_parser("downgrade", help="Downgrade DB to target (default base)")
    p_down.add_argument("to", nargs="?", default="base")
    p_down.set_defaults(func=cmd_downgrade)

    sub.add_parser("seed-demo", help="Create a demo store group, shop and accounts").set_defaults(func=cmd_seed_demo)
    sub.add_parser("db-check", help="Run a simple DB connectivity check").set_defaults(func=cmd_db_check)

    sub.add_parser("verify-migrations", help="Fail unless the DB is at Alembic head").set_defaults(func=cmd_verify_migrations)

    p_admin = sub.add_parser("create-super-admin", help="Create a super_admin profile")
    p_admin.add_argument("--login-id", required=True)
    p_admin.add_argument("--name", default="관리자")
    p_admin.add_argument("--password", required=True)
    p_admin.set_defaults(func=cmd_create_super_admin)

    p_sess = sub.add_parser("issue-session", help="Print a signed session cookie value for a login id")
    p_sess.add_argument("--login-id", required=True)
    p_sess.set_defaults(func=cmd_issue_session)

    p_health = sub.add_parser("health", help="Call /api/healthz on host:port")
    p_health.add_argument("--host", default="127.0.0.1")
    p_health.add_argument("--port", type=int, default=8000)
    p_health.set_defaults(func=cmd_health)

    sub.add_parser("stats", help="Print table counts").set_defaults(func=cmd_stats)
    sub.add_parser("list-shops", help="List shops").set_defaults(func=cmd_list_shops)

    p_prune = sub.add_parser("prune-idempotency", help="Delete idempotency records older than N days")
    p_prune.add_argument("--days", type=int, default=7)
    p_prune.set_defaults(func=cmd_prune_idempotency)

    args = parser.parse_args()
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
