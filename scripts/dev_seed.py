from __future__ import annotations

import datetime as dt

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from core.db import init_database, session_scope
from core.models import Consultation, Profile, Shop, StoreGroup
from core.repositories import profiles as profiles_repo

DEMO_PASSWORD = "demo-pass!1"


def main() -> None:
    init_database(auto_apply_ddl=True)
    with session_scope() as session:
        _seed(session)


def _seed(session: Session) -> None:
    if profiles_repo.get_by_login_id(session, "demo-owner"):
        print("Demo data already exists (login: demo-owner)")
        return
    group = StoreGroup(name="데모권역")
    session.add(group)
    session.flush()
    shop = Shop(name="데모매장", store_group_id=group.id)
    session.add(shop)
    session.flush()
    accounts = [
        Profile(login_id="demo-region", name="권역장", role="region_manager", managed_store_group_id=group.id),
        Profile(login_id="demo-owner", name="점장", role="tenant_admin", shop_id=shop.id),
        Profile(login_id="demo-staff", name="김직원", role="staff", shop_id=shop.id),
    ]
    for p in accounts:
        p.password_hash = generate_password_hash(DEMO_PASSWORD)
        session.add(p)
    session.add(
        Consultation(
            shop_id=shop.id,
            name="홍길동",
            phone="010-1234-5678",
            product_name="Galaxy S24",
            consultation_date=dt.date.today(),
            sales_person="김직원",
            activation_status="O",
            inflow_type="로드",
        )
    )
    session.commit()
    print(f"Created shop: {shop.name} (id={shop.id}) in group {group.name}")
    for p in accounts:
        print(f"  {p.role:<15} login_id={p.login_id} password={DEMO_PASSWORD}")


if __name__ == "__main__":
    main()
