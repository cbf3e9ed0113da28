from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from core.models import Shop, ShopSetting, StoreGroup


def get_by_id(session: Session, shop_id: str) -> Shop | None:
    return session.get(Shop, shop_id)


def store_group_of(session: Session, shop_id: str) -> Optional[str]:
    row = session.query(Shop.store_group_id).filter(Shop.id == shop_id).first()
    return row[0] if row else None


def list_shops(session: Session, *, store_group_id: Optional[str] = None, shop_id: Optional[str] = None) -> list[Shop]:
    q = session.query(Shop)
    if store_group_id is not None:
        q = q.filter(Shop.store_group_id == store_group_id)
    if shop_id is not None:
        q = q.filter(Shop.id == shop_id)
    return q.order_by(Shop.created_at.desc()).all()


def list_store_groups(session: Session) -> list[StoreGroup]:
    return session.query(StoreGroup).order_by(StoreGroup.name.asc()).all()


def get_store_group(session: Session, group_id: str) -> StoreGroup | None:
    return session.get(StoreGroup, group_id)


def get_settings_row(session: Session, shop_id: str) -> ShopSetting | None:
    return session.get(ShopSetting, shop_id)
