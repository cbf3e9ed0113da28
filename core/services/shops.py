from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from core.errors import NotFound, ValidationFailed
from core.models import Shop, StoreGroup
from core.repositories import shops as shops_repo
from core.services import scope
from core.services.auth import AuthContext


def serialize(shop: Shop) -> dict[str, Any]:
    return {
        "id": shop.id,
        "name": shop.name,
        "store_group_id": shop.store_group_id,
        "subscription_status": shop.subscription_status or "active",
        "created_at": shop.created_at.isoformat() if shop.created_at else None,
    }


def visible_shops(session: Session, auth: AuthContext) -> list[Shop]:
    """Shops the caller can pick from; an incomplete profile sees none."""
    if auth.role == "super_admin":
        return shops_repo.list_shops(session)
    if auth.role == "region_manager" and auth.store_group_id:
        return shops_repo.list_shops(session, store_group_id=auth.store_group_id)
    if auth.role in ("tenant_admin", "staff") and auth.shop_id:
        return shops_repo.list_shops(session, shop_id=auth.shop_id)
    return []


def create_shop(session: Session, auth: AuthContext, name: Any, store_group_id: Optional[str] = None) -> Shop:
    scope.require_role(auth, "super_admin")
    text = str(name or "").strip()
    if not text:
        raise ValidationFailed("name is required")
    if store_group_id and shops_repo.get_store_group(session, store_group_id) is None:
        raise ValidationFailed("unknown store_group_id")
    shop = Shop(name=text, store_group_id=store_group_id or None)
    session.add(shop)
    session.commit()
    return shop


def assign_store_group(session: Session, auth: AuthContext, shop_id: str, store_group_id: Optional[str]) -> Shop:
    """Move a shop into (or out of, with None) a store group."""
    scope.require_role(auth, "super_admin")
    shop = shops_repo.get_by_id(session, shop_id)
    if shop is None:
        raise NotFound("shop not found")
    if store_group_id and shops_repo.get_store_group(session, store_group_id) is None:
        raise ValidationFailed("unknown store_group_id")
    shop.store_group_id = store_group_id or None
    session.commit()
    return shop


def list_store_groups(session: Session, auth: AuthContext) -> list[StoreGroup]:
    scope.require_role(auth, "super_admin")
    return shops_repo.list_store_groups(session)
