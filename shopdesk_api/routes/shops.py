from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.services import accounts, shops
from core.services.auth import AuthContext

from ..deps import get_db, require_auth
from ..schemas import InviteCreateRequest, ShopAssignRequest, ShopCreateRequest

router = APIRouter(tags=["shops"])


@router.get("/shops")
def list_shops(db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return [shops.serialize(s) for s in shops.visible_shops(db, auth)]


@router.post("/shops", status_code=201)
def create_shop(
    payload: ShopCreateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return shops.serialize(shops.create_shop(db, auth, payload.name, payload.store_group_id))


@router.patch("/shops/{shop_id}")
def assign_shop(
    shop_id: str,
    payload: ShopAssignRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return shops.serialize(shops.assign_store_group(db, auth, shop_id, payload.store_group_id))


@router.get("/store-groups")
def list_store_groups(db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return [{"id": g.id, "name": g.name or ""} for g in shops.list_store_groups(db, auth)]


@router.get("/invites")
def list_invites(
    shop_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return [accounts.serialize_invite(i) for i in accounts.list_invites(db, auth, shop_id)]


@router.post("/invites", status_code=201)
def create_invite(
    payload: InviteCreateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return accounts.serialize_invite(accounts.create_invite(db, auth, payload.shop_id))
