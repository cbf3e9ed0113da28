"""Pricing policy catalogs and the quote wizard settlement."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from core.services import policies, quotes
from core.services.audit import record_event
from core.services.auth import AuthContext

from ..deps import get_db, request_meta, require_auth
from ..schemas import PolicyIn, SettlementRequest, SettlementResponse

router = APIRouter(tags=["policies"])


@router.get("/policies/{kind}")
def list_policies(
    kind: str,
    shop_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    k = policies.kind_of(kind)
    return [policies.serialize(k, row) for row in policies.list_policies(db, auth, kind, shop_id)]


@router.post("/policies/{kind}", status_code=201)
def create_policy(
    kind: str,
    payload: PolicyIn,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    row = policies.create_policy(db, auth, kind, payload.model_dump(exclude_unset=True))
    record_event(
        db,
        actor=auth.id,
        action="policy.create",
        resource=f"{kind}:{row.id}",
        shop_id=row.shop_id,
        **request_meta(request),
    )
    return policies.serialize(policies.kind_of(kind), row)


@router.patch("/policies/{kind}/{policy_id}")
def update_policy(
    kind: str,
    policy_id: str,
    payload: PolicyIn,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    row = policies.update_policy(db, auth, kind, policy_id, payload.model_dump(exclude_unset=True))
    record_event(
        db,
        actor=auth.id,
        action="policy.update",
        resource=f"{kind}:{row.id}",
        shop_id=row.shop_id,
        **request_meta(request),
    )
    return policies.serialize(policies.kind_of(kind), row)


@router.delete("/policies/{kind}/{policy_id}", status_code=204)
def delete_policy(
    kind: str,
    policy_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    policies.delete_policy(db, auth, kind, policy_id)
    record_event(db, actor=auth.id, action="policy.delete", resource=f"{kind}:{policy_id}", **request_meta(request))
    return Response(status_code=204)


@router.post("/quotes/settlement", response_model=SettlementResponse)
def settlement(
    payload: SettlementRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    if payload.uses_catalog:
        shop_id, result = policies.quote(
            db,
            auth,
            payload.shop_id,
            device_policy_id=payload.device_policy_id,
            plan_policy_id=payload.plan_policy_id,
            add_on_policy_ids=payload.add_on_policy_ids,
            subsidy=payload.subsidy,
            installments=payload.installments,
        )
        return {"shop_id": shop_id, **result.as_dict()}
    return quotes.settle(
        payload.factory_price,
        payload.subsidy or 0,
        payload.rebate,
        payload.add_on_prices,
        installments=payload.installments,
        monthly_plan_fee=payload.monthly_plan_fee,
    ).as_dict()
