"""Shop settings and salary endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from core.errors import ValidationFailed
from core.services import salary, scope, shop_settings
from core.services.audit import record_event
from core.services.auth import AuthContext
from core.utils.dates import require_date

from ..deps import get_db, request_meta, require_auth
from ..schemas import SalarySaveRequest, ShopSettingsResponse, ShopSettingsUpdate

router = APIRouter(tags=["settings"])

SETTINGS_ROLES = ("super_admin", "region_manager", "tenant_admin")
SALARY_WRITERS = ("super_admin", "tenant_admin")


def _snapshot_dict(s) -> dict:
    return {
        "id": s.id,
        "shop_id": s.shop_id,
        "sales_person": s.sales_person,
        "period_start": s.period_start.isoformat(),
        "period_end": s.period_end.isoformat(),
        "sale_count": s.sale_count,
        "total_margin": s.total_margin,
        "total_support": s.total_support,
        "calculated_salary": s.calculated_salary,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


@router.get("/shop-settings", response_model=ShopSettingsResponse)
def get_shop_settings(
    shop_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    scope.require_role(auth, *SETTINGS_ROLES)
    target = scope.require_shop(db, auth, shop_id)
    return shop_settings.get_for_shop(db, target)


@router.patch("/shop-settings", response_model=ShopSettingsResponse)
def patch_shop_settings(
    payload: ShopSettingsUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    scope.require_role(auth, *SETTINGS_ROLES)
    target = scope.require_shop(db, auth, payload.shop_id)
    return shop_settings.update(
        db,
        target,
        margin_rate_pct=payload.margin_rate_pct,
        sales_target_monthly=payload.sales_target_monthly,
        per_sale_incentive=payload.per_sale_incentive,
    )


@router.get("/salaries")
def list_salaries(
    shop_id: Optional[str] = Query(None),
    sales_person: Optional[str] = Query(None),
    period_start: Optional[str] = Query(None),
    period_end: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    target = scope.require_shop(db, auth, shop_id)
    if auth.role == "staff":
        # staff only ever see their own rows
        if not auth.name.strip():
            return []
        sales_person = auth.name.strip()
    rows = salary.list_snapshots(
        db,
        target,
        sales_person=sales_person or None,
        period_start=require_date(period_start, "period_start") if period_start else None,
        period_end=require_date(period_end, "period_end") if period_end else None,
    )
    return [_snapshot_dict(s) for s in rows]


@router.post("/salaries", status_code=201)
def save_salaries(
    request: Request,
    payload: SalarySaveRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    scope.require_role(auth, *SALARY_WRITERS)
    if not payload.shop_id or not payload.period_start or not payload.period_end or not payload.rows:
        raise ValidationFailed("shop_id, period_start, period_end, and rows array are required")
    target = scope.require_shop(db, auth, payload.shop_id)
    saved = salary.save_snapshots(
        db,
        target,
        require_date(payload.period_start, "period_start"),
        require_date(payload.period_end, "period_end"),
        [r.model_dump() for r in payload.rows],
    )
    record_event(
        db,
        actor=auth.id,
        action="salary_saved",
        shop_id=target,
        meta={"rows": len(saved), "period": [payload.period_start, payload.period_end]},
        **request_meta(request),
    )
    return {"success": True, "saved": [_snapshot_dict(s) for s in saved]}


@router.get("/salaries/preview")
def preview_salaries(
    shop_id: Optional[str] = Query(None),
    period_start: str = Query(...),
    period_end: str = Query(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Commission rows computed from the ledger and current shop settings."""
    scope.require_role(auth, *SETTINGS_ROLES)
    target = scope.require_shop(db, auth, shop_id)
    start = require_date(period_start, "period_start")
    end = require_date(period_end, "period_end")
    if end < start:
        raise ValidationFailed("period_end must not be before period_start")
    settings = shop_settings.get_for_shop(db, target)
    entries = salary.entries_in_period(db, target, start, end)
    rows = salary.salary_rows(
        entries,
        per_sale_incentive=settings["per_sale_incentive"],
        margin_percent=shop_settings.margin_percent(settings),
    )
    return {
        "shop_id": target,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "settings": settings,
        "rows": rows,
    }
