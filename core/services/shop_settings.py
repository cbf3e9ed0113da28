from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.models import ShopSetting, utc_now
from core.repositories import shops as shops_repo

logger = logging.getLogger("shopdesk.shop_settings")

DEFAULTS = {
    "margin_rate_pct": 0,
    "sales_target_monthly": 0,
    "per_sale_incentive": 30000,
}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def serialize(shop_id: str, row: ShopSetting | None) -> dict[str, Any]:
    if row is None:
        return {"shop_id": shop_id, **DEFAULTS, "updated_at": None}
    return {
        "shop_id": row.shop_id,
        "margin_rate_pct": row.margin_rate_pct,
        "sales_target_monthly": row.sales_target_monthly,
        "per_sale_incentive": row.per_sale_incentive,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def get_for_shop(session: Session, shop_id: str) -> dict[str, Any]:
    return serialize(shop_id, shops_repo.get_settings_row(session, shop_id))


def margin_percent(settings: dict[str, Any]) -> float:
    """margin_rate_pct (0-100) as a multiplier."""
    return float(settings.get("margin_rate_pct") or 0) / 100


def update(
    session: Session,
    shop_id: str,
    *,
    margin_rate_pct: Any = None,
    sales_target_monthly: Any = None,
    per_sale_incentive: Any = None,
) -> dict[str, Any]:
    """Upsert. Out-of-range or non-numeric values keep the stored (or default) value."""
    row = shops_repo.get_settings_row(session, shop_id)
    current = serialize(shop_id, row)

    pct = _as_number(margin_rate_pct)
    target = _as_number(sales_target_monthly)
    incentive = _as_number(per_sale_incentive)

    values = {
        "margin_rate_pct": pct if pct is not None and 0 <= pct <= 100 else current["margin_rate_pct"],
        "sales_target_monthly": target if target is not None and target >= 0 else current["sales_target_monthly"],
        "per_sale_incentive": incentive if incentive is not None and incentive >= 0 else current["per_sale_incentive"],
    }
    if row is None:
        row = ShopSetting(shop_id=shop_id, **values)
        session.add(row)
    else:
        for k, v in values.items():
            setattr(row, k, v)
        row.updated_at = utc_now()
    session.commit()
    logger.info("shop settings updated for %s", shop_id)
    return serialize(shop_id, row)
