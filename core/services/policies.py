"""Per-shop pricing policies: device models, plans and add-ons.

Catalogs are what the quote wizard prices against. Managers edit them for the
shops in their scope; staff read their own shop's catalog. Quotes that name
policy ids are priced from the stored rows, never from client-sent numbers.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from core.errors import NotFound, ValidationFailed
from core.models import AddOnPolicy, DevicePolicy, PlanPolicy, utc_now
from core.services import quotes, scope
from core.services.auth import AuthContext

logger = logging.getLogger("shopdesk.policies")

MANAGERS = ("super_admin", "region_manager", "tenant_admin")


@dataclass(frozen=True)
class PolicyKind:
    name: str
    model: type
    amounts: tuple[str, ...]
    texts: tuple[str, ...] = ()


KINDS = {
    "devices": PolicyKind("devices", DevicePolicy, ("factory_price", "default_subsidy"), ("capacity",)),
    "plans": PolicyKind("plans", PlanPolicy, ("monthly_fee", "rebate")),
    "add-ons": PolicyKind("add-ons", AddOnPolicy, ("price",)),
}


def kind_of(name: str) -> PolicyKind:
    kind = KINDS.get(name)
    if kind is None:
        raise NotFound("unknown policy kind")
    return kind


def _amount(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise ValidationFailed(f"{field} must be a non-negative number")
    return value


def _colors(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationFailed("colors must be a list")
    return [str(c).strip() for c in value if str(c).strip()]


def serialize(kind: PolicyKind, row: Any) -> dict[str, Any]:
    out = {"id": row.id, "shop_id": row.shop_id, "name": row.name}
    for field in kind.texts + kind.amounts:
        out[field] = getattr(row, field)
    if kind.model is DevicePolicy:
        out["colors"] = json.loads(row.colors_json or "[]")
    out["updated_at"] = row.updated_at.isoformat() if row.updated_at else None
    return out


def _apply(kind: PolicyKind, row: Any, data: dict[str, Any]) -> None:
    if "name" in data:
        name = str(data["name"] or "").strip()
        if not name:
            raise ValidationFailed("name is required")
        row.name = name
    for field in kind.texts:
        if field in data:
            setattr(row, field, str(data[field] or "").strip())
    for field in kind.amounts:
        if field in data and data[field] is not None:
            setattr(row, field, _amount(data[field], field))
    if kind.model is DevicePolicy and data.get("colors") is not None:
        row.colors_json = json.dumps(_colors(data["colors"]), ensure_ascii=False)


def list_policies(session: Session, auth: AuthContext, kind_name: str, shop_id: Optional[str]) -> list[Any]:
    kind = kind_of(kind_name)
    target = scope.require_shop(session, auth, shop_id)
    model = kind.model
    return session.query(model).filter(model.shop_id == target).order_by(model.name.asc(), model.id.asc()).all()


def create_policy(session: Session, auth: AuthContext, kind_name: str, data: dict[str, Any]) -> Any:
    kind = kind_of(kind_name)
    scope.require_role(auth, *MANAGERS)
    target = scope.require_shop(session, auth, data.get("shop_id"))
    if not str(data.get("name") or "").strip():
        raise ValidationFailed("name is required")
    row = kind.model(shop_id=target)
    _apply(kind, row, data)
    session.add(row)
    session.commit()
    logger.info("%s policy %s created for %s", kind.name, row.id, target)
    return row


def _visible(session: Session, auth: AuthContext, kind: PolicyKind, policy_id: str) -> Any:
    row = session.get(kind.model, policy_id)
    if row is None:
        raise NotFound("policy not found")
    scope.ensure_row_visible(session, auth, row.shop_id, "policy not found")
    return row


def update_policy(session: Session, auth: AuthContext, kind_name: str, policy_id: str, data: dict[str, Any]) -> Any:
    """Partial update. The owning shop never changes."""
    kind = kind_of(kind_name)
    scope.require_role(auth, *MANAGERS)
    row = _visible(session, auth, kind, policy_id)
    _apply(kind, row, {k: v for k, v in data.items() if k != "shop_id"})
    row.updated_at = utc_now()
    session.commit()
    return row


def delete_policy(session: Session, auth: AuthContext, kind_name: str, policy_id: str) -> None:
    kind = kind_of(kind_name)
    scope.require_role(auth, *MANAGERS)
    row = _visible(session, auth, kind, policy_id)
    session.delete(row)
    session.commit()
    logger.info("%s policy %s deleted", kind.name, policy_id)


def _in_shop(session: Session, model: type, policy_id: str, shop_id: str) -> Any:
    row = session.get(model, policy_id)
    if row is None or row.shop_id != shop_id:
        raise NotFound("policy not found")
    return row


def quote(
    session: Session,
    auth: AuthContext,
    shop_id: Optional[str],
    *,
    device_policy_id: Optional[str] = None,
    plan_policy_id: Optional[str] = None,
    add_on_policy_ids: Iterable[str] = (),
    subsidy: Optional[float] = None,
    installments: int = 0,
) -> tuple[str, quotes.Settlement]:
    """Settle a quote from one shop's catalog.

    ``subsidy`` overrides the device's default subsidy (a shop may add its own
    on top of the public one); every other amount comes from the stored policy.
    """
    target = scope.require_shop(session, auth, shop_id)
    device = _in_shop(session, DevicePolicy, device_policy_id, target) if device_policy_id else None
    plan = _in_shop(session, PlanPolicy, plan_policy_id, target) if plan_policy_id else None
    add_ons = [_in_shop(session, AddOnPolicy, pid, target) for pid in dict.fromkeys(add_on_policy_ids)]
    if subsidy is None:
        subsidy = device.default_subsidy if device else 0
    return target, quotes.settle(
        device.factory_price if device else 0,
        subsidy,
        plan.rebate if plan else 0,
        [a.price for a in add_ons],
        installments=installments,
        monthly_plan_fee=plan.monthly_fee if plan else 0,
    )
