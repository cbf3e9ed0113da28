"""Which shop a caller may act on.

``authorize`` is a pure decision over the caller's AuthContext and the shop id
named in the request. Region managers are the only role whose decision needs
the store; that lookup is injected as ``membership`` so the rules can be tested
without a database. Production code passes ``membership_for(session)``, which
queries the shop row on every call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.errors import Forbidden, NotFound
from core.repositories import shops as shops_repo
from core.services.auth import AuthContext

Membership = Callable[[str, str], bool]


@dataclass(frozen=True)
class ScopeDecision:
    allowed: bool
    effective_shop_id: Optional[str]


DENY = ScopeDecision(False, None)


def authorize(auth: AuthContext, requested_shop_id: Optional[str], membership: Membership) -> ScopeDecision:
    requested = requested_shop_id or None
    role = auth.role
    if role == "super_admin":
        # None means no shop filter
        return ScopeDecision(True, requested)
    if role == "region_manager":
        if not requested or not auth.store_group_id:
            return DENY
        if not membership(requested, auth.store_group_id):
            return DENY
        return ScopeDecision(True, requested)
    if role in ("tenant_admin", "staff"):
        if not auth.shop_id:
            return DENY
        if requested is not None and requested != auth.shop_id:
            return DENY
        return ScopeDecision(True, auth.shop_id)
    return DENY


def shop_belongs_to_store_group(session: Session, shop_id: str, store_group_id: str) -> bool:
    if not shop_id or not store_group_id:
        return False
    return shops_repo.store_group_of(session, shop_id) == store_group_id


def membership_for(session: Session) -> Membership:
    return lambda shop_id, group_id: shop_belongs_to_store_group(session, shop_id, group_id)


def require_scope(session: Session, auth: AuthContext, requested_shop_id: Optional[str]) -> Optional[str]:
    """Return the effective shop id or raise Forbidden."""
    decision = authorize(auth, requested_shop_id, membership_for(session))
    if not decision.allowed:
        raise Forbidden("forbidden")
    return decision.effective_shop_id


def require_shop(session: Session, auth: AuthContext, requested_shop_id: Optional[str]) -> str:
    """Like require_scope, but a concrete shop is mandatory (writes)."""
    shop_id = require_scope(session, auth, requested_shop_id)
    if not shop_id:
        raise Forbidden("shop_id is required", code="shop_required")
    return shop_id


def can_access_shop(session: Session, auth: AuthContext, shop_id: str) -> bool:
    return authorize(auth, shop_id, membership_for(session)).allowed


def ensure_row_visible(session: Session, auth: AuthContext, shop_id: str, what: str = "not found") -> None:
    """Row lookups by id: out-of-scope is reported as missing."""
    if not can_access_shop(session, auth, shop_id):
        raise NotFound(what)


def require_role(auth: AuthContext, *roles: str) -> None:
    if auth.role not in roles:
        raise Forbidden("forbidden")
