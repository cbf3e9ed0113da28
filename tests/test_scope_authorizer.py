from __future__ import annotations

import pytest

from core.errors import Forbidden, NotFound
from core.services import scope
from core.services.auth import AuthContext
from core.services.scope import ScopeDecision, authorize


GROUPS = {"shop-a": "g1", "shop-b": "g1", "shop-c": "g2"}


def member(shop_id: str, group_id: str) -> bool:
    return GROUPS.get(shop_id) == group_id


def ctx(role, shop_id=None, group=None):
    return AuthContext(id="u1", role=role, shop_id=shop_id, store_group_id=group, name="테스터")


@pytest.mark.parametrize(
    "auth, requested, expected",
    [
        (ctx("super_admin"), None, ScopeDecision(True, None)),
        (ctx("super_admin"), "shop-c", ScopeDecision(True, "shop-c")),
        (ctx("region_manager", group="g1"), "shop-a", ScopeDecision(True, "shop-a")),
        (ctx("region_manager", group="g1"), "shop-c", ScopeDecision(False, None)),
        (ctx("region_manager", group="g1"), None, ScopeDecision(False, None)),
        (ctx("region_manager"), "shop-a", ScopeDecision(False, None)),
        (ctx("tenant_admin", shop_id="shop-a"), None, ScopeDecision(True, "shop-a")),
        (ctx("tenant_admin", shop_id="shop-a"), "shop-a", ScopeDecision(True, "shop-a")),
        (ctx("tenant_admin", shop_id="shop-a"), "shop-b", ScopeDecision(False, None)),
        (ctx("staff", shop_id="shop-a"), None, ScopeDecision(True, "shop-a")),
        (ctx("staff", shop_id="shop-a"), "shop-c", ScopeDecision(False, None)),
        (ctx("staff"), None, ScopeDecision(False, None)),
        (ctx("viewer", shop_id="shop-a"), "shop-a", ScopeDecision(False, None)),
    ],
)
def test_authorize_matrix(auth, requested, expected):
    assert authorize(auth, requested, member) == expected


def test_empty_string_means_no_request():
    assert authorize(ctx("super_admin"), "", member) == ScopeDecision(True, None)
    assert authorize(ctx("tenant_admin", shop_id="shop-a"), "", member) == ScopeDecision(True, "shop-a")


def test_require_scope_and_require_shop_raise(session, world):
    owner = ctx("tenant_admin", shop_id=world.a.id)
    with pytest.raises(Forbidden):
        scope.require_scope(session, owner, world.c.id)
    admin = ctx("super_admin")
    assert scope.require_scope(session, admin, None) is None
    with pytest.raises(Forbidden) as exc:
        scope.require_shop(session, admin, None)
    assert exc.value.code == "shop_required"


def test_region_manager_membership_reads_store(session, world):
    region = ctx("region_manager", group=world.g1.id)
    assert scope.require_shop(session, region, world.b.id) == world.b.id
    with pytest.raises(Forbidden):
        scope.require_shop(session, region, world.c.id)
    with pytest.raises(NotFound):
        scope.ensure_row_visible(session, region, world.c.id)
