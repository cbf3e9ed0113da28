from __future__ import annotations

import datetime as dt

import pytest

from core.models import NoticeComment
from core.services.calendar import clamp_highlight


def _notice(client, **kw):
    body = {"title": "공지", "body": "내용", **kw}
    return client.post("/api/notices", json=body)


def test_only_managers_post_notices_but_anyone_posts(client_for, world):
    assert _notice(client_for(world.staff_a)).status_code == 403
    r = _notice(client_for(world.staff_a), type="post")
    assert r.status_code == 201
    assert r.json()["type"] == "post"
    assert _notice(client_for(world.owner_a)).status_code == 201
    assert _notice(client_for(world.owner_a), type="memo").status_code == 400
    assert _notice(client_for(world.owner_a), title="  ").status_code == 400


def test_pinned_notices_come_first(client_for, world):
    admin = client_for(world.admin)
    _notice(admin, title="old pinned", pinned=True)
    _notice(admin, title="plain")
    titles = [n["title"] for n in admin.get("/api/notices").json()]
    assert titles == ["old pinned", "plain"]


def test_only_super_admin_edits(client_for, world):
    nid = _notice(client_for(world.owner_a)).json()["id"]
    assert client_for(world.owner_a).patch(f"/api/notices/{nid}", json={"title": "x"}).status_code == 403
    admin = client_for(world.admin)
    assert admin.patch(f"/api/notices/{nid}", json={}).status_code == 400
    r = admin.patch(f"/api/notices/{nid}", json={"pinned": True})
    assert r.status_code == 200
    assert r.json()["pinned"] is True
    assert admin.patch("/api/notices/missing", json={"title": "x"}).status_code == 404


@pytest.mark.parametrize(
    "author, deleter, kind, allowed",
    [
        ("staff_a", "staff_a", "post", True),
        ("owner_a", "staff_a", "post", False),
        ("owner_a", "owner_a", "notice", True),
        ("owner_a", "region", "notice", False),
        ("owner_a", "admin", "notice", True),
        ("owner_c", "owner_a", "post", False),
    ],
)
def test_delete_rules(client_for, world, author, deleter, kind, allowed):
    nid = _notice(client_for(getattr(world, author)), type=kind).json()["id"]
    r = client_for(getattr(world, deleter)).delete(f"/api/notices/{nid}")
    assert r.status_code == (200 if allowed else 403)


def test_comments_carry_author_names(client_for, session, world):
    nid = _notice(client_for(world.owner_a)).json()["id"]
    staff = client_for(world.staff_a)
    r = staff.post(f"/api/notices/{nid}/comments", json={"body": " 확인했습니다 "})
    assert r.status_code == 201
    first = r.json()
    assert first["body"] == "확인했습니다"
    assert first["author_name"] == "김직원"
    reply = staff.post(f"/api/notices/{nid}/comments", json={"body": "추가", "parent_id": first["id"]}).json()
    assert reply["parent_id"] == first["id"]

    listed = client_for(world.owner_c).get(f"/api/notices/{nid}/comments").json()
    assert [c["author_name"] for c in listed] == ["김직원", "김직원"]
    assert staff.post(f"/api/notices/{nid}/comments", json={"body": "  "}).status_code == 400
    assert staff.post("/api/notices/missing/comments", json={"body": "x"}).status_code == 404


def test_comment_delete_permissions(client_for, session, world):
    nid = _notice(client_for(world.owner_a)).json()["id"]
    cid = client_for(world.staff_a).post(f"/api/notices/{nid}/comments", json={"body": "hi"}).json()["id"]
    other = client_for(world.owner_c)
    assert client_for(world.admin).delete(f"/api/notices/{nid}/comments/nope").status_code == 404

    # a second staff member in shop c cannot remove it, a manager can
    from werkzeug.security import generate_password_hash

    from core.models import Profile

    stranger = Profile(login_id="staff-c", name="최직원", role="staff", shop_id=world.c.id, password_hash=generate_password_hash("x"))
    session.add(stranger)
    session.commit()
    assert client_for(stranger).delete(f"/api/notices/{nid}/comments/{cid}").status_code == 403
    assert other.delete(f"/api/notices/{nid}/comments/{cid}").status_code == 204
    assert session.query(NoticeComment).count() == 0


def test_deleting_notice_removes_comments(client_for, session, world):
    owner = client_for(world.owner_a)
    nid = _notice(owner).json()["id"]
    owner.post(f"/api/notices/{nid}/comments", json={"body": "a"})
    assert owner.delete(f"/api/notices/{nid}").status_code == 200
    assert session.query(NoticeComment).count() == 0
    assert owner.get(f"/api/notices/{nid}").status_code == 404


# --- calendar ---------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [(-1, 0), (0, 0), (2, 2), (9, 3), ("2", 2), ("x", 0), (None, 0), (float("inf"), 0), (float("nan"), 0)],
)
def test_clamp_highlight(raw, expected):
    assert clamp_highlight(raw) == expected


def test_todos_are_private_and_month_scoped(client_for, world):
    me = client_for(world.staff_a)
    r = me.post("/api/calendar/todos", json={"todoDate": "2024-05-03T09:00:00", "content": "재고 확인", "highlight": 7})
    assert r.status_code == 201
    todo = r.json()
    assert todo["todo_date"] == "2024-05-03"
    assert todo["highlight"] == 3
    me.post("/api/calendar/todos", json={"todo_date": "2024-06-01", "content": "다음달"})

    may = me.get("/api/calendar/todos", params={"year": 2024, "month": 5}).json()
    assert [t["content"] for t in may] == ["재고 확인"]
    assert client_for(world.admin).get("/api/calendar/todos", params={"year": 2024, "month": 5}).json() == []

    admin = client_for(world.admin)
    assert admin.patch(f"/api/calendar/todos/{todo['id']}", json={"content": "x"}).status_code == 404
    assert admin.delete(f"/api/calendar/todos/{todo['id']}").status_code == 404

    r = me.patch(f"/api/calendar/todos/{todo['id']}", json={"highlight": -4})
    assert r.json()["highlight"] == 0
    assert r.json()["content"] == "재고 확인"
    assert me.delete(f"/api/calendar/todos/{todo['id']}").status_code == 204


def test_out_of_range_year_falls_back_to_current_year(client_for, world):
    me = client_for(world.staff_a)
    today = dt.date.today()
    me.post("/api/calendar/todos", json={"todo_date": today.isoformat(), "content": "오늘"})
    for year in ("0", "10000", "-5"):
        r = me.get("/api/calendar/todos", params={"year": year, "month": today.month})
        assert r.status_code == 200
        assert [t["content"] for t in r.json()] == ["오늘"]
        assert me.get("/api/calendar/leave", params={"year": year, "month": 1}).status_code == 200


def test_todo_requires_date(client_for, world):
    me = client_for(world.staff_a)
    assert me.post("/api/calendar/todos", json={"content": "x"}).status_code == 400
    assert me.post("/api/calendar/todos", json={"todo_date": "2024-02-30"}).status_code == 400


def test_leave_upserts_per_day(client_for, world):
    me = client_for(world.staff_a)
    first = me.post("/api/calendar/leave", json={"leaveDate": "2024-05-10"}).json()
    assert first["label"] == "휴가"
    second = me.post("/api/calendar/leave", json={"leave_date": "2024-05-10", "label": "반차"}).json()
    assert second["id"] == first["id"]
    listed = me.get("/api/calendar/leave", params={"year": "2024", "month": "5"}).json()
    assert listed == [{"id": first["id"], "leave_date": "2024-05-10", "label": "반차"}]

    assert me.delete("/api/calendar/leave", params={"date": "2024-05-10"}).status_code == 204
    assert me.get("/api/calendar/leave", params={"year": "2024", "month": "5"}).json() == []
    assert me.delete("/api/calendar/leave", params={"date": "someday"}).status_code == 400


# --- shops ------------------------------------------------------------------


def test_shop_listing_follows_scope(client_for, world):
    assert {s["id"] for s in client_for(world.admin).get("/api/shops").json()} == {world.a.id, world.b.id, world.c.id}
    assert {s["id"] for s in client_for(world.region).get("/api/shops").json()} == {world.a.id, world.b.id}
    assert [s["id"] for s in client_for(world.staff_a).get("/api/shops").json()] == [world.a.id]


def test_shop_admin_is_super_admin_only(client_for, world):
    owner = client_for(world.owner_a)
    assert owner.post("/api/shops", json={"name": "신규"}).status_code == 403
    assert owner.get("/api/store-groups").status_code == 403

    admin = client_for(world.admin)
    created = admin.post("/api/shops", json={"name": "신규", "store_group_id": world.g2.id})
    assert created.status_code == 201
    assert created.json()["subscription_status"] == "active"
    assert admin.post("/api/shops", json={"name": "x", "store_group_id": "nope"}).status_code == 400

    moved = admin.patch(f"/api/shops/{world.a.id}", json={"store_group_id": world.g2.id})
    assert moved.json()["store_group_id"] == world.g2.id
    # region g1 no longer reaches shop a
    assert client_for(world.region).get("/api/reports", params={"shop_id": world.a.id}).status_code == 403
    assert admin.patch("/api/shops/missing", json={}).status_code == 404

    groups = admin.get("/api/store-groups").json()
    assert {g["name"] for g in groups} == {"강남권역", "부산권역"}
