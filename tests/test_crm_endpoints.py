from __future__ import annotations

import datetime as dt


def test_create_defaults_and_coercions(client_for, world):
    staff = client_for(world.staff_a)
    r = staff.post("/api/crm/consultations", json={"name": " 홍길동 ", "phone": "010", "inflow_type": "광고"})
    assert r.status_code == 201
    body = r.json()
    assert body["shop_id"] == world.a.id
    assert body["name"] == "홍길동"
    assert body["activation_status"] == "X"
    assert body["inflow_type"] is None
    assert body["consultation_date"] == dt.date.today().isoformat()
    assert body["report_id"] is None

    r = staff.post("/api/crm/consultations", json={"name": "b", "activation_status": "done", "inflow_type": "지인"})
    assert r.json()["activation_status"] == "X"
    assert r.json()["inflow_type"] == "지인"


def test_create_requires_name_and_valid_date(client_for, world):
    staff = client_for(world.staff_a)
    assert staff.post("/api/crm/consultations", json={"phone": "010"}).status_code == 400
    assert staff.post("/api/crm/consultations", json={"name": "a", "consultation_date": "nope"}).status_code == 400


def test_list_filters_by_status_and_scope(client_for, world):
    owner = client_for(world.owner_a)
    owner.post("/api/crm/consultations", json={"name": "a", "activation_status": "O", "consultation_date": "2024-05-01"})
    owner.post("/api/crm/consultations", json={"name": "b", "activation_status": "△", "consultation_date": "2024-05-02"})
    client_for(world.owner_c).post("/api/crm/consultations", json={"name": "c"})

    names = [c["name"] for c in owner.get("/api/crm/consultations").json()]
    assert names == ["b", "a"]
    only_done = owner.get("/api/crm/consultations", params={"activation_status": "O"}).json()
    assert [c["name"] for c in only_done] == ["a"]
    assert owner.get("/api/crm/consultations", params={"shop_id": world.c.id}).status_code == 403
    assert len(client_for(world.admin).get("/api/crm/consultations").json()) == 3


def test_update_and_delete_stay_in_scope(client_for, world):
    owner_c = client_for(world.owner_c)
    cid = owner_c.post("/api/crm/consultations", json={"name": "c"}).json()["id"]
    owner_a = client_for(world.owner_a)
    assert owner_a.patch(f"/api/crm/consultations/{cid}", json={"memo": "x"}).status_code == 404
    assert owner_a.delete(f"/api/crm/consultations/{cid}").status_code == 404
    assert owner_a.post(f"/api/crm/consultations/{cid}/move-to-report").status_code == 404

    r = owner_c.patch(f"/api/crm/consultations/{cid}", json={"activation_status": "O", "memo": "개통 완료"})
    assert r.status_code == 200
    assert r.json()["activation_status"] == "O"
    assert r.json()["memo"] == "개통 완료"
    assert r.json()["name"] == "c"
    assert owner_c.patch(f"/api/crm/consultations/{cid}", json={"name": ""}).status_code == 400
    assert owner_c.delete(f"/api/crm/consultations/{cid}").status_code == 204
    assert owner_c.get("/api/crm/consultations").json() == []


def test_create_for_other_shop_is_forbidden(client_for, world):
    r = client_for(world.owner_a).post("/api/crm/consultations", json={"name": "x", "shop_id": world.c.id})
    assert r.status_code == 403
    r = client_for(world.region).post("/api/crm/consultations", json={"name": "x"})
    assert r.status_code == 403
    r = client_for(world.region).post("/api/crm/consultations", json={"name": "x", "shop_id": world.b.id})
    assert r.status_code == 201
