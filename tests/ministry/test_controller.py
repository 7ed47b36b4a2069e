import pytest
from flask import Flask

from src.ministry_system.ministry_system.container import build_services
from src.ministry_system.ministry_system.ministry.controller import register

MINISTRY = "ministry-t"


@pytest.fixture
def client(store, scheduler):
    store.tenants = ["church-1"]
    store.add("church-1", "members", id="a", ministry="Choir", last_name="Adu")
    store.add("church-1", "members", id="b", ministry="Choir", last_name="Badu")

    app = Flask(__name__)
    register(app, build_services(store, scheduler=scheduler))
    return app.test_client()


def _member_ids(client):
    resp = client.get(f"/api/ministries/Choir/aggregate?current_tenant_id={MINISTRY}")
    assert resp.status_code == 200
    return [m["id"] for m in resp.get_json()["members"]]


def test_get_aggregate(client):
    resp = client.get("/api/ministries/Choir/aggregate")

    body = resp.get_json()
    assert body["success"] is True
    assert body["ministry"] == "Choir"
    assert [m["id"] for m in body["members"]] == ["a", "b"]
    assert body["source_tenants"] == ["church-1"]


def test_exclude_and_include_member(client):
    resp = client.post(f"/api/ministries/{MINISTRY}/exclusions", json={"source_tenant_id": "church-1", "member_id": "a"})
    assert resp.status_code == 201
    assert _member_ids(client) == ["b"]

    resp = client.delete(f"/api/ministries/{MINISTRY}/exclusions/church-1/a")
    assert resp.get_json()["removed"] is True
    assert _member_ids(client) == ["a", "b"]


def test_exclude_requires_member_reference(client):
    resp = client.post(f"/api/ministries/{MINISTRY}/exclusions", json={"source_tenant_id": "church-1"})

    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_set_and_clear_override(client):
    resp = client.put(f"/api/ministries/{MINISTRY}/overrides/church-1/b", json={"frozen": True, "member_id": "ignored"})
    assert resp.status_code == 200
    assert resp.get_json()["fields"] == ["frozen"]

    members = client.get(f"/api/ministries/Choir/aggregate?current_tenant_id={MINISTRY}").get_json()["members"]
    assert members[1]["frozen"] is True

    resp = client.delete(f"/api/ministries/{MINISTRY}/overrides/church-1/b")
    assert resp.get_json()["removed"] is True


@pytest.mark.parametrize("body", [{"last_name": "X"}, {}, ["frozen"]])
def test_set_override_rejects_bad_body(client, body):
    resp = client.put(f"/api/ministries/{MINISTRY}/overrides/church-1/b", json=body)

    assert resp.status_code == 400


def test_write_failure_maps_to_bad_gateway(client, store):
    store.failing.add((MINISTRY, "write"))

    resp = client.post(f"/api/ministries/{MINISTRY}/exclusions", json={"source_tenant_id": "church-1", "member_id": "a"})

    assert resp.status_code == 502
