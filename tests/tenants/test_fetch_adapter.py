from src.ministry_system.ministry_system.tenants.fetch_adapter import TenantFetchAdapter, once


def test_fetch_members_filters_by_ministry_and_activity(store):
    store.add("t1", "members", id="a", ministry="Choir", last_name="Adu")
    store.add("t1", "members", id="b", ministry="Choir", is_active=False)
    store.add("t1", "members", id="c", ministry="Ushers")

    rows = TenantFetchAdapter(store).fetch_once("t1", "members", "Choir")

    assert rows == [{"id": "a", "ministry": "Choir", "last_name": "Adu", "origin_tenant_id": "t1"}]


def test_fetch_other_collection_returns_everything_tagged(store):
    store.add("t1", "bacentas", id="b1", name="Bethel")
    store.add("t1", "bacentas", id="b2", name="Zion")

    rows = TenantFetchAdapter(store).fetch_once("t1", "bacentas")

    assert [r["id"] for r in rows] == ["b1", "b2"]
    assert {r["origin_tenant_id"] for r in rows} == {"t1"}


def test_fetch_failure_yields_empty_list(store):
    store.add("t1", "attendance", id="r1")
    store.failing.add(("t1", "fetch"))

    assert TenantFetchAdapter(store).fetch_once("t1", "attendance") == []


def test_subscribe_delivers_initial_and_later_snapshots(store):
    updates = []
    adapter = TenantFetchAdapter(store)

    adapter.subscribe("t1", "members", updates.append, ministry="Choir")
    store.add("t1", "members", id="a", ministry="Choir")
    store.add("t1", "members", id="z", ministry="Ushers")

    assert [[m["id"] for m in u] for u in updates] == [[], ["a"], ["a"]]


def test_subscribe_error_degrades_to_empty_batch(store):
    store.add("t1", "attendance", id="r1")
    updates = []

    TenantFetchAdapter(store).subscribe("t1", "attendance", updates.append)
    store.fail_listeners("t1", "attendance", RuntimeError("permission denied"))

    assert [len(u) for u in updates] == [1, 0]


def test_subscribe_setup_failure_returns_noop_handle(store):
    store.failing.add(("t1", "subscribe"))
    updates = []

    handle = TenantFetchAdapter(store).subscribe("t1", "attendance", updates.append)
    handle()

    assert updates == [[]]
    assert store.unsubscribe_calls == 0


def test_unsubscribe_is_idempotent(store):
    handle = TenantFetchAdapter(store).subscribe("t1", "attendance", lambda rows: None)

    handle()
    handle()

    assert store.unsubscribe_calls == 1
    assert store.subscriptions == []


def test_once_wraps_any_callable():
    calls = []
    handle = once(lambda: calls.append(1))

    handle()
    handle()

    assert calls == [1]
