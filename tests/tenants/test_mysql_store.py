import asyncio
import json
import threading

import pytest

from src.ministry_system.ministry_system.core.exceptions import ValidationError
from src.ministry_system.ministry_system.sync.scheduler import AsyncioScheduler
from src.ministry_system.ministry_system.tenants.mysql_store import MySQLPartitionStore, _where_field


class FakeCursor:
    def __init__(self, db):
        self._db = db
        self._rows = []
        self.rowcount = 0

    def execute(self, sql, params=()):
        self._db.executed.append((" ".join(sql.split()), tuple(params)))
        result = self._db.results.pop(0) if self._db.results else []
        if isinstance(result, Exception):
            raise result
        self._rows = result
        self.rowcount = self._db.rowcount

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)

    def close(self):
        pass


class FakeConn:
    def __init__(self, db):
        self._db = db

    def cursor(self, dictionary=True):
        return FakeCursor(self._db)

    def commit(self):
        self._db.commits += 1

    def rollback(self):
        self._db.rollbacks += 1

    def close(self):
        pass


class FakeDB:
    """Stands in for DatabaseConnection; ``results`` feeds one entry per query."""

    def __init__(self, *results):
        self.results = list(results)
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.rowcount = 0

    def connect(self):
        return FakeConn(self)


def _doc(doc_id, **data):
    return {"doc_id": doc_id, "data": json.dumps(data)}


def test_where_field_maps_id_to_document_key():
    assert _where_field("id", 42) == ("doc_id=%s", ("42",))


def test_where_field_compares_booleans_as_json():
    clause, params = _where_field("is_active", False)

    assert "CAST(%s AS JSON)" in clause
    assert params == ("$.is_active", "false")


def test_where_field_rejects_injection_in_field_name():
    with pytest.raises(ValidationError):
        _where_field("ministry') OR 1=1 --", "x")


def test_list_tenants_excludes_ministry_tenants(scheduler):
    db = FakeDB([{"tenant_id": "church-1"}, {"tenant_id": "church-2"}])

    assert MySQLPartitionStore(db, scheduler=scheduler).list_tenants() == ["church-1", "church-2"]
    assert "is_ministry_tenant=0" in db.executed[0][0]


def test_fetch_where_decodes_documents(scheduler):
    db = FakeDB([_doc("a", ministry="Choir", last_name="Adu"), {"doc_id": "b", "data": b'{"ministry": "Choir"}'}])

    rows = MySQLPartitionStore(db, scheduler=scheduler).fetch_where("t1", "members", "ministry", "Choir")

    assert rows == [
        {"id": "a", "ministry": "Choir", "last_name": "Adu"},
        {"id": "b", "ministry": "Choir"},
    ]
    sql, params = db.executed[0]
    assert "JSON_UNQUOTE(JSON_EXTRACT(data, %s))=%s" in sql
    assert params == ("t1", "members", "$.ministry", "Choir")


def test_exists_where(scheduler):
    db = FakeDB([{"found": 1}], [])
    store = MySQLPartitionStore(db, scheduler=scheduler)

    assert store.exists_where("t1", "members", "ministry", "Choir") is True
    assert store.exists_where("t2", "members", "ministry", "Choir") is False
    assert "LIMIT 1" in db.executed[0][0]


def test_put_upserts_payload_without_id(scheduler):
    db = FakeDB()

    MySQLPartitionStore(db, scheduler=scheduler).put("m", "ministry_exclusions", "t1_a", {"id": "x", "member_id": "a"})

    sql, params = db.executed[0]
    assert "ON DUPLICATE KEY UPDATE" in sql
    assert params[:3] == ("m", "ministry_exclusions", "t1_a")
    assert json.loads(params[3]) == {"member_id": "a"}
    assert db.commits == 1


def test_delete_reports_whether_a_row_was_removed(scheduler):
    db = FakeDB()
    store = MySQLPartitionStore(db, scheduler=scheduler)

    assert store.delete("m", "ministry_overrides", "t1_a") is False
    db.rowcount = 1
    assert store.delete("m", "ministry_overrides", "t1_a") is True


def test_failed_query_rolls_back(scheduler):
    db = FakeDB(RuntimeError("server gone"))

    with pytest.raises(RuntimeError):
        MySQLPartitionStore(db, scheduler=scheduler).fetch_all("t1", "guests")

    assert db.rollbacks == 1
    assert db.commits == 0


def test_polling_runs_queries_off_the_loop(scheduler):
    db = FakeDB([_doc("r1", status="Present")])
    store = MySQLPartitionStore(db, scheduler=scheduler, poll_interval=2.0)
    updates = []

    store.subscribe_all("t1", "attendance", updates.append, lambda exc: None)

    assert db.executed == []
    assert scheduler.queued_jobs == 1

    scheduler.run_pending()

    assert updates == [[{"id": "r1", "status": "Present"}]]
    assert len(db.executed) == 1


def test_polling_subscription_emits_only_on_change(scheduler):
    first = [_doc("r1", status="Present")]
    db = FakeDB(first, list(first), [_doc("r1", status="Absent")])
    store = MySQLPartitionStore(db, scheduler=scheduler, poll_interval=2.0)
    updates, errors = [], []

    unsubscribe = store.subscribe_all("t1", "attendance", updates.append, errors.append)
    scheduler.run_pending()
    assert updates == [[{"id": "r1", "status": "Present"}]]

    scheduler.advance(2.0)
    assert len(db.executed) == 1
    scheduler.run_pending()
    assert len(updates) == 1

    scheduler.advance(2.0)
    scheduler.run_pending()
    assert updates[-1] == [{"id": "r1", "status": "Absent"}]

    unsubscribe()
    scheduler.advance(10.0)
    scheduler.run_pending()
    assert len(db.executed) == 3
    assert scheduler.pending == 0
    assert errors == []


def test_polling_subscription_stops_after_error(scheduler):
    boom = RuntimeError("access denied")
    db = FakeDB([], boom)
    store = MySQLPartitionStore(db, scheduler=scheduler, poll_interval=1.0)
    updates, errors = [], []

    store.subscribe_where("t1", "members", "ministry", "Choir", updates.append, errors.append)
    scheduler.run_pending()
    scheduler.advance(1.0)
    scheduler.run_pending()
    scheduler.advance(5.0)

    assert updates == [[]]
    assert errors == [boom]
    assert len(db.executed) == 2
    assert scheduler.pending == 0
    assert scheduler.queued_jobs == 0


def test_result_of_poll_in_flight_at_close_is_dropped(scheduler):
    db = FakeDB([_doc("r1")])
    store = MySQLPartitionStore(db, scheduler=scheduler)
    updates = []

    unsubscribe = store.subscribe_all("t1", "attendance", updates.append, lambda exc: None)
    unsubscribe()
    scheduler.run_pending()

    assert updates == []
    assert scheduler.pending == 0


def test_asyncio_scheduler_runs_work_off_loop_and_reports_on_loop():
    threads = {}

    async def run(work):
        loop = asyncio.get_running_loop()
        done = loop.create_future()

        def on_result(value):
            threads["callback"] = threading.get_ident()
            done.set_result(value)

        AsyncioScheduler().submit(work, on_result, done.set_exception)
        return await asyncio.wait_for(done, 5)

    def work():
        threads["work"] = threading.get_ident()
        return 42

    def broken():
        raise RuntimeError("db down")

    assert asyncio.run(run(work)) == 42
    assert threads["work"] != threading.get_ident()
    assert threads["callback"] == threading.get_ident()
    with pytest.raises(RuntimeError, match="db down"):
        asyncio.run(run(broken))
