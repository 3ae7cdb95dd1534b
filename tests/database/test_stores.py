from __future__ import annotations

import httpx
import pytest
from postgrest.exceptions import APIError

from src.rfid_attendance.rfid_attendance.container import build_store
from src.rfid_attendance.rfid_attendance.core.exceptions import StoreError
from src.rfid_attendance.rfid_attendance.database.local_store import LocalTableStore
from src.rfid_attendance.rfid_attendance.database.store import Query
from src.rfid_attendance.rfid_attendance.database.supabase_store import SupabaseTableStore


def test_local_store_filters_orders_and_limits():
    store = LocalTableStore()
    store.insert("students", {"name": "Carla", "rfid": "STU003", "archived": False, "grade": "10"})
    store.insert("students", {"name": "Ana", "rfid": "stu001", "archived": False, "grade": "9"})
    store.insert("students", {"name": "Ben", "rfid": "STU002", "archived": True, "grade": "9"})

    active = store.select("students", Query().eq("archived", False).order("name"))
    by_prefix = store.select("students", Query().ilike_prefix("rfid", "STU00").neq("name", "Carla"))
    newest = store.select("students", Query().order("id", desc=True).limit(1))

    assert [r["name"] for r in active] == ["Ana", "Carla"]
    assert sorted(r["name"] for r in by_prefix) == ["Ana", "Ben"]
    assert newest[0]["name"] == "Ben"
    assert [r["id"] for r in store.select("students", Query().gt("id", 1).lte("grade", "9"))] == [2, 3]


def test_local_store_matches_ids_across_str_and_int():
    store = LocalTableStore()
    store.insert("attendance", {"student_id": 7, "date": "2026-03-02"})

    assert store.select("attendance", Query().eq("student_id", "7"))
    assert store.update("attendance", {"status": "late"}, Query().eq("id", "1"))[0]["status"] == "late"
    assert store.update("attendance", {"status": "late"}, Query().eq("id", 99)) == []


def test_local_store_persists_under_app_keys(tmp_path):
    path = tmp_path / "store.json"
    LocalTableStore(path).insert("student_sms", {"message": "hello"})

    reopened = LocalTableStore(path)

    assert reopened.select("student_sms")[0]["message"] == "hello"
    assert '"app.notifications"' in path.read_text(encoding="utf-8")


def test_local_store_write_failure_is_a_store_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    store = LocalTableStore(blocker / "store.json")

    with pytest.raises(StoreError):
        store.insert("students", {"name": "Ana"})


class FakeBuilder:
    """Records the PostgREST chain and returns a canned response."""

    def __init__(self, calls, result):
        self.calls = calls
        self.result = result

    def __getattr__(self, name):
        def step(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return step

    def execute(self):
        if isinstance(self.result, Exception):
            raise self.result
        return type("Response", (), {"data": self.result})()


class FakeClient:
    def __init__(self, result=None):
        self.calls = []
        self.result = [] if result is None else result

    def table(self, name):
        self.calls.append(("table", (name,), {}))
        return FakeBuilder(self.calls, self.result)


def test_supabase_store_translates_query_into_postgrest_chain():
    client = FakeClient([{"id": 1, "rfid": "STU_01"}])
    store = SupabaseTableStore(client)

    rows = store.select("students", Query().eq("archived", False).ilike_prefix("rfid", "STU_0").order("name").limit(2))

    assert rows == [{"id": 1, "rfid": "STU_01"}]
    assert client.calls == [
        ("table", ("students",), {}),
        ("select", ("*",), {}),
        ("eq", ("archived", "false"), {}),
        ("ilike", ("rfid", "STU\\_0%"), {}),
        ("order", ("name",), {"desc": False}),
        ("limit", (2,), {}),
    ]


def test_exact_tag_match_ignores_case_but_not_suffixes():
    store = LocalTableStore()
    store.insert("students", {"name": "Ana", "rfid": " stu001 "})
    store.insert("students", {"name": "Ben", "rfid": "STU0011"})
    client = FakeClient()

    rows = store.select("students", Query().ilike_exact("rfid", "STU001"))
    SupabaseTableStore(client).select("students", Query().ilike_exact("rfid", "STU_01"))

    assert [r["name"] for r in rows] == ["Ana"]
    assert ("ilike", ("rfid", "STU\\_01"), {}) in client.calls


def test_supabase_api_error_keeps_the_postgres_code():
    client = FakeClient(APIError({"message": "column rfid_scans.id does not exist", "code": "42703"}))
    store = SupabaseTableStore(client)

    with pytest.raises(StoreError) as err:
        store.select("rfid_scans", Query().order("id"))

    assert err.value.code == "42703"


def test_supabase_ping_reports_transport_failure():
    store = SupabaseTableStore(FakeClient(httpx.ConnectError("refused")))

    assert store.ping() is False


def test_build_store_without_credentials_falls_back_to_local():
    store = build_store({"backend": "remote", "url": "", "key": "", "local_path": None})

    assert store.backend_name == "local"


def test_build_store_honours_local_backend(tmp_path):
    store = build_store({"backend": "local", "url": "https://x.supabase.co", "key": "k", "local_path": tmp_path / "s.json"})

    assert isinstance(store, LocalTableStore)
