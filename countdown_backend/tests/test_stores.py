import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from countdown_api.db import SQLiteCountdownStore, _to_store_error
from countdown_api.errors import StoreCapacityError, StoreError
from countdown_api.json_store import JsonFileCountdownStore
from countdown_api.repositories import CountdownStore, InMemoryCountdownStore, get_store
from countdown_api.schemas import CountdownCreate, CountdownUpdate
from countdown_api.utils import utc_now


class StepClock:
    """Deterministic clock advancing one hour per call."""

    def __init__(self) -> None:
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(hours=1)
        return self.current


def make_store(kind, tmp_path, clock=None):
    if kind == "memory":
        return InMemoryCountdownStore(clock=clock)
    if kind == "sqlite":
        return SQLiteCountdownStore(str(tmp_path / "countdowns.db"), clock=clock)
    return JsonFileCountdownStore(str(tmp_path / "countdowns.json"), clock=clock)


@pytest.fixture(params=["memory", "sqlite", "json"])
def store(request, tmp_path):
    return make_store(request.param, tmp_path)


def create_payload(**overrides):
    data = {
        "title": "Launch",
        "target_date": utc_now() + timedelta(days=30),
        "timezone": "Europe/Paris",
        "location": "Paris",
        "count_type": "working",
        "working_hours": {"start": "08:30", "end": "16:30", "exclude_weekends": False},
        "customization": {"background_color": "#000000", "font_size": "22px"},
        "background_images": [{"id": "img-1", "data": "data:image/png;base64,AAAA", "name": "a.png"}],
        "image_interval": 7,
    }
    data.update(overrides)
    return CountdownCreate(**data)


class TestStoreContract:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, CountdownStore)

    def test_create_then_get_round_trip(self, store):
        payload = create_payload()
        cid = store.create(payload)
        record = store.get(cid)

        assert record is not None
        assert record["id"] == cid
        assert record["created_at"] == record["updated_at"]
        expected = payload.to_fields()
        assert {k: record[k] for k in expected} == expected

    def test_ids_are_unique(self, store):
        ids = {store.create(create_payload(title=f"T{i}")) for i in range(5)}
        assert len(ids) == 5

    def test_get_unknown_is_none(self, store):
        assert store.get("does-not-exist") is None

    def test_update_changes_only_given_fields(self, store):
        cid = store.create(create_payload())
        before = store.get(cid)

        assert store.update(cid, CountdownUpdate(title="Launch v2", image_interval=9)) is True
        after = store.get(cid)

        assert after["title"] == "Launch v2"
        assert after["image_interval"] == 9
        for key in ("target_date", "timezone", "location", "count_type", "working_hours",
                    "customization", "background_images", "created_at", "id"):
            assert after[key] == before[key]
        assert after["updated_at"] > before["updated_at"]

    def test_update_advances_updated_at_every_time(self, store):
        cid = store.create(create_payload())
        stamps = []
        for i in range(3):
            store.update(cid, CountdownUpdate(title=f"Edit {i}"))
            stamps.append(store.get(cid)["updated_at"])
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == 3

    def test_update_unknown_reports_not_found_and_creates_nothing(self, store):
        assert store.update("missing", CountdownUpdate(title="Ghost")) is False
        assert store.get("missing") is None
        assert store.list_all() == []

    def test_update_can_clear_location(self, store):
        cid = store.create(create_payload())
        store.update(cid, CountdownUpdate(location=None))
        assert store.get(cid)["location"] is None

    def test_explicit_null_title_is_ignored(self, store):
        cid = store.create(create_payload())
        store.update(cid, CountdownUpdate(title=None))
        assert store.get(cid)["title"] == "Launch"

    def test_switching_count_type_keeps_working_hours_invariant(self, store):
        cid = store.create(create_payload())
        store.update(cid, CountdownUpdate(count_type="natural"))
        assert store.get(cid)["working_hours"] is None

        store.update(cid, CountdownUpdate(count_type="working"))
        assert store.get(cid)["working_hours"] == {"start": "09:00", "end": "17:00", "exclude_weekends": True}

    def test_naive_target_update_is_read_in_record_timezone(self, store):
        cid = store.create(create_payload())
        update = CountdownUpdate(target_date=datetime(2099, 6, 2, 9, 0))
        assert update.target_date.tzinfo is None

        store.update(cid, update)
        assert store.get(cid)["target_date"] == datetime(2099, 6, 2, 7, 0, tzinfo=timezone.utc)

    def test_delete_then_get_is_none_and_delete_is_idempotent(self, store):
        cid = store.create(create_payload())
        store.delete(cid)
        assert store.get(cid) is None
        store.delete(cid)
        store.delete("never-existed")
        assert store.update(cid, CountdownUpdate(title="Back")) is False

    def test_list_all_empty(self, store):
        assert store.list_all() == []

    def test_returned_records_are_copies(self, store):
        cid = store.create(create_payload())
        record = store.get(cid)
        record["customization"]["font_size"] = "99px"
        assert store.get(cid)["customization"]["font_size"] == "22px"


@pytest.mark.parametrize("kind", ["memory", "sqlite", "json"])
def test_list_all_newest_first(kind, tmp_path):
    store = make_store(kind, tmp_path, clock=StepClock())
    ids = [store.create(create_payload(title=f"Countdown {i}")) for i in range(4)]

    listed = store.list_all()

    assert [c["id"] for c in listed] == list(reversed(ids))
    created = [c["created_at"] for c in listed]
    assert created == sorted(created, reverse=True)


def test_memory_stores_are_independent():
    a, b = InMemoryCountdownStore(), InMemoryCountdownStore()
    cid = a.create(create_payload())
    assert a.get(cid) is not None
    assert b.get(cid) is None
    assert b.list_all() == []


def test_sqlite_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "countdowns.db")
    cid = SQLiteCountdownStore(path).create(create_payload())
    assert SQLiteCountdownStore(path).get(cid)["title"] == "Launch"


def test_json_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "countdowns.json")
    cid = JsonFileCountdownStore(path).create(create_payload())
    reopened = JsonFileCountdownStore(path)
    assert reopened.get(cid)["title"] == "Launch"
    with open(path, encoding="utf-8") as f:
        assert json.load(f)["countdowns"][0]["id"] == cid


class TestBackingMediumFailures:
    def test_json_quota_exceeded_is_capacity_error(self, tmp_path):
        path = tmp_path / "countdowns.json"
        store = JsonFileCountdownStore(str(path), max_bytes=200)
        with pytest.raises(StoreCapacityError):
            store.create(create_payload())
        assert not path.exists()

    def test_json_quota_failure_leaves_previous_data(self, tmp_path):
        path = str(tmp_path / "countdowns.json")
        store = JsonFileCountdownStore(path, max_bytes=4000)
        cid = store.create(create_payload(background_images=[]))
        big = [{"id": "big", "data": "x" * 5000, "name": "big.png"}]
        with pytest.raises(StoreCapacityError):
            store.update(cid, CountdownUpdate(background_images=big))
        assert store.get(cid)["background_images"] == []

    def test_json_corrupt_file_raises_not_none(self, tmp_path):
        path = tmp_path / "countdowns.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileCountdownStore(str(path))
        with pytest.raises(StoreError):
            store.get("anything")
        with pytest.raises(StoreError):
            store.list_all()

    def test_sqlite_unopenable_database_raises_store_error(self, tmp_path):
        # a directory cannot be opened as a database file
        with pytest.raises(StoreError) as info:
            SQLiteCountdownStore(str(tmp_path))
        assert not isinstance(info.value, StoreCapacityError)
        assert isinstance(info.value.__cause__, sqlite3.Error)

    def test_sqlite_full_database_maps_to_capacity_error(self):
        err = _to_store_error(sqlite3.OperationalError("database or disk is full"))
        assert isinstance(err, StoreCapacityError)
        assert err.backend == "sqlite"

    def test_other_sqlite_errors_map_to_store_error(self):
        err = _to_store_error(sqlite3.OperationalError("database is locked"))
        assert type(err) is StoreError


class TestGetStore:
    @pytest.fixture(autouse=True)
    def _clear_cache(self):
        get_store.cache_clear()
        yield
        get_store.cache_clear()

    def test_defaults_to_memory(self, monkeypatch):
        monkeypatch.delenv("PERSISTENCE_BACKEND", raising=False)
        assert isinstance(get_store(), InMemoryCountdownStore)

    def test_same_instance_per_process(self, monkeypatch):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
        assert get_store() is get_store()

    def test_sqlite_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "data" / "c.db"))
        assert isinstance(get_store(), SQLiteCountdownStore)

    def test_json_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "json")
        monkeypatch.setenv("JSON_STORE_PATH", str(tmp_path / "c.json"))
        assert isinstance(get_store(), JsonFileCountdownStore)
