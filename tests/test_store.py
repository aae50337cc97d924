import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from finsense.errors import StoreError
from finsense.models import SavedRecord
from finsense.store import FileSavedStore, MemorySavedStore, saved_key


def ticking_clock(start=datetime(2025, 11, 15, 9, 0, tzinfo=timezone.utc)):
    state = {"now": start}

    def clock():
        state["now"] += timedelta(seconds=1)
        return state["now"]

    return clock


def record(article_id="n1", score=0.7):
    return SavedRecord(
        id=article_id,
        title=f"Headline {article_id}",
        source="Wire",
        date="2025-11-15",
        sentiment="positive",
        sentiment_score=score,
    )


def test_saved_key_layout():
    assert saved_key("app", "u1", "n1") == "app/u1/saved_articles/n1"


def test_upsert_assigns_saved_at_and_overwrites():
    store = MemorySavedStore(clock=ticking_clock())
    asyncio.run(store.upsert("u1", record(score=0.6)))
    asyncio.run(store.upsert("u1", record(score=0.8)))
    snapshot = store.snapshot("u1")
    assert len(snapshot) == 1
    assert snapshot[0].sentiment_score == 0.8
    assert snapshot[0].saved_at is not None


def test_records_are_scoped_per_user():
    store = MemorySavedStore()
    asyncio.run(store.upsert("u1", record("n1")))
    assert store.snapshot("u2") == ()


def test_delete_missing_key_is_not_an_error():
    store = MemorySavedStore()
    asyncio.run(store.delete("u1", "never-saved"))
    assert store.snapshot("u1") == ()


def test_subscription_delivers_full_snapshots_newest_first():
    store = MemorySavedStore(clock=ticking_clock())
    received = []
    subscription = store.subscribe("u1", received.append)

    asyncio.run(store.upsert("u1", record("n1")))
    asyncio.run(store.upsert("u1", record("n2")))
    asyncio.run(store.delete("u1", "n1"))

    assert [[r.id for r in snap] for snap in received] == [
        [],
        ["n1"],
        ["n2", "n1"],
        ["n2"],
    ]
    assert all(isinstance(snap, tuple) for snap in received)
    subscription.unsubscribe()


def test_unsubscribe_stops_deliveries_and_is_idempotent():
    store = MemorySavedStore()
    received = []
    subscription = store.subscribe("u1", received.append)
    subscription.unsubscribe()
    subscription.unsubscribe()
    asyncio.run(store.upsert("u1", record()))
    assert received == [()]
    assert not subscription.active


def test_fail_subscriptions_notifies_error_callbacks():
    store = MemorySavedStore()
    errors = []
    store.subscribe("u1", lambda snap: None, errors.append)
    store.fail_subscriptions("u1", StoreError("listener revoked"))
    assert [str(e) for e in errors] == ["listener revoked"]


def test_invalid_ids_are_rejected():
    store = MemorySavedStore()
    with pytest.raises(StoreError):
        asyncio.run(store.upsert("u1", record("../escape")))
    with pytest.raises(StoreError):
        asyncio.run(store.delete("", "n1"))


def test_file_store_persists_one_document_per_record(tmp_path):
    store = FileSavedStore(tmp_path, namespace="app", clock=ticking_clock())
    asyncio.run(store.upsert("u1", record("n1")))

    path = tmp_path / "app" / "users" / "u1" / "saved_articles" / "n1.json"
    assert path.exists()
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["id"] == "n1"
    assert stored["sentimentScore"] == 0.7
    assert "savedAt" in stored

    reopened = FileSavedStore(tmp_path, namespace="app")
    assert [r.id for r in reopened.snapshot("u1")] == ["n1"]


def test_file_store_delete_removes_document(tmp_path):
    store = FileSavedStore(tmp_path)
    asyncio.run(store.upsert("u1", record("n1")))
    asyncio.run(store.delete("u1", "n1"))
    assert not store.record_path("u1", "n1").exists()
    assert FileSavedStore(tmp_path).snapshot("u1") == ()


def test_file_store_reports_corrupt_records_to_subscribers(tmp_path):
    store = FileSavedStore(tmp_path)
    directory = store.collection_dir("u1")
    directory.mkdir(parents=True)
    (directory / "n1.json").write_text("{oops", encoding="utf-8")

    errors = []
    subscription = store.subscribe("u1", lambda snap: None, errors.append)
    assert len(errors) == 1
    assert isinstance(errors[0], StoreError)
    assert not subscription.active


def test_failing_subscriber_does_not_undo_a_committed_write(caplog):
    store = MemorySavedStore()
    received = []

    def broken(snapshot):
        if snapshot:
            raise RuntimeError("render failed")

    store.subscribe("u1", broken)
    store.subscribe("u1", received.append)

    with caplog.at_level(logging.ERROR, logger="finsense"):
        committed = asyncio.run(store.upsert("u1", record("n1")))
        asyncio.run(store.delete("u1", "n1"))

    assert committed.id == "n1"
    assert [[r.id for r in snap] for snap in received] == [[], ["n1"], []]
    assert caplog.text.count("Saved-article subscriber for u1 failed") == 1
    assert "render failed" in caplog.text


def test_unsubscribe_drops_listener_count():
    store = MemorySavedStore()
    first = store.subscribe("u1", lambda snap: None)
    second = store.subscribe("u1", lambda snap: None)
    assert store.listener_count("u1") == 2

    first.unsubscribe()
    assert store.listener_count("u1") == 1
    second.unsubscribe()
    assert store.listener_count("u1") == 0


def test_memory_store_keeps_records_after_last_unsubscribe():
    store = MemorySavedStore()
    subscription = store.subscribe("u1", lambda snap: None)
    asyncio.run(store.upsert("u1", record("n1")))
    subscription.unsubscribe()
    assert [r.id for r in store.snapshot("u1")] == ["n1"]


def test_file_store_rereads_disk_once_nobody_is_watching(tmp_path):
    store = FileSavedStore(tmp_path)
    subscription = store.subscribe("u1", lambda snap: None)
    asyncio.run(store.upsert("u1", record("n1")))
    subscription.unsubscribe()

    asyncio.run(FileSavedStore(tmp_path).upsert("u1", record("n2")))

    assert {r.id for r in store.snapshot("u1")} == {"n1", "n2"}


def test_refresh_delivers_writes_from_another_process(tmp_path):
    store = FileSavedStore(tmp_path, clock=ticking_clock())
    received = []
    store.subscribe("u1", received.append)

    other = FileSavedStore(tmp_path, clock=ticking_clock())
    asyncio.run(other.upsert("u1", record("n4")))
    assert received == [()]

    store.refresh("u1")
    assert [[r.id for r in snap] for snap in received] == [[], ["n4"]]


def test_refresh_reports_unreadable_records_and_ends_subscriptions(tmp_path):
    store = FileSavedStore(tmp_path)
    errors = []
    store.subscribe("u1", lambda snap: None, errors.append)
    asyncio.run(store.upsert("u1", record("n1")))

    store.record_path("u1", "n2").write_text("{oops", encoding="utf-8")
    store.refresh("u1")

    assert len(errors) == 1
    assert isinstance(errors[0], StoreError)
    assert store.listener_count("u1") == 0
