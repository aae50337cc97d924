import asyncio
import logging
import random

import pytest

from finsense.catalog import load_catalog
from finsense.dashboard import Dashboard
from finsense.errors import StoreError
from finsense.models import SavedRecord
from finsense.store import FileSavedStore, MemorySavedStore, Subscription


def make_dashboard(store=None, user_id="u1"):
    store = store or MemorySavedStore()
    dashboard = Dashboard(
        store=store, user_id=user_id, catalog=load_catalog(rng=random.Random(9))
    )
    dashboard.start()
    return store, dashboard


def saved_flags(dashboard):
    return {a.id: a.is_saved for a in dashboard.annotated()}


def test_save_then_project_marks_article_saved():
    _, dashboard = make_dashboard()
    outcome = asyncio.run(dashboard.save("n1"))
    assert outcome.ok
    assert saved_flags(dashboard)["n1"] is True


def test_save_then_remove_round_trip():
    _, dashboard = make_dashboard()
    asyncio.run(dashboard.save("n1"))
    asyncio.run(dashboard.remove("n1"))
    assert "n1" not in dashboard.saved_ids()
    assert saved_flags(dashboard)["n1"] is False


def test_resave_keeps_cardinality():
    _, dashboard = make_dashboard()
    asyncio.run(dashboard.save("n4"))
    asyncio.run(dashboard.save("n4"))
    assert len(dashboard.saved_articles()) == 1


def test_saves_from_another_device_reach_the_session():
    store, dashboard = make_dashboard()
    other_device = Dashboard(store=store, user_id="u1", catalog=dashboard.catalog)
    asyncio.run(other_device.save("n2"))
    assert dashboard.saved_ids() == {"n2"}


def test_unknown_article_id_raises_key_error():
    _, dashboard = make_dashboard()
    with pytest.raises(KeyError):
        asyncio.run(dashboard.save("missing"))


def test_view_before_catalog_load_is_distinct_from_empty_result():
    dashboard = Dashboard(store=MemorySavedStore(), user_id="u1")
    pending = dashboard.view()
    assert pending.loaded is False
    assert pending.articles is None

    dashboard.load(load_catalog(rng=random.Random(1)))
    empty = dashboard.view(search="no such headline")
    assert empty.loaded is True
    assert empty.articles == []


def test_trend_ignores_filters():
    _, dashboard = make_dashboard()
    full = dashboard.view()
    narrowed = dashboard.view(sentiment="negative", search="reuters")
    assert len(narrowed.articles) == 1
    assert narrowed.trend == full.trend
    assert [p.date for p in full.trend] == ["2025-11-13", "2025-11-14", "2025-11-15"]


def test_subscription_failure_keeps_last_known_saved_set(caplog):
    store, dashboard = make_dashboard()
    asyncio.run(dashboard.save("n1"))

    with caplog.at_level(logging.ERROR, logger="finsense"):
        store.fail_subscriptions("u1", StoreError("listener revoked"))

    assert dashboard.saved_ids() == {"n1"}
    assert "Error listening to saved articles" in caplog.text


def _record_for(dashboard, article_id):
    return SavedRecord.from_article(dashboard.article(article_id))


def test_close_stops_updates():
    store, dashboard = make_dashboard()
    dashboard.close()
    asyncio.run(store.upsert("u1", _record_for(dashboard, "n1")))
    assert dashboard.saved_ids() == frozenset()
    assert not dashboard.subscribed


class RecordingStore(MemorySavedStore):
    """Keeps every snapshot callback, even after unsubscribe."""

    def __init__(self):
        super().__init__()
        self.callbacks = []

    def subscribe(self, user_id, on_snapshot, on_error=None):
        self.callbacks.append(on_snapshot)
        on_snapshot(self.snapshot(user_id))
        return Subscription(lambda: None)


def test_switch_user_drops_late_snapshots_for_previous_identity():
    store = RecordingStore()
    _, dashboard = make_dashboard(store=store, user_id="u1")
    stale_callback = store.callbacks[0]

    dashboard.switch_user("u2")
    stale_callback((_record_for(dashboard, "n1"),))

    assert dashboard.user_id == "u2"
    assert dashboard.controller.user_id == "u2"
    assert dashboard.saved_ids() == frozenset()


def test_switch_user_resubscribes_for_new_identity():
    store, dashboard = make_dashboard()
    asyncio.run(store.upsert("u2", _record_for(dashboard, "n5")))
    asyncio.run(dashboard.save("n1"))

    dashboard.switch_user("u2")

    assert dashboard.saved_ids() == {"n5"}
    assert dashboard.subscribed


def test_unreadable_store_on_refresh_keeps_last_known_saved_set(tmp_path, caplog):
    store, dashboard = make_dashboard(FileSavedStore(tmp_path))
    asyncio.run(dashboard.save("n1"))
    store.record_path("u1", "n2").write_text("not json", encoding="utf-8")

    with caplog.at_level(logging.ERROR, logger="finsense"):
        store.refresh("u1")

    assert dashboard.saved_ids() == {"n1"}
    assert "Error listening to saved articles" in caplog.text


def test_close_releases_store_listener():
    store, dashboard = make_dashboard()
    assert store.listener_count("u1") == 1
    dashboard.close()
    assert store.listener_count("u1") == 0
