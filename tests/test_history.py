import itertools
import threading

import pytest

from qrkit.history import CLEANUP_THRESHOLD, MAX_HISTORY_ITEMS, HistoryItem, HistoryStore
from qrkit.models import TextData


@pytest.fixture
def store():
    ticks = itertools.count(1000)
    ids = itertools.count(1)
    return HistoryStore(clock=lambda: next(ticks), id_factory=lambda: f"id-{next(ids)}")


def test_add_classifies_and_prepends(store):
    first = store.add("hello")
    second = store.add("  https://example.com  ")
    assert first.content_type == "text"
    assert second.content_type == "url"
    assert second.text == "https://example.com"
    assert [item.id for item in store.items] == [second.id, first.id]


def test_url_items_carry_security(store):
    item = store.add("http://192.168.1.1")
    assert item.security_analysis.risk_level == "high"
    assert store.add("plain").security_analysis is None


@pytest.mark.parametrize("text", ["", "   ", None, 12])
def test_empty_text_is_ignored(store, text):
    assert store.add(text) is None
    assert len(store) == 0


def test_duplicate_moves_to_front_and_keeps_flags(store):
    original = store.add("hello", image_url="data:image/png;base64,AAA")
    store.add("other")
    store.toggle_favorite(original.id)

    again = store.add("hello")
    assert [item.text for item in store.items] == ["hello", "other"]
    assert again.id == original.id
    assert again.is_favorite is True
    assert again.image_url == "data:image/png;base64,AAA"
    assert again.timestamp > original.timestamp


def test_duplicate_with_new_image_replaces_it(store):
    store.add("hello", image_url="old")
    assert store.add("hello", image_url="new").image_url == "new"


def test_add_caps_history(store):
    for i in range(MAX_HISTORY_ITEMS + 5):
        store.add(f"item {i}")
    assert len(store) == MAX_HISTORY_ITEMS
    assert store.items[0].text == f"item {MAX_HISTORY_ITEMS + 4}"


def test_remove_and_clear(store):
    item = store.add("hello")
    store.add("other")
    assert store.remove(item.id) is True
    assert store.remove(item.id) is False
    assert [i.text for i in store.items] == ["other"]
    store.clear()
    assert len(store) == 0


def test_toggle_favorite(store):
    item = store.add("hello")
    assert store.toggle_favorite(item.id).is_favorite is True
    assert store.favorites()[0].id == item.id
    assert store.toggle_favorite(item.id).is_favorite is False
    assert store.favorites() == []
    assert store.toggle_favorite("missing") is None


def test_filter_by_type(store):
    store.add("https://example.com")
    store.add("hello")
    store.add("+15551234567")
    assert [item.content_type for item in store.filter_by_type("phone")] == ["phone"]
    assert len(store.filter_by_type(None)) == 3


def test_search_matches_text_type_and_fields(store):
    store.add("https://Example.com/page")
    store.add("WIFI:T:WEP;S:CoffeeShop;P:abc;;")
    store.add("BEGIN:VCARD\nFN:Jane Smith\nORG:Acme\nEND:VCARD")
    store.add("5551234567")

    assert [i.content_type for i in store.search("example")] == ["url"]
    assert [i.content_type for i in store.search("wifi")] == ["wifi"]
    assert [i.content_type for i in store.search("wep")] == ["wifi"]
    assert [i.content_type for i in store.search("acme")] == ["vcard"]
    assert [i.content_type for i in store.search("(555)")] == ["phone"]
    assert len(store.search("   ")) == 4
    assert store.search("nothing-like-this") == []


def test_cleanup_keeps_favourites_then_newest(store):
    records = [
        {
            "id": f"r{i}",
            "text": f"note {i}",
            "timestamp": i,
            "contentType": "text",
            "isFavorite": i == 0,
            "parsedData": {"text": f"note {i}"},
        }
        for i in range(CLEANUP_THRESHOLD + 10)
    ]
    assert store.load(records) == CLEANUP_THRESHOLD + 10
    assert len(store) == CLEANUP_THRESHOLD
    kept = {item.id for item in store.items}
    assert "r0" in kept
    assert "r1" not in kept
    assert store.items[0].id == "r0"


def test_cleanup_noop_when_small(store):
    store.add("hello")
    assert store.cleanup() == 0


def test_export_drops_actions_and_uses_camel_case(store):
    store.add("https://example.com", image_url="img")
    (record,) = store.export()
    assert set(record) == {
        "id", "text", "timestamp", "imageUrl", "contentType",
        "isFavorite", "parsedData", "securityAnalysis",
    }
    assert record["parsedData"]["domain"] == "example.com"
    assert record["securityAnalysis"]["riskLevel"] == "low"


def test_export_is_capped(store):
    records = [
        {"id": str(i), "text": f"t{i}", "timestamp": i, "contentType": "text", "parsedData": {"text": f"t{i}"}}
        for i in range(80)
    ]
    store.load(records)
    assert len(store.export()) == 50


def test_load_regenerates_actions_and_skips_bad_records(store, caplog):
    store.add("WIFI:T:WPA;S:Home;P:secret123;;")
    store.add("hello")
    exported = store.export()
    exported.insert(1, {"id": "bad", "text": "x", "timestamp": 1, "contentType": "wifi", "parsedData": {"text": "x"}})
    exported.append({"id": "worse", "contentType": "bitcoin", "parsedData": {}})
    exported.append("not a record")

    fresh = HistoryStore()
    assert fresh.load(exported) == 2
    assert [item.content_type for item in fresh.items] == ["text", "wifi"]
    wifi = fresh.items[1]
    assert [a.label for a in wifi.actions] == ["Copy Network Name", "Copy Password"]
    assert "history_record_skipped" in caplog.text


def test_load_ignores_stored_actions(store):
    record = {
        "id": "1",
        "text": "hello",
        "timestamp": 1,
        "contentType": "text",
        "parsedData": {"text": "hello"},
        "actions": [{"label": "Evil", "kind": "open-url", "payload": "javascript:alert(1)", "icon": "x"}],
    }
    store.load([record])
    assert [a.label for a in store.items[0].actions] == ["Copy Text"]


def test_items_are_immutable(store):
    item = store.add("hello")
    with pytest.raises(Exception):
        item.text = "changed"
    assert isinstance(item, HistoryItem)
    assert item.parsed_data == TextData(text="hello")


@pytest.mark.parametrize(
    "read",
    [
        len,
        lambda s: s.items,
        lambda s: s.get("id-1"),
        lambda s: s.favorites(),
        lambda s: s.filter_by_type("text"),
        lambda s: s.search("hello"),
        lambda s: s.export(),
    ],
)
def test_reads_wait_for_writers(store, read):
    store.add("hello")
    results = []

    store._lock.acquire()
    try:
        reader = threading.Thread(target=lambda: results.append(read(store)))
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        assert results == []
    finally:
        store._lock.release()

    reader.join(timeout=5)
    assert not reader.is_alive()
    assert len(results) == 1
