import pytest

from qrkit.cache import TTLCache, cached
from qrkit.qr_scanner.qr_engine import classify_qr_content
from qrkit.url_scanner import check_url_safety


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def make_cache(clock, **kwargs):
    kwargs.setdefault("cleanup_probability", 0.0)
    return TTLCache(clock=clock, rng=lambda: 0.5, **kwargs)


def test_get_and_set(clock):
    cache = make_cache(clock, max_size=3, ttl_seconds=10)
    cache.set("a", 1)
    assert cache.get("a") == 1
    assert cache.get("missing") is None
    assert cache.get("missing", "default") == "default"
    assert "a" in cache


def test_entries_expire(clock):
    cache = make_cache(clock, max_size=3, ttl_seconds=10)
    cache.set("a", 1)
    clock.now += 10
    assert cache.get("a") == 1
    clock.now += 0.5
    assert cache.get("a") is None
    assert len(cache) == 0


def test_oldest_insertion_is_evicted(clock):
    cache = make_cache(clock, max_size=2, ttl_seconds=10)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")  # reads do not refresh position
    cache.set("c", 3)
    assert "a" not in cache
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_resetting_a_key_moves_it_to_newest(clock):
    cache = make_cache(clock, max_size=2, ttl_seconds=10)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)
    assert cache.get("a") == 10
    assert "b" not in cache


def test_cleanup_removes_only_expired(clock):
    cache = make_cache(clock, max_size=10, ttl_seconds=10)
    cache.set("old", 1)
    clock.now += 8
    cache.set("new", 2)
    clock.now += 5
    assert cache.cleanup() == 1
    assert len(cache) == 1


def test_lookup_triggers_sweep_when_rng_hits(clock):
    cache = TTLCache(max_size=10, ttl_seconds=10, cleanup_probability=0.1, clock=clock, rng=lambda: 0.05)
    cache.set("old", 1)
    cache.set("other", 2)
    clock.now += 20
    cache.get("unrelated")
    assert len(cache) == 0


def test_clear(clock):
    cache = make_cache(clock)
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"max_size": 0}, {"ttl_seconds": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        TTLCache(**kwargs)


def test_cached_calls_through_once_per_key(clock):
    calls = []

    def engine(value):
        calls.append(value)
        return value.strip().upper()

    wrapped = cached(engine, make_cache(clock, ttl_seconds=10))
    assert wrapped(" abc ") == "ABC"
    assert wrapped("abc") == "ABC"
    assert calls == [" abc "]


def test_cached_keys_are_case_sensitive(clock):
    wrapped = cached(check_url_safety, make_cache(clock, ttl_seconds=10))
    assert wrapped("https://example.com?returnUrl=x").risk_level == "medium"
    assert wrapped("https://example.com?RETURNURL=x").risk_level == "low"


def test_cached_bypasses_non_strings(clock):
    cache = make_cache(clock, ttl_seconds=10)
    wrapped = cached(classify_qr_content, cache)
    assert wrapped(None).parsed_data.text == ""
    assert len(cache) == 0


def test_hit_and_miss_are_equal(clock):
    wrapped = cached(classify_qr_content, make_cache(clock, ttl_seconds=10))
    first = wrapped("WIFI:T:WPA;S:MyNetwork;P:MyPassword;H:false;;")
    second = wrapped("WIFI:T:WPA;S:MyNetwork;P:MyPassword;H:false;;")
    assert first == second == classify_qr_content("WIFI:T:WPA;S:MyNetwork;P:MyPassword;H:false;;")


def test_cached_keeps_wrapped_metadata(clock):
    wrapped = cached(classify_qr_content, make_cache(clock))
    assert wrapped.__name__ == "classify_qr_content"
    assert wrapped.__doc__ == classify_qr_content.__doc__
    assert wrapped.__wrapped__ is classify_qr_content
