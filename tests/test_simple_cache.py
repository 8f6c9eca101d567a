"""Unit tests for the in-memory SimpleTTLCache."""

import threading

import pytest

from socialhub.utils import simple_cache
from socialhub.utils.simple_cache import SimpleTTLCache, post_key, posts_page_key


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def test_cache_keys_are_distinct_per_page_and_post() -> None:
    assert posts_page_key(1, 10) == "posts:1:10"
    assert posts_page_key(1, 10) != posts_page_key(2, 10)
    assert post_key("abc") == "post:abc"
    assert not post_key("abc").startswith("posts:")


def test_set_and_get_updates_hit_miss_counters() -> None:
    cache = SimpleTTLCache(ttl_seconds=10)

    assert cache.get("missing") is None

    page = {"posts": [], "total_posts": 0}
    cache.set("key", page)

    assert cache.get("key") == page

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_expired_entry_is_evicted(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_time = FakeTime()
    monkeypatch.setattr(simple_cache, "time", fake_time)

    cache = SimpleTTLCache(ttl_seconds=5)
    cache.set("key", {"data": True})

    fake_time.advance(6)

    assert cache.get("key") is None
    assert cache.stats()["evictions"] == 1


def test_lru_eviction_removes_least_recently_used() -> None:
    cache = SimpleTTLCache(ttl_seconds=100, max_entries=2)
    cache.set("a", {"v": 1})
    cache.set("b", {"v": 2})

    # Access "a" so that "b" becomes least recently used
    assert cache.get("a") == {"v": 1}

    cache.set("c", {"v": 3})

    assert cache.get("a") == {"v": 1}
    assert cache.get("c") == {"v": 3}
    assert cache.get("b") is None


def test_delete_prefix_invalidates_only_listing_pages() -> None:
    cache = SimpleTTLCache(ttl_seconds=100)
    cache.set(posts_page_key(1, 10), {"page": 1})
    cache.set(posts_page_key(2, 10), {"page": 2})
    cache.set(post_key("p1"), {"id": "p1"})

    assert cache.delete_prefix("posts:") == 2

    assert cache.get(posts_page_key(1, 10)) is None
    assert cache.get(post_key("p1")) == {"id": "p1"}


def test_delete_reports_whether_key_existed() -> None:
    cache = SimpleTTLCache(ttl_seconds=100)
    cache.set("a", 1)

    assert cache.delete("a") is True
    assert cache.delete("a") is False


def test_thread_safety_under_concurrent_sets() -> None:
    cache = SimpleTTLCache(ttl_seconds=30, max_entries=None)
    total_keys = 50

    def _writer(idx: int) -> None:
        cache.set(f"k-{idx}", {"v": idx})

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == total_keys
    assert cache.get("k-49") == {"v": 49}
