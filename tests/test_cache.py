import sqlite3
from pathlib import Path

import pytest

from app.clients.cache import SEARCH_PREFIX, SQLiteCache, generate_cache_key


@pytest.fixture
def cache(tmp_path: Path) -> SQLiteCache:
    return SQLiteCache(str(tmp_path / "cache.db"))


def test_cache_key_ignores_key_order():
    first = generate_cache_key(SEARCH_PREFIX, {"industry": "541512", "location": "VA"})
    second = generate_cache_key(SEARCH_PREFIX, {"location": "VA", "industry": "541512"})

    assert first == second
    assert first.startswith("usaspending:")
    assert first != generate_cache_key(SEARCH_PREFIX, {"industry": "236220"})


def test_set_then_get_returns_value(cache: SQLiteCache):
    assert cache.set("usaspending:abc", [{"recipient_name": "Acme"}], 60) is True

    assert cache.get("usaspending:abc") == [{"recipient_name": "Acme"}]
    assert cache.stats.hits == 1
    assert cache.stats.sets == 1


def test_expired_entries_are_misses(cache: SQLiteCache):
    cache.set("usaspending:old", {"value": 1}, -1)

    assert cache.get("usaspending:old") is None
    assert cache.get("usaspending:missing") is None
    assert cache.stats.misses == 2
    assert cache.stats.hit_rate == 0.0


def test_delete_and_clear_by_prefix(cache: SQLiteCache):
    cache.set("usaspending:a", 1, 60)
    cache.set("usaspending:b", 2, 60)
    cache.set("apify:a", 3, 60)

    assert cache.delete("usaspending:a") is True
    assert cache.delete("usaspending:a") is False
    assert cache.clear("usaspending") == 1
    assert cache.get("apify:a") == 3
    assert cache.clear() == 1


def test_stats_report_hit_rate(cache: SQLiteCache):
    cache.set("k:1", "v", 60)
    cache.get("k:1")
    cache.get("k:1")
    cache.get("k:2")

    stats = cache.stats.to_dict()

    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == pytest.approx(0.6667)


def test_entry_counts_group_live_keys_by_prefix(cache: SQLiteCache):
    cache.set("usaspending:a", 1, 60)
    cache.set("usaspending:b", 2, 60)
    cache.set("usaspending:old", 3, -1)
    cache.set("enrichment:a", 4, 60)

    assert cache.entry_counts() == {"usaspending": 2, "enrichment": 1}


def test_delete_and_clear_failures_are_counted_not_raised(tmp_path: Path):
    db_path = tmp_path / "cache.db"
    cache = SQLiteCache(str(db_path))
    with sqlite3.connect(db_path) as conn:
        conn.execute("DROP TABLE cache_entries")

    assert cache.delete("usaspending:a") is False
    assert cache.clear("usaspending") == 0
    assert cache.clear() == 0
    assert cache.entry_counts() == {}
    assert cache.stats.errors == 4
    assert cache.stats.deletes == 0
