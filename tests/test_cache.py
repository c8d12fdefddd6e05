from __future__ import annotations

from stockwatch.cache import SELECTION_TTL_S, STOCK_STATUS_TTL_S, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("key", "value", ttl_s=10)

    clock.now = 9.9
    assert cache.get("key") == "value"
    assert cache.exists("key") is True

    clock.now = 10
    assert cache.get("key") is None
    assert cache.exists("key") is False
    assert len(cache) == 0


def test_entries_without_ttl_persist_until_deleted() -> None:
    cache = TTLCache()
    cache.set("key", 0)

    assert cache.exists("key") is True
    cache.delete("key")
    assert cache.exists("key") is False


def test_selection_and_stock_helpers_use_their_ttls() -> None:
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.cache_user_selection("42", "milk-1l")
    cache.cache_stock_status("milk-1l", {"is_in_stock": True})

    clock.now = STOCK_STATUS_TTL_S
    assert cache.get_user_selection("42") == "milk-1l"
    assert cache.get_stock_status("milk-1l") is None

    clock.now = SELECTION_TTL_S
    assert cache.get_user_selection("42") is None
