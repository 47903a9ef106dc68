"""検索結果の TTL キャッシュ.

エントリは TTL 切れで無効になる。件数が max_entries を超えると古いものから捨てる。時計は注入でき、テストでは
固定値を返す関数を渡す。
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from pricecollector.config import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


class TTLCache:
    """(query, category, store) をキーにした TTL キャッシュ."""

    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 100,
    ):
        self.ttl = ttl
        self.clock = clock
        self.max_entries = max_entries
        self._entries: dict[tuple, dict] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(query: str, category: str = "", store: str = "") -> tuple[str, str, str]:
        return (query.lower().strip(), category.lower().strip(), store.lower().strip())

    def get(self, query: str, category: str = "", store: str = ""):
        """有効なエントリがあれば data を返す. 無ければ None."""
        key = self.make_key(query, category, store)
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry["timestamp"] < self.ttl:
                self.hits += 1
                data = entry["data"]
            else:
                if entry is not None:
                    del self._entries[key]
                self.misses += 1
                data = None

        if data is None:
            logger.debug("Cache miss: %s", key)
        else:
            logger.debug("Cache hit: %s", key)
        return data

    def set(self, query: str, category: str, store: str, data) -> None:
        """data を保存する. max_entries を超えたら期限切れ、次に古い順で捨てる."""
        key = self.make_key(query, category, store)
        with self._lock:
            # 挿入順 = 保存時刻順を保つため、既存キーは一度取り除く
            self._entries.pop(key, None)
            self._entries[key] = {"data": data, "timestamp": self.clock()}
            if len(self._entries) > self.max_entries:
                self._purge_expired()
            while len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("Evicted: %s", oldest)
        logger.debug("Cached: %s", key)

    def _purge_expired(self) -> None:
        now = self.clock()
        expired = [k for k, e in self._entries.items() if now - e["timestamp"] >= self.ttl]
        for k in expired:
            del self._entries[k]
        logger.debug("Cleaned up %d expired cache entries", len(expired))

    def __contains__(self, key: tuple) -> bool:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and now - entry["timestamp"] < self.ttl

    def stats(self) -> dict:
        with self._lock:
            return {"keys": len(self._entries), "hits": self.hits, "misses": self.misses, "ttl": self.ttl}
