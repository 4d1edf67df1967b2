"""
Concurrent in-memory store for encoded image variants.

Thread-safe mapping of cache key -> encoded bytes, split into shards that
each carry their own lock so concurrent requests on different keys rarely
contend and no lock is global.
"""

import math
import threading

from cachetools import LRUCache, TTLCache

DEFAULT_SHARDS = 16


class _Shard:
    __slots__ = ['lock', 'entries', 'hits', 'misses']

    def __init__(self, entries):
        self.lock = threading.Lock()
        self.entries = entries
        self.hits = 0
        self.misses = 0


class CacheStore:
    """Sharded key -> bytes cache.

    With max_entries=None (the default) entries are never evicted and live
    for the process lifetime, so memory grows with the number of distinct
    (image, transform) combinations requested. Setting max_entries bounds
    each shard with an LRU policy; adding ttl_seconds also expires entries
    by age. Limits are enforced per shard, so the store may hold up to
    shards - 1 entries more than max_entries.

    Usage:
        store = CacheStore(max_entries=10000)
        data = store.get(key)
        if data is None:
            data = compute()
            store.put(key, data)
    """

    def __init__(self, max_entries=None, ttl_seconds=None, shards=DEFAULT_SHARDS):
        """Initialize the store.

        Args:
            max_entries: Capacity across all shards, or None for unbounded
            ttl_seconds: Entry lifetime in seconds, or None for no expiry
            shards: Number of independently locked shards
        """
        if shards < 1:
            raise ValueError("shards must be >= 1")
        if max_entries is not None:
            if max_entries < 1:
                raise ValueError("max_entries must be >= 1 or None")
            shards = min(shards, max_entries)
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._shards = [_Shard(self._new_mapping(shards)) for _ in range(shards)]

    def _new_mapping(self, shard_count):
        if self.max_entries is None and self.ttl_seconds is None:
            return {}
        per_shard = math.inf if self.max_entries is None else math.ceil(self.max_entries / shard_count)
        if self.ttl_seconds is not None:
            return TTLCache(maxsize=per_shard, ttl=self.ttl_seconds)
        return LRUCache(maxsize=per_shard)

    def _shard(self, key):
        return self._shards[hash(key) % len(self._shards)]

    def get(self, key):
        """Return cached bytes for key, or None on miss."""
        shard = self._shard(key)
        with shard.lock:
            data = shard.entries.get(key)
            if data is None:
                shard.misses += 1
            else:
                shard.hits += 1
            return data

    def put(self, key, data):
        """Store bytes under key, replacing any previous value."""
        shard = self._shard(key)
        with shard.lock:
            shard.entries[key] = bytes(data)

    def __contains__(self, key):
        shard = self._shard(key)
        with shard.lock:
            return key in shard.entries

    def __len__(self):
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def clear(self):
        """Drop every entry and reset hit/miss counters."""
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()
                shard.hits = 0
                shard.misses = 0

    def stats(self):
        """Get hit/miss counters and memory held (thread-safe, per-shard consistent)."""
        hits = misses = entries = size = 0
        for shard in self._shards:
            with shard.lock:
                hits += shard.hits
                misses += shard.misses
                entries += len(shard.entries)
                # get() instead of values(): TTL entries may expire mid-iteration
                for key in list(shard.entries):
                    data = shard.entries.get(key)
                    if data is not None:
                        size += len(data)
        return {
            'hits': hits,
            'misses': misses,
            'entries': entries,
            'bytes': size,
            'shards': len(self._shards),
            'max_entries': self.max_entries,
            'ttl_seconds': self.ttl_seconds,
        }
