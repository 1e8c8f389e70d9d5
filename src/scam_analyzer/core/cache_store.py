"""Content-addressable, TTL-bounded cache of analysis results."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from scam_analyzer.core.entities import AnalysisResult
from scam_analyzer.core.interfaces import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_TTL_24H = 24 * 60 * 60.0
CACHE_TTL_1H = 60 * 60.0
MAX_CACHE_ENTRIES = 500
CONTENT_SAMPLE_CHARS = 1000
CACHE_STORAGE_KEY = "analysisCache"


def content_hash(content: str, max_units: Optional[int] = None) -> str:
    """djb2-xor hash over UTF-16 code units, as unsigned 32-bit hex.

    ``max_units`` limits the hash to a prefix measured in UTF-16 code
    units, so a character outside the BMP counts twice.
    """
    value = 5381
    data = content.encode("utf-16-le", "surrogatepass")
    if max_units is not None:
        data = data[: 2 * max_units]
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = (((value << 5) + value) ^ unit) & 0xFFFFFFFF
    return format(value, "x")


def normalize_domain(domain: str) -> str:
    domain = domain.lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def generate_cache_key(domain: str, content_sample: str, sample_chars: int = CONTENT_SAMPLE_CHARS) -> str:
    """Build ``domain:hash`` from a normalized domain and the content prefix."""
    return f"{normalize_domain(domain)}:{content_hash(content_sample, sample_chars)}"


def domain_from_cache_key(cache_key: str) -> str:
    return cache_key.split(":", 1)[0] or cache_key


@dataclass(frozen=True)
class CacheEntry:
    """Cached result with its absolute expiry (epoch seconds)."""

    result: AnalysisResult
    expires_at: float
    url: str

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "result": self.result.to_dict(), "expiresAt": self.expires_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            result=AnalysisResult.from_dict(data["result"]),
            expires_at=float(data["expiresAt"]),
            url=data.get("url", ""),
        )


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""

    hits: int
    misses: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"hits": self.hits, "misses": self.misses, "size": self.size, "hitRate": self.hit_rate}


class CacheStore:
    """Owns the map of cache keys to entries.

    Expired entries found by :meth:`get` are reported as misses but left in
    place; :meth:`sweep_expired` removes them.
    """

    def __init__(
        self,
        default_ttl: float = CACHE_TTL_24H,
        max_entries: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return a live entry and record a hit, otherwise record a miss."""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def put(self, key: str, result: AnalysisResult, url: str = "", ttl: Optional[float] = None) -> CacheEntry:
        """Insert or replace an entry. A TTL of zero or less is already expired."""
        ttl = self.default_ttl if ttl is None else ttl
        entry = CacheEntry(result=result, expires_at=self._clock() + ttl, url=url)
        # Re-insert so dict order stays the write order
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._enforce_limit(keep=key)
        return entry

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("Swept %d expired cache entries", len(expired))
        return len(expired)

    def evict_domain(self, domain: str) -> int:
        """Drop all entries for a domain (``www.`` and case insensitive)."""
        target = normalize_domain(domain)
        keys = [key for key in self._entries if domain_from_cache_key(key) == target]
        for key in keys:
            del self._entries[key]
        logger.info("Cleared %d cache entries for domain %s", len(keys), target)
        return len(keys)

    def evict_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cleared all %d cache entries", count)
        return count

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def _enforce_limit(self, keep: Optional[str] = None) -> None:
        """Drop expired entries, then the oldest writes, until under the cap.

        ``keep`` is never dropped.
        """
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return

        now = self._clock()
        candidates = [key for key in self._entries if key != keep]
        expired = [key for key in candidates if self._entries[key].is_expired(now)]
        live = [key for key in candidates if not self._entries[key].is_expired(now)]
        victims = (expired + live)[:overflow]
        for key in victims:
            del self._entries[key]
        logger.debug("Dropped %d cache entries over the %d entry limit", len(victims), self.max_entries)

    async def load(self, store: KeyValueStore) -> int:
        """Replace in-memory entries with the map persisted in ``store``."""
        raw = await store.get(CACHE_STORAGE_KEY)
        self._entries.clear()
        if not isinstance(raw, dict):
            return 0

        for key, data in raw.items():
            try:
                self._entries[key] = CacheEntry.from_dict(data)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping corrupt cache entry %s: %s", key, e)
        self._enforce_limit()
        return len(self._entries)

    async def save(self, store: KeyValueStore) -> None:
        """Persist the whole map under the local-scope cache key."""
        await store.set(
            CACHE_STORAGE_KEY,
            {key: entry.to_dict() for key, entry in self._entries.items()},
        )
