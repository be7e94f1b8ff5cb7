"""
Time-to-live cache of successful lookup results.

Entries are keyed by (domain, source mode) and are only ever written for
results that have a best record. Staleness is checked lazily on lookup;
stale entries stay stored until overwritten or explicitly purged.
"""

from typing import Callable, Optional

from .audit_logger import AuditLogger
from .config import DEFAULT_CACHE_TTL_SECONDS
from .enums import SourceMode
from .models import CacheEntry, CacheHit, DomainResult, now_ms
from .storage import BlobStore, PersistentStore


CACHE_BLOB_KEY = "cache"


def cache_key(domain: str, mode: SourceMode) -> str:
    """Cache key for a domain under a source mode."""
    return f"{domain}|{mode.value}"


class ResultCache(PersistentStore):
    """
    Persistent (domain, source mode) -> DomainResult cache.

    The whole cache is re-serialized on every put. Loading tolerates a
    missing or corrupt blob by starting empty.
    """

    COMPONENT = "ResultCache"

    def __init__(
        self,
        blob_store: BlobStore,
        hmac_secret: str,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """
        Initialize the cache.

        Args:
            blob_store: Host store the cache is persisted into
            hmac_secret: Secret for the signed envelope
            ttl_seconds: Maximum age of an entry that is still served
            logger: Optional logger
            clock: Source of epoch milliseconds
        """
        super().__init__(blob_store, CACHE_BLOB_KEY, hmac_secret, logger)
        self._ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def load(self) -> int:
        """
        Replace the in-memory cache with the persisted one.

        Returns:
            Number of entries loaded
        """
        payload = self._read_payload()
        entries: dict[str, CacheEntry] = {}
        skipped = 0
        if isinstance(payload, dict):
            for key, raw in payload.items():
                try:
                    entry = CacheEntry(
                        timestamp=int(raw["ts"]),
                        result=DomainResult.from_dict(raw["data"]),
                    )
                except (AttributeError, KeyError, TypeError, ValueError):
                    skipped += 1
                    continue
                if entry.result.best is not None:
                    entries[key] = entry
        if skipped and self._logger:
            self._logger.warn(
                self.COMPONENT,
                "Skipped malformed cache entries",
                {"skipped": skipped},
            )

        with self._lock:
            self._entries = entries
        return len(entries)

    def get(self, domain: str, mode: SourceMode) -> Optional[CacheHit]:
        """
        Look up a cached result.

        Returns:
            None on a miss, otherwise a CacheHit whose 'fresh' flag tells
            whether the entry is younger than the TTL. The contained result
            is a copy.
        """
        with self._lock:
            entry = self._entries.get(cache_key(domain, mode))
            if entry is None:
                return None
            age = self._clock() - entry.timestamp
            return CacheHit(
                result=entry.result.copy(),
                fresh=age < self._ttl_ms,
                age_ms=age,
            )

    def get_fresh(self, domain: str, mode: SourceMode) -> Optional[DomainResult]:
        """Cached result if present and within the TTL, else None."""
        hit = self.get(domain, mode)
        if hit is None or not hit.fresh:
            return None
        return hit.result

    def put(self, domain: str, mode: SourceMode, result: DomainResult) -> None:
        """
        Store a successful result and persist the cache.

        Raises:
            ValueError: If the result has no best record
        """
        if result.best is None:
            raise ValueError(f"Refusing to cache a failed result for {domain}")

        with self._lock:
            self._entries[cache_key(domain, mode)] = CacheEntry(
                timestamp=self._clock(),
                result=result.copy(),
            )
            self._persist()

    def purge_expired(self) -> int:
        """
        Drop entries older than the TTL and persist.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if now - entry.timestamp >= self._ttl_ms
            ]
            for key in expired:
                del self._entries[key]
            if expired:
                self._persist()
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._persist()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        # An empty store is still a usable store
        return True

    def _persist(self) -> bool:
        payload = {
            key: {"ts": entry.timestamp, "data": entry.result.to_dict()}
            for key, entry in self._entries.items()
        }
        return self._write_payload(payload)
