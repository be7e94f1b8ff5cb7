"""
Size-capped history of successful lookup results.

Only results with a best record are appended. When the log grows past
its cap the oldest entries are dropped before the log is persisted.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .config import DEFAULT_HISTORY_MAX_ENTRIES
from .models import DomainResult
from .storage import BlobStore, PersistentStore


HISTORY_BLOB_KEY = "history"


class HistoryStore(PersistentStore):
    """Append-only, FIFO-trimmed log persisted on every write."""

    COMPONENT = "HistoryStore"

    def __init__(
        self,
        blob_store: BlobStore,
        hmac_secret: str,
        max_entries: int = DEFAULT_HISTORY_MAX_ENTRIES,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        super().__init__(blob_store, HISTORY_BLOB_KEY, hmac_secret, logger)
        self._max_entries = max_entries
        self._entries: list[DomainResult] = []

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def entries(self) -> list[DomainResult]:
        """Snapshot of the log, oldest first."""
        with self._lock:
            return [entry.copy() for entry in self._entries]

    def load(self) -> list[DomainResult]:
        """
        Rebuild the log from the persisted store.

        A missing or corrupt store yields an empty log. Malformed or
        unsuccessful entries are skipped.

        Returns:
            The loaded entries, oldest first
        """
        payload = self._read_payload()
        entries: list[DomainResult] = []
        if isinstance(payload, list):
            for raw in payload:
                try:
                    entry = DomainResult.from_dict(raw)
                except (AttributeError, KeyError, TypeError, ValueError):
                    continue
                if entry.best is not None:
                    entries.append(entry)

        with self._lock:
            self._entries = entries[-self._max_entries:]
        return self.entries

    def append(self, result: DomainResult) -> None:
        """
        Append a successful result, trim to the cap, and persist.

        Raises:
            ValueError: If the result has no best record
        """
        if result.best is None:
            raise ValueError(f"Refusing to record a failed result for {result.domain}")

        with self._lock:
            self._entries.append(result.copy())
            overflow = len(self._entries) - self._max_entries
            if overflow > 0:
                del self._entries[:overflow]
            self._persist()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._persist()

    def domains(self) -> list[str]:
        with self._lock:
            return [entry.domain for entry in self._entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        # An empty store is still a usable store
        return True

    def _persist(self) -> bool:
        return self._write_payload([entry.to_dict() for entry in self._entries])
