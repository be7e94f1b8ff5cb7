"""
Blob storage for persisted cache and history data.

A BlobStore is a plain get/set store of bytes by key. Everything written
through it is wrapped in an HMAC-protected JSON envelope so corrupt or
tampered blobs are detected on load.
"""

import hashlib
import hmac
import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from .audit_logger import AuditLogger
from .enums import LogLevel
from .exceptions import StoreError, TamperingError


@runtime_checkable
class BlobStore(Protocol):
    """Key/value store of opaque blobs supplied by the host environment."""

    def load_blob(self, key: str) -> Optional[bytes]:
        ...

    def save_blob(self, key: str, data: bytes) -> None:
        ...


class MemoryBlobStore:
    """In-process BlobStore, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None) -> None:
        self._blobs: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.save_count = 0

    def load_blob(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(key)

    def save_blob(self, key: str, data: bytes) -> None:
        with self._lock:
            self._blobs[key] = bytes(data)
            self.save_count += 1

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._blobs)


class FileBlobStore:
    """
    BlobStore backed by one '<key>.json' file per key in a directory.

    Writes go to a temporary file that replaces the target, so a crash
    never leaves a half-written blob behind.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def load_blob(self, key: str) -> Optional[bytes]:
        """
        Read a blob.

        Returns:
            The stored bytes, or None if the key was never written

        Raises:
            StoreError: If the file exists but cannot be read
        """
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StoreError(
                code="io_error",
                message=f"Failed to read blob {key!r}: {e}",
                details={"file_path": str(path)},
            )

    def save_blob(self, key: str, data: bytes) -> None:
        """
        Write a blob atomically.

        Raises:
            StoreError: If the file cannot be written
        """
        path = self.path_for(key)
        with self._lock:
            try:
                self._directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{key}-", suffix=".tmp", dir=self._directory
                )
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(data)
                    os.replace(tmp_name, path)
                except BaseException:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except OSError as e:
                raise StoreError(
                    code="io_error",
                    message=f"Failed to write blob {key!r}: {e}",
                    details={"file_path": str(path)},
                )


class SignedEnvelope:
    """
    HMAC-SHA256 protected JSON envelope.

    Layout: {"version", "updated_at", "data", "hmac"}, where the HMAC is
    computed over json.dumps({"version", "updated_at", "data"}, sort_keys=True).
    """

    VERSION = 1

    def __init__(self, hmac_secret: str) -> None:
        self._secret = hmac_secret.encode("utf-8")

    def encode(self, data: Any) -> bytes:
        """Serialize a JSON-compatible value into a signed envelope."""
        body = {
            "version": self.VERSION,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        envelope = dict(body, hmac=self.compute_hmac(body))
        return json.dumps(envelope, ensure_ascii=False, sort_keys=True).encode("utf-8")

    def decode(self, blob: bytes) -> Any:
        """
        Verify and unwrap an envelope.

        Returns:
            The 'data' value

        Raises:
            StoreError: If the blob is not a well-formed envelope
            TamperingError: If the HMAC does not match
        """
        try:
            raw = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(
                code="parse_error",
                message=f"Failed to parse stored blob: {e}",
            )
        if not isinstance(raw, dict) or "data" not in raw:
            raise StoreError(
                code="invalid_shape",
                message="Stored blob is not a signed envelope",
            )

        body = {
            "version": raw.get("version"),
            "updated_at": raw.get("updated_at"),
            "data": raw.get("data"),
        }
        stored_hmac = raw.get("hmac")
        if not isinstance(stored_hmac, str) or not hmac.compare_digest(
            stored_hmac, self.compute_hmac(body)
        ):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
            )
        return raw["data"]

    def compute_hmac(self, body: dict) -> str:
        serialized = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return hmac.new(self._secret, serialized.encode("utf-8"), hashlib.sha256).hexdigest()


class PersistentStore:
    """
    Base for stores that serialize their whole state into one blob.

    Load and save failures degrade to an empty or unsaved store and are
    logged; they are never raised to callers.
    """

    COMPONENT = "PersistentStore"

    def __init__(
        self,
        blob_store: BlobStore,
        key: str,
        hmac_secret: str,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._blob_store = blob_store
        self._key = key
        self._envelope = SignedEnvelope(hmac_secret)
        self._logger = logger
        self._lock = threading.RLock()
        self.last_store_error: Optional[StoreError] = None

    @property
    def key(self) -> str:
        return self._key

    def _read_payload(self) -> Optional[Any]:
        """Load and verify the blob; None if absent or unusable."""
        try:
            blob = self._blob_store.load_blob(self._key)
            if blob is None:
                return None
            return self._envelope.decode(blob)
        except OSError as e:
            self._record_store_error(
                f"Discarding unreadable {self._key} store",
                StoreError(code="io_error", message=str(e)),
            )
            return None
        except StoreError as e:
            self._record_store_error(f"Discarding unreadable {self._key} store", e)
            return None

    def _write_payload(self, data: Any) -> bool:
        """Sign and save the payload; False if the save failed."""
        try:
            self._blob_store.save_blob(self._key, self._envelope.encode(data))
            return True
        except OSError as e:
            self._record_store_error(
                f"Failed to persist {self._key} store",
                StoreError(code="io_error", message=str(e)),
            )
            return False
        except StoreError as e:
            self._record_store_error(f"Failed to persist {self._key} store", e)
            return False

    def _record_store_error(self, message: str, error: StoreError) -> None:
        self.last_store_error = error
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                message,
                error=error,
                additional_data={"key": self._key},
                level=LogLevel.WARN,
            )
