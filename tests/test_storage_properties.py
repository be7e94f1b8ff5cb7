"""
Property-based tests for blob storage and the signed envelope.

Uses Hypothesis to check that signed payloads survive a save/load cycle
and that corrupt or tampered blobs are rejected.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from whois_batch.exceptions import StoreError, TamperingError
from whois_batch.storage import (
    BlobStore,
    FileBlobStore,
    MemoryBlobStore,
    SignedEnvelope,
)


json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=20),
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=15,
)

secret_strategy = st.text(min_size=1, max_size=32)


class TestSignedEnvelope:
    """Envelope integrity checks."""

    @given(data=json_values, secret=secret_strategy)
    @settings(max_examples=100)
    def test_decode_returns_encoded_data(self, data, secret: str) -> None:
        envelope = SignedEnvelope(secret)
        assert envelope.decode(envelope.encode(data)) == data

    @given(data=json_values, secret=secret_strategy, other=secret_strategy)
    @settings(max_examples=50)
    def test_wrong_secret_is_tampering(self, data, secret: str, other: str) -> None:
        assume(secret != other)
        blob = SignedEnvelope(secret).encode(data)
        with pytest.raises(TamperingError):
            SignedEnvelope(other).decode(blob)

    def test_modified_data_is_tampering(self) -> None:
        envelope = SignedEnvelope("secret")
        raw = json.loads(envelope.encode({"a": 1}))
        raw["data"] = {"a": 2}

        with pytest.raises(TamperingError) as exc_info:
            envelope.decode(json.dumps(raw).encode("utf-8"))
        assert exc_info.value.code == "hmac_mismatch"

    def test_missing_hmac_is_tampering(self) -> None:
        envelope = SignedEnvelope("secret")
        raw = json.loads(envelope.encode([1, 2, 3]))
        del raw["hmac"]

        with pytest.raises(TamperingError):
            envelope.decode(json.dumps(raw).encode("utf-8"))

    @pytest.mark.parametrize("blob", [b"", b"not json", b"\xff\xfe\x00", b"{\"data\": "])
    def test_garbage_is_parse_error(self, blob: bytes) -> None:
        with pytest.raises(StoreError) as exc_info:
            SignedEnvelope("secret").decode(blob)
        assert exc_info.value.code == "parse_error"
        assert not isinstance(exc_info.value, TamperingError)

    @pytest.mark.parametrize("blob", [b"[]", b"42", b"{\"version\": 1}"])
    def test_wrong_shape_is_rejected(self, blob: bytes) -> None:
        with pytest.raises(StoreError) as exc_info:
            SignedEnvelope("secret").decode(blob)
        assert exc_info.value.code == "invalid_shape"


class TestMemoryBlobStore:
    """In-process blob store."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryBlobStore(), BlobStore)

    def test_missing_key_is_none(self) -> None:
        assert MemoryBlobStore().load_blob("cache") is None

    def test_save_then_load(self) -> None:
        store = MemoryBlobStore()
        store.save_blob("history", b"payload")

        assert store.load_blob("history") == b"payload"
        assert store.save_count == 1
        assert store.keys() == ["history"]


class TestFileBlobStore:
    """Directory-backed blob store."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(FileBlobStore(Path(".")), BlobStore)

    @given(data=st.binary(max_size=512), key=st.sampled_from(["cache", "history"]))
    @settings(max_examples=30)
    def test_save_then_load(self, data: bytes, key: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileBlobStore(Path(tmpdir) / "state")
            store.save_blob(key, data)

            assert store.load_blob(key) == data
            assert store.path_for(key) == Path(tmpdir) / "state" / f"{key}.json"
            assert sorted(p.name for p in (Path(tmpdir) / "state").iterdir()) == [f"{key}.json"]

    def test_missing_key_is_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            assert FileBlobStore(Path(tmpdir)).load_blob("cache") is None

    def test_overwrite_replaces_content(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileBlobStore(Path(tmpdir))
            store.save_blob("cache", b"first")
            store.save_blob("cache", b"second")

            assert store.load_blob("cache") == b"second"

    def test_unwritable_directory_raises_store_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "blocker"
            blocker.write_text("not a directory")
            store = FileBlobStore(blocker / "state")

            with pytest.raises(StoreError) as exc_info:
                store.save_blob("cache", b"data")
            assert exc_info.value.code == "io_error"
