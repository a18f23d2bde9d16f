"""Tests for the hashing module."""

import pytest

from agent_snapshot.hashing import compute_hash, content_hash
from agent_snapshot.snapshot.store import LoopRecord, RecordedResponse


class TestContentHash:
    """Tests for content_hash function."""

    def test_deterministic_same_dict(self) -> None:
        """Same dict produces same hash."""
        obj = {"a": 1, "b": 2}
        assert content_hash(obj) == content_hash(obj)

    def test_deterministic_different_key_order(self) -> None:
        """Dict order doesn't affect hash."""
        a = {"b": 1, "a": {"z": 3, "y": 2}}
        b = {"a": {"y": 2, "z": 3}, "b": 1}
        assert content_hash(a) == content_hash(b)

    def test_different_content_different_hash(self) -> None:
        """Different content produces different hash."""
        assert content_hash({"a": 1}) != content_hash({"a": 2})

    def test_returns_64_char_hex(self) -> None:
        """Hash is 64 character hex string."""
        result = content_hash({"test": "data"})
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)

    def test_truncate(self) -> None:
        assert len(content_hash({"test": "data"}, truncate=16)) == 16


class TestComputeHash:
    """Tests for compute_hash function."""

    def test_blake3_default(self) -> None:
        """Blake3 is the default algorithm."""
        assert compute_hash("test") == compute_hash("test", algorithm="blake3")

    def test_sha256(self) -> None:
        """SHA256 produces valid hash."""
        result = compute_hash("test", algorithm="sha256")
        assert result == "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08"

    def test_bytes_input(self) -> None:
        """Accepts bytes input."""
        assert compute_hash("test") == compute_hash(b"test")

    def test_invalid_algorithm(self) -> None:
        """Invalid algorithm raises ValueError."""
        with pytest.raises(ValueError, match="Unknown algorithm"):
            compute_hash("test", algorithm="md5")  # type: ignore[arg-type]


class TestLoopFingerprint:
    """Loop records are fingerprinted by canonical content."""

    def make_record(self, **overrides):
        fields = {
            "index": 0,
            "request": {"messages": [{"role": "user", "content": "hi"}]},
            "response": RecordedResponse(kind="completion", completion={"content": "hello"}),
        }
        fields.update(overrides)
        return LoopRecord(**fields)

    def test_fingerprint_is_stable(self) -> None:
        assert self.make_record().fingerprint == self.make_record().fingerprint
        assert len(self.make_record().fingerprint) == 16

    def test_fingerprint_ignores_index(self) -> None:
        assert self.make_record().fingerprint == self.make_record(index=4).fingerprint

    def test_fingerprint_tracks_content(self) -> None:
        other = self.make_record(events=[{"type": "user_message"}])
        assert self.make_record().fingerprint != other.fingerprint
