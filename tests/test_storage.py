"""Tests for the file storage backend and JSON helpers."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from sealedstore.storage import (
    Encryptor,
    FileStorage,
    InvalidResourceKeyError,
    StorageCorruptedError,
    StorageError,
    StorageManager,
    StorageNotFoundError,
    StoragePermissionError,
    load_json,
    save_json,
)
from sealedstore.storage.file import TEMP_PATTERN, TEMP_PREFIX, cleanup_orphaned_temp_files


class TestFileStorage:
    """Tests for FileStorage implementation."""

    def test_creates_base_dir(self, tmp_path: Path) -> None:
        """Test that construction creates the base directory."""
        base_dir = tmp_path / "sub" / "dir"

        FileStorage(base_dir)

        assert base_dir.is_dir()

    def test_existing_base_dir_is_reused(self, tmp_path: Path) -> None:
        """Test construction over an existing directory keeps its files."""
        (tmp_path / "todos.json").write_bytes(b"kept")

        storage = FileStorage(tmp_path)

        assert storage.load("todos.json") == b"kept"

    def test_save_writes_file_named_by_key(self, tmp_path: Path) -> None:
        """Test that each key maps to one file in the base directory."""
        storage = FileStorage(tmp_path)

        storage.save("todos.json", b"content")

        assert (tmp_path / "todos.json").read_bytes() == b"content"

    def test_atomic_write(self, tmp_path: Path) -> None:
        """Test that a second write replaces the file."""
        storage = FileStorage(tmp_path)

        storage.save("test.txt", b"original")
        assert (tmp_path / "test.txt").read_bytes() == b"original"

        storage.save("test.txt", b"updated")
        assert (tmp_path / "test.txt").read_bytes() == b"updated"

    def test_load_nonexistent_file(self, tmp_path: Path) -> None:
        """Test loading non-existent file raises StorageNotFoundError."""
        storage = FileStorage(tmp_path)

        with pytest.raises(StorageNotFoundError, match="File not found"):
            storage.load("nonexistent.txt")

    def test_delete_nonexistent_file(self, tmp_path: Path) -> None:
        """Test deleting non-existent file raises StorageNotFoundError."""
        storage = FileStorage(tmp_path)

        with pytest.raises(StorageNotFoundError):
            storage.delete("nonexistent")

    def test_exists_on_directory_entry(self, tmp_path: Path) -> None:
        """Test exists reports any entry under the key name."""
        storage = FileStorage(tmp_path)
        (tmp_path / "present").write_bytes(b"x")

        assert storage.exists("present")
        assert not storage.exists("absent")

    @pytest.mark.parametrize("key", ["", ".", "..", "../escape", "sub/file", "a\x00b"])
    def test_rejects_keys_outside_base_dir(self, tmp_path: Path, key: str) -> None:
        """Test keys that would address other paths are rejected."""
        storage = FileStorage(tmp_path / "data")

        with pytest.raises(InvalidResourceKeyError):
            storage.save(key, b"data")
        assert not (tmp_path / "escape").exists()

    def test_temp_file_cleanup_on_normal_operation(self, tmp_path: Path) -> None:
        """Test that temp files are cleaned up after successful save."""
        storage = FileStorage(tmp_path)

        storage.save("test.txt", b"test content")

        assert (tmp_path / "test.txt").exists()
        assert list(tmp_path.glob(TEMP_PATTERN)) == []

    @pytest.mark.skipif(
        sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="Unix permissions not enforced on Windows or for root",
    )
    def test_failed_save_leaves_no_partial_file(self, tmp_path: Path) -> None:
        """Test that a failed save leaves neither temp files nor a target file."""
        base_dir = tmp_path / "readonly"
        storage = FileStorage(base_dir)
        os.chmod(base_dir, 0o555)

        try:
            with pytest.raises(StoragePermissionError):
                storage.save("test.txt", b"content")

            assert list(base_dir.glob(TEMP_PATTERN)) == []
            assert not (base_dir / "test.txt").exists()
        finally:
            os.chmod(base_dir, 0o755)

    def test_permission_error_is_storage_error(self) -> None:
        """Test the exception hierarchy callers rely on."""
        assert issubclass(StoragePermissionError, StorageError)
        assert issubclass(StorageNotFoundError, StorageError)

    def test_orphaned_temp_files_cleanup(self, tmp_path: Path) -> None:
        """Test cleanup of orphaned temp files from previous crashes."""
        (tmp_path / f"{TEMP_PREFIX}test1.txt.abc.tmp").write_text("orphaned1")
        (tmp_path / f"{TEMP_PREFIX}test2.txt.def.tmp").write_text("orphaned2")
        (tmp_path / "regular.txt").write_text("regular file")

        cleaned_count = cleanup_orphaned_temp_files(tmp_path)

        assert cleaned_count == 2
        assert list(tmp_path.glob(TEMP_PATTERN)) == []
        assert (tmp_path / "regular.txt").exists()

    def test_cleanup_keeps_keys_ending_in_tmp(self, tmp_path: Path) -> None:
        """Test stored blobs whose key looks like a temp file survive cleanup."""
        storage = FileStorage(tmp_path)
        storage.save(".notes.tmp", b"user data")
        storage.save("draft.tmp", b"draft")

        assert cleanup_orphaned_temp_files(tmp_path) == 0
        assert storage.load(".notes.tmp") == b"user data"
        assert storage.load("draft.tmp") == b"draft"

    def test_construction_removes_orphaned_temp_files(self, tmp_path: Path) -> None:
        """Test opening a directory clears temp files from an interrupted save."""
        orphan = tmp_path / f"{TEMP_PREFIX}todos.json.abc123.tmp"
        orphan.write_bytes(b"partial")
        (tmp_path / ".notes.tmp").write_bytes(b"user data")

        FileStorage(tmp_path)

        assert not orphan.exists()
        assert (tmp_path / ".notes.tmp").read_bytes() == b"user data"

    def test_rejects_reserved_temp_prefix(self, tmp_path: Path) -> None:
        storage = FileStorage(tmp_path)

        with pytest.raises(InvalidResourceKeyError, match="reserved prefix"):
            storage.save(f"{TEMP_PREFIX}x.tmp", b"data")

    def test_orphaned_temp_files_cleanup_nonexistent_dir(self, tmp_path: Path) -> None:
        """Test cleanup handles nonexistent directories gracefully."""
        assert cleanup_orphaned_temp_files(tmp_path / "nonexistent") == 0

    def test_encrypted_file_is_not_plaintext(self, tmp_path: Path) -> None:
        """Test that content on disk is the envelope, not the plaintext."""
        manager = StorageManager(FileStorage(tmp_path), Encryptor(os.urandom(32)))

        manager.save("secret.txt", b"sensitive data")

        raw = (tmp_path / "secret.txt").read_bytes()
        assert b"sensitive data" not in raw
        assert manager.load("secret.txt") == b"sensitive data"


class TestJSONHelpers:
    """Tests for JSON helper functions."""

    def test_save_and_load_json(self, tmp_path: Path) -> None:
        """Test saving and loading JSON data."""
        storage = FileStorage(tmp_path)
        data = {"key": "value", "number": 42, "list": [1, 2, 3]}

        save_json(storage, "test.json", data)

        assert load_json(storage, "test.json") == data

    def test_save_json_with_unicode(self, tmp_path: Path) -> None:
        """Test saving JSON with unicode characters."""
        storage = FileStorage(tmp_path)
        data = {"message": "Привет мир", "emoji": "🎉"}

        save_json(storage, "test.json", data)

        assert load_json(storage, "test.json") == data

    def test_save_json_through_encrypted_manager(self, tmp_path: Path) -> None:
        """Test JSON helpers work on top of an encrypting manager."""
        manager = StorageManager(FileStorage(tmp_path), Encryptor(os.urandom(32)))
        data = {"tasks": [{"title": "write tests", "done": False}]}

        save_json(manager, "todos.json", data)

        assert load_json(manager, "todos.json") == data

    def test_load_json_invalid_content(self, tmp_path: Path) -> None:
        """Test loading invalid JSON raises StorageCorruptedError."""
        storage = FileStorage(tmp_path)
        storage.save("invalid.json", b"not valid json{")

        with pytest.raises(StorageCorruptedError, match="Invalid JSON"):
            load_json(storage, "invalid.json")

    def test_load_json_invalid_utf8(self, tmp_path: Path) -> None:
        """Test loading non-UTF-8 bytes raises StorageCorruptedError."""
        storage = FileStorage(tmp_path)
        storage.save("binary.json", b"\xff\xfe\xfd")

        with pytest.raises(StorageCorruptedError, match="UTF-8"):
            load_json(storage, "binary.json")

    def test_save_json_unserializable(self, tmp_path: Path) -> None:
        """Test serialization failures raise StorageError and write nothing."""
        storage = FileStorage(tmp_path)

        with pytest.raises(StorageError, match="Cannot serialize"):
            save_json(storage, "bad.json", {"value": object()})
        assert not storage.exists("bad.json")

    def test_load_json_missing(self, tmp_path: Path) -> None:
        """Test loading a missing key raises StorageNotFoundError."""
        with pytest.raises(StorageNotFoundError):
            load_json(FileStorage(tmp_path), "missing.json")
