"""File-based storage implementation with atomic writes."""

from __future__ import annotations

import atexit
import contextlib
import logging
import os
import tempfile
from pathlib import Path

from sealedstore.storage.base import Storage
from sealedstore.storage.errors import (
    InvalidResourceKeyError,
    StorageBackendError,
    StorageNotFoundError,
    StoragePermissionError,
)

logger = logging.getLogger(__name__)


# Prefix reserved for in-flight writes; keys may not start with it
TEMP_PREFIX = ".sealedstore-tmp-"
TEMP_PATTERN = f"{TEMP_PREFIX}*.tmp"

# Temp files still in flight, removed on interpreter exit
_temp_files_registry: set[Path] = set()


def _cleanup_temp_files() -> None:
    """Clean up any remaining temporary files on exit.

    This handler is called via atexit so temp files are removed
    even if a save is interrupted by interpreter shutdown.
    """
    for temp_path in list(_temp_files_registry):
        try:
            if temp_path.exists():
                temp_path.unlink()
                logger.debug(f"Cleaned up temp file on exit: {temp_path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {temp_path}: {e}")


atexit.register(_cleanup_temp_files)


def cleanup_orphaned_temp_files(directory: Path, pattern: str = TEMP_PATTERN) -> int:
    """Clean up orphaned temporary files from previous crashes.

    FileStorage runs this when it opens a directory, removing temp files
    left behind by an abnormal exit. Only names under the reserved temp
    prefix match, so stored keys are never touched.

    Args:
        directory: Directory to search for temp files
        pattern: Glob pattern for temp files (default: TEMP_PATTERN)

    Returns:
        Number of files cleaned up
    """
    if not directory.exists() or not directory.is_dir():
        return 0

    cleaned_count = 0
    try:
        for temp_file in directory.glob(pattern):
            if temp_file.is_file():
                try:
                    temp_file.unlink()
                    logger.info(f"Cleaned up orphaned temp file: {temp_file}")
                    cleaned_count += 1
                except OSError as e:
                    logger.warning(f"Failed to clean up temp file {temp_file}: {e}")
    except OSError as e:
        logger.warning(f"Error scanning directory {directory} for temp files: {e}")

    return cleaned_count


class FileStorage(Storage):
    """File system storage, one file per key under a base directory.

    Features:
    - Atomic writes (write to temp file + rename)
    - Base directory created on construction, orphaned temp files removed
    - Keys cannot escape the base directory

    Concurrent saves to the same key are not coordinated; the last
    rename wins.

    Example:
        ```python
        storage = FileStorage(Path("~/.local/share/sealedstore").expanduser())
        storage.save("todos.json", b"[]")
        data = storage.load("todos.json")
        ```
    """

    backend_type = "file"
    missing_delete_raises = True

    def __init__(self, base_dir: Path | str) -> None:
        """Initialize file storage.

        Args:
            base_dir: Directory holding one file per key (created if missing)

        Raises:
            StoragePermissionError: If the directory cannot be created
            StorageBackendError: If directory creation fails otherwise
        """
        self.base_dir = Path(base_dir)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise StoragePermissionError(
                f"Cannot create directory {self.base_dir}: permission denied"
            ) from e
        except OSError as e:
            raise StorageBackendError(f"Failed to create directory {self.base_dir}: {e}") from e
        cleanup_orphaned_temp_files(self.base_dir)

    def _path_for(self, key: str) -> Path:
        """Map a key to its file, rejecting keys that would leave base_dir."""
        if not key or key in (".", "..") or "\x00" in key:
            raise InvalidResourceKeyError(f"Invalid file storage key: {key!r}")
        if key.startswith(TEMP_PREFIX):
            raise InvalidResourceKeyError(f"File storage key uses the reserved prefix {TEMP_PREFIX}: {key!r}")
        separators = {os.sep, "/"}
        if os.altsep:
            separators.add(os.altsep)
        if any(sep in key for sep in separators):
            raise InvalidResourceKeyError(f"File storage key must not contain a path separator: {key!r}")
        return self.base_dir / key

    def save(self, key: str, data: bytes) -> None:
        """Save content with atomic write.

        Writes to a temporary file in the base directory first, then
        atomically renames it over the target. A failed save never leaves
        a partially written file under the key.

        Args:
            key: Resource key (file name)
            data: Content to save

        Raises:
            StoragePermissionError: If write permission denied
            StorageBackendError: If operation fails
        """
        path = self._path_for(key)

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self.base_dir,
                delete=False,
                prefix=f"{TEMP_PREFIX}{path.name}.",
                suffix=".tmp",
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                _temp_files_registry.add(tmp_path)

                tmp_file.write(data)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())

            tmp_path.replace(path)
            _temp_files_registry.discard(tmp_path)
            logger.debug(f"Saved {len(data)} bytes to {path}")

        except PermissionError as e:
            raise StoragePermissionError(f"Cannot write to {path}: permission denied") from e
        except OSError as e:
            raise StorageBackendError(f"Failed to write {path}: {e}") from e
        finally:
            # Rename didn't happen if the temp file is still there
            if tmp_path is not None:
                _temp_files_registry.discard(tmp_path)
                if tmp_path.exists():
                    with contextlib.suppress(OSError):
                        tmp_path.unlink()

    def load(self, key: str) -> bytes:
        """Load content from file.

        Args:
            key: Resource key (file name)

        Returns:
            File content as bytes

        Raises:
            StorageNotFoundError: If file doesn't exist
            StoragePermissionError: If read permission denied
            StorageBackendError: If operation fails
        """
        path = self._path_for(key)
        try:
            content = path.read_bytes()
            logger.debug(f"Loaded {len(content)} bytes from {path}")
            return content
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {path}") from e
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot read {path}: permission denied") from e
        except OSError as e:
            raise StorageBackendError(f"Failed to read {path}: {e}") from e

    def delete(self, key: str) -> None:
        """Delete the file stored under key.

        Args:
            key: Resource key (file name)

        Raises:
            StorageNotFoundError: If file doesn't exist
            StoragePermissionError: If delete permission denied
            StorageBackendError: If operation fails
        """
        path = self._path_for(key)
        try:
            path.unlink()
            logger.debug(f"Deleted file {path}")
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {path}") from e
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot delete {path}: permission denied") from e
        except OSError as e:
            raise StorageBackendError(f"Failed to delete {path}: {e}") from e

    def exists(self, key: str) -> bool:
        """Check whether a file is stored under key.

        Only "does not exist" maps to False; other stat failures raise.

        Args:
            key: Resource key (file name)

        Returns:
            True if the file exists

        Raises:
            StoragePermissionError: If stat permission denied
            StorageBackendError: If stat fails otherwise
        """
        path = self._path_for(key)
        try:
            path.stat()
        except FileNotFoundError:
            return False
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot stat {path}: permission denied") from e
        except OSError as e:
            raise StorageBackendError(f"Failed to stat {path}: {e}") from e
        return True
