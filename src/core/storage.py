"""Device-local key-value storage for session, tombstone and popup slots."""
import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Slot names used by the sync core
SESSION_KEY = "storefront-session"
DELETED_ADDRESSES_KEY = "deleted-addresses"
BUNDLE_POPUP_STATUS_KEY = "bundle-popup-status"

_VALID_KEY = re.compile(r"^[a-zA-Z0-9_.:-]+$")


class KeyValueStorage(Protocol):
    """
    String-keyed durable storage.

    Implementations never raise on backend trouble: reads degrade to None and
    writes/deletes report False, so callers treat an unavailable store as empty.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> bool: ...

    async def delete(self, key: str) -> bool: ...


class FileStorage:
    """
    Stores each slot as a file in a directory.

    Writes go to a temp file in the same directory and are moved into place with
    os.replace, so a reader sees either the previous value or the new one. File
    access runs in a worker thread so the event loop never blocks on disk.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    async def get(self, key: str) -> str | None:
        """Read a slot, returns None if missing or unreadable."""
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("storage_read_failed key=%s error=%s", key, e)
            return None

    async def set(self, key: str, value: str) -> bool:
        """Atomically replace a slot, returns False if the write failed."""
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, key, path, value)
        except OSError as e:
            logger.warning("storage_write_failed key=%s error=%s", key, e)
            return False
        return True

    def _write(self, key: str, path: Path, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def delete(self, key: str) -> bool:
        """Remove a slot. Removing a missing slot succeeds."""
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("storage_delete_failed key=%s error=%s", key, e)
            return False
        return True
