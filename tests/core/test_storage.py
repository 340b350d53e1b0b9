"""Tests for file-backed key-value storage."""
import os
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from core.storage import FileStorage


class TestFileStorage:
    """Tests for FileStorage reads, writes and deletes."""

    async def test__get__missing_slot_returns_none(self, storage: FileStorage) -> None:
        """Reading a slot that was never written returns None."""
        assert await storage.get("storefront-session") is None

    async def test__set__value_read_back(self, storage: FileStorage) -> None:
        """A written value is returned by a later read."""
        assert await storage.set("storefront-session", '{"a": 1}') is True
        assert await storage.get("storefront-session") == '{"a": 1}'

    async def test__set__overwrites_previous_value(self, storage: FileStorage) -> None:
        """Writing a slot again replaces its value."""
        await storage.set("deleted-addresses", "[]")
        await storage.set("deleted-addresses", '["abc"]')
        assert await storage.get("deleted-addresses") == '["abc"]'

    async def test__set__leaves_no_temp_files(self, tmp_path: Path) -> None:
        """Only the slot file remains after an atomic write."""
        storage = FileStorage(tmp_path)
        await storage.set("bundle-popup-status", "{}")
        assert [p.name for p in tmp_path.iterdir()] == ["bundle-popup-status.json"]

    async def test__delete__removes_slot(self, storage: FileStorage) -> None:
        """A deleted slot reads as missing."""
        await storage.set("storefront-session", "{}")
        assert await storage.delete("storefront-session") is True
        assert await storage.get("storefront-session") is None

    async def test__delete__missing_slot_succeeds(self, storage: FileStorage) -> None:
        """Deleting a slot that doesn't exist is not an error."""
        assert await storage.delete("storefront-session") is True

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "with space"])
    async def test__key__invalid_names_rejected(self, storage: FileStorage, key: str) -> None:
        """Keys that could leave the storage directory are refused."""
        with pytest.raises(ValueError, match="Invalid storage key"):
            await storage.get(key)

    async def test__set__returns_false_on_os_error(self, storage: FileStorage) -> None:
        """A failed write reports False instead of raising."""
        with patch("core.storage.tempfile.mkstemp", side_effect=OSError("disk full")):
            assert await storage.set("storefront-session", "{}") is False

    async def test__get__returns_none_on_os_error(self, storage: FileStorage) -> None:
        """An unreadable slot reads as missing."""
        await storage.set("storefront-session", "{}")
        with patch.object(Path, "read_text", side_effect=PermissionError("denied")):
            assert await storage.get("storefront-session") is None

    async def test__set__writes_off_the_event_loop_thread(self, storage: FileStorage) -> None:
        """The atomic replace runs in a worker thread, not on the loop."""
        loop_thread = threading.get_ident()
        write_threads: list[int] = []
        real_replace = os.replace

        def recording_replace(src: str, dst: Path) -> None:
            write_threads.append(threading.get_ident())
            real_replace(src, dst)

        with patch("core.storage.os.replace", side_effect=recording_replace):
            assert await storage.set("storefront-session", "{}") is True

        assert write_threads
        assert loop_thread not in write_threads
        assert await storage.get("storefront-session") == "{}"
