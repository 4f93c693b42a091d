"""Unit tests for LocalArchiveStore."""

import os
from pathlib import Path
from uuid import uuid4

import pytest

from logvault.domain.archive.chain import sha256_hex
from logvault.domain.archive.model import TimeWindow
from logvault.domain.shared.error import StorageError
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.storage.filesystem import LocalArchiveStore


@pytest.fixture
def store(tmp_path: Path) -> LocalArchiveStore:
    return LocalArchiveStore(tmp_path / "archive")


@pytest.fixture
def ids() -> tuple[TenantId, SourceId]:
    return TenantId(uuid4()), SourceId(uuid4())


class TestLocalArchiveStore:
    async def test_put_get_roundtrip(self, store: LocalArchiveStore, ids, window: TimeWindow):
        stored = await store.put(*ids, window, b"a\nb\nc")

        assert await store.get(stored.key) == b"a\nb\nc"
        assert sha256_hex(await store.get_compressed(stored.key)) == stored.digest

    async def test_file_is_read_only(self, store: LocalArchiveStore, ids, window: TimeWindow):
        stored = await store.put(*ids, window, b"x")

        mode = os.stat(store.root / stored.key).st_mode
        assert not mode & 0o222

    async def test_second_put_keeps_existing_file(
        self, store: LocalArchiveStore, ids, window: TimeWindow
    ):
        first = await store.put(*ids, window, b"x")
        second = await store.put(*ids, window, b"x")

        assert first == second
        assert await store.get(first.key) == b"x"

    async def test_no_temp_files_left(self, store: LocalArchiveStore, ids, window: TimeWindow):
        stored = await store.put(*ids, window, b"x")

        siblings = list((store.root / stored.key).parent.iterdir())
        assert [p.name for p in siblings] == [Path(stored.key).name]

    async def test_delete_is_idempotent(self, store: LocalArchiveStore, ids, window: TimeWindow):
        stored = await store.put(*ids, window, b"x")

        await store.delete(stored.key)
        await store.delete(stored.key)

        with pytest.raises(StorageError):
            await store.get(stored.key)

    @pytest.mark.parametrize("key", ["../escape", "/etc/passwd", "a\\b", ""])
    async def test_rejects_keys_outside_root(self, store: LocalArchiveStore, key: str):
        with pytest.raises(StorageError):
            await store.get_compressed(key)

    def test_name_defaults_to_filesystem(self, store: LocalArchiveStore):
        assert store.name == "filesystem"
