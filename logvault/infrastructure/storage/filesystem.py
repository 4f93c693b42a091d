"""Local filesystem adapter for the ArchiveStore port."""

import asyncio
import logging
import os
import stat
import tempfile
from pathlib import Path

from logvault.domain.archive.model.value import StoredObject, TimeWindow
from logvault.domain.archive.port.archive_storage import ArchiveStore
from logvault.domain.shared.error import StorageError
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.storage.blob import decompress, prepare_blob

_READ_ONLY = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH


class LocalArchiveStore(ArchiveStore):
    """Archive store rooted at a local directory.

    There is no object lock here. Files are written atomically, made
    read-only, and never rewritten: the key embeds the content digest, so an
    existing file under the same key already holds the same bytes.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        name: str = "filesystem",
        logger: logging.Logger | None = None,
    ) -> None:
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)
        self._name = name
        self._log = logger or logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self._name

    def _safe_path(self, key: str) -> Path:
        """Resolve key within root, rejecting path traversal attempts."""
        if not key or key.startswith("/") or "\\" in key:
            raise StorageError(f"Invalid key: {key!r}", provider=self._name, key=key)
        target = self.root / key
        if not target.resolve().is_relative_to(self.root.resolve()):
            raise StorageError(f"Invalid key: {key!r}", provider=self._name, key=key)
        return target

    def _write(self, target: Path, body: bytes) -> bool:
        if target.exists():
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        # Atomic write: write to temp file then rename
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
        try:
            with open(fd, "wb") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _READ_ONLY)
            os.replace(tmp_path, target)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        return True

    async def put(
        self, tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
    ) -> StoredObject:
        blob = prepare_blob(tenant_id, source_id, window, raw)
        target = self._safe_path(blob.key)
        try:
            written = await asyncio.to_thread(self._write, target, blob.body)
        except OSError as e:
            raise StorageError(
                f"write of {blob.key} failed: {e}", provider=self._name, key=blob.key
            ) from e
        if not written:
            self._log.info("%s already archived, keeping existing file", blob.key)
        return blob.stored

    async def get_compressed(self, key: str) -> bytes:
        target = self._safe_path(key)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(f"read of {key} failed: {e}", provider=self._name, key=key) from e

    async def get(self, key: str) -> bytes:
        return decompress(await self.get_compressed(key), provider=self._name, key=key)

    async def delete(self, key: str) -> None:
        target = self._safe_path(key)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"delete of {key} failed: {e}", provider=self._name, key=key) from e
        self._log.info("Deleted %s", key)
