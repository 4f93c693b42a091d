"""Preparing raw log windows for archival: line count, compression, digest and key."""

import gzip
import zlib
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from logvault.domain.archive.chain import sha256_hex
from logvault.domain.archive.model.value import StoredObject, TimeWindow
from logvault.domain.shared.error import StorageError
from logvault.domain.shared.model.value import SourceId, TenantId

CONTENT_TYPE = "application/x-ndjson+gzip"
DIGEST_METADATA_KEY = "sha256"

_COMPACT = "%Y%m%dT%H%M%SZ"


def count_lines(raw: bytes) -> int:
    """Newline-delimited lines; a trailing line without a terminator still counts."""
    if not raw:
        return 0
    lines = raw.count(b"\n")
    if not raw.endswith(b"\n"):
        lines += 1
    return lines


def compress(raw: bytes) -> bytes:
    # Fixed header mtime so identical input always yields identical bytes.
    return gzip.compress(raw, mtime=0)


def decompress(data: bytes, *, provider: str | None = None, key: str | None = None) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise StorageError(f"corrupt archive object: {e}", provider=provider, key=key) from e


def object_key(tenant_id: TenantId, source_id: SourceId, window: TimeWindow, digest: str) -> str:
    """`logs/<tenant>/<source>/<YYYY>/<MM>/<DD>/<start>_<end>_<digest8>.ndjson.gz`.

    The date path comes from the window start in UTC.
    """
    start = window.start.astimezone(UTC)
    end = window.end.astimezone(UTC)
    return (
        f"logs/{tenant_id}/{source_id}/{start:%Y/%m/%d}/"
        f"{start.strftime(_COMPACT)}_{end.strftime(_COMPACT)}_{digest[:8]}.ndjson.gz"
    )


@dataclass(frozen=True)
class PreparedBlob:
    body: bytes
    stored: StoredObject

    @property
    def key(self) -> str:
        return self.stored.key

    @property
    def digest(self) -> str:
        return self.stored.digest


def prepare_blob(
    tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
) -> PreparedBlob:
    body = compress(raw)
    digest = sha256_hex(body)
    return PreparedBlob(
        body=body,
        stored=StoredObject(
            key=object_key(tenant_id, source_id, window, digest),
            digest=digest,
            byte_count=len(body),
            line_count=count_lines(raw),
        ),
    )


def retain_until(window: TimeWindow, lock_days: int) -> datetime:
    return window.end.astimezone(UTC) + timedelta(days=lock_days)
