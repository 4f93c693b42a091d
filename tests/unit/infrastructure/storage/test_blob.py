"""Unit tests for blob preparation and key derivation."""

import gzip
from datetime import UTC, datetime, timedelta, timezone
from uuid import UUID

import pytest

from logvault.domain.archive.chain import sha256_hex
from logvault.domain.archive.model import TimeWindow
from logvault.domain.shared.error import StorageError
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.storage.blob import (
    compress,
    count_lines,
    decompress,
    object_key,
    prepare_blob,
    retain_until,
)

TENANT = TenantId(UUID("11111111-1111-1111-1111-111111111111"))
SOURCE = SourceId(UUID("22222222-2222-2222-2222-222222222222"))


class TestCountLines:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (b"", 0),
            (b"a", 1),
            (b"a\n", 1),
            (b"a\nb\nc", 3),
            (b"a\nb\nc\n", 3),
        ],
    )
    def test_counts(self, raw, expected):
        assert count_lines(raw) == expected


class TestCompression:
    def test_identical_input_identical_bytes(self):
        assert compress(b"same") == compress(b"same")

    def test_roundtrip(self):
        assert gzip.decompress(compress(b"a\nb")) == b"a\nb"

    def test_corrupt_data_raises_storage_error(self):
        with pytest.raises(StorageError) as exc_info:
            decompress(b"not gzip", provider="p", key="k")
        assert exc_info.value.provider == "p"
        assert exc_info.value.key == "k"


class TestObjectKey:
    def test_format(self, window: TimeWindow):
        key = object_key(TENANT, SOURCE, window, "deadbeefcafe" + "0" * 52)

        assert key == (
            "logs/11111111-1111-1111-1111-111111111111/22222222-2222-2222-2222-222222222222/"
            "2024/01/01/20240101T090000Z_20240101T100000Z_deadbeef.ndjson.gz"
        )

    def test_date_path_from_start_in_utc(self):
        tz = timezone(timedelta(hours=2))
        window = TimeWindow(
            start=datetime(2024, 12, 31, 23, 30, tzinfo=UTC).astimezone(tz),
            end=datetime(2025, 1, 1, 0, 30, tzinfo=UTC).astimezone(tz),
        )

        key = object_key(TENANT, SOURCE, window, "a" * 64)

        assert "/2024/12/31/20241231T233000Z_20250101T003000Z_aaaaaaaa" in key


class TestPrepareBlob:
    def test_stored_object_describes_compressed_body(self, window: TimeWindow):
        raw = b"a\nb\nc"

        blob = prepare_blob(TENANT, SOURCE, window, raw)

        assert blob.digest == sha256_hex(blob.body)
        assert blob.stored.byte_count == len(blob.body)
        assert blob.stored.line_count == 3
        assert blob.key.endswith(f"_{blob.digest[:8]}.ndjson.gz")
        assert gzip.decompress(blob.body) == raw

    def test_same_content_same_key(self, window: TimeWindow):
        a = prepare_blob(TENANT, SOURCE, window, b"x\n")
        b = prepare_blob(TENANT, SOURCE, window, b"x\n")
        assert a.key == b.key

    def test_empty_window_still_has_digest(self, window: TimeWindow):
        blob = prepare_blob(TENANT, SOURCE, window, b"")
        assert blob.stored.line_count == 0
        assert len(blob.digest) == 64


def test_retain_until_counts_from_window_end(window: TimeWindow):
    assert retain_until(window, 366) == window.end + timedelta(days=366)
