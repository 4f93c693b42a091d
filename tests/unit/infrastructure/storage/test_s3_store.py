"""Unit tests for S3ArchiveStore against a mocked boto3 client."""

import io
from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from logvault.domain.archive.chain import sha256_hex
from logvault.domain.archive.model import TimeWindow
from logvault.domain.shared.error import StorageError
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.storage.blob import CONTENT_TYPE, compress
from logvault.infrastructure.storage.s3 import S3ArchiveStore


def client_error(code: str, message: str, op: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


LOCK_MISSING = client_error("InvalidRequest", "Bucket is missing ObjectLockConfiguration")


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(client: MagicMock) -> S3ArchiveStore:
    return S3ArchiveStore(client, "archive-bucket", name="primary", object_lock_days=30)


@pytest.fixture
def ids() -> tuple[TenantId, SourceId]:
    return TenantId(uuid4()), SourceId(uuid4())


class TestPut:
    async def test_uploads_with_compliance_lock(
        self, store: S3ArchiveStore, client: MagicMock, ids, window: TimeWindow
    ):
        stored = await store.put(*ids, window, b"a\nb")

        client.put_object.assert_called_once()
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "archive-bucket"
        assert kwargs["Key"] == stored.key
        assert kwargs["ContentType"] == CONTENT_TYPE
        assert kwargs["Metadata"] == {"sha256": stored.digest}
        assert kwargs["ObjectLockMode"] == "COMPLIANCE"
        assert kwargs["ObjectLockRetainUntilDate"] == window.end + timedelta(days=30)
        assert sha256_hex(kwargs["Body"]) == stored.digest
        assert stored.line_count == 2

    async def test_retries_without_lock_when_bucket_has_none(
        self, store: S3ArchiveStore, client: MagicMock, ids, window: TimeWindow
    ):
        client.put_object.side_effect = [LOCK_MISSING, {}]

        stored = await store.put(*ids, window, b"x")

        assert client.put_object.call_count == 2
        retry = client.put_object.call_args_list[1].kwargs
        assert "ObjectLockMode" not in retry
        assert "ObjectLockRetainUntilDate" not in retry
        assert retry["Key"] == stored.key

    @pytest.mark.parametrize(
        "error",
        [
            client_error("InvalidRequest", "Bucket is missing Object Lock Configuration"),
            client_error("NotImplemented", "A header you provided implies unimplemented functionality"),
        ],
        ids=["aws-wording", "not-implemented"],
    )
    async def test_lock_fallback_recognises_other_backends(
        self, store: S3ArchiveStore, client: MagicMock, ids, window: TimeWindow, error: ClientError
    ):
        client.put_object.side_effect = [error, {}]

        await store.put(*ids, window, b"x")

        assert client.put_object.call_count == 2
        assert "ObjectLockMode" not in client.put_object.call_args_list[1].kwargs

    async def test_other_client_errors_are_not_retried(
        self, store: S3ArchiveStore, client: MagicMock, ids, window: TimeWindow
    ):
        client.put_object.side_effect = client_error("AccessDenied", "Access Denied")

        with pytest.raises(StorageError) as exc_info:
            await store.put(*ids, window, b"x")

        assert client.put_object.call_count == 1
        assert exc_info.value.provider == "primary"

    async def test_fallback_failure_is_storage_error(
        self, store: S3ArchiveStore, client: MagicMock, ids, window: TimeWindow
    ):
        client.put_object.side_effect = [
            LOCK_MISSING,
            EndpointConnectionError(endpoint_url="https://s3.example"),
        ]

        with pytest.raises(StorageError):
            await store.put(*ids, window, b"x")

    async def test_storage_class_passed_through(self, client: MagicMock, ids, window: TimeWindow):
        store = S3ArchiveStore(client, "b", storage_class="GLACIER_IR")

        await store.put(*ids, window, b"x")

        assert client.put_object.call_args.kwargs["StorageClass"] == "GLACIER_IR"


class TestReadDelete:
    async def test_get_decompresses_body(self, store: S3ArchiveStore, client: MagicMock):
        client.get_object.return_value = {"Body": io.BytesIO(compress(b"line\n"))}

        assert await store.get("logs/k") == b"line\n"
        client.get_object.assert_called_once_with(Bucket="archive-bucket", Key="logs/k")

    async def test_get_compressed_returns_stored_bytes(
        self, store: S3ArchiveStore, client: MagicMock
    ):
        body = compress(b"line\n")
        client.get_object.return_value = {"Body": io.BytesIO(body)}

        assert await store.get_compressed("logs/k") == body

    async def test_missing_object(self, store: S3ArchiveStore, client: MagicMock):
        client.get_object.side_effect = client_error("NoSuchKey", "not found", "GetObject")

        with pytest.raises(StorageError) as exc_info:
            await store.get("logs/k")

        assert exc_info.value.key == "logs/k"

    async def test_delete(self, store: S3ArchiveStore, client: MagicMock):
        await store.delete("logs/k")

        client.delete_object.assert_called_once_with(Bucket="archive-bucket", Key="logs/k")

    async def test_delete_rejected_by_lock(self, store: S3ArchiveStore, client: MagicMock):
        client.delete_object.side_effect = client_error(
            "AccessDenied", "Object is WORM protected", "DeleteObject"
        )

        with pytest.raises(StorageError):
            await store.delete("logs/k")
