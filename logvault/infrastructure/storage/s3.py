"""S3-compatible adapter for the ArchiveStore port, using boto3.

boto3 is synchronous, so every call is pushed onto a worker thread.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from logvault.config import S3ProviderConfig
from logvault.domain.archive.model.value import StoredObject, TimeWindow
from logvault.domain.archive.port.archive_storage import ArchiveStore
from logvault.domain.shared.error import ObjectLockUnsupportedError, StorageError
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.storage.blob import (
    CONTENT_TYPE,
    DIGEST_METADATA_KEY,
    decompress,
    prepare_blob,
    retain_until,
)


def _lock_unsupported(error: ClientError) -> bool:
    """True when the bucket or backend cannot honour the compliance lock.

    AWS says "Object Lock Configuration", MinIO "ObjectLockConfiguration";
    some S3-compatible backends answer NotImplemented for the lock headers.
    """
    err = error.response.get("Error", {})
    code = err.get("Code", "")
    message = "".join(err.get("Message", "").lower().split())
    if code == "NotImplemented":
        return True
    return "objectlockconfiguration" in message


def create_s3_client(cfg: S3ProviderConfig) -> Any:
    kwargs: dict[str, Any] = {
        "region_name": cfg.region,
        "config": BotoConfig(
            s3={"addressing_style": "path" if cfg.force_path_style else "auto"},
            retries={"mode": "standard"},
        ),
    }
    if cfg.endpoint:
        kwargs["endpoint_url"] = cfg.endpoint
    if cfg.access_key_id and cfg.secret_access_key:
        kwargs["aws_access_key_id"] = cfg.access_key_id
        kwargs["aws_secret_access_key"] = cfg.secret_access_key
    return boto3.client("s3", **kwargs)


class S3ArchiveStore(ArchiveStore):
    """Write-once archive store on an S3-compatible bucket.

    Uploads request a compliance object lock that keeps the object
    undeletable until the window end plus `object_lock_days`. Buckets without
    object-lock configuration reject that request; the upload is then retried
    once without the lock so the same code serves both kinds of bucket.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        *,
        name: str = "s3",
        object_lock_days: int = 366,
        storage_class: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._name = name
        self._lock_days = object_lock_days
        self._storage_class = storage_class
        self._log = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls,
        cfg: S3ProviderConfig,
        object_lock_days: int,
        logger: logging.Logger | None = None,
    ) -> "S3ArchiveStore":
        return cls(
            create_s3_client(cfg),
            cfg.bucket,
            name=cfg.name,
            object_lock_days=object_lock_days,
            storage_class=cfg.storage_class,
            logger=logger,
        )

    @property
    def name(self) -> str:
        return self._name

    async def put(
        self, tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
    ) -> StoredObject:
        blob = prepare_blob(tenant_id, source_id, window, raw)
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": blob.key,
            "Body": blob.body,
            "ContentType": CONTENT_TYPE,
            "Metadata": {DIGEST_METADATA_KEY: blob.digest},
        }
        if self._storage_class:
            params["StorageClass"] = self._storage_class

        try:
            await self._put_locked(params, retain_until(window, self._lock_days))
        except ObjectLockUnsupportedError:
            self._log.warning(
                "Bucket %s has no object-lock configuration, storing %s without a lock",
                self._bucket,
                blob.key,
            )
            await self._call("put_object", blob.key, **params)

        self._log.debug("Stored %s (%d bytes) in %s", blob.key, len(blob.body), self._bucket)
        return blob.stored

    async def _put_locked(self, params: dict[str, Any], until: datetime) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                ObjectLockMode="COMPLIANCE",
                ObjectLockRetainUntilDate=until,
                **params,
            )
        except ClientError as e:
            if _lock_unsupported(e):
                raise ObjectLockUnsupportedError(
                    str(e), provider=self._name, key=params["Key"]
                ) from e
            raise StorageError(
                f"upload of {params['Key']} failed: {e}", provider=self._name, key=params["Key"]
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"upload of {params['Key']} failed: {e}", provider=self._name, key=params["Key"]
            ) from e

    async def _call(self, method: str, key: str, **params: Any) -> Any:
        try:
            return await asyncio.to_thread(getattr(self._client, method), **params)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"{method} {key} failed: {e}", provider=self._name, key=key) from e

    async def get_compressed(self, key: str) -> bytes:
        response = await self._call("get_object", key, Bucket=self._bucket, Key=key)
        try:
            return await asyncio.to_thread(response["Body"].read)
        except (ClientError, BotoCoreError, OSError) as e:
            raise StorageError(f"read of {key} failed: {e}", provider=self._name, key=key) from e

    async def get(self, key: str) -> bytes:
        return decompress(await self.get_compressed(key), provider=self._name, key=key)

    async def delete(self, key: str) -> None:
        await self._call("delete_object", key, Bucket=self._bucket, Key=key)
        self._log.info("Deleted %s from %s", key, self._bucket)
