"""boto3 implementations of the object store and edge cache collaborators."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence
from urllib.parse import quote

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from edgesync.config import EdgeSyncConfig
from edgesync.errors import ConfigError, InvalidationError, RemoteListError, UploadError
from edgesync.fingerprint import DEFAULT_CHUNK_SIZE
from edgesync.models import InventoryPage, RemoteObjectRecord, UploadTask


logger = logging.getLogger(__name__)

# Characters CloudFront accepts unencoded in invalidation paths. "*" is a
# wildcard there, so a literal one is always encoded.
INVALIDATION_SAFE_CHARS = "/!$&'()+,;=:@?"


def client_config() -> BotoConfig:
    return BotoConfig(
        connect_timeout=10,
        read_timeout=60,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def create_session(config: EdgeSyncConfig) -> boto3.Session:
    try:
        return boto3.Session(
            profile_name=config.profile or None,
            region_name=config.region or None,
        )
    except BotoCoreError as exc:
        raise ConfigError(f"Cannot create AWS session for profile {config.profile!r}: {exc}") from exc


class S3ObjectStore:
    """S3 bucket listing and uploads.

    Args:
        bucket: Bucket name
        client: boto3 S3 client
        chunk_size: Multipart threshold and part size. Must match the
            fingerprint chunk size for multipart ETags to compare equal.
    """

    def __init__(self, bucket: str, client: Any, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.bucket = bucket
        self._client = client
        self._transfer_config = TransferConfig(
            multipart_threshold=chunk_size,
            multipart_chunksize=chunk_size,
        )

    @classmethod
    def from_config(
        cls,
        config: EdgeSyncConfig,
        session: boto3.Session | None = None,
        *,
        concurrency: int | None = None,
    ) -> "S3ObjectStore":
        session = session or create_session(config)
        # One pooled connection per concurrent upload plus headroom for listing.
        pool_size = (concurrency or config.concurrency) + 2
        client_cfg = client_config().merge(BotoConfig(max_pool_connections=pool_size))
        return cls(config.bucket, session.client("s3", config=client_cfg))

    def list_page(self, continuation_token: str | None = None) -> InventoryPage:
        params: dict[str, Any] = {"Bucket": self.bucket}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = self._client.list_objects_v2(**params)
        except (BotoCoreError, ClientError) as exc:
            raise RemoteListError(f"Listing s3://{self.bucket} failed: {exc}") from exc

        records = [
            RemoteObjectRecord(key=obj.get("Key", ""), fingerprint=obj.get("ETag", ""))
            for obj in response.get("Contents", [])
        ]
        next_token = None
        if response.get("IsTruncated"):
            next_token = response.get("NextContinuationToken")
            if not next_token:
                raise RemoteListError(
                    f"Listing s3://{self.bucket} is truncated but has no continuation token."
                )
        return InventoryPage(records=records, next_token=next_token)

    def put(
        self,
        task: UploadTask,
        *,
        cache_control: str,
        acl: str,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        extra_args = {
            "ContentType": task.content_type,
            "CacheControl": cache_control,
        }
        if acl:
            extra_args["ACL"] = acl
        try:
            self._client.upload_file(
                str(task.source_path),
                self.bucket,
                task.key,
                ExtraArgs=extra_args,
                Callback=on_progress,
                Config=self._transfer_config,
            )
        except (BotoCoreError, ClientError, S3UploadFailedError, OSError) as exc:
            raise UploadError(f"Upload of {task.key} to s3://{self.bucket} failed: {exc}", key=task.key) from exc


class CloudFrontEdgeCache:
    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: EdgeSyncConfig, session: boto3.Session | None = None) -> "CloudFrontEdgeCache":
        session = session or create_session(config)
        return cls(session.client("cloudfront", config=client_config()))

    def invalidate(self, distribution_id: str, reference: str, paths: Sequence[str]) -> str:
        items = [quote(path, safe=INVALIDATION_SAFE_CHARS) for path in paths]
        try:
            response = self._client.create_invalidation(
                DistributionId=distribution_id,
                InvalidationBatch={
                    "Paths": {"Quantity": len(items), "Items": items},
                    "CallerReference": reference,
                },
            )
        except (BotoCoreError, ClientError) as exc:
            raise InvalidationError(
                f"CloudFront rejected invalidation of {len(items)} path(s) on {distribution_id}: {exc}"
            ) from exc
        invalidation = response.get("Invalidation", {})
        logger.debug("Invalidation response status: %s", invalidation.get("Status"))
        return str(invalidation.get("Id", ""))
