"""S3ObjectStore — S3-compatible bucket as the flat key space."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiobotocore.session import get_session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import StoreUnavailableError
from ..types import ObjectMetadata, PrefixListing
from ..utils import guess_mime_type

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore:
    """Object store backed by an S3-compatible bucket.

    Keys are stored under ``path_prefix`` inside ``bucket``; the prefix is
    invisible to callers.  Listing uses ``list_objects_v2`` with a ``/``
    delimiter so only one level is returned.

    Implements the ObjectStore protocol.
    """

    def __init__(
        self,
        s3_endpoint_url: str | None,
        s3_access_key_id: str | None,
        s3_secret_access_key: str | None,
        region: str,
        bucket: str,
        path_prefix: str = "",
        with_checksums: bool = False,
    ) -> None:
        """Initiate the S3 object store.

        Args:
            s3_endpoint_url: Endpoint URL of the S3 service, None for AWS.
            s3_access_key_id: Access key ID for S3 authentication.
            s3_secret_access_key: Secret access key for S3 authentication.
            region: Region where the bucket is located.
            bucket: Name of the bucket.
            path_prefix: Prefix path within the bucket.
            with_checksums: Whether to enable checksum handling. When False
                (default), checksums are disabled for compatibility with
                S3-compatible services that do not support them.
        """
        self.s3_endpoint_url = s3_endpoint_url
        self.s3_access_key_id = s3_access_key_id
        self.s3_secret_access_key = s3_secret_access_key
        self.region = region
        self.bucket = bucket
        if path_prefix and not path_prefix.endswith("/"):
            path_prefix = f"{path_prefix}/"
        self.path_prefix = path_prefix.lstrip("/")
        self.with_checksums = with_checksums
        self._session = get_session()

    # ------------------------------------------------------------------
    # Key mapping
    # ------------------------------------------------------------------

    def to_s3_key(self, key: str) -> str:
        return f"{self.path_prefix}{key}"

    def from_s3_key(self, s3_key: str) -> str:
        if self.path_prefix and s3_key.startswith(self.path_prefix):
            return s3_key[len(self.path_prefix):]
        return s3_key

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectMetadata:
        content_type = content_type or guess_mime_type(key)
        async with self._create_client() as client:
            try:
                response = await client.put_object(
                    Bucket=self.bucket,
                    Key=self.to_s3_key(key),
                    Body=data,
                    ContentType=content_type,
                )
            except (ClientError, BotoCoreError) as e:
                raise StoreUnavailableError(f"Failed to upload object: {e}", path=key) from e
        logger.info("Object uploaded: %s/%s", self.bucket, self.to_s3_key(key))
        return ObjectMetadata(
            key=key,
            size=len(data),
            content_type=content_type,
            etag=str(response.get("ETag", "")).strip('"') or None,
        )

    async def head(self, key: str) -> ObjectMetadata | None:
        async with self._create_client() as client:
            try:
                response = await client.head_object(Bucket=self.bucket, Key=self.to_s3_key(key))
            except ClientError as e:
                if self._is_not_found(e):
                    return None
                raise StoreUnavailableError(f"Failed to stat object: {e}", path=key) from e
            except BotoCoreError as e:
                raise StoreUnavailableError(f"Failed to stat object: {e}", path=key) from e
        return ObjectMetadata(
            key=key,
            size=int(response.get("ContentLength", 0)),
            updated_at=response.get("LastModified"),
            content_type=response.get("ContentType"),
            etag=str(response.get("ETag", "")).strip('"') or None,
        )

    async def get(self, key: str) -> bytes | None:
        async with self._create_client() as client:
            try:
                response = await client.get_object(Bucket=self.bucket, Key=self.to_s3_key(key))
                async with response["Body"] as stream:
                    return await stream.read()
            except ClientError as e:
                if self._is_not_found(e):
                    return None
                raise StoreUnavailableError(f"Failed to read object: {e}", path=key) from e
            except BotoCoreError as e:
                raise StoreUnavailableError(f"Failed to read object: {e}", path=key) from e

    async def delete(self, key: str) -> bool:
        # delete_object succeeds on missing keys, so probe first
        if await self.head(key) is None:
            return False
        async with self._create_client() as client:
            try:
                await client.delete_object(Bucket=self.bucket, Key=self.to_s3_key(key))
            except (ClientError, BotoCoreError) as e:
                raise StoreUnavailableError(f"Failed to delete object: {e}", path=key) from e
        logger.info("Object deleted: %s/%s", self.bucket, self.to_s3_key(key))
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_by_prefix(self, prefix: str) -> PrefixListing:
        listing = PrefixListing()
        async with self._create_client() as client:
            try:
                paginator = client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=self.bucket,
                    Prefix=self.to_s3_key(prefix),
                    Delimiter="/",
                ):
                    for common in page.get("CommonPrefixes", []):
                        listing.prefixes.add(self.from_s3_key(common["Prefix"]))
                    for obj in self._iter_contents(page):
                        listing.objects[obj.key] = obj
            except (ClientError, BotoCoreError) as e:
                raise StoreUnavailableError(f"Failed to list prefix: {e}", path=prefix) from e
        return listing

    #
    # Private methods
    #

    def _iter_contents(self, page: dict[str, Any]) -> Iterator[ObjectMetadata]:
        for content in page.get("Contents", []):
            key = self.from_s3_key(content["Key"])
            yield ObjectMetadata(
                key=key,
                size=int(content.get("Size", 0)),
                updated_at=content.get("LastModified"),
                etag=str(content.get("ETag", "")).strip('"') or None,
            )

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        code = str(error.response.get("Error", {}).get("Code", ""))
        return code in _NOT_FOUND_CODES

    def _create_client(self) -> Any:
        """Create an S3 client using the provided credentials and endpoint URL."""
        settings: dict[str, Any] = {
            "payload_signing_enabled": False,
            "use_accelerate_endpoint": False,
            "addressing_style": "path",
        }
        if not self.with_checksums:
            settings["checksum_mode"] = "DISABLED"
            settings["request_checksum_calculation"] = "when_required"
            settings["response_checksum_validation"] = "when_required"
        config = Config(
            s3=settings,
            signature_version="s3v4",
            disable_request_compression=True,
        )
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.s3_endpoint_url,
            aws_secret_access_key=self.s3_secret_access_key,
            aws_access_key_id=self.s3_access_key_id,
            config=config,
        )
