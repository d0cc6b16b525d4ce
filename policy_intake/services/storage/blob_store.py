"""Blob storage for uploaded PDFs and the cross-run OCR text cache."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from policy_intake.core.exceptions import AcquisitionError, ConfigurationError
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

OCR_CACHE_PREFIX = "ocr_texts"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def ocr_cache_key(upload_id: str) -> str:
    return f"{OCR_CACHE_PREFIX}/{upload_id}.txt"


class BaseBlobStore(ABC):
    """Get/put-by-key object store plus the OCR text cache built on top of it.

    Subclasses implement the two raw operations; the cache helpers are
    best-effort and never raise.
    """

    def __init__(self, cache_enabled: bool = True):
        self.cache_enabled = cache_enabled

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Bucket (or namespace) holding the blobs, as the OCR service sees it."""

    @abstractmethod
    async def get_blob(self, key: str) -> bytes:
        """Return the bytes stored under ``key``.

        Raises:
            AcquisitionError: If the blob cannot be fetched
        """

    @abstractmethod
    async def put_blob(self, key: str, data: bytes, content_type: str) -> None:
        """Store ``data`` under ``key``."""

    async def get_cached_text(self, upload_id: Optional[str]) -> Optional[str]:
        """Return cached OCR text for ``upload_id``, or ``None`` on a miss or any failure."""
        if not upload_id or not self.cache_enabled:
            return None
        key = ocr_cache_key(upload_id)
        try:
            data = await self.get_blob(key)
        except Exception as e:
            LOGGER.debug("OCR cache miss", extra={"key": key, "error": str(e)})
            return None
        text = data.decode("utf-8", errors="replace")
        LOGGER.info("OCR cache hit", extra={"key": key, "chars": len(text)})
        return text

    async def put_cached_text(self, upload_id: Optional[str], text: str) -> None:
        """Write OCR text to the cache; failures are logged and swallowed."""
        if not upload_id or not self.cache_enabled:
            return
        key = ocr_cache_key(upload_id)
        try:
            await self.put_blob(key, text.encode("utf-8"), TEXT_CONTENT_TYPE)
        except Exception as e:
            LOGGER.warning("OCR cache write failed", extra={"key": key, "error": str(e)})


class S3BlobStore(BaseBlobStore):
    """Amazon S3 implementation. boto3 is blocking, so calls run in a worker thread."""

    def __init__(
        self,
        bucket: str,
        region: str = "ap-south-1",
        cache_enabled: bool = True,
        client: Any = None,
    ):
        """Initialize the store.

        Args:
            bucket: S3 bucket name
            region: AWS region
            cache_enabled: Whether the OCR text cache is used
            client: Optional pre-built boto3 S3 client
        """
        if not bucket:
            raise ConfigurationError("S3_BUCKET is not configured")
        super().__init__(cache_enabled=cache_enabled)
        self._bucket = bucket
        if client is None:
            import boto3

            client = boto3.client("s3", region_name=region)
        self.client = client

    @property
    def bucket(self) -> str:
        return self._bucket

    async def get_blob(self, key: str) -> bytes:
        def _get() -> bytes:
            response = self.client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except Exception as e:
            raise AcquisitionError(f"Failed to fetch s3://{self._bucket}/{key}", original_error=e) from e

    async def put_blob(self, key: str, data: bytes, content_type: str) -> None:
        def _put() -> None:
            extra: Dict[str, Any] = {}
            if key.startswith(f"{OCR_CACHE_PREFIX}/"):
                extra["CacheControl"] = "max-age=31536000"
            self.client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                **extra,
            )

        await asyncio.to_thread(_put)
