"""
S3 Blob Source

Fetches encrypted objects from S3. The blocking boto3 call runs on a worker
thread; failures are re-raised as BlobSourceError carrying the S3 error code.
"""

import asyncio

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ...core.exceptions import BlobSourceError
from ...domain.cache.repository_interfaces import BlobSource

logger = structlog.get_logger()


class S3BlobSource(BlobSource):
    """S3 implementation of the blob source."""

    def __init__(self, client):
        """
        Initialize blob source.

        Args:
            client: boto3 S3 client
        """
        self.client = client

    async def fetch_object(self, bucket: str, key: str) -> bytes:
        return await asyncio.to_thread(self._get_object, bucket, key)

    def _get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except ClientError as e:
            raise BlobSourceError(
                bucket=bucket,
                key=key,
                service_error_code=e.response.get("Error", {}).get("Code"),
                original_error=e,
            ) from e
        except BotoCoreError as e:
            raise BlobSourceError(bucket=bucket, key=key, original_error=e) from e
