"""
AWS Client Factory

Builds the boto3 S3 and KMS clients used by the blob source and key service.
Both clients share one session so supplied credentials apply to each.
"""

from typing import Any, Optional

import boto3
import structlog
from botocore.config import Config as BotocoreConfig
from botocore.credentials import Credentials

from ...constants import APP_NAME, APP_VERSION

logger = structlog.get_logger()


class AwsClientFactory:
    """
    Factory for boto3 clients bound to a region and optional credentials.

    ``credentials`` may be a boto3 ``Session`` (used as-is) or a botocore
    ``Credentials`` object (wrapped in a new session). Without credentials the
    default boto3 credential chain applies.
    """

    def __init__(
        self,
        region: str,
        credentials: Optional[Any] = None,
        endpoint_url: Optional[str] = None,
    ):
        self.region = region
        self.endpoint_url = endpoint_url
        self.session = self._create_session(region, credentials)
        self._client_config = BotocoreConfig(
            region_name=region,
            user_agent_extra=f"{APP_NAME}/{APP_VERSION}",
        )

    @staticmethod
    def _create_session(region: str, credentials: Optional[Any]) -> boto3.session.Session:
        if isinstance(credentials, boto3.session.Session):
            return credentials

        if isinstance(credentials, Credentials):
            frozen = credentials.get_frozen_credentials()
            return boto3.session.Session(
                aws_access_key_id=frozen.access_key,
                aws_secret_access_key=frozen.secret_key,
                aws_session_token=frozen.token,
                region_name=region,
            )

        return boto3.session.Session(region_name=region)

    def create_s3_client(self):
        """Create S3 client."""
        logger.debug("Creating S3 client", region=self.region)
        return self.session.client(
            "s3", config=self._client_config, endpoint_url=self.endpoint_url
        )

    def create_kms_client(self):
        """Create KMS client."""
        logger.debug("Creating KMS client", region=self.region)
        return self.session.client(
            "kms", config=self._client_config, endpoint_url=self.endpoint_url
        )
