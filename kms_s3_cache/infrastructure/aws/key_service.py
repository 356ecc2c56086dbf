"""
KMS Key Service

Decrypts ciphertext through AWS KMS with an encryption context.
"""

import asyncio
from typing import Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...constants import KEY_ID_CONTEXT_ATTRIBUTE
from ...core.exceptions import KeyServiceError
from ...domain.cache.repository_interfaces import KeyService


class KMSKeyService(KeyService):
    """KMS implementation of the key service."""

    def __init__(self, client):
        """
        Initialize key service.

        Args:
            client: boto3 KMS client
        """
        self.client = client

    async def decrypt(
        self, ciphertext: bytes, encryption_context: Mapping[str, str]
    ) -> Optional[bytes]:
        return await asyncio.to_thread(
            self._decrypt, ciphertext, dict(encryption_context)
        )

    def _decrypt(self, ciphertext: bytes, encryption_context: dict) -> Optional[bytes]:
        key = encryption_context.get(KEY_ID_CONTEXT_ATTRIBUTE, "")
        try:
            response = self.client.decrypt(
                CiphertextBlob=ciphertext, EncryptionContext=encryption_context
            )
        except ClientError as e:
            raise KeyServiceError(
                key=key,
                service_error_code=e.response.get("Error", {}).get("Code"),
                original_error=e,
            ) from e
        except BotoCoreError as e:
            raise KeyServiceError(key=key, original_error=e) from e

        # Missing or empty plaintext resolves as absent upstream
        return response.get("Plaintext")
