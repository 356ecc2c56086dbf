"""
AWS Infrastructure Module

boto3-backed collaborators for the retrieval pipeline:
- S3BlobSource: encrypted object fetches
- KMSKeyService: authenticated decryption
- BlobErrorClassifier: not-found vs real error classification
- AwsClientFactory: client bootstrap from region and credentials
"""

from .blob_source import S3BlobSource
from .key_service import KMSKeyService
from .error_classifier import BlobErrorClassifier, BlobErrorClass
from .connection_factory import AwsClientFactory

__all__ = [
    "S3BlobSource",
    "KMSKeyService",
    "BlobErrorClassifier",
    "BlobErrorClass",
    "AwsClientFactory",
]
