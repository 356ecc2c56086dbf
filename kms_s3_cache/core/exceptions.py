"""
KMS S3 Cache Exceptions

Domain-specific exceptions for configuration and remote AWS calls.
Remote-call exceptions are delivered to callers as values, never cached.
"""

from typing import Optional, Any, Dict, List


class KmsS3CacheException(Exception):
    """Base exception for cache errors.

    Every error surfaced by this package is this or a subclass.
    Original exceptions are preserved through chaining.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(KmsS3CacheException):
    """Raised when cache configuration is missing or mistyped."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if errors:
            details["errors"] = errors
        if original_error:
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="CACHE_CONFIGURATION_ERROR", details=details
        )
        if original_error:
            self.__cause__ = original_error


class RemoteCallError(KmsS3CacheException):
    """Raised when a remote AWS call fails for a reason other than not-found."""

    def __init__(
        self,
        message: str,
        error_code: str = "REMOTE_CALL_ERROR",
        service_error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        details = dict(details or {})
        if service_error_code:
            details["service_error_code"] = service_error_code
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code=error_code, details=details)
        self.service_error_code = service_error_code
        if original_error:
            self.__cause__ = original_error


class BlobSourceError(RemoteCallError):
    """Raised when fetching an object from the blob source fails.

    ``service_error_code`` carries the S3 error code (for example
    ``NoSuchKey``) so the error classifier can decide on negative caching.
    """

    def __init__(
        self,
        bucket: str,
        key: str,
        service_error_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=f"Getting object '{key}' from bucket '{bucket}' failed",
            error_code="BLOB_SOURCE_ERROR",
            service_error_code=service_error_code,
            details={"bucket": bucket, "key": key},
            original_error=original_error,
        )
        self.bucket = bucket
        self.key = key


class KeyServiceError(RemoteCallError):
    """Raised when the key service fails to decrypt a ciphertext."""

    def __init__(
        self,
        key: str,
        service_error_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=f"Decrypting ciphertext for '{key}' via KMS failed",
            error_code="KEY_SERVICE_ERROR",
            service_error_code=service_error_code,
            details={"key": key},
            original_error=original_error,
        )
        self.key = key
