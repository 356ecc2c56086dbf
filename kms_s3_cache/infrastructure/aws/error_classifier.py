"""
Blob Source Error Classification

Decides whether a blob fetch failure means "object absent" (negative cache)
or a real error (surfaced to the caller, never cached).
"""

from enum import Enum
from typing import FrozenSet, Optional

from ...constants import S3_ACCESS_DENIED, S3_NOT_FOUND_CODES
from ...core.exceptions import BlobSourceError


class BlobErrorClass(str, Enum):
    """Blob fetch failure classes."""

    NOT_FOUND = "not_found"
    OTHER = "other"


class BlobErrorClassifier:
    """
    Classifies blob source errors by their S3 error code.

    ``AccessDenied`` is conflated with ``NoSuchKey`` by default: S3 reports
    AccessDenied for missing keys when the caller lacks ListBucket.
    Pass ``treat_access_denied_as_absent=False`` to surface it as an error.
    """

    NOT_FOUND_CODES: FrozenSet[str] = frozenset(S3_NOT_FOUND_CODES)

    def __init__(self, treat_access_denied_as_absent: bool = True):
        codes = set(self.NOT_FOUND_CODES)
        if not treat_access_denied_as_absent:
            codes.discard(S3_ACCESS_DENIED)
        self.not_found_codes: FrozenSet[str] = frozenset(codes)

    def classify_code(self, error_code: Optional[str]) -> BlobErrorClass:
        if error_code in self.not_found_codes:
            return BlobErrorClass.NOT_FOUND
        return BlobErrorClass.OTHER

    def classify(self, error: BaseException) -> BlobErrorClass:
        """
        Classify a blob source failure.

        Args:
            error: Exception raised by the blob source

        Returns:
            NOT_FOUND for allow-listed codes, OTHER for everything else
        """
        if isinstance(error, BlobSourceError):
            return self.classify_code(error.service_error_code)
        return BlobErrorClass.OTHER

    def is_not_found(self, error: BaseException) -> bool:
        return self.classify(error) is BlobErrorClass.NOT_FOUND
