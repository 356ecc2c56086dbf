"""
KMS S3 Cache

Lazy, memoizing accessor for values stored as KMS-encrypted objects in S3.
"""

from .constants import APP_NAME, APP_VERSION
from .core.config import CacheConfig
from .core.exceptions import (
    KmsS3CacheException,
    ConfigurationError,
    RemoteCallError,
    BlobSourceError,
    KeyServiceError,
)
from .core.instrumentation import (
    ObservabilityHooks,
    NoopObservabilityHooks,
    TelemetryHooks,
    StderrTelemetrySink,
    TelemetryEvent,
    TargetMetadata,
)
from .domain.cache.value_objects import (
    Absent,
    ABSENT,
    Hit,
    CacheValue,
    EncryptionContext,
    LookupContext,
    PipelineOutcome,
)
from .services.cache.cache_manager import KmsS3Cache
from .services.cache.retrieval_pipeline import RetrievalPipeline

__version__ = APP_VERSION

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    # Facade and pipeline
    "KmsS3Cache",
    "RetrievalPipeline",
    "CacheConfig",
    # Value objects
    "Absent",
    "ABSENT",
    "Hit",
    "CacheValue",
    "EncryptionContext",
    "LookupContext",
    "PipelineOutcome",
    # Observability
    "ObservabilityHooks",
    "NoopObservabilityHooks",
    "TelemetryHooks",
    "StderrTelemetrySink",
    "TelemetryEvent",
    "TargetMetadata",
    # Exceptions
    "KmsS3CacheException",
    "ConfigurationError",
    "RemoteCallError",
    "BlobSourceError",
    "KeyServiceError",
]
