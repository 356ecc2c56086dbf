"""
KMS S3 Cache Manager

High-level cache service that validates configuration, bootstraps the AWS
clients, and wires the retrieval pipeline to the cache store and telemetry.
"""

import asyncio
from typing import Any, Callable, Mapping, Optional, Union

import structlog

from ...constants import APP_NAME, APP_VERSION
from ...core.config import CacheConfig, load_config
from ...core.instrumentation import (
    ObservabilityHooks,
    StderrTelemetrySink,
    TelemetryHooks,
    TelemetryListener,
)
from ...domain.cache.repository_interfaces import BlobSource, KeyService
from ...domain.cache.value_objects import EncryptionContext, LookupContext, PipelineOutcome
from ...infrastructure.aws.blob_source import S3BlobSource
from ...infrastructure.aws.connection_factory import AwsClientFactory
from ...infrastructure.aws.error_classifier import BlobErrorClassifier
from ...infrastructure.aws.key_service import KMSKeyService
from ...infrastructure.repositories.cache_repository import InMemoryCacheRepository
from .retrieval_pipeline import RetrievalPipeline

logger = structlog.get_logger()

LookupCallback = Callable[[Optional[Exception], Optional[bytes]], Any]


class KmsS3Cache:
    """
    Lazy, memoizing accessor for KMS-encrypted values stored in S3.

    Configuration is validated before any client is created; a bad
    configuration raises ConfigurationError from the constructor. After
    construction no lookup raises: errors are delivered as values.
    """

    def __init__(
        self,
        config: Union[CacheConfig, Mapping[str, Any], None] = None,
        *,
        hooks: Optional[ObservabilityHooks] = None,
        blob_source: Optional[BlobSource] = None,
        key_service: Optional[KeyService] = None,
        **options: Any,
    ):
        """
        Initialize cache.

        Args:
            config: CacheConfig or mapping of options
            hooks: Observability hooks (default: TelemetryHooks)
            blob_source: Override for the S3 blob source
            key_service: Override for the KMS key service
            **options: Options merged over ``config``

        Raises:
            ConfigurationError: When required options are missing or mistyped
        """
        self.name = APP_NAME
        self.version = APP_VERSION
        self.config = load_config(config, **options)

        self.store = InMemoryCacheRepository(self.config.initial_cache)

        self._s3 = None
        self._kms = None
        if blob_source is None or key_service is None:
            factory = AwsClientFactory(
                region=self.config.region,
                credentials=self.config.credentials,
                endpoint_url=self.config.endpoint_url,
            )
            if blob_source is None:
                self._s3 = factory.create_s3_client()
                blob_source = S3BlobSource(self._s3)
            if key_service is None:
                self._kms = factory.create_kms_client()
                key_service = KMSKeyService(self._kms)

        self.telemetry = hooks if hooks is not None else TelemetryHooks()
        if self.config.debug_telemetry_to_stderr:
            if isinstance(self.telemetry, TelemetryHooks):
                self.telemetry.add_listener(StderrTelemetrySink())
            else:
                logger.warning(
                    "Stderr telemetry requested but injected hooks emit no events",
                    hooks=type(self.telemetry).__name__,
                )

        self.pipeline = RetrievalPipeline(
            bucket=self.config.bucket,
            encryption_context=EncryptionContext(self.config.encryption_context),
            store=self.store,
            blob_source=blob_source,
            key_service=key_service,
            classifier=BlobErrorClassifier(
                treat_access_denied_as_absent=self.config.treat_access_denied_as_absent
            ),
            hooks=self.telemetry,
            coalesce_requests=self.config.coalesce_requests,
        )

        logger.info(
            "KMS S3 cache initialized",
            bucket=self.config.bucket,
            region=self.config.region,
            seeded_entries=len(self.store),
        )

    async def get(
        self, key: str, context: Optional[LookupContext] = None
    ) -> PipelineOutcome:
        """
        Look up key, fetching and decrypting it on a cache miss.

        Args:
            key: Lookup key
            context: Optional per-call context (parent span)

        Returns:
            PipelineOutcome; unpack as ``error, value = await cache.get(key)``
        """
        return await self.pipeline.lookup(key, context)

    def lookup(
        self,
        key: str,
        callback: LookupCallback,
        context: Optional[LookupContext] = None,
    ) -> "asyncio.Future[PipelineOutcome]":
        """
        Callback form of get(); must be called with a running event loop.

        ``callback(error, value)`` is invoked exactly once: synchronously for
        cached keys, otherwise when the pipeline resolves.

        Returns:
            Future resolving to the same PipelineOutcome
        """
        loop = asyncio.get_running_loop()

        cached = self.store.lookup(key)
        if cached is not None:
            outcome = PipelineOutcome.from_cache_value(cached)
            callback(outcome.error, outcome.value)
            future = loop.create_future()
            future.set_result(outcome)
            return future

        task = loop.create_task(self.pipeline.lookup(key, context))

        def _deliver(done: "asyncio.Future[PipelineOutcome]") -> None:
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                callback(error, None)
                return
            outcome = done.result()
            callback(outcome.error, outcome.value)

        task.add_done_callback(_deliver)
        return task

    def add_telemetry_listener(self, listener: TelemetryListener) -> None:
        """
        Subscribe to telemetry events.

        Raises:
            TypeError: When custom hooks that do not emit events were injected
        """
        if not isinstance(self.telemetry, TelemetryHooks):
            raise TypeError("Telemetry listeners require TelemetryHooks")
        self.telemetry.add_listener(listener)
