"""
Retrieval Pipeline

Serves lookups from the cache store, or resolves them by fetching the
encrypted object from the blob source and decrypting it via the key service.

States per lookup:
    CHECK_CACHE -> FETCH_BLOB -> DECRYPT -> RESOLVE_HIT
                       |            |
                       |            +-> RESOLVE_ABSENT (no plaintext)
                       |            +-> FAIL
                       +-> RESOLVE_ABSENT (classified not-found)
                       +-> FAIL

Only RESOLVE_ABSENT and RESOLVE_HIT write to the cache store. FAIL leaves
it untouched so the next lookup retries the remote calls.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

import structlog

from ...constants import KMS_DECRYPT_SPAN, S3_GET_OBJECT_SPAN
from ...core.instrumentation import (
    KMS_DECRYPT_TARGET,
    S3_GET_OBJECT_TARGET,
    NoopObservabilityHooks,
    ObservabilityHooks,
    TargetMetadata,
    redact_ciphertext,
)
from ...domain.cache.repository_interfaces import (
    BlobSource,
    CacheStoreRepository,
    KeyService,
)
from ...domain.cache.value_objects import (
    ABSENT,
    EncryptionContext,
    Hit,
    LookupContext,
    PipelineOutcome,
)
from ...infrastructure.aws.error_classifier import BlobErrorClassifier

logger = structlog.get_logger()


class PipelineState(str, Enum):
    """Retrieval pipeline states."""

    CHECK_CACHE = "check_cache"
    FETCH_BLOB = "fetch_blob"
    DECRYPT = "decrypt"
    RESOLVE_ABSENT = "resolve_absent"
    RESOLVE_HIT = "resolve_hit"
    FAIL = "fail"


class Transition(NamedTuple):
    """Next state and the data it carries (ciphertext, plaintext or error)."""

    state: PipelineState
    payload: Any = None


class RetrievalPipeline:
    """
    Fetch-then-decrypt pipeline over a memoizing cache store.

    Never raises for remote failures: every lookup resolves to a
    PipelineOutcome. Hooks are observers; their failures are logged and
    otherwise ignored.
    """

    def __init__(
        self,
        bucket: str,
        encryption_context: Union[EncryptionContext, Mapping[str, str]],
        store: CacheStoreRepository,
        blob_source: BlobSource,
        key_service: KeyService,
        classifier: Optional[BlobErrorClassifier] = None,
        hooks: Optional[ObservabilityHooks] = None,
        coalesce_requests: bool = False,
    ):
        """
        Initialize pipeline.

        Args:
            bucket: Bucket holding the encrypted objects
            encryption_context: Base encryption context for every decrypt call
            store: Cache store of resolved outcomes
            blob_source: Encrypted object source
            key_service: Decryption service
            classifier: Blob error classifier (default: source-compatible policy)
            hooks: Observability hooks (default: no-op)
            coalesce_requests: Share one in-flight resolution per uncached key
        """
        if not isinstance(encryption_context, EncryptionContext):
            encryption_context = EncryptionContext(encryption_context)

        self.bucket = bucket
        self.encryption_context = encryption_context
        self.store = store
        self.blob_source = blob_source
        self.key_service = key_service
        self.classifier = classifier or BlobErrorClassifier()
        self.hooks = hooks or NoopObservabilityHooks()
        self.coalesce_requests = coalesce_requests

        self._pending: Dict[str, "asyncio.Future[PipelineOutcome]"] = {}

    async def lookup(
        self, key: str, context: Optional[LookupContext] = None
    ) -> PipelineOutcome:
        """
        Resolve key to its plaintext value.

        Args:
            key: Lookup key, used as object key and bound as keyId on decrypt
            context: Optional per-call context carrying a parent span

        Returns:
            PipelineOutcome with an error, a value, or neither (confirmed absent)
        """
        cached = self.store.lookup(key)
        if cached is not None:
            logger.debug(
                "Serving lookup from cache",
                key=key,
                state=PipelineState.CHECK_CACHE.value,
                absent=cached is ABSENT,
            )
            return PipelineOutcome.from_cache_value(cached)

        context = context or LookupContext()

        if not self.coalesce_requests:
            return await self._resolve(key, context)

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(key, context))
            self._pending[key] = pending
            pending.add_done_callback(lambda _: self._pending.pop(key, None))
        else:
            logger.debug("Joining in-flight lookup", key=key)

        return await asyncio.shield(pending)

    async def _resolve(self, key: str, context: LookupContext) -> PipelineOutcome:
        transition = await self._fetch_blob(key, context)
        if transition.state is PipelineState.DECRYPT:
            transition = await self._decrypt(key, transition.payload, context)

        if transition.state is PipelineState.RESOLVE_HIT:
            self.store.record(key, Hit(transition.payload))
            return PipelineOutcome.hit(transition.payload)

        if transition.state is PipelineState.RESOLVE_ABSENT:
            self.store.record(key, ABSENT)
            logger.debug("Key resolved as absent", key=key)
            return PipelineOutcome.absent()

        return PipelineOutcome.failed(transition.payload)

    async def _fetch_blob(self, key: str, context: LookupContext) -> Transition:
        args = {"Bucket": self.bucket, "Key": key}
        self._notify("call_started", S3_GET_OBJECT_TARGET, args)
        span = self._notify("start_span", S3_GET_OBJECT_SPAN, context.parent_span)
        start_time = time.perf_counter()

        try:
            ciphertext = await self.blob_source.fetch_object(self.bucket, key)
            ciphertext = _as_bytes(ciphertext)
        except Exception as e:
            self._record_latency(S3_GET_OBJECT_TARGET, start_time)
            if self.classifier.is_not_found(e):
                self._notify("call_not_found", S3_GET_OBJECT_TARGET, args, e)
                self._notify("finish_span", span, False)
                return Transition(PipelineState.RESOLVE_ABSENT)

            self._notify("call_failed", S3_GET_OBJECT_TARGET, args, e)
            self._notify("finish_span", span, True)
            return Transition(PipelineState.FAIL, e)

        self._record_latency(S3_GET_OBJECT_TARGET, start_time)
        self._notify("finish_span", span, False)
        return Transition(PipelineState.DECRYPT, ciphertext)

    async def _decrypt(
        self, key: str, ciphertext: bytes, context: LookupContext
    ) -> Transition:
        encryption_context = self.encryption_context.bind_key(key)
        redacted_args = {
            "CiphertextBlob": redact_ciphertext(ciphertext),
            "EncryptionContext": encryption_context,
        }
        self._notify("call_started", KMS_DECRYPT_TARGET, redacted_args)
        span = self._notify("start_span", KMS_DECRYPT_SPAN, context.parent_span)
        start_time = time.perf_counter()

        try:
            plaintext = await self.key_service.decrypt(ciphertext, encryption_context)
            if plaintext is not None:
                plaintext = _as_bytes(plaintext)
        except Exception as e:
            self._record_latency(KMS_DECRYPT_TARGET, start_time)
            self._notify("call_failed", KMS_DECRYPT_TARGET, redacted_args, e)
            self._notify("finish_span", span, True)
            return Transition(PipelineState.FAIL, e)

        self._record_latency(KMS_DECRYPT_TARGET, start_time)
        self._notify("finish_span", span, False)

        # Empty plaintext is a value; only a missing one means absent.
        if plaintext is None:
            return Transition(PipelineState.RESOLVE_ABSENT)
        return Transition(PipelineState.RESOLVE_HIT, plaintext)

    def _record_latency(self, target: TargetMetadata, start_time: float) -> None:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._notify("record_latency", target, elapsed_ms)

    def _notify(self, hook: str, *args: Any) -> Any:
        try:
            return getattr(self.hooks, hook)(*args)
        except Exception as e:
            logger.debug("Observability hook failed", hook=hook, error=str(e))
            return None


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Expected bytes from collaborator, got {type(value).__name__}")
