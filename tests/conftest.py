"""
Main pytest configuration for all tests.

Fake AWS collaborators, recording hooks, and in-memory OpenTelemetry
providers shared by unit tests.
"""

import asyncio
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)

from kms_s3_cache.core.exceptions import BlobSourceError
from kms_s3_cache.core.instrumentation import ObservabilityHooks
from kms_s3_cache.domain.cache.repository_interfaces import BlobSource, KeyService


class FakeBlobSource(BlobSource):
    """In-memory blob source recording every fetch."""

    def __init__(
        self,
        objects: Optional[Dict[str, bytes]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.objects = dict(objects or {})
        self.errors = dict(errors or {})
        self.calls: List[Tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def fetch_object(self, bucket: str, key: str) -> bytes:
        self.calls.append((bucket, key))
        if self.gate is not None:
            await self.gate.wait()
        if key in self.errors:
            raise self.errors[key]
        if key not in self.objects:
            raise BlobSourceError(bucket=bucket, key=key, service_error_code="NoSuchKey")
        return self.objects[key]


class FakeKeyService(KeyService):
    """Key service mapping ciphertext to plaintext, recording every call."""

    def __init__(
        self,
        plaintexts: Optional[Dict[bytes, Optional[bytes]]] = None,
        error: Optional[Exception] = None,
    ):
        self.plaintexts = dict(plaintexts or {})
        self.error = error
        self.calls: List[Tuple[bytes, Dict[str, str]]] = []

    async def decrypt(
        self, ciphertext: bytes, encryption_context: Mapping[str, str]
    ) -> Optional[bytes]:
        self.calls.append((ciphertext, dict(encryption_context)))
        if self.error is not None:
            raise self.error
        return self.plaintexts.get(ciphertext)


class RecordingHooks(ObservabilityHooks):
    """Hooks recording (hook name, args) for every invocation."""

    def __init__(self):
        self.events: List[Tuple[str, Tuple[Any, ...]]] = []

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def call_started(self, target, args):
        self.events.append(("call_started", (target, args)))

    def call_not_found(self, target, args, error):
        self.events.append(("call_not_found", (target, args, error)))

    def call_failed(self, target, args, error):
        self.events.append(("call_failed", (target, args, error)))

    def record_latency(self, target, elapsed_ms):
        self.events.append(("record_latency", (target, elapsed_ms)))

    def start_span(self, name, parent_span):
        self.events.append(("start_span", (name, parent_span)))
        return None

    def finish_span(self, span, error=False):
        self.events.append(("finish_span", (span, error)))


class ExplodingHooks(ObservabilityHooks):
    """Hooks that raise from every method."""

    def call_started(self, target, args):
        raise RuntimeError("hook exploded")

    def call_not_found(self, target, args, error):
        raise RuntimeError("hook exploded")

    def call_failed(self, target, args, error):
        raise RuntimeError("hook exploded")

    def record_latency(self, target, elapsed_ms):
        raise RuntimeError("hook exploded")

    def start_span(self, name, parent_span):
        raise RuntimeError("hook exploded")

    def finish_span(self, span, error=False):
        raise RuntimeError("hook exploded")


@pytest.fixture(autouse=True)
def clean_cache_environment(monkeypatch):
    """Keep KMS_S3_CACHE_* variables from leaking into config tests."""
    for name in list(os.environ):
        if name.upper().startswith("KMS_S3_CACHE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def valid_options() -> Dict[str, Any]:
    """Minimal valid cache options."""
    return {
        "bucket": "my-bucket",
        "region": "us-east-1",
        "encryption_context": {"app": "x"},
    }


@pytest.fixture
def blob_source() -> FakeBlobSource:
    return FakeBlobSource()


@pytest.fixture
def key_service() -> FakeKeyService:
    return FakeKeyService()


@pytest.fixture
def recording_hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    """Tracer exporting finished spans to memory."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("tests")


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def meter(metric_reader):
    """Meter collected by an in-memory reader."""
    provider = MeterProvider(metric_readers=[metric_reader])
    return provider.get_meter("tests")


def collect_metrics(reader: InMemoryMetricReader) -> Dict[str, List[Any]]:
    """Map metric name to its data points."""
    collected: Dict[str, List[Any]] = {}
    data = reader.get_metrics_data()
    if data is None:
        return collected
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                collected.setdefault(metric.name, []).extend(metric.data.data_points)
    return collected


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "aws: marks tests exercising the boto3 adapters")
    config.addinivalue_line(
        "markers", "telemetry: marks tests exercising observability hooks"
    )
