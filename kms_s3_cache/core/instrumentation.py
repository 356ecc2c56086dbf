"""
Remote Call Instrumentation

Observability hooks bracketing the S3 and KMS calls made by the retrieval
pipeline. Hooks are pure observers: they log, measure and trace, and never
influence lookup outcomes.

This module provides:
- ObservabilityHooks: interface the pipeline calls around each remote call
- NoopObservabilityHooks: default that does nothing
- TelemetryHooks: structlog events, OpenTelemetry latency histogram and spans
- StderrTelemetrySink: JSON mirror of telemetry events on standard error
"""

import base64
import sys
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TextIO

import structlog
from opentelemetry import trace, metrics
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from ..constants import APP_NAME, APP_VERSION

logger = structlog.get_logger()


@dataclass(frozen=True)
class TargetMetadata:
    """Identifies a remote call target in telemetry events."""

    method: str
    target_module: str
    target_export: str
    target_method: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "method": self.method,
            "targetModule": self.target_module,
            "targetExport": self.target_export,
            "targetMethod": self.target_method,
        }

    def to_attributes(self) -> Dict[str, str]:
        """Flat attributes for metrics and spans."""
        return {
            "method": self.method,
            "target.module": self.target_module,
            "target.export": self.target_export,
            "target.method": self.target_method,
        }


S3_GET_OBJECT_TARGET = TargetMetadata(
    method="get", target_module="boto3", target_export="S3", target_method="get_object"
)
KMS_DECRYPT_TARGET = TargetMetadata(
    method="get", target_module="boto3", target_export="KMS", target_method="decrypt"
)


@dataclass(frozen=True)
class TelemetryEvent:
    """Structured telemetry event emitted at a remote call boundary."""

    level: str
    message: str
    target_metadata: TargetMetadata
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "targetMetadata": self.target_metadata.to_dict(),
            "payload": self.payload,
            "package": {"name": APP_NAME, "version": APP_VERSION},
            "timestamp": self.timestamp.isoformat(),
        }


TelemetryListener = Callable[[TelemetryEvent], None]


def redact_ciphertext(ciphertext: bytes) -> str:
    """Render ciphertext as base64 text so raw bytes are never emitted."""
    return base64.b64encode(ciphertext).decode("ascii")


def describe_error(error: BaseException, include_stack: bool = False) -> Dict[str, Any]:
    """
    Serialize an error for telemetry payloads.

    Args:
        error: Exception to describe
        include_stack: Whether to attach the formatted traceback

    Returns:
        JSON-friendly error description
    """
    description: Dict[str, Any] = {
        "type": type(error).__name__,
        "message": str(error),
    }
    for attr in ("error_code", "service_error_code"):
        value = getattr(error, attr, None)
        if value:
            description[attr] = value
    if include_stack:
        description["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return description


class ObservabilityHooks(ABC):
    """
    Observer interface for remote call boundaries.

    The pipeline invokes these synchronously around each call and
    isolates their failures from lookup outcomes.
    """

    @abstractmethod
    def call_started(self, target: TargetMetadata, args: Dict[str, Any]) -> None:
        """Called before the remote call with redacted arguments."""

    @abstractmethod
    def call_not_found(
        self, target: TargetMetadata, args: Dict[str, Any], error: BaseException
    ) -> None:
        """Called when a fetch failure is classified as not-found."""

    @abstractmethod
    def call_failed(
        self, target: TargetMetadata, args: Dict[str, Any], error: BaseException
    ) -> None:
        """Called when the remote call fails with a real error."""

    @abstractmethod
    def record_latency(self, target: TargetMetadata, elapsed_ms: float) -> None:
        """Called after every remote call, successful or not."""

    @abstractmethod
    def start_span(self, name: str, parent_span: Optional[Span]) -> Optional[Span]:
        """Start a child span of ``parent_span``; None when not tracing."""

    @abstractmethod
    def finish_span(self, span: Optional[Span], error: bool = False) -> None:
        """Finish a span returned by start_span."""


class NoopObservabilityHooks(ObservabilityHooks):
    """Hooks that observe nothing."""

    def call_started(self, target, args):
        pass

    def call_not_found(self, target, args, error):
        pass

    def call_failed(self, target, args, error):
        pass

    def record_latency(self, target, elapsed_ms):
        pass

    def start_span(self, name, parent_span):
        return None

    def finish_span(self, span, error=False):
        pass


class TelemetryHooks(ObservabilityHooks):
    """
    OpenTelemetry and structlog implementation of the observability hooks.

    Emits TelemetryEvent records to the structlog logger and any registered
    listeners, records call latency on a histogram, and opens client spans
    under a caller-supplied parent span.
    """

    def __init__(
        self,
        tracer: Optional[trace.Tracer] = None,
        meter: Optional[metrics.Meter] = None,
    ):
        self._tracer = tracer or trace.get_tracer(__name__, APP_VERSION)
        self._meter = meter or metrics.get_meter(__name__, APP_VERSION)
        self._listeners: List[TelemetryListener] = []

        self._initialize_metrics()

    def _initialize_metrics(self) -> None:
        """Initialize OpenTelemetry instruments for remote calls."""
        self.latency = self._meter.create_histogram(
            "kms_s3_cache.latency",
            description="Latency of remote S3 and KMS calls",
            unit="ms",
        )
        self.error_counter = self._meter.create_counter(
            "kms_s3_cache.remote_call.errors",
            description="Remote call failures not classified as not-found",
        )

    def add_listener(self, listener: TelemetryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TelemetryListener) -> None:
        self._listeners.remove(listener)

    def emit(self, event: TelemetryEvent) -> None:
        """Log the event and hand it to every listener."""
        log_method = getattr(logger, event.level, logger.info)
        log_method(
            event.message,
            target=event.target_metadata.to_dict(),
            payload=event.payload,
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.debug(
                    "Telemetry listener failed",
                    listener=repr(listener),
                    error=str(e),
                )

    def call_started(self, target: TargetMetadata, args: Dict[str, Any]) -> None:
        self.emit(
            TelemetryEvent(
                level="info",
                message=_starting_message(target),
                target_metadata=target,
                payload={"args": [args]},
            )
        )

    def call_not_found(
        self, target: TargetMetadata, args: Dict[str, Any], error: BaseException
    ) -> None:
        self.emit(
            TelemetryEvent(
                level="info",
                message="not found",
                target_metadata=target,
                payload={"args": [args], "error": describe_error(error)},
            )
        )

    def call_failed(
        self, target: TargetMetadata, args: Dict[str, Any], error: BaseException
    ) -> None:
        self.error_counter.add(
            1, {**target.to_attributes(), "error_class": type(error).__name__}
        )
        self.emit(
            TelemetryEvent(
                level="error",
                message=f"{_starting_message(target)} failed",
                target_metadata=target,
                payload={
                    "args": [args],
                    "error": describe_error(error, include_stack=True),
                },
            )
        )

    def record_latency(self, target: TargetMetadata, elapsed_ms: float) -> None:
        self.latency.record(elapsed_ms, target.to_attributes())

    def start_span(self, name: str, parent_span: Optional[Span]) -> Optional[Span]:
        if parent_span is None:
            return None
        return self._tracer.start_span(
            name,
            context=trace.set_span_in_context(parent_span),
            kind=SpanKind.CLIENT,
        )

    def finish_span(self, span: Optional[Span], error: bool = False) -> None:
        if span is None:
            return
        if error:
            span.set_attribute("error", True)
            span.set_status(Status(StatusCode.ERROR))
        else:
            span.set_status(Status(StatusCode.OK))
        span.end()


def _starting_message(target: TargetMetadata) -> str:
    if target.target_export == "KMS":
        return "decrypting ciphertext via KMS"
    return "getting object from S3"


class StderrTelemetrySink:
    """
    Telemetry listener writing one JSON document per event.

    Writes to standard error unless another stream is given.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._logger = structlog.wrap_logger(
            structlog.PrintLogger(file=stream or sys.stderr),
            processors=[
                structlog.processors.EventRenamer("message"),
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
            wrapper_class=structlog.BoundLogger,
        )

    def __call__(self, event: TelemetryEvent) -> None:
        fields = event.to_dict()
        message = fields.pop("message")
        self._logger.msg(message, **fields)


__all__ = [
    "TargetMetadata",
    "TelemetryEvent",
    "TelemetryListener",
    "S3_GET_OBJECT_TARGET",
    "KMS_DECRYPT_TARGET",
    "ObservabilityHooks",
    "NoopObservabilityHooks",
    "TelemetryHooks",
    "StderrTelemetrySink",
    "redact_ciphertext",
    "describe_error",
]
