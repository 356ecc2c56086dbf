"""
Cache Value Objects

Immutable value objects for the retrieval pipeline.
Separates "not yet cached" (no entry) from "cached as absent" (ABSENT).
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ...constants import KEY_ID_CONTEXT_ATTRIBUTE


@dataclass(frozen=True)
class Hit:
    """
    Resolved cache value holding decrypted plaintext.
    """

    value: bytes

    def __post_init__(self) -> None:
        """Validate plaintext type."""
        if not isinstance(self.value, (bytes, bytearray)):
            raise TypeError("Hit value must be bytes")
        if isinstance(self.value, bytearray):
            object.__setattr__(self, "value", bytes(self.value))

    def __repr__(self) -> str:
        # Plaintext never appears in reprs or logs
        return f"Hit(<{len(self.value)} bytes>)"


class Absent:
    """
    Resolved cache value confirming no usable value exists for a key.

    Use the module-level ``ABSENT`` singleton.
    """

    _instance: Optional["Absent"] = None

    def __new__(cls) -> "Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = Absent()

CacheValue = Union[Hit, Absent]


def cache_value_from_seed(value: Any) -> CacheValue:
    """
    Convert a pre-seeded snapshot entry into a CacheValue.

    Args:
        value: bytes for a hit, None for absent, or an existing CacheValue

    Returns:
        CacheValue for the entry
    """
    if isinstance(value, (Hit, Absent)):
        return value
    if value is None:
        return ABSENT
    return Hit(value)


@dataclass(frozen=True)
class EncryptionContext:
    """
    Immutable KMS encryption context.

    The base attributes are supplied once at construction; each decrypt call
    binds the lookup key under ``keyId`` on top of them.
    """

    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze and validate attributes."""
        for name, value in self.attributes.items():
            if not isinstance(name, str) or not isinstance(value, str):
                raise TypeError("Encryption context must map str to str")
        object.__setattr__(
            self, "attributes", MappingProxyType(dict(self.attributes))
        )

    def bind_key(self, key: str) -> Dict[str, str]:
        """Return a fresh context dict with the lookup key bound."""
        context = dict(self.attributes)
        context[KEY_ID_CONTEXT_ATTRIBUTE] = key
        return context


@dataclass(frozen=True)
class LookupContext:
    """Per-call context; ``parent_span`` enables child spans for remote calls."""

    parent_span: Optional[Any] = None


@dataclass(frozen=True)
class PipelineOutcome:
    """
    Result of a single lookup.

    Exactly one of: ``error`` set (value None), confirmed absent (both None),
    or hit (value set). Unpacks as ``error, value = outcome``.
    """

    error: Optional[Exception] = None
    value: Optional[bytes] = None

    def __post_init__(self) -> None:
        """Enforce that an error outcome carries no value."""
        if self.error is not None and self.value is not None:
            raise ValueError("An error outcome cannot carry a value")

    @classmethod
    def failed(cls, error: Exception) -> "PipelineOutcome":
        return cls(error=error)

    @classmethod
    def absent(cls) -> "PipelineOutcome":
        return cls()

    @classmethod
    def hit(cls, value: bytes) -> "PipelineOutcome":
        return cls(value=value)

    @classmethod
    def from_cache_value(cls, cached: CacheValue) -> "PipelineOutcome":
        """Build the outcome served for an existing cache entry."""
        if isinstance(cached, Hit):
            return cls.hit(cached.value)
        return cls.absent()

    @property
    def ok(self) -> bool:
        """True when no error occurred."""
        return self.error is None

    @property
    def found(self) -> bool:
        """True when a plaintext value was resolved."""
        return self.value is not None

    def __iter__(self) -> Iterator[Any]:
        yield self.error
        yield self.value
