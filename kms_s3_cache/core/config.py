"""
KMS S3 Cache Configuration

Typed cache configuration validated once, before any AWS client is created.
Values may come from keyword arguments or KMS_S3_CACHE_* environment variables.
"""

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import boto3
from botocore.credentials import Credentials

from .exceptions import ConfigurationError

_ENV_BOOLEANS = {"true": True, "false": False, "1": True, "0": False}


class CacheConfig(BaseSettings):
    """Cache settings with validation."""

    model_config = SettingsConfigDict(
        env_prefix="KMS_S3_CACHE_",
        case_sensitive=False,
        extra="forbid",
        arbitrary_types_allowed=True,
        frozen=True,
    )

    # Remote targets
    bucket: str = Field(..., min_length=1, description="S3 bucket holding ciphertexts")
    region: str = Field(..., min_length=1, description="AWS region for S3 and KMS")
    endpoint_url: Optional[str] = Field(
        default=None, description="Alternate AWS endpoint (e.g. localstack)"
    )

    # Decryption binding
    encryption_context: Dict[str, str] = Field(
        ..., description="Base KMS encryption context merged with keyId per call"
    )

    # Cache seeding: bytes for a hit, None for a confirmed-absent key
    initial_cache: Optional[Dict[str, Optional[bytes]]] = Field(
        default=None, description="Pre-seeded cache snapshot"
    )

    credentials: Optional[Any] = Field(
        default=None,
        description="botocore Credentials or boto3 Session used to build clients",
    )

    # Behavior flags
    debug_telemetry_to_stderr: bool = Field(
        default=False, description="Mirror telemetry events to stderr as JSON"
    )
    treat_access_denied_as_absent: bool = Field(
        default=True, description="Negative-cache S3 AccessDenied like NoSuchKey"
    )
    coalesce_requests: bool = Field(
        default=False,
        description="Share one in-flight fetch between concurrent lookups of a key",
    )

    @field_validator(
        "debug_telemetry_to_stderr",
        "treat_access_denied_as_absent",
        "coalesce_requests",
        mode="before",
    )
    @classmethod
    def validate_flag(cls, v):
        """Accept real booleans, plus the true/false spellings env vars carry."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip().lower() in _ENV_BOOLEANS:
            return _ENV_BOOLEANS[v.strip().lower()]
        raise ValueError("must be a boolean")

    @field_validator("initial_cache", mode="before")
    @classmethod
    def validate_initial_cache(cls, v):
        """Seed values are stored as-is, so they must already be bytes or None."""
        if v is None:
            return v
        if not isinstance(v, Mapping):
            raise ValueError("must be a mapping of key to bytes or None")
        for key, value in v.items():
            if value is not None and not isinstance(value, (bytes, bytearray)):
                raise ValueError(
                    f"value for {key!r} must be bytes or None, "
                    f"got {type(value).__name__}"
                )
        return v

    @field_validator("credentials")
    @classmethod
    def validate_credentials(cls, v):
        """Accept only objects boto3 can build clients from."""
        if v is None or isinstance(v, (Credentials, boto3.session.Session)):
            return v
        raise ValueError(
            "credentials must be a botocore Credentials or boto3 Session instance"
        )

    @field_validator("bucket", "region")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


def load_config(
    config: Union[CacheConfig, Mapping[str, Any], None] = None, **overrides: Any
) -> CacheConfig:
    """
    Validate raw configuration into a CacheConfig.

    Args:
        config: Existing CacheConfig, or a mapping of option names to values
        **overrides: Options applied on top of ``config``

    Returns:
        Validated CacheConfig

    Raises:
        ConfigurationError: When options are missing or mistyped
    """
    if isinstance(config, CacheConfig) and not overrides:
        return config

    if isinstance(config, CacheConfig):
        options = config.model_dump()
    elif config is None:
        options = {}
    elif isinstance(config, Mapping):
        options = dict(config)
    else:
        raise ConfigurationError(
            f"Configuration must be a mapping or CacheConfig, got {type(config).__name__}"
        )
    options.update(overrides)

    try:
        return CacheConfig(**options)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        fields = ", ".join(sorted({err["field"] for err in errors}))
        raise ConfigurationError(
            f"Invalid cache configuration: {fields}",
            errors=errors,
            original_error=e,
        ) from e
