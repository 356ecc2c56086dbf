"""
Unit tests for cache domain value objects and the in-memory cache store.
"""

import threading
from types import MappingProxyType

import pytest

from kms_s3_cache.domain.cache.value_objects import (
    ABSENT,
    Absent,
    EncryptionContext,
    Hit,
    LookupContext,
    PipelineOutcome,
    cache_value_from_seed,
)
from kms_s3_cache.infrastructure.repositories.cache_repository import (
    InMemoryCacheRepository,
)


class TestHit:
    """Test Hit value object."""

    def test_hit_holds_bytes(self):
        hit = Hit(b"secret")
        assert hit.value == b"secret"
        assert hit == Hit(b"secret")

    def test_hit_normalizes_bytearray(self):
        hit = Hit(bytearray(b"secret"))
        assert isinstance(hit.value, bytes)

    def test_hit_rejects_str(self):
        with pytest.raises(TypeError, match="Hit value must be bytes"):
            Hit("secret")

    def test_repr_hides_plaintext(self):
        assert "secret" not in repr(Hit(b"secret"))
        assert repr(Hit(b"secret")) == "Hit(<6 bytes>)"


class TestAbsent:
    """Test Absent marker."""

    def test_singleton(self):
        assert Absent() is ABSENT

    def test_falsy_and_distinct_from_hit(self):
        assert not ABSENT
        assert ABSENT != Hit(b"")


class TestCacheValueFromSeed:
    """Test conversion of pre-seeded snapshot entries."""

    def test_bytes_becomes_hit(self):
        assert cache_value_from_seed(b"v1") == Hit(b"v1")

    def test_none_becomes_absent(self):
        assert cache_value_from_seed(None) is ABSENT

    def test_cache_values_pass_through(self):
        hit = Hit(b"v1")
        assert cache_value_from_seed(hit) is hit
        assert cache_value_from_seed(ABSENT) is ABSENT


class TestEncryptionContext:
    """Test EncryptionContext value object."""

    def test_bind_key_adds_key_id(self):
        context = EncryptionContext({"app": "x"})
        assert context.bind_key("k1") == {"app": "x", "keyId": "k1"}

    def test_bind_key_does_not_mutate_base(self):
        context = EncryptionContext({"app": "x"})
        bound = context.bind_key("k1")
        bound["extra"] = "y"
        assert dict(context.attributes) == {"app": "x"}

    def test_key_overrides_base_key_id(self):
        context = EncryptionContext({"keyId": "base"})
        assert context.bind_key("k1") == {"keyId": "k1"}

    def test_attributes_are_read_only(self):
        source = {"app": "x"}
        context = EncryptionContext(source)
        source["app"] = "changed"

        assert isinstance(context.attributes, MappingProxyType)
        assert context.attributes["app"] == "x"
        with pytest.raises(TypeError):
            context.attributes["app"] = "y"

    def test_rejects_non_string_values(self):
        with pytest.raises(TypeError, match="must map str to str"):
            EncryptionContext({"app": 1})


class TestPipelineOutcome:
    """Test PipelineOutcome value object."""

    def test_hit_outcome(self):
        outcome = PipelineOutcome.hit(b"v")
        assert outcome.ok
        assert outcome.found
        assert outcome.value == b"v"

    def test_absent_outcome(self):
        outcome = PipelineOutcome.absent()
        assert outcome.ok
        assert not outcome.found
        assert outcome.value is None

    def test_failed_outcome(self):
        error = RuntimeError("boom")
        outcome = PipelineOutcome.failed(error)
        assert not outcome.ok
        assert outcome.error is error
        assert outcome.value is None

    def test_error_with_value_rejected(self):
        with pytest.raises(ValueError, match="cannot carry a value"):
            PipelineOutcome(error=RuntimeError("boom"), value=b"v")

    def test_unpacks_as_error_value(self):
        error, value = PipelineOutcome.hit(b"v")
        assert error is None
        assert value == b"v"

    def test_from_cache_value(self):
        assert PipelineOutcome.from_cache_value(Hit(b"v")) == PipelineOutcome.hit(b"v")
        assert PipelineOutcome.from_cache_value(ABSENT) == PipelineOutcome.absent()


class TestLookupContext:
    """Test LookupContext defaults."""

    def test_default_has_no_parent_span(self):
        assert LookupContext().parent_span is None


class TestInMemoryCacheRepository:
    """Test in-memory cache store."""

    def test_empty_lookup_returns_none(self):
        store = InMemoryCacheRepository()
        assert store.lookup("missing") is None
        assert len(store) == 0

    def test_pre_seeded_entries(self):
        store = InMemoryCacheRepository({"k1": b"v1", "k2": None})

        assert store.lookup("k1") == Hit(b"v1")
        assert store.lookup("k2") is ABSENT
        assert "k1" in store
        assert len(store) == 2

    def test_record_inserts_and_overwrites(self):
        store = InMemoryCacheRepository()
        store.record("k", ABSENT)
        assert store.lookup("k") is ABSENT

        store.record("k", Hit(b"v"))
        assert store.lookup("k") == Hit(b"v")

    def test_record_is_idempotent(self):
        store = InMemoryCacheRepository()
        store.record("k", Hit(b"v"))
        store.record("k", Hit(b"v"))

        assert store.snapshot() == {"k": Hit(b"v")}

    def test_snapshot_is_a_copy(self):
        store = InMemoryCacheRepository({"k": b"v"})
        snapshot = store.snapshot()
        snapshot["other"] = ABSENT

        assert "other" not in store

    def test_concurrent_records(self):
        store = InMemoryCacheRepository()

        def writer(offset):
            for i in range(200):
                store.record(f"key-{offset}-{i}", Hit(b"v"))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 800
