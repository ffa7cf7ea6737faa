"""Tests for core/config.py - store configuration with validation."""

import pytest
from pydantic import ValidationError

from core.config import BackendKind, StoreConfig, load_store_config


class TestStoreConfigDefaults:
    """StoreConfig has sensible defaults."""

    def test_backend_default(self):
        assert StoreConfig().backend == BackendKind.MEMORY

    def test_ttl_defaults(self):
        config = StoreConfig()
        assert config.default_ttl_seconds == 600  # 10 minutes
        assert config.max_ttl_seconds == 86400  # 24 hours

    def test_urls_unset(self):
        config = StoreConfig()
        assert config.valkey_url is None
        assert config.database_url is None
        assert config.public_base_url is None


class TestStoreConfigValidation:
    """StoreConfig enforces validation bounds."""

    def test_default_ttl_min_bound(self):
        with pytest.raises(ValidationError):
            StoreConfig(default_ttl_seconds=59)

    def test_max_ttl_max_bound(self):
        with pytest.raises(ValidationError):
            StoreConfig(max_ttl_seconds=7 * 86400 + 1)

    def test_deleted_grace_bounds(self):
        with pytest.raises(ValidationError):
            StoreConfig(deleted_grace_seconds=0)
        with pytest.raises(ValidationError):
            StoreConfig(deleted_grace_seconds=3601)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            StoreConfig(backend="sqlite")


class TestSweepInterval:

    def test_memory(self):
        assert StoreConfig(backend="memory", memory_sweep_interval_seconds=7).sweep_interval_seconds() == 7

    def test_postgres(self):
        assert StoreConfig(backend="postgres").sweep_interval_seconds() == 300

    def test_valkey_expires_natively(self):
        assert StoreConfig(backend="valkey").sweep_interval_seconds() == 0


class TestLoadStoreConfig:
    """Environment overrides."""

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("PINGNOTE_BACKEND", "valkey")
        monkeypatch.setenv("PINGNOTE_MAX_TTL_SECONDS", "3600")
        monkeypatch.setenv("PINGNOTE_VALKEY_URL", "redis://cache:6379/0")

        config = load_store_config()

        assert config.backend == BackendKind.VALKEY
        assert config.max_ttl_seconds == 3600
        assert config.valkey_url == "redis://cache:6379/0"

    def test_unset_variables_keep_defaults(self, monkeypatch):
        for name in StoreConfig.model_fields:
            monkeypatch.delenv(f"PINGNOTE_{name.upper()}", raising=False)

        assert load_store_config() == StoreConfig()

    def test_out_of_range_value_raises(self, monkeypatch):
        monkeypatch.setenv("PINGNOTE_DEFAULT_TTL_SECONDS", "5")
        with pytest.raises(ValidationError):
            load_store_config()
