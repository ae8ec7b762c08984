"""
Unit tests for application settings.
"""
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from catalog_sync.config.settings import (
    KNOWN_MATCH_STRATEGIES,
    ApplicationSettings,
    DatabaseSettings,
    MonitoringSettings,
    ProviderSettings,
    SyncSettings,
    get_environment_info,
    get_settings,
    validate_settings,
)
from catalog_sync.models.domain import MatchStrategy


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSyncSettings:
    """Test synchronization settings"""

    def test_defaults(self):
        settings = SyncSettings()

        assert settings.chunk_size == 30
        assert settings.flush_every == 10
        assert settings.max_chunk_duration_seconds == 300.0
        assert settings.property_prefix == "prop_"
        assert settings.disabled_match_strategies == []

    def test_environment_prefix(self):
        env = {
            "SYNC_CHUNK_SIZE": "50",
            "SYNC_EXCLUDED_CATEGORY_IDS": '["13", " ", "14 "]',
            "SYNC_DISABLED_MATCH_STRATEGIES": '["display_name"]',
        }
        with patch.dict(os.environ, env):
            settings = SyncSettings()

        assert settings.chunk_size == 50
        assert settings.excluded_category_ids == ["13", "14"]
        assert settings.disabled_match_strategies == ["display_name"]

    def test_every_strategy_can_be_disabled(self):
        settings = SyncSettings(disabled_match_strategies=[s.value for s in MatchStrategy])
        assert set(settings.disabled_match_strategies) == set(KNOWN_MATCH_STRATEGIES)
        assert len(KNOWN_MATCH_STRATEGIES) == 7

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError, match="Unknown match strategies"):
            SyncSettings(disabled_match_strategies=["fuzzy"])

    @pytest.mark.parametrize("field, value", [("chunk_size", 0), ("flush_every", 0), ("max_chunk_duration_seconds", 0)])
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            SyncSettings(**{field: value})


class TestComponentSettings:
    """Test database, provider and monitoring settings"""

    def test_database_url_scheme(self):
        assert DatabaseSettings(database_url="sqlite://").is_sqlite()
        assert not DatabaseSettings(database_url="postgresql://u@h/db").is_sqlite()
        with pytest.raises(ValidationError):
            DatabaseSettings(database_url="mysql://u@h/db")

    def test_database_env_prefix(self):
        with patch.dict(os.environ, {"DB_DATABASE_URL": "sqlite:///other.db"}):
            assert DatabaseSettings().database_url == "sqlite:///other.db"

    def test_provider_base_url(self):
        assert ProviderSettings(provider_base_url="https://api.example.com/").provider_base_url == (
            "https://api.example.com"
        )
        with pytest.raises(ValidationError):
            ProviderSettings(provider_base_url="ftp://api.example.com")

    def test_monitoring_levels(self):
        assert MonitoringSettings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            MonitoringSettings(log_level="LOUD")
        with pytest.raises(ValidationError):
            MonitoringSettings(log_format="xml")


class TestApplicationSettings:
    """Test application-wide validation"""

    def test_debug_disallowed_in_production(self):
        with pytest.raises(ValidationError):
            ApplicationSettings(environment="production", debug_mode=True)

    def test_unknown_environment(self):
        with pytest.raises(ValidationError):
            ApplicationSettings(environment="qa")

    def test_flush_interval_cannot_exceed_chunk(self):
        with patch.dict(os.environ, {"SYNC_CHUNK_SIZE": "5", "SYNC_FLUSH_EVERY": "10"}):
            with pytest.raises(ValueError, match="SYNC_FLUSH_EVERY"):
                validate_settings()

    def test_sqlite_rejected_in_production(self):
        env = {"ENVIRONMENT": "production", "DB_DATABASE_URL": "sqlite:///catalog.db"}
        with patch.dict(os.environ, env):
            with pytest.raises(ValueError, match="SQLite"):
                validate_settings()

    def test_environment_info(self):
        with patch.dict(os.environ, {"PROVIDER_PROVIDER_BASE_URL": "https://api.example.com"}):
            info = get_environment_info()

        assert info["app_name"] == "Catalog Sync"
        assert info["provider_configured"] is True
        assert info["sync"]["chunk_size"] == 30
