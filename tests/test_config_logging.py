"""
Tests for settings and logging configuration.
"""
from decimal import Decimal

import structlog

from tb_engine.config import Settings, get_settings
from tb_engine.logging_config import (
    add_run_id_processor,
    configure_logging,
    get_run_id,
    new_run_id,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Test default tolerances and thresholds."""
        settings = Settings()
        assert settings.balance_tolerance == Decimal("0.01")
        assert settings.auto_map_threshold == 0.8
        assert settings.rules_path is None

    def test_environment_override(self, monkeypatch):
        """Test TB_ENGINE_ variables override defaults."""
        monkeypatch.setenv("TB_ENGINE_BALANCE_TOLERANCE", "0.5")
        monkeypatch.setenv("TB_ENGINE_ANOMALY_MIN_BALANCES", "4")
        settings = get_settings()
        assert settings.balance_tolerance == Decimal("0.5")
        assert settings.anomaly_min_balances == 4

    def test_cached(self):
        """Test settings are cached."""
        assert get_settings() is get_settings()


class TestLogging:
    """Tests for structlog configuration."""

    def test_run_id_processor(self):
        """Test the run id is attached once set."""
        value = new_run_id()
        assert get_run_id() == value
        assert add_run_id_processor(None, "info", {"event": "x"}) == {"event": "x", "run_id": value}

    def test_configure_logging(self):
        """Test configuration installs the run id processor."""
        configure_logging(level="debug", json_logs=True)
        processors = structlog.get_config()["processors"]
        assert add_run_id_processor in processors
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        structlog.reset_defaults()
