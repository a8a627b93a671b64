"""Tests for engine configuration management."""

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from fiscal_forecast.config import (
    Settings,
    configure_logging,
    get_global_settings,
    get_settings,
    reset_global_settings,
)


class TestSettings:
    """Test cases for Settings class."""

    def test_defaults_without_environment(self, settings):
        """Test that every setting has a usable default."""
        assert settings.log_level == "INFO"
        assert settings.horizon_warning_months == 120
        assert settings.high_inflation_threshold == 0.15
        assert settings.balance_decline_threshold == 0.20
        assert settings.high_risk_below_minimum_periods == 3
        assert settings.tic_initial_guess == 0.05
        assert settings.tic_tolerance == 1e-7
        assert settings.tic_max_iterations == 100
        assert settings.npv_savings_threshold_percent == 3.0
        assert settings.required_coverage_ratio == 1.25
        assert settings.debt_projection_years == 10

    def test_settings_load_from_environment(self):
        """Test that environment variables override defaults."""
        env = {
            "LOG_LEVEL": "debug",
            "TIC_MAX_ITERATIONS": "25",
            "NPV_SAVINGS_THRESHOLD_PERCENT": "4.5",
            "FORECAST_HORIZON_WARNING_MONTHS": "240",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.tic_max_iterations == 25
        assert settings.npv_savings_threshold_percent == 4.5
        assert settings.horizon_warning_months == 240

    def test_settings_load_from_env_file(self, tmp_path):
        """Test loading settings from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("REQUIRED_COVERAGE_RATIO=1.5\nDEBT_PROJECTION_YEARS=20\n")

        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings(str(env_file))

        assert settings.required_coverage_ratio == 1.5
        assert settings.debt_projection_years == 20

    def test_log_level_validation(self):
        """Test LOG_LEVEL validation."""
        with patch.dict(os.environ, {"LOG_LEVEL": "CHATTY"}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

        assert "LOG_LEVEL must be one of" in str(exc_info.value)

    def test_tolerance_must_be_positive(self):
        """Test that a zero TIC tolerance is rejected."""
        with patch.dict(os.environ, {"TIC_TOLERANCE": "0"}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestGlobalSettings:
    """Test cases for the lazily created global settings."""

    def test_global_settings_are_cached(self):
        """Test that the same instance is returned until reset."""
        with patch.dict(os.environ, {}, clear=True):
            first = get_global_settings()
            assert get_global_settings() is first

            reset_global_settings()
            assert get_global_settings() is not first

    def test_configure_logging_sets_package_level(self):
        """Test that the package logger follows LOG_LEVEL."""
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True):
            logger = configure_logging(Settings(_env_file=None))

        assert logger.name == "fiscal_forecast"
        assert logger.level == logging.WARNING
