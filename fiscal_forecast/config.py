"""Engine configuration management using Pydantic Settings."""

import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    Every setting has a default, so the engines run without any environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Forecast validation and risk thresholds
    horizon_warning_months: int = Field(
        default=120, ge=1, alias="FORECAST_HORIZON_WARNING_MONTHS"
    )
    high_inflation_threshold: float = Field(
        default=0.15, alias="FORECAST_HIGH_INFLATION_THRESHOLD"
    )
    balance_decline_threshold: float = Field(
        default=0.20, ge=0, le=1, alias="FORECAST_DECLINE_THRESHOLD"
    )
    high_risk_below_minimum_periods: int = Field(
        default=3, ge=0, alias="FORECAST_HIGH_RISK_BELOW_MINIMUM_PERIODS"
    )

    # True interest cost solver
    tic_initial_guess: float = Field(default=0.05, alias="TIC_INITIAL_GUESS")
    tic_tolerance: float = Field(default=1e-7, gt=0, alias="TIC_TOLERANCE")
    tic_max_iterations: int = Field(default=100, ge=1, alias="TIC_MAX_ITERATIONS")

    # Debt analysis thresholds
    npv_savings_threshold_percent: float = Field(
        default=3.0, alias="NPV_SAVINGS_THRESHOLD_PERCENT"
    )
    required_coverage_ratio: float = Field(
        default=1.25, ge=0, alias="REQUIRED_COVERAGE_RATIO"
    )
    debt_projection_years: int = Field(default=10, ge=1, alias="DEBT_PROJECTION_YEARS")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Get engine settings instance."""
    if env_file is not None:
        return Settings(_env_file=env_file)
    return Settings()


# Global settings instance - created lazily on first use
_settings: Optional[Settings] = None


def get_global_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def reset_global_settings() -> None:
    """Reset global settings instance (useful for testing)."""
    global _settings
    _settings = None


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Apply the configured log level to the package logger.

    Args:
        settings: Settings to read the level from (defaults to global settings)

    Returns:
        The ``fiscal_forecast`` package logger
    """
    settings = settings or get_global_settings()
    package_logger = logging.getLogger("fiscal_forecast")
    package_logger.setLevel(settings.log_level)
    return package_logger
