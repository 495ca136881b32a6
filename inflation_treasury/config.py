"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
Protocol constants (PRECISION, cooldowns, ceilings) live in accrual.py.
"""

import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TreasuryConfig(BaseSettings):
    """Inflation treasury configuration"""

    # Storage configuration
    storage_backend: Literal["memory", "sqlite"] = "memory"
    database_url: str = "sqlite:///treasury.db"

    # Oracle configuration
    oracle_operator: str = Field(default="oracle-operator", min_length=1)
    initial_inflation_rate_bps: int = Field(default=0, ge=0, le=2000)

    # Business rules configuration
    base_interest_rate_bps: int = Field(
        default=300,
        ge=0,
        description="Seed compound rate for new accounts (3%)"
    )
    persist_query_resync: bool = False  # Write back the resync computed by get_account

    # Logging configuration
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Optional[str] = None  # If None, logs to stdout

    # Feature flags
    enable_audit_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="TREASURY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize to an upper-case standard logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def sqlite_path(self) -> str:
        """Filesystem path encoded in database_url"""
        prefix = "sqlite:///"
        if self.database_url.startswith(prefix):
            return self.database_url[len(prefix):] or ":memory:"
        return self.database_url


# Global configuration instance
config = TreasuryConfig()


def get_config() -> TreasuryConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> TreasuryConfig:
    """Reload configuration from environment"""
    global config
    config = TreasuryConfig()
    return config
