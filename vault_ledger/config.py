"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class VaultConfig(BaseSettings):
    """Vault ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Ledger limits (immutable once the ledger is built)
    withdraw_limit: int = 1000
    bank_cap: int = 1_000_000

    # Payout service; empty URL means payouts stay in memory
    payout_url: str = ""
    payout_timeout: float = 2.0
    payout_api_key: str = ""

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8091

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Feature flags
    enable_audit_logging: bool = True


# Global configuration instance
config = VaultConfig()


def get_config() -> VaultConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> VaultConfig:
    """Reload configuration from environment"""
    global config
    config = VaultConfig()
    return config
