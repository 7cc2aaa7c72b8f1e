"""Application settings and configuration management."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # App basics
    app_name: str = "TxGuard Security Insights"
    debug: bool = False
    version: str = "1.0.0"
    environment: str = "development"  # development, staging, production

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    logs_dir: Path = Field(default_factory=lambda: Path("data/logs"))

    # Risk data provider
    risk_api_base_url: str = "https://api.hashdit.io/security-api/public/app/v1/detect"
    risk_api_app_id: Optional[str] = None
    risk_api_key: Optional[str] = None
    risk_api_timeout_seconds: float = 10.0
    risk_api_max_attempts: int = 3

    # RPC URLs for supported chains
    ethereum_rpc_url: Optional[str] = "https://eth.llamarpc.com"
    bsc_rpc_url: Optional[str] = "https://bsc-dataseed1.binance.org"

    def get_rpc_url(self, chain_id: Optional[str]) -> Optional[str]:
        """
        Get the RPC URL for a chain identifier.

        Args:
            chain_id: Hex chain identifier ("0x1", "0x38")

        Returns:
            RPC URL, or None when the chain has no configured endpoint
        """
        url_mapping: Dict[str, Optional[str]] = {
            "0x1": self.ethereum_rpc_url,
            "0x38": self.bsc_rpc_url,
        }
        if not isinstance(chain_id, str):
            return None
        return url_mapping.get(chain_id.strip().lower())

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is a valid value."""
        if v not in ["development", "staging", "production"]:
            raise ValueError("Environment must be one of: development, staging, production")
        return v

    @field_validator("risk_api_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Provider timeout must be positive."""
        if v <= 0:
            raise ValueError("risk_api_timeout_seconds must be positive")
        return v

    @field_validator("risk_api_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """At least one attempt is always made."""
        if v < 1:
            raise ValueError("risk_api_max_attempts must be at least 1")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "TXGUARD_",
        "case_sensitive": False,
        "validate_assignment": True,
        "str_strip_whitespace": True,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings: The global settings instance
    """
    return settings


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    Returns:
        Settings: Reloaded settings instance
    """
    global settings
    settings = Settings()
    return settings


__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "reload_settings"
]
