"""
Configuration management for mentortrust

Loads settings from:
1. config/config.yaml (optional overlay)
2. Environment variables (MENTORTRUST_*, .env)
3. Default values
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load environment variables
load_dotenv()


class MentorTrustSettings(BaseSettings):
    """Central configuration for the verification service."""

    model_config = SettingsConfigDict(
        env_prefix="MENTORTRUST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- API Settings ---
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_key: str = Field(default="")
    demo_mode: bool = False
    cors_origins: str = "http://localhost:3000"  # Comma-separated string
    user_header: str = "X-User-ID"

    # --- GitHub (source-hosting verifier) ---
    github_api_url: str = "https://api.github.com"
    github_token: str = Field(default="")
    github_timeout: float = 10.0
    github_max_retries: int = 3
    github_retry_delay: float = 0.5

    # Minimum requirements for a GitHub profile; 0 disables a requirement
    min_account_age_days: int = 0
    min_repositories: int = 0
    min_contributions: int = 0
    min_followers: int = 0

    challenge_ttl_seconds: int = 30 * 60

    # --- Trust scoring ---
    weights_version: str = "2026-10"
    weight_source: float = 0.5
    weight_documents: float = 0.3
    weight_identity: float = 0.2
    verified_threshold: float = 70.0

    # --- Orchestration ---
    max_conflict_retries: int = 3

    # --- Storage ---
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: str = "mentortrust.db"

    # --- Documents ---
    max_documents: int = 10
    max_document_bytes: int = 10 * 1024 * 1024

    # --- Logging ---
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @classmethod
    def from_yaml(cls, yaml_path: str | Path = "config/config.yaml") -> "MentorTrustSettings":
        """Load configuration from a YAML file, falling back to env/defaults."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            return cls()

        with open(yaml_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)


# Global configuration instance
_config: Optional[MentorTrustSettings] = None


def get_config() -> MentorTrustSettings:
    """Get or create global configuration instance"""
    global _config
    if _config is None:
        _config = MentorTrustSettings.from_yaml()
    return _config


def reload_config(yaml_path: Optional[str | Path] = None) -> MentorTrustSettings:
    """Reload configuration from file"""
    global _config
    _config = MentorTrustSettings.from_yaml(yaml_path) if yaml_path else MentorTrustSettings.from_yaml()
    return _config
