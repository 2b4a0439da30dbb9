"""Configuration management for the storage backup service."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FILE_EXTENSIONS = ".mp3,.wav,.m4a,.aac,.ogg,.flac"


class BackupSettings(BaseSettings):
    """Backup configuration loaded from environment variables (and .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Source: Supabase Storage
    supabase_url: str = Field(description="Supabase project URL")
    supabase_anon_key: Optional[str] = Field(default=None, description="Anon API key")
    supabase_service_key: Optional[str] = Field(
        default=None, description="Service role key, preferred for full access"
    )
    supabase_bucket_name: str = Field(default="audio", description="Source bucket")
    supabase_audio_path: str = Field(
        default="", description="Path inside the bucket to start enumeration from"
    )

    # Destination: S3
    s3_bucket_name: str = Field(description="Destination bucket")
    s3_access_key_id: str = Field(description="S3 access key id")
    s3_secret_access_key: str = Field(description="S3 secret access key")
    s3_region: str = Field(default="us-east-1", description="S3 region")
    s3_prefix: str = Field(
        default="supabase-backups/audio", description="Key prefix for copied objects"
    )

    # Run parameters
    backup_cron: str = Field(
        default="0 2 * * *",
        description="Cron-like schedule: 'minute hour day-of-month month day-of-week'",
    )
    temp_dir: str = Field(
        default="/tmp/supabase-audio-backups", description="Staging directory"
    )
    file_extensions: str = Field(
        default=DEFAULT_FILE_EXTENSIONS,
        description="Comma separated list of extensions to back up (empty = all)",
    )
    batch_size: int = Field(default=5, ge=1, description="Files copied in parallel")
    slack_webhook_url: Optional[str] = Field(
        default=None, description="Slack incoming webhook for run summaries"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: str = Field(
        default="log/storage_backup.log", description="Path to log file"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator("supabase_url", "s3_bucket_name", "s3_access_key_id", "s3_secret_access_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("supabase_audio_path")
    @classmethod
    def validate_audio_path(cls, v: str) -> str:
        """Normalize the source path to have no leading/trailing slashes."""
        return v.strip().strip("/")

    @model_validator(mode="after")
    def validate_supabase_key(self) -> BackupSettings:
        """Require at least one Supabase key."""
        if not self.supabase_anon_key and not self.supabase_service_key:
            raise ValueError(
                "Supabase configuration incomplete. Please set SUPABASE_URL and "
                "either SUPABASE_ANON_KEY or SUPABASE_SERVICE_KEY"
            )
        return self

    @property
    def supabase_key(self) -> str:
        """The key used to connect, service role key first."""
        return self.supabase_service_key or self.supabase_anon_key

    @property
    def allowed_extensions(self) -> List[str]:
        """File extension allow-list, e.g. ['.mp3', '.wav']."""
        return [ext.strip() for ext in self.file_extensions.split(",") if ext.strip()]


def load_config(config_path: Optional[str] = None) -> BackupSettings:
    """
    Load and validate configuration.

    Settings come from the environment (and a .env file). When ``config_path``
    points to a YAML file, its keys override the environment.
    """
    overrides = {}

    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                overrides = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format in config file: {e}")

        if not isinstance(overrides, dict):
            raise ValueError("Configuration file must contain a mapping")

    try:
        return BackupSettings(**overrides)
    except Exception as e:
        raise ValueError(f"Configuration validation error: {e}")
