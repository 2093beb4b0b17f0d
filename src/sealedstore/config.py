"""Configuration management for SealedStore.

Supports layered configuration with priority: CLI args > ENV vars > .env file > defaults
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

APP_NAME = "SealedStore"


class StorageType(str, Enum):
    """Supported storage backends."""

    FILE = "file"
    SQL = "sql"
    MONGODB = "mongodb"
    S3 = "s3"

    @classmethod
    def parse(cls, value: str | StorageType) -> StorageType:
        """Parse a backend tag, accepting common aliases.

        Raises:
            ValueError: If the tag names no supported backend
        """
        if isinstance(value, StorageType):
            return value
        tag = value.strip().lower()
        try:
            return _STORAGE_ALIASES[tag]
        except KeyError:
            supported = ", ".join(t.value for t in cls)
            raise ValueError(f"Unsupported storage type: {value} (supported: {supported})") from None


_STORAGE_ALIASES: dict[str, StorageType] = {
    "": StorageType.FILE,
    "file": StorageType.FILE,
    "sql": StorageType.SQL,
    "postgres": StorageType.SQL,
    "postgresql": StorageType.SQL,
    "pg": StorageType.SQL,
    "sqlite": StorageType.SQL,
    "mongodb": StorageType.MONGODB,
    "mongo": StorageType.MONGODB,
    "document": StorageType.MONGODB,
    "s3": StorageType.S3,
    "object": StorageType.S3,
}


def _get_default_data_dir() -> Path:
    """Get platform-appropriate default data directory using platformdirs.

    Uses OS-specific conventions:
    - macOS: ~/Library/Application Support/SealedStore
    - Windows: %APPDATA%/SealedStore
    - Linux: ~/.local/share/sealedstore

    Returns:
        Path to platform-specific user data directory
    """
    return Path(platformdirs.user_data_dir(APP_NAME, APP_NAME))


def get_user_log_dir() -> Path:
    """Get platform-appropriate user logs directory."""
    return Path(platformdirs.user_log_dir(APP_NAME, APP_NAME))


class Settings(BaseSettings):
    """Application settings with layered configuration support.

    Configuration is loaded in the following priority (highest to lowest):
    1. CLI arguments (passed directly to Settings())
    2. Environment variables (prefixed with SEALEDSTORE_)
    3. .env file (if present in current directory)
    4. Default values

    Environment variables:
        SEALEDSTORE_STORAGE_TYPE: file, sql, mongodb or s3 (default: file)
        SEALEDSTORE_DATA_DIR: Base directory for the file backend
        SEALEDSTORE_DATA_FILE: Resource key of the application's blob
        SEALEDSTORE_SQL_DSN / SEALEDSTORE_SQL_TABLE: SQL target
        SEALEDSTORE_MONGO_URI / _MONGO_DATABASE / _MONGO_COLLECTION: MongoDB target
        SEALEDSTORE_S3_BUCKET / SEALEDSTORE_S3_REGION: S3 target
        SEALEDSTORE_KEY_PATH: Key file location override
        SEALEDSTORE_ENCRYPTION_KEY: 64 hex characters, used instead of the key file
        SEALEDSTORE_ENCRYPTION_ENABLED: Set to false to store plaintext
        SEALEDSTORE_LOG_LEVEL: Logging level (default: INFO)
    """

    model_config = SettingsConfigDict(
        env_prefix="SEALEDSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Backend selection
    storage_type: StorageType = Field(
        default=StorageType.FILE,
        description="Storage backend (file, sql, mongodb, s3)",
    )
    data_file: str = Field(
        default="todos.json",
        min_length=1,
        description="Resource key of the blob the application stores",
    )

    # File backend
    data_dir: Path = Field(
        default_factory=_get_default_data_dir,
        description="Directory holding one file per key",
    )

    # SQL backend
    sql_dsn: str = Field(
        default="",
        description="SQL connection string (sqlite:///path or postgresql://...)",
    )
    sql_table: str = Field(
        default="todo_data",
        description="Table holding (key, data) rows",
    )

    # MongoDB backend
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    mongo_database: str = Field(default="todo", description="MongoDB database name")
    mongo_collection: str = Field(default="data", description="MongoDB collection name")

    # S3 backend
    s3_bucket: str = Field(default="", description="S3 bucket name")
    s3_region: str = Field(default="us-east-1", description="S3 region")

    # Encryption
    encryption_enabled: bool = Field(
        default=True,
        description="Encrypt blobs at rest with AES-256-GCM",
    )
    key_path: Path | None = Field(
        default=None,
        description="Key file location (default: per-user config directory)",
    )
    encryption_key: SecretStr | None = Field(
        default=None,
        description="Hex encryption key; takes precedence over the key file",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    debug: bool = Field(default=False, description="Enable debug logging")
    log_to_file: bool = Field(
        default=False,
        description="Enable logging to file (in addition to console)",
    )
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024 * 1024,
        le=100 * 1024 * 1024,
        description="Maximum size of each log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of backup log files to keep",
    )

    @field_validator("storage_type", mode="before")
    @classmethod
    def parse_storage_type(cls, v: Any) -> StorageType:
        """Accept backend aliases such as 'postgres' or 'mongo'."""
        if v is None:
            return StorageType.FILE
        return StorageType.parse(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator("key_path", mode="before")
    @classmethod
    def empty_key_path_is_default(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("encryption_key", mode="before")
    @classmethod
    def empty_encryption_key_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def log_file_path(self) -> Path:
        """Path to the main log file."""
        return get_user_log_dir() / "sealedstore.log"

    def validate_storage(self) -> list[str]:
        """Check the parameters the selected backend requires.

        Returns:
            List of error messages (empty if the configuration is usable)
        """
        errors: list[str] = []
        if self.storage_type is StorageType.SQL:
            if not self.sql_dsn:
                errors.append("SEALEDSTORE_SQL_DSN is required for SQL storage")
            from sealedstore.storage.errors import StorageConfigError
            from sealedstore.storage.sql import validate_table_name

            try:
                validate_table_name(self.sql_table)
            except StorageConfigError as e:
                errors.append(str(e))
        elif self.storage_type is StorageType.MONGODB:
            if not self.mongo_uri:
                errors.append("SEALEDSTORE_MONGO_URI is required for MongoDB storage")
            if not self.mongo_database:
                errors.append("SEALEDSTORE_MONGO_DATABASE must not be empty")
            if not self.mongo_collection:
                errors.append("SEALEDSTORE_MONGO_COLLECTION must not be empty")
        elif self.storage_type is StorageType.S3:
            if not self.s3_bucket:
                errors.append("SEALEDSTORE_S3_BUCKET is required for S3 storage")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload settings,
    call reset_settings() first.

    Returns:
        Settings instance
    """
    return Settings()


def reset_settings() -> None:
    """Clear settings cache to force reload on next get_settings() call."""
    get_settings.cache_clear()
