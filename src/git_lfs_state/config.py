"""Configuration management for the git LFS state engine."""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .core.constants import (
    DEFAULT_HISTORY_MAX_COUNT,
    DEFAULT_LOCKABLE_PATTERNS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_REBUILD_SIGNAL_PATHS,
    DEFAULT_REMOTE_WATCH_PATHS,
    LOCK_CACHE_TTL_SECONDS,
    MAX_FILES_PER_BATCH,
    OUTSIDE_REPOSITORY_ERROR,
)


REMOTE_DIFF_FILTER_MODES = ("auto", "always", "never")


class GitSettings(BaseSettings):
    """Git and Git LFS settings."""

    # Binaries and repository
    binary_path: str = Field(default="git", alias="GIT_BINARY_PATH")
    lfs_binary_path: Optional[str] = Field(default=None, alias="GIT_LFS_BINARY_PATH")
    repository_root: str = Field(default="", alias="GIT_REPOSITORY_ROOT")

    # Locking workflow
    using_lfs_locking: bool = Field(default=True, alias="GIT_USING_LFS_LOCKING")
    lock_user: str = Field(default="", alias="GIT_LFS_USER")
    lock_cache_ttl_seconds: int = Field(default=LOCK_CACHE_TTL_SECONDS, alias="GIT_LOCK_CACHE_TTL_SECONDS", ge=0)
    lockable_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LOCKABLE_PATTERNS), alias="GIT_LOCKABLE_PATTERNS"
    )

    # Remote divergence
    status_branches: List[str] = Field(default_factory=list, alias="GIT_STATUS_BRANCHES")
    remote_watch_paths: List[str] = Field(
        default_factory=lambda: list(DEFAULT_REMOTE_WATCH_PATHS), alias="GIT_REMOTE_WATCH_PATHS"
    )
    rebuild_signal_paths: List[str] = Field(
        default_factory=lambda: list(DEFAULT_REBUILD_SIGNAL_PATHS), alias="GIT_REBUILD_SIGNAL_PATHS"
    )
    remote_diff_filter: str = Field(default="auto", alias="GIT_REMOTE_DIFF_FILTER")

    # Command limits
    max_files_per_batch: int = Field(default=MAX_FILES_PER_BATCH, alias="GIT_MAX_FILES_PER_BATCH", gt=0)
    history_max_count: int = Field(default=DEFAULT_HISTORY_MAX_COUNT, alias="GIT_HISTORY_MAX_COUNT", gt=0)

    # Error reclassification
    redundant_error_filters: List[str] = Field(
        default_factory=lambda: [OUTSIDE_REPOSITORY_ERROR], alias="GIT_REDUNDANT_ERROR_FILTERS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator('remote_diff_filter')
    @classmethod
    def validate_remote_diff_filter(cls, v):
        """Validate the remote divergence filtering mode."""
        if v not in REMOTE_DIFF_FILTER_MODES:
            raise ConfigurationError(
                f"GIT_REMOTE_DIFF_FILTER must be one of {', '.join(REMOTE_DIFF_FILTER_MODES)}",
                details={"value": v}
            )
        return v

    @field_validator('binary_path')
    @classmethod
    def validate_binary_path(cls, v):
        """Reject an empty binary path."""
        if not v or not v.strip():
            raise ConfigurationError("GIT_BINARY_PATH must not be empty")
        return v.strip()


class AppSettings(BaseSettings):
    """Application configuration settings."""

    # Logging
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )


class Config:
    """Main configuration class."""

    def __init__(self) -> None:
        self.git = GitSettings()
        self.app = AppSettings()

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment and .env file."""
        return cls()


# Global configuration instance
config = Config.load()
