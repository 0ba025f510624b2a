"""System-wide constants and configuration values."""

from typing import Final, Tuple

# Command batching
MAX_FILES_PER_BATCH: Final[int] = 50

# Lock cache validity window (in seconds)
LOCK_CACHE_TTL_SECONDS: Final[int] = 30

# History
DEFAULT_HISTORY_MAX_COUNT: Final[int] = 250
SHORT_COMMIT_ID_LENGTH: Final[int] = 8

# Status porcelain layout: two state characters and a space
STATUS_PREFIX_LENGTH: Final[int] = 3
RENAME_ARROW: Final[str] = "->"

# Git LFS lock listing
LOCK_ID_PREFIX: Final[str] = "ID:"

# Remote divergence defaults
DEFAULT_REMOTE_WATCH_PATHS: Final[Tuple[str, ...]] = ("Content/", ".checksum", "Binaries/", "Plugins/")
DEFAULT_REBUILD_SIGNAL_PATHS: Final[Tuple[str, ...]] = (".checksum", "Binaries/", "Plugins/")
DEFAULT_LOCKABLE_PATTERNS: Final[Tuple[str, ...]] = ("*.uasset", "*.umap")

# Benign stderr emitted for paths outside the repository
OUTSIDE_REPOSITORY_ERROR: Final[str] = "' is outside repository"

# Changelists
STAGED_CHANGELIST: Final[str] = "Staged"
WORKING_CHANGELIST: Final[str] = "Working"

# Logging Constants
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
