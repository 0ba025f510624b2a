"""Git LFS status, lock and history synchronization engine."""

__version__ = "0.1.0"

# Import main components
from .config import Config
from .git import FileStatus, GitLfsRepository, Revision
from .logging import get_logger

__all__ = [
    "Config",
    "FileStatus",
    "GitLfsRepository",
    "Revision",
    "get_logger",
]
