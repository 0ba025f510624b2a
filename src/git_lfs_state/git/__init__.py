"""Git and Git LFS state tracking: status, locks, history and remote divergence."""

from .repository import GitLfsRepository, StatusUpdate
from .models import (
    CommandResult,
    ConflictInfo,
    FileState,
    FileStatus,
    GitState,
    GitVersion,
    LockState,
    RemoteState,
    Revision,
    TreeState,
)

__all__ = [
    "GitLfsRepository",
    "StatusUpdate",
    "CommandResult",
    "ConflictInfo",
    "FileState",
    "FileStatus",
    "GitState",
    "GitVersion",
    "LockState",
    "RemoteState",
    "Revision",
    "TreeState",
]
