"""Data models for per-file version-control state and history."""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class FileState(str, Enum):
    """Content state of a file relative to the index and HEAD."""
    UNSET = "unset"
    UNKNOWN = "unknown"
    UNMODIFIED = "unmodified"
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"
    COPIED = "copied"
    MISSING = "missing"
    UNMERGED = "unmerged"


class TreeState(str, Enum):
    """Where the change of a file lives (index, working tree, nowhere)."""
    UNSET = "unset"
    UNMODIFIED = "unmodified"
    UNTRACKED = "untracked"
    IGNORED = "ignored"
    STAGED = "staged"
    WORKING = "working"
    NOT_IN_REPO = "not_in_repo"


class LockState(str, Enum):
    """Git LFS lock state of a file."""
    UNSET = "unset"
    UNLOCKABLE = "unlockable"
    NOT_LOCKED = "not_locked"
    LOCKED = "locked"
    LOCKED_OTHER = "locked_other"


class RemoteState(str, Enum):
    """Freshness of a file relative to the tracked remote branches."""
    UNSET = "unset"
    UP_TO_DATE = "up_to_date"
    NOT_LATEST = "not_latest"
    NOT_AT_HEAD = "not_at_head"


class GitState(BaseModel):
    """A state fragment; UNSET fields leave the cached value untouched on merge."""
    file_state: FileState = FileState.UNSET
    tree_state: TreeState = TreeState.UNSET
    lock_state: LockState = LockState.UNSET
    lock_user: str = ""
    remote_state: RemoteState = RemoteState.UNSET
    head_branch: str = ""


class ConflictInfo(BaseModel):
    """Blob identities of the merge base and the other branch for an unmerged file."""
    base_file: str = ""
    base_revision: str = ""
    remote_file: str = ""
    remote_revision: str = ""


class FileStatus(BaseModel):
    """Authoritative cached state of one file, keyed by its absolute path."""
    local_filename: str
    state: GitState = Field(default_factory=GitState)
    pending_resolve: ConflictInfo = Field(default_factory=ConflictInfo)
    changelist: Optional[str] = None
    timestamp: Optional[datetime] = None

    def is_conflicted(self) -> bool:
        return self.state.file_state == FileState.UNMERGED

    def is_unknown(self) -> bool:
        """True when nothing is known about the file beyond its existence."""
        return (
            self.state.file_state in (FileState.UNSET, FileState.UNKNOWN)
            and self.state.tree_state in (TreeState.UNSET, TreeState.NOT_IN_REPO)
        )

    def can_add(self) -> bool:
        return self.state.tree_state == TreeState.UNTRACKED

    def is_checked_out(self) -> bool:
        return self.state.lock_state == LockState.LOCKED

    def is_checked_out_other(self) -> bool:
        return self.state.lock_state == LockState.LOCKED_OTHER

    def is_current(self) -> bool:
        return self.state.remote_state in (RemoteState.UNSET, RemoteState.UP_TO_DATE)

    def is_modified(self) -> bool:
        return self.state.file_state in (
            FileState.ADDED,
            FileState.DELETED,
            FileState.MODIFIED,
            FileState.RENAMED,
            FileState.COPIED,
            FileState.MISSING,
            FileState.UNMERGED,
        )


class Revision(BaseModel):
    """One entry of a file history, as parsed from ``git log``."""
    commit_id: str = ""
    short_commit_id: str = ""
    commit_id_number: int = 0
    user_name: str = ""
    date: Optional[datetime] = None
    description: str = ""
    revision_number: int = 0
    action: str = ""
    filename: str = ""
    branch_source: Optional["Revision"] = None
    file_hash: str = ""
    file_size: int = 0
    path_to_repo_root: str = ""

    @property
    def revision(self) -> str:
        return self.commit_id


class GitVersion(BaseModel):
    """Version of the git binary, including vendor forks such as ``2.31.1.vfs.0.3``."""
    major: int = 0
    minor: int = 0
    patch: int = 0
    is_fork: bool = False
    fork: str = ""
    fork_major: int = 0
    fork_minor: int = 0
    fork_patch: int = 0


class CommandResult(BaseModel):
    """Outcome of one logical command: success flag, info lines and error lines."""
    success: bool = True
    info_messages: List[str] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)

    def merge(self, other: "CommandResult") -> "CommandResult":
        """Fold another result into this one (success is AND-ed)."""
        self.success = self.success and other.success
        self.info_messages.extend(other.info_messages)
        self.error_messages.extend(other.error_messages)
        return self
