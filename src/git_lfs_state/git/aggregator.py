"""Per-file state aggregation and the authoritative state cache."""

import os
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..logging import get_logger
from .command import GitCommandRunner
from .locks import LockableTypes, LockCache
from .models import (
    ConflictInfo,
    FileState,
    FileStatus,
    GitState,
    LockState,
    RemoteState,
    TreeState,
)
from .paths import absolute_path, normalize_path
from .status import classify_changelist, filename_from_status, parse_conflict_status, parse_status_line


logger = get_logger(__name__)


def collect_new_states(statuses: Dict[str, FileStatus]) -> Dict[str, GitState]:
    """State fragments of freshly parsed statuses, ready for the cache merge."""
    return {path: status.state.model_copy() for path, status in statuses.items()}


def collect_new_states_for_files(
    files: Iterable[str],
    results: Dict[str, GitState],
    file_state: FileState = FileState.UNSET,
    tree_state: TreeState = TreeState.UNSET,
    lock_state: LockState = LockState.UNSET,
    remote_state: RemoteState = RemoteState.UNSET,
) -> bool:
    """Set the given (non UNSET) values on the fragments of ``files``.

    Used after an action whose outcome is known without a status query,
    e.g. ``lock`` leaves its files Locked. Returns False for no files.
    """
    files = list(files)
    if not files:
        return False

    for path in files:
        state = results.setdefault(path, GitState())
        if file_state != FileState.UNSET:
            state.file_state = file_state
        if tree_state != TreeState.UNSET:
            state.tree_state = tree_state
        if lock_state != LockState.UNSET:
            state.lock_state = lock_state
        if remote_state != RemoteState.UNSET:
            state.remote_state = remote_state
    return True


class StateCache:
    """Process-lifetime cache of per-file states keyed by absolute path.

    Entries are created on first lookup and updated in place afterwards.
    """

    def __init__(self, using_lfs_locking: bool = True, clock: Callable[[], datetime] = datetime.now):
        self.using_lfs_locking = using_lfs_locking
        self.clock = clock
        self._states: Dict[str, FileStatus] = {}
        self._ignore_force_cache: Set[str] = set()

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._states

    def get_state(self, path: str) -> FileStatus:
        path = normalize_path(path)
        status = self._states.get(path)
        if status is None:
            status = FileStatus(local_filename=path)
            self._states[path] = status
        return status

    def find_state(self, path: str) -> Optional[FileStatus]:
        return self._states.get(normalize_path(path))

    def states(self) -> List[FileStatus]:
        return list(self._states.values())

    def reset(self) -> None:
        self._states = {}
        self._ignore_force_cache = set()

    # Debouncing of external full refreshes

    def add_file_to_ignore_force_cache(self, path: str) -> None:
        self._ignore_force_cache.add(normalize_path(path))

    def is_file_ignored_for_force_cache(self, path: str) -> bool:
        return normalize_path(path) in self._ignore_force_cache

    def clear_ignore_force_cache(self) -> None:
        self._ignore_force_cache = set()

    def update_cached_states(self, results: Dict[str, GitState]) -> bool:
        """Merge state fragments into the cache; UNSET fields are left alone.

        A transition to ADDED is rejected unless the cached entry is still
        unknown or can be added, so a stale "added" marker never overwrites
        a state that changed meanwhile.
        """
        if not results:
            return False

        now = self.clock() if self.using_lfs_locking else None
        for path, new_state in results.items():
            status = self.get_state(path)
            state = status.state
            if new_state.file_state != FileState.UNSET:
                if new_state.file_state == FileState.ADDED and not status.is_unknown() and not status.can_add():
                    logger.debug("Rejected transition to added", path=status.local_filename, file_state=state.file_state)
                    continue
                state.file_state = new_state.file_state
            if new_state.tree_state != TreeState.UNSET:
                state.tree_state = new_state.tree_state
            if new_state.lock_state != LockState.UNSET:
                state.lock_state = new_state.lock_state
                state.lock_user = new_state.lock_user
            if new_state.remote_state != RemoteState.UNSET:
                state.remote_state = new_state.remote_state
                if new_state.remote_state == RemoteState.UP_TO_DATE:
                    state.head_branch = ""
                else:
                    state.head_branch = new_state.head_branch
            status.timestamp = now

            self.add_file_to_ignore_force_cache(status.local_filename)
        return True

    def merge_statuses(self, statuses: Dict[str, FileStatus]) -> bool:
        """Merge aggregated statuses, including their conflict metadata."""
        updated = self.update_cached_states(collect_new_states(statuses))
        for path, status in statuses.items():
            cached = self.get_state(path)
            if cached.is_conflicted():
                cached.pending_resolve = status.pending_resolve.model_copy()
            else:
                cached.pending_resolve = ConflictInfo()
        return updated

    def get_locked_files(self, files: Iterable[str]) -> List[str]:
        """Subset of ``files`` locked by the current user, per the cache."""
        locked = []
        for path in files:
            status = self.find_state(path)
            if status is not None and status.state.lock_state == LockState.LOCKED:
                locked.append(status.local_filename)
        return locked

    def update_changelists(self, status_lines: Dict[str, str], evaluated: Iterable[str] = ()) -> None:
        """Assign each file to the Staged or Working changelist.

        Evaluated files without a status line leave their changelist.
        """
        for path in evaluated:
            path = normalize_path(path)
            if path not in status_lines and path in self._states:
                self._states[path].changelist = None
        for path, line in status_lines.items():
            self.get_state(path).changelist = classify_changelist(line)


class StatusAggregator:
    """Turns status lines, disk presence and locks into per-file states."""

    def __init__(
        self,
        runner: GitCommandRunner,
        lockable_types: LockableTypes,
        lock_cache: LockCache,
        using_lfs_locking: bool = True,
    ):
        self.runner = runner
        self.lockable_types = lockable_types
        self.lock_cache = lock_cache
        self.using_lfs_locking = using_lfs_locking

    @property
    def lock_user(self) -> str:
        return self.lock_cache.lock_user

    def list_files_in_directory(self, directory: str) -> Tuple[bool, List[str]]:
        """Tracked files below ``directory``, as absolute paths."""
        result = self.runner.run("ls-files", [], [directory])
        files = [absolute_path(self.runner.repository_root, line.strip()) for line in result.info_messages]
        return result.success, files

    def get_conflict_status(self, path: str) -> Optional[ConflictInfo]:
        result = self.runner.run("ls-files", ["--unmerged"], [path])
        if not result.success:
            logger.warning("Could not read unmerged stages", path=path, errors=result.error_messages)
            return None
        return parse_conflict_status(result.info_messages)

    def expand_files(self, files: Iterable[str]) -> List[str]:
        """Replace directories with the tracked files they contain."""
        expanded: List[str] = []
        seen: Set[str] = set()
        for path in files:
            if os.path.isdir(path):
                found, directory_files = self.list_files_in_directory(path)
                candidates = directory_files if found else []
            else:
                candidates = [normalize_path(path)]
            for candidate in candidates:
                if candidate not in seen:
                    seen.add(candidate)
                    expanded.append(candidate)
        return expanded

    def parse_status_results(self, files: Iterable[str], results: Dict[str, str]) -> Tuple[Dict[str, FileStatus], List[str]]:
        """Aggregate the state of files and directories from a status map.

        ``results`` maps absolute paths to their porcelain status line.
        Returns the new states and the lock query errors.
        """
        return self.parse_file_status_result(self.expand_files(files), results)

    def parse_file_status_result(
        self,
        files: List[str],
        results: Dict[str, str],
    ) -> Tuple[Dict[str, FileStatus], List[str]]:
        remaining = dict(results)
        states: Dict[str, FileStatus] = {}
        errors: List[str] = []
        locks: Optional[Dict[str, str]] = None

        for path in files:
            status = FileStatus(local_filename=path)
            state = status.state
            state.remote_state = RemoteState.UP_TO_DATE

            line = remaining.pop(path, None)
            if line is not None:
                # Only changed files show up in the status output
                state.file_state, state.tree_state = parse_status_line(line)
                if status.is_conflicted():
                    conflict = self.get_conflict_status(path)
                    if conflict is not None:
                        status.pending_resolve = conflict
            else:
                state.file_state = FileState.UNKNOWN
                if os.path.exists(path):
                    state.tree_state = TreeState.UNMODIFIED
                else:
                    # New content that was never saved to disk
                    state.tree_state = TreeState.NOT_IN_REPO

            if not self.using_lfs_locking:
                state.lock_state = LockState.UNLOCKABLE
            elif self.lockable_types.is_lockable(path):
                if locks is None:
                    refresh = self.lock_cache.refresh()
                    locks = refresh.locks
                    errors.extend(refresh.errors)
                    for error in refresh.errors:
                        logger.error("Lock query error", error=error)
                owner = locks.get(path)
                if owner is not None:
                    state.lock_user = owner
                    state.lock_state = LockState.LOCKED if owner == self.lock_user else LockState.LOCKED_OTHER
                else:
                    state.lock_state = LockState.NOT_LOCKED
            else:
                state.lock_state = LockState.UNLOCKABLE

            states[path] = status

        # Deleted files cannot be found by enumerating the disk
        states.update(self.parse_directory_status_result(remaining))
        return states, errors

    def parse_directory_status_result(self, results: Dict[str, str]) -> Dict[str, FileStatus]:
        """States of leftover status lines that are deleted, missing or untracked."""
        states: Dict[str, FileStatus] = {}
        for path, line in results.items():
            file_state, tree_state = parse_status_line(line)
            if file_state in (FileState.DELETED, FileState.MISSING) or tree_state == TreeState.UNTRACKED:
                status = FileStatus(local_filename=path)
                status.state.file_state = file_state
                status.state.tree_state = tree_state
                if not self.using_lfs_locking:
                    status.state.lock_state = LockState.UNLOCKABLE
                states[path] = status
        return states


def status_results_map(lines: Iterable[str], repository_root: str) -> Dict[str, str]:
    """Key porcelain status lines by the absolute path of their file."""
    return {absolute_path(repository_root, filename_from_status(line)): line for line in lines}
