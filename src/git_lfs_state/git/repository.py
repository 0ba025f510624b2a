"""Git LFS repository facade: status refresh, locks, history and remote sync."""

import os
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from ..config import GitSettings, config
from ..core.constants import STAGED_CHANGELIST
from ..exceptions import RepositoryError
from ..logging import get_logger
from .aggregator import StateCache, StatusAggregator, collect_new_states_for_files, status_results_map
from .command import CommandGateway, GitCommandRunner
from .error_filter import remove_all_redundant_errors
from .history import get_origin_revision_on_branch, run_get_history
from .identity import (
    check_git_availability,
    get_branch_name,
    get_commit_info,
    get_remote_url,
    get_user_config,
)
from .locks import LockableTypes, LockCache, LockRefreshResult
from .models import CommandResult, FileStatus, GitState, GitVersion, LockState, Revision
from .paths import (
    absolute_path,
    change_repository_root_if_submodule,
    find_root_directory,
    is_under,
    normalize_path,
    relative_filenames,
)
from .remote import RemoteChecker, get_remote_branch_name


logger = get_logger(__name__)

BeforeSync = Callable[[List[str]], Any]
AfterSync = Callable[[Any], None]

PENDING_RESTART_MESSAGE = (
    "Refused to pull because newer binaries are pending on the current branch; "
    "update the binaries first"
)


class StatusUpdate(NamedTuple):
    """Outcome of one status refresh."""
    result: CommandResult
    states: Dict[str, FileStatus]
    status_lines: Dict[str, str]

    @property
    def success(self) -> bool:
        return self.result.success


class GitLfsRepository:
    """One working tree with its lock cache and per-file state cache."""

    def __init__(
        self,
        repository_root: str,
        settings: Optional[GitSettings] = None,
        gateway: Optional[CommandGateway] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize with the root of an existing working tree."""
        self.settings = settings or config.git
        self.repository_root = normalize_path(os.path.abspath(repository_root))
        self.runner = GitCommandRunner(self.settings, self.repository_root, gateway)
        self.pending_restart = False
        self.git_version: Optional[GitVersion] = None

        self.lockable_types = LockableTypes()
        self.lock_cache = LockCache(
            self.runner,
            self.settings.lock_user,
            ttl_seconds=self.settings.lock_cache_ttl_seconds,
            clock=clock,
        )
        self.state_cache = StateCache(self.settings.using_lfs_locking, clock=clock)
        self.aggregator = StatusAggregator(
            self.runner,
            self.lockable_types,
            self.lock_cache,
            using_lfs_locking=self.settings.using_lfs_locking,
        )
        self.remote_checker = RemoteChecker(self.runner, self.settings, self.lockable_types)

    @classmethod
    def discover(
        cls,
        path: Optional[str] = None,
        settings: Optional[GitSettings] = None,
        gateway: Optional[CommandGateway] = None,
    ) -> "GitLfsRepository":
        """Open the repository containing ``path`` (default: configured root or cwd)."""
        settings = settings or config.git
        start = path or settings.repository_root or os.getcwd()
        found, root = find_root_directory(os.path.abspath(start))
        if not found:
            raise RepositoryError("Not inside a git repository", details={"path": start})
        return cls(root, settings=settings, gateway=gateway)

    @property
    def lock_user(self) -> str:
        return self.lock_cache.lock_user

    @property
    def using_lfs_locking(self) -> bool:
        return self.settings.using_lfs_locking

    def initialize(self) -> bool:
        """Check the git binary, resolve the lock user and the lockable types."""
        self.git_version = check_git_availability(self.runner)
        if self.git_version is None:
            return False

        if not self.lock_user:
            user_name, _ = get_user_config(self.runner)
            self.lock_cache.lock_user = user_name

        if self.using_lfs_locking:
            result = self.lockable_types.check_lfs_lockable(self.runner, self.settings.lockable_patterns)
            if not result.success:
                logger.warning("Could not query lockable attributes", errors=result.error_messages)
        logger.info("Repository initialized", root=self.repository_root, lock_user=self.lock_user)
        return True

    def reset(self) -> None:
        """Drop every cache (locks, lockable types, per-file states)."""
        self.lock_cache.reset()
        self.lockable_types.reset()
        self.state_cache.reset()
        self.pending_restart = False

    def _absolute(self, files: Iterable[str]) -> List[str]:
        return [absolute_path(self.repository_root, name) for name in files]

    # Status

    def get_state(self, path: str) -> FileStatus:
        return self.state_cache.get_state(absolute_path(self.repository_root, path))

    def run_update_status(self, files: Sequence[str]) -> StatusUpdate:
        """Compute the states of files and directories without touching the cache."""
        repo_files = [path for path in self._absolute(files) if is_under(path, self.repository_root)]
        if not repo_files:
            return StatusUpdate(CommandResult(success=False), {}, {})

        status = self.runner.run("--no-optional-locks status", ["--porcelain", "-uall"], repo_files)
        status_lines = status_results_map(status.info_messages, self.repository_root)
        result = CommandResult(success=status.success, error_messages=list(status.error_messages))

        states: Dict[str, FileStatus] = {}
        if status.success:
            states, lock_errors = self.aggregator.parse_status_results(repo_files, status_lines)
            result.error_messages.extend(lock_errors)

        remote = self.remote_checker.check()
        RemoteChecker.apply(remote, states)
        result.error_messages.extend(remote.errors)
        if remote.pending_restart:
            self.pending_restart = True

        remove_all_redundant_errors(result, self.settings.redundant_error_filters)
        return StatusUpdate(result, states, status_lines)

    def update_status(self, files: Sequence[str]) -> StatusUpdate:
        """Refresh the states of files and merge them into the cache."""
        update = self.run_update_status(files)
        if update.states:
            self.state_cache.merge_statuses(update.states)
        self.state_cache.update_changelists(update.status_lines, update.states.keys())
        return update

    def update_file_staging_on_saved(self, path: str) -> bool:
        """Stage a saved file again when it already sits in the Staged changelist."""
        status = self.get_state(path)
        if status.changelist != STAGED_CHANGELIST:
            return False
        return self.runner.run("add", [], [status.local_filename]).success

    # History

    def get_history(self, path: str, merge_conflict: bool = False) -> Tuple[CommandResult, List[Revision]]:
        return run_get_history(
            self.runner,
            absolute_path(self.repository_root, path),
            merge_conflict=merge_conflict,
            max_count=self.settings.history_max_count,
        )

    def get_origin_revision_on_branch(self, path: str, branch_name: str) -> Tuple[CommandResult, Optional[Revision]]:
        return get_origin_revision_on_branch(self.runner, absolute_path(self.repository_root, path), branch_name)

    def dump_to_file(self, parameter: str, dump_filename: str) -> bool:
        return self.runner.dump_to_file(parameter, dump_filename)

    # Locks

    def refresh_locks(self, force: bool = False) -> LockRefreshResult:
        return self.lock_cache.refresh(force_invalidate=force)

    def get_locked_files(self, files: Iterable[str]) -> List[str]:
        return self.state_cache.get_locked_files(self._absolute(files))

    def _update_lock_states(self, files: List[str], lock_state: LockState, lock_user: str) -> None:
        results: Dict[str, GitState] = {}
        collect_new_states_for_files(files, results, lock_state=lock_state)
        for state in results.values():
            state.lock_user = lock_user
        self.state_cache.update_cached_states(results)

    def lock(self, files: Sequence[str]) -> CommandResult:
        """Lock files on the LFS server and mark them Locked for the current user."""
        root, paths = change_repository_root_if_submodule(self._absolute(files), self.repository_root)
        result = self.runner.run_lfs("lock", [], relative_filenames(paths, root), repository_root=root)
        if result.success:
            for path in paths:
                self.lock_cache.add_locked_file(path, self.lock_user)
            self._update_lock_states(paths, LockState.LOCKED, self.lock_user)
        logger.info("Lock", files=len(paths), success=result.success)
        return result

    def unlock(self, files: Sequence[str], force: bool = False) -> CommandResult:
        """Release locks; ``force`` breaks locks held by other users."""
        root, paths = change_repository_root_if_submodule(self._absolute(files), self.repository_root)
        parameters = ["--force"] if force else []
        result = self.runner.run_lfs("unlock", parameters, relative_filenames(paths, root), repository_root=root)
        if result.success:
            for path in paths:
                self.lock_cache.remove_locked_file(path)
            self._update_lock_states(paths, LockState.NOT_LOCKED, "")
        logger.info("Unlock", files=len(paths), force=force, success=result.success)
        return result

    # Remote

    def fetch_remote(self) -> CommandResult:
        """Fetch the remote, refreshing the lock cache first when locking is on."""
        result = CommandResult()
        if self.using_lfs_locking:
            refresh = self.lock_cache.refresh(force_invalidate=True)
            result.error_messages.extend(refresh.errors)
        return result.merge(self.runner.run("fetch", ["--no-tags", "--prune"]))

    def pull_origin(
        self,
        already_reloaded: Iterable[str] = (),
        before_sync: Optional[BeforeSync] = None,
        after_sync: Optional[AfterSync] = None,
    ) -> Tuple[CommandResult, List[str]]:
        """Rebase the working tree onto its upstream.

        ``before_sync`` receives the lockable files about to change and runs
        to completion before the pull; whatever it returns is handed to
        ``after_sync`` once the pull finished, whatever its outcome.
        Returns the files that changed, minus those already reloaded.
        """
        if self.pending_restart:
            logger.warning("Pull refused, binaries update required")
            return CommandResult(success=False, error_messages=[PENDING_RESTART_MESSAGE]), []

        upstream = get_remote_branch_name(self.runner)
        if not upstream:
            return CommandResult(success=False), []

        diff = self.runner.run("diff", ["--name-only", upstream])
        if not diff.success:
            return diff, []
        if not diff.info_messages:
            return diff, []

        reloaded = set(self._absolute(already_reloaded))
        changed = [path for path in self._absolute(diff.info_messages) if path not in reloaded]
        lockable = [path for path in changed if self.lockable_types.is_lockable(path)]

        token = None
        should_reload = bool(lockable) and before_sync is not None
        if should_reload:
            token = before_sync(lockable)

        try:
            result = self.runner.run("pull", ["--rebase", "--autostash"])
        finally:
            if should_reload and after_sync is not None:
                after_sync(token)
        logger.info("Pull", upstream=upstream, changed=len(changed), success=result.success)
        return result, changed

    # Identity

    def check_git_availability(self) -> Optional[GitVersion]:
        return check_git_availability(self.runner)

    def get_user_config(self) -> Tuple[str, str]:
        return get_user_config(self.runner)

    def get_branch_name(self) -> Optional[str]:
        return get_branch_name(self.runner)

    def get_remote_branch_name(self) -> Optional[str]:
        return get_remote_branch_name(self.runner)

    def get_commit_info(self) -> Optional[Tuple[str, str]]:
        return get_commit_info(self.runner)

    def get_remote_url(self) -> Optional[str]:
        return get_remote_url(self.runner)
