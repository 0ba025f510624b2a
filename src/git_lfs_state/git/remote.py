"""Detection of files changed on remote branches but not yet pulled.

Assumes a fetch was run beforehand so that the remote-tracking branches are
current.
"""

from typing import Dict, List, NamedTuple, Optional

from ..config import GitSettings
from ..logging import get_logger, warn_once
from .command import GitCommandRunner
from .locks import LockableTypes
from .models import FileStatus, RemoteState
from .paths import absolute_path, normalize_path


logger = get_logger(__name__)

WILDCARD_CHARACTERS = ("*", "?", "[")


class RemoteCheckResult(NamedTuple):
    """Lockable files ahead on a remote branch (absolute path -> branch)."""
    newer_files: Dict[str, str]
    current_branch: str
    pending_restart: bool
    errors: List[str]


def get_remote_branch_name(runner: GitCommandRunner) -> Optional[str]:
    """Upstream of the current branch, e.g. ``origin/main``; None without one."""
    result = runner.run("rev-parse", ["--abbrev-ref", "--symbolic-full-name", "@{u}"])
    if not result.success or not result.info_messages:
        warn_once(
            "remote-upstream",
            "Current branch has no upstream, remote status is limited to status branches",
            errors=result.error_messages,
        )
        return None
    return result.info_messages[0].strip()


def get_remote_branches_wildcard(runner: GitCommandRunner, pattern: str) -> List[str]:
    """Remote-tracking branches matching a ``git branch --list`` pattern."""
    result = runner.run("branch", ["--remotes", "--list"], [pattern])
    if not result.success:
        warn_once(
            f"remote-wildcard:{pattern}",
            "No remote branches found for pattern",
            pattern=pattern,
            errors=result.error_messages,
        )
        return []

    branches = []
    for line in result.info_messages:
        branch = line.strip()
        # Skip symbolic refs such as "origin/HEAD -> origin/main"
        if branch and "->" not in branch:
            branches.append(branch)
    return branches


def resolve_status_branches(runner: GitCommandRunner, patterns: List[str]) -> List[str]:
    branches: List[str] = []
    for pattern in patterns:
        if any(char in pattern for char in WILDCARD_CHARACTERS):
            candidates = get_remote_branches_wildcard(runner, pattern)
        else:
            candidates = [pattern]
        for branch in candidates:
            if branch not in branches:
                branches.append(branch)
    return branches


class RemoteChecker:
    """Compares HEAD with the upstream and the configured status branches."""

    def __init__(self, runner: GitCommandRunner, settings: GitSettings, lockable_types: LockableTypes):
        self.runner = runner
        self.settings = settings
        self.lockable_types = lockable_types

    def _use_diff_filter(self, status_branches: List[str]) -> bool:
        mode = self.settings.remote_diff_filter
        if mode == "always":
            return True
        if mode == "never":
            return False
        return bool(status_branches)

    def _is_rebuild_signal(self, filename: str) -> bool:
        lowered = filename.lower()
        for signal in self.settings.rebuild_signal_paths:
            signal = signal.lower()
            if signal.endswith("/"):
                if lowered.startswith(signal):
                    return True
            elif lowered == signal:
                return True
        return False

    def check(self) -> RemoteCheckResult:
        """List lockable files modified on the remote branches since HEAD.

        The current branch's upstream always wins over the status branches
        for a given file; among status branches the first one wins.
        """
        status_branches = resolve_status_branches(self.runner, list(self.settings.status_branches))
        current_branch = get_remote_branch_name(self.runner) or ""

        branches = list(status_branches)
        if current_branch and current_branch not in branches:
            branches.append(current_branch)
        if not branches:
            return RemoteCheckResult({}, current_branch, False, [])

        use_diff_filter = self._use_diff_filter(status_branches)
        watch_paths = list(self.settings.remote_watch_paths)
        newer_files: Dict[str, str] = {}
        pending_restart = False
        errors: List[str] = []

        for branch in branches:
            is_current = branch == current_branch
            # "..branch" lists the commits reachable from branch but not from HEAD
            log = self.runner.run("log", ["--pretty=", "--name-only", f"..{branch}", "--"], watch_paths)
            errors.extend(log.error_messages)
            if not log.success:
                warn_once(f"remote-log:{branch}", "Could not compare with remote branch", branch=branch)
                continue

            changed = [normalize_path(line.strip()) for line in log.info_messages if line.strip()]
            if use_diff_filter:
                # Drops files that changed on the branch but were reverted since
                diff = self.runner.run("diff", ["--name-only", f"...{branch}", "--"], watch_paths)
                errors.extend(diff.error_messages)
                in_log = set(changed)
                changed = [
                    normalize_path(line.strip()) for line in diff.info_messages
                    if normalize_path(line.strip()) in in_log
                ]

            for filename in changed:
                if not self.lockable_types.is_lockable(filename):
                    if is_current and self._is_rebuild_signal(filename):
                        pending_restart = True
                    continue
                path = absolute_path(self.runner.repository_root, filename)
                if is_current or path not in newer_files:
                    newer_files[path] = branch

        if pending_restart:
            logger.info("Newer binaries are pending on the current branch", branch=current_branch)
        logger.debug("Remote check done", branches=branches, newer_files=len(newer_files))
        return RemoteCheckResult(newer_files, current_branch, pending_restart, errors)

    @staticmethod
    def apply(result: RemoteCheckResult, states: Dict[str, FileStatus]) -> None:
        """Flag the states of files that are behind a remote branch."""
        for path, branch in result.newer_files.items():
            status = states.get(path)
            if status is None:
                continue
            if branch == result.current_branch:
                status.state.remote_state = RemoteState.NOT_AT_HEAD
            else:
                status.state.remote_state = RemoteState.NOT_LATEST
            status.state.head_branch = branch
